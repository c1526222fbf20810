import pytest

from uride.extensions import db
from uride.models.admin_activity import AdminActivity
from uride.models.driver import Driver
from uride.services.driver_service import DriverService
from uride.services.errors import InvalidTransition, NotEligible, ValidationError
from uride.services.lifecycle_service import DriverLifecycleService

ADMIN = ('admin-7', 'Ravi Admin')


def test_signup_starts_pending(make_driver):
    driver = make_driver('owner', approve=False)
    assert driver.status == 'pending'
    assert driver.documents_verified is False
    assert driver.compensation_model.commission_rate is not None


def test_approve_sets_verification(make_driver, clock):
    driver = make_driver('fleet', approve=False)
    approved = DriverLifecycleService.approve(driver.id, ADMIN)
    assert approved.status == 'active'
    assert approved.documents_verified is True
    assert approved.approved_at is not None


def test_reject_stores_reason(make_driver):
    driver = make_driver('fleet', approve=False)
    rejected = DriverLifecycleService.reject(driver.id, 'Licence photo unreadable', ADMIN)
    assert rejected.status == 'inactive'
    assert rejected.rejection_reason == 'Licence photo unreadable'


def test_pending_only_allows_approve_or_reject(make_driver):
    driver = make_driver('fleet', approve=False)
    with pytest.raises(InvalidTransition):
        DriverLifecycleService.suspend(driver.id, 'no reason', ADMIN)
    with pytest.raises(InvalidTransition):
        DriverLifecycleService.reactivate(driver.id, ADMIN)
    assert db.session.get(Driver, driver.id).status == 'pending'


def test_inactive_is_terminal(make_driver):
    driver = make_driver('fleet', approve=False)
    DriverLifecycleService.reject(driver.id, 'duplicate', ADMIN)
    for transition in (DriverLifecycleService.approve, DriverLifecycleService.reactivate):
        with pytest.raises(InvalidTransition):
            transition(driver.id, actor=ADMIN)


def test_suspend_forces_offline(make_driver):
    driver = make_driver('owner')
    DriverService.set_online(driver.id, True)
    suspended = DriverLifecycleService.suspend(driver.id, 'customer complaints', ADMIN)
    assert suspended.status == 'suspended'
    assert suspended.is_online is False
    with pytest.raises(NotEligible):
        DriverService.set_online(driver.id, True)


def test_approve_cannot_revive_suspended_driver(make_driver):
    driver = make_driver('fleet')
    DriverLifecycleService.suspend(driver.id, 'audit', ADMIN)
    with pytest.raises(InvalidTransition):
        DriverLifecycleService.approve(driver.id, ADMIN)
    assert DriverLifecycleService.reactivate(driver.id, ADMIN).status == 'active'


def test_pending_driver_cannot_go_online(make_driver):
    driver = make_driver('fleet', approve=False)
    with pytest.raises(NotEligible):
        DriverService.set_online(driver.id, True)


def test_each_transition_is_audited(make_driver):
    driver = make_driver('fleet', approve=False)
    DriverLifecycleService.approve(driver.id, ADMIN)
    DriverLifecycleService.suspend(driver.id, 'audit', ADMIN)
    DriverLifecycleService.reactivate(driver.id, ADMIN)

    actions = [a.action for a in AdminActivity.query.filter_by(target_type='driver', target_id=driver.id)
               .order_by(AdminActivity.id)]
    assert actions == ['create_driver', 'approve', 'suspend', 'reactivate']
    suspend = AdminActivity.query.filter_by(action='suspend').one()
    assert suspend.admin_name == 'Ravi Admin'
    assert suspend.details == {'from': 'active', 'to': 'suspended', 'reason': 'audit'}


def test_compensation_model_is_immutable(make_driver):
    driver = make_driver('owner')
    with pytest.raises(ValidationError):
        DriverService.update(driver.id, {'commission_rate': '0.10'}, ADMIN)
    with pytest.raises(ValidationError):
        DriverService.update(driver.id, {'compensation_kind': 'fleet'}, ADMIN)
    updated = DriverService.update(driver.id, {'address': '12 MG Road'}, ADMIN)
    assert updated.address == '12 MG Road'


def test_duplicate_identifiers_rejected(make_driver, new_driver_data):
    driver = make_driver('fleet')
    data = new_driver_data('fleet', email=driver.email)
    with pytest.raises(ValidationError) as exc:
        DriverService.create(data, ADMIN)
    assert exc.value.field == 'email'


def test_signup_validation_names_field(new_driver_data, app):
    with pytest.raises(ValidationError) as exc:
        DriverService.create(new_driver_data('fleet', phone='12345'), ADMIN)
    assert exc.value.field == 'phone'
