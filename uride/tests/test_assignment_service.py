import random

import pytest
from sqlalchemy.exc import OperationalError

from uride.extensions import db
from uride.models.admin_activity import AdminActivity
from uride.models.driver import Driver
from uride.models.vehicle import Vehicle
from uride.services.assignment_service import AssignmentService
from uride.services.driver_service import DriverService
from uride.services.errors import (
    ConsistencyViolation,
    DriverNotEligible,
    NotEligible,
    PersistenceError,
    VehicleNotAssigned,
    VehicleUnavailable,
)
from uride.services.lifecycle_service import DriverLifecycleService
from uride.services.vehicle_service import VehicleService

ADMIN = ('admin-1', 'Asha Admin')


def test_assign_then_unassign_restores_both_sides(make_driver, make_vehicle):
    driver = make_driver('fleet')
    vehicle = make_vehicle()

    AssignmentService.assign(vehicle.id, driver.id, ADMIN)
    vehicle = db.session.get(Vehicle, vehicle.id)
    driver = db.session.get(Driver, driver.id)
    assert vehicle.status == 'assigned'
    assert vehicle.assigned_driver_id == driver.id
    assert vehicle.assigned_at is not None
    assert driver.assigned_vehicle_id == vehicle.id

    AssignmentService.unassign(vehicle.id, ADMIN)
    vehicle = db.session.get(Vehicle, vehicle.id)
    driver = db.session.get(Driver, driver.id)
    assert vehicle.status == 'available'
    assert vehicle.assigned_driver_id is None
    assert driver.assigned_vehicle_id is None
    assert AssignmentService.verify_consistency() is True


def test_assign_writes_audit_record(make_driver, make_vehicle):
    driver = make_driver('fleet')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, driver.id, ADMIN)

    entry = AdminActivity.query.filter_by(action='assign_vehicle').one()
    assert entry.admin_id == 'admin-1'
    assert entry.target_id == vehicle.id
    assert entry.details['driver_id'] == driver.id


def test_owner_driver_not_eligible(make_driver, make_vehicle):
    owner = make_driver('owner')
    vehicle = make_vehicle()
    with pytest.raises(DriverNotEligible):
        AssignmentService.assign(vehicle.id, owner.id, ADMIN)


def test_pending_driver_not_eligible(make_driver, make_vehicle):
    driver = make_driver('fleet', approve=False)
    vehicle = make_vehicle()
    with pytest.raises(DriverNotEligible):
        AssignmentService.assign(vehicle.id, driver.id, ADMIN)


def test_driver_holds_one_vehicle(make_driver, make_vehicle):
    driver = make_driver('fleet')
    first, second = make_vehicle(), make_vehicle()
    AssignmentService.assign(first.id, driver.id, ADMIN)
    with pytest.raises(DriverNotEligible):
        AssignmentService.assign(second.id, driver.id, ADMIN)


def test_assigned_vehicle_unavailable(make_driver, make_vehicle):
    first, second = make_driver('fleet'), make_driver('fleet')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, first.id, ADMIN)
    with pytest.raises(VehicleUnavailable):
        AssignmentService.assign(vehicle.id, second.id, ADMIN)


def test_vehicle_in_maintenance_unavailable(make_driver, make_vehicle):
    driver = make_driver('fleet')
    vehicle = make_vehicle()
    VehicleService.set_condition(vehicle.id, {'condition_status': 'maintenance'}, ADMIN)
    with pytest.raises(VehicleUnavailable):
        AssignmentService.assign(vehicle.id, driver.id, ADMIN)


def test_driver_owned_vehicle_never_assignable(make_driver, new_driver_data):
    data = new_driver_data('owner', vehicle={'registration_number': 'KA01MN4321', 'make': 'Honda', 'model': 'City'})
    DriverService.create(data, ADMIN)
    fleet = make_driver('fleet')
    owned = Vehicle.query.filter_by(registration_number='KA01MN4321').one()
    assert owned.ownership == 'driver_owned'
    with pytest.raises(VehicleUnavailable):
        AssignmentService.assign(owned.id, fleet.id, ADMIN)


def test_unassign_requires_assignment(make_vehicle):
    vehicle = make_vehicle()
    with pytest.raises(VehicleNotAssigned):
        AssignmentService.unassign(vehicle.id, ADMIN)


def test_maintenance_survives_unassign(make_driver, make_vehicle):
    driver = make_driver('fleet')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, driver.id, ADMIN)
    VehicleService.set_condition(vehicle.id, {'condition_status': 'maintenance'}, ADMIN)
    assert db.session.get(Vehicle, vehicle.id).status == 'maintenance'

    AssignmentService.unassign(vehicle.id, ADMIN)
    vehicle = db.session.get(Vehicle, vehicle.id)
    assert vehicle.assignment_status == 'available'
    assert vehicle.condition_status == 'maintenance'
    assert vehicle.status == 'maintenance'


def test_out_of_service_requires_unassigned(make_driver, make_vehicle):
    driver = make_driver('fleet')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, driver.id, ADMIN)
    with pytest.raises(NotEligible):
        VehicleService.set_condition(vehicle.id, {'condition_status': 'out_of_service'}, ADMIN)


def test_reassign_moves_vehicle(make_driver, make_vehicle):
    first, second = make_driver('fleet'), make_driver('fleet')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, first.id, ADMIN)
    AssignmentService.reassign(vehicle.id, second.id, ADMIN)

    assert db.session.get(Driver, first.id).assigned_vehicle_id is None
    assert db.session.get(Driver, second.id).assigned_vehicle_id == vehicle.id
    assert db.session.get(Vehicle, vehicle.id).assigned_driver_id == second.id


def test_failed_commit_leaves_both_sides_untouched(make_driver, make_vehicle, monkeypatch):
    driver = make_driver('fleet')
    vehicle = make_vehicle()
    audit_count = AdminActivity.query.count()

    def failing_commit():
        raise OperationalError('COMMIT', {}, Exception('disk I/O error'))

    monkeypatch.setattr(db.session, 'commit', failing_commit)
    with pytest.raises(PersistenceError):
        AssignmentService.assign(vehicle.id, driver.id, ADMIN)
    monkeypatch.undo()

    assert db.session.get(Vehicle, vehicle.id).assignment_status == 'available'
    assert db.session.get(Vehicle, vehicle.id).assigned_driver_id is None
    assert db.session.get(Driver, driver.id).assigned_vehicle_id is None
    assert AdminActivity.query.count() == audit_count


def test_verify_consistency_detects_one_sided_link(make_driver, make_vehicle):
    driver_id = make_driver('fleet').id
    vehicle = make_vehicle()
    # read ids before dirtying the vehicle, or the refresh autoflushes half a pair
    with db.session.no_autoflush:
        vehicle.assignment_status = 'assigned'
        vehicle.assigned_driver_id = driver_id
    db.session.commit()
    with pytest.raises(ConsistencyViolation):
        AssignmentService.verify_consistency()


def test_random_assign_unassign_sequences_stay_consistent(make_driver, make_vehicle):
    drivers = [make_driver('fleet') for _ in range(4)]
    vehicles = [make_vehicle() for _ in range(3)]
    DriverLifecycleService.suspend(drivers[3].id, 'late paperwork', ADMIN)

    rng = random.Random(2024)
    for _ in range(60):
        vehicle = rng.choice(vehicles)
        try:
            if rng.random() < 0.6:
                AssignmentService.assign(vehicle.id, rng.choice(drivers).id, ADMIN)
            else:
                AssignmentService.unassign(vehicle.id, ADMIN)
        except NotEligible:
            pass
        assert AssignmentService.verify_consistency() is True

    assert db.session.get(Driver, drivers[3].id).assigned_vehicle_id is None


def test_rejected_reassign_keeps_current_driver(make_driver, make_vehicle):
    holder = make_driver('fleet')
    owner = make_driver('owner')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, holder.id, ADMIN)

    with pytest.raises(DriverNotEligible):
        AssignmentService.reassign(vehicle.id, owner.id, ADMIN)
    assert db.session.get(Vehicle, vehicle.id).assigned_driver_id == holder.id
    assert db.session.get(Driver, holder.id).assigned_vehicle_id == vehicle.id


def test_failed_reassign_commit_keeps_current_driver(make_driver, make_vehicle, monkeypatch):
    holder, successor = make_driver('fleet'), make_driver('fleet')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, holder.id, ADMIN)
    audit_count = AdminActivity.query.count()

    def failing_commit():
        raise OperationalError('COMMIT', {}, Exception('disk I/O error'))

    monkeypatch.setattr(db.session, 'commit', failing_commit)
    with pytest.raises(PersistenceError):
        AssignmentService.reassign(vehicle.id, successor.id, ADMIN)
    monkeypatch.undo()

    assert db.session.get(Vehicle, vehicle.id).assigned_driver_id == holder.id
    assert db.session.get(Driver, holder.id).assigned_vehicle_id == vehicle.id
    assert db.session.get(Driver, successor.id).assigned_vehicle_id is None
    assert AdminActivity.query.count() == audit_count
    assert AssignmentService.verify_consistency() is True


def test_reassign_audits_release_and_handover(make_driver, make_vehicle):
    holder, successor = make_driver('fleet'), make_driver('fleet')
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, holder.id, ADMIN)
    AssignmentService.reassign(vehicle.id, successor.id, ADMIN)

    actions = [a.action for a in AdminActivity.query.filter_by(target_type='vehicle', target_id=vehicle.id)
               .order_by(AdminActivity.id).all()]
    assert actions[-2:] == ['unassign_vehicle', 'assign_vehicle']
