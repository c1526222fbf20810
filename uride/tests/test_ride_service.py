from datetime import datetime, timezone
from decimal import Decimal

import pytest

from uride.extensions import db
from uride.models.driver import Driver
from uride.models.ride import Ride, RideDecline
from uride.services.assignment_service import AssignmentService
from uride.services.driver_service import DriverService
from uride.services.errors import (
    ConsistencyViolation,
    DriverNotEligible,
    InvalidTransition,
    NotEligible,
    ValidationError,
    VehicleNotAssigned,
)
from uride.services.penalty_service import PenaltyService
from uride.services.ride_service import RideService
from uride.services.shift_service import ShiftService
from uride.utils.timezone_utils import ensure_utc

ADMIN = ('admin-1', 'Asha Admin')


def _ride(distance_km=5, **extra):
    return RideService.request_ride({'vehicle_class': 'economy', 'distance_km': distance_km, **extra})


def _online(driver):
    DriverService.set_online(driver.id, True)
    return driver


def _fleet_with_vehicle(make_driver, make_vehicle):
    driver = _online(make_driver('fleet'))
    vehicle = make_vehicle()
    AssignmentService.assign(vehicle.id, driver.id, ADMIN)
    return driver, vehicle


def _drive(ride, driver, **completion):
    RideService.accept_ride(ride.id, driver.id)
    RideService.start_ride(ride.id)
    return RideService.complete_ride(ride.id, **completion)


def test_request_stores_quoted_fare(app):
    ride = _ride()
    assert ride.status == 'requested'
    assert ride.total_fare == Decimal('75')
    assert ride.base_fare == Decimal('75')
    assert ride.estimated_minutes == 12


def test_owner_ride_pays_commission(make_driver):
    driver = _online(make_driver('owner', commission_rate='0.10'))
    ride = _drive(_ride(), driver, rating=5)

    assert ride.status == 'completed'
    assert ride.driver_payout == Decimal('67.50')
    assert ride.platform_share == Decimal('7.50')
    assert ride.compensation_kind == 'owner'

    driver = db.session.get(Driver, driver.id)
    assert driver.total_rides == 1
    assert driver.total_earnings == Decimal('67.50')
    assert driver.total_km_driven == Decimal('5')
    assert driver.average_rating == Decimal('5')


def test_fleet_ride_pays_per_km_and_feeds_shift(make_driver, make_vehicle):
    driver, vehicle = _fleet_with_vehicle(make_driver, make_vehicle)
    ShiftService.start_shift(driver.id, 20)

    ride = _ride(distance_km=5)
    RideService.accept_ride(ride.id, driver.id)
    assert db.session.get(Ride, ride.id).vehicle_id == vehicle.id
    RideService.start_ride(ride.id)
    ride = RideService.complete_ride(ride.id)

    assert ride.driver_payout == Decimal('60.00')
    assert ride.platform_share == Decimal('15.00')
    shift = db.session.get(Driver, driver.id).current_shift
    assert shift.completed_km == Decimal('5')
    assert shift.progress == pytest.approx(0.25)


def test_actual_distance_requotes_fare(make_driver):
    driver = _online(make_driver('owner', commission_rate='0'))
    ride = _drive(_ride(distance_km=5), driver, distance_km=7)
    assert ride.distance_km == Decimal('7')
    assert ride.total_fare == Decimal('105')
    assert ride.driver_payout == Decimal('105.00')


def test_average_rating_recomputed_from_rides(make_driver):
    driver = _online(make_driver('owner'))
    _drive(_ride(), driver, rating=5)
    _drive(_ride(), driver, rating=4)
    _drive(_ride(), driver)
    assert db.session.get(Driver, driver.id).average_rating == Decimal('4.50')


def test_offline_driver_cannot_accept(make_driver):
    driver = make_driver('owner')
    with pytest.raises(DriverNotEligible):
        RideService.accept_ride(_ride().id, driver.id)


def test_fleet_driver_without_vehicle_cannot_accept(make_driver):
    driver = _online(make_driver('fleet'))
    with pytest.raises(VehicleNotAssigned):
        RideService.accept_ride(_ride().id, driver.id)


def test_fleet_payout_needs_vehicle_at_completion(make_driver, make_vehicle):
    driver, vehicle = _fleet_with_vehicle(make_driver, make_vehicle)
    ride = _ride()
    RideService.accept_ride(ride.id, driver.id)
    RideService.start_ride(ride.id)
    AssignmentService.unassign(vehicle.id, ADMIN)

    with pytest.raises(VehicleNotAssigned):
        RideService.complete_ride(ride.id)
    assert db.session.get(Ride, ride.id).status == 'en_route'
    assert db.session.get(Driver, driver.id).total_rides == 0


def test_ride_state_machine(make_driver):
    driver = _online(make_driver('owner'))
    ride = _ride()
    with pytest.raises(InvalidTransition):
        RideService.complete_ride(ride.id)
    RideService.cancel_ride(ride.id)
    with pytest.raises(InvalidTransition):
        RideService.accept_ride(ride.id, driver.id)


def test_completed_ride_is_immutable(make_driver):
    driver = _online(make_driver('owner'))
    ride = _drive(_ride(), driver)

    ride.total_fare = Decimal('1')
    with pytest.raises(ConsistencyViolation):
        db.session.commit()
    db.session.rollback()
    assert db.session.get(Ride, ride.id).total_fare == Decimal('75')

    with pytest.raises(InvalidTransition):
        RideService.cancel_ride(ride.id)


def test_cancelled_ride_leaves_stats_alone(make_driver):
    driver = _online(make_driver('owner'))
    ride = _ride()
    RideService.accept_ride(ride.id, driver.id)
    RideService.cancel_ride(ride.id)
    driver = db.session.get(Driver, driver.id)
    assert driver.total_rides == 0
    assert driver.total_earnings == Decimal('0')


def test_driver_cancellation_after_accept_is_penalised(make_driver):
    driver = _online(make_driver('owner'))
    ride = _ride()
    RideService.accept_ride(ride.id, driver.id)
    ride = RideService.cancel_ride(ride.id, cancelled_by='driver', reason='Flat tyre')

    assert ride.status == 'cancelled'
    assert ride.cancelled_by == 'driver'
    penalties = PenaltyService.list_for_driver(driver.id)
    assert [(p.penalty_type, p.amount, p.ride_id) for p in penalties] == [
        ('general_cancel', Decimal('50'), ride.id)]
    assert penalties[0].reason == 'Flat tyre'
    assert db.session.get(Driver, driver.id).completion_rate == 0.0


def test_emergency_cancellation_costs_more(make_driver):
    driver = _online(make_driver('owner'))
    ride = _ride(purpose='emergency')
    RideService.accept_ride(ride.id, driver.id)
    RideService.start_ride(ride.id)
    RideService.cancel_ride(ride.id, cancelled_by='driver')

    penalty = PenaltyService.list_for_driver(driver.id)[0]
    assert penalty.penalty_type == 'emergency_cancel'
    assert penalty.amount == Decimal('200')
    assert PenaltyService.total_for_driver(driver.id) == Decimal('200')


def test_passenger_cancellation_costs_driver_nothing(make_driver):
    driver = _online(make_driver('owner'))
    ride = _ride()
    RideService.accept_ride(ride.id, driver.id)
    RideService.cancel_ride(ride.id, cancelled_by='passenger')

    assert PenaltyService.list_for_driver(driver.id) == []
    assert db.session.get(Driver, driver.id).completion_rate == 100.0


def test_driver_cannot_cancel_unaccepted_ride(app):
    ride = _ride()
    with pytest.raises(NotEligible):
        RideService.cancel_ride(ride.id, cancelled_by='driver')
    with pytest.raises(ValidationError) as exc:
        RideService.cancel_ride(ride.id, cancelled_by='dispatcher')
    assert exc.value.field == 'cancelled_by'
    assert db.session.get(Ride, ride.id).status == 'requested'


def test_rates_follow_ride_outcomes(make_driver):
    driver = _online(make_driver('owner'))
    fresh = db.session.get(Driver, driver.id)
    assert (fresh.acceptance_rate, fresh.completion_rate) == (100.0, 100.0)

    _drive(_ride(), driver)
    RideService.decline_ride(_ride().id, driver.id)
    abandoned = _ride()
    RideService.accept_ride(abandoned.id, driver.id)
    RideService.cancel_ride(abandoned.id, cancelled_by='driver')

    driver = db.session.get(Driver, driver.id)
    # accepted 2 of 3 offers, finished 1 of 2 accepted rides
    assert driver.acceptance_rate == 66.67
    assert driver.completion_rate == 50.0


def test_decline_keeps_ride_open_and_is_recorded_once(make_driver):
    first = _online(make_driver('owner'))
    second = _online(make_driver('owner'))
    ride = _ride()
    RideService.decline_ride(ride.id, first.id)
    RideService.decline_ride(ride.id, first.id)

    assert RideDecline.query.filter_by(ride_id=ride.id).count() == 1
    assert db.session.get(Driver, first.id).acceptance_rate == 0.0
    assert RideService.accept_ride(ride.id, second.id).status == 'accepted'
    with pytest.raises(InvalidTransition):
        RideService.decline_ride(ride.id, first.id)


def test_unanswered_offer_costs_no_response_penalty(make_driver):
    driver = _online(make_driver('owner'))
    ride = _ride()
    RideService.decline_ride(ride.id, driver.id, timed_out=True)

    penalty = PenaltyService.list_for_driver(driver.id)[0]
    assert (penalty.penalty_type, penalty.amount) == ('no_response', Decimal('25'))


@pytest.mark.parametrize('rating', ['4.5', 'great', 4.5])
def test_non_integer_rating_is_a_validation_error(make_driver, rating):
    driver = _online(make_driver('owner'))
    ride = _ride()
    RideService.accept_ride(ride.id, driver.id)
    RideService.start_ride(ride.id)

    with pytest.raises(ValidationError) as exc:
        RideService.complete_ride(ride.id, rating=rating)
    assert exc.value.field == 'rating'
    assert db.session.get(Ride, ride.id).status == 'en_route'


def test_string_rating_of_whole_number_is_accepted(make_driver):
    driver = _online(make_driver('owner'))
    ride = _drive(_ride(), driver, rating='4')
    assert ride.rating == 4


def test_listener_violation_rolls_back_the_session(make_driver):
    driver = _online(make_driver('owner'))
    ride = _drive(_ride(), driver)

    ride.total_fare = Decimal('1')
    with pytest.raises(ConsistencyViolation):
        RideService.request_ride({'distance_km': 5})

    # the service rolled back, so the session is usable and the ledger intact
    assert db.session.get(Ride, ride.id).total_fare == Decimal('75')
    assert Ride.query.count() == 1


def test_naive_request_time_is_display_local(app):
    # 23:00 in Asia/Kolkata is night; 23:00 UTC would be 04:30 the next morning
    ride = _ride(at='2025-01-15T23:00:00')
    assert ride.night_surcharge > 0
    assert ensure_utc(db.session.get(Ride, ride.id).requested_at) == datetime(2025, 1, 15, 17, 30, tzinfo=timezone.utc)
