"""
Ride ledger: request, accept, decline, start, complete, cancel.

Completion is where money moves. The fare is split by the driver's stored
compensation model, the driver's cumulative stats and any active fleet shift
are updated, and all of it is committed together with the ride row.

A driver's acceptance and completion rates are derived from the same ledger
whenever one of their rides is accepted, declined, completed or cancelled.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from uride.extensions import db
from uride.models.driver import DriverStatus
from uride.models.penalty import PenaltyType
from uride.models.ride import CancelledBy, Ride, RideDecline, RidePurpose, RideStatus
from uride.models.vehicle import Vehicle, VehicleOwnership
from uride.schemas.ride_schema import FareQuoteSchema, RideRequestSchema
from uride.services.compensation_service import split_fare
from uride.services.driver_service import DriverService
from uride.services.errors import (
    DriverNotEligible,
    InvalidTransition,
    NotEligible,
    NotFound,
    PersistenceError,
    ServiceError,
    ValidationError,
    VehicleNotAssigned,
)
from uride.services.fare_service import calculate_fare
from uride.services.penalty_service import PenaltyService
from uride.utils.clock import get_clock
from uride.utils.timezone_utils import convert_display_to_utc, ensure_utc
from uride.utils.validation import load_or_raise

quote_schema = FareQuoteSchema()
request_schema = RideRequestSchema()

RATING_QUANTUM = Decimal("0.01")

# Statuses in which a driver holds the ride and pays a penalty for dropping it
DRIVER_HELD_STATUSES = (RideStatus.ACCEPTED.value, RideStatus.EN_ROUTE.value)


def _point(coordinate):
    if not coordinate:
        return None
    return coordinate['lat'], coordinate['lng']


def _percentage(part, whole):
    if not whole:
        return 100.0
    return round(part * 100.0 / whole, 2)


def _parse_rating(rating):
    if rating is None:
        return None
    try:
        value = int(str(rating))
    except (TypeError, ValueError):
        raise ValidationError("rating must be a whole number between 1 and 5", field='rating')
    if not 1 <= value <= 5:
        raise ValidationError("rating must be between 1 and 5", field='rating')
    return value


class RideService:
    @staticmethod
    def quote(data):
        payload = load_or_raise(quote_schema, data or {})
        return calculate_fare(
            payload['vehicle_class'],
            payload['purpose'],
            payload['at'] or get_clock().now(),
            distance_km=payload['distance_km'],
            pickup=_point(payload['pickup']),
            destination=_point(payload['destination']),
        )

    @staticmethod
    def get(ride_id):
        ride = Ride.query.filter_by(id=ride_id).first()
        if not ride:
            raise NotFound(f"Ride {ride_id} not found")
        return ride

    @staticmethod
    def get_all(status=None, driver_id=None):
        try:
            query = Ride.query
            if status:
                query = query.filter_by(status=status)
            if driver_id is not None:
                query = query.filter_by(driver_id=driver_id)
            return query.order_by(Ride.requested_at.desc(), Ride.id.desc()).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching rides: {e}", exc_info=True)
            raise ServiceError("Could not fetch rides. Please try again later.")

    @staticmethod
    def request_ride(data):
        payload = load_or_raise(request_schema, data or {})
        requested_at = convert_display_to_utc(payload['at'] or get_clock().now())
        fare = calculate_fare(
            payload['vehicle_class'],
            payload['purpose'],
            requested_at,
            distance_km=payload['distance_km'],
            pickup=_point(payload['pickup']),
            destination=_point(payload['destination']),
        )
        try:
            ride = Ride(
                passenger_name=payload.get('passenger_name'),
                pickup_address=payload.get('pickup_address'),
                destination_address=payload.get('destination_address'),
                vehicle_class=fare.vehicle_class,
                purpose=fare.purpose,
                status=RideStatus.REQUESTED.value,
                requested_at=requested_at,
            )
            RideService._apply_fare(ride, fare)
            db.session.add(ride)
            db.session.commit()
            return ride
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error creating ride request: {e}", exc_info=True)
            raise PersistenceError("Could not create ride. Please try again later.")

    @staticmethod
    def _apply_fare(ride, fare):
        ride.distance_km = fare.distance_km
        ride.estimated_minutes = fare.estimated_minutes
        ride.base_fare = fare.base_fare
        ride.class_fare = fare.class_fare
        ride.night_surcharge = fare.night_surcharge
        ride.emergency_surcharge = fare.emergency_surcharge
        ride.total_fare = fare.total_fare

    @staticmethod
    def _require_transition(ride, new_status):
        if not ride.can_transition_to(new_status):
            raise InvalidTransition(f"Ride {ride.id} is {ride.status} and cannot become {new_status}")

    @staticmethod
    def _vehicle_for(driver):
        """The vehicle a driver would use: the assigned one, or an owner's own."""
        if driver.is_fleet:
            if driver.assigned_vehicle_id is None:
                raise VehicleNotAssigned(f"Fleet driver {driver.id} has no assigned vehicle")
            return driver.assigned_vehicle_id
        vehicle = Vehicle.query.filter_by(
            owner_driver_id=driver.id, ownership=VehicleOwnership.DRIVER_OWNED.value).first()
        return vehicle.id if vehicle else None

    @staticmethod
    def _refresh_rates(driver):
        """
        Recompute acceptance and completion rates from ride outcomes.

        Acceptance is accepted offers over accepted plus declined ones.
        Completion is completed rides over completed plus rides the driver
        cancelled after accepting. Both read 100 until there is an outcome.
        """
        accepted = Ride.query.filter(Ride.driver_id == driver.id, Ride.accepted_at.isnot(None)).count()
        declined = RideDecline.query.filter_by(driver_id=driver.id).count()
        completed = Ride.query.filter_by(driver_id=driver.id, status=RideStatus.COMPLETED.value).count()
        abandoned = Ride.query.filter_by(
            driver_id=driver.id, status=RideStatus.CANCELLED.value, cancelled_by=CancelledBy.DRIVER.value).count()
        driver.acceptance_rate = _percentage(accepted, accepted + declined)
        driver.completion_rate = _percentage(completed, completed + abandoned)

    @staticmethod
    def accept_ride(ride_id, driver_id):
        ride = RideService.get(ride_id)
        RideService._require_transition(ride, RideStatus.ACCEPTED.value)

        driver = DriverService.require(driver_id)
        if driver.status != DriverStatus.ACTIVE.value:
            raise DriverNotEligible(f"Driver {driver_id} is {driver.status} and cannot accept rides")
        if not driver.is_online:
            raise DriverNotEligible(f"Driver {driver_id} is offline and cannot accept rides")
        vehicle_id = RideService._vehicle_for(driver)

        try:
            ride.driver_id = driver.id
            ride.vehicle_id = vehicle_id
            ride.status = RideStatus.ACCEPTED.value
            ride.accepted_at = get_clock().now()
            db.session.flush()
            RideService._refresh_rates(driver)
            db.session.commit()
            return ride
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error accepting ride {ride_id}: {e}", exc_info=True)
            raise PersistenceError("Could not accept ride. Please try again later.")

    @staticmethod
    def decline_ride(ride_id, driver_id, timed_out=False):
        """
        Record a driver turning down an open ride.

        The ride stays open for other drivers. An offer left to time out
        also costs the driver a no-response penalty. Declining the same
        ride twice records nothing new.
        """
        ride = RideService.get(ride_id)
        if ride.status != RideStatus.REQUESTED.value:
            raise InvalidTransition(f"Ride {ride.id} is {ride.status} and can no longer be declined")
        driver = DriverService.require(driver_id)
        if RideDecline.query.filter_by(ride_id=ride.id, driver_id=driver.id).first():
            return ride

        try:
            db.session.add(RideDecline(
                ride_id=ride.id,
                driver_id=driver.id,
                timed_out=bool(timed_out),
                declined_at=get_clock().now(),
            ))
            if timed_out:
                PenaltyService.record(driver.id, ride.id, PenaltyType.NO_RESPONSE,
                                      "No response to ride request")
            db.session.flush()
            RideService._refresh_rates(driver)
            db.session.commit()
            return ride
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error declining ride {ride_id} for driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError("Could not decline ride. Please try again later.")

    @staticmethod
    def start_ride(ride_id):
        ride = RideService.get(ride_id)
        RideService._require_transition(ride, RideStatus.EN_ROUTE.value)
        try:
            ride.status = RideStatus.EN_ROUTE.value
            ride.started_at = get_clock().now()
            db.session.commit()
            return ride
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error starting ride {ride_id}: {e}", exc_info=True)
            raise PersistenceError("Could not start ride. Please try again later.")

    @staticmethod
    def cancel_ride(ride_id, cancelled_by=CancelledBy.PASSENGER.value, reason=None):
        """
        Cancel an open or in-progress ride.

        A driver dropping a ride they accepted is charged a penalty, higher
        for emergency rides, and the cancellation counts against their
        completion rate.
        """
        try:
            cancelled_by = CancelledBy(cancelled_by).value
        except ValueError:
            raise ValidationError(
                f"cancelled_by must be one of {', '.join(c.value for c in CancelledBy)}", field='cancelled_by')

        ride = RideService.get(ride_id)
        RideService._require_transition(ride, RideStatus.CANCELLED.value)
        by_driver = cancelled_by == CancelledBy.DRIVER.value
        if by_driver and (ride.driver_id is None or ride.status not in DRIVER_HELD_STATUSES):
            raise NotEligible(f"Ride {ride.id} has no driver to cancel it")

        try:
            ride.status = RideStatus.CANCELLED.value
            ride.cancelled_at = get_clock().now()
            ride.cancelled_by = cancelled_by
            ride.cancellation_reason = reason
            if by_driver:
                penalty_type = (PenaltyType.EMERGENCY_CANCEL if ride.purpose == RidePurpose.EMERGENCY.value
                                else PenaltyType.GENERAL_CANCEL)
                PenaltyService.record(ride.driver_id, ride.id, penalty_type, reason or "Driver cancelled")
                db.session.flush()
                RideService._refresh_rates(DriverService.require(ride.driver_id))
            db.session.commit()
            logging.info(f"Ride {ride.id} cancelled by {cancelled_by}")
            return ride
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error cancelling ride {ride_id}: {e}", exc_info=True)
            raise PersistenceError("Could not cancel ride. Please try again later.")

    @staticmethod
    def complete_ride(ride_id, distance_km=None, rating=None):
        """
        Close an en-route ride and pay the driver.

        When the actual distance is given the fare is re-quoted for it at the
        original request time; otherwise the quoted fare stands. A fleet
        driver must still hold a vehicle for the payout to be made.
        """
        ride = Ride.query.filter_by(id=ride_id).with_for_update().first()
        if not ride:
            raise NotFound(f"Ride {ride_id} not found")
        RideService._require_transition(ride, RideStatus.COMPLETED.value)
        rating = _parse_rating(rating)

        driver = DriverService.require(ride.driver_id, for_update=True)
        if driver.is_fleet and driver.assigned_vehicle_id is None:
            raise VehicleNotAssigned(f"Fleet driver {driver.id} has no assigned vehicle; payout withheld")

        fare = None
        if distance_km is not None:
            fare = calculate_fare(ride.vehicle_class, ride.purpose, ensure_utc(ride.requested_at),
                                  distance_km=distance_km)
        distance = fare.distance_km if fare else Decimal(ride.distance_km)
        total_fare = fare.total_fare if fare else Decimal(ride.total_fare)
        split = split_fare(total_fare, distance, driver.compensation_model)

        try:
            if fare:
                RideService._apply_fare(ride, fare)
            ride.driver_payout = split.driver_payout
            ride.platform_share = split.platform_share
            ride.compensation_kind = split.compensation_kind
            ride.rating = rating
            ride.status = RideStatus.COMPLETED.value
            ride.completed_at = get_clock().now()

            driver.total_rides = (driver.total_rides or 0) + 1
            driver.total_earnings = Decimal(driver.total_earnings or 0) + split.driver_payout
            driver.total_km_driven = Decimal(driver.total_km_driven or 0) + distance
            db.session.flush()
            driver.average_rating = RideService._average_rating(driver.id)
            RideService._refresh_rates(driver)

            shift = driver.current_shift if driver.is_fleet else None
            if shift is not None:
                shift.completed_km = Decimal(shift.completed_km or 0) + distance

            db.session.commit()
            logging.info(f"Ride {ride.id} completed: fare {split.total_fare}, "
                         f"payout {split.driver_payout} to driver {driver.id}")
            return ride
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error completing ride {ride_id}: {e}", exc_info=True)
            raise PersistenceError("Could not complete ride. Please try again later.")

    @staticmethod
    def _average_rating(driver_id):
        """Mean of the ratings on the driver's completed rides; 0 when unrated."""
        average = db.session.query(func.avg(Ride.rating)).filter(
            Ride.driver_id == driver_id,
            Ride.status == RideStatus.COMPLETED.value,
            Ride.rating.isnot(None),
        ).scalar()
        if average is None:
            return Decimal("0")
        return Decimal(str(average)).quantize(RATING_QUANTUM, rounding=ROUND_HALF_UP)
