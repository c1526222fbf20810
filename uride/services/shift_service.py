import logging
from decimal import Decimal, InvalidOperation
from sqlalchemy.exc import SQLAlchemyError

from uride.extensions import db
from uride.models.shift import Shift, DEFAULT_TARGET_KM, MIN_TARGET_KM, MAX_TARGET_KM
from uride.services.driver_service import DriverService
from uride.services.errors import (
    NoActiveShift,
    NotFleetDriver,
    PersistenceError,
    ServiceError,
    ShiftAlreadyActive,
    ValidationError,
)
from uride.utils.clock import get_clock
from uride.utils.timezone_utils import ensure_utc


def _as_decimal(value, field):
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not number.is_finite():
        raise ValidationError(f"{field} must be a number", field=field)
    return number


class ShiftService:
    """Distance targets for fleet drivers; owners do not work shifts."""

    @staticmethod
    def start_shift(driver_id, target_km=None):
        target = DEFAULT_TARGET_KM if target_km is None else _as_decimal(target_km, 'target_km')
        if not (MIN_TARGET_KM <= target <= MAX_TARGET_KM):
            raise ValidationError(
                f"target_km must be between {MIN_TARGET_KM} and {MAX_TARGET_KM}", field='target_km')

        driver = DriverService.require(driver_id)
        if not driver.is_fleet:
            raise NotFleetDriver(f"Driver {driver_id} is an owner driver and does not work shifts")
        if driver.current_shift is not None:
            raise ShiftAlreadyActive(f"Driver {driver_id} already has an active shift")

        try:
            shift = Shift(
                start_time=get_clock().now(),
                target_km=target,
                completed_km=Decimal("0"),
                is_active=True,
            )
            driver.shifts.append(shift)
            db.session.commit()
            logging.info(f"Shift {shift.id} started for driver {driver_id} (target {target} km)")
            return shift
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error starting shift for driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError("Could not start shift. Please try again later.")

    @staticmethod
    def record_distance(driver_id, km):
        distance = _as_decimal(km, 'km')
        if distance <= 0:
            raise ValidationError("km must be greater than zero", field='km')

        driver = DriverService.require(driver_id)
        shift = driver.current_shift
        if shift is None:
            raise NoActiveShift(f"Driver {driver_id} has no active shift")

        try:
            shift.completed_km = Decimal(shift.completed_km or 0) + distance
            db.session.commit()
            return shift
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error recording distance for driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError("Could not record distance. Please try again later.")

    @staticmethod
    def end_shift(driver_id):
        """Close the active shift and credit its duration to the driver's online hours."""
        driver = DriverService.require(driver_id)
        shift = driver.current_shift
        if shift is None:
            raise NoActiveShift(f"Driver {driver_id} has no active shift")

        now = get_clock().now()
        elapsed = max((now - ensure_utc(shift.start_time)).total_seconds(), 0)
        try:
            shift.end_time = now
            shift.is_active = False
            driver.online_hours = (driver.online_hours or 0.0) + elapsed / 3600.0
            db.session.commit()
            logging.info(f"Shift {shift.id} ended for driver {driver_id} "
                         f"({shift.completed_km}/{shift.target_km} km)")
            return shift
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error ending shift for driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError("Could not end shift. Please try again later.")

    @staticmethod
    def shift_history(driver_id):
        DriverService.require(driver_id)
        try:
            return (Shift.query.filter_by(driver_id=driver_id)
                    .order_by(Shift.start_time.desc(), Shift.id.desc()).all())
        except SQLAlchemyError as e:
            logging.error(f"Error fetching shifts for driver {driver_id}: {e}", exc_info=True)
            raise ServiceError("Could not fetch shifts. Please try again later.")
