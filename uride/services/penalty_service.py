import logging
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from uride.extensions import db
from uride.models.penalty import DriverPenalty, PenaltyType, PENALTY_AMOUNTS
from uride.services.errors import ServiceError
from uride.utils.clock import get_clock


class PenaltyService:
    @staticmethod
    def record(driver_id, ride_id, penalty_type, reason=None):
        """Stage a penalty in the current session; the caller commits it with the ride change."""
        penalty_type = PenaltyType(penalty_type)
        penalty = DriverPenalty(
            driver_id=driver_id,
            ride_id=ride_id,
            penalty_type=penalty_type.value,
            amount=PENALTY_AMOUNTS[penalty_type],
            reason=reason,
            created_at=get_clock().now(),
        )
        db.session.add(penalty)
        logging.info(f"Penalty {penalty_type.value} of {penalty.amount} staged for driver {driver_id} (ride {ride_id})")
        return penalty

    @staticmethod
    def list_for_driver(driver_id):
        try:
            return DriverPenalty.query.filter_by(driver_id=driver_id).order_by(
                DriverPenalty.created_at.desc(), DriverPenalty.id.desc()).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching penalties for driver {driver_id}: {e}", exc_info=True)
            raise ServiceError("Could not fetch penalties. Please try again later.")

    @staticmethod
    def total_for_driver(driver_id):
        try:
            total = db.session.query(func.sum(DriverPenalty.amount)).filter(
                DriverPenalty.driver_id == driver_id).scalar()
            return Decimal(str(total)) if total is not None else Decimal("0")
        except SQLAlchemyError as e:
            logging.error(f"Error totalling penalties for driver {driver_id}: {e}", exc_info=True)
            raise ServiceError("Could not fetch penalties. Please try again later.")
