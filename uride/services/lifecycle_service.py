import logging
from sqlalchemy.exc import SQLAlchemyError

from uride.extensions import db
from uride.models.driver import DriverStatus
from uride.services.audit_service import AuditService
from uride.services.driver_service import DriverService
from uride.services.errors import InvalidTransition, PersistenceError, ServiceError
from uride.utils.clock import get_clock


class DriverLifecycleService:
    @staticmethod
    def _transition(driver_id, from_status, new_status, action, actor, details=None, apply=None):
        driver = DriverService.require(driver_id)
        # approve and reactivate share a target, so the source status is checked too
        if driver.status != from_status or not driver.can_transition_to(new_status):
            raise InvalidTransition(f"Cannot {action} driver {driver_id}: status is {driver.status}")

        previous = driver.status
        try:
            driver.status = new_status
            if apply:
                apply(driver)
            AuditService.record(actor, action, 'driver', driver.id, {
                'from': previous,
                'to': new_status,
                **(details or {}),
            })
            db.session.commit()
            logging.info(f"Driver {driver.id}: {previous} -> {new_status} ({action})")
            return driver
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error applying {action} to driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError(f"Could not {action} driver. Please try again later.")

    @staticmethod
    def approve(driver_id, actor=None):
        def apply(driver):
            driver.documents_verified = True
            driver.approved_at = get_clock().now()
            driver.rejection_reason = None

        return DriverLifecycleService._transition(
            driver_id, DriverStatus.PENDING.value, DriverStatus.ACTIVE.value, 'approve', actor, apply=apply)

    @staticmethod
    def reject(driver_id, reason=None, actor=None):
        """The reason is kept for the audit trail as given."""
        def apply(driver):
            driver.rejection_reason = reason

        return DriverLifecycleService._transition(
            driver_id, DriverStatus.PENDING.value, DriverStatus.INACTIVE.value, 'reject', actor, {'reason': reason}, apply)

    @staticmethod
    def suspend(driver_id, reason=None, actor=None):
        """Suspension takes the driver offline immediately."""
        def apply(driver):
            driver.suspension_reason = reason
            driver.is_online = False

        return DriverLifecycleService._transition(
            driver_id, DriverStatus.ACTIVE.value, DriverStatus.SUSPENDED.value, 'suspend', actor, {'reason': reason}, apply)

    @staticmethod
    def reactivate(driver_id, actor=None):
        def apply(driver):
            driver.suspension_reason = None

        return DriverLifecycleService._transition(
            driver_id, DriverStatus.SUSPENDED.value, DriverStatus.ACTIVE.value, 'reactivate', actor, apply=apply)
