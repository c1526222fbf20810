import logging
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from uride.extensions import db
from uride.models.commission_settings import CommissionSettings
from uride.models.compensation import (
    CompensationKind,
    DEFAULT_COMMISSION_RATE,
    DEFAULT_SALARY_PER_KM,
    build_compensation_model,
)
from uride.schemas.settings_schema import CommissionSettingsUpdateSchema
from uride.services.audit_service import AuditService, SYSTEM_ACTOR
from uride.services.errors import PersistenceError, ServiceError
from uride.utils.clock import get_clock
from uride.utils.validation import load_or_raise

update_schema = CommissionSettingsUpdateSchema()

DEFAULT_BONUS_THRESHOLDS = (
    {'rides': 50, 'bonus': 500},
    {'rides': 100, 'bonus': 1200},
    {'rides': 200, 'bonus': 2500},
)


class CommissionSettingsService:
    @staticmethod
    def get_current():
        try:
            return CommissionSettings.query.order_by(CommissionSettings.id).first()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching commission settings: {e}", exc_info=True)
            raise ServiceError("Could not fetch commission settings. Please try again later.")

    @staticmethod
    def effective():
        """The settings in force: the stored row, or the built-in defaults before any update."""
        settings = CommissionSettingsService.get_current()
        if settings is None:
            return {
                'owner_commission_rate': DEFAULT_COMMISSION_RATE,
                'fleet_salary_per_km': DEFAULT_SALARY_PER_KM,
                'bonus_thresholds': [dict(t) for t in DEFAULT_BONUS_THRESHOLDS],
                'updated_at': None,
                'updated_by': None,
            }
        return {
            'owner_commission_rate': Decimal(settings.owner_commission_rate),
            'fleet_salary_per_km': Decimal(settings.fleet_salary_per_km),
            'bonus_thresholds': list(settings.bonus_thresholds or []),
            'updated_at': settings.updated_at,
            'updated_by': settings.updated_by,
        }

    @staticmethod
    def update(data, actor=None):
        """
        Change the platform-wide defaults.

        Rates go through the same bound checks as a driver signup, so the
        stored defaults are always ones a signup could use.
        """
        payload = load_or_raise(update_schema, data or {})
        current = CommissionSettingsService.effective()

        owner = build_compensation_model(
            CompensationKind.OWNER.value,
            commission_rate=payload.get('owner_commission_rate', current['owner_commission_rate']))
        fleet = build_compensation_model(
            CompensationKind.FLEET.value,
            salary_per_km=payload.get('fleet_salary_per_km', current['fleet_salary_per_km']))
        thresholds = sorted(payload.get('bonus_thresholds', current['bonus_thresholds']),
                            key=lambda t: t['rides'])

        try:
            settings = CommissionSettingsService.get_current()
            if settings is None:
                settings = CommissionSettings()
                db.session.add(settings)
            settings.owner_commission_rate = owner.commission_rate
            settings.fleet_salary_per_km = fleet.salary_per_km
            settings.bonus_thresholds = [dict(t) for t in thresholds]
            settings.updated_at = get_clock().now()
            settings.updated_by = str((actor or SYSTEM_ACTOR)[0])
            db.session.flush()
            AuditService.record(actor, 'update_commission_settings', 'settings', settings.id, {
                'owner_commission_rate': str(owner.commission_rate),
                'fleet_salary_per_km': str(fleet.salary_per_km),
                'bonus_thresholds': settings.bonus_thresholds,
            })
            db.session.commit()
            logging.info(f"Commission settings updated: owner {owner.commission_rate}, "
                         f"fleet {fleet.salary_per_km}/km")
            return CommissionSettingsService.effective()
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error updating commission settings: {e}", exc_info=True)
            raise PersistenceError("Could not update commission settings. Please try again later.")
