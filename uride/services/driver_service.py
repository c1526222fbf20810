import logging
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from uride.extensions import db
from uride.models.compensation import build_compensation_model
from uride.models.driver import Driver, DriverStatus
from uride.models.vehicle import Vehicle, VehicleOwnership
from uride.schemas.driver_schema import DriverSignupSchema, DriverUpdateSchema
from uride.services.audit_service import AuditService
from uride.services.commission_settings_service import CommissionSettingsService
from uride.services.errors import (
    NotEligible,
    NotFound,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from uride.utils.validation import load_or_raise

signup_schema = DriverSignupSchema()
update_schema = DriverUpdateSchema()

IMMUTABLE_FIELDS = ('compensation_kind', 'commission_rate', 'salary_per_km', 'compensation_model')


class DriverService:
    @staticmethod
    def get_all(status=None, compensation_kind=None):
        try:
            query = Driver.query
            if status:
                query = query.filter_by(status=status)
            if compensation_kind:
                query = query.filter_by(compensation_kind=compensation_kind)
            return query.order_by(Driver.id).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching drivers: {e}", exc_info=True)
            raise ServiceError("Could not fetch drivers. Please try again later.")

    @staticmethod
    def get_by_id(driver_id):
        try:
            return Driver.query.filter_by(id=driver_id).first()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching driver: {e}", exc_info=True)
            raise ServiceError("Could not fetch driver. Please try again later.")

    @staticmethod
    def require(driver_id, for_update=False):
        query = Driver.query.filter_by(id=driver_id)
        if for_update:
            query = query.with_for_update()
        driver = query.first()
        if not driver:
            raise NotFound(f"Driver {driver_id} not found")
        return driver

    @staticmethod
    def _check_unique(email, phone, license_number, registration_number=None):
        # Rejected (inactive) applications keep their identifiers reserved
        for column, value, label in (
            (Driver.email, email, 'email'),
            (Driver.phone, phone, 'phone'),
            (Driver.license_number, license_number, 'license_number'),
        ):
            if Driver.query.filter(column == value).first():
                raise ValidationError(f"A driver with this {label} already exists", field=label)
        if registration_number and Vehicle.query.filter_by(registration_number=registration_number).first():
            raise ValidationError("A vehicle with this registration number already exists",
                                  field='vehicle.registration_number')

    @staticmethod
    def create(data, actor=None):
        """
        Store a driver application as `pending`.

        Owners may register their own vehicle; it is created as driver_owned
        and bound to them, outside the assignable pool.
        """
        payload = load_or_raise(signup_schema, data)

        defaults = CommissionSettingsService.effective()
        model = build_compensation_model(
            payload['compensation_kind'],
            commission_rate=payload.get('commission_rate'),
            salary_per_km=payload.get('salary_per_km'),
            default_commission_rate=defaults['owner_commission_rate'],
            default_salary_per_km=defaults['fleet_salary_per_km'],
        )
        vehicle_data = payload.get('vehicle')
        DriverService._check_unique(
            payload['email'], payload['phone'], payload['license_number'],
            vehicle_data['registration_number'] if vehicle_data else None,
        )

        driver = Driver(
            name=payload['name'],
            email=payload['email'],
            phone=payload['phone'],
            license_number=payload['license_number'],
            address=payload.get('address'),
            has_clean_record=payload.get('has_clean_record', True),
            compensation_kind=model.kind.value,
            commission_rate=getattr(model, 'commission_rate', None),
            salary_per_km=getattr(model, 'salary_per_km', None),
            status=DriverStatus.PENDING.value,
        )
        if vehicle_data:
            driver.vehicle_number = vehicle_data['registration_number']
            driver.vehicle_model = f"{vehicle_data['make']} {vehicle_data['model']}"

        try:
            db.session.add(driver)
            db.session.flush()
            if vehicle_data:
                db.session.add(Vehicle(
                    registration_number=vehicle_data['registration_number'],
                    make=vehicle_data['make'],
                    model=vehicle_data['model'],
                    year=vehicle_data.get('year'),
                    color=vehicle_data.get('color'),
                    ownership=VehicleOwnership.DRIVER_OWNED.value,
                    owner_driver_id=driver.id,
                ))
            AuditService.record(actor, 'create_driver', 'driver', driver.id, {
                'compensation_kind': driver.compensation_kind,
                'email': driver.email,
            })
            db.session.commit()
            logging.info(f"Driver application {driver.id} created ({driver.compensation_kind})")
            return driver
        except ServiceError:
            db.session.rollback()
            raise
        except IntegrityError as e:
            db.session.rollback()
            logging.warning(f"Driver signup rejected by a unique constraint: {e}")
            raise ValidationError("A driver with these details already exists")
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error creating driver: {e}", exc_info=True)
            raise PersistenceError("Could not create driver. Please try again later.")

    @staticmethod
    def update(driver_id, data, actor=None):
        touched = [field for field in IMMUTABLE_FIELDS if field in (data or {})]
        if touched:
            raise ValidationError(
                "The compensation model cannot change after signup; the driver must re-onboard",
                field=touched[0])
        payload = load_or_raise(update_schema, data or {})

        driver = DriverService.require(driver_id)
        try:
            for key, value in payload.items():
                setattr(driver, key, value)
            AuditService.record(actor, 'update_driver', 'driver', driver.id, dict(payload))
            db.session.commit()
            return driver
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error updating driver: {e}", exc_info=True)
            raise PersistenceError("Could not update driver. Please try again later.")

    @staticmethod
    def set_online(driver_id, is_online):
        """Going online is only legal for active drivers; going offline always is."""
        driver = DriverService.require(driver_id)
        if is_online and driver.status != DriverStatus.ACTIVE.value:
            raise NotEligible(f"Driver {driver_id} is {driver.status} and cannot go online")
        try:
            driver.is_online = bool(is_online)
            db.session.commit()
            return driver
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error updating online status for driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError("Could not update online status. Please try again later.")
