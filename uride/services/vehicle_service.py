import logging
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from uride.extensions import db
from uride.models.vehicle import Vehicle, VehicleOwnership, AssignmentStatus, ConditionStatus
from uride.schemas.vehicle_schema import VehicleCreateSchema, ConditionSchema
from uride.services.audit_service import AuditService
from uride.services.errors import (
    NotEligible,
    NotFound,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from uride.utils.clock import get_clock
from uride.utils.validation import load_or_raise

create_schema = VehicleCreateSchema()
condition_schema = ConditionSchema()


class VehicleService:
    @staticmethod
    def get_all(ownership=None):
        try:
            query = Vehicle.query.filter_by(is_active=True)
            if ownership:
                query = query.filter_by(ownership=ownership)
            return query.order_by(Vehicle.id).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching vehicles: {e}", exc_info=True)
            raise ServiceError("Could not fetch vehicles. Please try again later.")

    @staticmethod
    def get_by_id(vehicle_id):
        try:
            return Vehicle.query.filter_by(id=vehicle_id).first()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching vehicle: {e}", exc_info=True)
            raise ServiceError("Could not fetch vehicle. Please try again later.")

    @staticmethod
    def require(vehicle_id, for_update=False):
        query = Vehicle.query.filter_by(id=vehicle_id)
        if for_update:
            query = query.with_for_update()
        vehicle = query.first()
        if not vehicle:
            raise NotFound(f"Vehicle {vehicle_id} not found")
        return vehicle

    @staticmethod
    def get_assignable():
        """Company vehicles that are free and operational."""
        return Vehicle.query.filter_by(
            is_active=True,
            ownership=VehicleOwnership.COMPANY.value,
            assignment_status=AssignmentStatus.AVAILABLE.value,
            condition_status=ConditionStatus.OPERATIONAL.value,
        ).order_by(Vehicle.id).all()

    @staticmethod
    def create(data, actor=None):
        """Register a company vehicle; driver-owned ones come from owner signup."""
        payload = load_or_raise(create_schema, data)

        if Vehicle.query.filter_by(registration_number=payload['registration_number']).first():
            raise ValidationError("A vehicle with this registration number already exists",
                                  field='registration_number')
        try:
            vehicle = Vehicle(ownership=VehicleOwnership.COMPANY.value, **payload)
            db.session.add(vehicle)
            db.session.flush()
            AuditService.record(actor, 'create_vehicle', 'vehicle', vehicle.id, {
                'registration_number': vehicle.registration_number,
            })
            db.session.commit()
            return vehicle
        except ServiceError:
            db.session.rollback()
            raise
        except IntegrityError as e:
            db.session.rollback()
            logging.warning(f"Vehicle create rejected by a constraint: {e}")
            raise ValidationError("A vehicle with this registration number already exists",
                                  field='registration_number')
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error creating vehicle: {e}", exc_info=True)
            raise PersistenceError("Could not create vehicle. Please try again later.")

    @staticmethod
    def set_condition(vehicle_id, data, actor=None):
        """
        Flag maintenance or out-of-service independently of assignment.

        An assigned vehicle may go into maintenance; retiring it
        (out_of_service) requires unassigning it first.
        """
        payload = load_or_raise(condition_schema, data)

        vehicle = VehicleService.require(vehicle_id)
        new_condition = payload['condition_status']
        if (new_condition == ConditionStatus.OUT_OF_SERVICE.value
                and vehicle.assignment_status == AssignmentStatus.ASSIGNED.value):
            raise NotEligible(f"Vehicle {vehicle_id} is assigned; unassign it before taking it out of service")

        previous = vehicle.condition_status
        try:
            vehicle.condition_status = new_condition
            if previous == ConditionStatus.MAINTENANCE.value and new_condition == ConditionStatus.OPERATIONAL.value:
                vehicle.last_service = get_clock().now()
            AuditService.record(actor, 'set_vehicle_condition', 'vehicle', vehicle.id, {
                'from': previous,
                'to': new_condition,
                'notes': payload.get('notes'),
            })
            db.session.commit()
            return vehicle
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error updating vehicle condition: {e}", exc_info=True)
            raise PersistenceError("Could not update vehicle. Please try again later.")

    @staticmethod
    def compliance_report(only_flagged=True):
        """Near-expiry and service-due flags, derived at read time."""
        now = get_clock().now()
        report = []
        for vehicle in VehicleService.get_all():
            flags = vehicle.compliance(now)
            if only_flagged and not any(flags.values()):
                continue
            report.append({
                'vehicle_id': vehicle.id,
                'registration_number': vehicle.registration_number,
                **flags,
            })
        return report
