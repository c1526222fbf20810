import logging
from sqlalchemy.exc import SQLAlchemyError

from uride.extensions import db
from uride.models.driver import Driver, DriverStatus
from uride.models.vehicle import Vehicle, AssignmentStatus, ConditionStatus, VehicleOwnership
from uride.services.audit_service import AuditService
from uride.services.driver_service import DriverService
from uride.services.errors import (
    ConsistencyViolation,
    DriverNotEligible,
    PersistenceError,
    ServiceError,
    VehicleNotAssigned,
    VehicleUnavailable,
)
from uride.services.vehicle_service import VehicleService
from uride.utils.clock import get_clock


class AssignmentService:
    """
    Company vehicles handed to fleet drivers.

    The vehicle row and the driver row always move together: both sides and
    the audit record are flushed in one commit, or none of them are.
    """

    @staticmethod
    def _check_driver_eligible(driver):
        if not driver.is_fleet:
            raise DriverNotEligible(f"Driver {driver.id} is an owner driver; only fleet drivers get vehicles")
        if driver.status != DriverStatus.ACTIVE.value:
            raise DriverNotEligible(f"Driver {driver.id} is {driver.status}; only active drivers get vehicles")
        if driver.assigned_vehicle_id is not None:
            raise DriverNotEligible(f"Driver {driver.id} already holds vehicle {driver.assigned_vehicle_id}")

    @staticmethod
    def _stage_assign(vehicle, driver, actor):
        vehicle.assignment_status = AssignmentStatus.ASSIGNED.value
        vehicle.assigned_driver_id = driver.id
        vehicle.assigned_at = get_clock().now()
        driver.assigned_vehicle_id = vehicle.id
        AuditService.record(actor, 'assign_vehicle', 'vehicle', vehicle.id, {
            'driver_id': driver.id,
            'registration_number': vehicle.registration_number,
        })

    @staticmethod
    def _stage_unassign(vehicle, driver, actor):
        driver_id = vehicle.assigned_driver_id
        vehicle.assignment_status = AssignmentStatus.AVAILABLE.value
        vehicle.assigned_driver_id = None
        vehicle.assigned_at = None
        if driver is not None and driver.assigned_vehicle_id == vehicle.id:
            driver.assigned_vehicle_id = None
        AuditService.record(actor, 'unassign_vehicle', 'vehicle', vehicle.id, {
            'driver_id': driver_id,
        })

    @staticmethod
    def _holder(vehicle):
        return Driver.query.filter_by(id=vehicle.assigned_driver_id).with_for_update().first()

    @staticmethod
    def assign(vehicle_id, driver_id, actor=None):
        vehicle = VehicleService.require(vehicle_id, for_update=True)
        driver = DriverService.require(driver_id, for_update=True)

        if not vehicle.is_assignable:
            raise VehicleUnavailable(
                f"Vehicle {vehicle_id} cannot be assigned ({vehicle.ownership}, {vehicle.status})")
        AssignmentService._check_driver_eligible(driver)

        try:
            AssignmentService._stage_assign(vehicle, driver, actor)
            db.session.commit()
            logging.info(f"Vehicle {vehicle.id} assigned to driver {driver.id}")
            return vehicle
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error assigning vehicle {vehicle_id} to driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError("Could not assign vehicle. Please try again later.")

    @staticmethod
    def unassign(vehicle_id, actor=None):
        """Free the vehicle; a maintenance flag stays where it was."""
        vehicle = VehicleService.require(vehicle_id, for_update=True)
        if vehicle.assignment_status != AssignmentStatus.ASSIGNED.value:
            raise VehicleNotAssigned(f"Vehicle {vehicle_id} is not assigned")

        driver = AssignmentService._holder(vehicle)
        driver_id = vehicle.assigned_driver_id
        try:
            AssignmentService._stage_unassign(vehicle, driver, actor)
            db.session.commit()
            logging.info(f"Vehicle {vehicle.id} unassigned from driver {driver_id}")
            return vehicle
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error unassigning vehicle {vehicle_id}: {e}", exc_info=True)
            raise PersistenceError("Could not unassign vehicle. Please try again later.")

    @staticmethod
    def reassign(vehicle_id, driver_id, actor=None):
        """
        Move a vehicle to another driver.

        The vehicle and the new driver are checked first. Releasing the
        current holder and handing over to the new driver are committed
        together, so a failed move leaves the current assignment in place.
        """
        vehicle = VehicleService.require(vehicle_id, for_update=True)
        if vehicle.ownership != VehicleOwnership.COMPANY.value or vehicle.condition_status != ConditionStatus.OPERATIONAL.value:
            raise VehicleUnavailable(f"Vehicle {vehicle_id} cannot be reassigned ({vehicle.ownership}, {vehicle.status})")
        driver = DriverService.require(driver_id, for_update=True)
        AssignmentService._check_driver_eligible(driver)

        previous = AssignmentService._holder(vehicle) if vehicle.assignment_status == AssignmentStatus.ASSIGNED.value else None
        try:
            if vehicle.assignment_status == AssignmentStatus.ASSIGNED.value:
                AssignmentService._stage_unassign(vehicle, previous, actor)
                # the unique driver -> vehicle link must be released before it is taken
                db.session.flush()
            AssignmentService._stage_assign(vehicle, driver, actor)
            db.session.commit()
            logging.info(f"Vehicle {vehicle.id} reassigned from driver "
                         f"{previous.id if previous else None} to driver {driver.id}")
            return vehicle
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error reassigning vehicle {vehicle_id} to driver {driver_id}: {e}", exc_info=True)
            raise PersistenceError("Could not reassign vehicle. Please try again later.")

    @staticmethod
    def verify_consistency():
        """Raise ConsistencyViolation if the two sides of any assignment disagree."""
        vehicles = Vehicle.query.all()
        drivers = {d.id: d for d in Driver.query.all()}

        holders = {}
        for vehicle in vehicles:
            if vehicle.assigned_driver_id is None:
                continue
            if vehicle.assigned_driver_id in holders:
                raise ConsistencyViolation(
                    f"Driver {vehicle.assigned_driver_id} holds vehicles "
                    f"{holders[vehicle.assigned_driver_id]} and {vehicle.id}")
            holders[vehicle.assigned_driver_id] = vehicle.id
            driver = drivers.get(vehicle.assigned_driver_id)
            if driver is None or driver.assigned_vehicle_id != vehicle.id:
                raise ConsistencyViolation(
                    f"Vehicle {vehicle.id} points at driver {vehicle.assigned_driver_id}, "
                    f"which does not point back")

        for driver in drivers.values():
            if driver.assigned_vehicle_id is not None and holders.get(driver.id) != driver.assigned_vehicle_id:
                raise ConsistencyViolation(
                    f"Driver {driver.id} points at vehicle {driver.assigned_vehicle_id}, "
                    f"which does not point back")
        return True
