from datetime import timedelta
from enum import Enum
from sqlalchemy import true

from uride.extensions import db
from uride.utils.timezone_utils import ensure_utc


class VehicleOwnership(Enum):
    COMPANY = "company"
    DRIVER_OWNED = "driver_owned"


class AssignmentStatus(Enum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"


class ConditionStatus(Enum):
    OPERATIONAL = "operational"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


class FuelType(Enum):
    PETROL = "petrol"
    DIESEL = "diesel"
    CNG = "cng"
    ELECTRIC = "electric"


# Days ahead at which a document counts as near expiry
INSURANCE_WARNING_DAYS = 30
POLLUTION_WARNING_DAYS = 30
REGISTRATION_WARNING_DAYS = 60


class Vehicle(db.Model):
    __tablename__ = 'vehicle'
    id = db.Column(db.Integer, primary_key=True)
    registration_number = db.Column(db.String(16), nullable=False, unique=True)
    make = db.Column(db.String(50), nullable=False)
    model = db.Column(db.String(50), nullable=False)
    year = db.Column(db.Integer, nullable=True)
    color = db.Column(db.String(30), nullable=True)
    fuel_type = db.Column(db.String(16), nullable=False, default=FuelType.PETROL.value)
    mileage = db.Column(db.Integer, nullable=False, default=0)

    ownership = db.Column(db.String(16), nullable=False, default=VehicleOwnership.COMPANY.value, index=True)
    owner_driver_id = db.Column(db.Integer, nullable=True, index=True)

    # Assignment and physical condition are independent axes
    assignment_status = db.Column(db.String(16), nullable=False,
                                  default=AssignmentStatus.AVAILABLE.value, index=True)
    condition_status = db.Column(db.String(16), nullable=False,
                                 default=ConditionStatus.OPERATIONAL.value, index=True)
    assigned_driver_id = db.Column(db.Integer, nullable=True, unique=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    last_service = db.Column(db.DateTime(timezone=True), nullable=True)
    next_service = db.Column(db.DateTime(timezone=True), nullable=True)
    insurance_expiry = db.Column(db.DateTime(timezone=True), nullable=True)
    registration_expiry = db.Column(db.DateTime(timezone=True), nullable=True)
    pollution_expiry = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())
    updated_at = db.Column(db.DateTime, default=db.func.current_timestamp(), onupdate=db.func.current_timestamp())

    __table_args__ = (
        db.CheckConstraint(
            "(assignment_status = 'assigned' AND assigned_driver_id IS NOT NULL) OR "
            "(assignment_status = 'available' AND assigned_driver_id IS NULL)",
            name='check_vehicle_assignment_pair'
        ),
        db.CheckConstraint(
            "ownership = 'company' OR assignment_status = 'available'",
            name='check_driver_owned_not_assigned'
        ),
    )

    @property
    def status(self):
        """Combined status: a non-operational condition wins over assignment."""
        if self.condition_status != ConditionStatus.OPERATIONAL.value:
            return self.condition_status
        return self.assignment_status

    @property
    def is_assignable(self):
        return (
            self.is_active
            and self.ownership == VehicleOwnership.COMPANY.value
            and self.assignment_status == AssignmentStatus.AVAILABLE.value
            and self.condition_status == ConditionStatus.OPERATIONAL.value
        )

    def compliance(self, now):
        """Derived document/service flags; never persisted."""
        def within(expiry, days):
            if expiry is None:
                return False
            return ensure_utc(expiry) <= now + timedelta(days=days)

        return {
            'insurance_near_expiry': within(self.insurance_expiry, INSURANCE_WARNING_DAYS),
            'pollution_near_expiry': within(self.pollution_expiry, POLLUTION_WARNING_DAYS),
            'registration_near_expiry': within(self.registration_expiry, REGISTRATION_WARNING_DAYS),
            'service_due': self.next_service is not None and ensure_utc(self.next_service) <= now,
        }

    def __repr__(self):
        return f'<Vehicle {self.id}: {self.registration_number} ({self.ownership}, {self.status})>'
