from enum import Enum
from sqlalchemy import false, true

from uride.extensions import db
from uride.models.compensation import (
    CompensationKind,
    FleetCompensation,
    OwnerCompensation,
)


class DriverStatus(Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class Driver(db.Model):
    __tablename__ = 'driver'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(128), nullable=False, unique=True)
    phone = db.Column(db.String(16), nullable=False, unique=True)
    license_number = db.Column(db.String(32), nullable=False, unique=True)
    address = db.Column(db.String(500), nullable=True)

    # Exactly one of commission_rate / salary_per_km is set, matching the kind
    compensation_kind = db.Column(db.String(16), nullable=False, index=True)
    commission_rate = db.Column(db.Numeric(5, 4), nullable=True)
    salary_per_km = db.Column(db.Numeric(8, 2), nullable=True)

    status = db.Column(db.String(32), nullable=False, default=DriverStatus.PENDING.value, index=True)
    documents_verified = db.Column(db.Boolean, nullable=False, default=False, server_default=false())
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    suspension_reason = db.Column(db.Text, nullable=True)
    is_online = db.Column(db.Boolean, nullable=False, default=False, server_default=false())

    # Owners drive their own vehicle, recorded here rather than via assignment
    vehicle_number = db.Column(db.String(16), nullable=True)
    vehicle_model = db.Column(db.String(100), nullable=True)
    assigned_vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicle.id', ondelete='SET NULL'),
                                    nullable=True, unique=True)

    # Cumulative stats, money in rupees with paise precision
    total_rides = db.Column(db.Integer, nullable=False, default=0)
    total_earnings = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_km_driven = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    average_rating = db.Column(db.Numeric(3, 2), nullable=False, default=0)
    online_hours = db.Column(db.Float, nullable=False, default=0.0)
    acceptance_rate = db.Column(db.Float, nullable=False, default=100.0)
    completion_rate = db.Column(db.Float, nullable=False, default=100.0)

    has_clean_record = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())
    updated_at = db.Column(db.DateTime, default=db.func.current_timestamp(), onupdate=db.func.current_timestamp())

    shifts = db.relationship('Shift', back_populates='driver', lazy='select',
                             order_by='Shift.start_time', cascade="all, delete-orphan")

    __table_args__ = (
        db.CheckConstraint(
            f"status IN ({', '.join([repr(s.value) for s in DriverStatus])})",
            name='check_driver_status'
        ),
        db.CheckConstraint(
            "(compensation_kind = 'owner' AND commission_rate IS NOT NULL AND salary_per_km IS NULL) OR "
            "(compensation_kind = 'fleet' AND salary_per_km IS NOT NULL AND commission_rate IS NULL)",
            name='check_driver_compensation_variant'
        ),
        db.CheckConstraint(
            "compensation_kind = 'fleet' OR assigned_vehicle_id IS NULL",
            name='check_owner_has_no_assigned_vehicle'
        ),
        db.CheckConstraint(
            "total_rides >= 0 AND total_earnings >= 0 AND total_km_driven >= 0 AND online_hours >= 0",
            name='check_driver_stats_non_negative'
        ),
    )

    @property
    def compensation_model(self):
        if self.compensation_kind == CompensationKind.OWNER.value:
            return OwnerCompensation(commission_rate=self.commission_rate)
        return FleetCompensation(salary_per_km=self.salary_per_km)

    @property
    def is_fleet(self):
        return self.compensation_kind == CompensationKind.FLEET.value

    @property
    def current_shift(self):
        """The driver's active shift, or None."""
        for shift in self.shifts:
            if shift.is_active:
                return shift
        return None

    def can_transition_to(self, new_status):
        """
        Business rules for the approval lifecycle:
        - PENDING -> ACTIVE (approve) or INACTIVE (reject)
        - ACTIVE -> SUSPENDED
        - SUSPENDED -> ACTIVE (reactivate)
        - INACTIVE -> (terminating state)
        """
        allowed = {
            DriverStatus.PENDING.value: [DriverStatus.ACTIVE.value, DriverStatus.INACTIVE.value],
            DriverStatus.ACTIVE.value: [DriverStatus.SUSPENDED.value],
            DriverStatus.SUSPENDED.value: [DriverStatus.ACTIVE.value],
        }
        return new_status in allowed.get(self.status, [])

    def __repr__(self):
        return f'<Driver {self.id}: {self.name} ({self.compensation_kind}, {self.status})>'
