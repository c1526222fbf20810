from enum import Enum
from sqlalchemy import event, inspect, select

from uride.extensions import db
from uride.services.errors import ConsistencyViolation


class RideStatus(Enum):
    REQUESTED = "requested"
    ACCEPTED = "accepted"
    EN_ROUTE = "en_route"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VehicleClass(Enum):
    ECONOMY = "economy"
    PREMIUM = "premium"
    SUV = "suv"
    LUXURY = "luxury"


class RidePurpose(Enum):
    GENERAL = "general"
    EMERGENCY = "emergency"


class CancelledBy(Enum):
    PASSENGER = "passenger"
    DRIVER = "driver"
    ADMIN = "admin"


# Columns that form the financial ledger entry of a completed ride
LEDGER_COLUMNS = (
    'driver_id', 'distance_km', 'base_fare', 'class_fare', 'night_surcharge',
    'emergency_surcharge', 'total_fare', 'driver_payout', 'platform_share',
    'completed_at', 'status',
)


class Ride(db.Model):
    __tablename__ = 'ride'
    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('driver.id', ondelete='SET NULL'), nullable=True, index=True)
    vehicle_id = db.Column(db.Integer, nullable=True)
    passenger_name = db.Column(db.String(128), nullable=True)
    pickup_address = db.Column(db.String(256), nullable=True)
    destination_address = db.Column(db.String(256), nullable=True)

    vehicle_class = db.Column(db.String(16), nullable=False, default=VehicleClass.ECONOMY.value)
    purpose = db.Column(db.String(16), nullable=False, default=RidePurpose.GENERAL.value)
    status = db.Column(db.String(16), nullable=False, default=RideStatus.REQUESTED.value, index=True)

    distance_km = db.Column(db.Numeric(10, 2), nullable=False)
    estimated_minutes = db.Column(db.Integer, nullable=True)

    # Fare components, quoted at request time and fixed at completion
    base_fare = db.Column(db.Numeric(12, 2), nullable=False)
    class_fare = db.Column(db.Numeric(12, 2), nullable=False)
    night_surcharge = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    emergency_surcharge = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_fare = db.Column(db.Numeric(12, 2), nullable=False)

    # Set once on completion
    driver_payout = db.Column(db.Numeric(12, 2), nullable=True)
    platform_share = db.Column(db.Numeric(12, 2), nullable=True)
    compensation_kind = db.Column(db.String(16), nullable=True)
    rating = db.Column(db.Integer, nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=False)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by = db.Column(db.String(16), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    driver = db.relationship('Driver', backref='rides', lazy='select')

    __table_args__ = (
        db.CheckConstraint(
            f"status IN ({', '.join([repr(s.value) for s in RideStatus])})",
            name='check_ride_status'
        ),
        db.CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name='check_ride_rating'),
        db.CheckConstraint("driver_payout IS NULL OR driver_payout >= 0", name='check_ride_payout'),
        db.CheckConstraint(
            f"cancelled_by IS NULL OR cancelled_by IN ({', '.join([repr(c.value) for c in CancelledBy])})",
            name='check_ride_cancelled_by'
        ),
    )

    def can_transition_to(self, new_status):
        """
        Business Rules:
        - REQUESTED -> ACCEPTED or CANCELLED
        - ACCEPTED -> EN_ROUTE or CANCELLED
        - EN_ROUTE -> COMPLETED or CANCELLED
        - COMPLETED, CANCELLED -> (terminating states)
        """
        allowed = {
            RideStatus.REQUESTED.value: [RideStatus.ACCEPTED.value, RideStatus.CANCELLED.value],
            RideStatus.ACCEPTED.value: [RideStatus.EN_ROUTE.value, RideStatus.CANCELLED.value],
            RideStatus.EN_ROUTE.value: [RideStatus.COMPLETED.value, RideStatus.CANCELLED.value],
        }
        return new_status in allowed.get(self.status, [])

    def __repr__(self):
        return f'<Ride {self.id}: driver {self.driver_id} {self.status}>'


class RideDecline(db.Model):
    """A driver turning down, or letting time out, a ride offer."""
    __tablename__ = 'ride_decline'
    id = db.Column(db.Integer, primary_key=True)
    ride_id = db.Column(db.Integer, db.ForeignKey('ride.id', ondelete='CASCADE'), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('driver.id', ondelete='CASCADE'), nullable=False, index=True)
    timed_out = db.Column(db.Boolean, nullable=False, default=False)
    declined_at = db.Column(db.DateTime(timezone=True), nullable=False)

    __table_args__ = (
        db.UniqueConstraint('ride_id', 'driver_id', name='uq_ride_decline_ride_driver'),
    )

    def __repr__(self):
        return f'<RideDecline ride {self.ride_id} driver {self.driver_id}>'


@event.listens_for(Ride, 'before_update')
def _guard_completed_ledger(mapper, connection, target):
    """Completed rides are ledger entries; their financial columns never change."""
    stored_status = connection.execute(
        select(Ride.__table__.c.status).where(Ride.__table__.c.id == target.id)
    ).scalar()
    if stored_status != RideStatus.COMPLETED.value:
        return
    state = inspect(target)
    changed = [name for name in LEDGER_COLUMNS if state.attrs[name].history.has_changes()]
    if changed:
        raise ConsistencyViolation(f"Completed ride {target.id} is immutable (attempted to change {', '.join(changed)})")
