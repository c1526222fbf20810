from decimal import Decimal
from enum import Enum

from uride.extensions import db


class PenaltyType(Enum):
    GENERAL_CANCEL = "general_cancel"
    EMERGENCY_CANCEL = "emergency_cancel"
    NO_RESPONSE = "no_response"


# Rupees charged per penalty
PENALTY_AMOUNTS = {
    PenaltyType.GENERAL_CANCEL: Decimal("50"),
    PenaltyType.EMERGENCY_CANCEL: Decimal("200"),
    PenaltyType.NO_RESPONSE: Decimal("25"),
}


class DriverPenalty(db.Model):
    __tablename__ = 'driver_penalty'
    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('driver.id', ondelete='CASCADE'), nullable=False, index=True)
    ride_id = db.Column(db.Integer, db.ForeignKey('ride.id', ondelete='SET NULL'), nullable=True, index=True)
    penalty_type = db.Column(db.String(32), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    driver = db.relationship('Driver', backref=db.backref('penalties', lazy='select'))

    __table_args__ = (
        db.CheckConstraint(
            f"penalty_type IN ({', '.join([repr(p.value) for p in PenaltyType])})",
            name='check_penalty_type'
        ),
        db.CheckConstraint("amount >= 0", name='check_penalty_amount'),
    )

    def __repr__(self):
        return f'<DriverPenalty {self.id}: driver {self.driver_id} {self.penalty_type} {self.amount}>'
