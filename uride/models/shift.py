from decimal import Decimal
from sqlalchemy import true

from uride.extensions import db

DEFAULT_TARGET_KM = Decimal("120")
MIN_TARGET_KM = Decimal("10")
MAX_TARGET_KM = Decimal("500")


class Shift(db.Model):
    __tablename__ = 'shift'

    id = db.Column(db.Integer, primary_key=True)
    driver_id = db.Column(db.Integer, db.ForeignKey('driver.id', ondelete="CASCADE"), nullable=False, index=True)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    target_km = db.Column(db.Numeric(8, 2), nullable=False, default=DEFAULT_TARGET_KM)
    completed_km = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=true())

    driver = db.relationship('Driver', back_populates='shifts')

    __table_args__ = (
        db.CheckConstraint("completed_km >= 0", name='check_shift_completed_km'),
    )

    @property
    def progress(self):
        """completed_km / target_km clamped to [0, 1]; the stored km stay raw."""
        if not self.target_km:
            return 0.0
        ratio = float(Decimal(self.completed_km or 0) / Decimal(self.target_km))
        return max(0.0, min(ratio, 1.0))

    def __repr__(self):
        return f'<Shift {self.id}: driver {self.driver_id} active={self.is_active}>'
