from uride.extensions import db
from uride.models.admin_activity import JSONVariant


class CommissionSettings(db.Model):
    """
    Platform-wide compensation defaults.

    A single row; new drivers who do not name their own rate at signup get
    the rates stored here. Existing drivers keep the rate they signed up with.
    """
    __tablename__ = 'commission_settings'

    id = db.Column(db.Integer, primary_key=True)
    owner_commission_rate = db.Column(db.Numeric(5, 4), nullable=False)
    fleet_salary_per_km = db.Column(db.Numeric(8, 2), nullable=False)
    # [{"rides": 50, "bonus": 500}, ...] ascending by rides
    bonus_thresholds = db.Column(JSONVariant, nullable=False, default=list)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_by = db.Column(db.String(64), nullable=True)

    __table_args__ = (
        db.CheckConstraint("owner_commission_rate >= 0", name='check_settings_commission_non_negative'),
        db.CheckConstraint("fleet_salary_per_km > 0", name='check_settings_salary_positive'),
    )

    def __repr__(self):
        return (f'<CommissionSettings {self.id}: owner {self.owner_commission_rate}, '
                f'fleet {self.fleet_salary_per_km}/km>')
