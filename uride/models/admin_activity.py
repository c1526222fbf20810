from uride.extensions import db
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy import TypeDecorator, event
from uride.services.errors import ConsistencyViolation


class JSONVariant(TypeDecorator):
    """A type decorator that selects the appropriate JSON type based on the database dialect."""
    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB)
        else:
            return dialect.type_descriptor(JSON)


class AdminActivity(db.Model):
    """Append-only record of administrative actions."""
    __tablename__ = 'admin_activity'

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.String(64), nullable=False, index=True)
    admin_name = db.Column(db.String(128), nullable=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    target_type = db.Column(db.String(16), nullable=False)
    target_id = db.Column(db.Integer, nullable=False, index=True)
    details = db.Column(JSONVariant, nullable=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f'<AdminActivity {self.id}: {self.action} {self.target_type}:{self.target_id}>'


@event.listens_for(AdminActivity, 'before_update')
@event.listens_for(AdminActivity, 'before_delete')
def _audit_is_append_only(mapper, connection, target):
    raise ConsistencyViolation(f"Audit record {target.id} cannot be modified")
