import logging
from uride.extensions import db
from uride.models.admin_activity import AdminActivity
from uride.services.errors import ServiceError
from uride.utils.clock import get_clock

SYSTEM_ACTOR = ('system', 'System')


class AuditService:
    @staticmethod
    def record(actor, action, target_type, target_id, details=None):
        """
        Stage an audit record in the current session.

        Callers commit it together with the change it describes, so the
        trail never records an action that was rolled back.
        """
        admin_id, admin_name = actor or SYSTEM_ACTOR
        activity = AdminActivity(
            admin_id=str(admin_id),
            admin_name=admin_name,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details or {},
            timestamp=get_clock().now(),
        )
        db.session.add(activity)
        return activity

    @staticmethod
    def list_recent(limit=50, target_type=None, target_id=None):
        try:
            query = AdminActivity.query
            if target_type:
                query = query.filter_by(target_type=target_type)
            if target_id is not None:
                query = query.filter_by(target_id=target_id)
            return query.order_by(AdminActivity.timestamp.desc(), AdminActivity.id.desc()).limit(limit).all()
        except Exception as e:
            logging.error(f"Error fetching admin activity: {e}", exc_info=True)
            raise ServiceError("Could not fetch admin activity. Please try again later.")
