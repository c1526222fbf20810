from flask import request, has_request_context

from uride.services.audit_service import SYSTEM_ACTOR


def current_actor():
    """
    The admin performing the request, as (admin_id, admin_name).

    Authentication happens upstream; the gateway forwards the admin's
    identity in X-Admin-Id / X-Admin-Name.
    """
    if not has_request_context():
        return SYSTEM_ACTOR
    admin_id = request.headers.get('X-Admin-Id')
    if not admin_id:
        return SYSTEM_ACTOR
    return admin_id, request.headers.get('X-Admin-Name') or admin_id
