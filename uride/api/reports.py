from flask import Blueprint, request, jsonify
from uride.services.report_service import ReportService
from uride.services.audit_service import AuditService
from uride.services.errors import ServiceError
from uride.schemas.ride_schema import AdminActivitySchema
from uride.api.common import error_response
import logging

reports_bp = Blueprint('reports', __name__)
activity_schema_many = AdminActivitySchema(many=True)


@reports_bp.route('/reports/dashboard', methods=['GET'])
def dashboard():
    try:
        return jsonify(ReportService.dashboard_stats()), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in dashboard: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@reports_bp.route('/reports/top-earners', methods=['GET'])
def top_earners():
    try:
        limit = request.args.get('limit', default=10, type=int)
        return jsonify(ReportService.top_earners(limit=limit)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in top_earners: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@reports_bp.route('/reports/audit-log', methods=['GET'])
def audit_log():
    try:
        activities = AuditService.list_recent(
            limit=request.args.get('limit', default=50, type=int),
            target_type=request.args.get('target_type'),
            target_id=request.args.get('target_id', type=int),
        )
        return jsonify(activity_schema_many.dump(activities)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in audit_log: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500
