from flask import Blueprint, request, jsonify
from uride.services.commission_settings_service import CommissionSettingsService
from uride.services.errors import ServiceError
from uride.schemas.settings_schema import CommissionSettingsSchema
from uride.api.common import error_response
from uride.utils.actor import current_actor
import logging

settings_bp = Blueprint('settings', __name__)
schema = CommissionSettingsSchema()


@settings_bp.route('/settings/commission', methods=['GET'])
def get_commission_settings():
    try:
        return jsonify(schema.dump(CommissionSettingsService.effective())), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in get_commission_settings: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@settings_bp.route('/settings/commission', methods=['PUT'])
def update_commission_settings():
    try:
        data = request.get_json(silent=True) or {}
        settings = CommissionSettingsService.update(data, current_actor())
        return jsonify(schema.dump(settings)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in update_commission_settings: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500
