from flask import Blueprint, request, jsonify
from uride.services.driver_service import DriverService
from uride.services.lifecycle_service import DriverLifecycleService
from uride.services.shift_service import ShiftService
from uride.services.penalty_service import PenaltyService
from uride.services.errors import ServiceError
from uride.schemas.driver_schema import DriverSchema, OnlineStatusSchema, ReasonSchema
from uride.schemas.shift_schema import ShiftSchema, StartShiftSchema, RecordDistanceSchema
from uride.schemas.ride_schema import DriverPenaltySchema
from uride.api.common import error_response
from uride.utils.actor import current_actor
import logging

driver_bp = Blueprint('driver', __name__)
schema = DriverSchema()
schema_many = DriverSchema(many=True)
shift_schema = ShiftSchema()
shift_schema_many = ShiftSchema(many=True)
online_schema = OnlineStatusSchema()
reason_schema = ReasonSchema()
start_shift_schema = StartShiftSchema()
distance_schema = RecordDistanceSchema()
penalty_schema_many = DriverPenaltySchema(many=True)


@driver_bp.route('/drivers', methods=['GET'])
def list_drivers():
    try:
        drivers = DriverService.get_all(
            status=request.args.get('status'),
            compensation_kind=request.args.get('compensation_kind'),
        )
        return jsonify(schema_many.dump(drivers)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in list_drivers: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>', methods=['GET'])
def get_driver(driver_id):
    try:
        driver = DriverService.get_by_id(driver_id)
        if not driver:
            return jsonify({'error': 'Driver not found'}), 404
        return jsonify(schema.dump(driver)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in get_driver: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers', methods=['POST'])
def create_driver():
    try:
        data = request.get_json(silent=True) or {}
        driver = DriverService.create(data, actor=current_actor())
        return jsonify(schema.dump(driver)), 201
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in create_driver: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>', methods=['PUT'])
def update_driver(driver_id):
    try:
        data = request.get_json(silent=True) or {}
        driver = DriverService.update(driver_id, data, actor=current_actor())
        return jsonify(schema.dump(driver)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in update_driver: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/approve', methods=['POST'])
def approve_driver(driver_id):
    try:
        driver = DriverLifecycleService.approve(driver_id, actor=current_actor())
        return jsonify(schema.dump(driver)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in approve_driver: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/reject', methods=['POST'])
def reject_driver(driver_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = reason_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        driver = DriverLifecycleService.reject(driver_id, data.get('reason'), actor=current_actor())
        return jsonify(schema.dump(driver)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in reject_driver: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/suspend', methods=['POST'])
def suspend_driver(driver_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = reason_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        driver = DriverLifecycleService.suspend(driver_id, data.get('reason'), actor=current_actor())
        return jsonify(schema.dump(driver)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in suspend_driver: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/reactivate', methods=['POST'])
def reactivate_driver(driver_id):
    try:
        driver = DriverLifecycleService.reactivate(driver_id, actor=current_actor())
        return jsonify(schema.dump(driver)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in reactivate_driver: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/online', methods=['PUT'])
def set_online_status(driver_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = online_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        driver = DriverService.set_online(driver_id, online_schema.load(data)['is_online'])
        return jsonify(schema.dump(driver)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in set_online_status: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/shift/start', methods=['POST'])
def start_shift(driver_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = start_shift_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        shift = ShiftService.start_shift(driver_id, start_shift_schema.load(data)['target_km'])
        return jsonify(shift_schema.dump(shift)), 201
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in start_shift: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/shift/distance', methods=['POST'])
def record_shift_distance(driver_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = distance_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        shift = ShiftService.record_distance(driver_id, distance_schema.load(data)['km'])
        return jsonify(shift_schema.dump(shift)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in record_shift_distance: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/shift/end', methods=['POST'])
def end_shift(driver_id):
    try:
        shift = ShiftService.end_shift(driver_id)
        return jsonify(shift_schema.dump(shift)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in end_shift: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/shifts', methods=['GET'])
def list_shifts(driver_id):
    try:
        shifts = ShiftService.shift_history(driver_id)
        return jsonify(shift_schema_many.dump(shifts)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in list_shifts: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@driver_bp.route('/drivers/<int:driver_id>/penalties', methods=['GET'])
def list_penalties(driver_id):
    try:
        DriverService.require(driver_id)
        penalties = PenaltyService.list_for_driver(driver_id)
        return jsonify({
            'penalties': penalty_schema_many.dump(penalties),
            'total': str(PenaltyService.total_for_driver(driver_id)),
        }), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in list_penalties: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500
