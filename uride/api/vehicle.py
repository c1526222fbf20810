from flask import Blueprint, request, jsonify
from uride.services.vehicle_service import VehicleService
from uride.services.assignment_service import AssignmentService
from uride.services.errors import ServiceError
from uride.schemas.vehicle_schema import VehicleSchema, AssignSchema
from uride.api.common import error_response
from uride.utils.actor import current_actor
import logging

vehicle_bp = Blueprint('vehicle', __name__)
schema = VehicleSchema()
schema_many = VehicleSchema(many=True)
assign_schema = AssignSchema()


@vehicle_bp.route('/vehicles', methods=['GET'])
def list_vehicles():
    try:
        if request.args.get('assignable', '').lower() in ('1', 'true', 'yes'):
            vehicles = VehicleService.get_assignable()
        else:
            vehicles = VehicleService.get_all(ownership=request.args.get('ownership'))
        return jsonify(schema_many.dump(vehicles)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in list_vehicles: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@vehicle_bp.route('/vehicles/compliance', methods=['GET'])
def vehicle_compliance():
    try:
        show_all = request.args.get('all', '').lower() in ('1', 'true', 'yes')
        return jsonify(VehicleService.compliance_report(only_flagged=not show_all)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in vehicle_compliance: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@vehicle_bp.route('/vehicles/<int:vehicle_id>', methods=['GET'])
def get_vehicle(vehicle_id):
    try:
        vehicle = VehicleService.get_by_id(vehicle_id)
        if not vehicle:
            return jsonify({'error': 'Vehicle not found'}), 404
        return jsonify(schema.dump(vehicle)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in get_vehicle: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@vehicle_bp.route('/vehicles', methods=['POST'])
def create_vehicle():
    try:
        data = request.get_json(silent=True) or {}
        vehicle = VehicleService.create(data, actor=current_actor())
        return jsonify(schema.dump(vehicle)), 201
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in create_vehicle: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@vehicle_bp.route('/vehicles/<int:vehicle_id>/condition', methods=['PUT'])
def set_vehicle_condition(vehicle_id):
    try:
        data = request.get_json(silent=True) or {}
        vehicle = VehicleService.set_condition(vehicle_id, data, actor=current_actor())
        return jsonify(schema.dump(vehicle)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in set_vehicle_condition: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@vehicle_bp.route('/vehicles/<int:vehicle_id>/assign', methods=['POST'])
def assign_vehicle(vehicle_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = assign_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        vehicle = AssignmentService.assign(vehicle_id, data['driver_id'], actor=current_actor())
        return jsonify(schema.dump(vehicle)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in assign_vehicle: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@vehicle_bp.route('/vehicles/<int:vehicle_id>/unassign', methods=['POST'])
def unassign_vehicle(vehicle_id):
    try:
        vehicle = AssignmentService.unassign(vehicle_id, actor=current_actor())
        return jsonify(schema.dump(vehicle)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in unassign_vehicle: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@vehicle_bp.route('/vehicles/<int:vehicle_id>/reassign', methods=['POST'])
def reassign_vehicle(vehicle_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = assign_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        vehicle = AssignmentService.reassign(vehicle_id, data['driver_id'], actor=current_actor())
        return jsonify(schema.dump(vehicle)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in reassign_vehicle: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500
