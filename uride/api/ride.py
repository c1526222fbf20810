from flask import Blueprint, request, jsonify
from uride.services.ride_service import RideService
from uride.services.errors import ServiceError
from uride.schemas.ride_schema import (
    AcceptRideSchema,
    CancelRideSchema,
    CompleteRideSchema,
    DeclineRideSchema,
    RideSchema,
)
from uride.api.common import error_response
import logging

ride_bp = Blueprint('ride', __name__)
schema = RideSchema()
schema_many = RideSchema(many=True)
accept_schema = AcceptRideSchema()
complete_schema = CompleteRideSchema()
cancel_schema = CancelRideSchema()
decline_schema = DeclineRideSchema()


@ride_bp.route('/fares/quote', methods=['POST'])
def quote_fare():
    try:
        data = request.get_json(silent=True) or {}
        breakdown = RideService.quote(data)
        return jsonify(breakdown.to_dict()), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in quote_fare: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides', methods=['GET'])
def list_rides():
    try:
        rides = RideService.get_all(
            status=request.args.get('status'),
            driver_id=request.args.get('driver_id', type=int),
        )
        return jsonify(schema_many.dump(rides)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in list_rides: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides', methods=['POST'])
def request_ride():
    try:
        data = request.get_json(silent=True) or {}
        ride = RideService.request_ride(data)
        return jsonify(schema.dump(ride)), 201
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in request_ride: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides/<int:ride_id>', methods=['GET'])
def get_ride(ride_id):
    try:
        ride = RideService.get(ride_id)
        return jsonify(schema.dump(ride)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in get_ride: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides/<int:ride_id>/accept', methods=['POST'])
def accept_ride(ride_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = accept_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        ride = RideService.accept_ride(ride_id, data['driver_id'])
        return jsonify(schema.dump(ride)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in accept_ride: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides/<int:ride_id>/start', methods=['POST'])
def start_ride(ride_id):
    try:
        ride = RideService.start_ride(ride_id)
        return jsonify(schema.dump(ride)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in start_ride: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides/<int:ride_id>/complete', methods=['POST'])
def complete_ride(ride_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = complete_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        payload = complete_schema.load(data)
        ride = RideService.complete_ride(ride_id, payload['distance_km'], payload['rating'])
        return jsonify(schema.dump(ride)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in complete_ride: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides/<int:ride_id>/cancel', methods=['POST'])
def cancel_ride(ride_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = cancel_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        payload = cancel_schema.load(data)
        ride = RideService.cancel_ride(ride_id, payload['cancelled_by'], payload['reason'])
        return jsonify(schema.dump(ride)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in cancel_ride: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


@ride_bp.route('/rides/<int:ride_id>/decline', methods=['POST'])
def decline_ride(ride_id):
    try:
        data = request.get_json(silent=True) or {}
        errors = decline_schema.validate(data)
        if errors:
            return jsonify(errors), 400
        payload = decline_schema.load(data)
        ride = RideService.decline_ride(ride_id, payload['driver_id'], payload['timed_out'])
        return jsonify(schema.dump(ride)), 200
    except ServiceError as se:
        return error_response(se)
    except Exception as e:
        logging.error(f"Unhandled error in decline_ride: {e}", exc_info=True)
        return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500
