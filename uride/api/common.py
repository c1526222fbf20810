from flask import jsonify


def error_response(se):
    """JSON body and status code for a ServiceError."""
    return jsonify(se.to_dict()), se.status_code
