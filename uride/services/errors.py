class ServiceError(Exception):
    status_code = 400
    code = 'service_error'

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class ValidationError(ServiceError):
    """Malformed or out-of-range input, raised before anything is written."""
    code = 'validation_error'

    def __init__(self, message, field=None):
        super().__init__(message)
        self.field = field

    def to_dict(self):
        data = super().to_dict()
        if self.field:
            data['field'] = self.field
        return data


class InvalidCompensationModel(ValidationError):
    code = 'invalid_compensation_model'


class InvalidTransition(ServiceError):
    status_code = 409
    code = 'invalid_transition'


class NotEligible(ServiceError):
    status_code = 409
    code = 'not_eligible'


class NotFleetDriver(NotEligible):
    code = 'not_fleet_driver'


class DriverNotEligible(NotEligible):
    code = 'driver_not_eligible'


class VehicleUnavailable(NotEligible):
    code = 'vehicle_unavailable'


class VehicleNotAssigned(NotEligible):
    code = 'vehicle_not_assigned'


class ShiftAlreadyActive(NotEligible):
    code = 'shift_already_active'


class NoActiveShift(NotEligible):
    code = 'no_active_shift'


class NotFound(ServiceError):
    status_code = 404
    code = 'not_found'


class ConsistencyViolation(ServiceError):
    status_code = 500
    code = 'consistency_violation'


class PersistenceError(ServiceError):
    """A multi-row write failed and was rolled back; retrying is safe."""
    status_code = 503
    code = 'persistence_error'
