from datetime import timezone
from marshmallow import Schema, fields, validate, pre_load
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from uride.models.vehicle import Vehicle, ConditionStatus, FuelType
from uride.schemas.driver_schema import VEHICLE_NUMBER_PATTERN


class VehicleSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Vehicle
        include_fk = True

    id = auto_field(dump_only=True)
    status = fields.String(dump_only=True)


class VehicleCreateSchema(Schema):
    """Company vehicles registered by an admin."""
    registration_number = fields.String(required=True, validate=validate.Regexp(
        VEHICLE_NUMBER_PATTERN, error="Please provide a valid vehicle number"))
    make = fields.String(required=True, validate=validate.Length(min=1, max=50))
    model = fields.String(required=True, validate=validate.Length(min=1, max=50))
    year = fields.Integer(load_default=None, validate=validate.Range(min=2010))
    color = fields.String(load_default=None, validate=validate.Length(max=30))
    fuel_type = fields.String(load_default=FuelType.PETROL.value,
                              validate=validate.OneOf([f.value for f in FuelType]))
    mileage = fields.Integer(load_default=0, validate=validate.Range(min=0))
    last_service = fields.AwareDateTime(load_default=None, default_timezone=timezone.utc)
    next_service = fields.AwareDateTime(load_default=None, default_timezone=timezone.utc)
    insurance_expiry = fields.AwareDateTime(load_default=None, default_timezone=timezone.utc)
    registration_expiry = fields.AwareDateTime(load_default=None, default_timezone=timezone.utc)
    pollution_expiry = fields.AwareDateTime(load_default=None, default_timezone=timezone.utc)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get('registration_number'), str):
            data = dict(data)
            data['registration_number'] = data['registration_number'].replace(' ', '').upper()
        return data


class ConditionSchema(Schema):
    condition_status = fields.String(required=True,
                                     validate=validate.OneOf([c.value for c in ConditionStatus]))
    notes = fields.String(load_default=None, validate=validate.Length(max=500))


class AssignSchema(Schema):
    driver_id = fields.Integer(required=True, strict=True)
