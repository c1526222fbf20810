from marshmallow import Schema, fields, validate, validates_schema, ValidationError
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from uride.models.ride import CancelledBy, Ride, RidePurpose, VehicleClass
from uride.models.penalty import DriverPenalty
from uride.models.admin_activity import AdminActivity


class RideSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Ride
        include_fk = True

    id = auto_field(dump_only=True)


class AdminActivitySchema(SQLAlchemyAutoSchema):
    class Meta:
        model = AdminActivity

    id = auto_field(dump_only=True)


class CoordinateSchema(Schema):
    lat = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    lng = fields.Float(required=True, validate=validate.Range(min=-180, max=180))


class FareQuoteSchema(Schema):
    vehicle_class = fields.String(load_default=VehicleClass.ECONOMY.value,
                                  validate=validate.OneOf([c.value for c in VehicleClass]))
    purpose = fields.String(load_default=RidePurpose.GENERAL.value,
                            validate=validate.OneOf([p.value for p in RidePurpose]))
    distance_km = fields.Decimal(load_default=None, allow_none=True, validate=validate.Range(min=0))
    pickup = fields.Nested(CoordinateSchema, load_default=None, allow_none=True)
    destination = fields.Nested(CoordinateSchema, load_default=None, allow_none=True)
    # Defaults to the server clock when omitted; naive values are display-local
    at = fields.DateTime(load_default=None, allow_none=True)

    @validates_schema
    def distance_or_coordinates(self, data, **kwargs):
        if data.get('distance_km') is None and not (data.get('pickup') and data.get('destination')):
            raise ValidationError("Provide distance_km or both pickup and destination", field_name='distance_km')


class RideRequestSchema(FareQuoteSchema):
    passenger_name = fields.String(load_default=None, validate=validate.Length(max=128))
    pickup_address = fields.String(load_default=None, validate=validate.Length(max=256))
    destination_address = fields.String(load_default=None, validate=validate.Length(max=256))


class AcceptRideSchema(Schema):
    driver_id = fields.Integer(required=True, strict=True)


class CompleteRideSchema(Schema):
    # Actual distance driven; defaults to the quoted distance
    distance_km = fields.Decimal(load_default=None, allow_none=True, validate=validate.Range(min=0))
    rating = fields.Integer(load_default=None, allow_none=True, validate=validate.Range(min=1, max=5))


class CancelRideSchema(Schema):
    cancelled_by = fields.String(load_default=CancelledBy.PASSENGER.value,
                                 validate=validate.OneOf([c.value for c in CancelledBy]))
    reason = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=1000))


class DeclineRideSchema(Schema):
    driver_id = fields.Integer(required=True, strict=True)
    # True when the offer expired without an answer
    timed_out = fields.Boolean(load_default=False)


class DriverPenaltySchema(SQLAlchemyAutoSchema):
    class Meta:
        model = DriverPenalty
        include_fk = True

    id = auto_field(dump_only=True)
