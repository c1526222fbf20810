from marshmallow import Schema, fields, validate, pre_load, validates_schema, ValidationError
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from uride.models.driver import Driver
from uride.models.compensation import CompensationKind
from uride.schemas.shift_schema import ShiftSchema

PHONE_PATTERN = r'^(\+91|0)?[6-9]\d{9}$'
LICENSE_PATTERN = r'^[A-Z]{2}[0-9]{13}$'
VEHICLE_NUMBER_PATTERN = r'^[A-Z]{2}[0-9]{2}[A-Z]{2}[0-9]{4}$'


class DriverSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Driver
        include_fk = True
        exclude = ('commission_rate', 'salary_per_km')

    id = auto_field(dump_only=True)
    compensation_model = fields.Method('dump_compensation_model')
    current_shift = fields.Nested(ShiftSchema, dump_only=True, allow_none=True)

    def dump_compensation_model(self, driver):
        model = driver.compensation_model
        if driver.compensation_kind == CompensationKind.OWNER.value:
            return {'kind': 'owner', 'commission_rate': str(model.commission_rate)}
        return {'kind': 'fleet', 'salary_per_km': str(model.salary_per_km)}


class VehicleDetailsSchema(Schema):
    registration_number = fields.String(required=True, validate=validate.Regexp(
        VEHICLE_NUMBER_PATTERN, error="Please provide a valid vehicle number"))
    make = fields.String(required=True, validate=validate.Length(min=1, max=50))
    model = fields.String(required=True, validate=validate.Length(min=1, max=50))
    year = fields.Integer(load_default=None, validate=validate.Range(min=2010))
    color = fields.String(load_default=None, validate=validate.Length(max=30))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and isinstance(data.get('registration_number'), str):
            data = dict(data)
            data['registration_number'] = data['registration_number'].replace(' ', '').upper()
        return data


class DriverSignupSchema(Schema):
    """Validates a driver application before it is stored as `pending`."""
    name = fields.String(required=True, validate=validate.Length(min=2, max=100))
    email = fields.Email(required=True)
    phone = fields.String(required=True, validate=validate.Regexp(
        PHONE_PATTERN, error="Please provide a valid Indian phone number"))
    license_number = fields.String(required=True, validate=validate.Regexp(
        LICENSE_PATTERN, error="Please provide a valid license number"))
    address = fields.String(load_default=None, validate=validate.Length(max=500))
    has_clean_record = fields.Boolean(load_default=True)

    compensation_kind = fields.String(required=True, validate=validate.OneOf([k.value for k in CompensationKind]))
    # Range checks live in build_compensation_model so they raise InvalidCompensationModel
    commission_rate = fields.Decimal(load_default=None, allow_none=True)
    salary_per_km = fields.Decimal(load_default=None, allow_none=True)

    vehicle = fields.Nested(VehicleDetailsSchema, load_default=None, allow_none=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if isinstance(data.get('email'), str):
            data['email'] = data['email'].strip().lower()
        if isinstance(data.get('phone'), str):
            data['phone'] = data['phone'].replace(' ', '')
        if isinstance(data.get('license_number'), str):
            data['license_number'] = data['license_number'].replace(' ', '').upper()
        if isinstance(data.get('name'), str):
            data['name'] = data['name'].strip()
        return data

    @validates_schema
    def vehicle_only_for_owners(self, data, **kwargs):
        if data.get('vehicle') and data.get('compensation_kind') != CompensationKind.OWNER.value:
            raise ValidationError("Only vehicle owners register their own vehicle", field_name='vehicle')


class DriverUpdateSchema(Schema):
    """Profile fields a driver record may change after signup."""
    name = fields.String(validate=validate.Length(min=2, max=100))
    address = fields.String(allow_none=True, validate=validate.Length(max=500))
    vehicle_model = fields.String(allow_none=True, validate=validate.Length(max=100))


class OnlineStatusSchema(Schema):
    is_online = fields.Boolean(required=True)


class ReasonSchema(Schema):
    reason = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=1000))
