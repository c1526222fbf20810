from marshmallow import Schema, fields, validate
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field
from uride.models.shift import Shift, MIN_TARGET_KM, MAX_TARGET_KM


class ShiftSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Shift
        include_fk = True

    id = auto_field(dump_only=True)
    progress = fields.Float(dump_only=True)


class StartShiftSchema(Schema):
    target_km = fields.Decimal(load_default=None, allow_none=True,
                               validate=validate.Range(min=MIN_TARGET_KM, max=MAX_TARGET_KM))


class RecordDistanceSchema(Schema):
    km = fields.Decimal(required=True)
