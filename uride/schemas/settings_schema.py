from marshmallow import Schema, fields, validate, validates_schema, ValidationError


class BonusThresholdSchema(Schema):
    rides = fields.Integer(required=True, strict=True, validate=validate.Range(min=1))
    bonus = fields.Integer(required=True, strict=True, validate=validate.Range(min=0))


class CommissionSettingsSchema(Schema):
    owner_commission_rate = fields.Decimal(as_string=True)
    fleet_salary_per_km = fields.Decimal(as_string=True)
    bonus_thresholds = fields.List(fields.Nested(BonusThresholdSchema))
    updated_at = fields.DateTime(allow_none=True)
    updated_by = fields.String(allow_none=True)


class CommissionSettingsUpdateSchema(Schema):
    """Any subset of the settings; range checks are shared with driver signup."""
    owner_commission_rate = fields.Decimal()
    fleet_salary_per_km = fields.Decimal()
    bonus_thresholds = fields.List(fields.Nested(BonusThresholdSchema))

    @validates_schema
    def thresholds_distinct(self, data, **kwargs):
        rides = [t['rides'] for t in data.get('bonus_thresholds') or []]
        if len(rides) != len(set(rides)):
            raise ValidationError("Each bonus threshold needs a distinct ride count", field_name='bonus_thresholds')
