from marshmallow import EXCLUDE, Schema, fields, validate, validates_schema, ValidationError


class LeadsBulkRequestSchema(Schema):
    page_ids = fields.List(
        fields.Str(validate=validate.Length(min=1)),
        required=True,
        validate=validate.Length(min=1),
        error_messages={"required": "page_ids is required"},
    )
    page_tokens = fields.List(
        fields.Str(validate=validate.Length(min=1)),
        required=True,
        load_only=True,
        validate=validate.Length(min=1),
        error_messages={"required": "page_tokens is required"},
    )

    @validates_schema
    def validate_pairs(self, data, **kwargs):
        if len(data.get("page_ids", [])) != len(data.get("page_tokens", [])):
            raise ValidationError("Mismatched page IDs and tokens", field_name="page_tokens")


class ClientErrorReportSchema(Schema):
    """Browser error report, as posted by the front end."""

    class Meta:
        unknown = EXCLUDE

    message = fields.Str(required=True, validate=validate.Length(min=1))
    stack = fields.Str(required=False, allow_none=True, load_default=None)
    name = fields.Str(required=False, allow_none=True, load_default=None)
    type = fields.Str(required=False, allow_none=True, load_default=None)
    url = fields.Str(required=False, allow_none=True, load_default=None)
    timestamp = fields.Raw(required=False, allow_none=True, load_default=None)
    context = fields.Dict(required=False, allow_none=True, load_default=None)


class PerformanceMetricsSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    time_to_first_byte = fields.Float(data_key="timeToFirstByte", required=False)
    first_contentful_paint = fields.Float(data_key="firstContentfulPaint", required=False)
    largest_contentful_paint = fields.Float(data_key="largestContentfulPaint", required=False)
    first_input_delay = fields.Float(data_key="firstInputDelay", required=False)
    cumulative_layout_shift = fields.Float(data_key="cumulativeLayoutShift", required=False)


class MetricsPayloadSchema(Schema):
    componentName = fields.Str(required=True, validate=validate.Length(min=1))
    metrics = fields.Nested(PerformanceMetricsSchema, required=True)
    timestamp = fields.Float(required=True)


class MetricsQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    component = fields.Str(required=False, load_default=None)
    limit = fields.Int(required=False, load_default=100, validate=validate.Range(min=0, max=1000))
