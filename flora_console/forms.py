"""
Input validation for stock and conversion submissions.

Synopsis:
Every form here is checked before anything is sent to the Flora API. The JSON
endpoints feed the forms through ``formdata_from_json`` so that JSON and HTML
submissions share one set of rules and messages.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional as Opt

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import FloatField, IntegerField, SelectMultipleField, StringField
from wtforms.validators import InputRequired, NumberRange, Optional, StopValidation, ValidationError

from .errors import ValidationFailed

REQUIRED_MESSAGE = "Please fill in all required fields"
INVALID_QUANTITY_MESSAGE = "Please enter a valid quantity"
NEGATIVE_QUANTITY_MESSAGE = "Quantity cannot be negative"
INVALID_LOCATION_MESSAGE = "Please select a valid location"
SAME_LOCATION_MESSAGE = "Source and destination locations must be different"
SOURCE_REQUIRED_MESSAGE = "Please fill in source location and quantity"
ACTUAL_REQUIRED_MESSAGE = "Please enter actual output quantity"


def formdata_from_json(data: Opt[Mapping[str, Any]]) -> MultiDict:
    """Flatten a JSON object into form data; ``None`` values count as missing."""
    items = []
    for key, value in (data or {}).items():
        if value is None or isinstance(value, (dict, bool)):
            continue
        values = value if isinstance(value, (list, tuple)) else [value]
        items.extend((key, str(item)) for item in values if item is not None)
    return MultiDict(items)


def first_error(form: FlaskForm) -> str:
    for messages in form.errors.values():
        if messages:
            return messages[0]
    return REQUIRED_MESSAGE


class _LenientNumberMixin:
    """Unparseable input leaves ``data`` as None and lets the validators word the error."""

    def process_formdata(self, valuelist):
        try:
            super().process_formdata(valuelist)
        except ValueError:
            self.data = None


class QuantityField(_LenientNumberMixin, FloatField):
    pass


class IdField(_LenientNumberMixin, IntegerField):
    pass


class Finite:
    def __init__(self, message: str = INVALID_QUANTITY_MESSAGE):
        self.message = message

    def __call__(self, form, field):
        if field.data is None or not math.isfinite(field.data):
            raise StopValidation(self.message)


class GreaterThan:
    def __init__(self, minimum: float, message: str):
        self.minimum = minimum
        self.message = message

    def __call__(self, form, field):
        if field.data is None or field.data <= self.minimum:
            raise ValidationError(self.message)


def _id(message: str = INVALID_LOCATION_MESSAGE, required_message: str = REQUIRED_MESSAGE):
    return IdField(validators=[InputRequired(required_message), GreaterThan(0, message)])


def _optional_id(message: str):
    return IdField(validators=[Optional(), GreaterThan(0, message)])


class JsonForm(FlaskForm):
    class Meta:
        csrf = False

    @classmethod
    def from_json(cls, data: Opt[Mapping[str, Any]]):
        return cls(formdata=formdata_from_json(data))

    def validate_or_raise(self) -> None:
        if not self.validate():
            raise ValidationFailed(first_error(self), dict(self.errors))


class UpdateStockForm(JsonForm):
    location_id = _id()
    quantity = QuantityField(
        validators=[
            InputRequired(REQUIRED_MESSAGE),
            Finite(),
            NumberRange(min=0, message=NEGATIVE_QUANTITY_MESSAGE),
        ]
    )


class ApiUpdateStockForm(UpdateStockForm):
    product_id = _id("Please select a valid product")


class TransferStockForm(JsonForm):
    from_location = _id()
    to_location = _id()
    quantity = QuantityField(
        validators=[InputRequired(REQUIRED_MESSAGE), Finite(), GreaterThan(0, INVALID_QUANTITY_MESSAGE)]
    )
    notes = StringField(validators=[Optional()])

    def validate_to_location(self, field):
        if field.data is not None and field.data == self.from_location.data:
            raise ValidationError(SAME_LOCATION_MESSAGE)


class ApiTransferStockForm(TransferStockForm):
    product_id = _id("Please select a valid product")


class ConversionSourceForm(JsonForm):
    """Partial wizard entry: anything given must be valid, nothing is required."""

    source_location_id = _optional_id(INVALID_LOCATION_MESSAGE)
    source_quantity = QuantityField(
        validators=[Optional(), Finite(), GreaterThan(0, "Please enter valid source quantity")]
    )
    output_product_id = _optional_id("Please select a valid output product")
    target_product_id = _optional_id("Please select a valid target product")
    target_quantity = QuantityField(
        validators=[Optional(), Finite(), GreaterThan(0, "Please enter valid target quantity")]
    )
    notes = StringField(validators=[Optional()])


class SelectRecipeForm(JsonForm):
    recipe_id = _optional_id("Please select a valid recipe")


class InitiateConversionForm(JsonForm):
    recipe_id = _id("Please select a valid recipe")
    input_product_id = _id("Please select a valid product")
    location_id = _id(required_message=SOURCE_REQUIRED_MESSAGE)
    input_quantity = QuantityField(
        validators=[
            InputRequired(SOURCE_REQUIRED_MESSAGE),
            Finite("Please enter valid source quantity"),
            GreaterThan(0, "Please enter valid source quantity"),
        ]
    )
    output_product_id = _optional_id("Please select a valid output product")
    notes = StringField(validators=[Optional()])

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "recipe_id": self.recipe_id.data,
            "input_product_id": self.input_product_id.data,
            "location_id": self.location_id.data,
            "input_quantity": self.input_quantity.data,
            "notes": self.notes.data or "",
        }
        if self.output_product_id.data:
            payload["output_product_id"] = self.output_product_id.data
        return payload


class RecordYieldForm(JsonForm):
    actual_output = QuantityField(
        validators=[
            InputRequired(ACTUAL_REQUIRED_MESSAGE),
            Finite(ACTUAL_REQUIRED_MESSAGE),
            NumberRange(min=0, message="Actual output cannot be negative"),
        ]
    )
    variance_reasons = SelectMultipleField(choices=[], validate_choice=False)
    notes = StringField(validators=[Optional()])


class DirectConvertForm(JsonForm):
    from_product_id = _id("Please select a valid source product")
    to_product_id = _id("Please select a valid target product")
    location_id = _id()
    from_quantity = QuantityField(
        validators=[InputRequired(REQUIRED_MESSAGE), Finite(), GreaterThan(0, INVALID_QUANTITY_MESSAGE)]
    )
    to_quantity = QuantityField(
        validators=[InputRequired(REQUIRED_MESSAGE), Finite(), GreaterThan(0, INVALID_QUANTITY_MESSAGE)]
    )
    notes = StringField(validators=[Optional()])
