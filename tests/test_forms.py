"""Validation of stock and conversion submissions."""
import pytest

from flora_console.forms import (
    InitiateConversionForm,
    RecordYieldForm,
    TransferStockForm,
    UpdateStockForm,
    first_error,
    formdata_from_json,
)


@pytest.fixture
def request_ctx(app):
    with app.test_request_context():
        yield


def test_formdata_from_json_drops_nulls_and_expands_lists():
    formdata = formdata_from_json({"a": 1, "b": None, "c": ["x", "y"], "d": 0})

    assert formdata.getlist("c") == ["x", "y"]
    assert formdata.get("a") == "1"
    assert formdata.get("d") == "0"
    assert "b" not in formdata


@pytest.mark.usefixtures("request_ctx")
class TestUpdateStockForm:
    def test_valid(self):
        form = UpdateStockForm.from_json({"location_id": 3, "quantity": 0})
        assert form.validate()
        assert form.quantity.data == 0.0

    @pytest.mark.parametrize(
        "payload, message",
        [
            ({"quantity": 5}, "Please fill in all required fields"),
            ({"location_id": 3, "quantity": ""}, "Please fill in all required fields"),
            ({"location_id": 3, "quantity": "abc"}, "Please enter a valid quantity"),
            ({"location_id": 3, "quantity": "NaN"}, "Please enter a valid quantity"),
            ({"location_id": 3, "quantity": float("inf")}, "Please enter a valid quantity"),
            ({"location_id": 3, "quantity": -1}, "Quantity cannot be negative"),
            ({"location_id": 0, "quantity": 5}, "Please select a valid location"),
            ({"location_id": "main", "quantity": 5}, "Please select a valid location"),
        ],
    )
    def test_rejections(self, payload, message):
        form = UpdateStockForm.from_json(payload)
        assert not form.validate()
        assert first_error(form) == message


@pytest.mark.usefixtures("request_ctx")
class TestTransferStockForm:
    def test_same_location_rejected(self):
        form = TransferStockForm.from_json({"from_location": 3, "to_location": 3, "quantity": 2})
        assert not form.validate()
        assert first_error(form) == "Source and destination locations must be different"

    def test_zero_quantity_rejected(self):
        form = TransferStockForm.from_json({"from_location": 3, "to_location": 4, "quantity": 0})
        assert not form.validate()
        assert form.errors["quantity"] == ["Please enter a valid quantity"]

    def test_valid(self):
        form = TransferStockForm.from_json({"from_location": 3, "to_location": 4, "quantity": 2.5})
        assert form.validate()


@pytest.mark.usefixtures("request_ctx")
class TestConversionForms:
    def test_initiate_payload(self):
        form = InitiateConversionForm.from_json(
            {"recipe_id": 7, "input_product_id": 42, "location_id": 3, "input_quantity": "100", "output_product_id": 77}
        )
        assert form.validate()
        assert form.to_payload() == {
            "recipe_id": 7,
            "input_product_id": 42,
            "location_id": 3,
            "input_quantity": 100.0,
            "notes": "",
            "output_product_id": 77,
        }

    def test_initiate_requires_source(self):
        form = InitiateConversionForm.from_json({"recipe_id": 7, "input_product_id": 42})
        assert not form.validate()
        assert form.errors["location_id"] == ["Please fill in source location and quantity"]

    def test_yield_requires_actual_output(self):
        form = RecordYieldForm.from_json({"variance_reasons": ["trim"]})
        assert not form.validate()
        assert first_error(form) == "Please enter actual output quantity"

    def test_yield_reasons_are_collected(self):
        form = RecordYieldForm.from_json({"actual_output": 0, "variance_reasons": ["trim", "moisture_loss"]})
        assert form.validate()
        assert form.variance_reasons.data == ["trim", "moisture_loss"]
