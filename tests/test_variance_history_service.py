"""Conversion endpoints, variance reasons and statistics."""
import pytest

from flora_console.errors import FloraApiError
from flora_console.services.variance_history_service import ConversionRecord, VarianceHistoryService


@pytest.fixture
def service(flora_client):
    return VarianceHistoryService(flora_client)


CONVERSION_REQUEST = {
    "recipe_id": 7,
    "input_product_id": 42,
    "location_id": 3,
    "input_quantity": 100.0,
    "notes": "",
}


def test_validate_passes_unless_backend_says_false(flora, service):
    flora.add("POST", "flora-im/v1/conversions/validate", {"warnings": ["Low stock"]})

    result = service.validate_conversion(CONVERSION_REQUEST)

    assert result.valid is True
    assert result.warnings == ["Low stock"]


def test_validate_reports_backend_rejection(flora, service):
    flora.add("POST", "flora-im/v1/conversions/validate", {"message": "Insufficient stock"}, status=400)

    result = service.validate_conversion(CONVERSION_REQUEST)

    assert result.valid is False
    assert result.errors == ["Validation failed: Insufficient stock"]


def test_validate_network_failure(flora, service, network_error):
    flora.fail("POST", "flora-im/v1/conversions/validate", network_error)

    result = service.validate_conversion(CONVERSION_REQUEST)

    assert result.errors == ["Failed to validate conversion"]


def test_initiate_fills_in_request_fields(flora, service):
    flora.add("POST", "flora-im/v1/conversions", {"success": True, "conversion_id": 501, "expected_output": "90"})

    record = service.initiate_conversion(CONVERSION_REQUEST)

    assert record.id == 501
    assert record.expected_output == 90.0
    assert record.recipe_id == 7
    assert record.input_quantity == 100.0
    assert record.status == "pending"


def test_initiate_passes_output_product(flora, service):
    flora.add("POST", "flora-im/v1/conversions", {"conversion_id": 502})

    service.initiate_conversion({**CONVERSION_REQUEST, "output_product_id": 77})

    assert flora.calls[0].json["output_product_id"] == 77


def test_initiate_raises_on_unsuccessful_answer(flora, service):
    flora.add("POST", "flora-im/v1/conversions", {"success": False, "message": "Recipe inactive"})

    with pytest.raises(FloraApiError, match="Recipe inactive"):
        service.initiate_conversion(CONVERSION_REQUEST)


def test_complete_sends_actual_and_reasons(flora, service):
    flora.add(
        "PUT",
        "flora-im/v1/conversions/501/complete",
        {"conversion": {"id": 501, "actual_output": 99, "variance_percentage": "10", "status": "completed"}},
    )

    record = service.complete_conversion(
        {"conversion_id": 501, "actual_output": 99, "variance_reasons": ["moisture_loss"], "notes": "dry batch"}
    )

    assert flora.calls[0].json == {"actual_output": 99, "variance_reasons": ["moisture_loss"], "notes": "dry batch"}
    assert record.variance_percentage == 10.0
    assert record.is_completed


def test_complete_raises_on_failure(flora, service):
    with pytest.raises(FloraApiError):
        service.complete_conversion({"conversion_id": 9, "actual_output": 1})


def test_cancel(flora, service):
    flora.add("PUT", "flora-im/v1/conversions/501/cancel", {"success": True})

    assert service.cancel_conversion(501, "wrong recipe") is True
    assert flora.calls[0].json == {"reason": "wrong recipe"}
    assert service.cancel_conversion(502) is False


def test_lookups_degrade_to_empty(service):
    assert service.get_conversion(1) is None
    assert service.get_product_conversion_history(42) == []
    assert service.get_variance_reasons() == []


def test_history_accepts_envelope(flora, service):
    flora.add("GET", "flora-im/v1/conversions", {"conversions": [{"id": 1, "variance_reasons": "a, b"}]})

    history = service.get_product_conversion_history(42)

    assert history[0].variance_reasons == ["a", "b"]
    assert flora.calls[0].params["product_id"] == 42


def test_active_variance_reasons(flora, service):
    flora.add(
        "GET",
        "fd/v1/variance-reasons",
        [
            {"code": "moisture_loss", "name": "Moisture loss", "impact_type": "negative", "is_active": "1"},
            {"code": "retired", "name": "Retired", "is_active": "0"},
        ],
    )

    assert [r.code for r in service.get_variance_reasons()] == ["moisture_loss", "retired"]
    assert [r.code for r in service.get_active_variance_reasons()] == ["moisture_loss"]


def test_variance_reasons_are_cached(app, flora, flora_client):
    app.config["VARIANCE_REASONS_CACHE_TTL"] = 60
    from flora_console.extensions import cache

    cache.init_app(app, config={"CACHE_TYPE": "SimpleCache"})
    flora.add("GET", "fd/v1/variance-reasons", {"reasons": [{"code": "trim", "name": "Trim"}]})

    with app.app_context():
        service = VarianceHistoryService(flora_client)
        service.get_variance_reasons()
        service.get_variance_reasons()

    assert len(flora.calls_to("GET", "fd/v1/variance-reasons")) == 1


def test_stats_over_completed_records_only(flora, service):
    flora.add(
        "GET",
        "flora-im/v1/conversions",
        [
            {"id": 1, "status": "completed", "input_quantity": 100, "actual_output": 90, "variance_percentage": 0},
            {"id": 2, "status": "completed", "input_quantity": 50, "actual_output": 60, "variance_percentage": 10},
            {"id": 3, "status": "pending", "input_quantity": 500},
        ],
    )

    stats = service.get_product_conversion_stats(42)

    assert stats.total_conversions == 3
    assert stats.total_input == 150
    assert stats.total_output == 150
    assert stats.average_variance == pytest.approx(5.0)
    assert stats.efficiency_rate == pytest.approx(100.0)


def test_stats_without_history():
    service = VarianceHistoryService.__new__(VarianceHistoryService)
    service.get_product_conversion_history = lambda product_id: []

    stats = service.get_product_conversion_stats(42)

    assert (stats.total_conversions, stats.efficiency_rate) == (0, 100.0)


def test_stats_with_no_completed_input(flora, service):
    flora.add("GET", "flora-im/v1/conversions", [{"id": 3, "status": "pending", "input_quantity": 10}])

    stats = service.get_product_conversion_stats(42)

    assert stats.efficiency_rate == 100.0
    assert stats.average_variance == 0.0


def test_record_from_flat_payload():
    record = ConversionRecord.from_payload({"success": True, "conversion_id": "12", "expected_output": 4.5})
    assert (record.id, record.expected_output, record.actual_output) == (12, 4.5, None)
