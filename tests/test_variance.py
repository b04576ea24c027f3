"""Variance arithmetic and the presentation thresholds."""
import pytest

from flora_console.services.variance import (
    HIGH,
    LOW,
    MEDIUM,
    calculate_variance,
    classify_variance,
    describe_variance,
    format_variance,
    needs_variance_reasons,
    threshold_bar_width,
    yield_percentage,
)


def test_ten_percent_over_expected():
    assert calculate_variance(100, 110) == pytest.approx(10.0)


def test_under_expected_is_negative():
    assert calculate_variance(90, 81) == pytest.approx(-10.0)


@pytest.mark.parametrize("expected, actual", [(0, 50), (None, 50), (100, None), ("", 10)])
def test_nothing_to_compare_gives_zero(expected, actual):
    assert calculate_variance(expected, actual) == 0.0


def test_string_inputs_from_forms_are_accepted():
    assert calculate_variance("200", "190") == pytest.approx(-5.0)


def test_yield_percentage():
    assert yield_percentage(80, 72) == pytest.approx(90.0)
    assert yield_percentage(0, 72) == 0.0


@pytest.mark.parametrize(
    "variance, level",
    [(0, LOW), (5, LOW), (-5, LOW), (5.01, MEDIUM), (-7.5, MEDIUM), (10, MEDIUM), (10.5, HIGH), (-25, HIGH)],
)
def test_classification_boundaries(variance, level):
    assert classify_variance(variance) is level


def test_level_colors():
    assert (LOW.color, MEDIUM.color, HIGH.color) == ("green", "yellow", "red")


def test_custom_thresholds():
    assert classify_variance(4, medium=2, high=8) is MEDIUM
    assert classify_variance(9, medium=2, high=8) is HIGH


def test_reason_prompt_threshold():
    assert not needs_variance_reasons(3.0)
    assert needs_variance_reasons(3.1)
    assert needs_variance_reasons(-4)


def test_format_variance_is_signed():
    assert format_variance(10) == "+10.00%"
    assert format_variance(-4.5) == "-4.50%"
    assert format_variance(0) == "0.00%"


def test_bar_width_is_capped():
    assert threshold_bar_width(4) == 20
    assert threshold_bar_width(-12) == 60
    assert threshold_bar_width(45) == 100


def test_describe_variance_for_display():
    display = describe_variance(100, 88)

    assert display["variance"] == -12.0
    assert display["formatted"] == "-12.00%"
    assert display["yield_percentage"] == 88.0
    assert display["level"] == "high"
    assert display["label"] == "High"
    assert display["bar_width"] == 60
    assert display["needs_reasons"] is True
