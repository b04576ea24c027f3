"""Yield variance arithmetic and its presentation-only classification."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_MEDIUM_THRESHOLD = 5.0
DEFAULT_HIGH_THRESHOLD = 10.0
DEFAULT_REASON_PROMPT_THRESHOLD = 3.0
_BAR_CAP = 20.0


@dataclass(frozen=True)
class VarianceLevel:
    name: str
    color: str
    label: str


LOW = VarianceLevel("low", "green", "Low")
MEDIUM = VarianceLevel("medium", "yellow", "Med")
HIGH = VarianceLevel("high", "red", "High")


def _as_float(value) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def calculate_variance(expected, actual) -> float:
    """Percent deviation of ``actual`` from ``expected``; 0 when either is missing."""
    expected_value = _as_float(expected)
    actual_value = _as_float(actual)
    if not expected_value or actual_value is None:
        return 0.0
    return (actual_value - expected_value) * 100.0 / expected_value


def yield_percentage(expected, actual) -> float:
    expected_value = _as_float(expected)
    actual_value = _as_float(actual)
    if not expected_value or actual_value is None:
        return 0.0
    return actual_value * 100.0 / expected_value


def classify_variance(
    variance: float,
    medium: float = DEFAULT_MEDIUM_THRESHOLD,
    high: float = DEFAULT_HIGH_THRESHOLD,
) -> VarianceLevel:
    magnitude = abs(variance)
    if magnitude > high:
        return HIGH
    if magnitude > medium:
        return MEDIUM
    return LOW


def needs_variance_reasons(variance: float, threshold: float = DEFAULT_REASON_PROMPT_THRESHOLD) -> bool:
    return abs(variance) > threshold


def format_variance(variance: float) -> str:
    sign = "+" if variance > 0 else ""
    return f"{sign}{variance:.2f}%"


def threshold_bar_width(variance: float) -> float:
    return min(abs(variance), _BAR_CAP) * 5


def describe_variance(
    expected,
    actual,
    medium: float = DEFAULT_MEDIUM_THRESHOLD,
    high: float = DEFAULT_HIGH_THRESHOLD,
    reason_threshold: float = DEFAULT_REASON_PROMPT_THRESHOLD,
) -> dict:
    """Everything the yield-recording panel shows for the current entry."""
    variance = calculate_variance(expected, actual)
    level = classify_variance(variance, medium, high)
    return {
        "variance": round(variance, 2),
        "formatted": format_variance(variance),
        "yield_percentage": round(yield_percentage(expected, actual), 1),
        "level": level.name,
        "color": level.color,
        "label": level.label,
        "bar_width": threshold_bar_width(variance),
        "needs_reasons": needs_variance_reasons(variance, reason_threshold),
    }
