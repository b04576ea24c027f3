"""
Conversion records, variance reasons and conversion statistics.

Synopsis:
Thin wrappers over the Flora IM conversion endpoints. Initiating and completing
a conversion raise on failure because the wizard must not advance; the lookups
used only for display degrade to empty results instead.

Glossary:
- Initiate: backend deducts the input stock and stores a pending record with
  the recipe's expected output.
- Complete: backend stores the actual output and computes the variance.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context

from ..errors import FloraApiError, FloraNetworkError
from ..extensions import cache
from ..utils.payloads import to_bool, to_float, to_int, unwrap_list
from .flora_client import BLUEPRINTS, IM, FloraApiClient, get_flora_client
from .recipe_service import Recipe, RecipeService

logger = logging.getLogger(__name__)

RECORD_STATUSES = ("pending", "completed", "cancelled")
_REASONS_CACHE_KEY = "flora:variance_reasons"


@dataclass
class ConversionRecord:
    id: int
    recipe_id: int = 0
    recipe_name: str = ""
    input_product_id: int = 0
    input_product_name: str = ""
    output_product_id: Optional[int] = None
    output_product_name: str = ""
    location_id: int = 0
    location_name: str = ""
    input_quantity: float = 0.0
    expected_output: float = 0.0
    actual_output: Optional[float] = None
    variance_percentage: Optional[float] = None
    variance_reasons: List[str] = field(default_factory=list)
    status: str = "pending"
    notes: str = ""
    created_by: Optional[int] = None
    created_at: str = ""
    completed_at: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ConversionRecord":
        """Accept both the flat initiate answer and the ``conversion`` envelope."""
        if isinstance(data.get("conversion"), dict):
            data = data["conversion"]
        reasons = data.get("variance_reasons") or []
        if isinstance(reasons, str):
            reasons = [code.strip() for code in reasons.split(",") if code.strip()]
        return cls(
            id=to_int(data.get("conversion_id") or data.get("id"), 0),
            recipe_id=to_int(data.get("recipe_id") or data.get("recipe_blueprint_id"), 0),
            recipe_name=data.get("recipe_name") or "",
            input_product_id=to_int(data.get("input_product_id"), 0),
            input_product_name=data.get("input_product_name") or "",
            output_product_id=to_int(data.get("output_product_id")),
            output_product_name=data.get("output_product_name") or "",
            location_id=to_int(data.get("location_id"), 0),
            location_name=data.get("location_name") or "",
            input_quantity=to_float(data.get("input_quantity"), 0.0),
            expected_output=to_float(data.get("expected_output"), 0.0),
            actual_output=to_float(data.get("actual_output")),
            variance_percentage=to_float(data.get("variance_percentage")),
            variance_reasons=list(reasons),
            status=data.get("status") or data.get("conversion_status") or "pending",
            notes=data.get("notes") or data.get("conversion_notes") or "",
            created_by=to_int(data.get("created_by")),
            created_at=data.get("created_at") or datetime.now(timezone.utc).isoformat(),
            completed_at=data.get("completed_at"),
        )

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class VarianceReason:
    code: str
    name: str
    category: str = ""
    description: str = ""
    impact_type: str = "neutral"
    typical_variance: float = 0.0
    is_active: bool = True

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "VarianceReason":
        return cls(
            code=str(data.get("code") or ""),
            name=data.get("name") or str(data.get("code") or ""),
            category=data.get("category") or "",
            description=data.get("description") or "",
            impact_type=data.get("impact_type") or "neutral",
            typical_variance=to_float(data.get("typical_variance"), 0.0),
            is_active=to_bool(data.get("is_active", True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConversionStats:
    total_conversions: int = 0
    average_variance: float = 0.0
    total_input: float = 0.0
    total_output: float = 0.0
    efficiency_rate: float = 100.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class VarianceHistoryService:
    def __init__(self, client: FloraApiClient | None = None, recipe_service: RecipeService | None = None):
        self.client = client or get_flora_client()
        self.recipe_service = recipe_service or RecipeService(self.client)

    # --- Two-phase workflow ---

    def validate_conversion(self, data: Dict[str, Any]) -> ValidationResult:
        try:
            result = self.client.post(IM, "conversions/validate", json_body=data)
        except FloraNetworkError:
            return ValidationResult(valid=False, errors=["Failed to validate conversion"])
        except FloraApiError as exc:
            return ValidationResult(valid=False, errors=[f"Validation failed: {exc.message}"])

        result = result if isinstance(result, dict) else {}
        return ValidationResult(
            valid=result.get("valid") is not False,
            errors=list(result.get("errors") or []),
            warnings=list(result.get("warnings") or []),
        )

    def initiate_conversion(self, data: Dict[str, Any]) -> ConversionRecord:
        payload = {
            "recipe_id": data["recipe_id"],
            "input_product_id": data["input_product_id"],
            "location_id": data["location_id"],
            "input_quantity": data["input_quantity"],
            "notes": data.get("notes") or "",
        }
        if data.get("output_product_id"):
            payload["output_product_id"] = data["output_product_id"]
        result = self.client.post(IM, "conversions", json_body=payload)
        if not isinstance(result, dict):
            raise FloraApiError("Invalid response format from server", status_code=500)
        if result.get("success") is False:
            raise FloraApiError(result.get("message") or result.get("error") or "Failed to initiate conversion")

        record = ConversionRecord.from_payload(result)
        # The flat answer omits request fields it did not change
        record.recipe_id = record.recipe_id or payload["recipe_id"]
        record.input_product_id = record.input_product_id or payload["input_product_id"]
        record.location_id = record.location_id or payload["location_id"]
        record.input_quantity = record.input_quantity or float(payload["input_quantity"])
        logger.info(
            "Conversion %s initiated: recipe=%s product=%s location=%s input=%s expected=%s",
            record.id, record.recipe_id, record.input_product_id,
            record.location_id, record.input_quantity, record.expected_output,
        )
        return record

    def complete_conversion(self, data: Dict[str, Any]) -> ConversionRecord:
        conversion_id = data["conversion_id"]
        result = self.client.put(
            IM,
            f"conversions/{conversion_id}/complete",
            json_body={
                "actual_output": data["actual_output"],
                "variance_reasons": list(data.get("variance_reasons") or []),
                "notes": data.get("notes") or "",
            },
        )
        if not isinstance(result, dict):
            raise FloraApiError("Invalid response format from server", status_code=500)
        record = ConversionRecord.from_payload(result)
        record.id = record.id or int(conversion_id)
        logger.info(
            "Conversion %s completed: actual=%s variance=%s%%",
            record.id, data["actual_output"], record.variance_percentage,
        )
        return record

    def cancel_conversion(self, conversion_id: int, reason: Optional[str] = None) -> bool:
        try:
            self.client.put(IM, f"conversions/{conversion_id}/cancel", json_body={"reason": reason})
        except FloraApiError as exc:
            logger.warning("Cancel of conversion %s failed: %s", conversion_id, exc.message)
            return False
        logger.info("Conversion %s cancelled", conversion_id)
        return True

    # --- Lookups ---

    def get_conversion(self, conversion_id: int) -> Optional[ConversionRecord]:
        try:
            data = self.client.get(IM, f"conversions/{conversion_id}")
        except FloraApiError as exc:
            logger.info("Conversion %s unavailable: %s", conversion_id, exc.message)
            return None
        if not isinstance(data, dict) or not data:
            return None
        return ConversionRecord.from_payload(data)

    def get_product_conversion_history(self, product_id: int) -> List[ConversionRecord]:
        try:
            data = self.client.get(IM, "conversions", params={"product_id": product_id})
        except FloraApiError as exc:
            logger.info("Conversion history unavailable for product %s: %s", product_id, exc.message)
            return []
        return [ConversionRecord.from_payload(item) for item in unwrap_list(data, "conversions")]

    def get_variance_reasons(self) -> List[VarianceReason]:
        cached = cache.get(_REASONS_CACHE_KEY) if has_app_context() else None
        if cached is not None:
            return [VarianceReason.from_payload(item) for item in cached]

        try:
            data = self.client.get(BLUEPRINTS, "variance-reasons")
        except FloraApiError as exc:
            logger.info("Variance reasons unavailable: %s", exc.message)
            return []
        raw = unwrap_list(data, "reasons")

        if has_app_context():
            cache.set(_REASONS_CACHE_KEY, raw, timeout=current_app.config.get("VARIANCE_REASONS_CACHE_TTL", 300))
        return [VarianceReason.from_payload(item) for item in raw]

    def get_active_variance_reasons(self) -> List[VarianceReason]:
        return [reason for reason in self.get_variance_reasons() if reason.is_active]

    def get_product_conversion_stats(self, product_id: int) -> ConversionStats:
        history = self.get_product_conversion_history(product_id)
        if not history:
            return ConversionStats()

        completed = [record for record in history if record.is_completed]
        total_input = sum(record.input_quantity for record in completed)
        total_output = sum(record.actual_output or 0.0 for record in completed)
        variance_sum = sum(record.variance_percentage or 0.0 for record in completed)

        return ConversionStats(
            total_conversions=len(history),
            average_variance=variance_sum / len(completed) if completed else 0.0,
            total_input=total_input,
            total_output=total_output,
            efficiency_rate=(total_output / total_input) * 100 if total_input > 0 else 100.0,
        )

    def get_available_recipes(self, product_id: int) -> List[Recipe]:
        return self.recipe_service.get_available_recipes(product_id)
