"""
Two-phase conversion wizard.

Synopsis:
The wizard for one product moves ``pending -> yield_recording -> completed``.
Phase one validates the source entry and asks the backend to deduct the input
stock against a recipe; phase two records the actual output and the variance
reason tags. The state is a plain dict so it can live in the server-side
session between requests.

Glossary:
- Form: the draft entry the user is filling in for one product.
- Banner: the dismissible ``{type, text}`` message shown above the form.
- Direct conversion: a recipe-less conversion where the user supplies both
  quantities; it completes in a single call.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import ConversionStateError, FloraApiError
from ..utils.payloads import to_float, to_int
from .recipe_service import Recipe, calculate_expected_output
from .variance import describe_variance

logger = logging.getLogger(__name__)


class ConversionStatus:
    PENDING = "pending"
    YIELD_RECORDING = "yield_recording"
    COMPLETED = "completed"

    ALL = (PENDING, YIELD_RECORDING, COMPLETED)


MISSING_SOURCE_MESSAGE = "Please fill in source location and quantity"
MISSING_TARGET_MESSAGE = "Please select target product and quantity or use a recipe"
MISSING_ACTUAL_MESSAGE = "Please enter actual output quantity"
INITIATED_MESSAGE = "Conversion initiated. Input deducted. Please record actual output."


_UNCHANGED = object()


def _number(value: float) -> str:
    """Whole numbers without a trailing ``.0``, anything else exactly as stored."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


@dataclass
class RecipeSnapshot:
    """The parts of a recipe the wizard needs after the catalogue is gone."""

    id: int
    name: str
    base_ratio: float
    ratio_unit: str = "g"
    track_variance: bool = True
    acceptable_variance: float = 0.05

    @classmethod
    def from_recipe(cls, recipe: Recipe) -> "RecipeSnapshot":
        return cls(
            id=recipe.id,
            name=recipe.name,
            base_ratio=recipe.base_ratio,
            ratio_unit=recipe.ratio_unit,
            track_variance=recipe.track_variance,
            acceptable_variance=recipe.acceptable_variance,
        )


@dataclass
class Banner:
    type: str
    text: str


@dataclass
class ConversionForm:
    status: str = ConversionStatus.PENDING
    recipe: Optional[RecipeSnapshot] = None
    source_location_id: Optional[int] = None
    source_quantity: Optional[float] = None
    output_product_id: Optional[int] = None
    target_product_id: Optional[int] = None
    target_quantity: Optional[float] = None
    expected_output: float = 0.0
    conversion_id: Optional[int] = None
    actual_output: Optional[float] = None
    variance_reasons: List[str] = field(default_factory=list)
    notes: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionForm":
        recipe = data.get("recipe")
        status = data.get("status")
        return cls(
            status=status if status in ConversionStatus.ALL else ConversionStatus.PENDING,
            recipe=RecipeSnapshot(**recipe) if isinstance(recipe, dict) else None,
            source_location_id=to_int(data.get("source_location_id")),
            source_quantity=to_float(data.get("source_quantity")),
            output_product_id=to_int(data.get("output_product_id")),
            target_product_id=to_int(data.get("target_product_id")),
            target_quantity=to_float(data.get("target_quantity")),
            expected_output=to_float(data.get("expected_output"), 0.0),
            conversion_id=to_int(data.get("conversion_id")),
            actual_output=to_float(data.get("actual_output")),
            variance_reasons=[str(code) for code in data.get("variance_reasons") or []],
            notes=data.get("notes") or "",
        )


class ConversionWorkflow:
    """Drives one product's conversion form through its two backend calls.

    Backend failures never raise out of ``initiate`` or ``record_yield``; they
    set an error banner and leave the form where it was. Only an action asked
    for in the wrong stage raises ``ConversionStateError``.
    """

    def __init__(
        self,
        history_service,
        inventory_service=None,
        form: Optional[ConversionForm] = None,
        thresholds: Optional[Dict[str, float]] = None,
    ):
        self.history_service = history_service
        self.inventory_service = inventory_service
        self.form = form or ConversionForm()
        self.thresholds = thresholds or {}
        self.message: Optional[Banner] = None
        self.last_completed: Optional[Dict[str, Any]] = None

    # --- Serialisation ---

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], history_service, inventory_service=None, thresholds=None):
        data = data or {}
        workflow = cls(
            history_service,
            inventory_service,
            form=ConversionForm.from_dict(data.get("form") or {}),
            thresholds=thresholds,
        )
        message = data.get("message")
        if isinstance(message, dict) and message.get("text"):
            workflow.message = Banner(message.get("type") or "info", message["text"])
        workflow.last_completed = data.get("last_completed")
        return workflow

    def to_dict(self) -> Dict[str, Any]:
        return {
            "form": asdict(self.form),
            "message": asdict(self.message) if self.message else None,
            "last_completed": self.last_completed,
        }

    # --- Helpers ---

    @property
    def status(self) -> str:
        return self.form.status

    def require(self, status: str, action: str) -> None:
        if self.form.status != status:
            raise ConversionStateError(
                f"Cannot {action} while the conversion is {self.form.status.replace('_', ' ')}"
            )

    def _error(self, text: str) -> bool:
        self.message = Banner("error", text)
        return False

    def _success(self, text: str) -> bool:
        self.message = Banner("success", text)
        return True

    def _refresh_expected_output(self) -> None:
        recipe = self.form.recipe
        self.form.expected_output = (
            calculate_expected_output(self.form.source_quantity, recipe.base_ratio) if recipe else 0.0
        )

    def dismiss_message(self) -> None:
        self.message = None

    # --- Phase one: pending ---

    def select_recipe(self, recipe: Optional[Recipe]) -> None:
        self.require(ConversionStatus.PENDING, "change the recipe")
        self.form.recipe = RecipeSnapshot.from_recipe(recipe) if recipe else None
        self._refresh_expected_output()

    def set_source(
        self,
        source_location_id: Any = _UNCHANGED,
        source_quantity: Any = _UNCHANGED,
        output_product_id: Any = _UNCHANGED,
        target_product_id: Any = _UNCHANGED,
        target_quantity: Any = _UNCHANGED,
        notes: Optional[str] = None,
    ) -> None:
        """Update the source entry; fields left out keep their current value."""
        self.require(ConversionStatus.PENDING, "change the source")
        changes = {
            "source_location_id": source_location_id,
            "source_quantity": source_quantity,
            "output_product_id": output_product_id,
            "target_product_id": target_product_id,
            "target_quantity": target_quantity,
        }
        for name, value in changes.items():
            if value is not _UNCHANGED:
                setattr(self.form, name, value)
        if notes is not None:
            self.form.notes = notes
        self._refresh_expected_output()

    def initiate(self, product_id: int, notes: Optional[str] = None) -> bool:
        """Start the conversion. Returns True when the backend accepted it."""
        self.require(ConversionStatus.PENDING, "initiate a conversion")
        if notes is not None:
            self.form.notes = notes
        self.message = None

        form = self.form
        if not form.source_location_id or not _positive(form.source_quantity):
            return self._error(MISSING_SOURCE_MESSAGE)

        if form.recipe is None:
            return self._convert_directly(product_id)

        request_data = {
            "recipe_id": form.recipe.id,
            "input_product_id": product_id,
            "location_id": form.source_location_id,
            "input_quantity": form.source_quantity,
            "notes": form.notes,
        }
        validation = self.history_service.validate_conversion(request_data)
        if not validation.valid:
            return self._error(", ".join(validation.errors) or "Conversion validation failed")

        if form.output_product_id:
            request_data["output_product_id"] = form.output_product_id
        try:
            record = self.history_service.initiate_conversion(request_data)
        except FloraApiError as exc:
            return self._error(exc.message)

        form.conversion_id = record.id
        form.expected_output = record.expected_output or form.expected_output
        form.status = ConversionStatus.YIELD_RECORDING
        return self._success(INITIATED_MESSAGE)

    def _convert_directly(self, product_id: int) -> bool:
        form = self.form
        if not form.target_product_id or not _positive(form.target_quantity):
            return self._error(MISSING_TARGET_MESSAGE)
        if self.inventory_service is None:
            raise ConversionStateError("Direct conversion is not available here")

        try:
            self.inventory_service.convert_stock(
                product_id,
                form.target_product_id,
                form.source_location_id,
                form.source_quantity,
                form.target_quantity,
                form.notes,
            )
        except FloraApiError as exc:
            return self._error(exc.message)

        text = (
            f"Successfully converted {_number(form.source_quantity)} units "
            f"to {_number(form.target_quantity)} units"
        )
        self.form = ConversionForm()
        return self._success(text)

    # --- Phase two: yield_recording ---

    def enter_actual_output(self, actual_output: Optional[float]) -> None:
        self.require(ConversionStatus.YIELD_RECORDING, "enter the actual output")
        self.form.actual_output = actual_output

    def toggle_variance_reason(self, code: str) -> List[str]:
        self.require(ConversionStatus.YIELD_RECORDING, "tag variance reasons")
        reasons = self.form.variance_reasons
        if code in reasons:
            reasons.remove(code)
        else:
            reasons.append(code)
        return reasons

    def live_variance(self) -> Optional[Dict[str, Any]]:
        if self.form.status != ConversionStatus.YIELD_RECORDING or self.form.actual_output is None:
            return None
        return describe_variance(self.form.expected_output, self.form.actual_output, **self.thresholds)

    def record_yield(
        self,
        actual_output: Optional[float],
        variance_reasons: Optional[List[str]] = None,
        notes: Optional[str] = None,
    ) -> bool:
        self.require(ConversionStatus.YIELD_RECORDING, "record the yield")
        form = self.form
        if actual_output is not None:
            form.actual_output = actual_output
        if variance_reasons is not None:
            form.variance_reasons = list(variance_reasons)
        if notes is not None:
            form.notes = notes
        self.message = None

        if form.conversion_id is None or form.actual_output is None:
            return self._error(MISSING_ACTUAL_MESSAGE)

        try:
            record = self.history_service.complete_conversion(
                {
                    "conversion_id": form.conversion_id,
                    "actual_output": form.actual_output,
                    "variance_reasons": form.variance_reasons,
                    "notes": form.notes,
                }
            )
        except FloraApiError as exc:
            return self._error(f"Failed to complete conversion: {exc.message}")

        variance = record.variance_percentage or 0.0
        variance_text = f"+{_number(variance)}%" if variance > 0 else f"{_number(variance)}%"
        form.status = ConversionStatus.COMPLETED
        self.last_completed = record.to_dict()
        return self._success(
            f"Conversion completed. Actual output: {_number(form.actual_output)} units "
            f"({variance_text} variance)"
        )

    # --- Reset ---

    def rollover(self) -> None:
        """Replace a completed form with a fresh one, keeping the banner and record."""
        if self.form.status == ConversionStatus.COMPLETED:
            self.form = ConversionForm()

    def discard(self) -> None:
        if self.form.status == ConversionStatus.YIELD_RECORDING and self.form.conversion_id:
            # No compensating call exists; the input stays deducted upstream.
            logger.warning(
                "Discarding conversion %s before its yield was recorded; input stock remains deducted",
                self.form.conversion_id,
            )
        self.form = ConversionForm()
        self.message = None
