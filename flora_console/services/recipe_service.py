"""
Recipe catalogue (read-only).

Recipes live in the Flora Fields plugin. The console only selects them for a
conversion; creating or editing recipes is done elsewhere.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import FloraApiError
from ..utils.payloads import to_bool, to_float, to_int, to_int_list, unwrap_list
from .flora_client import BLUEPRINTS, WC, FloraApiClient, get_flora_client

logger = logging.getLogger(__name__)


def calculate_expected_output(input_quantity: Optional[float], base_ratio: float) -> float:
    """Preview of the recipe output for ``input_quantity``; 0 until a quantity is entered."""
    if not input_quantity:
        return 0.0
    return input_quantity * base_ratio


@dataclass
class Recipe:
    id: int
    name: str = ""
    slug: str = ""
    description: str = ""
    conversion_type: str = "simple"
    input_category_ids: List[int] = field(default_factory=list)
    output_category_id: Optional[int] = None
    base_ratio: float = 1.0
    ratio_unit: str = "g"
    allow_override: bool = False
    expected_yield_ratio: Optional[float] = None
    typical_yield_ratio: Optional[float] = None
    acceptable_variance: float = 0.05
    track_variance: bool = True
    status: str = "active"
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "Recipe":
        return cls(
            id=to_int(data.get("id"), 0),
            name=data.get("name") or "",
            slug=data.get("slug") or "",
            description=data.get("description") or "",
            conversion_type=data.get("conversion_type") or "simple",
            input_category_ids=to_int_list(data.get("input_category_ids")),
            output_category_id=to_int(data.get("output_category_id")),
            base_ratio=to_float(data.get("base_ratio"), 1.0),
            ratio_unit=data.get("ratio_unit") or "g",
            allow_override=to_bool(data.get("allow_override")),
            expected_yield_ratio=to_float(data.get("expected_yield_ratio")),
            typical_yield_ratio=to_float(data.get("typical_yield_ratio")),
            acceptable_variance=to_float(data.get("acceptable_variance"), 0.05),
            track_variance=to_bool(data.get("track_variance", True)),
            status=data.get("status") or "active",
            created_at=data.get("created_at") or "",
            updated_at=data.get("updated_at") or "",
        )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def label(self) -> str:
        return f"{self.name} ({self.base_ratio:g}:1 {self.ratio_unit})"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["label"] = self.label
        return data


@dataclass
class RecipeComponent:
    id: int
    recipe_id: int
    component_category_id: Optional[int]
    quantity_ratio: float
    unit: str
    component_role: str = "base"
    is_optional: bool = False
    sort_order: int = 0

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "RecipeComponent":
        return cls(
            id=to_int(data.get("id"), 0),
            recipe_id=to_int(data.get("recipe_blueprint_id") or data.get("recipe_id"), 0),
            component_category_id=to_int(data.get("component_category_id")),
            quantity_ratio=to_float(data.get("quantity_ratio"), 0.0),
            unit=data.get("unit") or "",
            component_role=data.get("component_role") or "base",
            is_optional=to_bool(data.get("is_optional")),
            sort_order=to_int(data.get("sort_order"), 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _dedupe(recipes: List[Recipe]) -> List[Recipe]:
    seen = set()
    unique = []
    for recipe in recipes:
        if recipe.id in seen:
            continue
        seen.add(recipe.id)
        unique.append(recipe)
    return unique


class RecipeService:
    """Reads recipes from the Flora Fields plugin."""

    def __init__(self, client: FloraApiClient | None = None):
        self.client = client or get_flora_client()

    def get_recipes(self) -> List[Recipe]:
        # status=active is passed explicitly; the backend ignores its own default
        data = self.client.get(BLUEPRINTS, "recipes", params={"status": "active"})
        return [Recipe.from_payload(item) for item in unwrap_list(data, "recipes")]

    def get_recipe(self, recipe_id: int) -> Optional[Recipe]:
        try:
            data = self.client.get(BLUEPRINTS, f"recipes/{recipe_id}")
        except FloraApiError as exc:
            if exc.is_not_found:
                return None
            raise
        if isinstance(data, dict) and isinstance(data.get("recipe"), dict):
            data = data["recipe"]
        return Recipe.from_payload(data)

    def get_recipe_components(self, recipe_id: int) -> List[RecipeComponent]:
        try:
            data = self.client.get(BLUEPRINTS, f"recipes/{recipe_id}/components")
        except FloraApiError as exc:
            if exc.is_not_found:
                return []
            raise
        return [RecipeComponent.from_payload(item) for item in unwrap_list(data, "components")]

    def get_recipes_by_category(self, category_id: int) -> List[Recipe]:
        data = self.client.get(BLUEPRINTS, f"recipes/by-category/{category_id}")
        return [Recipe.from_payload(item) for item in unwrap_list(data, "recipes")]

    def get_recipes_for_product(self, product_id: int) -> List[Recipe]:
        """Collect recipes attached to any of the product's WooCommerce categories."""
        product = self.client.get(WC, f"products/{product_id}")
        categories = (product.get("categories") if isinstance(product, dict) else None) or []

        recipes: List[Recipe] = []
        for category in categories:
            category_id = to_int(category.get("id"))
            if category_id is None:
                continue
            try:
                recipes.extend(self.get_recipes_by_category(category_id))
            except FloraApiError as exc:
                logger.info("Skipping recipes for category %s: %s", category_id, exc.message)
        return _dedupe(recipes)

    def get_available_recipes(self, product_id: int) -> List[Recipe]:
        """Recipes the backend says apply to a product, via blueprint assignments."""
        try:
            data = self.client.get(BLUEPRINTS, "recipes/available", params={"product_id": product_id})
            return [Recipe.from_payload(item) for item in unwrap_list(data, "recipes")]
        except FloraApiError as exc:
            logger.info("recipes/available failed for product %s (%s); trying categories", product_id, exc.message)

        try:
            return self.get_recipes_for_product(product_id)
        except FloraApiError as exc:
            logger.warning("Could not resolve recipes for product %s: %s", product_id, exc.message)
            return []

    def load_recipes_for_product(self, product_id: int) -> List[Recipe]:
        """Active recipes offered by the conversion panel for ``product_id``."""
        available = self.get_available_recipes(product_id)
        if available:
            return [recipe for recipe in available if recipe.is_active]

        # Nothing product-specific: offer the whole catalogue
        try:
            return [recipe for recipe in self.get_recipes() if recipe.is_active]
        except FloraApiError as exc:
            logger.error("Could not load recipe catalogue: %s", exc.message)
            return []
