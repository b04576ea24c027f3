"""Recipe catalogue lookups and their fallbacks."""
import pytest

from flora_console.errors import FloraApiError
from flora_console.services.recipe_service import Recipe, RecipeService, calculate_expected_output


@pytest.fixture
def service(flora_client):
    return RecipeService(flora_client)


def test_recipe_payload_normalisation(recipe_payload):
    recipe = Recipe.from_payload(recipe_payload)

    assert recipe.id == 7
    assert recipe.input_category_ids == [21, 22]
    assert recipe.output_category_id == 30
    assert recipe.base_ratio == 0.9
    assert recipe.track_variance is True
    assert recipe.label == "Flower to Pre-roll (0.9:1 g)"
    assert calculate_expected_output(10, recipe.base_ratio) == pytest.approx(9.0)
    assert calculate_expected_output(None, recipe.base_ratio) == 0.0
    assert recipe.to_dict()["label"] == recipe.label


def test_get_recipes_asks_for_active(flora, service, recipe_payload):
    flora.add("GET", "fd/v1/recipes", [recipe_payload])

    recipes = service.get_recipes()

    assert [r.id for r in recipes] == [7]
    assert flora.calls[0].params["status"] == "active"


def test_get_recipe_missing_is_none(flora, service):
    assert service.get_recipe(99) is None


def test_get_recipe_other_errors_raise(flora, service):
    flora.add("GET", "fd/v1/recipes/5", {"message": "boom"}, status=500)
    with pytest.raises(FloraApiError):
        service.get_recipe(5)


def test_components(flora, service):
    flora.add(
        "GET",
        "fd/v1/recipes/7/components",
        [{"id": 1, "recipe_blueprint_id": "7", "component_category_id": "21", "quantity_ratio": "1.5", "unit": "g"}],
    )

    components = service.get_recipe_components(7)

    assert components[0].recipe_id == 7
    assert components[0].quantity_ratio == 1.5
    assert service.get_recipe_components(8) == []


def test_recipes_for_product_walks_categories(flora, service, recipe_payload):
    flora.add("GET", "wc/v3/products/42", {"id": 42, "categories": [{"id": 21}, {"id": 22}, {"id": 23}]})
    flora.add("GET", "fd/v1/recipes/by-category/21", [recipe_payload])
    flora.add("GET", "fd/v1/recipes/by-category/22", [recipe_payload, {**recipe_payload, "id": 8}])
    flora.add("GET", "fd/v1/recipes/by-category/23", {"message": "down"}, status=500)

    recipes = service.get_recipes_for_product(42)

    assert [r.id for r in recipes] == [7, 8]


def test_available_recipes_prefers_backend_answer(flora, service, recipe_payload):
    flora.add("GET", "fd/v1/recipes/available", {"recipes": [recipe_payload]})

    assert [r.id for r in service.get_available_recipes(42)] == [7]
    assert flora.calls[0].params["product_id"] == 42


def test_available_recipes_falls_back_to_categories(flora, service, recipe_payload):
    flora.add("GET", "wc/v3/products/42", {"categories": [{"id": 21}]})
    flora.add("GET", "fd/v1/recipes/by-category/21", [recipe_payload])

    assert [r.id for r in service.get_available_recipes(42)] == [7]


def test_available_recipes_empty_when_everything_fails(service):
    assert service.get_available_recipes(42) == []


def test_load_recipes_filters_inactive(flora, service, recipe_payload):
    flora.add(
        "GET",
        "fd/v1/recipes/available",
        [recipe_payload, {**recipe_payload, "id": 9, "status": "inactive"}],
    )

    assert [r.id for r in service.load_recipes_for_product(42)] == [7]


def test_load_recipes_offers_catalogue_when_nothing_specific(flora, service, recipe_payload):
    flora.add("GET", "fd/v1/recipes/available", [])
    flora.add("GET", "wc/v3/products/42", {"categories": []})
    flora.add("GET", "fd/v1/recipes", [{**recipe_payload, "id": 11}])

    assert [r.id for r in service.load_recipes_for_product(42)] == [11]


def test_load_recipes_empty_when_catalogue_fails(service):
    assert service.load_recipes_for_product(42) == []
