import logging

from flask import jsonify, request

from ...extensions import limiter
from ...forms import InitiateConversionForm, RecordYieldForm, first_error
from ...services.recipe_service import RecipeService
from ...services.variance_history_service import ValidationResult, VarianceHistoryService
from ...utils.api_responses import APIResponse
from . import api_bp

logger = logging.getLogger(__name__)

WRITE_LIMIT = "120 per minute"


# --- Conversions ---

@api_bp.route('/conversions', methods=['GET'])
def list_conversions():
    """Conversion history for a product, or one record by id"""
    service = VarianceHistoryService()

    conversion_id = request.args.get('conversion_id', type=int)
    if conversion_id:
        record = service.get_conversion(conversion_id)
        if record is None:
            return APIResponse.not_found("Conversion")
        return APIResponse.success(conversion=record.to_dict())

    product_id = request.args.get('product_id', type=int)
    if not product_id:
        return APIResponse.error("product_id or conversion_id is required", status_code=400)

    history = service.get_product_conversion_history(product_id)
    return APIResponse.success(conversions=[record.to_dict() for record in history])


@api_bp.route('/conversions', methods=['POST'])
@limiter.limit(WRITE_LIMIT)
def initiate_conversion():
    """Deduct the input stock and open a pending conversion"""
    form = InitiateConversionForm.from_json(APIResponse.handle_request_content())
    form.validate_or_raise()

    record = VarianceHistoryService().initiate_conversion(form.to_payload())
    return APIResponse.success(
        message="Conversion initiated",
        status_code=201,
        conversion_id=record.id,
        expected_output=record.expected_output,
        conversion=record.to_dict(),
    )


@api_bp.route('/conversions/validate', methods=['POST'])
def validate_conversion():
    form = InitiateConversionForm.from_json(APIResponse.handle_request_content())
    if not form.validate():
        result = ValidationResult(valid=False, errors=[first_error(form)])
    else:
        result = VarianceHistoryService().validate_conversion(form.to_payload())
    return jsonify(result.to_dict()), 200


@api_bp.route('/conversions', methods=['PUT'])
@limiter.limit(WRITE_LIMIT)
def update_conversion():
    """Complete or cancel a conversion selected by ``?id=&action=``"""
    conversion_id = request.args.get('id', type=int)
    if not conversion_id:
        return APIResponse.error("Conversion ID is required", status_code=400)

    action = request.args.get('action', 'complete')
    data = APIResponse.handle_request_content()
    service = VarianceHistoryService()

    if action == 'complete':
        form = RecordYieldForm.from_json(data)
        form.validate_or_raise()
        record = service.complete_conversion(
            {
                'conversion_id': conversion_id,
                'actual_output': form.actual_output.data,
                'variance_reasons': form.variance_reasons.data or [],
                'notes': form.notes.data or '',
            }
        )
        return APIResponse.success(message="Conversion completed", conversion=record.to_dict())

    if action == 'cancel':
        if not service.cancel_conversion(conversion_id, data.get('reason')):
            return APIResponse.error("Failed to cancel conversion", status_code=502)
        return APIResponse.success(message="Conversion cancelled", conversion_id=conversion_id)

    return APIResponse.error(f"Unknown action: {action}", status_code=400)


@api_bp.route('/conversions/stats', methods=['GET'])
def conversion_stats():
    product_id = request.args.get('product_id', type=int)
    if not product_id:
        return APIResponse.error("product_id is required", status_code=400)
    stats = VarianceHistoryService().get_product_conversion_stats(product_id)
    return APIResponse.success(stats=stats.to_dict())


@api_bp.route('/variance-reasons', methods=['GET'])
def variance_reasons():
    reasons = VarianceHistoryService().get_variance_reasons()
    return APIResponse.success(reasons=[reason.to_dict() for reason in reasons])


# --- Recipes ---

@api_bp.route('/recipes', methods=['GET'])
def list_recipes():
    recipes = RecipeService().get_recipes()
    return APIResponse.success(recipes=[recipe.to_dict() for recipe in recipes])


@api_bp.route('/recipes/available', methods=['GET'])
def available_recipes():
    product_id = request.args.get('product_id', type=int)
    if not product_id:
        return APIResponse.error("product_id is required", status_code=400)
    recipes = RecipeService().get_available_recipes(product_id)
    return APIResponse.success(recipes=[recipe.to_dict() for recipe in recipes])


@api_bp.route('/recipes/by-product/<int:product_id>', methods=['GET'])
def recipes_by_product(product_id):
    recipes = RecipeService().get_recipes_for_product(product_id)
    return APIResponse.success(recipes=[recipe.to_dict() for recipe in recipes])


@api_bp.route('/recipes/<int:recipe_id>', methods=['GET'])
def recipe_detail(recipe_id):
    service = RecipeService()
    recipe = service.get_recipe(recipe_id)
    if recipe is None:
        return APIResponse.not_found("Recipe")
    components = service.get_recipe_components(recipe_id)
    return APIResponse.success(
        recipe=recipe.to_dict(),
        components=[component.to_dict() for component in components],
    )
