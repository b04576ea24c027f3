"""
Per-product conversion wizard and stock panel.

Every wizard response carries the serialized ``state`` plus the optional
``message`` banner. Backend failures show up as an error banner with a 200
status; only actions requested in the wrong stage answer 409.
"""

import logging

from flask import current_app, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from ...errors import FloraApiError
from ...extensions import limiter
from ...forms import (
    ConversionSourceForm,
    RecordYieldForm,
    SelectRecipeForm,
    TransferStockForm,
    UpdateStockForm,
    first_error,
)
from ...services.conversion_workflow import Banner, ConversionStatus, ConversionWorkflow
from ...services.inventory_service import InventoryService
from ...services.recipe_service import RecipeService
from ...services.variance import classify_variance, format_variance
from ...services.variance_history_service import VarianceHistoryService
from ...utils.api_responses import APIResponse
from . import conversions_bp

logger = logging.getLogger(__name__)

_SESSION_KEY = "conversion_wizards"
_SOURCE_FIELDS = (
    "source_location_id",
    "source_quantity",
    "output_product_id",
    "target_product_id",
    "target_quantity",
)


def _thresholds():
    config = current_app.config
    return {
        "medium": config["VARIANCE_MEDIUM_THRESHOLD"],
        "high": config["VARIANCE_HIGH_THRESHOLD"],
        "reason_threshold": config["VARIANCE_REASON_PROMPT_THRESHOLD"],
    }


def _load_workflow(product_id):
    states = session.get(_SESSION_KEY) or {}
    return ConversionWorkflow.from_dict(
        states.get(str(product_id)),
        VarianceHistoryService(),
        InventoryService(),
        thresholds=_thresholds(),
    )


def _save_workflow(product_id, workflow):
    states = dict(session.get(_SESSION_KEY) or {})
    states[str(product_id)] = workflow.to_dict()
    session[_SESSION_KEY] = states


def _state_response(product_id, workflow, **extra):
    state = workflow.to_dict()
    body = {
        "success": not (workflow.message and workflow.message.type == "error"),
        "product_id": product_id,
        "state": state["form"],
        "message": state["message"],
        "last_completed": state["last_completed"],
        "live_variance": workflow.live_variance(),
    }
    body.update(extra)
    return jsonify(body), 200


def _finish(product_id, workflow, **extra):
    """Answer with the current state, then persist it (a completed form rolls over)."""
    response = _state_response(product_id, workflow, **extra)
    workflow.rollover()
    _save_workflow(product_id, workflow)
    return response


# --- Wizard ---

@conversions_bp.route('/conversion', methods=['GET'])
def show_conversion(product_id):
    workflow = _load_workflow(product_id)

    actual_output = request.args.get('actual_output', type=float)
    if actual_output is not None and workflow.status == ConversionStatus.YIELD_RECORDING:
        workflow.enter_actual_output(actual_output)
        _save_workflow(product_id, workflow)

    extra = {"csrf_token": generate_csrf(), "recipes": [], "variance_reasons": []}
    if workflow.status == ConversionStatus.PENDING:
        recipes = RecipeService().load_recipes_for_product(product_id)
        extra["recipes"] = [recipe.to_dict() for recipe in recipes]
    else:
        reasons = VarianceHistoryService().get_active_variance_reasons()
        extra["variance_reasons"] = [reason.to_dict() for reason in reasons]
    return _state_response(product_id, workflow, **extra)


@conversions_bp.route('/conversion/recipe', methods=['POST'])
def select_recipe(product_id):
    workflow = _load_workflow(product_id)
    form = SelectRecipeForm.from_json(APIResponse.handle_request_content())
    if not form.validate():
        workflow.message = Banner("error", first_error(form))
        return _finish(product_id, workflow)

    recipe = None
    if form.recipe_id.data:
        service = RecipeService()
        recipe = next(
            (r for r in service.load_recipes_for_product(product_id) if r.id == form.recipe_id.data),
            None,
        )
        if recipe is None:
            try:
                recipe = service.get_recipe(form.recipe_id.data)
            except FloraApiError as exc:
                logger.warning("Recipe %s lookup failed: %s", form.recipe_id.data, exc.message)
        if recipe is None:
            workflow.message = Banner("error", "Selected recipe is not available")
            return _finish(product_id, workflow)

    workflow.select_recipe(recipe)
    workflow.dismiss_message()
    return _finish(product_id, workflow)


def _source_changes(form, data):
    """Only the source fields the request actually sent."""
    return {name: getattr(form, name).data for name in _SOURCE_FIELDS if name in data}


@conversions_bp.route('/conversion/source', methods=['POST'])
def set_source(product_id):
    workflow = _load_workflow(product_id)
    data = APIResponse.handle_request_content()
    form = ConversionSourceForm.from_json(data)
    if not form.validate():
        workflow.message = Banner("error", first_error(form))
        return _finish(product_id, workflow)

    workflow.set_source(
        **_source_changes(form, data),
        notes=form.notes.data if 'notes' in data else None,
    )
    return _finish(product_id, workflow)


@conversions_bp.route('/conversion/initiate', methods=['POST'])
@limiter.limit("60 per minute")
def initiate_conversion(product_id):
    workflow = _load_workflow(product_id)
    data = APIResponse.handle_request_content()
    form = ConversionSourceForm.from_json(data)
    if not form.validate():
        workflow.message = Banner("error", first_error(form))
        return _finish(product_id, workflow)

    changes = _source_changes(form, data)
    if changes:
        workflow.set_source(**changes)
    workflow.initiate(product_id, notes=form.notes.data if 'notes' in data else None)
    return _finish(product_id, workflow)


@conversions_bp.route('/conversion/reasons/<code>', methods=['POST'])
def toggle_reason(product_id, code):
    workflow = _load_workflow(product_id)
    workflow.toggle_variance_reason(code)
    return _finish(product_id, workflow)


@conversions_bp.route('/conversion/yield', methods=['POST'])
@limiter.limit("60 per minute")
def record_yield(product_id):
    workflow = _load_workflow(product_id)
    workflow.require(ConversionStatus.YIELD_RECORDING, "record the yield")
    data = APIResponse.handle_request_content()
    form = RecordYieldForm.from_json(data)
    if not form.validate():
        workflow.message = Banner("error", first_error(form))
        return _finish(product_id, workflow)

    workflow.record_yield(
        form.actual_output.data,
        variance_reasons=form.variance_reasons.data if 'variance_reasons' in data else None,
        notes=form.notes.data if 'notes' in data else None,
    )
    return _finish(product_id, workflow)


@conversions_bp.route('/conversion/reset', methods=['POST'])
def reset_conversion(product_id):
    workflow = _load_workflow(product_id)
    workflow.discard()
    return _finish(product_id, workflow)


@conversions_bp.route('/conversion/message', methods=['DELETE'])
def dismiss_message(product_id):
    workflow = _load_workflow(product_id)
    workflow.dismiss_message()
    return _finish(product_id, workflow)


@conversions_bp.route('/conversion/history', methods=['GET'])
def conversion_history(product_id):
    config = current_app.config
    history = []
    for record in VarianceHistoryService().get_product_conversion_history(product_id):
        entry = record.to_dict()
        variance = record.variance_percentage or 0.0
        level = classify_variance(
            variance, config["VARIANCE_MEDIUM_THRESHOLD"], config["VARIANCE_HIGH_THRESHOLD"]
        )
        entry["variance_display"] = {
            "formatted": format_variance(variance),
            "level": level.name,
            "color": level.color,
            "label": level.label,
        }
        history.append(entry)
    return jsonify({"success": True, "product_id": product_id, "conversions": history})


@conversions_bp.route('/conversion/stats', methods=['GET'])
def conversion_stats(product_id):
    stats = VarianceHistoryService().get_product_conversion_stats(product_id)
    return jsonify({"success": True, "product_id": product_id, "stats": stats.to_dict()})


# --- Stock panel ---

def _banner(kind, text):
    return jsonify({"success": kind != "error", "message": {"type": kind, "text": text}}), 200


@conversions_bp.route('/stock', methods=['POST'])
@limiter.limit("60 per minute")
def update_stock(product_id):
    form = UpdateStockForm.from_json(APIResponse.handle_request_content())
    if not form.validate():
        return _banner("error", first_error(form))

    service = InventoryService()
    record = service.find_inventory_record(product_id, form.location_id.data)
    if record is None:
        return _banner("error", "Inventory record not found for this location")
    if not record.get("id"):
        return _banner("error", "Inventory record ID not found - cannot update")

    try:
        service.update_stock(product_id, form.location_id.data, form.quantity.data)
    except FloraApiError as exc:
        return _banner("error", exc.message)
    return _banner("success", "Stock updated successfully!")


@conversions_bp.route('/transfer', methods=['POST'])
@limiter.limit("60 per minute")
def transfer_stock(product_id):
    form = TransferStockForm.from_json(APIResponse.handle_request_content())
    if not form.validate():
        return _banner("error", first_error(form))

    try:
        InventoryService().transfer_stock(
            product_id,
            form.from_location.data,
            form.to_location.data,
            form.quantity.data,
            form.notes.data or "",
        )
    except FloraApiError as exc:
        return _banner("error", exc.message)
    return _banner("success", f"Successfully transferred {form.quantity.data:g} units")
