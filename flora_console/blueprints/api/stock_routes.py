import logging

from flask import request

from ...extensions import limiter
from ...forms import ApiTransferStockForm, ApiUpdateStockForm, DirectConvertForm
from ...services.inventory_service import InventoryService
from ...utils.api_responses import APIResponse
from . import api_bp
from .routes import WRITE_LIMIT

logger = logging.getLogger(__name__)


@api_bp.route('/inventory', methods=['GET'])
def get_inventory():
    inventory = InventoryService().get_inventory(
        product_id=request.args.get('product_id', type=int),
        location_id=request.args.get('location_id', type=int),
    )
    return APIResponse.success(inventory=inventory)


@api_bp.route('/inventory', methods=['POST'])
@limiter.limit(WRITE_LIMIT)
def update_inventory():
    """Set the on-hand quantity of a product at one location"""
    form = ApiUpdateStockForm.from_json(APIResponse.handle_request_content())
    form.validate_or_raise()

    result = InventoryService().update_stock(
        form.product_id.data,
        form.location_id.data,
        form.quantity.data,
    )
    return APIResponse.success(data=result, message="Stock updated successfully!")


@api_bp.route('/transfer', methods=['POST'])
@limiter.limit(WRITE_LIMIT)
def transfer_stock():
    form = ApiTransferStockForm.from_json(APIResponse.handle_request_content())
    form.validate_or_raise()

    result = InventoryService().transfer_stock(
        form.product_id.data,
        form.from_location.data,
        form.to_location.data,
        form.quantity.data,
        form.notes.data or '',
    )
    return APIResponse.success(data=result, message="Stock transferred successfully!")


@api_bp.route('/convert', methods=['POST'])
@limiter.limit(WRITE_LIMIT)
def convert_stock():
    """Recipe-less conversion with both quantities supplied by the caller"""
    form = DirectConvertForm.from_json(APIResponse.handle_request_content())
    form.validate_or_raise()

    result = InventoryService().convert_stock(
        form.from_product_id.data,
        form.to_product_id.data,
        form.location_id.data,
        form.from_quantity.data,
        form.to_quantity.data,
        form.notes.data or '',
    )
    return APIResponse.success(data=result, message="Stock converted successfully")
