import logging
from typing import Any, Dict, List, Optional

from ..errors import FloraApiError
from .flora_client import IM, FloraApiClient, get_flora_client

logger = logging.getLogger(__name__)

INSUFFICIENT_STOCK_MESSAGE = (
    "Transfer failed: Insufficient stock at source location or database error. "
    "Please check that the source location has enough inventory."
)


def _check_result(result: Any, fallback: str) -> Any:
    """A 200 answer can still carry ``{"success": false}``; treat it as a failure."""
    if isinstance(result, dict) and result.get("success") is False:
        raise FloraApiError(result.get("error") or result.get("message") or fallback, payload=result)
    return result


class InventoryService:
    """Stock reads and writes against the Flora IM plugin."""

    def __init__(self, client: FloraApiClient | None = None):
        self.client = client or get_flora_client()

    def get_inventory(self, product_id: Optional[int] = None, location_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Inventory rows, or an empty list when the plugin is unavailable"""
        try:
            data = self.client.get(IM, "inventory", params={"product_id": product_id, "location_id": location_id})
        except FloraApiError as exc:
            logger.warning("Inventory lookup failed (product=%s, location=%s): %s", product_id, location_id, exc.message)
            return []
        if isinstance(data, dict):
            data = data.get("inventory") or data.get("data") or []
        return data if isinstance(data, list) else []

    def find_inventory_record(self, product_id: int, location_id: int) -> Optional[Dict[str, Any]]:
        for record in self.get_inventory(product_id=product_id):
            if str(record.get("location_id")) == str(location_id):
                return record
        return None

    def update_stock(self, product_id: int, location_id: int, quantity: float) -> Dict[str, Any]:
        """Set the on-hand quantity of a product at a location"""
        result = self.client.post(
            IM,
            "inventory",
            json_body={"product_id": product_id, "location_id": location_id, "quantity": quantity},
            auth_in_body=True,
        )
        _check_result(result, "Update failed")
        logger.info("Stock set: product=%s location=%s quantity=%s", product_id, location_id, quantity)
        return result

    def transfer_stock(
        self,
        product_id: int,
        from_location: int,
        to_location: int,
        quantity: float,
        notes: str = "",
    ) -> Dict[str, Any]:
        try:
            result = self.client.post(
                IM,
                "transfer",
                json_body={
                    "product_id": product_id,
                    "from_location": from_location,
                    "to_location": to_location,
                    "quantity": quantity,
                    "notes": notes,
                },
                auth_in_body=True,
            )
        except FloraApiError as exc:
            payload_code = exc.payload.get("code") if isinstance(exc.payload, dict) else None
            if payload_code == "transfer_failed" or "Stock transfer failed" in exc.message:
                raise FloraApiError(INSUFFICIENT_STOCK_MESSAGE, exc.status_code, exc.payload) from exc
            raise
        logger.info(
            "Stock transferred: product=%s %s -> %s quantity=%s",
            product_id, from_location, to_location, quantity,
        )
        return result

    def convert_stock(
        self,
        from_product_id: int,
        to_product_id: int,
        location_id: int,
        from_quantity: float,
        to_quantity: float,
        notes: str = "",
    ) -> Dict[str, Any]:
        """Direct conversion without a recipe: both quantities are user supplied."""
        result = self.client.post(
            IM,
            "convert",
            json_body={
                "from_product_id": from_product_id,
                "to_product_id": to_product_id,
                "location_id": location_id,
                "from_quantity": from_quantity,
                "to_quantity": to_quantity,
                "notes": notes,
            },
            auth_in_body=True,
        )
        _check_result(result, "Conversion failed")
        logger.info(
            "Direct conversion: %s x%s -> %s x%s at location %s",
            from_product_id, from_quantity, to_product_id, to_quantity, location_id,
        )
        return result
