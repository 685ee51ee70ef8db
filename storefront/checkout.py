"""
checkout.py
Turns the cart into an order on the backend. The cart is emptied (memory
and storage) only when the backend confirms the order.
"""

from typing import Any, Dict, Optional

import structlog

from storefront.api_client import ApiClient, ApiError
from storefront.cart_store import CartStore

logger = structlog.get_logger(__name__)


def checkout(
    store: CartStore,
    client: ApiClient,
    special_notes: Optional[str] = None,
    delivery_date: Optional[str] = None,
) -> Dict[str, Any]:
    if not store.is_authenticated:
        return {
            "status": "error",
            "error": "not_authenticated",
            "error_message": "Log in before checking out.",
        }

    if not store.items:
        return {
            "status": "error",
            "error": "empty_cart",
            "error_message": "The cart is empty.",
        }

    lines = store.order_lines()
    expected_total = store.get_total_price()

    try:
        order = client.create_order(lines, special_notes=special_notes, delivery_date=delivery_date)
    except ApiError as e:
        logger.warning("Order rejected by backend", status_code=e.status_code, error=e.message)
        return {
            "status": "error",
            "error": "order_rejected",
            "error_message": e.message,
        }

    if order is None:
        return {
            "status": "error",
            "error": "order_failed",
            "error_message": "Could not create the order. Please try again.",
        }

    logger.info("Order created", order_id=order.id, lines=len(lines), total=order.total_price)
    store.clear_cart()

    return {
        "status": "success",
        "order": order.model_dump(),
        "cart_total": expected_total,
    }
