"""
badge.py
Cart count shown next to the cart icon. It has no reference to the cart
store: on every cart-changed / auth-changed signal it re-reads the
persisted cart of whoever is logged in.
"""

import json

import structlog

from storefront.identity import cart_key, resolve_identity
from storefront.signals import AUTH_CHANGED, CART_CHANGED, SignalBus
from storefront.storage import Storage

logger = structlog.get_logger(__name__)


class CartBadge:
    def __init__(self, storage: Storage, bus: SignalBus):
        self.storage = storage
        # distinct products, as the navbar shows it
        self.count = 0
        self.total_quantity = 0
        self._unsubscribers = [
            bus.subscribe(CART_CHANGED, self.refresh),
            bus.subscribe(AUTH_CHANGED, self.refresh),
        ]
        self.refresh()

    def refresh(self) -> None:
        identity = resolve_identity(self.storage)
        if identity is None:
            self.count = 0
            self.total_quantity = 0
            return

        raw = self.storage.get(cart_key(identity))
        if not raw:
            self.count = 0
            self.total_quantity = 0
            return

        try:
            cart = json.loads(raw)
            if not isinstance(cart, list):
                raise ValueError("persisted cart is not a list")
            total = sum(int(entry["quantity"]) for entry in cart)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Could not read cart for badge", error=str(e))
            self.count = 0
            self.total_quantity = 0
            return

        self.count = len(cart)
        self.total_quantity = total

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
