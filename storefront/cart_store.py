"""
cart_store.py
Cart per user, kept in memory and persisted under cart_<identity>.

One CartStore is built at the application root and handed to whoever needs
it (shop page, cart page, checkout). Two states:

- anonymous: no identity, the cart is empty and nothing is ever written
  (cart_guest is neither read nor written)
- bound to an identity: the in-memory cart is exactly what is persisted for
  that identity; every accepted mutation is written and announced on the
  bus as cart-changed.

Mutations return result dicts ({"status": "success" | "error", ...}).
A quantity above the stock ceiling rejects the whole mutation and calls
`notify(message, ceiling)`; nothing is clamped.
"""

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from pydantic import ValidationError

from storefront.identity import cart_key, resolve_identity
from storefront.models import CartItem, CatalogProduct, ProductSnapshot
from storefront.signals import AUTH_CHANGED, CART_CHANGED, SignalBus
from storefront.storage import Storage, StorageUnavailable

logger = structlog.get_logger(__name__)

Notifier = Callable[[str, int], None]


class CartError(Exception):
    def __init__(self, message: str, result: Dict[str, Any]):
        super().__init__(message)
        self.result = result


class StockExceeded(CartError):
    @property
    def available_stock(self) -> int:
        return self.result["available_stock"]


def raise_for_result(result: Dict[str, Any]) -> Dict[str, Any]:
    """For callers that prefer exceptions over result dicts."""
    if result.get("status") != "error":
        return result
    message = result.get("error_message", "Cart operation rejected")
    if result.get("error") == "stock_exceeded":
        raise StockExceeded(message, result)
    raise CartError(message, result)


def _log_notification(message: str, ceiling: int) -> None:
    logger.warning("Stock ceiling reached", message=message, available_stock=ceiling)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _as_snapshot(product: Any) -> ProductSnapshot:
    if isinstance(product, ProductSnapshot):
        return product
    if isinstance(product, CatalogProduct):
        return product.snapshot()
    if isinstance(product, dict):
        if "nama_produk" in product:
            return ProductSnapshot.from_resource(product)
        return ProductSnapshot.model_validate(product)
    raise TypeError(f"Cannot take a cart snapshot of {type(product).__name__}")


class CartStore:
    def __init__(
        self,
        storage: Storage,
        bus: Optional[SignalBus] = None,
        notify: Optional[Notifier] = None,
    ):
        self.storage = storage
        self.bus = bus if bus is not None else SignalBus()
        self.notify = notify or _log_notification

        self._identity: Optional[str] = None
        self._items: List[CartItem] = []
        # set while the last write failed; reload() must not overwrite memory then
        self._unsaved = False
        self._bind(resolve_identity(storage))

        self._unsubscribe_auth = self.bus.subscribe(AUTH_CHANGED, self.revalidate)

    # =====================================================
    # State
    # =====================================================

    @property
    def items(self) -> Tuple[CartItem, ...]:
        return tuple(self._items)

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def get_total_items(self) -> int:
        return sum(item.quantity for item in self._items)

    def get_total_price(self) -> float:
        # snapshot prices only: later catalog changes do not move the total
        return sum(item.product.unit_price * item.quantity for item in self._items)

    def order_lines(self) -> List[Dict[str, int]]:
        return [{"id": item.product.id, "quantity": item.quantity} for item in self._items]

    def subscribe(self, channel: str, callback: Callable[[], None]) -> Callable[[], None]:
        return self.bus.subscribe(channel, callback)

    def close(self) -> None:
        self._unsubscribe_auth()

    # =====================================================
    # Identity transitions
    # =====================================================

    def revalidate(self) -> bool:
        """
        Re-resolve identity from storage. On a change, swap the whole
        in-memory cart for the new identity's persisted cart (or empty).
        Returns True when the identity changed.
        """
        identity = resolve_identity(self.storage)
        if identity == self._identity:
            return False

        logger.info("Cart identity changed", previous=self._identity, current=identity)
        self._bind(identity)
        self.bus.emit(CART_CHANGED)
        return True

    def reload(self) -> bool:
        """
        Re-read the persisted cart of the bound identity (another tab or
        process may have written it). Emits cart-changed and returns True
        when the items differ. Skipped while local changes are unsaved.
        """
        if self._identity is None or self._unsaved:
            return False

        items = self._load(self._identity)
        if items == self._items:
            return False

        logger.debug("Cart reloaded from storage", identity=self._identity)
        self._items = items
        self.bus.emit(CART_CHANGED)
        return True

    def _bind(self, identity: Optional[str]) -> None:
        self._identity = identity
        self._unsaved = False
        self._items = self._load(identity) if identity is not None else []

    # =====================================================
    # Persistence
    # =====================================================

    def _load(self, identity: str) -> List[CartItem]:
        key = cart_key(identity)
        raw = self.storage.get(key)
        if raw is None:
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("persisted cart is not a list")
            loaded = [CartItem.model_validate(entry) for entry in data]
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning("Malformed persisted cart, starting empty", key=key, error=str(e))
            return []

        items: List[CartItem] = []
        seen = set()
        for item in loaded:
            if item.product.id in seen:
                logger.warning("Duplicate product in persisted cart dropped", key=key, product_id=item.product.id)
                continue
            seen.add(item.product.id)
            items.append(item)
        return items

    def _persist(self) -> None:
        if self._identity is None:
            return
        key = cart_key(self._identity)
        payload = json.dumps([item.model_dump(mode="json") for item in self._items])
        try:
            self.storage.set(key, payload)
        except StorageUnavailable as e:
            logger.warning("Cart not persisted, keeping in-memory state", key=key, error=str(e))
            self._unsaved = True
            return
        self._unsaved = False

    def _commit(self, items: List[CartItem]) -> Dict[str, Any]:
        self._items = items
        self._persist()
        self.bus.emit(CART_CHANGED)
        return self._success()

    # =====================================================
    # Results
    # =====================================================

    def _success(self) -> Dict[str, Any]:
        return {
            "status": "success",
            "cart": [item.model_dump(mode="json") for item in self._items],
            "total_items": self.get_total_items(),
            "total_price": self.get_total_price(),
        }

    def _anonymous(self) -> Dict[str, Any]:
        return {
            "status": "error",
            "error": "not_authenticated",
            "error_message": "Log in to use the cart.",
        }

    def _invalid_quantity(self, quantity: Any) -> Dict[str, Any]:
        return {
            "status": "error",
            "error": "invalid_quantity",
            "error_message": f"Quantity must be a positive whole number, got {quantity!r}.",
        }

    def _stock_exceeded(self, product: ProductSnapshot) -> Dict[str, Any]:
        ceiling = product.stock_ceiling
        message = f"Only {ceiling} units of {product.name} available."
        logger.info("Cart mutation rejected, stock exceeded", product_id=product.id, available_stock=ceiling)
        self.notify(message, ceiling)
        return {
            "status": "error",
            "error": "stock_exceeded",
            "error_message": message,
            "available_stock": ceiling,
            "product_id": product.id,
        }

    # =====================================================
    # Mutations
    # =====================================================

    def add_item(self, product: Any, quantity: int) -> Dict[str, Any]:
        """
        Add `quantity` units of `product`.
        An existing line for the same product id is increased instead of
        duplicated; it keeps the snapshot (and price) it was first added with.
        """
        if not _is_positive_int(quantity):
            return self._invalid_quantity(quantity)
        if self._identity is None:
            return self._anonymous()

        snapshot = _as_snapshot(product)
        existing = next((i for i in self._items if i.product.id == snapshot.id), None)

        if existing is not None:
            new_quantity = existing.quantity + quantity
            if new_quantity > snapshot.stock_ceiling:
                return self._stock_exceeded(snapshot)
            items = [
                CartItem(product=i.product, quantity=new_quantity) if i is existing else i
                for i in self._items
            ]
        else:
            if quantity > snapshot.stock_ceiling:
                return self._stock_exceeded(snapshot)
            items = self._items + [CartItem(product=snapshot, quantity=quantity)]

        logger.debug("Cart item added", identity=self._identity, product_id=snapshot.id, quantity=quantity)
        return self._commit(items)

    def remove_item(self, product_id: int) -> Dict[str, Any]:
        if self._identity is None:
            return self._anonymous()

        items = [i for i in self._items if i.product.id != product_id]
        if len(items) == len(self._items):
            return self._success()

        logger.debug("Cart item removed", identity=self._identity, product_id=product_id)
        return self._commit(items)

    def update_quantity(self, product_id: int, quantity: int) -> Dict[str, Any]:
        """Set the quantity of a line; zero or less removes it."""
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return self._invalid_quantity(quantity)
        if quantity <= 0:
            return self.remove_item(product_id)
        if self._identity is None:
            return self._anonymous()

        existing = next((i for i in self._items if i.product.id == product_id), None)
        if existing is None:
            return self._success()
        if quantity > existing.product.stock_ceiling:
            return self._stock_exceeded(existing.product)

        items = [
            CartItem(product=i.product, quantity=quantity) if i is existing else i
            for i in self._items
        ]
        logger.debug("Cart quantity updated", identity=self._identity, product_id=product_id, quantity=quantity)
        return self._commit(items)

    def clear_cart(self) -> Dict[str, Any]:
        """Empty the cart in memory and in storage (explicit empty action, checkout)."""
        self._items = []
        if self._identity is not None:
            key = cart_key(self._identity)
            try:
                self.storage.remove(key)
                self._unsaved = False
            except StorageUnavailable as e:
                logger.warning("Persisted cart not removed", key=key, error=str(e))
                self._unsaved = True
            logger.info("Cart cleared", identity=self._identity)
        self.bus.emit(CART_CHANGED)
        return self._success()
