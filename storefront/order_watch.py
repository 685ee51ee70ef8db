"""
order_watch.py
Notices when the status of the client's latest order changes (the bell in
the navbar). The last seen status is kept in storage so the notice
survives a restart.
"""

from typing import Optional

import structlog

from storefront.api_client import ApiClient, ApiError
from storefront.identity import is_authenticated
from storefront.models import OrderRecord
from storefront.signals import ORDER_STATUS_CHANGED, SignalBus
from storefront.storage import LAST_ORDER_STATUS_KEY, Storage, StorageUnavailable

logger = structlog.get_logger(__name__)


class OrderStatusWatcher:
    def __init__(self, storage: Storage, client: ApiClient, bus: SignalBus):
        self.storage = storage
        self.client = client
        self.bus = bus
        self.has_new_update = False
        self.latest_status: Optional[str] = None
        self.latest_order_id: Optional[int] = None

    def fetch_latest(self) -> Optional[OrderRecord]:
        """
        Ask the API for the newest order. Changes no watcher state and emits
        nothing, so the host may run it off its event loop.
        None when anonymous or the API could not answer.
        """
        if not is_authenticated(self.storage):
            return None
        try:
            orders = self.client.my_orders(per_page=1)
        except ApiError as e:
            logger.warning("Could not check order updates", error=e.message)
            return None
        return orders[0] if orders else None

    def record(self, latest: Optional[OrderRecord]) -> bool:
        """Compare a fetched order with the last seen status. Returns True when it changed."""
        if not is_authenticated(self.storage):
            self.has_new_update = False
            self.latest_status = None
            self.latest_order_id = None
            return False

        if latest is None:
            return False

        stored_status = self.storage.get(LAST_ORDER_STATUS_KEY)
        changed = bool(stored_status) and stored_status != latest.status

        self.latest_status = latest.status
        self.latest_order_id = latest.id
        try:
            self.storage.set(LAST_ORDER_STATUS_KEY, latest.status)
        except StorageUnavailable as e:
            logger.warning("Could not store last order status", error=str(e))

        if changed:
            logger.info("Order status changed", order_id=latest.id, previous=stored_status, current=latest.status)
            self.has_new_update = True
            self.bus.emit(ORDER_STATUS_CHANGED)
        return changed

    def acknowledge(self) -> None:
        self.has_new_update = False

    def check(self) -> bool:
        """Poll the latest order. Returns True when a new status was noticed."""
        return self.record(self.fetch_latest())
