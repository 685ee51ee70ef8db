"""
app.py
Composition root: builds every storefront component once and wires them
to the same storage and signal bus.

The host owns the clock. It calls revalidate() on an interval (or on focus)
so a token removed behind our back, e.g. by another process sharing the
storage file, is noticed; run_revalidation() does that with asyncio.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import structlog

from storefront.api_client import ApiClient
from storefront.badge import CartBadge
from storefront.cart_store import CartStore, Notifier
from storefront.checkout import checkout
from storefront.config import Settings
from storefront.order_watch import OrderStatusWatcher
from storefront.session import SessionManager
from storefront.signals import SignalBus
from storefront.storage import JsonFileStorage, Storage

logger = structlog.get_logger(__name__)


class Storefront:
    def __init__(
        self,
        settings: Settings,
        storage: Optional[Storage] = None,
        client: Optional[ApiClient] = None,
        notify: Optional[Notifier] = None,
    ):
        self.settings = settings
        self.storage = storage if storage is not None else JsonFileStorage(settings.storage_path)
        self.bus = SignalBus()
        self.client = client if client is not None else ApiClient(
            settings.api_base_url, self.storage, timeout=settings.timeout
        )

        # store first: it must rebind before other auth-changed subscribers re-read
        self.cart = CartStore(self.storage, self.bus, notify=notify)
        self.session = SessionManager(self.storage, self.client, self.bus)
        self.orders = OrderStatusWatcher(self.storage, self.client, self.bus)
        self.badge = CartBadge(self.storage, self.bus)

    def revalidate(self) -> bool:
        changed = self.cart.revalidate()
        if not changed:
            # same identity, but another process may have written its cart
            self.cart.reload()
        self.badge.refresh()
        return changed

    def poll_orders(self) -> bool:
        return self.orders.check()

    def checkout(self, special_notes: Optional[str] = None, delivery_date: Optional[str] = None) -> Dict[str, Any]:
        return checkout(self.cart, self.client, special_notes=special_notes, delivery_date=delivery_date)

    def close(self) -> None:
        self.badge.close()
        self.cart.close()

    async def run_revalidation(self, stop: asyncio.Event) -> None:
        """Revalidate identity every tick and poll orders on their own, slower, interval."""
        interval = self.settings.revalidate_interval
        order_interval = self.settings.order_poll_interval
        last_order_poll = None

        logger.info("Revalidation loop started", interval=interval, order_interval=order_interval)
        while not stop.is_set():
            self.revalidate()

            now = time.monotonic()
            if last_order_poll is None or now - last_order_poll >= order_interval:
                # HTTP in a worker thread; storage updates and signals stay on the loop
                latest = await asyncio.to_thread(self.orders.fetch_latest)
                self.orders.record(latest)
                last_order_poll = now

            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Revalidation loop stopped")
