"""
signals.py
Publish/subscribe between independently rendered parts of the storefront
(navbar badge, cart page, shop page).

A signal carries no payload: it means "shared state changed, re-read it".
Each SignalBus is its own registry, so two stores never hear each other
unless they are given the same bus.
"""

from typing import Callable, Dict, List

import structlog

logger = structlog.get_logger(__name__)

CART_CHANGED = "cart-changed"
AUTH_CHANGED = "auth-changed"
ORDER_STATUS_CHANGED = "order-status-changed"

CHANNELS = (CART_CHANGED, AUTH_CHANGED, ORDER_STATUS_CHANGED)

Callback = Callable[[], None]


class SignalBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callback]] = {channel: [] for channel in CHANNELS}

    def _check_channel(self, channel: str) -> None:
        if channel not in self._subscribers:
            raise ValueError(f"Unknown channel: {channel!r}")

    def subscribe(self, channel: str, callback: Callback) -> Callable[[], None]:
        """
        Register `callback` on `channel`.
        Returns a function that removes it again (calling it twice is harmless).
        """
        self._check_channel(channel)
        self._subscribers[channel].append(callback)

        def unsubscribe() -> None:
            try:
                self._subscribers[channel].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, channel: str) -> None:
        """Deliver synchronously, in subscription order."""
        self._check_channel(channel)
        # copy: subscribers may unsubscribe while being notified
        for callback in list(self._subscribers[channel]):
            try:
                callback()
            except Exception:
                logger.exception("Signal subscriber failed", channel=channel)

    def subscriber_count(self, channel: str) -> int:
        self._check_channel(channel)
        return len(self._subscribers[channel])
