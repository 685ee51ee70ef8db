"""
session.py
Login / logout. Writes the credential and user record to storage and
announces auth-changed; the cart store rebinds itself on that signal.
"""

import json
from typing import Any, Dict, Optional

import structlog

from storefront.api_client import ApiClient, ApiError
from storefront.identity import is_authenticated
from storefront.models import UserRecord
from storefront.signals import AUTH_CHANGED, SignalBus
from storefront.storage import LEGACY_TOKEN_KEY, TOKEN_KEY, USER_KEY, Storage, StorageUnavailable

logger = structlog.get_logger(__name__)


class SessionManager:
    def __init__(self, storage: Storage, client: ApiClient, bus: SignalBus):
        self.storage = storage
        self.client = client
        self.bus = bus

    @property
    def is_authenticated(self) -> bool:
        return is_authenticated(self.storage)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        email = (email or "").strip().lower()
        if not email or not password:
            return {
                "status": "error",
                "error_message": "Email and password are required.",
            }

        try:
            auth = self.client.login(email, password)
        except ApiError as e:
            logger.info("Login failed", email=email, status_code=e.status_code)
            return {
                "status": "error",
                "error_message": e.message,
            }

        was_authenticated = self.is_authenticated
        try:
            self.storage.set(TOKEN_KEY, auth.token)
            self.storage.set(USER_KEY, json.dumps(auth.user.model_dump(mode="json")))
        except StorageUnavailable as e:
            # a token without its user record would bind the cart to the token prefix
            logger.warning("Could not store session", error=str(e))
            self._forget_credentials()
            if was_authenticated:
                self.bus.emit(AUTH_CHANGED)
            return {
                "status": "error",
                "error_message": "Could not save the session on this device.",
            }

        logger.info("Logged in", user_id=auth.user.id)
        self.bus.emit(AUTH_CHANGED)
        return {
            "status": "success",
            "user": auth.user.model_dump(),
        }

    def logout(self) -> Dict[str, Any]:
        """
        Best-effort server logout, then forget the local credentials.
        The user's persisted cart stays in storage for the next login.
        """
        api_ok = False
        if self.is_authenticated:
            try:
                api_ok = self.client.logout()
            except ApiError as e:
                logger.warning("Server logout failed, clearing local session anyway", error=e.message)

        self._forget_credentials()

        logger.info("Logged out", server_logout=api_ok)
        self.bus.emit(AUTH_CHANGED)
        return {
            "status": "success",
            "server_logout": api_ok,
        }

    def _forget_credentials(self) -> None:
        for key in (TOKEN_KEY, LEGACY_TOKEN_KEY, USER_KEY):
            try:
                self.storage.remove(key)
            except StorageUnavailable as e:
                logger.warning("Could not remove session key", key=key, error=str(e))

    def current_user(self) -> Optional[UserRecord]:
        if not self.is_authenticated:
            return None
        try:
            return self.client.me()
        except ApiError as e:
            logger.warning("Could not fetch current user", error=e.message)
            return None
