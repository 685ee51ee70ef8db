"""
identity.py
Resolves who the current user is from stored credentials.

Safe to call as often as needed (it runs on every revalidation tick):
it only reads storage and never raises.
"""

import json
from typing import Optional

import structlog

from storefront.storage import (
    CART_KEY_PREFIX,
    GUEST_CART_KEY,
    LEGACY_TOKEN_KEY,
    TOKEN_KEY,
    USER_KEY,
    Storage,
)

logger = structlog.get_logger(__name__)

# Length of the token prefix used when no user record is stored
TOKEN_PREFIX_LENGTH = 8

_USER_ID_FIELDS = ("id", "user_id", "userId")


def get_token(storage: Storage) -> Optional[str]:
    token = storage.get(TOKEN_KEY) or storage.get(LEGACY_TOKEN_KEY)
    return token or None


def is_authenticated(storage: Storage) -> bool:
    return get_token(storage) is not None


def _identity_from_user_record(raw: str) -> Optional[str]:
    try:
        user = json.loads(raw)
    except ValueError as e:
        logger.warning("Malformed user record in storage", error=str(e))
        return None

    if not isinstance(user, dict):
        logger.warning("User record in storage is not an object")
        return None

    for field in _USER_ID_FIELDS:
        value = user.get(field)
        # numeric ids only; 0 is valid, bools are not
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and value.strip().isdecimal():
            return value.strip()
        if value is not None:
            logger.warning("Ignoring non-numeric user id", field=field)
    return None


def resolve_identity(storage: Storage) -> Optional[str]:
    """
    Current identity, or None when anonymous.

    Order:
    1. no credential -> None
    2. stored user record with an id (id / user_id / userId)
    3. "user_" + first 8 chars of the token
    """
    token = get_token(storage)
    if token is None:
        return None

    raw_user = storage.get(USER_KEY)
    if raw_user:
        identity = _identity_from_user_record(raw_user)
        if identity is not None:
            return identity

    return f"user_{token[:TOKEN_PREFIX_LENGTH]}"


def cart_key(identity: Optional[str]) -> str:
    if identity is None:
        return GUEST_CART_KEY
    return f"{CART_KEY_PREFIX}{identity}"
