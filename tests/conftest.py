import json

import pytest

from storefront.models import CatalogProduct, ProductSnapshot
from storefront.signals import SignalBus
from storefront.storage import MemoryStorage

DEFAULT_TOKEN = "3|a8Fk29xQpLmZ0rT"


class RecordingStorage(MemoryStorage):
    """MemoryStorage that remembers every write."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes = []

    def set(self, key, value):
        self.writes.append(("set", key))
        super().set(key, value)

    def remove(self, key):
        self.writes.append(("remove", key))
        super().remove(key)


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def bus():
    return SignalBus()


@pytest.fixture
def login(storage, bus):
    """Simulate what the login flow leaves behind, then announce it."""

    def _login(user_id=42, token=DEFAULT_TOKEN, announce=True):
        storage.set("auth_token", token)
        if user_id is None:
            storage.remove("user")
        else:
            storage.set("user", json.dumps({"id": user_id, "name": "Toko Roti", "email": "toko@example.com"}))
        if announce:
            bus.emit("auth-changed")

    return _login


@pytest.fixture
def logout(storage, bus):
    def _logout(announce=True):
        storage.remove("auth_token")
        storage.remove("token")
        storage.remove("user")
        if announce:
            bus.emit("auth-changed")

    return _logout


@pytest.fixture
def croissant():
    return ProductSnapshot(id=1, name="Butter Croissant", unit_price=1000, stock_ceiling=20)


@pytest.fixture
def eclair():
    return ProductSnapshot(id=2, name="Chocolate Eclair", unit_price=2500, stock_ceiling=5)


@pytest.fixture
def catalog_croissant():
    return CatalogProduct(
        id=1,
        name="Butter Croissant",
        unit_price=1000,
        stock=20,
        status="Aktif",
    )


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def make_store(storage, bus, notifications):
    from storefront.cart_store import CartStore

    stores = []

    def _make(**kwargs):
        kwargs.setdefault("notify", lambda message, ceiling: notifications.append((message, ceiling)))
        store = CartStore(kwargs.pop("storage", storage), kwargs.pop("bus", bus), **kwargs)
        stores.append(store)
        return store

    yield _make

    for store in stores:
        store.close()
