"""Tests for the REST client, with the HTTP session mocked out."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from storefront.api_client import ApiClient, ApiError
from storefront.identity import resolve_identity
from storefront.storage import MemoryStorage

PRODUCT = {
    "id": 3,
    "nama_produk": "Almond Croissant",
    "deskripsi": "Twice baked",
    "harga_grosir": 2200,
    "ketersediaan_stok": 80,
    "gambar_url": "http://img/3.png",
    "status": "Aktif",
}


def _response(status=200, body=None, reason="OK"):
    resp = requests.Response()
    resp.status_code = status
    resp.reason = reason
    resp.encoding = "utf-8"
    resp._content = b"" if body is None else json.dumps(body).encode("utf-8")
    return resp


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def api_storage():
    return MemoryStorage({"auth_token": "secret-token"})


@pytest.fixture
def client(session, api_storage):
    return ApiClient("http://api.test/api/", api_storage, session=session)


class TestRequests:
    def test_sends_bearer_token(self, client, session):
        session.request.return_value = _response(body={"data": []})
        client.list_products()

        _, kwargs = session.request.call_args
        assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
        assert kwargs["headers"]["Accept"] == "application/json"
        assert kwargs["timeout"] == (2, 8)

    def test_no_token_no_authorization_header(self, session):
        client = ApiClient("http://api.test/api", MemoryStorage(), session=session)
        session.request.return_value = _response(body={"data": []})
        client.list_products()

        _, kwargs = session.request.call_args
        assert "Authorization" not in kwargs["headers"]

    def test_base_url_trailing_slash_is_stripped(self, client, session):
        session.request.return_value = _response(body={"data": []})
        client.list_products()

        args, _ = session.request.call_args
        assert args == ("GET", "http://api.test/api/products")

    def test_network_error_returns_none(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        assert client.my_orders() is None
        assert client.list_products() == []

    def test_unauthorized_drops_token(self, client, session, api_storage):
        session.request.return_value = _response(401, {"message": "Unauthenticated."}, reason="Unauthorized")

        assert client.me() is None
        assert api_storage.get("auth_token") is None

    def test_unauthorized_drops_legacy_token(self, session):
        storage = MemoryStorage({"token": "legacytok123"})
        client = ApiClient("http://api.test/api", storage, session=session)
        session.request.return_value = _response(401, {"message": "Unauthenticated."}, reason="Unauthorized")

        assert client.my_orders() is None
        assert storage.get("token") is None
        assert resolve_identity(storage) is None

    def test_error_uses_backend_message(self, client, session):
        session.request.return_value = _response(422, {"message": "Stok tidak mencukupi"}, reason="Unprocessable")

        with pytest.raises(ApiError) as exc_info:
            client.create_order([{"id": 1, "quantity": 100}])
        assert exc_info.value.message == "Stok tidak mencukupi"
        assert exc_info.value.status_code == 422

    def test_error_without_json_body(self, client, session):
        resp = _response(500, reason="Server Error")
        resp._content = b"<html>oops</html>"
        session.request.return_value = resp

        with pytest.raises(ApiError) as exc_info:
            client.my_orders()
        assert exc_info.value.message == "Server Error"


class TestAuth:
    def test_login(self, client, session):
        session.post.return_value = _response(
            body={"data": {"user": {"id": 42, "name": "Toko", "email": "t@x.id"}, "token": "new-token", "token_type": "Bearer"}}
        )

        auth = client.login("t@x.id", "pw")

        assert auth.token == "new-token"
        assert auth.user.id == 42
        _, kwargs = session.post.call_args
        assert kwargs["json"] == {"email": "t@x.id", "password": "pw"}
        assert "Authorization" not in kwargs["headers"]

    def test_login_rejected(self, client, session, api_storage):
        session.post.return_value = _response(401, {"message": "Invalid credentials"}, reason="Unauthorized")

        with pytest.raises(ApiError, match="Invalid credentials"):
            client.login("t@x.id", "bad")
        # a failed login must not log out the current session
        assert api_storage.get("auth_token") == "secret-token"

    def test_login_without_token_in_response(self, client, session):
        session.post.return_value = _response(body={"data": {"user": {"id": 1, "name": "a", "email": "b"}}})

        with pytest.raises(ApiError, match="Invalid response format"):
            client.login("t@x.id", "pw")

    def test_login_server_unreachable(self, client, session):
        session.post.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ApiError, match="Cannot reach"):
            client.login("t@x.id", "pw")

    def test_me(self, client, session):
        session.request.return_value = _response(body={"data": {"user": {"id": 42, "name": "Toko", "email": "t@x.id"}}})
        assert client.me().name == "Toko"

    def test_logout(self, client, session):
        session.request.return_value = _response(body={"message": "Logged out"})
        assert client.logout() is True

        args, _ = session.request.call_args
        assert args == ("POST", "http://api.test/api/logout")


class TestCatalog:
    def test_list_products_maps_fields(self, client, session):
        session.request.return_value = _response(body={"data": [PRODUCT]})

        products = client.list_products(status="Aktif")

        assert products[0].name == "Almond Croissant"
        assert products[0].unit_price == 2200
        assert products[0].stock == 80
        assert products[0].is_active
        assert products[0].min_order == 10
        _, kwargs = session.request.call_args
        assert kwargs["params"] == {"status": "Aktif"}

    def test_get_product_snapshot(self, client, session):
        session.request.return_value = _response(body={"data": PRODUCT})

        snapshot = client.get_product(3).snapshot()

        assert snapshot.stock_ceiling == 80
        assert snapshot.image_ref == "http://img/3.png"

    def test_get_missing_product(self, client, session):
        session.request.return_value = _response(404, {"message": "Not found"}, reason="Not Found")
        assert client.get_product(999) is None


class TestOrders:
    def test_my_orders(self, client, session):
        session.request.return_value = _response(
            body={"data": [{"id": 11, "status": "diproses", "total_price": 50000}], "meta": {}}
        )

        orders = client.my_orders(per_page=1)

        assert orders[0].status == "diproses"
        args, kwargs = session.request.call_args
        assert args[1].endswith("/my-orders")
        assert kwargs["params"] == {"per_page": 1}

    def test_create_order(self, client, session):
        session.request.return_value = _response(
            201, {"data": {"id": 12, "status": "menunggu_konfirmasi", "total_price": 10000}}
        )

        order = client.create_order([{"id": 1, "quantity": 10}], special_notes="Before 7am")

        assert order.id == 12
        _, kwargs = session.request.call_args
        assert kwargs["json"] == {"products": [{"id": 1, "quantity": 10}], "special_notes": "Before 7am"}
