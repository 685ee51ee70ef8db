"""
api_client.py
HTTP client for the pastry shop REST API (the external backend).

Includes:
- login / logout / me
- list_products / get_product
- my_orders
- create_order

Call conventions:
- network failure -> None (the UI keeps what it has)
- 401 -> the stored token is dropped, returns None
- any other non-2xx -> ApiError with the backend's message
"""

from typing import Any, Dict, List, Optional, Tuple

import requests
import structlog
from pydantic import ValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from storefront.identity import get_token
from storefront.models import AuthResult, CatalogProduct, OrderRecord, UserRecord
from storefront.storage import LEGACY_TOKEN_KEY, TOKEN_KEY, Storage, StorageUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = (2, 8)  # (connect, read)


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"Connection": "keep-alive"})

    retry_strategy = Retry(
        total=2,
        backoff_factor=0.1,
        status_forcelist=[500, 502, 503, 504],
    )
    adapter = HTTPAdapter(max_retries=retry_strategy, pool_connections=10, pool_maxsize=20)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _error_message(resp: requests.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.reason or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return default


class ApiClient:
    def __init__(
        self,
        base_url: str,
        storage: Storage,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.storage = storage
        self.timeout = timeout
        self._session = session if session is not None else build_session()

    # =====================================================
    # HTTP helpers
    # =====================================================

    def _headers(self, with_auth: bool = True) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if with_auth:
            token = get_token(self.storage)
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    def _drop_token(self) -> None:
        # either key may hold the credential that was just sent
        for key in (TOKEN_KEY, LEGACY_TOKEN_KEY):
            try:
                self.storage.remove(key)
            except StorageUnavailable as e:
                logger.warning("Could not drop rejected token", key=key, error=str(e))

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(
                method,
                url,
                params=params,
                json=json_data,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.warning("API unreachable", method=method, path=path, error=str(e))
            return None

        if resp.status_code == 401:
            logger.info("API rejected credentials, dropping token", path=path)
            self._drop_token()
            return None

        if not resp.ok:
            raise ApiError(_error_message(resp, f"Request failed: {resp.reason}"), resp.status_code)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError:
            raise ApiError("Invalid JSON in API response", resp.status_code)

    # =====================================================
    # Auth
    # =====================================================

    def login(self, email: str, password: str) -> AuthResult:
        """
        POST /login. Raises ApiError on bad credentials, unreachable server
        or a response without data.token. Does not store anything.
        """
        url = f"{self.base_url}/login"
        try:
            resp = self._session.post(
                url,
                json={"email": email, "password": password},
                headers=self._headers(with_auth=False),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Cannot reach the server at {self.base_url}: {e}")

        if not resp.ok:
            raise ApiError(_error_message(resp, "Invalid credentials"), resp.status_code)

        try:
            body = resp.json()
        except ValueError:
            raise ApiError("Invalid response format from server", resp.status_code)

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict) or not data.get("token"):
            raise ApiError("Invalid response format from server", resp.status_code)

        try:
            return AuthResult.model_validate(data)
        except ValidationError as e:
            raise ApiError(f"Invalid response format from server: {e}", resp.status_code)

    def logout(self) -> bool:
        return self._request("POST", "/logout") is not None

    def me(self) -> Optional[UserRecord]:
        body = self._request("GET", "/user")
        if not body:
            return None
        return UserRecord.model_validate(body["data"]["user"])

    # =====================================================
    # Catalog
    # =====================================================

    def list_products(self, status: Optional[str] = None) -> List[CatalogProduct]:
        params = {"status": status} if status else None
        body = self._request("GET", "/products", params=params)
        if not body:
            return []
        return [CatalogProduct.model_validate(p) for p in body.get("data") or []]

    def get_product(self, product_id: int) -> Optional[CatalogProduct]:
        try:
            body = self._request("GET", f"/products/{product_id}")
        except ApiError as e:
            if e.status_code == 404:
                return None
            raise
        if not body:
            return None
        return CatalogProduct.model_validate(body["data"])

    # =====================================================
    # Orders
    # =====================================================

    def my_orders(self, per_page: Optional[int] = None, page: Optional[int] = None) -> Optional[List[OrderRecord]]:
        """Orders of the logged-in client, newest first. None when the API could not be asked."""
        params: Dict[str, Any] = {}
        if per_page:
            params["per_page"] = per_page
        if page:
            params["page"] = page

        body = self._request("GET", "/my-orders", params=params or None)
        if body is None:
            return None
        return [OrderRecord.model_validate(o) for o in body.get("data") or []]

    def create_order(
        self,
        products: List[Dict[str, int]],
        special_notes: Optional[str] = None,
        delivery_date: Optional[str] = None,
    ) -> Optional[OrderRecord]:
        payload: Dict[str, Any] = {"products": products}
        if special_notes:
            payload["special_notes"] = special_notes
        if delivery_date:
            payload["delivery_date"] = delivery_date

        body = self._request("POST", "/orders", json_data=payload)
        if not body:
            return None
        return OrderRecord.model_validate(body["data"])
