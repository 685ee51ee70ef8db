"""
models.py
Pydantic models for catalog, cart, users and orders.

API resources use the backend's field names (nama_produk, harga_grosir, ...);
they are accepted as aliases and exposed under English names.
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# Minimum purchase when the catalog does not say otherwise
DEFAULT_MIN_ORDER = 10

ACTIVE_PRODUCT_STATUS = "Aktif"

OrderStatus = Literal["menunggu_konfirmasi", "diproses", "selesai", "dibatalkan"]


# -------------------------
# Catalog / cart
# -------------------------
class ProductSnapshot(BaseModel):
    """Copy of a catalog product taken when it goes into the cart."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    unit_price: float = Field(ge=0)
    stock_ceiling: int = Field(ge=0)
    image_ref: Optional[str] = None

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> "ProductSnapshot":
        return CatalogProduct.model_validate(resource).snapshot()


class CatalogProduct(BaseModel):
    """Live catalog record as returned by GET /products."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str = Field(alias="nama_produk")
    description: Optional[str] = Field(default=None, alias="deskripsi")
    unit_price: float = Field(alias="harga_grosir")
    stock: int = Field(alias="ketersediaan_stok")
    image_url: Optional[str] = Field(default=None, alias="gambar_url")
    status: Optional[str] = None
    min_order: int = DEFAULT_MIN_ORDER

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_PRODUCT_STATUS

    def snapshot(self) -> ProductSnapshot:
        return ProductSnapshot(
            id=self.id,
            name=self.name,
            unit_price=self.unit_price,
            stock_ceiling=self.stock,
            image_ref=self.image_url,
        )


class CartItem(BaseModel):
    product: ProductSnapshot
    quantity: int = Field(gt=0)

    @property
    def line_total(self) -> float:
        return self.product.unit_price * self.quantity


# -------------------------
# Users / auth
# -------------------------
class UserRecord(BaseModel):
    id: int
    name: str
    email: str
    phone_number: Optional[str] = None
    address: Optional[str] = None
    role: Optional[str] = None
    status: Optional[str] = None


class AuthResult(BaseModel):
    user: UserRecord
    token: str
    token_type: str = "Bearer"


# -------------------------
# Orders
# -------------------------
class OrderRecord(BaseModel):
    id: int
    user_id: Optional[int] = None
    status: OrderStatus
    total_price: float = 0.0
    delivery_date: Optional[str] = None
    special_notes: Optional[str] = None
    created_at: Optional[str] = None
