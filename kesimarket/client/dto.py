"""Data-transfer objects mirroring the remote REST resources.

The API sends camelCase keys; every model exposes snake_case attributes and
accepts both spellings. Nothing here enforces business rules, the remote API
owns the lifecycle of these records.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Generic, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

LOW_STOCK_THRESHOLD = 5


class Dto(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FileRef(Dto):
    id: Optional[int] = None
    url: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None


class Category(Dto):
    id: int
    name: str
    slug: str = ""
    description: Optional[str] = None
    parent_id: Optional[int] = None
    is_active: bool = True
    sort_order: int = 0
    image_url: Optional[str] = None
    product_count: Optional[int] = None
    children: List["Category"] = Field(default_factory=list)


class Brand(Dto):
    id: int
    name: str
    slug: str = ""
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    product_count: Optional[int] = None


class Product(Dto):
    id: int
    name: str
    slug: str = ""
    description: Optional[str] = None
    short_description: Optional[str] = None
    sku: Optional[str] = None
    price: Decimal = Decimal("0")
    sale_price: Optional[Decimal] = None
    stock_quantity: int = 0
    manage_stock: bool = False
    in_stock: bool = True
    is_featured: bool = False
    is_active: bool = True
    brand_id: Optional[int] = None
    brand: Optional[Brand] = None
    categories: List[Category] = Field(default_factory=list)
    files: List[FileRef] = Field(default_factory=list)
    image_url: Optional[str] = None
    average_rating: Optional[float] = None
    review_count: Optional[int] = None

    @field_validator("sale_price", mode="before")
    @classmethod
    def blank_sale_price(cls, value: Any) -> Any:
        # the API sends "" or 0 for "no sale price"
        if value in ("", 0, "0", "0.00"):
            return None
        return value

    @property
    def effective_price(self) -> Decimal:
        return self.sale_price if self.sale_price is not None else self.price

    @property
    def on_sale(self) -> bool:
        return self.sale_price is not None and self.sale_price < self.price

    @property
    def main_image(self) -> Optional[str]:
        if self.image_url:
            return self.image_url
        return self.files[0].url if self.files else None

    @property
    def availability(self) -> str:
        if not self.in_stock or (self.manage_stock and self.stock_quantity <= 0):
            return "out_of_stock"
        if self.manage_stock and self.stock_quantity < LOW_STOCK_THRESHOLD:
            return "limited"
        return "in_stock"


class User(Dto):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    role: Literal["customer", "admin", "vendor"] = "customer"
    is_active: bool = True
    is_verified: bool = False

    @property
    def full_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.email

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class CartItem(Dto):
    id: Optional[int] = None
    product_id: int
    product: Optional[Product] = None
    quantity: int

    @property
    def line_total(self) -> Decimal:
        if self.product is None:
            return Decimal("0")
        return self.product.effective_price * self.quantity


class Cart(Dto):
    id: Optional[int] = None
    items: List[CartItem] = Field(default_factory=list)
    total_items: int = 0
    total_price: Decimal = Decimal("0")

    @classmethod
    def from_lines(cls, lines: list[tuple[Product, int]]) -> "Cart":
        """Build a cart for display from (product, quantity) lines."""
        items = [CartItem(product_id=p.id, product=p, quantity=q) for p, q in lines]
        return cls(
            items=items,
            total_items=sum(i.quantity for i in items),
            total_price=sum((i.line_total for i in items), Decimal("0")),
        )

    def quantity_of(self, product_id: int) -> int:
        for item in self.items:
            if item.product_id == product_id:
                return item.quantity
        return 0


class Favorite(Dto):
    id: Optional[int] = None
    product_id: int
    product: Optional[Product] = None


ORDER_STATUS_LABELS = {
    "pending": "Pending",
    "confirmed": "Confirmed",
    "processing": "Processing",
    "shipped": "Shipped",
    "delivered": "Delivered",
    "cancelled": "Cancelled",
}


class OrderItem(Dto):
    id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: str = ""
    product_sku: Optional[str] = None
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")


class Order(Dto):
    id: int
    order_number: str
    status: str = "pending"
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    delivery_method: Optional[str] = None
    subtotal: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    promo_code: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    items: List[OrderItem] = Field(default_factory=list)

    @property
    def status_label(self) -> str:
        return ORDER_STATUS_LABELS.get(self.status, self.status.replace("_", " ").capitalize())

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)


class AuthResult(Dto):
    user: User
    token: str


class PageMeta(Dto):
    total: int = 0
    per_page: int = 20
    current_page: int = 1
    last_page: int = 1

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.last_page


T = TypeVar("T", bound=Dto)


class Page(BaseModel, Generic[T]):
    data: List[T]
    meta: PageMeta


def parse_page(payload: Any, model: Type[T], page: int = 1, per_page: int = 20) -> Page[T]:
    """Accept a {data, meta} envelope or a bare list.

    A bare list gets simulated pagination metadata from its length.
    """
    if isinstance(payload, dict) and "data" in payload:
        rows = payload.get("data") or []
        meta = payload.get("meta")
    else:
        rows = payload or []
        meta = None

    items = [model.model_validate(r) for r in rows]
    if meta:
        page_meta = PageMeta.model_validate(meta)
    else:
        total = len(items)
        page_meta = PageMeta(
            total=total,
            per_page=per_page,
            current_page=page,
            last_page=max(1, -(-total // per_page)) if per_page else 1,
        )
    return Page[model](data=items, meta=page_meta)


def parse_list(payload: Any, model: Type[T]) -> list[T]:
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    return [model.model_validate(r) for r in payload or []]


Category.model_rebuild()
