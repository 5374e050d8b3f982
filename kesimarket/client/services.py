"""One service per remote resource.

Services are thin: they build paths and params, call the shared ApiClient,
parse DTOs and invalidate cached listings after mutations. Errors from the
remote API propagate as ``ApiError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from kesimarket.app.common.casing import compact_params, keys_to_camel
from kesimarket.client.dto import (
    AuthResult,
    Brand,
    Cart,
    Category,
    Favorite,
    Order,
    Page,
    Product,
    User,
    parse_list,
    parse_page,
)
from kesimarket.client.http import ApiClient

PRODUCTS_PREFIX = "/opened/products"
CATEGORIES_PREFIX = "/opened/categories"
BRANDS_PREFIX = "/opened/brands"

FEATURED_CACHE_TIME = 10 * 60
TAXONOMY_CACHE_TIME = 15 * 60

AVAILABILITY_PARAMS = {
    "in_stock": "true",
    "out_of_stock": "false",
    "limited": "limited",
}


@dataclass
class SearchFilters:
    query: Optional[str] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    page: int = 1
    per_page: int = 20
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    availability: List[str] = field(default_factory=list)

    def to_params(self) -> Dict[str, Any]:
        in_stock = [AVAILABILITY_PARAMS[a] for a in self.availability if a in AVAILABILITY_PARAMS]
        return compact_params({
            "search": self.query,
            "category_id": self.category_id,
            "brand_id": self.brand_id,
            "page": self.page,
            "per_page": self.per_page,
            "sort_by": self.sort_by,
            "sort_order": self.sort_order if self.sort_by else None,
            "min_price": self.min_price or None,
            "max_price": self.max_price or None,
            "in_stock": ",".join(in_stock) if in_stock else None,
        })


class Service:
    def __init__(self, client: Optional[ApiClient] = None) -> None:
        self._client = client

    @property
    def client(self) -> ApiClient:
        if self._client is not None:
            return self._client
        from kesimarket.app.extensions import api

        return api.client

    @staticmethod
    def body(data: Dict[str, Any]) -> Dict[str, Any]:
        return keys_to_camel(compact_params(data))

    @staticmethod
    def update_body(data: Dict[str, Any]) -> Dict[str, Any]:
        """Full replacement body: None and [] clear the remote value."""
        return keys_to_camel(data)


class ProductsService(Service):
    def list(self, filters: Optional[SearchFilters] = None) -> Page[Product]:
        filters = filters or SearchFilters()
        resp = self.client.get(PRODUCTS_PREFIX, params=filters.to_params())
        return parse_page(resp, Product, filters.page, filters.per_page)

    def get(self, slug_or_id: str | int) -> Product:
        resp = self.client.get(f"{PRODUCTS_PREFIX}/{slug_or_id}")
        return Product.model_validate(resp["data"])

    def featured(self) -> List[Product]:
        resp = self.client.get(f"{PRODUCTS_PREFIX}/featured", cache_time=FEATURED_CACHE_TIME)
        return parse_list(resp, Product)

    def new_arrivals(self, limit: int = 12) -> List[Product]:
        resp = self.client.get(f"{PRODUCTS_PREFIX}/new", params={"limit": limit})
        return parse_list(resp, Product)

    def similar(self, slug: str) -> List[Product]:
        resp = self.client.get(f"{PRODUCTS_PREFIX}/{slug}/similar")
        return parse_list(resp, Product)

    def by_category(self, slug: str, filters: Optional[SearchFilters] = None) -> Page[Product]:
        filters = filters or SearchFilters()
        params = filters.to_params()
        params.pop("category_id", None)
        resp = self.client.get(f"{PRODUCTS_PREFIX}/category/{slug}", params=params)
        return parse_page(resp, Product, filters.page, filters.per_page)

    def by_brand(self, slug: str, filters: Optional[SearchFilters] = None) -> Page[Product]:
        filters = filters or SearchFilters()
        params = filters.to_params()
        params.pop("brand_id", None)
        resp = self.client.get(f"{PRODUCTS_PREFIX}/brand/{slug}", params=params)
        return parse_page(resp, Product, filters.page, filters.per_page)

    def search(self, query: str, page: int = 1, per_page: int = 20) -> Page[Product]:
        return self.list(SearchFilters(query=query, page=page, per_page=per_page))

    # Admin endpoints (secured)

    def create(self, data: Dict[str, Any]) -> Product:
        resp = self.client.post("/secured/products", self.body(data))
        self.client.invalidate(PRODUCTS_PREFIX)
        return Product.model_validate(resp["data"])

    def update(self, product_id: int, data: Dict[str, Any]) -> Product:
        resp = self.client.put(f"/secured/products/{product_id}", self.update_body(data))
        self.client.invalidate(PRODUCTS_PREFIX)
        return Product.model_validate(resp["data"])

    def delete(self, product_id: int) -> None:
        self.client.delete(f"/secured/products/{product_id}")
        self.client.invalidate(PRODUCTS_PREFIX)

    def bulk_delete(self, product_ids: Iterable[int]) -> None:
        self.client.post("/secured/products/bulk-delete", {"productIds": list(product_ids)})
        self.client.invalidate(PRODUCTS_PREFIX)


class CategoriesService(Service):
    def list(self) -> List[Category]:
        resp = self.client.get(CATEGORIES_PREFIX, cache_time=TAXONOMY_CACHE_TIME)
        return parse_list(resp, Category)

    def get(self, slug_or_id: str | int) -> Category:
        resp = self.client.get(f"{CATEGORIES_PREFIX}/{slug_or_id}")
        return Category.model_validate(resp["data"])

    def main(self) -> List[Category]:
        resp = self.client.get(f"{CATEGORIES_PREFIX}/main", cache_time=TAXONOMY_CACHE_TIME)
        return parse_list(resp, Category)

    def children(self, parent_id: int) -> List[Category]:
        resp = self.client.get(f"{CATEGORIES_PREFIX}/{parent_id}/children")
        return parse_list(resp, Category)

    def create(self, data: Dict[str, Any]) -> Category:
        resp = self.client.post("/secured/categories", self.body(data))
        self.client.invalidate(CATEGORIES_PREFIX)
        return Category.model_validate(resp["data"])

    def update(self, category_id: int, data: Dict[str, Any]) -> Category:
        resp = self.client.put(f"/secured/categories/{category_id}", self.update_body(data))
        self.client.invalidate(CATEGORIES_PREFIX)
        return Category.model_validate(resp["data"])

    def delete(self, category_id: int) -> None:
        self.client.delete(f"/secured/categories/{category_id}")
        self.client.invalidate(CATEGORIES_PREFIX)
        # listings embed category data
        self.client.invalidate(PRODUCTS_PREFIX)


class BrandsService(Service):
    def list(self, page: int = 1, per_page: int = 100, query: Optional[str] = None) -> Page[Brand]:
        params = compact_params({"page": page, "per_page": per_page, "search": query})
        resp = self.client.get(BRANDS_PREFIX, params=params, cache_time=TAXONOMY_CACHE_TIME)
        return parse_page(resp, Brand, page, per_page)

    def get(self, slug_or_id: str | int) -> Brand:
        resp = self.client.get(f"{BRANDS_PREFIX}/{slug_or_id}")
        return Brand.model_validate(resp["data"])

    def featured(self) -> List[Brand]:
        resp = self.client.get(f"{BRANDS_PREFIX}/featured", cache_time=TAXONOMY_CACHE_TIME)
        return parse_list(resp, Brand)

    def create(self, data: Dict[str, Any]) -> Brand:
        resp = self.client.post("/secured/brands", self.body(data))
        self.client.invalidate(BRANDS_PREFIX)
        return Brand.model_validate(resp["data"])

    def update(self, brand_id: int, data: Dict[str, Any]) -> Brand:
        resp = self.client.put(f"/secured/brands/{brand_id}", self.update_body(data))
        self.client.invalidate(BRANDS_PREFIX)
        return Brand.model_validate(resp["data"])

    def delete(self, brand_id: int) -> None:
        self.client.delete(f"/secured/brands/{brand_id}")
        self.client.invalidate(BRANDS_PREFIX)
        self.client.invalidate(PRODUCTS_PREFIX)

    def bulk_delete(self, brand_ids: Iterable[int]) -> None:
        self.client.post("/secured/brands/bulk-delete", {"brandIds": list(brand_ids)})
        self.client.invalidate(BRANDS_PREFIX)
        self.client.invalidate(PRODUCTS_PREFIX)


class UsersService(Service):
    @staticmethod
    def _auth_result(resp: Dict[str, Any]) -> AuthResult:
        data = resp.get("data") or {}
        token = data.get("token") or data.get("accessToken") or data.get("access_token")
        return AuthResult.model_validate({"user": data.get("user"), "token": token})

    def login(self, email: str, password: str) -> AuthResult:
        resp = self.client.post("/opened/auth/login", {"email": email, "password": password})
        return self._auth_result(resp)

    def register(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Returns the raw payload: the API may answer with a token or with
        an OTP challenge (``userId``) to verify first."""
        resp = self.client.post("/opened/auth/register", self.body(data))
        return resp.get("data") or {}

    def verify_otp(self, user_id: int, otp: str) -> AuthResult:
        resp = self.client.post("/opened/auth/verify-otp", {"userId": user_id, "otp": otp})
        return self._auth_result(resp)

    def logout(self) -> None:
        self.client.post("/secured/auth/logout")

    def me(self) -> User:
        resp = self.client.get("/secured/users/me", cache=False)
        return User.model_validate(resp["data"])

    def update_profile(self, data: Dict[str, Any]) -> User:
        resp = self.client.put("/secured/users/me", self.update_body(data))
        return User.model_validate(resp["data"])

    def request_password_reset(self, email: str) -> None:
        self.client.post("/opened/auth/password-reset", {"email": email})

    def reset_password(self, token: str, password: str) -> None:
        self.client.post("/opened/auth/password-reset/confirm", {"token": token, "password": password})

    # Admin endpoints (secured)

    def list_users(self, page: int = 1, per_page: int = 20, query: Optional[str] = None) -> Page[User]:
        params = compact_params({"page": page, "per_page": per_page, "search": query})
        resp = self.client.get("/secured/users", params=params)
        return parse_page(resp, User, page, per_page)

    def delete_user(self, user_id: int) -> None:
        self.client.delete(f"/secured/users/{user_id}")

    def bulk_delete_users(self, user_ids: Iterable[int]) -> None:
        self.client.post("/secured/users/bulk-delete", {"userIds": list(user_ids)})


class CartService(Service):
    @staticmethod
    def _cart(resp: Dict[str, Any]) -> Cart:
        data = resp.get("data")
        if not data:
            return Cart()
        return Cart.model_validate(data)

    def get(self) -> Cart:
        return self._cart(self.client.get("/secured/cart", cache=False))

    def add_item(self, product_id: int, quantity: int = 1) -> Cart:
        return self._cart(self.client.post("/secured/cart/items", {"productId": product_id, "quantity": quantity}))

    def update_item(self, item_id: int, quantity: int) -> Cart:
        return self._cart(self.client.put(f"/secured/cart/items/{item_id}", {"quantity": quantity}))

    def remove_item(self, item_id: int) -> Cart:
        return self._cart(self.client.delete(f"/secured/cart/items/{item_id}"))

    def set_product_quantity(self, product_id: int, quantity: int) -> Cart:
        """Carts are addressed by item id remotely; views work with product ids."""
        cart = self.get()
        item = next((i for i in cart.items if i.product_id == product_id), None)
        if item is None:
            return self.add_item(product_id, quantity) if quantity > 0 else cart
        if quantity <= 0:
            return self.remove_item(item.id)
        return self.update_item(item.id, quantity)

    def clear(self) -> None:
        self.client.delete("/secured/cart")

    def merge(self, session_id: str, items: List[Dict[str, int]]) -> Cart:
        payload = {
            "sessionId": session_id,
            "items": [{"productId": i["product_id"], "quantity": i["quantity"]} for i in items],
        }
        return self._cart(self.client.post("/secured/cart/merge", payload))

    def item_count(self) -> int:
        return self.get().total_items


class FavoritesService(Service):
    def list(self, page: int = 1, per_page: int = 50) -> Page[Favorite]:
        resp = self.client.get("/secured/favorites", params={"page": page, "limit": per_page})
        return parse_page(resp, Favorite, page, per_page)

    def add(self, product_id: int) -> None:
        self.client.post("/secured/favorites", {"productId": product_id})

    def remove(self, product_id: int) -> None:
        self.client.delete(f"/secured/favorites/{product_id}")

    def toggle(self, product_id: int) -> bool:
        """Returns True when the product is a favorite afterwards."""
        resp = self.client.post("/secured/favorites/toggle", {"productId": product_id})
        data = resp.get("data") or {}
        if "isFavorite" in data:
            return bool(data["isFavorite"])
        return data.get("action") == "added"

    def is_favorite(self, product_id: int) -> bool:
        resp = self.client.get(f"/secured/favorites/check/{product_id}")
        return bool((resp.get("data") or {}).get("isFavorite"))

    def product_ids(self) -> set[int]:
        return {f.product_id for f in self.list().data}


class OrdersService(Service):
    """Read-only order history of the logged-in customer."""

    def my_orders(self, page: int = 1, per_page: int = 10) -> Page[Order]:
        resp = self.client.get("/secured/orders/my-orders", params={"page": page, "limit": per_page})
        data = resp.get("data")
        # the listing comes wrapped twice: {data: {data: [...], meta}}
        payload = data if isinstance(data, dict) else resp
        return parse_page(payload, Order, page, per_page)

    def get(self, order_number: str) -> Order:
        resp = self.client.get(f"/secured/orders/{order_number}")
        return Order.model_validate(resp["data"])


class StatsService(Service):
    def dashboard(self) -> Dict[str, int]:
        """Admin overview counts, read from the listings' pagination totals."""
        products = parse_page(self.client.get(PRODUCTS_PREFIX, params={"per_page": 1}, cache=False), Product)
        brands = parse_page(self.client.get(BRANDS_PREFIX, params={"per_page": 1}, cache=False), Brand)
        categories = parse_list(self.client.get(CATEGORIES_PREFIX, cache=False), Category)
        users = parse_page(self.client.get("/secured/users", params={"per_page": 1}), User)
        return {
            "total_products": products.meta.total,
            "total_brands": brands.meta.total,
            "total_categories": len(categories),
            "total_users": users.meta.total,
        }


products = ProductsService()
categories = CategoriesService()
brands = BrandsService()
users = UsersService()
carts = CartService()
favorites = FavoritesService()
orders = OrdersService()
stats = StatsService()
