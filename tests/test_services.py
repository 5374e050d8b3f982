from kesimarket.client.http import ApiClient
from kesimarket.client.services import (
    CartService,
    CategoriesService,
    FavoritesService,
    ProductsService,
    SearchFilters,
    UsersService,
)
from fakes import FakeApi, cart_payload, product_payload, user_payload


def make_client(fake, token="tok"):
    return ApiClient(base_url="http://api.test", credentials=lambda: (token, None), session=fake)


def test_search_filters_to_params():
    filters = SearchFilters(query="soap", sort_order="desc", availability=["out_of_stock", "bogus"])
    assert filters.to_params() == {"search": "soap", "page": 1, "per_page": 20, "in_stock": "false"}


def test_product_mutations_invalidate_listings():
    fake = FakeApi()
    fake.on("GET", "/opened/products", {"data": [product_payload(1)]})
    fake.on("PUT", "/secured/products/1", lambda body, params: {"data": product_payload(1, **body)})
    fake.on("DELETE", "/secured/products/1", None)
    service = ProductsService(make_client(fake))

    service.list()
    service.list()
    updated = service.update(1, {"name": "Renamed", "sale_price": None})
    service.list()
    service.delete(1)
    service.list()

    assert updated.name == "Renamed"
    assert fake.calls_to("PUT", "/secured/products/1")[0].json == {"name": "Renamed", "salePrice": None}
    assert len(fake.calls_to("GET", "/opened/products")) == 3


def test_category_children():
    fake = FakeApi()
    fake.on("GET", "/opened/categories/4/children", {"data": [{"id": 9, "name": "Oils", "parentId": 4}]})

    children = CategoriesService(make_client(fake)).children(4)

    assert children[0].parent_id == 4


def test_login_accepts_access_token_key():
    fake = FakeApi()
    fake.on("POST", "/opened/auth/login", {"data": {"user": user_payload(), "accessToken": "abc"}})

    auth = UsersService(make_client(fake, token=None)).login("jane@example.com", "secret123")

    assert auth.token == "abc"
    assert auth.user.email == "jane@example.com"


def test_password_reset_endpoints():
    fake = FakeApi()
    fake.on("POST", "/opened/auth/password-reset", {"data": None})
    fake.on("POST", "/opened/auth/password-reset/confirm", {"data": None})
    service = UsersService(make_client(fake, token=None))

    service.request_password_reset("jane@example.com")
    service.reset_password("reset-token", "Secret123")

    assert fake.calls_to("POST", "/opened/auth/password-reset/confirm")[0].json == {
        "token": "reset-token",
        "password": "Secret123",
    }


def test_favorites_endpoints():
    fake = FakeApi()
    fake.on("POST", "/secured/favorites", {"data": None})
    fake.on("DELETE", "/secured/favorites/3", {"data": None})
    fake.on("GET", "/secured/favorites/check/3", {"data": {"isFavorite": True}})
    fake.on("POST", "/secured/favorites/toggle", {"data": {"action": "removed"}})
    fake.on("GET", "/secured/favorites", {"data": [{"id": 1, "productId": 3}, {"id": 2, "productId": 8}]})
    service = FavoritesService(make_client(fake))

    service.add(3)
    service.remove(3)

    assert fake.calls_to("POST", "/secured/favorites")[0].json == {"productId": 3}
    assert service.is_favorite(3) is True
    assert service.toggle(3) is False
    assert service.product_ids() == {3, 8}


def test_cart_clear_and_empty_response():
    fake = FakeApi()
    fake.on("DELETE", "/secured/cart", None)
    fake.on("GET", "/secured/cart", {"data": None})
    service = CartService(make_client(fake))

    service.clear()

    assert service.get().items == []
    assert service.item_count() == 0


def test_set_product_quantity_adds_missing_line():
    fake = FakeApi()
    fake.on("GET", "/secured/cart", cart_payload([(1, 1)]))
    fake.on("POST", "/secured/cart/items", cart_payload([(1, 1), (2, 3)]))
    service = CartService(make_client(fake))

    cart = service.set_product_quantity(2, 3)

    assert cart.quantity_of(2) == 3
    assert service.set_product_quantity(5, 0).quantity_of(5) == 0
