from fakes import cart_payload, product_payload


def stock_products(fake_api, *ids):
    for pid in ids:
        fake_api.on("GET", f"/opened/products/{pid}", {"data": product_payload(pid)})


# CART-001: add product to cart (not logged in)
def test_add_to_cart_guest(client, fake_api):
    stock_products(fake_api, 1)

    response = client.post("/api/cart/items", json={"product_id": 1, "quantity": 3})

    assert response.status_code == 201
    assert response.json["total_items"] == 3
    assert response.json["items"][0]["product_id"] == 1
    assert response.json["session_id"].startswith("session_")


# CART-002: add sums quantities for the same product
def test_add_twice_sums_quantities(client, fake_api):
    stock_products(fake_api, 1)
    client.post("/api/cart/items", json={"product_id": 1, "quantity": 1})
    client.post("/api/cart/items", json={"product_id": 1, "quantity": 2})

    cart = client.get("/api/cart").json

    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["total_price"] == "4500.00"
    assert client.get("/api/cart/count").json == {"count": 3}


# CART-003: quantity must be a positive integer
def test_add_rejects_bad_quantity(client, fake_api):
    stock_products(fake_api, 1)

    for bad in (0, -2, "abc"):
        response = client.post("/api/cart/items", json={"product_id": 1, "quantity": bad})
        assert response.status_code == 400
        assert response.json["error"]["code"] == "validation_error"

    assert client.get("/api/cart/count").json["count"] == 0


# CART-004: unknown products never reach the cart
def test_add_unknown_product(client, fake_api):
    response = client.post("/api/cart/items", json={"product_id": 99, "quantity": 1})

    assert response.status_code == 404
    assert "request_id" in response.json["error"]
    assert client.get("/api/cart/count").json["count"] == 0


# CART-005: update to zero removes the line
def test_update_to_zero_removes(client, fake_api):
    stock_products(fake_api, 1, 2)
    client.post("/api/cart/items", json={"product_id": 1, "quantity": 2})
    client.post("/api/cart/items", json={"product_id": 2, "quantity": 1})

    response = client.patch("/api/cart/items/1", json={"quantity": 5})
    assert response.json["total_items"] == 6

    response = client.patch("/api/cart/items/1", json={"quantity": 0})
    assert [i["product_id"] for i in response.json["items"]] == [2]

    response = client.delete("/api/cart/items/2")
    assert response.json["items"] == []


# CART-006: products deleted remotely drop out of the guest cart
def test_missing_products_are_dropped(client, fake_api):
    stock_products(fake_api, 1, 2)
    client.post("/api/cart/items", json={"product_id": 1, "quantity": 1})
    client.post("/api/cart/items", json={"product_id": 2, "quantity": 1})

    fake_api.on("GET", "/opened/products/2", {"message": "Product not found"}, status=404)
    client.application.extensions["kesimarket_api"].clear_cache()

    cart = client.get("/api/cart").json
    assert [i["product_id"] for i in cart["items"]] == [1]
    with client.session_transaction() as sess:
        assert sess["cart"] == {"1": 1}


# CART-007: cart page and form posts (guest)
def test_cart_page_guest(client, fake_api):
    stock_products(fake_api, 1)

    response = client.post("/cart/add", data={"product_id": "1", "quantity": "2"})
    assert response.status_code == 302

    page = client.get("/cart")
    assert page.status_code == 200
    assert b"Product 1" in page.data
    assert b"3000 XAF" in page.data

    client.post("/cart/clear")
    assert b"Your cart is empty" in client.get("/cart").data


# CART-008: logged-in carts live in the remote API
def test_add_to_cart_logged_in(client, fake_api, login_as):
    login_as()
    fake_api.on("POST", "/secured/cart/items", cart_payload([(1, 2)]))
    fake_api.on("GET", "/secured/cart", cart_payload([(1, 2)]))

    response = client.post("/api/cart/items", json={"product_id": 1, "quantity": 2})

    assert response.status_code == 201
    add = fake_api.calls_to("POST", "/secured/cart/items")[0]
    assert add.json == {"productId": 1, "quantity": 2}
    assert add.headers["Authorization"] == "Bearer tok-123"
    assert response.json["session_id"] is None
    with client.session_transaction() as sess:
        assert "cart" not in sess


# CART-009: updates address the remote line by product id
def test_update_cart_logged_in(client, fake_api, login_as):
    login_as()
    fake_api.on("GET", "/secured/cart", cart_payload([(1, 2)]))
    fake_api.on("PUT", "/secured/cart/items/101", cart_payload([(1, 5)]))
    fake_api.on("DELETE", "/secured/cart/items/101", cart_payload([]))

    client.patch("/api/cart/items/1", json={"quantity": 5})
    assert fake_api.calls_to("PUT", "/secured/cart/items/101")[0].json == {"quantity": 5}

    client.delete("/api/cart/items/1")
    assert len(fake_api.calls_to("DELETE", "/secured/cart/items/101")) == 1


# CART-010: nav badge shows the remote count
def test_cart_page_logged_in(client, fake_api, login_as):
    login_as(cart=[(1, 2), (2, 1)])

    page = client.get("/cart")

    assert page.status_code == 200
    assert b"Cart (3)" in page.data
    assert b"Product 2" in page.data


# CART-011: setting a quantity adds the line for guests as it does for users
def test_update_missing_line_adds_it_guest(client, fake_api):
    stock_products(fake_api, 4)

    response = client.patch("/api/cart/items/4", json={"quantity": 2})

    assert response.status_code == 200
    assert [(i["product_id"], i["quantity"]) for i in response.json["items"]] == [(4, 2)]
    with client.session_transaction() as sess:
        assert sess["cart"] == {"4": 2}
        assert sess["cart_session_id"].startswith("session_")

    response = client.patch("/api/cart/items/98", json={"quantity": 1})
    assert response.status_code == 404
    assert client.get("/api/cart/count").json["count"] == 2
