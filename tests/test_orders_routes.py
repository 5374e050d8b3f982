def order_payload(number="KM-2026-0001", status="shipped"):
    return {
        "id": 1,
        "orderNumber": number,
        "status": status,
        "paymentStatus": "paid",
        "subtotal": "12000.00",
        "shippingCost": "500.00",
        "discountAmount": "0",
        "totalAmount": "12500.00",
        "createdAt": "2026-03-02T10:00:00Z",
        "items": [
            {"id": 1, "productId": 1, "productName": "Shea butter", "productSku": "SB-1",
             "quantity": 2, "unitPrice": "6000.00", "totalPrice": "12000.00"},
        ],
    }


def test_orders_require_login(client, fake_api):
    response = client.get("/orders")

    assert response.status_code == 302
    assert "/login?next=" in response.headers["Location"]
    assert fake_api.calls == []


def test_order_history(client, fake_api, login_as):
    login_as()
    fake_api.on("GET", "/secured/orders/my-orders", {"data": {
        "data": [order_payload()],
        "meta": {"total": 1, "perPage": 10, "currentPage": 1, "lastPage": 1},
    }})

    response = client.get("/orders")

    assert response.status_code == 200
    assert b"KM-2026-0001" in response.data
    assert b"Shipped" in response.data
    assert b"12500 XAF" in response.data
    assert b"02/03/2026" in response.data
    call = fake_api.calls_to("GET", "/secured/orders/my-orders")[0]
    assert call.params == {"page": 1, "limit": 10}
    assert call.headers["Authorization"] == "Bearer tok-123"


def test_empty_order_history(client, fake_api, login_as):
    login_as()
    fake_api.on("GET", "/secured/orders/my-orders", {"data": {"data": [], "meta": {"total": 0}}})

    response = client.get("/orders?page=abc")

    assert response.status_code == 200
    assert b"You have not placed any orders yet." in response.data


def test_order_detail(client, fake_api, login_as):
    login_as()
    fake_api.on("GET", "/secured/orders/KM-2026-0001", {"data": order_payload()})

    response = client.get("/orders/KM-2026-0001")

    assert response.status_code == 200
    assert b"Shea butter" in response.data
    assert b"SB-1" in response.data
    assert b"500 XAF" in response.data


def test_unknown_order_is_404(client, fake_api, login_as):
    login_as()
    fake_api.on("GET", "/secured/orders/NOPE", {"message": "Order not found"}, status=404)

    response = client.get("/orders/NOPE")

    assert response.status_code == 404
