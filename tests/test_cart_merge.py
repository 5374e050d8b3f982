from kesimarket.app.models import CartSession
from kesimarket.client.dto import CartItem
from kesimarket.modules.cart.session import generate_session_id, reconcile
from fakes import cart_payload, product_payload, user_payload


def add_anonymous(client, fake_api, product_id, quantity):
    fake_api.on("GET", f"/opened/products/{product_id}", {"data": product_payload(product_id)})
    return client.post("/api/cart/items", json={"product_id": product_id, "quantity": quantity})


def session_value(client, key):
    with client.session_transaction() as sess:
        return sess.get(key)


def login_with_failing_merge(client, fake_api):
    fake_api.on("POST", "/opened/auth/login", {"data": {"user": user_payload(), "token": "tok-123"}})
    fake_api.on("GET", "/secured/cart", cart_payload([]))
    fake_api.on("POST", "/secured/cart/merge", {"message": "down"}, status=503)
    return client.post("/login", data={"email": "jane@example.com", "password": "secret123"})


def test_session_id_shape():
    sid = generate_session_id()
    assert sid.startswith("session_")
    assert len(sid) > len("session_") + 16
    assert sid != generate_session_id()


def test_reconcile_dedupes_and_sums():
    remote = [CartItem(product_id=3, quantity=1), CartItem(product_id=1, quantity=2)]
    lines = reconcile(remote, {"1": 3, "5": 1, "3": 0})
    assert lines == [
        {"product_id": 1, "quantity": 5},
        {"product_id": 3, "quantity": 1},
        {"product_id": 5, "quantity": 1},
    ]


def test_reconcile_drops_non_positive_lines():
    assert reconcile([], {"2": 0}) == []


# MERGE-001: anonymous lines and the remote cart become one merge request
def test_login_merges_anonymous_cart_once(client, fake_api, login_as):
    add_anonymous(client, fake_api, 1, 2)
    add_anonymous(client, fake_api, 2, 1)
    add_anonymous(client, fake_api, 1, 1)
    sid = session_value(client, "cart_session_id")
    assert session_value(client, "cart") == {"1": 3, "2": 1}

    resp = login_as(cart=[(1, 4)])
    assert resp.status_code == 302

    merges = fake_api.calls_to("POST", "/secured/cart/merge")
    assert len(merges) == 1
    assert merges[0].json == {
        "sessionId": sid,
        "items": [{"productId": 1, "quantity": 7}, {"productId": 2, "quantity": 1}],
    }
    assert merges[0].headers["Authorization"] == "Bearer tok-123"
    assert session_value(client, "cart") is None
    assert session_value(client, "cart_session_id") != sid


# MERGE-002: logging in again in the same session sends nothing
def test_repeated_login_does_not_merge_again(client, fake_api, login_as):
    add_anonymous(client, fake_api, 1, 2)
    login_as()
    login_as()
    assert len(fake_api.calls_to("POST", "/secured/cart/merge")) == 1


# MERGE-003: an empty anonymous cart never reaches the API
def test_empty_cart_skips_merge(client, fake_api, login_as):
    login_as()
    assert fake_api.calls_to("POST", "/secured/cart/merge") == []
    assert fake_api.calls_to("GET", "/secured/cart") == []


# MERGE-004: a session id merged elsewhere is not merged twice
def test_already_claimed_session_is_not_merged(app, client, fake_api, login_as):
    sid = generate_session_id()
    with app.app_context():
        CartSession.record(sid)
        assert CartSession.claim(sid) is True
    with client.session_transaction() as sess:
        sess["cart_session_id"] = sid
        sess["cart"] = {"4": 2}

    login_as()

    assert fake_api.calls_to("POST", "/secured/cart/merge") == []
    assert session_value(client, "cart") is None


# MERGE-005: a failed merge keeps the local cart and frees the claim
def test_failed_merge_keeps_local_cart(app, client, fake_api, login_as):
    add_anonymous(client, fake_api, 1, 2)
    sid = session_value(client, "cart_session_id")
    login_as()
    assert len(fake_api.calls_to("POST", "/secured/cart/merge")) == 1

    # fresh visitor whose merge fails
    with client.session_transaction() as sess:
        sess.clear()
        sess["cart_session_id"] = "session_failing"
        sess["cart"] = {"1": 1}
    fake_api.on("POST", "/secured/cart/merge", {"message": "down"}, status=500)
    fake_api.on("POST", "/opened/auth/login", {"data": {"user": {"id": 8, "email": "b@c.io"}, "token": "t"}})
    resp = client.post("/login", data={"email": "b@c.io", "password": "secret123"})

    assert resp.status_code == 302
    flashes = session_value(client, "_flashes") or []
    assert any("could not sync your cart" in message for _, message in flashes)
    assert session_value(client, "cart") == {"1": 1}
    with app.app_context():
        row = CartSession.query.filter_by(session_id="session_failing").first()
        assert row.merged_at is None
        merged = CartSession.query.filter_by(session_id=sid).first()
        assert merged.merged_at is not None
        assert merged.user_id == 7


# MERGE-006: logout clears local state and starts a new anonymous session
def test_logout_resets_cart_state(client, fake_api, login_as):
    login_as()
    sid = session_value(client, "cart_session_id")
    fake_api.on("POST", "/secured/auth/logout", {"data": None})

    client.post("/logout")

    assert len(fake_api.calls_to("POST", "/secured/auth/logout")) == 1
    assert session_value(client, "access_token") is None
    assert session_value(client, "cart_merged") is None
    assert session_value(client, "cart_session_id") not in (None, sid)


# MERGE-007: an expired token ends the login, so the next login merges again
def test_login_after_expired_token_merges(client, fake_api, login_as):
    login_as()
    fake_api.on("GET", "/secured/cart", {"message": "Token expired"}, status=401)

    response = client.get("/cart")
    assert response.status_code == 302
    assert "/login" in response.headers["Location"]
    assert session_value(client, "access_token") is None
    assert session_value(client, "cart_merged") is None

    add_anonymous(client, fake_api, 5, 2)
    assert session_value(client, "cart") == {"5": 2}

    login_as()

    merges = fake_api.calls_to("POST", "/secured/cart/merge")
    assert len(merges) == 1
    assert merges[0].json["items"] == [{"productId": 5, "quantity": 2}]
    assert session_value(client, "cart") is None


# MERGE-008: lines of a failed merge survive logout and go with the next login
def test_failed_merge_lines_survive_logout(client, fake_api, login_as):
    add_anonymous(client, fake_api, 1, 2)
    sid = session_value(client, "cart_session_id")
    login_with_failing_merge(client, fake_api)
    assert session_value(client, "cart_pending_merge") is True

    fake_api.on("POST", "/secured/auth/logout", {"data": None})
    client.post("/logout")

    assert session_value(client, "access_token") is None
    assert session_value(client, "cart") == {"1": 2}
    assert session_value(client, "cart_session_id") == sid

    login_as()

    merges = fake_api.calls_to("POST", "/secured/cart/merge")
    assert len(merges) == 2
    assert merges[1].json == {"sessionId": sid, "items": [{"productId": 1, "quantity": 2}]}
    assert session_value(client, "cart") is None
    assert session_value(client, "cart_pending_merge") is None


# MERGE-009: logging in again after a failed merge retries it
def test_relogin_retries_failed_merge(client, fake_api, login_as):
    add_anonymous(client, fake_api, 3, 1)
    login_with_failing_merge(client, fake_api)
    assert session_value(client, "cart") == {"3": 1}

    login_as()

    assert len(fake_api.calls_to("POST", "/secured/cart/merge")) == 2
    assert session_value(client, "cart") is None


# MERGE-010: logout without a pending merge drops the anonymous lines
def test_logout_without_pending_merge_clears_lines(client, fake_api, login_as):
    login_as()
    with client.session_transaction() as sess:
        sess["cart"] = {"9": 1}
    fake_api.on("POST", "/secured/auth/logout", {"data": None})

    client.post("/logout")

    assert session_value(client, "cart") is None


def test_prune_cli_removes_merged_sessions(app):
    with app.app_context():
        CartSession.record("session_old")
        CartSession.claim("session_old")
    runner = app.test_cli_runner()
    result = runner.invoke(args=["prune-cart-sessions", "--days", "0"])
    assert result.exit_code == 0
    assert "Pruned" in result.output
