from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Blueprint, flash, g, redirect, render_template, request, url_for

from kesimarket.app.common.auth import is_authenticated
from kesimarket.app.common.errors import ApiError, abort_json
from kesimarket.app.common.validation import get_json, positive_int, require_fields
from kesimarket.client.dto import Cart
from kesimarket.client.services import carts, products
from kesimarket.modules.cart import session as cart_session

logger = logging.getLogger(__name__)

bp = Blueprint("cart", __name__)
api_bp = Blueprint("cart_api", __name__)


def load_cart() -> Cart:
    """The visitor's cart: remote when logged in, the local one otherwise."""
    if is_authenticated():
        return carts.get()
    return _resolve_local_cart()


def _resolve_local_cart() -> Cart:
    lines = []
    stale = []
    for product_id, quantity in cart_session.get_local_cart().items():
        try:
            product = products.get(product_id)
        except ApiError as exc:
            if exc.status_code != 404:
                raise
            stale.append(product_id)
            continue
        lines.append((product, quantity))
    for product_id in stale:
        logger.info("Dropping missing product %s from local cart", product_id)
        cart_session.remove_local_item(int(product_id))
    return Cart.from_lines(lines)


def nav_cart_count() -> int:
    if "nav_cart_count" in g:
        return g.nav_cart_count
    count = cart_session.local_item_count()
    if is_authenticated():
        try:
            count = carts.item_count()
        except ApiError as exc:
            logger.warning("Cart count unavailable: %s", exc)
            count = 0
    g.nav_cart_count = count
    return count


def _cart_json(cart: Cart) -> Dict[str, Any]:
    payload = cart.model_dump(mode="json")
    payload["session_id"] = None if is_authenticated() else cart_session.peek_session_id()
    return payload


def add_item(product_id: int, quantity: int) -> None:
    if is_authenticated():
        carts.add_item(product_id, quantity)
        return
    # 404s here before an unknown product reaches the local cart
    products.get(product_id)
    cart_session.add_local_item(product_id, quantity)


def set_quantity(product_id: int, quantity: int) -> None:
    if is_authenticated():
        carts.set_product_quantity(product_id, quantity)
        return
    if quantity > 0 and str(product_id) not in cart_session.get_local_cart():
        products.get(product_id)
    cart_session.set_local_quantity(product_id, quantity)


def remove_item(product_id: int) -> None:
    if is_authenticated():
        carts.set_product_quantity(product_id, 0)
    else:
        cart_session.remove_local_item(product_id)


def clear_cart() -> None:
    if is_authenticated():
        carts.clear()
    else:
        cart_session.clear_local_cart()


def _form_int(name: str, default: int | None = None) -> int | None:
    raw = request.form.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return None


def _back():
    return redirect(request.form.get("next") or url_for("cart.cart_page"))


# --- pages ----------------------------------------------------------------


@bp.get("/cart")
def cart_page():
    return render_template("cart.html", cart=load_cart())


@bp.post("/cart/add")
def cart_add():
    product_id = _form_int("product_id")
    quantity = _form_int("quantity", 1)
    if not product_id or product_id <= 0 or not quantity or quantity <= 0:
        flash("Quantity must be a positive whole number.", "error")
        return _back()
    try:
        add_item(product_id, quantity)
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        flash(exc.message or "Could not add the product to your cart.", "error")
        return _back()
    flash("Added to cart.", "success")
    return _back()


@bp.post("/cart/update")
def cart_update():
    product_id = _form_int("product_id")
    quantity = _form_int("quantity")
    if not product_id or quantity is None:
        flash("Quantity must be a whole number.", "error")
        return redirect(url_for("cart.cart_page"))
    set_quantity(product_id, quantity)
    flash("Cart updated." if quantity > 0 else "Item removed.", "success")
    return redirect(url_for("cart.cart_page"))


@bp.post("/cart/remove")
def cart_remove():
    product_id = _form_int("product_id")
    if product_id:
        remove_item(product_id)
        flash("Item removed.", "success")
    return redirect(url_for("cart.cart_page"))


@bp.post("/cart/clear")
def cart_clear():
    clear_cart()
    flash("Cart cleared.", "success")
    return redirect(url_for("cart.cart_page"))


# --- JSON -----------------------------------------------------------------


@api_bp.get("/cart")
def get_cart():
    return _cart_json(load_cart()), 200


@api_bp.get("/cart/count")
def get_cart_count():
    return {"count": nav_cart_count()}, 200


@api_bp.post("/cart/items")
def add_cart_item():
    data = get_json()
    require_fields(data, ["product_id"])
    product_id = positive_int(data, "product_id")
    quantity = positive_int(data, "quantity", default=1)
    add_item(product_id, quantity)
    return _cart_json(load_cart()), 201


@api_bp.patch("/cart/items/<int:product_id>")
def update_cart_item(product_id: int):
    data = get_json()
    try:
        quantity = int(data.get("quantity"))
    except (TypeError, ValueError):
        abort_json(400, "validation_error", "quantity must be an integer")
    set_quantity(product_id, quantity)
    return _cart_json(load_cart()), 200


@api_bp.delete("/cart/items/<int:product_id>")
def remove_cart_item(product_id: int):
    remove_item(product_id)
    return _cart_json(load_cart()), 200
