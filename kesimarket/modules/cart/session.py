"""Anonymous cart state and its merge into the user cart at login.

Anonymous visitors get a generated session id and a local cart kept in the
Flask session as ``{product_id: quantity}``. When they log in, the local
lines are reconciled with the user's remote cart and sent in one merge
request. The merge runs once per login: a session flag guards repeated
calls within the login and is dropped when the login ends, the
``CartSession`` ledger guards concurrent requests carrying the same
session id. Lines whose merge failed survive logout and go with the next
login.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from typing import Dict, Iterable, List, Mapping

from flask import session

from kesimarket.app.common.errors import ApiError
from kesimarket.app.models import CartSession
from kesimarket.client.dto import CartItem, User
from kesimarket.client.services import carts

logger = logging.getLogger(__name__)

SESSION_ID_KEY = "cart_session_id"
LOCAL_CART_KEY = "cart"
MERGED_KEY = "cart_merged"
PENDING_MERGE_KEY = "cart_pending_merge"

_BASE36 = string.digits + string.ascii_lowercase


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def generate_session_id() -> str:
    random_part = "".join(secrets.choice(_BASE36) for _ in range(16))
    return f"session_{random_part}{_base36(int(time.time() * 1000))}"


# --- session identifier ---------------------------------------------------


def peek_session_id() -> str | None:
    return session.get(SESSION_ID_KEY)


def get_session_id() -> str:
    sid = session.get(SESSION_ID_KEY)
    if not sid:
        sid = generate_session_id()
        session[SESSION_ID_KEY] = sid
        CartSession.record(sid)
    return sid


def renew_session_id() -> str:
    sid = generate_session_id()
    session[SESSION_ID_KEY] = sid
    CartSession.record(sid)
    return sid


def clear_session_id() -> None:
    session.pop(SESSION_ID_KEY, None)


# --- local cart -----------------------------------------------------------


def get_local_cart() -> Dict[str, int]:
    return dict(session.get(LOCAL_CART_KEY) or {})


def _save_local_cart(cart: Dict[str, int]) -> None:
    session[LOCAL_CART_KEY] = cart


def add_local_item(product_id: int, quantity: int = 1) -> Dict[str, int]:
    get_session_id()
    cart = get_local_cart()
    key = str(product_id)
    cart[key] = cart.get(key, 0) + quantity
    _save_local_cart(cart)
    return cart


def set_local_quantity(product_id: int, quantity: int) -> Dict[str, int]:
    cart = get_local_cart()
    key = str(product_id)
    if quantity <= 0:
        cart.pop(key, None)
    else:
        get_session_id()
        cart[key] = quantity
    _save_local_cart(cart)
    return cart


def remove_local_item(product_id: int) -> bool:
    cart = get_local_cart()
    removed = cart.pop(str(product_id), None) is not None
    _save_local_cart(cart)
    return removed


def clear_local_cart() -> None:
    session.pop(LOCAL_CART_KEY, None)


def local_item_count() -> int:
    return sum(get_local_cart().values())


# --- merge ----------------------------------------------------------------


def reconcile(remote_items: Iterable[CartItem], local_items: Mapping[str, int]) -> List[Dict[str, int]]:
    """Deduplicate by product id, summing quantities, ordered by product id."""
    totals: Dict[int, int] = {}
    for item in remote_items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    for product_id, quantity in local_items.items():
        pid = int(product_id)
        totals[pid] = totals.get(pid, 0) + int(quantity)
    return [
        {"product_id": pid, "quantity": qty}
        for pid, qty in sorted(totals.items())
        if qty > 0
    ]


def end_login_transition() -> None:
    """Forget that the current login merged; the next login merges again."""
    session.pop(MERGED_KEY, None)


def merge_session_cart(user: User) -> bool:
    """Fold the anonymous cart into ``user``'s cart.

    Returns False only when a merge was attempted and failed; the local
    cart is then kept, across logout, for the next login to merge.
    """
    if session.get(MERGED_KEY):
        logger.debug("Cart already merged for this login")
        return True

    local = get_local_cart()
    sid = peek_session_id()
    if not local or not sid:
        session[MERGED_KEY] = True
        return True

    if not CartSession.claim(sid):
        logger.info("Cart session %s already merged elsewhere", sid)
        session[MERGED_KEY] = True
        session.pop(PENDING_MERGE_KEY, None)
        clear_local_cart()
        return True

    try:
        remote = carts.get()
        lines = reconcile(remote.items, local)
        carts.merge(sid, lines)
    except ApiError as exc:
        logger.error("Cart merge failed for user %s: %s", user.id, exc)
        CartSession.release(sid)
        # one request per login; the lines wait for the next one
        session[MERGED_KEY] = True
        session[PENDING_MERGE_KEY] = True
        return False

    CartSession.complete(sid, user.id)
    session[MERGED_KEY] = True
    session.pop(PENDING_MERGE_KEY, None)
    clear_local_cart()
    renew_session_id()
    logger.info("Merged %d cart lines from %s into user %s", len(local), sid, user.id)
    return True


def reset_on_logout() -> None:
    end_login_transition()
    if session.get(PENDING_MERGE_KEY) and get_local_cart():
        logger.info("Keeping unmerged cart of session %s after logout", peek_session_id())
        return
    session.pop(PENDING_MERGE_KEY, None)
    clear_local_cart()
    renew_session_id()
