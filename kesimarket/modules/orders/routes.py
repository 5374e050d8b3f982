from __future__ import annotations

from flask import Blueprint, render_template, request

from kesimarket.app.common.auth import login_required
from kesimarket.client.services import orders

bp = Blueprint("orders", __name__)

ORDERS_PER_PAGE = 10


@bp.get("/orders")
@login_required
def order_list():
    try:
        page = max(1, int(request.args.get("page", 1)))
    except ValueError:
        page = 1
    return render_template("orders/list.html", page=orders.my_orders(page=page, per_page=ORDERS_PER_PAGE))


@bp.get("/orders/<order_number>")
@login_required
def order_detail(order_number: str):
    return render_template("orders/detail.html", order=orders.get(order_number))
