from __future__ import annotations

from flask import Blueprint, flash, redirect, render_template, request, url_for

from kesimarket.app.common.auth import login_required
from kesimarket.client.services import favorites

bp = Blueprint("favorites", __name__)
api_bp = Blueprint("favorites_api", __name__)


@bp.get("/favorites")
@login_required
def favorites_page():
    page = favorites.list()
    return render_template("favorites.html", favorites=[f for f in page.data if f.product is not None])


@bp.post("/favorites/<int:product_id>/toggle")
@login_required
def toggle_favorite(product_id: int):
    added = favorites.toggle(product_id)
    flash("Added to favorites." if added else "Removed from favorites.", "success")
    target = request.form.get("next") or ""
    if not target.startswith("/") or target.startswith("//"):
        target = url_for("favorites.favorites_page")
    return redirect(target)


@api_bp.post("/favorites/<int:product_id>/toggle")
@login_required
def toggle_favorite_json(product_id: int):
    return {"product_id": product_id, "is_favorite": favorites.toggle(product_id)}, 200
