from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask import Blueprint, current_app, render_template, request

from kesimarket.app.common.auth import is_authenticated
from kesimarket.app.common.errors import ApiError
from kesimarket.client.services import SearchFilters, brands, categories, favorites, products

logger = logging.getLogger(__name__)

bp = Blueprint("catalog", __name__)
api_bp = Blueprint("catalog_api", __name__)

SORT_FIELDS = {"name", "price", "created_at"}
SUGGESTION_LIMIT = 5
SUGGESTION_MIN_LENGTH = 2


def _int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _float_arg(name: str) -> Optional[float]:
    raw = (request.args.get(name) or "").replace(",", ".").strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


def filters_from_request() -> SearchFilters:
    """Read listing filters from the query string, clamping paging."""
    per_page = _int_arg("per_page", current_app.config["DEFAULT_PER_PAGE"])
    per_page = max(1, min(per_page, current_app.config["MAX_PER_PAGE"]))
    sort_by = request.args.get("sort")
    order = (request.args.get("order") or "asc").lower()
    return SearchFilters(
        query=(request.args.get("q") or "").strip() or None,
        category_id=_int_arg("category"),
        brand_id=_int_arg("brand"),
        page=max(1, _int_arg("page", 1)),
        per_page=per_page,
        sort_by=sort_by if sort_by in SORT_FIELDS else None,
        sort_order=order if order in ("asc", "desc") else "asc",
        min_price=_float_arg("min_price"),
        max_price=_float_arg("max_price"),
        availability=request.args.getlist("availability"),
    )


def favorite_ids() -> set[int]:
    if not is_authenticated():
        return set()
    try:
        return favorites.product_ids()
    except ApiError as exc:
        if exc.is_unauthorized:
            raise
        logger.warning("Favorites unavailable: %s", exc)
        return set()


@bp.get("/")
def home():
    return render_template(
        "catalog/home.html",
        featured=products.featured(),
        categories=categories.main(),
        brands=brands.featured(),
        favorite_ids=favorite_ids(),
    )


@bp.get("/products")
def product_list():
    filters = filters_from_request()
    return render_template(
        "catalog/products.html",
        page=products.list(filters),
        filters=filters,
        categories=categories.list(),
        brands=brands.list().data,
        favorite_ids=favorite_ids(),
    )


@bp.get("/products/<slug>")
def product_detail(slug: str):
    product = products.get(slug)
    try:
        similar = products.similar(product.slug or slug)
    except ApiError as exc:
        logger.warning("Similar products unavailable for %s: %s", slug, exc)
        similar = []
    return render_template(
        "catalog/product_detail.html",
        product=product,
        similar=[p for p in similar if p.id != product.id],
        favorite_ids=favorite_ids(),
    )


@bp.get("/new")
def new_arrivals():
    return render_template("catalog/new.html", products=products.new_arrivals(), favorite_ids=favorite_ids())


@bp.get("/categories")
def category_list():
    return render_template("catalog/categories.html", categories=categories.list())


@bp.get("/categories/<slug>")
def category_detail(slug: str):
    filters = filters_from_request()
    category = categories.get(slug)
    return render_template(
        "catalog/category_detail.html",
        category=category,
        subcategories=category.children or categories.children(category.id),
        page=products.by_category(slug, filters),
        filters=filters,
        favorite_ids=favorite_ids(),
    )


@bp.get("/brands")
def brand_list():
    return render_template("catalog/brands.html", brands=brands.list().data)


@bp.get("/brands/<slug>")
def brand_detail(slug: str):
    filters = filters_from_request()
    return render_template(
        "catalog/brand_detail.html",
        brand=brands.get(slug),
        page=products.by_brand(slug, filters),
        filters=filters,
        favorite_ids=favorite_ids(),
    )


@bp.get("/search")
def search():
    filters = filters_from_request()
    page = products.list(filters) if filters.query else None
    return render_template("catalog/search.html", page=page, filters=filters, favorite_ids=favorite_ids())


@api_bp.get("/search/suggestions")
def search_suggestions():
    query = (request.args.get("q") or "").strip()
    result: Dict[str, List[Dict[str, Any]]] = {"products": [], "categories": [], "brands": []}
    if len(query) < SUGGESTION_MIN_LENGTH:
        return result, 200

    needle = query.lower()
    found = products.search(query, per_page=SUGGESTION_LIMIT).data
    result["products"] = [
        {"id": p.id, "name": p.name, "slug": p.slug, "price": str(p.effective_price)}
        for p in found[:SUGGESTION_LIMIT]
    ]
    result["categories"] = [
        {"id": c.id, "name": c.name, "slug": c.slug}
        for c in categories.list() if needle in c.name.lower()
    ][:SUGGESTION_LIMIT]
    result["brands"] = [
        {"id": b.id, "name": b.name, "slug": b.slug}
        for b in brands.list(query=query).data if needle in b.name.lower()
    ][:SUGGESTION_LIMIT]
    return result, 200
