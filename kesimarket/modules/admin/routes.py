"""Back office.

Every page needs an ``admin`` role on the logged-in user; the remote API
enforces the same rule on the secured endpoints these views call.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Type

from flask import Blueprint, flash, redirect, render_template, request, url_for
from pydantic import BaseModel

from kesimarket.app.common.auth import admin_required, current_user, end_session
from kesimarket.app.common.errors import ApiError
from kesimarket.app.extensions import api
from kesimarket.client.forms import (
    BrandForm,
    BulkDeleteForm,
    CategoryForm,
    LoginForm,
    ProductForm,
    form_data,
    validate_form,
)
from kesimarket.client.services import SearchFilters, brands, categories, products, stats, users
from kesimarket.modules.auth.routes import complete_login, safe_next
from kesimarket.modules.cart.session import reset_on_logout

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/admin")

ADMIN_PER_PAGE = 20
# remote statuses shown back on the form instead of an error page
FORM_ERROR_STATUSES = (400, 409, 422)


def _page_arg() -> int:
    try:
        return max(1, int(request.args.get("page", 1)))
    except ValueError:
        return 1


def _submit(schema: Type[BaseModel], template: str, save: Callable[[BaseModel], Any],
            success: str, redirect_to: str, context: Dict[str, Any], list_fields=()):
    """Validate a posted form, call ``save`` and redirect, or re-render."""
    values = form_data(request.form, list_fields)
    form, errors = validate_form(schema, values)
    if form is None:
        return render_template(template, values=values, errors=errors, **context), 400
    try:
        save(form)
    except ApiError as exc:
        if exc.status_code not in FORM_ERROR_STATUSES:
            raise
        flash(exc.message or "The API rejected the change.", "error")
        return render_template(template, values=values, errors=exc.details or {}, **context), exc.status_code
    flash(success, "success")
    return redirect(url_for(redirect_to))


def _bulk_delete(delete: Callable[[list], None], label: str, redirect_to: str, exclude: Optional[int] = None):
    values = form_data(request.form, ("ids",))
    kept = [i for i in values["ids"] if exclude is None or i.strip() != str(exclude)]
    if len(kept) != len(values["ids"]):
        values["ids"] = kept
        flash("You cannot delete your own account.", "error")
    form, errors = validate_form(BulkDeleteForm, values)
    if form is None:
        flash(errors.get("ids", "Nothing selected."), "error")
        return redirect(url_for(redirect_to))
    delete(form.ids)
    logger.info("Bulk deleted %d %s", len(form.ids), label)
    flash(f"{len(form.ids)} {label} deleted.", "success")
    return redirect(url_for(redirect_to))


# --- session --------------------------------------------------------------


@bp.get("/login")
def login_page():
    user = current_user()
    if user is not None and user.is_admin:
        return redirect(url_for("admin.dashboard"))
    return render_template("admin/login.html", errors={}, values={}, next=safe_next(""))


@bp.post("/login")
def login_submit():
    values = form_data(request.form)
    form, errors = validate_form(LoginForm, values)
    if form is None:
        return render_template("admin/login.html", errors=errors, values=values, next=safe_next("")), 400

    try:
        auth = users.login(form.email, form.password)
    except ApiError as exc:
        if exc.status_code in (400, 401, 403, 404, 422):
            flash("Invalid email or password.", "error")
            return render_template("admin/login.html", errors={}, values=values, next=safe_next("")), 401
        raise

    if not auth.user.is_admin:
        logger.warning("Back office login refused for user %s (role %s)", auth.user.id, auth.user.role)
        flash("This area is reserved to administrators.", "error")
        return render_template("admin/login.html", errors={}, values=values, next=safe_next("")), 403

    complete_login(auth)
    return redirect(safe_next(url_for("admin.dashboard")))


@bp.post("/logout")
def logout():
    try:
        if current_user():
            users.logout()
    except ApiError as exc:
        logger.warning("Remote logout failed: %s", exc)
    end_session()
    reset_on_logout()
    return redirect(url_for("admin.login_page"))


@bp.get("")
@admin_required
def dashboard():
    return render_template("admin/dashboard.html", stats=stats.dashboard())


@bp.post("/cache/clear")
@admin_required
def cache_clear():
    size = api.client.cache_size()
    api.client.clear_cache()
    logger.info("Admin %s cleared %d cached API responses", current_user().id, size)
    flash(f"Cleared {size} cached responses.", "success")
    return redirect(url_for("admin.dashboard"))


# --- products -------------------------------------------------------------


def _product_context() -> Dict[str, Any]:
    return {"categories": categories.list(), "brands": brands.list().data}


@bp.get("/products")
@admin_required
def product_list():
    filters = SearchFilters(
        query=(request.args.get("q") or "").strip() or None,
        page=_page_arg(),
        per_page=ADMIN_PER_PAGE,
        sort_by="created_at",
        sort_order="desc",
    )
    return render_template("admin/products.html", page=products.list(filters), filters=filters)


@bp.get("/products/new")
@admin_required
def product_new():
    return render_template("admin/product_form.html", values={}, errors={}, product=None, **_product_context())


@bp.post("/products/new")
@admin_required
def product_create():
    return _submit(
        ProductForm, "admin/product_form.html",
        lambda form: products.create(form.to_payload()),
        "Product created.", "admin.product_list",
        dict(product=None, **_product_context()),
        list_fields=("category_ids",),
    )


@bp.get("/products/<int:product_id>/edit")
@admin_required
def product_edit(product_id: int):
    product = products.get(product_id)
    values = product.model_dump()
    values["category_ids"] = [c.id for c in product.categories]
    return render_template("admin/product_form.html", values=values, errors={}, product=product, **_product_context())


@bp.post("/products/<int:product_id>/edit")
@admin_required
def product_update(product_id: int):
    return _submit(
        ProductForm, "admin/product_form.html",
        lambda form: products.update(product_id, form.to_payload()),
        "Product updated.", "admin.product_list",
        dict(product=products.get(product_id), **_product_context()),
        list_fields=("category_ids",),
    )


@bp.post("/products/<int:product_id>/delete")
@admin_required
def product_delete(product_id: int):
    products.delete(product_id)
    flash("Product deleted.", "success")
    return redirect(url_for("admin.product_list"))


@bp.post("/products/bulk-delete")
@admin_required
def product_bulk_delete():
    return _bulk_delete(products.bulk_delete, "products", "admin.product_list")


# --- brands ---------------------------------------------------------------


@bp.get("/brands")
@admin_required
def brand_list():
    query = (request.args.get("q") or "").strip() or None
    page = brands.list(page=_page_arg(), per_page=ADMIN_PER_PAGE, query=query)
    return render_template("admin/brands.html", page=page, query=query)


@bp.get("/brands/new")
@admin_required
def brand_new():
    return render_template("admin/brand_form.html", values={}, errors={}, brand=None)


@bp.post("/brands/new")
@admin_required
def brand_create():
    return _submit(
        BrandForm, "admin/brand_form.html",
        lambda form: brands.create(form.model_dump()),
        "Brand created.", "admin.brand_list", {"brand": None},
    )


@bp.get("/brands/<int:brand_id>/edit")
@admin_required
def brand_edit(brand_id: int):
    brand = brands.get(brand_id)
    return render_template("admin/brand_form.html", values=brand.model_dump(), errors={}, brand=brand)


@bp.post("/brands/<int:brand_id>/edit")
@admin_required
def brand_update(brand_id: int):
    return _submit(
        BrandForm, "admin/brand_form.html",
        lambda form: brands.update(brand_id, form.model_dump()),
        "Brand updated.", "admin.brand_list", {"brand": brands.get(brand_id)},
    )


@bp.post("/brands/<int:brand_id>/delete")
@admin_required
def brand_delete(brand_id: int):
    brands.delete(brand_id)
    flash("Brand deleted.", "success")
    return redirect(url_for("admin.brand_list"))


@bp.post("/brands/bulk-delete")
@admin_required
def brand_bulk_delete():
    return _bulk_delete(brands.bulk_delete, "brands", "admin.brand_list")


# --- categories -----------------------------------------------------------


@bp.get("/categories")
@admin_required
def category_list():
    return render_template("admin/categories.html", categories=categories.list())


@bp.get("/categories/new")
@admin_required
def category_new():
    return render_template("admin/category_form.html", values={}, errors={}, category=None,
                           parents=categories.list())


@bp.post("/categories/new")
@admin_required
def category_create():
    return _submit(
        CategoryForm, "admin/category_form.html",
        lambda form: categories.create(form.model_dump()),
        "Category created.", "admin.category_list",
        {"category": None, "parents": categories.list()},
    )


@bp.get("/categories/<int:category_id>/edit")
@admin_required
def category_edit(category_id: int):
    category = categories.get(category_id)
    parents = [c for c in categories.list() if c.id != category_id]
    return render_template("admin/category_form.html", values=category.model_dump(), errors={},
                           category=category, parents=parents)


@bp.post("/categories/<int:category_id>/edit")
@admin_required
def category_update(category_id: int):
    def save(form: CategoryForm) -> None:
        if form.parent_id == category_id:
            raise ApiError(422, "validation_error", "A category cannot be its own parent",
                           {"parent_id": "A category cannot be its own parent"})
        categories.update(category_id, form.model_dump())

    return _submit(
        CategoryForm, "admin/category_form.html", save,
        "Category updated.", "admin.category_list",
        {"category": categories.get(category_id),
         "parents": [c for c in categories.list() if c.id != category_id]},
    )


@bp.post("/categories/<int:category_id>/delete")
@admin_required
def category_delete(category_id: int):
    categories.delete(category_id)
    flash("Category deleted.", "success")
    return redirect(url_for("admin.category_list"))


# --- users ----------------------------------------------------------------


@bp.get("/users")
@admin_required
def user_list():
    query = (request.args.get("q") or "").strip() or None
    page = users.list_users(page=_page_arg(), per_page=ADMIN_PER_PAGE, query=query)
    return render_template("admin/users.html", page=page, query=query)


@bp.post("/users/<int:user_id>/delete")
@admin_required
def user_delete(user_id: int):
    if user_id == current_user().id:
        flash("You cannot delete your own account.", "error")
        return redirect(url_for("admin.user_list"))
    users.delete_user(user_id)
    flash("User deleted.", "success")
    return redirect(url_for("admin.user_list"))


@bp.post("/users/bulk-delete")
@admin_required
def user_bulk_delete():
    return _bulk_delete(users.bulk_delete_users, "users", "admin.user_list", exclude=current_user().id)
