from __future__ import annotations

import logging

from flask import Blueprint, flash, redirect, render_template, request, session, url_for

from kesimarket.app.common.auth import USER_KEY, current_user, end_session, login_required, start_session
from kesimarket.app.common.errors import ApiError
from kesimarket.client.dto import AuthResult
from kesimarket.client.forms import (
    ForgotPasswordForm,
    LoginForm,
    OtpForm,
    ProfileForm,
    RegisterForm,
    ResetPasswordForm,
    form_data,
    validate_form,
)
from kesimarket.client.services import users
from kesimarket.modules.cart.session import end_login_transition, merge_session_cart, reset_on_logout

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)
api_bp = Blueprint("auth_api", __name__)

PENDING_USER_KEY = "pending_user_id"


def safe_next(default: str) -> str:
    target = request.values.get("next") or ""
    # only same-site relative paths
    if target.startswith("/") and not target.startswith("//"):
        return target
    return default


def complete_login(auth: AuthResult) -> None:
    """Store the new identity, then fold the anonymous cart into it."""
    start_session(auth)
    session.pop(PENDING_USER_KEY, None)
    end_login_transition()
    if not merge_session_cart(auth.user):
        flash("We could not sync your cart. Your items are still saved in this browser.", "warning")


@bp.get("/login")
def login_page():
    if current_user():
        return redirect(url_for("catalog.home"))
    return render_template("auth/login.html", errors={}, values={}, next=safe_next(""))


@bp.post("/login")
def login_submit():
    values = form_data(request.form)
    form, errors = validate_form(LoginForm, values)
    if form is None:
        return render_template("auth/login.html", errors=errors, values=values, next=safe_next("")), 400

    try:
        auth = users.login(form.email, form.password)
    except ApiError as exc:
        if exc.status_code in (400, 401, 403, 404, 422):
            flash("Invalid email or password.", "error")
            return render_template("auth/login.html", errors={}, values=values, next=safe_next("")), 401
        raise

    complete_login(auth)
    logger.info("User %s logged in", auth.user.id)
    flash("Logged in.", "success")
    return redirect(safe_next(url_for("catalog.home")))


@bp.get("/register")
def register_page():
    return render_template("auth/register.html", errors={}, values={})


@bp.post("/register")
def register_submit():
    values = form_data(request.form)
    form, errors = validate_form(RegisterForm, values)
    if form is None:
        return render_template("auth/register.html", errors=errors, values=values), 400

    try:
        data = users.register(form.to_payload())
    except ApiError as exc:
        if exc.status_code in (400, 409, 422):
            flash(exc.message or "Registration failed.", "error")
            return render_template("auth/register.html", errors={}, values=values), exc.status_code
        raise

    token = data.get("token") or data.get("accessToken")
    if token and data.get("user"):
        complete_login(AuthResult.model_validate({"user": data["user"], "token": token}))
        flash("Account created.", "success")
        return redirect(url_for("catalog.home"))

    user_id = data.get("userId") or (data.get("user") or {}).get("id")
    session[PENDING_USER_KEY] = user_id
    flash("We sent a verification code to your email.", "info")
    return redirect(url_for("auth.verify_otp_page"))


@bp.get("/verify-otp")
def verify_otp_page():
    if not session.get(PENDING_USER_KEY):
        return redirect(url_for("auth.register_page"))
    return render_template("auth/verify_otp.html", errors={})


@bp.post("/verify-otp")
def verify_otp_submit():
    values = form_data(request.form)
    values["user_id"] = session.get(PENDING_USER_KEY)
    form, errors = validate_form(OtpForm, values)
    if form is None:
        if "user_id" in errors:
            return redirect(url_for("auth.register_page"))
        return render_template("auth/verify_otp.html", errors=errors), 400

    try:
        auth = users.verify_otp(form.user_id, form.otp)
    except ApiError as exc:
        if exc.status_code in (400, 401, 422):
            return render_template("auth/verify_otp.html", errors={"otp": exc.message or "Invalid code"}), 400
        raise

    complete_login(auth)
    flash("Your account is verified.", "success")
    return redirect(url_for("catalog.home"))


@bp.post("/logout")
def logout():
    if current_user():
        try:
            users.logout()
        except ApiError as exc:
            logger.warning("Remote logout failed: %s", exc)
    end_session()
    reset_on_logout()
    flash("Logged out.", "success")
    return redirect(url_for("catalog.home"))


@bp.get("/forgot-password")
def forgot_password_page():
    return render_template("auth/forgot_password.html", errors={}, values={})


@bp.post("/forgot-password")
def forgot_password_submit():
    values = form_data(request.form)
    form, errors = validate_form(ForgotPasswordForm, values)
    if form is None:
        return render_template("auth/forgot_password.html", errors=errors, values=values), 400

    try:
        users.request_password_reset(form.email)
    except ApiError as exc:
        # same answer whether or not the account exists
        if exc.status_code != 404:
            raise
    flash("If an account exists for this email, a reset link is on its way.", "info")
    return redirect(url_for("auth.login_page"))


@bp.get("/reset-password")
def reset_password_page():
    return render_template("auth/reset_password.html", errors={}, token=request.args.get("token", ""))


@bp.post("/reset-password")
def reset_password_submit():
    values = form_data(request.form)
    form, errors = validate_form(ResetPasswordForm, values)
    if form is None:
        return render_template("auth/reset_password.html", errors=errors, token=values.get("token", "")), 400

    try:
        users.reset_password(form.token, form.password)
    except ApiError as exc:
        if exc.status_code in (400, 404, 410, 422):
            flash(exc.message or "This reset link is invalid or has expired.", "error")
            return render_template("auth/reset_password.html", errors={}, token=form.token), 400
        raise
    flash("Password updated. You can now log in.", "success")
    return redirect(url_for("auth.login_page"))


@bp.get("/profile")
@login_required
def profile_page():
    return render_template("auth/profile.html", user=users.me(), errors={})


@bp.post("/profile")
@login_required
def profile_submit():
    values = form_data(request.form)
    form, errors = validate_form(ProfileForm, values)
    if form is None:
        return render_template("auth/profile.html", user=current_user(), errors=errors), 400

    user = users.update_profile(form.model_dump())
    session[USER_KEY] = user.model_dump(mode="json")
    flash("Profile updated.", "success")
    return redirect(url_for("auth.profile_page"))


@api_bp.get("/users/me")
@login_required
def me():
    return users.me().model_dump(mode="json"), 200
