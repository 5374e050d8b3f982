"""Session-based auth state.

The remote API issues the access token; we keep it, plus a snapshot of the
user, in the Flask session. Nothing here verifies the token: the remote API
rejects stale ones with 401 and the error handlers log the visitor out.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from flask import flash, redirect, request, session, url_for

from kesimarket.app.common.errors import abort_json
from kesimarket.client.dto import AuthResult, User

F = TypeVar("F", bound=Callable[..., Any])

TOKEN_KEY = "access_token"
USER_KEY = "user"


def wants_json() -> bool:
    return request.path.startswith("/api/") or request.path == "/api"


def start_session(auth: AuthResult) -> None:
    session[TOKEN_KEY] = auth.token
    session[USER_KEY] = auth.user.model_dump(mode="json")


def end_session() -> None:
    session.pop(TOKEN_KEY, None)
    session.pop(USER_KEY, None)


def access_token() -> Optional[str]:
    return session.get(TOKEN_KEY)


def current_user() -> Optional[User]:
    if not session.get(TOKEN_KEY):
        return None
    data = session.get(USER_KEY)
    if not data:
        return None
    return User.model_validate(data)


def is_authenticated() -> bool:
    return current_user() is not None


def login_required(fn: F) -> F:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not is_authenticated():
            if wants_json():
                abort_json(401, "unauthorized", "Authentication required")
            flash("Please log in to continue.", "info")
            return redirect(url_for("auth.login_page", next=request.full_path))
        return fn(*args, **kwargs)

    return wrapper  # type: ignore


def admin_required(fn: F) -> F:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        user = current_user()
        if user is None or not user.is_admin:
            if wants_json():
                abort_json(403, "forbidden", "Administrator access required")
            return redirect(url_for("admin.login_page", next=request.full_path))
        return fn(*args, **kwargs)

    return wrapper  # type: ignore
