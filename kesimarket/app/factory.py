from __future__ import annotations

import logging
from datetime import datetime

from flask import Flask, flash, g, jsonify, redirect, render_template, request, session, url_for
from werkzeug.exceptions import HTTPException

from kesimarket.app.config import Config
from kesimarket.app.extensions import api, cors, db, migrate
from kesimarket.app.common import formatting
from kesimarket.app.common.auth import TOKEN_KEY, current_user, end_session, wants_json
from kesimarket.app.common.errors import ApiError
from kesimarket.app.common.request_id import REQUEST_ID_HEADER, current_request_id, init_request_id
from kesimarket.app.api.register import register_blueprints
from kesimarket.app.cli import cli_bp
from kesimarket.modules.cart.session import end_login_transition

ERROR_TEMPLATES = {400, 401, 403, 404, 500}


def _session_credentials():
    return session.get(TOKEN_KEY), session.get("cart_session_id")


def _error_page(status: int, message: str | None = None):
    template = status if status in ERROR_TEMPLATES else (500 if status >= 500 else 400)
    return render_template(f"errors/{template}.html", status=status, message=message), status


def create_app(config_object: type[Config] = Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)

    # Basic logging
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS") or "*"}})
    api.init_app(app, credentials=_session_credentials)

    # Request id
    @app.before_request
    def _before_request():
        init_request_id()

    @app.after_request
    def _after_request(response):
        rid = current_request_id()
        if rid:
            response.headers[REQUEST_ID_HEADER] = rid
        return response

    @app.get("/health")
    def health():
        return {"status": "ok"}, 200

    register_blueprints(app)

    # CLI (flask init-db, api-health, prune-cart-sessions)
    app.register_blueprint(cli_bp)

    # Jinja filters
    app.add_template_filter(formatting.format_price, "price")
    app.add_template_filter(formatting.format_price_range, "price_range")
    app.add_template_filter(formatting.format_discount, "discount")

    @app.context_processor
    def inject_nav():
        """Navbar data (user + cart badge count) for every template."""
        from kesimarket.modules.cart.routes import nav_cart_count

        return {
            "nav_user": current_user(),
            "nav_cart_count": nav_cart_count(),
            "current_year": datetime.utcnow().year,
            "currency_symbol": formatting.currency_symbol(),
        }

    # Error handlers
    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        if wants_json():
            return jsonify(err.to_dict(getattr(g, "request_id", None))), err.status_code or 502

        if err.is_unauthorized and session.get(TOKEN_KEY):
            # the remote API no longer accepts the stored token
            end_session()
            end_login_transition()
            flash("Your session has expired. Please log in again.", "info")
            return redirect(url_for("auth.login_page", next=request.full_path))
        if err.is_network_error:
            app.logger.error("Remote API unreachable: %s", err)
            return _error_page(500, "The shop is temporarily unavailable. Please try again shortly.")
        return _error_page(err.status_code, err.message)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        if not wants_json():
            return _error_page(err.code or 500, err.description)

        # Normalize Werkzeug errors into our JSON shape
        payload = {
            "error": {
                "code": "http_error",
                "message": err.description,
                "details": {"name": err.name},
                "request_id": getattr(g, "request_id", None),
            }
        }
        return jsonify(payload), err.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected(err: Exception):
        app.logger.exception("Unhandled exception")
        if not wants_json():
            return _error_page(500)

        payload = {
            "error": {
                "code": "internal_error",
                "message": "Internal server error",
                "details": {},
                "request_id": getattr(g, "request_id", None),
            }
        }
        return jsonify(payload), 500

    with app.app_context():
        db.create_all()

    return app
