from flask import Flask

from kesimarket.modules.admin.routes import bp as admin_bp
from kesimarket.modules.auth.routes import api_bp as auth_api_bp, bp as auth_bp
from kesimarket.modules.cart.routes import api_bp as cart_api_bp, bp as cart_bp
from kesimarket.modules.catalog.routes import api_bp as catalog_api_bp, bp as catalog_bp
from kesimarket.modules.favorites.routes import api_bp as favorites_api_bp, bp as favorites_bp
from kesimarket.modules.orders.routes import bp as orders_bp


def register_blueprints(app: Flask) -> None:
    # Pages
    app.register_blueprint(catalog_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(favorites_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(admin_bp)

    # JSON endpoints used by the page scripts
    app.register_blueprint(auth_api_bp, url_prefix="/api")
    app.register_blueprint(catalog_api_bp, url_prefix="/api")
    app.register_blueprint(cart_api_bp, url_prefix="/api")
    app.register_blueprint(favorites_api_bp, url_prefix="/api")

    # Root API document
    @app.get("/api")
    def api_index():
        return {
            "name": "KesiMarket storefront API",
            "version": "0.1.0",
            "endpoints": {
                "auth": ["/users/me"],
                "catalog": ["/search/suggestions"],
                "cart": ["/cart", "/cart/count", "/cart/items", "/cart/items/<product_id>"],
                "favorites": ["/favorites/<product_id>/toggle"],
            },
        }, 200
