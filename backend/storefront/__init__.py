# backend/storefront/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Explicit collaborators built once from config
    from .services.token_service import TokenSigner
    from .services.order_service import PricingPolicy
    app.extensions["token_signer"] = TokenSigner.from_config(app.config)
    app.extensions["pricing_policy"] = PricingPolicy.from_config(app.config)

    # "/api/orders" and "/api/orders/" route the same
    app.url_map.strict_slashes = False

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.products import products_bp
    from .routes.categories import categories_bp
    from .routes.orders import orders_bp
    from .routes.reviews import reviews_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(reviews_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    allowed_origins = set(app.config.get("CORS_ORIGINS") or ())

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
