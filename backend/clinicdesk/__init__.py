# backend/clinicdesk/__init__.py
from flask import Flask, g, jsonify, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Session signing lives on the app, not in a module global
    from .services.credential_service import build_credential_service
    app.extensions["credential_service"] = build_credential_service(app.config)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.clinic import clinic_bp, signup_bp
    from .routes.platform import platform_bp
    from .routes.users import users_bp
    from .routes.patients import patients_bp
    from .routes.appointments import appointments_bp
    from .routes.follow_ups import follow_ups_bp
    from .routes.payments import payments_bp
    from .routes.inventory import inventory_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(clinic_bp)
    app.register_blueprint(signup_bp)
    app.register_blueprint(platform_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(patients_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(follow_ups_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(dashboard_bp)

    from .services.tenant_service import TenantSlug, is_root_path_allowed, resolve_tenant_host

    @app.before_request
    def resolve_tenant():
        """
        Attach the clinic subdomain (if any) to the request.

        On the platform root only the root API prefixes are reachable.
        """
        tenant_host = resolve_tenant_host(request.host, app.config["ROOT_DOMAIN"])
        g.tenant_host = tenant_host
        g.clinic_slug = tenant_host.slug if isinstance(tenant_host, TenantSlug) else None

        if g.clinic_slug is None and not is_root_path_allowed(request.path):
            return jsonify({"error": "Not found"}), 404
        return None

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
