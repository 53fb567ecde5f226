import os

from flask import Flask, jsonify
from sqlalchemy import text

from datagod.config import Config
from datagod.extensions import db, migrate, cors, login_manager
from datagod import auth  # noqa: F401  registers login_manager loaders
from datagod.segments.segment_payment_webhooks import webhooks_bp
from datagod.segments.segment_fulfillment_admin import fulfillment_admin_bp
from datagod.segments.segment_settings import settings_bp
from datagod.segments.segment_blacklist_admin import blacklist_bp
from datagod.segments.segment_shops_admin import shops_admin_bp
from datagod.segments.segment_admin_wallets import admin_wallets_bp


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    env = (app.config.get("ENV") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production"):
        secret = (app.config.get("SECRET_KEY") or "").strip()
        if not secret or len(secret) < 16 or secret == "dev-secret":
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if not (os.getenv("DATABASE_URL") or "").strip() and not (os.getenv("SQLALCHEMY_DATABASE_URI") or "").strip():
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")
        if not app.config.get("PAYSTACK_SECRET_KEY"):
            raise RuntimeError("PAYSTACK_SECRET_KEY must be set in production")

    # Ensure instance dir exists for SQLite paths
    database_url = app.config["SQLALCHEMY_DATABASE_URI"]
    if database_url.startswith("sqlite:///") and database_url != "sqlite:///:memory:":
        os.makedirs(Config.INSTANCE_DIR, exist_ok=True)

    # CORS configuration
    origins = list(app.config.get("CORS_ORIGINS") or [])
    if not origins and env not in ("prod", "production"):
        origins = ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Register API routes
    app.register_blueprint(webhooks_bp)
    app.register_blueprint(fulfillment_admin_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(blacklist_bp)
    app.register_blueprint(shops_admin_bp)
    app.register_blueprint(admin_wallets_bp)

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except Exception as e:
            app.logger.error("[HEALTH] database check failed: %s", e)
            db.session.rollback()
            db_state = "fail"
        return jsonify({
            "ok": db_state == "ok",
            "service": "datagod-backend",
            "env": env,
            "db": db_state,
        }), (200 if db_state == "ok" else 503)

    return app
