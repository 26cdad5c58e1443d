# -*- coding: utf-8 -*-
import os
from datetime import timedelta
from pathlib import Path

import click
from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from sqlalchemy import event
from werkzeug.middleware.proxy_fix import ProxyFix

from trainerplus.config import Config
from trainerplus.database import db

# Observability imports
from trainerplus.services.metrics import init_metrics
from trainerplus.services.request_context import init_request_context
from trainerplus.services.structured_logging import init_logging
from trainerplus.services.rate_limit import init_rate_limiter

from trainerplus.middleware.errors import register_error_handlers

API_PREFIX = "/api/v1"


def _normalize_db_url(url: str) -> str:
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://") and "+psycopg://" not in url:
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _sqlite_savepoint_support(engine):
    """pysqlite defers BEGIN on its own, which breaks SAVEPOINT; take it over."""
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _migrate_db(app):
    """Run Alembic migrations to head using the app's DB URL."""
    from alembic import command
    from alembic.config import Config as AlembicConfig

    base_dir = Path(__file__).resolve().parent.parent
    cfg = AlembicConfig()  # in-memory config, avoid alembic.ini dependency
    cfg.set_main_option("script_location", str(base_dir / "migrations"))
    cfg.set_main_option("sqlalchemy.url", app.config["SQLALCHEMY_DATABASE_URI"])

    try:
        command.upgrade(cfg, "head")
        app.logger.info("Database migrations applied successfully")
    except Exception as e:
        app.logger.error(f"Migration failed: {e}")
        raise


def create_app(config_object=None, rate_limiter=None, **overrides) -> Flask:
    app = Flask(__name__)
    app.url_map.strict_slashes = False

    # --- Core config ---
    app.config.from_object(config_object or Config)
    app.config.update(overrides)
    app.config["SQLALCHEMY_DATABASE_URI"] = _normalize_db_url(app.config["SQLALCHEMY_DATABASE_URI"])

    # --- Reverse proxy ---
    proxy_count = int(app.config.get("TRUSTED_PROXY_COUNT", 0))
    if proxy_count > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxy_count, x_proto=proxy_count)

    # --- JWT config ---
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(minutes=app.config["JWT_ACCESS_TTL_MINUTES"])
    app.config["JWT_REFRESH_TOKEN_EXPIRES"] = timedelta(hours=app.config["JWT_REFRESH_TTL_HOURS"])
    JWTManager(app)

    # --- DB ---
    db.init_app(app)
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        with app.app_context():
            _sqlite_savepoint_support(db.engine)

    # --- CORS ---
    cors_origins = [o.strip() for o in app.config["CORS_ALLOWED_ORIGINS"].split(",") if o.strip()]
    CORS(app, resources={
        r"/api/*": {
            "origins": cors_origins,
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "supports_credentials": False,
            "max_age": 600,
        }}
    )

    # --- Initialize observability ---
    init_logging(app)
    init_request_context(app)
    init_metrics(app)
    init_rate_limiter(app, rate_limiter)

    register_error_handlers(app)

    # --- Mount blueprints ---
    from trainerplus.routes import (
        attendance, auth, clubs, health, payments, public, sessions, stripe_webhooks, subscriptions
    )
    app.register_blueprint(health.health_bp)
    app.register_blueprint(public.public_bp, url_prefix=API_PREFIX)
    app.register_blueprint(auth.auth_bp, url_prefix=API_PREFIX)
    app.register_blueprint(clubs.clubs_bp, url_prefix=API_PREFIX)
    app.register_blueprint(sessions.sessions_bp, url_prefix=API_PREFIX)
    app.register_blueprint(attendance.attendance_bp, url_prefix=API_PREFIX)
    app.register_blueprint(subscriptions.subscriptions_bp, url_prefix=API_PREFIX)
    app.register_blueprint(payments.payments_bp, url_prefix=API_PREFIX)
    app.register_blueprint(stripe_webhooks.stripe_webhooks_bp, url_prefix=API_PREFIX)

    # --- CLI ---
    @app.cli.command("expire-subscriptions")
    def expire_subscriptions_command():
        """Expire active subscriptions past their validity window."""
        from trainerplus.jobs.expire_subscriptions import run
        click.echo(f"expired {run()} subscription(s)")

    # --- DB init ---
    with app.app_context():
        import trainerplus.models  # noqa: F401  register tables

        # Skip migrations in test mode since db.create_all() already creates correct schema
        is_testing = app.config.get("TESTING") or os.getenv("TESTING", "false").lower() == "true"
        if is_testing:
            db.create_all()
        elif app.config.get("DB_MIGRATE_ON_START", True):
            _migrate_db(app)

    return app
