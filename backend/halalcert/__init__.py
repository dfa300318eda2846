# backend/halalcert/__init__.py
from flask import Flask, request
from sqlalchemy import event

from .config import Config
from .extensions import db, migrate


def _enable_sqlite_savepoints(engine) -> None:
    """
    pysqlite opens transactions lazily and breaks SAVEPOINT semantics.
    Hand transaction control to SQLAlchemy so begin_nested() works.
    """
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=app.config["MIGRATIONS_DIR"])

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    with app.app_context():
        if db.engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(db.engine)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.applications import applications_bp
    from .routes.inspections import inspections_bp
    from .routes.certificates import certificates_bp
    from .routes.documents import documents_bp
    from .routes.stores import stores_bp, feedback_bp
    from .routes.audit import audit_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(applications_bp)
    app.register_blueprint(inspections_bp)
    app.register_blueprint(certificates_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(feedback_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(admin_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
