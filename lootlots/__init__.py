# lootlots/__init__.py
import os
import logging

from flask import Flask, jsonify
from flask_migrate import Migrate
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from .db import db
from .config import load_settings
from .errors import LootError

migrate = Migrate()

from .auth import auth_bp, login_manager
from .api_options import bp as options_api_bp
from .api_admin import admin_api


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LootError)
    def _loot_error(e: LootError):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(ValidationError)
    def _validation_error(e: ValidationError):
        return jsonify(error="E_VALIDATION", detail=e.errors(include_url=False, include_context=False)), 400

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify(error=e.name.lower().replace(" ", "_"), message=e.description), e.code


def create_app(config=None, issuer=None, random_source=None):
    app = Flask(__name__)

    BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    DB_PATH = os.path.join(BASE_DIR, "lootlots.db")
    DB_URI = os.environ.get("DATABASE_URL", f"sqlite:///{DB_PATH}")

    app.config.update(
        SECRET_KEY=os.environ.get("SECRET_KEY", "dev"),
        SQLALCHEMY_DATABASE_URI=DB_URI,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        SESSION_COOKIE_SAMESITE="Lax",
        AUTO_CREATE_TABLES=os.environ.get("AUTO_CREATE_TABLES", "1") == "1",
    )
    app.config.update(load_settings())
    if config:
        app.config.update(config)

    # Init core extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from .services import init_services
    init_services(app, issuer=issuer, random_source=random_source)

    # Helpful startup log
    app.logger.setLevel(logging.INFO)
    app.logger.info("DB URI: %s", app.config["SQLALCHEMY_DATABASE_URI"])
    app.logger.info(
        "LOOT payment_mode=%s total=%s random_source=%s",
        app.config["LOOT_PAYMENT_MODE"],
        app.config["LOOT_PROBABILITY_TOTAL"],
        app.config["LOOT_RANDOM_SOURCE"].split(":", 1)[0],
    )

    with app.app_context():
        # Ensure all models are imported so metadata is complete
        from . import models as _models  # noqa: F401

        if app.config["AUTO_CREATE_TABLES"]:
            from .services import registry, system
            db.create_all()
            registry.ensure_class_records()
            system.ensure_state()
            db.session.commit()

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(options_api_bp)
    app.register_blueprint(admin_api)
    _register_error_handlers(app)

    @app.get("/health")
    def health():
        return jsonify(status="ok")

    return app
