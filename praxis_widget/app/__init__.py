"""Application factory for the Praxis widget service."""
from __future__ import annotations

from flask import Flask
from flask_cors import CORS

from praxis_widget.config import get_config
from praxis_widget.extensions import db, jwt


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application."""

    app = Flask(__name__)
    config_cls = get_config(config_name or app.config.get("ENV"))
    app.config.from_object(config_cls)

    register_extensions(app)
    register_blueprints(app)

    with app.app_context():
        db.create_all()
        if app.config.get("DEBUG"):
            _seed_dev_catalog(app)

    CORS(app)
    return app


def register_extensions(app: Flask) -> None:
    """Initialize Flask extensions."""

    db.init_app(app)
    jwt.init_app(app)


def register_blueprints(app: Flask) -> None:
    """Register application blueprints."""

    from praxis_widget.app.api import api_bp
    from praxis_widget.app.frontend import frontend_bp

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(frontend_bp)


def _seed_dev_catalog(app: Flask) -> None:
    """Seed a default location and service list for development."""

    from praxis_widget.app.services.catalog_store import seed_default_catalog

    seed_default_catalog(app.config.get("SITE_NAME", "Praxis"))
