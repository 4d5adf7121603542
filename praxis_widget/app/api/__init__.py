"""API blueprint registration."""
from flask import Blueprint

api_bp = Blueprint("api", __name__)

# Import endpoints to ensure they are registered with the blueprint.
from .admin import admin_bp  # noqa: E402,F401
from .widget import widget_bp  # noqa: E402,F401

api_bp.register_blueprint(widget_bp, url_prefix="/widget")
api_bp.register_blueprint(admin_bp, url_prefix="/admin")
