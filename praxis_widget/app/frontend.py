"""Routes serving the embeddable widget markup."""
from __future__ import annotations

from flask import Blueprint, request

from praxis_widget.app.services.widget_service import render_initial_widget

frontend_bp = Blueprint("frontend", __name__)


@frontend_bp.get("/widget")
def widget() -> tuple[str, int, dict[str, str]]:
    """Render the widget for embedding into a host page."""

    markup = render_initial_widget(
        location_uuid=request.args.get("location") or request.args.get("standort"),
        lang=request.args.get("lang"),
    )
    return markup, 200, {"Content-Type": "text/html; charset=utf-8"}
