"""Administrative maintenance endpoints."""
from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request
from flask.typing import ResponseReturnValue
from flask_jwt_extended import get_jwt, jwt_required

from praxis_widget.app.services.service_order import (
    DEFAULT_SERVICE_ORDER,
    apply_service_order,
    parse_order_map,
)

admin_bp = Blueprint("admin", __name__)


def _is_admin() -> bool:
    """Return whether the token carries the ``admin`` role claim."""

    claims = get_jwt()
    return str(claims.get("role") or "").lower() == "admin"


@admin_bp.post("/service-order")
@jwt_required()
def update_service_order() -> ResponseReturnValue:
    """Apply a service-key to sort-order mapping to every location."""

    if not _is_admin():
        return jsonify(message="Administrator privileges required."), HTTPStatus.FORBIDDEN

    payload = request.get_json(silent=True) or {}
    raw_order = payload.get("order")
    try:
        order_map = parse_order_map(raw_order) if raw_order is not None else DEFAULT_SERVICE_ORDER
    except ValueError as exc:
        return jsonify(message=str(exc)), HTTPStatus.BAD_REQUEST

    report = apply_service_order(order_map)
    return jsonify(report.as_dict()), HTTPStatus.OK
