"""Endpoints driving the widget step flow."""
from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, jsonify, request
from flask.typing import ResponseReturnValue

from praxis_widget.app.services.flow import InvalidTransition, PolicyViolation
from praxis_widget.app.services.widget_service import (
    IncompleteSubmission,
    process_flow_event,
    translator_for,
)

widget_bp = Blueprint("widget", __name__)


@widget_bp.post("/flow")
def flow_event() -> ResponseReturnValue:
    """Apply a single user event to the posted flow state."""

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify(error="bad_request", message="Expected a JSON object."), HTTPStatus.BAD_REQUEST
    state = payload.get("state") if isinstance(payload.get("state"), dict) else {}
    translate = translator_for(str(payload.get("lang") or "") or None)

    try:
        result = process_flow_event(payload)
    except PolicyViolation as exc:
        return (
            jsonify(
                error=exc.code,
                message=translate(
                    "Dieser Service steht nur Patienten unserer Praxis zur Verfügung."
                ),
                state=state,
            ),
            HTTPStatus.FORBIDDEN,
        )
    except InvalidTransition as exc:
        return (
            jsonify(error="invalid_transition", message=str(exc), state=state),
            HTTPStatus.CONFLICT,
        )
    except IncompleteSubmission as exc:
        return (
            jsonify(
                error="incomplete_submission",
                message=translate("Bitte füllen Sie alle Pflichtfelder aus."),
                missing=exc.missing,
                state=state,
            ),
            HTTPStatus.BAD_REQUEST,
        )
    except ValueError as exc:
        return jsonify(error="bad_request", message=str(exc)), HTTPStatus.BAD_REQUEST

    return jsonify(result), HTTPStatus.OK
