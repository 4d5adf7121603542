"""Glue between the HTTP layer, storage, flow controller and renderer."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from flask import current_app

from praxis_widget.app.services.catalog import Catalogs, HostContext, WidgetSettings
from praxis_widget.app.services.catalog_store import (
    WIDGET_STATUS_DISABLED,
    load_catalogs,
    load_settings,
    widget_status,
)
from praxis_widget.app.services.flow import (
    ChooseLocation,
    ChoosePatientStatus,
    ChooseService,
    Event,
    FlowConfig,
    FlowState,
    NavigateBack,
    Step,
    StepFlowController,
    SubmitForm,
    initial_state,
)
from praxis_widget.app.services.localization import Translator, resolve_locale
from praxis_widget.app.services.renderer import WidgetRenderer

LOGGER = logging.getLogger(__name__)

REQUIRED_FORM_FIELDS = ("vorname", "nachname", "email", "dsgvo_consent")

DISABLED_MARKUP = "<!-- Praxis widget disabled -->"


class IncompleteSubmission(ValueError):
    """Raised when a submitted form lacks mandatory patient fields."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__("Missing required fields: " + ", ".join(missing))
        self.missing = missing


@dataclass(slots=True)
class WidgetContext:
    renderer: WidgetRenderer
    catalogs: Catalogs
    settings: WidgetSettings

    @property
    def config(self) -> FlowConfig:
        return FlowConfig.from_catalogs(self.catalogs, self.settings)


def host_context(lang: str | None = None) -> HostContext:
    """Build the host values from app configuration and the requested language."""

    config = current_app.config
    default_locale = config.get("WIDGET_LOCALE", "de_DE")
    return HostContext(
        site_name=config.get("SITE_NAME", "Praxis"),
        locale=resolve_locale(lang or default_locale, default_locale),
        date_format=config.get("WIDGET_DATE_FORMAT", "%d.%m.%Y"),
        home_url=config.get("SITE_URL", ""),
    )


def prepare_widget(location_uuid: str | None = None, lang: str | None = None) -> WidgetContext:
    renderer = WidgetRenderer(host_context(lang))
    translator = renderer.translator
    settings = load_settings(renderer.host.site_name, translator)
    catalogs = load_catalogs(location_uuid, translator)
    return WidgetContext(renderer=renderer, catalogs=catalogs, settings=settings)


def render_initial_widget(location_uuid: str | None = None, lang: str | None = None) -> str:
    """Render the widget for a freshly opened session."""

    if widget_status() == WIDGET_STATUS_DISABLED:
        LOGGER.debug("Widget disabled; rendering placeholder comment")
        return DISABLED_MARKUP

    widget = prepare_widget(location_uuid, lang)
    state = initial_state(widget.config)
    return str(widget.renderer.render_widget(state, widget.catalogs, widget.settings))


def parse_event(payload: Any) -> Event:
    """Translate the JSON event description into a flow event."""

    if not isinstance(payload, Mapping):
        raise ValueError("event must be an object.")
    kind = str(payload.get("type") or "").strip()
    if kind == "choose_patient_status":
        return ChoosePatientStatus(status=str(payload.get("status") or ""))
    if kind == "choose_location":
        return ChooseLocation(uuid=str(payload.get("uuid") or ""))
    if kind == "choose_service":
        return ChooseService(key=str(payload.get("key") or ""))
    if kind == "submit_form":
        return SubmitForm()
    if kind == "navigate_back":
        return NavigateBack()
    raise ValueError(f"Unknown event type {kind!r}.")


def missing_form_fields(form: Any) -> list[str]:
    if not isinstance(form, Mapping):
        return list(REQUIRED_FORM_FIELDS)
    return [name for name in REQUIRED_FORM_FIELDS if not str(form.get(name) or "").strip()]


def process_flow_event(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Apply one event to the posted state and return the new state and markup.

    Raises ``ValueError`` for malformed payloads and ``FlowError`` subclasses
    when the controller rejects the event.
    """

    raw_state = payload.get("state")
    if raw_state is None:
        raw_state = {}
    if not isinstance(raw_state, Mapping):
        raise ValueError("state must be an object.")
    state = FlowState.from_dict(raw_state)
    event = parse_event(payload.get("event"))
    lang = str(payload.get("lang") or "") or None

    scope = state.selected_location_uuid or str(payload.get("location_uuid") or "") or None
    widget = prepare_widget(scope, lang)
    controller = StepFlowController(
        widget.config,
        services=widget.catalogs.services or (),
        location_uuids=widget.catalogs.location_uuids,
        state=state,
    )
    controller.verify()

    if isinstance(event, SubmitForm) and state.current_step is Step.FORM:
        missing = missing_form_fields(payload.get("form"))
        if missing:
            raise IncompleteSubmission(missing)

    transition = controller.dispatch(event)
    new_state = transition.state

    if new_state.selected_location_uuid and new_state.selected_location_uuid != scope:
        widget = prepare_widget(new_state.selected_location_uuid, lang)

    html = widget.renderer.render(new_state.current_step, new_state, widget.catalogs, widget.settings)
    return {
        "state": new_state.to_dict(),
        "outcome": transition.outcome,
        "redirect_url": widget.renderer.absolute_url(transition.redirect_url) or None,
        "progress": float(controller.progress),
        "html": str(html),
    }


def translator_for(lang: str | None = None) -> Translator:
    return Translator(host_context(lang).locale)
