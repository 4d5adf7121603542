"""Turn flow state and catalog data into widget markup."""
from __future__ import annotations

import logging
import re
from dataclasses import replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping
from urllib.parse import urljoin

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from markupsafe import Markup

from praxis_widget.app.services.catalog import (
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_SECONDARY_COLOR,
    Catalogs,
    HostContext,
    WidgetSettings,
)
from praxis_widget.app.services.escaping import (
    CONTEXT_RICH_TEXT,
    CONTEXT_URL,
    escape,
    safe_url,
    sanitize_rich_text,
)
from praxis_widget.app.services.flow import (
    FlowConfig,
    FlowState,
    Step,
    available_steps,
    progress_fraction,
    reachable_step,
)
from praxis_widget.app.services.localization import Translator
from praxis_widget.app.services.service_filter import ServiceListing, visible_services

LOGGER = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

STEP_TEMPLATES: Mapping[Step, str] = MappingProxyType(
    {
        Step.WELCOME: "widget/steps/welcome.html",
        Step.LOCATION: "widget/steps/location.html",
        Step.SERVICES: "widget/steps/services.html",
        Step.SUCCESS: "widget/partials/success.html",
    }
)

FORM_TEMPLATES: Mapping[str, str] = MappingProxyType(
    {
        "rezept": "widget/forms/rezept.html",
        "notfall": "widget/forms/notfall.html",
        "termin": "widget/forms/termin.html",
        "terminabsage": "widget/forms/terminabsage.html",
        "ueberweisung": "widget/forms/ueberweisung.html",
        "brillenverordnung": "widget/forms/brillenverordnung.html",
        "dokument": "widget/forms/dokument.html",
        "downloads": "widget/forms/downloads.html",
    }
)
DEFAULT_FORM_TEMPLATE = "widget/forms/default.html"

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def _template_escape(value: Any, context: str = "text") -> Markup:
    if context == CONTEXT_RICH_TEXT:
        raise ValueError("Rich text must be passed through sanitize_rich_text by the renderer.")
    return escape(value, context)


def build_environment() -> Environment:
    """Create the Jinja environment used for all widget partials."""

    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["escape_for"] = _template_escape
    return env


_ENV = build_environment()


def theme_variables(settings: WidgetSettings) -> dict[str, str]:
    """Validated theme values; invalid colors fall back to the defaults."""

    primary = settings.primary_color if _HEX_COLOR.match(settings.primary_color or "") else None
    secondary = (
        settings.secondary_color if _HEX_COLOR.match(settings.secondary_color or "") else None
    )
    return {
        "primary": primary or DEFAULT_PRIMARY_COLOR,
        "secondary": secondary or DEFAULT_SECONDARY_COLOR,
        "position": "left" if settings.widget_position == "left" else "right",
    }


class WidgetRenderer:
    """Render widget partials for a single host configuration.

    Every public method is a pure function of its arguments; the renderer keeps
    no per-request state, so one instance can serve any number of widgets.
    """

    def __init__(self, host: HostContext, env: Environment | None = None) -> None:
        self.host = host
        self.translator = Translator(host.locale)
        self._env = env or _ENV

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------
    def render_widget(
        self, flow_state: FlowState, catalogs: Catalogs, settings: WidgetSettings
    ) -> Markup:
        """Render trigger, styles and container, or the vacation view."""

        if settings.vacation_active:
            return self.render_vacation_view(settings)
        trigger = self._render(
            "widget/partials/trigger.html",
            praxis_name=self._praxis_name(settings),
            position=theme_variables(settings)["position"],
            widget_title=settings.widget_title or self.translator("Online-Service"),
            widget_subtitle=settings.widget_subtitle or self.translator("Nutzen Sie unseren"),
        )
        return (
            self.render_styles(settings)
            + trigger
            + self.render(flow_state.current_step, flow_state, catalogs, settings)
        )

    def render(
        self,
        step: Step | str,
        flow_state: FlowState,
        catalogs: Catalogs,
        settings: WidgetSettings,
    ) -> Markup:
        """Render the widget container showing ``step``."""

        if settings.vacation_active:
            return self.render_vacation_view(settings)

        config = FlowConfig.from_catalogs(catalogs, settings)
        steps = available_steps(config)
        step = self._resolve_step(Step(step), flow_state, catalogs, config)
        fraction = progress_fraction(step, config)
        location_scope = flow_state.selected_location_uuid or catalogs.current_location_uuid

        context: dict[str, Any] = {
            "step": step.value,
            "multisite_flag": "1" if config.has_location_step else "0",
            "praxis_name": self._praxis_name(settings),
            "logo_url": escape(self.absolute_url(settings.logo_url), CONTEXT_URL),
            "show_back": step is not steps[0] and step is not Step.SUCCESS,
            "progress_percent": round(fraction * 100),
            "progress_value": f"{float(fraction):.4f}",
            "step_template": self._template_for(step, flow_state, catalogs),
            "location_scope": location_scope or "",
            "patient_status": flow_state.patient_status.value if flow_state.patient_status else "",
        }
        context.update(self._step_context(step, flow_state, catalogs, settings))
        return self._render("widget/main.html", **context)

    def render_vacation_view(self, settings: WidgetSettings) -> Markup:
        """Render only the vacation notice and a minimal trigger."""

        vacation_html = (
            sanitize_rich_text(settings.vacation_text) if settings.vacation_text else Markup("")
        )
        vacation_end = ""
        if settings.vacation_end_date is not None:
            vacation_end = settings.vacation_end_date.strftime(self.host.date_format)
        return self.render_styles(settings) + self._render(
            "widget/vacation.html",
            praxis_name=self._praxis_name(settings),
            vacation_html=vacation_html,
            vacation_end=vacation_end,
        )

    def render_styles(self, settings: WidgetSettings) -> Markup:
        """Emit the CSS variable block for one widget instance."""

        return self._render("widget/partials/styles.html", theme=theme_variables(settings))

    def absolute_url(self, value: str | None) -> str:
        """Return ``value`` made safe, with site-relative paths resolved against ``home_url``."""

        url = safe_url(value or "")
        home = safe_url(self.host.home_url)
        if url.startswith("/") and home.startswith(("http://", "https://")):
            return urljoin(home.rstrip("/") + "/", url.lstrip("/"))
        return url

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _render(self, template_name: str, **context: Any) -> Markup:
        template = self._env.get_template(template_name)
        return Markup(
            template.render(t=self.translator.translate, absolute_url=self.absolute_url, **context)
        )

    def _praxis_name(self, settings: WidgetSettings) -> str:
        return settings.praxis_name or self.host.site_name

    def _resolve_step(
        self,
        step: Step,
        flow_state: FlowState,
        catalogs: Catalogs,
        config: FlowConfig,
    ) -> Step:
        resolved = reachable_step(
            replace(flow_state, current_step=step),
            config=config,
            services=catalogs.services,
            location_uuids=catalogs.location_uuids or None,
        )
        if resolved is not step:
            LOGGER.debug(
                "Step %s is not reachable from %s; showing %s", step.value, flow_state, resolved.value
            )
        return resolved

    def _template_for(self, step: Step, flow_state: FlowState, catalogs: Catalogs) -> str:
        if step is Step.FORM:
            return FORM_TEMPLATES.get(flow_state.selected_service_key or "", DEFAULT_FORM_TEMPLATE)
        return STEP_TEMPLATES[step]

    def _step_context(
        self,
        step: Step,
        flow_state: FlowState,
        catalogs: Catalogs,
        settings: WidgetSettings,
    ) -> dict[str, Any]:
        if step is Step.WELCOME:
            welcome_html = (
                sanitize_rich_text(settings.welcome_text) if settings.welcome_text else None
            )
            return {"welcome_html": welcome_html}
        if step is Step.LOCATION:
            return {"locations": catalogs.locations}
        if step is Step.SERVICES:
            listing = visible_services(catalogs.services, flow_state.patient_status)
            return {"listing": listing, "catalog_state": _catalog_state(listing)}
        if step is Step.FORM:
            return {
                "service": catalogs.find_service(flow_state.selected_service_key),
                "downloads": [
                    {"document": document, "href": self.absolute_url(document.url)}
                    for document in catalogs.documents
                ],
            }
        return {}


def _catalog_state(listing: ServiceListing) -> str:
    if not listing.loaded:
        return "pending"
    if listing.is_empty:
        return "empty"
    return "ready"
