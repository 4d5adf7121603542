"""Read widget catalogs and settings from the database."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from praxis_widget.app.models import (
    PracticeDocument,
    PracticeLocation,
    PracticeService,
    WidgetOption,
)
from praxis_widget.app.services.catalog import (
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_SECONDARY_COLOR,
    Catalogs,
    Document,
    Location,
    Service,
    WidgetSettings,
)
from praxis_widget.app.services.localization import Translator
from praxis_widget.extensions import db

LOGGER = logging.getLogger(__name__)

WIDGET_STATUS_ACTIVE = "active"
WIDGET_STATUS_VACATION = "vacation"
WIDGET_STATUS_DISABLED = "disabled"
WIDGET_STATUSES = frozenset({WIDGET_STATUS_ACTIVE, WIDGET_STATUS_VACATION, WIDGET_STATUS_DISABLED})

_TRUTHY = {"1", "true", "yes", "on"}

# Used when a location has no services configured yet.
DEFAULT_SERVICES: tuple[dict[str, Any], ...] = (
    {"service_key": "rezept", "label": "Rezepte", "patient_restriction": "patients_only"},
    {"service_key": "ueberweisung", "label": "Überweisung", "patient_restriction": "patients_only"},
    {
        "service_key": "brillenverordnung",
        "label": "Brillenverordnung",
        "patient_restriction": "patients_only",
    },
    {"service_key": "dokument", "label": "Dokumente", "patient_restriction": "patients_only"},
    {"service_key": "downloads", "label": "Downloads", "patient_restriction": "all"},
    {"service_key": "termin", "label": "Termine", "patient_restriction": "all"},
    {"service_key": "terminabsage", "label": "Terminabsage", "patient_restriction": "patients_only"},
    {"service_key": "notfall", "label": "Notfall", "patient_restriction": "all"},
)


def get_option(key: str, default: str = "") -> str:
    option = db.session.get(WidgetOption, key)
    if option is None or option.value is None:
        return default
    return option.value


def set_option(key: str, value: Any) -> None:
    option = db.session.get(WidgetOption, key)
    text = "" if value is None else str(value)
    if option is None:
        db.session.add(WidgetOption(key=key, value=text))
    else:
        option.value = text
    db.session.commit()


def widget_status() -> str:
    status = get_option("widget_status", WIDGET_STATUS_ACTIVE).strip().lower()
    if status not in WIDGET_STATUSES:
        LOGGER.debug("Unknown widget status %r; treating as active", status)
        return WIDGET_STATUS_ACTIVE
    return status


def load_locations() -> tuple[Location, ...]:
    records = (
        PracticeLocation.query.filter_by(is_active=True)
        .order_by(PracticeLocation.sort_order.asc(), PracticeLocation.name.asc())
        .all()
    )
    return tuple(Location.from_mapping(record.as_row()) for record in records)


def load_services(
    location_uuid: str | None, translator: Translator | None = None
) -> tuple[Service, ...]:
    """Return active services of a location, or the built-in defaults."""

    records: list[PracticeService] = []
    if location_uuid:
        records = (
            PracticeService.query.join(PracticeLocation)
            .filter(
                PracticeLocation.uuid == location_uuid,
                PracticeService.is_active.is_(True),
            )
            .order_by(PracticeService.sort_order.asc(), PracticeService.id.asc())
            .all()
        )
    if records:
        return tuple(Service.from_mapping(record.as_row()) for record in records)

    LOGGER.debug("No services configured for location %r; using defaults", location_uuid)
    return default_services(translator or Translator())


def default_services(translator: Translator) -> tuple[Service, ...]:
    rows: list[dict[str, Any]] = [dict(row) for row in DEFAULT_SERVICES]
    fragebogen_url = get_option("fragebogen_url")
    if fragebogen_url:
        rows.append(
            {
                "service_key": "anamnesebogen",
                "label": "Anamnesebogen",
                "patient_restriction": "all",
                "external_url": fragebogen_url,
            }
        )
    for row in rows:
        row["label"] = translator.translate(row["label"])
    return tuple(Service.from_mapping(row) for row in rows)


def load_documents(location_uuid: str | None) -> tuple[Document, ...]:
    """Return the active downloads of a location in display order."""

    if not location_uuid:
        return ()
    records = (
        PracticeDocument.query.join(PracticeLocation)
        .filter(
            PracticeLocation.uuid == location_uuid,
            PracticeDocument.is_active.is_(True),
        )
        .order_by(PracticeDocument.sort_order.asc(), PracticeDocument.id.asc())
        .all()
    )
    return tuple(Document.from_mapping(record.as_row()) for record in records)


def load_catalogs(
    location_uuid: str | None = None, translator: Translator | None = None
) -> Catalogs:
    """Load locations and the services scoped to the requested (or first) location."""

    locations = load_locations()
    known = {location.uuid for location in locations}
    if location_uuid and location_uuid not in known:
        LOGGER.debug("Ignoring unknown location %r", location_uuid)
        location_uuid = None
    scope = location_uuid or (locations[0].uuid if locations else "")
    return Catalogs(
        locations=locations,
        services=load_services(scope, translator),
        current_location_uuid=scope,
        is_multisite=len(locations) > 1,
        documents=load_documents(scope),
    )


def load_settings(
    site_name: str, translator: Translator | None = None, today: date | None = None
) -> WidgetSettings:
    """Build widget settings from stored options with translated fallbacks."""

    translator = translator or Translator()
    today = today or date.today()
    vacation_start = _parse_date(get_option("vacation_start"))
    vacation_end = _parse_date(get_option("vacation_end"))

    return WidgetSettings(
        praxis_name=get_option("practice_name") or site_name,
        logo_url=get_option("logo_url"),
        widget_position=get_option("widget_position", "right") or "right",
        widget_title=get_option("widget_title") or translator("Online-Service"),
        widget_subtitle=get_option("widget_subtitle") or translator("Nutzen Sie unseren"),
        welcome_text=get_option("widget_welcome"),
        vacation_active=resolve_vacation_active(
            status=widget_status(),
            vacation_mode=get_option("vacation_mode").strip().lower() in _TRUTHY,
            start=vacation_start,
            end=vacation_end,
            today=today,
        ),
        vacation_text=get_option("vacation_message"),
        vacation_end_date=vacation_end,
        primary_color=get_option("color_primary", DEFAULT_PRIMARY_COLOR),
        secondary_color=get_option("color_secondary", DEFAULT_SECONDARY_COLOR),
    )


def resolve_vacation_active(
    *,
    status: str,
    vacation_mode: bool,
    start: date | None,
    end: date | None,
    today: date,
) -> bool:
    """Vacation applies globally via status, or per window when the mode flag is set."""

    if status == WIDGET_STATUS_VACATION:
        return True
    if not vacation_mode:
        return False
    if start is not None and end is not None:
        return start <= today <= end
    return True


def seed_default_catalog(site_name: str, service_rows: Iterable[dict[str, Any]] = DEFAULT_SERVICES) -> None:
    """Create a default location with the built-in services when the catalog is empty."""

    if PracticeLocation.query.first() is not None:
        return
    location = PracticeLocation(uuid="default", name=site_name, sort_order=0)
    db.session.add(location)
    db.session.flush()
    for index, row in enumerate(service_rows, start=1):
        db.session.add(
            PracticeService(
                location_id=location.id,
                service_key=row["service_key"],
                label=row.get("label"),
                patient_restriction=row.get("patient_restriction", "all"),
                external_url=row.get("external_url"),
                sort_order=index,
            )
        )
    db.session.commit()


def _parse_date(value: str) -> date | None:
    text = (value or "").strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        LOGGER.debug("Ignoring malformed date option %r", text)
        return None
