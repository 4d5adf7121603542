"""Immutable data shapes consumed by the widget engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Mapping, Sequence

RESTRICTION_ALL = "all"
RESTRICTION_PATIENTS_ONLY = "patients_only"

_LEGACY_RESTRICTIONS = {"patient_only": RESTRICTION_PATIENTS_ONLY}

DEFAULT_ICON = "📄"

SERVICE_ICONS: Mapping[str, str] = MappingProxyType(
    {
        "kontakt": "💬",
        "rezept": "💊",
        "ueberweisung": "📋",
        "brillenverordnung": "👓",
        "dokument": "📎",
        "termin": "📅",
        "terminabsage": "❌",
        "notfall": "🚨",
        "downloads": "⬇️",
        "anamnese": "📝",
        "anamnesebogen": "📝",
    }
)

DEFAULT_PRIMARY_COLOR = "#2563eb"
DEFAULT_SECONDARY_COLOR = "#28a745"


def icon_for(key: str, icon: str | None = None) -> str:
    """Return the explicit icon, else the icon registered for ``key``."""

    if icon:
        return icon
    return SERVICE_ICONS.get(key, DEFAULT_ICON)


def normalize_restriction(value: Any, *, patient_only_flag: Any = False) -> str:
    """Map stored restriction values (including legacy spellings) to a known value."""

    text = str(value or "").strip().lower()
    text = _LEGACY_RESTRICTIONS.get(text, text)
    if text == RESTRICTION_PATIENTS_ONLY or patient_only_flag:
        return RESTRICTION_PATIENTS_ONLY
    return RESTRICTION_ALL


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


@dataclass(frozen=True, slots=True)
class Location:
    """A physical practice location."""

    uuid: str
    name: str
    address: str = ""
    zip: str = ""
    city: str = ""

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "Location":
        return cls(
            uuid=_text(row.get("uuid")),
            name=_text(row.get("name")),
            address=_text(row.get("address")),
            zip=_text(row.get("zip")),
            city=_text(row.get("city")),
        )


@dataclass(frozen=True, slots=True)
class Service:
    """A request type a patient can pick in the services step."""

    key: str
    label: str = ""
    description: str = ""
    icon: str = ""
    patient_restriction: str = RESTRICTION_ALL
    external_url: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _text(self.key))
        object.__setattr__(self, "label", _text(self.label) or self.key[:1].upper() + self.key[1:])
        object.__setattr__(self, "icon", icon_for(self.key, _text(self.icon)))
        object.__setattr__(
            self, "patient_restriction", normalize_restriction(self.patient_restriction)
        )
        object.__setattr__(self, "external_url", _text(self.external_url))

    @property
    def patients_only(self) -> bool:
        return self.patient_restriction == RESTRICTION_PATIENTS_ONLY

    @property
    def is_external(self) -> bool:
        return bool(self.external_url)

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "Service":
        """Build a service from a storage row (``service_key`` or ``key``)."""

        return cls(
            key=_text(row.get("service_key", row.get("key"))),
            label=_text(row.get("label")),
            description=_text(row.get("description")),
            icon=_text(row.get("icon")),
            patient_restriction=normalize_restriction(
                row.get("patient_restriction"),
                patient_only_flag=row.get("is_patient_only"),
            ),
            external_url=_text(row.get("external_url")),
        )


def format_file_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{round(size / (1024 * 1024), 1)} MB"
    if size >= 1024:
        return f"{round(size / 1024, 1)} KB"
    return f"{size} B"


def mime_icon(mime_type: str) -> str:
    mime_type = mime_type or ""
    if mime_type.startswith("application/pdf"):
        return "📄"
    if mime_type.startswith("image/"):
        return "🖼️"
    if "word" in mime_type:
        return "📝"
    if "spreadsheet" in mime_type or "excel" in mime_type:
        return "📊"
    if "presentation" in mime_type:
        return "📽️"
    if "zip" in mime_type:
        return "📦"
    return "📎"


@dataclass(frozen=True, slots=True)
class Document:
    """A file offered in the downloads list of a location."""

    title: str
    url: str
    description: str = ""
    file_size: int = 0
    mime_type: str = ""

    @property
    def icon(self) -> str:
        return mime_icon(self.mime_type)

    @property
    def size_label(self) -> str:
        return format_file_size(self.file_size)

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "Document":
        return cls(
            title=_text(row.get("title")),
            url=_text(row.get("url")),
            description=_text(row.get("description")),
            file_size=int(row.get("file_size") or 0),
            mime_type=_text(row.get("mime_type")),
        )


@dataclass(frozen=True, slots=True)
class WidgetSettings:
    """Practice-level presentation settings, including the vacation override."""

    praxis_name: str = ""
    logo_url: str = ""
    widget_position: str = "right"
    widget_title: str = ""
    widget_subtitle: str = ""
    welcome_text: str = ""
    vacation_active: bool = False
    vacation_text: str = ""
    vacation_end_date: date | None = None
    primary_color: str = DEFAULT_PRIMARY_COLOR
    secondary_color: str = DEFAULT_SECONDARY_COLOR


@dataclass(frozen=True, slots=True)
class HostContext:
    """Values the embedding host provides explicitly instead of via globals."""

    site_name: str = "Praxis"
    locale: str = "de_DE"
    date_format: str = "%d.%m.%Y"
    home_url: str = ""


@dataclass(frozen=True, slots=True)
class Catalogs:
    """Externally loaded catalog data for a single render request.

    ``services`` is ``None`` while the catalog has not been fetched, which is
    rendered differently from an empty, fetched catalog.
    """

    locations: Sequence[Location] = field(default_factory=tuple)
    services: Sequence[Service] | None = None
    current_location_uuid: str = ""
    is_multisite: bool = False
    documents: Sequence[Document] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "locations", tuple(self.locations))
        object.__setattr__(self, "documents", tuple(self.documents))
        if self.services is not None:
            object.__setattr__(self, "services", tuple(self.services))

    def find_service(self, key: str | None) -> Service | None:
        if not key or not self.services:
            return None
        for service in self.services:
            if service.key == key:
                return service
        return None

    @property
    def location_uuids(self) -> frozenset[str]:
        return frozenset(location.uuid for location in self.locations if location.uuid)
