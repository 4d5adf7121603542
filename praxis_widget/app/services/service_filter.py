"""Annotate services with what a given patient may do with them."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Sequence

from praxis_widget.app.services.catalog import Service

PATIENT_STATUS_EXISTING = "bestandspatient"


class Interaction(str, Enum):
    OPENABLE = "openable"
    BLOCKED = "blocked"
    EXTERNAL = "external"


@dataclass(frozen=True, slots=True)
class AnnotatedService:
    service: Service
    interaction: Interaction

    @property
    def key(self) -> str:
        return self.service.key

    @property
    def is_blocked(self) -> bool:
        return self.interaction is Interaction.BLOCKED


@dataclass(frozen=True, slots=True)
class ServiceListing:
    """Ordered filter result; ``loaded`` separates "none configured" from "not fetched"."""

    entries: tuple[AnnotatedService, ...] = ()
    loaded: bool = True

    def __iter__(self) -> Iterator[AnnotatedService]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return self.loaded and not self.entries


NOT_LOADED = ServiceListing(entries=(), loaded=False)


def interaction_for(service: Service, patient_status: str | None) -> Interaction:
    """Return how ``service`` behaves for a patient with ``patient_status``."""

    if service.is_external:
        return Interaction.EXTERNAL
    if service.patients_only and _status_value(patient_status) != PATIENT_STATUS_EXISTING:
        return Interaction.BLOCKED
    return Interaction.OPENABLE


def visible_services(
    services: Sequence[Service] | None, patient_status: str | None
) -> ServiceListing:
    """Annotate ``services`` in their given order; ``None`` means not yet fetched."""

    if services is None:
        return NOT_LOADED
    return ServiceListing(
        entries=tuple(
            AnnotatedService(service=service, interaction=interaction_for(service, patient_status))
            for service in services
        )
    )


def _status_value(patient_status: object) -> str | None:
    # Accepts both the PatientStatus enum and its raw string value.
    value = getattr(patient_status, "value", patient_status)
    return value if isinstance(value, str) else None
