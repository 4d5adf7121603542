"""Bulk re-ordering of services across all locations."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from praxis_widget.app.models import PracticeService
from praxis_widget.extensions import db

LOGGER = logging.getLogger(__name__)

DEFAULT_SERVICE_ORDER: Mapping[str, int] = MappingProxyType(
    {
        "termin": 1,
        "terminabsage": 2,
        "rezept": 3,
        "ueberweisung": 4,
        "brillenverordnung": 5,
        "dokument": 6,
        "downloads": 7,
        "anamnesebogen": 8,
        "notfall": 9,
    }
)


@dataclass(slots=True)
class ServiceOrderReport:
    """Outcome of a batch run: rows touched per key plus failures."""

    affected: dict[str, int] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    @property
    def updated(self) -> int:
        return sum(self.affected.values())

    @property
    def errors(self) -> int:
        return len(self.failed)

    def as_dict(self) -> dict[str, Any]:
        return {
            "affected": dict(self.affected),
            "failed": list(self.failed),
            "updated": self.updated,
            "errors": self.errors,
        }


def apply_service_order(order_map: Mapping[str, int] = DEFAULT_SERVICE_ORDER) -> ServiceOrderReport:
    """Set ``sort_order`` for every service key in ``order_map``.

    Each key is committed on its own; a failing key is rolled back, counted and
    the remaining keys are still processed.
    """

    report = ServiceOrderReport()
    for service_key, sort_order in order_map.items():
        try:
            result = db.session.execute(
                update(PracticeService)
                .where(PracticeService.service_key == service_key)
                .values(sort_order=int(sort_order))
            )
            db.session.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            db.session.rollback()
            LOGGER.warning("Failed to update sort order for %s: %s", service_key, exc)
            report.failed.append(service_key)
            continue

        report.affected[service_key] = result.rowcount or 0
        LOGGER.debug(
            "%s: sort_order = %s (%s rows)", service_key, sort_order, report.affected[service_key]
        )

    LOGGER.info("Service order updated: %s rows, %s errors", report.updated, report.errors)
    return report


def parse_order_map(payload: Any) -> dict[str, int]:
    """Validate a JSON ``{service_key: sort_order}`` object."""

    if not isinstance(payload, dict) or not payload:
        raise ValueError("order must be a non-empty object of service_key to sort order.")
    parsed: dict[str, int] = {}
    for key, value in payload.items():
        name = str(key).strip()
        if not name:
            raise ValueError("Service keys cannot be blank.")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"Sort order for {name!r} must be an integer.")
        parsed[name] = value
    return parsed
