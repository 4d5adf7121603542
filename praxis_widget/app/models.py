"""Database models backing the widget catalogs and settings."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from praxis_widget.extensions import db


class TimestampMixin:
    """Mixin providing timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class PracticeLocation(db.Model, TimestampMixin):
    """A physical location of the practice."""

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(255))
    zip: Mapped[str | None] = mapped_column(String(20))
    city: Mapped[str | None] = mapped_column(String(100))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    services: Mapped[list["PracticeService"]] = relationship(
        "PracticeService", back_populates="location"
    )

    def as_row(self) -> dict[str, object]:
        return {
            "uuid": self.uuid,
            "name": self.name,
            "address": self.address,
            "zip": self.zip,
            "city": self.city,
        }

    def __repr__(self) -> str:
        return f"<PracticeLocation id={self.id} uuid={self.uuid!r}>"


class PracticeService(db.Model, TimestampMixin):
    """A service offered at one location."""

    __tablename__ = "services"
    __table_args__ = (UniqueConstraint("location_id", "service_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False)
    service_key: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    label: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(16))
    patient_restriction: Mapped[str] = mapped_column(String(32), default="all", nullable=False)
    external_url: Mapped[str | None] = mapped_column(String(500))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    location: Mapped[PracticeLocation] = relationship(
        "PracticeLocation", back_populates="services"
    )

    def as_row(self) -> dict[str, object]:
        return {
            "service_key": self.service_key,
            "label": self.label,
            "description": self.description,
            "icon": self.icon,
            "patient_restriction": self.patient_restriction,
            "external_url": self.external_url,
        }

    def __repr__(self) -> str:
        return f"<PracticeService id={self.id} key={self.service_key!r}>"


class PracticeDocument(db.Model, TimestampMixin):
    """A public download offered at one location."""

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    mime_type: Mapped[str | None] = mapped_column(String(100))
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def as_row(self) -> dict[str, object]:
        return {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "mime_type": self.mime_type,
            "file_size": self.file_size,
        }

    def __repr__(self) -> str:
        return f"<PracticeDocument id={self.id} title={self.title!r}>"


class WidgetOption(db.Model):
    """Key/value store for practice-wide widget settings."""

    __tablename__ = "widget_options"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<WidgetOption key={self.key!r}>"
