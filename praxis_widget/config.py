"""Configuration objects for the Praxis widget service."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Type

basedir = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key")
    SITE_NAME: str = os.getenv("SITE_NAME", "Praxis")
    SITE_URL: str = os.getenv("SITE_URL", "")
    WIDGET_LOCALE: str = os.getenv("WIDGET_LOCALE", "de_DE")
    WIDGET_DATE_FORMAT: str = os.getenv("WIDGET_DATE_FORMAT", "%d.%m.%Y")


class DevelopmentConfig(Config):
    """Configuration suitable for local development."""

    _db_path = basedir / "dev.db"
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URL", f"sqlite:///{_db_path}")
    DEBUG = True


class TestingConfig(Config):
    """Isolated in-memory configuration for the test suite."""

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key"
    SITE_NAME = "Testpraxis"
    SITE_URL = "https://praxis.example"
    TESTING = True
    DEBUG = False


class ProductionConfig(Config):
    """Configuration tailored for production deployments."""

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///praxis_widget.db")
    DEBUG = False


CONFIG_MAP: Dict[str, Type[Config]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(name: str | None) -> Type[Config]:
    """Retrieve the configuration class matching the supplied name."""

    if not name:
        return DevelopmentConfig
    return CONFIG_MAP.get(name.lower(), DevelopmentConfig)
