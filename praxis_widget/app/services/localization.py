"""Locale resolution and string lookup for widget copy."""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

LOGGER = logging.getLogger(__name__)

SOURCE_LOCALE = "de_DE"
SUPPORTED_LOCALES = ("de_DE", "en_US", "fr_FR")

TRANSLATIONS_DIR = Path(__file__).resolve().parent.parent / "translations"


def resolve_locale(requested: str | None, default: str = SOURCE_LOCALE) -> str:
    """Return the supported locale best matching ``requested``."""

    candidate = (requested or "").strip().replace("-", "_")
    if candidate in SUPPORTED_LOCALES:
        return candidate
    language = candidate[:2].lower() if len(candidate) >= 2 else ""
    if language.isalpha():
        for supported in SUPPORTED_LOCALES:
            if supported.startswith(language):
                return supported
    if default != requested:
        return resolve_locale(default, SOURCE_LOCALE)
    return SOURCE_LOCALE


@lru_cache(maxsize=None)
def load_catalog(locale: str) -> Mapping[str, str]:
    """Load the translation mapping for ``locale`` (empty for the source language)."""

    if locale == SOURCE_LOCALE:
        return MappingProxyType({})
    path = TRANSLATIONS_DIR / f"{locale}.json"
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        LOGGER.debug("No translation catalog for locale %s", locale)
        return MappingProxyType({})
    if not isinstance(raw, dict):
        raise ValueError(f"Translation catalog {path.name} must be a JSON object.")
    return MappingProxyType({str(key): str(value) for key, value in raw.items()})


class Translator:
    """Translate German source strings into the active locale."""

    def __init__(self, locale: str | None = None) -> None:
        self.locale = resolve_locale(locale)
        self._catalog = load_catalog(self.locale)

    def translate(self, key: str) -> str:
        """Return the localized text, or ``key`` itself when no entry exists."""

        translated = self._catalog.get(key)
        if translated:
            return translated
        if self.locale != SOURCE_LOCALE:
            LOGGER.debug("Missing %s translation for %r", self.locale, key)
        return key

    __call__ = translate
