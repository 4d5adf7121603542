"""Context-aware escaping for values substituted into widget markup."""
from __future__ import annotations

import logging
import re
from html.parser import HTMLParser
from typing import Any
from urllib.parse import urlsplit

from markupsafe import Markup, escape as _escape_html

LOGGER = logging.getLogger(__name__)

CONTEXT_TEXT = "text"
CONTEXT_ATTRIBUTE = "attribute"
CONTEXT_URL = "url"
CONTEXT_RICH_TEXT = "richText"

ESCAPE_CONTEXTS = frozenset({CONTEXT_TEXT, CONTEXT_ATTRIBUTE, CONTEXT_URL, CONTEXT_RICH_TEXT})

SAFE_URL_SCHEMES = frozenset({"http", "https", "mailto", "tel"})

RICH_TEXT_TAGS = frozenset(
    {"a", "b", "br", "em", "i", "li", "ol", "p", "span", "strong", "u", "ul"}
)
_VOID_TAGS = frozenset({"br"})
_DROP_CONTENT_TAGS = frozenset({"script", "style", "iframe", "object", "template"})
_LINK_ATTRIBUTES = ("href", "title", "target")

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def escape(value: Any, context: str = CONTEXT_TEXT) -> Markup:
    """Return ``value`` made safe for the given output position."""

    if context not in ESCAPE_CONTEXTS:
        raise ValueError(f"Unknown escape context: {context!r}")

    text = "" if value is None else str(value)
    if context == CONTEXT_URL:
        return _escape_html(safe_url(text))
    if context == CONTEXT_RICH_TEXT:
        return sanitize_rich_text(text)
    if context == CONTEXT_ATTRIBUTE:
        text = _CONTROL_CHARS.sub(" ", text)
    return _escape_html(text)


def safe_url(value: str) -> str:
    """Return a normalized URL or ``""`` when it is not safe to emit."""

    text = (value or "").strip()
    if not text:
        return ""
    if _CONTROL_CHARS.search(text) or " " in text or "\\" in text:
        LOGGER.debug(
            "Rejected URL containing whitespace, backslashes or control characters: %r", text
        )
        return ""
    if text.startswith("//"):
        LOGGER.debug("Rejected protocol-relative URL: %r", text)
        return ""
    if text.startswith(("/", "#", "?")):
        return text

    try:
        parts = urlsplit(text)
    except ValueError:
        LOGGER.debug("Rejected unparsable URL: %r", text)
        return ""

    scheme = parts.scheme.lower()
    if scheme not in SAFE_URL_SCHEMES:
        LOGGER.debug("Rejected URL with scheme %r", scheme)
        return ""
    if scheme in {"http", "https"} and not parts.netloc:
        LOGGER.debug("Rejected URL without host: %r", text)
        return ""
    return text


def sanitize_rich_text(value: Any) -> Markup:
    """Reduce free text to the rich-text allow-list.

    Only the practice's welcome and vacation texts are passed through here.
    Disallowed tags are removed (their text is kept and escaped), the content
    of script-like elements is dropped, and ``<a href>`` is re-validated.
    """

    text = "" if value is None else str(value)
    if not text:
        return Markup("")
    parser = _RichTextSanitizer()
    parser.feed(text)
    parser.close()
    return Markup(parser.result())


class _RichTextSanitizer(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._parts: list[str] = []
        self._open: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _DROP_CONTENT_TAGS:
            self._skip_depth += 1
            return
        if self._skip_depth or tag not in RICH_TEXT_TAGS:
            return
        rendered = self._render_attributes(tag, attrs)
        if tag in _VOID_TAGS:
            self._parts.append(f"<{tag}>")
            return
        self._parts.append(f"<{tag}{rendered}>")
        self._open.append(tag)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _VOID_TAGS and not self._skip_depth:
            self._parts.append(f"<{tag}>")

    def handle_endtag(self, tag: str) -> None:
        if tag in _DROP_CONTENT_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if self._skip_depth or tag not in self._open:
            return
        while self._open:
            current = self._open.pop()
            self._parts.append(f"</{current}>")
            if current == tag:
                break

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._parts.append(str(_escape_html(data)))

    def result(self) -> str:
        closing = "".join(f"</{tag}>" for tag in reversed(self._open))
        return "".join(self._parts) + closing

    @staticmethod
    def _render_attributes(tag: str, attrs: list[tuple[str, str | None]]) -> str:
        if tag != "a":
            return ""
        values = {name: value or "" for name, value in attrs if name in _LINK_ATTRIBUTES}
        rendered: list[str] = []
        href = safe_url(values.get("href", ""))
        if href:
            rendered.append(f' href="{_escape_html(href)}"')
        if values.get("title"):
            rendered.append(f' title="{_escape_html(values["title"])}"')
        if values.get("target") == "_blank":
            rendered.append(' target="_blank" rel="noopener"')
        return "".join(rendered)
