"""Tests for context-aware escaping and string localization."""
from __future__ import annotations

import unittest

from markupsafe import Markup

from praxis_widget.app.services.escaping import (
    CONTEXT_ATTRIBUTE,
    CONTEXT_RICH_TEXT,
    CONTEXT_TEXT,
    CONTEXT_URL,
    escape,
    safe_url,
    sanitize_rich_text,
)
from praxis_widget.app.services.localization import Translator, resolve_locale


class EscapeTestCase(unittest.TestCase):
    def test_text_context_escapes_markup(self) -> None:
        result = escape("<b>Dr. Müller & Partner</b>", CONTEXT_TEXT)
        self.assertIsInstance(result, Markup)
        self.assertEqual(str(result), "&lt;b&gt;Dr. Müller &amp; Partner&lt;/b&gt;")

    def test_attribute_context_escapes_quotes_and_controls(self) -> None:
        result = str(escape('a"b\'c\nd', CONTEXT_ATTRIBUTE))
        self.assertNotIn('"', result)
        self.assertNotIn("'", result)
        self.assertNotIn("\n", result)

    def test_none_becomes_empty(self) -> None:
        self.assertEqual(str(escape(None)), "")

    def test_unknown_context_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            escape("x", "css")

    def test_url_context_drops_script_urls(self) -> None:
        self.assertEqual(str(escape("javascript:alert(1)", CONTEXT_URL)), "")
        self.assertEqual(
            str(escape("https://praxis.example/?a=1&b=2", CONTEXT_URL)),
            "https://praxis.example/?a=1&amp;b=2",
        )


class SafeUrlTestCase(unittest.TestCase):
    def test_accepted_urls(self) -> None:
        for url in (
            "https://praxis.example/termine",
            "http://praxis.example",
            "mailto:info@praxis.example",
            "tel:+4930123456",
            "/kontakt",
            "#pp-widget",
        ):
            with self.subTest(url=url):
                self.assertEqual(safe_url(url), url)

    def test_rejected_urls(self) -> None:
        for url in (
            "javascript:alert(1)",
            "JaVaScRiPt:alert(1)",
            "data:text/html;base64,AAAA",
            "//evil.example/x",
            "https:///missing-host",
            "java\tscript:alert(1)",
            "https://praxis.example/a b",
            "/\\evil.example",
            "/\\/evil.example/x",
            "https:\\\\evil.example",
        ):
            with self.subTest(url=url):
                self.assertEqual(safe_url(url), "")


class RichTextTestCase(unittest.TestCase):
    def test_allowed_tags_are_kept(self) -> None:
        result = sanitize_rich_text("<p>Willkommen <strong>heute</strong><br/>bis 18 Uhr</p>")
        self.assertEqual(str(result), "<p>Willkommen <strong>heute</strong><br>bis 18 Uhr</p>")

    def test_script_content_is_dropped(self) -> None:
        result = str(sanitize_rich_text("Hallo<script>alert('x')</script> Welt"))
        self.assertEqual(result, "Hallo Welt")

    def test_disallowed_tags_keep_escaped_text(self) -> None:
        result = str(sanitize_rich_text('<div onclick="x()">A &lt; B</div>'))
        self.assertEqual(result, "A &lt; B")

    def test_links_are_revalidated(self) -> None:
        result = str(
            sanitize_rich_text(
                '<a href="javascript:alert(1)" onclick="x">a</a>'
                '<a href="https://praxis.example" target="_blank">b</a>'
            )
        )
        self.assertIn("<a>a</a>", result)
        self.assertIn('<a href="https://praxis.example" target="_blank" rel="noopener">b</a>', result)
        self.assertNotIn("onclick", result)

    def test_backslash_links_are_dropped(self) -> None:
        result = str(sanitize_rich_text('<a href="/\\evil.example">weiter</a>'))
        self.assertEqual(result, "<a>weiter</a>")

    def test_unclosed_tags_are_closed(self) -> None:
        self.assertEqual(str(sanitize_rich_text("<p><em>offen")), "<p><em>offen</em></p>")

    def test_rich_text_context_uses_sanitizer(self) -> None:
        self.assertEqual(str(escape("<u>x</u><img src=x>", CONTEXT_RICH_TEXT)), "<u>x</u>")


class LocalizationTestCase(unittest.TestCase):
    def test_resolve_locale(self) -> None:
        self.assertEqual(resolve_locale("en-US"), "en_US")
        self.assertEqual(resolve_locale("fr"), "fr_FR")
        self.assertEqual(resolve_locale("es_ES"), "de_DE")
        self.assertEqual(resolve_locale(None, "en_US"), "en_US")

    def test_single_letter_does_not_match_a_language(self) -> None:
        self.assertEqual(resolve_locale("e"), "de_DE")
        self.assertEqual(resolve_locale("f", "en_US"), "en_US")
        self.assertEqual(resolve_locale("E_"), "de_DE")

    def test_translate_known_key(self) -> None:
        translator = Translator("en_US")
        self.assertEqual(translator.translate("Zurück"), "Back")
        self.assertEqual(translator("Vielen Dank!"), "Thank you!")

    def test_missing_key_falls_back_to_source(self) -> None:
        self.assertEqual(Translator("fr_FR").translate("Gibt es nicht"), "Gibt es nicht")

    def test_source_locale_returns_key(self) -> None:
        self.assertEqual(Translator("de_DE").translate("Zurück"), "Zurück")


if __name__ == "__main__":  # pragma: no cover - manual execution path
    unittest.main()
