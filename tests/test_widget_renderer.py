"""Rendering tests for the widget markup."""
from __future__ import annotations

from datetime import date
import unittest

from praxis_widget.app.services.catalog import (
    DEFAULT_PRIMARY_COLOR,
    Catalogs,
    Document,
    HostContext,
    Location,
    Service,
    WidgetSettings,
)
from praxis_widget.app.services.flow import FlowState, PatientStatus, Step
from praxis_widget.app.services.renderer import WidgetRenderer, theme_variables


class WidgetRendererTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.renderer = WidgetRenderer(HostContext(site_name="Testpraxis"))
        self.settings = WidgetSettings(praxis_name="Praxis Dr. Weber")
        self.catalogs = Catalogs(
            locations=[
                Location(uuid="l1", name="Mitte", address="Hauptstr. 1", zip="10115", city="Berlin"),
                Location(uuid="l2", name="Nord"),
            ],
            services=[
                Service(key="rezept", label="Rezepte", patient_restriction="patients_only"),
                Service(key="termin", label="Termine"),
                Service(key="rueckruf", label="Rückruf"),
                Service(key="anamnesebogen", external_url="https://forms.example/a"),
            ],
            current_location_uuid="l1",
            is_multisite=True,
        )

    def _render(self, state: FlowState, **kwargs: object) -> str:
        catalogs = kwargs.pop("catalogs", self.catalogs)
        settings = kwargs.pop("settings", self.settings)
        renderer = kwargs.pop("renderer", self.renderer)
        return str(renderer.render(state.current_step, state, catalogs, settings))

    def test_welcome_step(self) -> None:
        html = self._render(FlowState())

        self.assertIn('data-step-id="welcome"', html)
        self.assertIn('data-multisite-flag="1"', html)
        self.assertIn("Willkommen bei Praxis Dr. Weber", html)
        self.assertIn('data-patient-status="bestandspatient"', html)
        self.assertIn('aria-valuenow="0"', html)
        self.assertIn("pp-back-btn\" hidden", html)

    def test_location_step_progress(self) -> None:
        state = FlowState(current_step=Step.LOCATION, patient_status=PatientStatus.EXISTING)
        html = self._render(state)

        self.assertIn('data-step-id="location"', html)
        self.assertIn('aria-valuenow="33"', html)
        self.assertIn('data-progress="0.3333"', html)
        self.assertIn('data-location-uuid="l2"', html)
        self.assertNotIn("pp-back-btn\" hidden", html)

    def test_location_without_address_renders_name_only(self) -> None:
        catalogs = Catalogs(
            locations=[Location(uuid="l1", name="Mitte"), Location(uuid="l2", name="Nord")],
            services=[],
            is_multisite=True,
        )
        state = FlowState(current_step=Step.LOCATION, patient_status=PatientStatus.NEW)
        html = self._render(state, catalogs=catalogs)

        self.assertIn('<div class="pp-location-name">Nord</div>', html)
        self.assertNotIn("pp-location-address", html)

    def test_services_step_annotates_cards(self) -> None:
        state = FlowState(
            current_step=Step.SERVICES,
            patient_status=PatientStatus.NEW,
            selected_location_uuid="l2",
        )
        html = self._render(state)

        self.assertIn('data-service-key="rezept"', html)
        self.assertIn('data-location-scope="l2"', html)
        self.assertIn('data-patient-only-flag="1"', html)
        self.assertIn('data-interaction="blocked"', html)
        self.assertIn('aria-disabled="true"', html)
        self.assertIn("Nur für Patienten unserer Praxis", html)
        self.assertIn('data-external-url="https://forms.example/a"', html)
        self.assertEqual(html.count("data-external-url"), 1)
        self.assertLess(html.index('"rezept"'), html.index('"termin"'))

    def test_catalog_states(self) -> None:
        state = FlowState(current_step=Step.SERVICES, patient_status=PatientStatus.NEW)
        pending = self._render(state, catalogs=Catalogs(services=None))
        empty = self._render(state, catalogs=Catalogs(services=[]))

        self.assertIn('data-catalog-state="pending"', pending)
        self.assertIn('data-catalog-state="empty"', empty)
        self.assertNotIn("data-service-key", pending + empty)

    def test_form_for_selected_service(self) -> None:
        state = FlowState(
            current_step=Step.FORM,
            patient_status=PatientStatus.EXISTING,
            selected_location_uuid="l1",
            selected_service_key="rezept",
        )
        html = self._render(state)

        self.assertIn('data-step-id="form"', html)
        self.assertIn('name="service_key" value="rezept"', html)
        self.assertIn('name="location_uuid" value="l1"', html)
        self.assertIn('name="medikamente[0]"', html)
        self.assertIn('name="dsgvo_consent"', html)
        self.assertIn('aria-valuenow="100"', html)

    def test_default_form_for_other_services(self) -> None:
        state = FlowState(
            current_step=Step.FORM,
            patient_status=PatientStatus.NEW,
            selected_location_uuid="l1",
            selected_service_key="rueckruf",
        )
        html = self._render(state)

        self.assertIn('name="nachricht"', html)
        self.assertNotIn("medikamente", html)

    def test_form_without_service_falls_back_to_services(self) -> None:
        state = FlowState(
            current_step=Step.FORM, patient_status=PatientStatus.NEW, selected_location_uuid="l1"
        )
        html = self._render(state)
        self.assertIn('data-step-id="services"', html)

    def test_location_step_outside_flow_falls_back(self) -> None:
        catalogs = Catalogs(locations=[Location(uuid="l1", name="Mitte")], services=[])
        state = FlowState(current_step=Step.LOCATION)
        html = self._render(state, catalogs=catalogs)
        self.assertIn('data-step-id="welcome"', html)
        self.assertIn('data-multisite-flag="0"', html)

    def test_success_step(self) -> None:
        state = FlowState(
            current_step=Step.SUCCESS,
            patient_status=PatientStatus.NEW,
            selected_location_uuid="l1",
            selected_service_key="termin",
        )
        html = self._render(state)
        self.assertIn("Vielen Dank!", html)
        self.assertIn('aria-valuenow="100"', html)

    def test_forged_form_for_blocked_service_renders_services(self) -> None:
        state = FlowState(
            current_step=Step.FORM,
            patient_status=PatientStatus.NEW,
            selected_location_uuid="l1",
            selected_service_key="rezept",
        )
        html = self._render(state)

        self.assertIn('data-step-id="services"', html)
        self.assertNotIn('name="medikamente[0]"', html)

    def test_skipped_steps_render_the_last_reachable_one(self) -> None:
        without_status = FlowState(current_step=Step.SERVICES, selected_location_uuid="l1")
        without_location = FlowState(
            current_step=Step.FORM, patient_status=PatientStatus.NEW, selected_service_key="termin"
        )

        self.assertIn('data-step-id="welcome"', self._render(without_status))
        self.assertIn('data-step-id="location"', self._render(without_location))

    def test_site_relative_logo_uses_home_url(self) -> None:
        renderer = WidgetRenderer(
            HostContext(site_name="Testpraxis", home_url="https://praxis.example/")
        )
        settings = WidgetSettings(praxis_name="Praxis", logo_url="/media/logo.png")

        html = self._render(FlowState(), renderer=renderer, settings=settings)

        self.assertIn('src="https://praxis.example/media/logo.png"', html)

    def test_values_are_escaped(self) -> None:
        settings = WidgetSettings(praxis_name='<script>alert("x")</script>')
        html = self._render(FlowState(), settings=settings)

        self.assertNotIn("<script>", html)
        self.assertIn("&lt;script&gt;", html)

    def test_welcome_text_is_sanitized_rich_text(self) -> None:
        settings = WidgetSettings(
            praxis_name="Praxis", welcome_text="<strong>Hallo</strong><script>x()</script>"
        )
        html = self._render(FlowState(), settings=settings)

        self.assertIn("<strong>Hallo</strong>", html)
        self.assertNotIn("x()", html)

    def test_translated_output(self) -> None:
        renderer = WidgetRenderer(HostContext(site_name="Testpraxis", locale="en_US"))
        html = self._render(FlowState(), renderer=renderer)
        self.assertIn("Welcome to Praxis Dr. Weber", html)
        self.assertIn("Yes, I am a patient", html)

    def test_rendering_is_idempotent(self) -> None:
        state = FlowState(
            current_step=Step.SERVICES,
            patient_status=PatientStatus.EXISTING,
            selected_location_uuid="l1",
        )
        self.assertEqual(self._render(state), self._render(state))

    def test_full_widget_includes_trigger_and_styles(self) -> None:
        html = str(self.renderer.render_widget(FlowState(), self.catalogs, self.settings))

        self.assertIn('id="pp-widget-trigger"', html)
        self.assertIn("--pp-primary: #2563eb;", html)
        self.assertIn('id="pp-widget-container"', html)
        self.assertLess(html.index("pp-widget-vars"), html.index("pp-widget-trigger"))


class ServiceFormsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.renderer = WidgetRenderer(
            HostContext(site_name="Testpraxis", home_url="https://praxis.example")
        )
        self.settings = WidgetSettings(praxis_name="Praxis Dr. Weber")
        self.catalogs = Catalogs(
            locations=[Location(uuid="l1", name="Mitte")],
            services=[
                Service(key=key)
                for key in (
                    "termin",
                    "terminabsage",
                    "ueberweisung",
                    "brillenverordnung",
                    "dokument",
                    "downloads",
                )
            ],
            current_location_uuid="l1",
            documents=[
                Document(
                    title="Anamnesebogen",
                    url="/files/anamnese.pdf",
                    description="Zum Ausfüllen vor dem Termin",
                    file_size=2048,
                    mime_type="application/pdf",
                ),
                Document(title="Defekt", url="javascript:alert(1)"),
            ],
        )

    def _form(self, key: str, catalogs: Catalogs | None = None) -> str:
        state = FlowState(
            current_step=Step.FORM,
            patient_status=PatientStatus.EXISTING,
            selected_service_key=key,
        )
        return str(self.renderer.render(Step.FORM, state, catalogs or self.catalogs, self.settings))

    def test_appointment_request_form(self) -> None:
        html = self._form("termin")

        self.assertIn('name="termin_grund" required', html)
        self.assertIn('<option value="op_vorbereitung">', html)
        self.assertIn('name="termin_tageszeit" value="egal" checked', html)
        self.assertIn('name="termin_hinweis"', html)
        self.assertIn("Termin anfragen", html)
        self.assertIn('name="dsgvo_consent"', html)

    def test_appointment_cancellation_form(self) -> None:
        html = self._form("terminabsage")

        self.assertIn('type="date" id="pp-absage-datum" name="absage_datum" required', html)
        self.assertIn('name="absage_uhrzeit"', html)
        self.assertIn('name="absage_grund"', html)
        self.assertIn('name="absage_neuer_termin" value="nein" checked', html)

    def test_referral_form(self) -> None:
        html = self._form("ueberweisung")

        self.assertIn('name="versicherung" value="privat"', html)
        self.assertIn('name="versichertennachweis"', html)
        self.assertIn('<option value="augenarzt">Augenheilkunde</option>', html)
        self.assertIn('<option value="sonstige">', html)
        self.assertIn('name="ueberw_arzt"', html)
        self.assertIn('name="ueberw_grund"', html)
        self.assertIn('name="ueberw_dringlichkeit" value="normal" checked', html)

    def test_glasses_prescription_form(self) -> None:
        html = self._form("brillenverordnung")

        self.assertIn('name="zustellung" value="versand"', html)
        for name in ("strasse", "plz", "ort", "refraktion_add", "prismen_gewuenscht"):
            with self.subTest(name=name):
                self.assertIn(f'name="{name}"', html)
        self.assertEqual(html.count('name="brillenart[]"'), 4)
        for side in ("rechts", "links"):
            for suffix in ("sph", "cyl", "ach"):
                self.assertIn(f'name="refraktion_{side}_{suffix}"', html)
            self.assertIn(f'name="prisma_{side}_h_basis"', html)
            self.assertIn(f'name="prisma_{side}_v_wert"', html)
        self.assertIn('<option value="aussen">Außen</option>', html)

    def test_document_upload_form(self) -> None:
        html = self._form("dokument")

        self.assertIn('enctype="multipart/form-data"', html)
        self.assertIn('type="file" id="pp-dok-datei" name="dokument_datei" accept="image/*,.pdf"', html)
        self.assertIn('<option value="medikamentenplan">', html)
        self.assertIn('name="dokument_hinweis"', html)
        self.assertIn("Dokument senden", html)

    def test_downloads_list(self) -> None:
        html = self._form("downloads")

        self.assertIn('href="https://praxis.example/files/anamnese.pdf"', html)
        self.assertIn('target="_blank" rel="noopener"', html)
        self.assertIn("📄", html)
        self.assertIn("2.0 KB", html)
        self.assertIn("Zum Ausfüllen vor dem Termin", html)
        self.assertNotIn("javascript:", html)
        self.assertNotIn("Defekt", html)
        self.assertNotIn("<form", html)

    def test_downloads_empty_state(self) -> None:
        catalogs = Catalogs(services=[Service(key="downloads")])
        html = self._form("downloads", catalogs)

        self.assertIn("Aktuell keine Downloads verfügbar.", html)
        self.assertNotIn("pp-download-item", html)

    def test_form_strings_are_translated(self) -> None:
        renderer = WidgetRenderer(HostContext(site_name="Testpraxis", locale="en_US"))
        state = FlowState(
            current_step=Step.FORM,
            patient_status=PatientStatus.EXISTING,
            selected_service_key="termin",
        )
        html = str(renderer.render(Step.FORM, state, self.catalogs, self.settings))

        self.assertIn("Request appointment", html)
        self.assertIn("Preferred time of day", html)


class VacationViewTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.renderer = WidgetRenderer(HostContext(site_name="Testpraxis"))
        self.settings = WidgetSettings(
            praxis_name="Praxis Dr. Weber",
            vacation_active=True,
            vacation_text="Wir sind <em>im Urlaub</em>.<script>x()</script>",
            vacation_end_date=date(2026, 8, 31),
        )
        self.catalogs = Catalogs(
            locations=[Location(uuid="l1", name="Mitte"), Location(uuid="l2", name="Nord")],
            services=[Service(key="termin")],
            is_multisite=True,
        )

    def test_vacation_view_has_no_step_markup(self) -> None:
        html = str(self.renderer.render_widget(FlowState(), self.catalogs, self.settings))

        self.assertIn("Urlaubsmodus aktiv", html)
        self.assertIn("Wir sind <em>im Urlaub</em>.", html)
        self.assertIn("31.08.2026", html)
        self.assertNotIn("x()", html)
        for marker in ("data-step-id", "pp-progress", "data-service-key", "data-patient-status"):
            with self.subTest(marker=marker):
                self.assertNotIn(marker, html)

    def test_render_short_circuits_any_step(self) -> None:
        state = FlowState(current_step=Step.SERVICES, patient_status=PatientStatus.EXISTING)
        html = str(self.renderer.render(Step.SERVICES, state, self.catalogs, self.settings))
        self.assertIn("pp-widget-vacation", html)
        self.assertNotIn("data-step-id", html)

    def test_default_vacation_notice(self) -> None:
        settings = WidgetSettings(vacation_active=True)
        html = str(self.renderer.render_vacation_view(settings))
        self.assertIn("Die Praxis befindet sich derzeit im Urlaub.", html)
        self.assertIn("Testpraxis", html)


class ThemeTestCase(unittest.TestCase):
    def test_invalid_colors_fall_back(self) -> None:
        theme = theme_variables(
            WidgetSettings(primary_color="red;} body{display:none", widget_position="top")
        )
        self.assertEqual(theme["primary"], DEFAULT_PRIMARY_COLOR)
        self.assertEqual(theme["position"], "right")

    def test_valid_colors_are_kept(self) -> None:
        theme = theme_variables(
            WidgetSettings(primary_color="#abc", secondary_color="#112233", widget_position="left")
        )
        self.assertEqual(theme, {"primary": "#abc", "secondary": "#112233", "position": "left"})


if __name__ == "__main__":  # pragma: no cover - manual execution path
    unittest.main()
