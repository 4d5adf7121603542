"""State machine deciding which widget step is shown and how events move it.

The step sequence is fixed per configuration::

    welcome -> [location] -> services -> form -> success

``location`` only exists for practices with more than one location. Vacation
mode replaces the whole sequence with a single notice state and rejects every
event. Transitions are table driven and never partially applied: an event
either yields a new :class:`FlowState` or raises a :class:`FlowError` and the
caller keeps the old state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from fractions import Fraction
from functools import lru_cache
from typing import Any, Callable, Collection, Mapping, Sequence, Union

from praxis_widget.app.services.catalog import Catalogs, Service, WidgetSettings
from praxis_widget.app.services.service_filter import Interaction, interaction_for

LOGGER = logging.getLogger(__name__)


class Step(str, Enum):
    WELCOME = "welcome"
    LOCATION = "location"
    SERVICES = "services"
    FORM = "form"
    SUCCESS = "success"
    VACATION = "vacation"


class PatientStatus(str, Enum):
    EXISTING = "bestandspatient"
    NEW = "neupatient"


# ``success`` is reported as complete but is not a slot of the progress bar.
PROGRESS_COUNTS_SUCCESS = False

OUTCOME_ADVANCED = "advanced"
OUTCOME_EXTERNAL_REDIRECT = "external_redirect"

POLICY_PATIENTS_ONLY = "patients_only"


class FlowError(RuntimeError):
    """Base class for rejected flow events."""


class InvalidTransition(FlowError):
    """Raised when an event is not valid for the current step."""


class PolicyViolation(FlowError):
    """Raised when an event is well-formed but forbidden for this patient."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True, slots=True)
class FlowConfig:
    is_multisite: bool = False
    location_count: int = 0
    vacation_active: bool = False

    @property
    def has_location_step(self) -> bool:
        return self.is_multisite and self.location_count > 1

    @classmethod
    def from_catalogs(cls, catalogs: Catalogs, settings: WidgetSettings) -> "FlowConfig":
        return cls(
            is_multisite=catalogs.is_multisite,
            location_count=len(catalogs.locations),
            vacation_active=settings.vacation_active,
        )


@dataclass(frozen=True, slots=True)
class FlowState:
    current_step: Step = Step.WELCOME
    patient_status: PatientStatus | None = None
    selected_location_uuid: str | None = None
    selected_service_key: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "current_step", Step(self.current_step))
        if self.patient_status is not None:
            object.__setattr__(self, "patient_status", PatientStatus(self.patient_status))

    def to_dict(self) -> dict[str, Any]:
        return {
            "current_step": self.current_step.value,
            "patient_status": self.patient_status.value if self.patient_status else None,
            "selected_location_uuid": self.selected_location_uuid,
            "selected_service_key": self.selected_service_key,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FlowState":
        """Rebuild a state from its JSON form, raising ``ValueError`` on bad values."""

        for name in _STATE_FIELDS:
            value = payload.get(name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string.")
        status = payload.get("patient_status")
        return cls(
            current_step=Step(payload.get("current_step") or Step.WELCOME.value),
            patient_status=PatientStatus(status) if status else None,
            selected_location_uuid=payload.get("selected_location_uuid") or None,
            selected_service_key=payload.get("selected_service_key") or None,
        )


_STATE_FIELDS = (
    "current_step",
    "patient_status",
    "selected_location_uuid",
    "selected_service_key",
)


@dataclass(frozen=True, slots=True)
class ChoosePatientStatus:
    status: PatientStatus


@dataclass(frozen=True, slots=True)
class ChooseLocation:
    uuid: str


@dataclass(frozen=True, slots=True)
class ChooseService:
    key: str


@dataclass(frozen=True, slots=True)
class SubmitForm:
    pass


@dataclass(frozen=True, slots=True)
class NavigateBack:
    pass


Event = Union[ChoosePatientStatus, ChooseLocation, ChooseService, SubmitForm, NavigateBack]


@dataclass(frozen=True, slots=True)
class Transition:
    state: FlowState
    outcome: str = OUTCOME_ADVANCED
    redirect_url: str | None = None


@lru_cache(maxsize=64)
def available_steps(config: FlowConfig) -> tuple[Step, ...]:
    """Return the ordered steps for ``config`` (empty while on vacation)."""

    if config.vacation_active:
        return ()
    steps = [Step.WELCOME]
    if config.has_location_step:
        steps.append(Step.LOCATION)
    steps.extend((Step.SERVICES, Step.FORM, Step.SUCCESS))
    return tuple(steps)


def initial_step(config: FlowConfig) -> Step:
    if config.vacation_active:
        return Step.VACATION
    return Step.WELCOME


def initial_state(config: FlowConfig) -> FlowState:
    return FlowState(current_step=initial_step(config))


def progress_steps(config: FlowConfig) -> tuple[Step, ...]:
    steps = available_steps(config)
    if PROGRESS_COUNTS_SUCCESS:
        return steps
    return tuple(step for step in steps if step is not Step.SUCCESS)


def progress_fraction(step: Step, config: FlowConfig) -> Fraction:
    """Return ``index(step) / (len(progress steps) - 1)``."""

    steps = progress_steps(config)
    if step not in steps:
        return Fraction(1) if step is Step.SUCCESS else Fraction(0)
    if len(steps) < 2:
        return Fraction(1)
    return Fraction(steps.index(step), len(steps) - 1)


def check_state(
    state: FlowState,
    *,
    config: FlowConfig,
    services: Sequence[Service] | None = (),
    location_uuids: Collection[str] | None = None,
) -> None:
    """Raise unless ``state`` is one this flow can actually reach.

    States arrive from the widget, so a step past ``welcome`` needs a patient
    status, a step past ``location`` needs a known location, and ``form`` or
    ``success`` need a selected service the patient is allowed to open.
    """

    if config.vacation_active:
        return
    steps = available_steps(config)
    if state.current_step not in steps:
        raise InvalidTransition(f"Step {state.current_step.value!r} is not part of this flow.")
    position = steps.index(state.current_step)

    if position > 0 and state.patient_status is None:
        raise InvalidTransition(f"Step {state.current_step.value!r} requires a patient status.")

    location = state.selected_location_uuid
    if location and location_uuids is not None and location not in location_uuids:
        raise InvalidTransition(f"Unknown location {location!r}.")
    if config.has_location_step and position > steps.index(Step.LOCATION) and not location:
        raise InvalidTransition(f"Step {state.current_step.value!r} requires a location.")

    if state.current_step in (Step.FORM, Step.SUCCESS):
        service = next(
            (item for item in services or () if item.key == state.selected_service_key), None
        )
        if service is None or not service.key:
            raise InvalidTransition(f"Unknown service {state.selected_service_key!r}.")
        interaction = interaction_for(service, state.patient_status)
        if interaction is Interaction.BLOCKED:
            raise PolicyViolation(
                POLICY_PATIENTS_ONLY,
                f"Service {service.key!r} is only available to existing patients.",
            )
        if interaction is Interaction.EXTERNAL:
            raise InvalidTransition(f"Service {service.key!r} has no form.")


def reachable_step(
    state: FlowState,
    *,
    config: FlowConfig,
    services: Sequence[Service] | None = (),
    location_uuids: Collection[str] | None = None,
) -> Step:
    """Return the furthest step up to ``state.current_step`` that ``state`` can show."""

    steps = available_steps(config)
    if not steps:
        return Step.VACATION
    current = state.current_step
    if current not in steps:
        current = Step.SERVICES if state.patient_status else steps[0]
    for step in reversed(steps[: steps.index(current) + 1]):
        try:
            check_state(
                replace(state, current_step=step),
                config=config,
                services=services,
                location_uuids=location_uuids,
            )
        except FlowError:
            continue
        return step
    return steps[0]


def advance(
    state: FlowState,
    event: Event,
    *,
    config: FlowConfig,
    services: Sequence[Service] = (),
    location_uuids: Collection[str] | None = None,
) -> Transition:
    """Apply ``event`` to ``state`` and return the resulting transition."""

    if config.vacation_active:
        raise InvalidTransition("The widget is in vacation mode.")
    check_state(state, config=config, services=services, location_uuids=location_uuids)
    if state.current_step is Step.SUCCESS:
        raise InvalidTransition("The request has already been submitted.")

    steps = available_steps(config)

    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise InvalidTransition(f"Unsupported event {type(event).__name__}.")
    return handler(state, event, steps, services, location_uuids)


def _next_step(steps: Sequence[Step], current: Step) -> Step:
    return steps[steps.index(current) + 1]


def _require_step(state: FlowState, expected: Step, event: object) -> None:
    if state.current_step is not expected:
        raise InvalidTransition(
            f"{type(event).__name__} is only valid at {expected.value!r}, "
            f"not at {state.current_step.value!r}."
        )


def _on_patient_status(state, event, steps, services, location_uuids) -> Transition:
    _require_step(state, Step.WELCOME, event)
    try:
        status = PatientStatus(event.status)
    except ValueError as exc:
        raise InvalidTransition(f"Unknown patient status {event.status!r}.") from exc
    return Transition(
        replace(state, patient_status=status, current_step=_next_step(steps, Step.WELCOME))
    )


def _on_location(state, event, steps, services, location_uuids) -> Transition:
    _require_step(state, Step.LOCATION, event)
    if not event.uuid or (location_uuids is not None and event.uuid not in location_uuids):
        raise InvalidTransition(f"Unknown location {event.uuid!r}.")
    return Transition(
        replace(
            state,
            selected_location_uuid=event.uuid,
            current_step=_next_step(steps, Step.LOCATION),
        )
    )


def _on_service(state, event, steps, services, location_uuids) -> Transition:
    _require_step(state, Step.SERVICES, event)
    service = next((item for item in services if item.key == event.key), None)
    if service is None or not service.key:
        raise InvalidTransition(f"Unknown service {event.key!r}.")

    interaction = interaction_for(service, state.patient_status)
    if interaction is Interaction.BLOCKED:
        LOGGER.debug("Service %s blocked for patient status %s", service.key, state.patient_status)
        raise PolicyViolation(
            POLICY_PATIENTS_ONLY,
            f"Service {service.key!r} is only available to existing patients.",
        )
    if interaction is Interaction.EXTERNAL:
        return Transition(state, outcome=OUTCOME_EXTERNAL_REDIRECT, redirect_url=service.external_url)
    return Transition(replace(state, selected_service_key=service.key, current_step=Step.FORM))


def _on_submit(state, event, steps, services, location_uuids) -> Transition:
    _require_step(state, Step.FORM, event)
    return Transition(replace(state, current_step=Step.SUCCESS))


def _on_back(state, event, steps, services, location_uuids) -> Transition:
    index = steps.index(state.current_step)
    if index == 0:
        raise InvalidTransition("Cannot navigate back from the first step.")
    return Transition(replace(state, current_step=steps[index - 1]))


_HANDLERS: dict[type, Callable[..., Transition]] = {
    ChoosePatientStatus: _on_patient_status,
    ChooseLocation: _on_location,
    ChooseService: _on_service,
    SubmitForm: _on_submit,
    NavigateBack: _on_back,
}


class StepFlowController:
    """Owns the flow state of one widget instance.

    Callers are expected to debounce UI events; replaying the same event is not
    detected here.
    """

    def __init__(
        self,
        config: FlowConfig,
        services: Sequence[Service] = (),
        location_uuids: Collection[str] | None = None,
        state: FlowState | None = None,
    ) -> None:
        self.config = config
        self.steps = available_steps(config)
        self._services = tuple(services)
        self._location_uuids = frozenset(location_uuids) if location_uuids is not None else None
        self.state = state if state is not None else initial_state(config)

    def dispatch(self, event: Event) -> Transition:
        transition = advance(
            self.state,
            event,
            config=self.config,
            services=self._services,
            location_uuids=self._location_uuids,
        )
        self.state = transition.state
        return transition

    def verify(self) -> None:
        """Raise when the held state is not reachable in this flow."""

        check_state(
            self.state,
            config=self.config,
            services=self._services,
            location_uuids=self._location_uuids,
        )

    def reset(self) -> FlowState:
        self.state = initial_state(self.config)
        return self.state

    @property
    def progress(self) -> Fraction:
        return progress_fraction(self.state.current_step, self.config)
