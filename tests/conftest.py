"""Pytest fixtures for the Konzertmeister to BMV sync tests.

This module provides test fixtures that ensure:
1. No external API calls are made (BMV, Konzertmeister, OpenAI)
2. Isolated test environment with controlled configuration
3. In-memory fakes for the collaborators of the sync engine
"""

import os
from collections.abc import Sequence
from datetime import datetime

import pytest

# Set test environment BEFORE importing application modules
os.environ.setdefault("BMV_USERNAME", "test-bmv-user")
os.environ.setdefault("BMV_PASSWORD", "test-bmv-password")
os.environ.setdefault("KM_USERNAME", "test@example.com")
os.environ.setdefault("KM_PASSWORD", "test-km-password")
os.environ.setdefault("AUTH_TOKEN", "test-auth-token-0123456789")
os.environ.pop("OPENAI_API_KEY", None)

from km_bmv_sync.classification.classifier import CategoryClassifier
from km_bmv_sync.config import Settings
from km_bmv_sync.models.activity import Activity, NewActivity
from km_bmv_sync.models.appointment import Appointment, AppointmentQuery
from km_bmv_sync.sync.transform import ActivityTransformer


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from km_bmv_sync.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings independent of any local .env file."""
    return Settings(
        _env_file=None,
        auth_token="test-auth-token-0123456789",
        bmv_username="test-bmv-user",
        bmv_password="test-bmv-password",
        km_username="test@example.com",
        km_password="test-km-password",
        openai_api_key=None,
    )


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeClassifier(CategoryClassifier):
    """Returns a fixed label (or the first category) and records calls."""

    name = "fake"

    def __init__(self, label: str | None = None, error: Exception | None = None):
        self.label = label
        self.error = error
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    async def _classify(self, text: str, categories: Sequence[str]) -> str | None:
        self.calls.append((text, tuple(categories)))
        if self.error:
            raise self.error
        return self.label if self.label is not None else categories[0]


class FakeBmv:
    """In-memory BMV service."""

    def __init__(
        self,
        activities: list[Activity] | None = None,
        credentials_ok: bool = True,
        fetch_error: Exception | None = None,
        post_ok: bool = True,
    ):
        self.activities = activities if activities is not None else []
        self.credentials_ok = credentials_ok
        self.fetch_error = fetch_error
        self.post_ok = post_ok
        self.calls: list[str] = []
        self.fetched_since: datetime | None = None
        self.posted: list[list[NewActivity]] = []

    async def verify_credentials(self) -> bool:
        self.calls.append("verify_credentials")
        return self.credentials_ok

    async def get_activities(self, since: datetime) -> list[Activity]:
        self.calls.append("get_activities")
        self.fetched_since = since
        if self.fetch_error:
            raise self.fetch_error
        return self.activities

    async def post_activities(self, activities: list[NewActivity]) -> bool:
        self.calls.append("post_activities")
        self.posted.append(list(activities))
        return self.post_ok


class FakeKonzertmeister:
    """In-memory Konzertmeister service."""

    def __init__(
        self,
        appointments: list[Appointment] | None = None,
        login_ok: bool = True,
        fetch_error: Exception | None = None,
    ):
        self.appointments = appointments if appointments is not None else []
        self.login_ok = login_ok
        self.fetch_error = fetch_error
        self.calls: list[str] = []

    async def login(self) -> bool:
        self.calls.append("login")
        return self.login_ok

    async def get_all_appointments(self, query: AppointmentQuery) -> list[Appointment]:
        self.calls.append("get_all_appointments")
        if self.fetch_error:
            raise self.fetch_error
        return list(self.appointments)


@pytest.fixture
def fake_classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def transformer(fake_classifier: FakeClassifier) -> ActivityTransformer:
    return ActivityTransformer(fake_classifier)


# =============================================================================
# Sample Data
# =============================================================================


def make_appointment(appointment_id: int, name: str = "Probe", **kwargs) -> Appointment:
    """Build an appointment from Konzertmeister-style JSON keys."""
    return Appointment.model_validate({"id": appointment_id, "name": name, **kwargs})


def make_activity(activity_id: str, annotation: str | None = None) -> Activity:
    return Activity.model_validate(
        {"ID": activity_id, "verein_id": 236, "Anmerkung": annotation}
    )


@pytest.fixture
def rehearsal() -> Appointment:
    """A regular full rehearsal."""
    return make_appointment(
        1001,
        "Gesamtprobe",
        typId=1,
        description="  Marschbuch mitnehmen  ",
        start="2025-03-07T18:30:00Z",
        end="2025-03-07T20:30:00Z",
        meetingPoint="Probelokal",
    )


@pytest.fixture
def performance() -> Appointment:
    """A performance with a structured location."""
    return make_appointment(
        2002,
        "Frühschoppen Feuerwehrfest",
        typId=2,
        start="2025-07-13T08:00:00Z",
        end="2025-07-13T11:00:00Z",
        location={
            "id": 7,
            "name": "Festzelt",
            "geo": True,
            "formattedAddress": "Hauptplatz 1, 4020 Linz, Austria",
            "latitude": 48.3,
            "longitude": 14.29,
        },
        creatorName="Obmann",
        liAttendance={"id": 1, "kmUserId": 2, "appointmentId": 2002, "attending": True},
    )
