"""
Test configuration and fixtures for the LiveCoach test suite.

Environment defaults are set before any livecoach module reads configuration.
"""

import os

os.environ.setdefault("LIVECOACH_AUTH_JWT_SECRET", "test-jwt-secret-key-for-testing-only")
os.environ.setdefault("LIVECOACH_LOGGING_ENVIRONMENT", "unit_test")
os.environ.setdefault("LIVECOACH_LOGGING_LEVEL", "DEBUG")
os.environ.setdefault("LIVECOACH_SERVER_PORT", "54731")

import pytest  # noqa: E402

from livecoach.auth.authenticator import ConnectionAuthenticator  # noqa: E402
from livecoach.realtime.message_router import MessageRouter  # noqa: E402
from livecoach.realtime.room_directory import RoomDirectory  # noqa: E402
from livecoach.realtime.session_hub import SessionHub  # noqa: E402
from livecoach.services.anomaly_detector import AnomalyDetector  # noqa: E402
from livecoach.services.form_scoring import HeuristicFormScorer  # noqa: E402

from .fixtures.fakes import (  # noqa: E402
    FakeTokenVerifier,
    FakeUserDirectory,
    InMemoryEphemeralStore,
    ManualClock,
    make_profile,
)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def directory():
    return RoomDirectory()


@pytest.fixture
def store(clock):
    return InMemoryEphemeralStore(clock=clock)


@pytest.fixture
def users():
    return FakeUserDirectory(
        profiles=[
            make_profile("u-alice", "Alice"),
            make_profile("u-bob", "Bob"),
            make_profile("u-trainer", "Trainer"),
            make_profile("u-gone", "Gone", active=False),
        ],
        posts={"post-1": "u-bob"},
    )


@pytest.fixture
def verifier():
    return FakeTokenVerifier(
        {
            "token-alice": "u-alice",
            "token-bob": "u-bob",
            "token-trainer": "u-trainer",
            "token-gone": "u-gone",
            "token-ghost": "u-ghost",
        }
    )


@pytest.fixture
def router(directory, store, users, clock):
    return MessageRouter(directory, store, AnomalyDetector(), HeuristicFormScorer(), users, clock=clock)


@pytest.fixture
def authenticator(verifier, users):
    return ConnectionAuthenticator(verifier, users, timeout_seconds=1.0)


@pytest.fixture
def hub(authenticator, directory, router):
    return SessionHub(authenticator, directory, router)
