from __future__ import annotations

import sys
from collections import Counter
from dataclasses import replace
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import credential_service` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from credential_service.core.config import SETTINGS, Settings  # noqa: E402
from credential_service.main import create_app  # noqa: E402
from credential_service.models.user import User  # noqa: E402
from credential_service.services import auth_service  # noqa: E402
from credential_service.services.container import Services, build_services  # noqa: E402
from credential_service.services.events import InMemoryEventPublisher  # noqa: E402
from credential_service.services.keys import KeyRing, SigningKey  # noqa: E402
from credential_service.services.kv_store import InMemoryKeyValueStore  # noqa: E402

TEST_PASSWORD = "securepass123"
# argon2 is deliberately slow; hash once for the whole session.
_PASSWORD_HASH = auth_service.hash_password(TEST_PASSWORD)


class RecordingMetrics:
    """AuthMetrics that counts (event, result) pairs."""

    def __init__(self) -> None:
        self.counts: Counter[tuple[str, str]] = Counter()

    def record(self, event: str, result: str) -> None:
        self.counts[(event, result)] += 1


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings() -> Settings:
    return replace(SETTINGS, app_env="test", redis_url=None)


@pytest.fixture
def keyrings() -> tuple[KeyRing, KeyRing]:
    return KeyRing(SigningKey.generate()), KeyRing(SigningKey.generate())


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def events() -> InMemoryEventPublisher:
    return InMemoryEventPublisher()


@pytest.fixture
def metrics() -> RecordingMetrics:
    return RecordingMetrics()


@pytest.fixture
def services(
    settings: Settings,
    keyrings: tuple[KeyRing, KeyRing],
    store: InMemoryKeyValueStore,
    events: InMemoryEventPublisher,
    metrics: RecordingMetrics,
) -> Services:
    return build_services(
        settings,
        store=store,
        keyrings=keyrings,
        events=events,
        metrics=metrics,
    )


@pytest.fixture
def client(services: Services) -> TestClient:
    return TestClient(create_app(services))


def seed_user(
    services: Services,
    email: str = "alice@example.com",
    *,
    role: str = "user",
    name: str = "Alice",
) -> User:
    """Add a user with TEST_PASSWORD to the services' directory."""
    user = User.new(email=email, password_hash=_PASSWORD_HASH, role=role, name=name)
    services.users.add(user)
    return user


@pytest.fixture
def user(services: Services) -> User:
    return seed_user(services)


def login(client: TestClient, email: str = "alice@example.com") -> dict:
    """Log in through the API and return the response body."""
    resp = client.post("/auth/login", json={"email": email, "password": TEST_PASSWORD})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
