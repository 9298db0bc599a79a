"""Builds the credential core from Settings.

All collaborators (store, user directory, event publisher, metrics
recorder) are passed in or built here once, then handed to the app via
``create_app(services)``.  Nothing in the core reaches for a module-level
singleton, so tests can assemble an isolated instance per test.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from credential_service.core.config import Settings
from credential_service.core.metrics import AuthMetrics, NullAuthMetrics
from credential_service.db.redis import create_redis_client
from credential_service.repos.user_repo import InMemoryUserRepo
from credential_service.services.authenticator import RequestAuthenticator
from credential_service.services.events import EventPublisher, NullEventPublisher
from credential_service.services.keys import KeyRing, build_keyrings
from credential_service.services.kv_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
)
from credential_service.services.revocation_ledger import RevocationLedger
from credential_service.services.rotation import RotationProtocol
from credential_service.services.session_registry import SessionRegistry
from credential_service.services.token_service import TokenService


@dataclass
class Services:
    settings: Settings
    store: KeyValueStore
    users: InMemoryUserRepo
    tokens: TokenService
    registry: SessionRegistry
    ledger: RevocationLedger
    rotation: RotationProtocol
    authenticator: RequestAuthenticator
    events: EventPublisher
    metrics: AuthMetrics
    redis_client: Any | None = None


def build_services(
    settings: Settings,
    *,
    store: KeyValueStore | None = None,
    users: InMemoryUserRepo | None = None,
    keyrings: tuple[KeyRing, KeyRing] | None = None,
    events: EventPublisher | None = None,
    metrics: AuthMetrics | None = None,
    clock: Callable[[], float] = time.time,
) -> Services:
    redis_client = None
    if store is None:
        if settings.redis_url:
            redis_client = create_redis_client(settings.redis_url)
            store = RedisKeyValueStore(redis_client)
        else:
            store = InMemoryKeyValueStore(clock=clock)

    users = users if users is not None else InMemoryUserRepo()
    events = events or NullEventPublisher()
    metrics = metrics or NullAuthMetrics()
    access_keys, refresh_keys = keyrings or build_keyrings(settings)

    tokens = TokenService(
        access_keys=access_keys,
        refresh_keys=refresh_keys,
        issuer=settings.token_issuer,
        access_ttl_seconds=settings.access_token_ttl_min * 60,
        refresh_ttl_seconds=settings.refresh_token_ttl_days * 24 * 3600,
        clock=clock,
    )
    registry = SessionRegistry(store)
    ledger = RevocationLedger(store, metrics=metrics, clock=clock)

    return Services(
        settings=settings,
        store=store,
        users=users,
        tokens=tokens,
        registry=registry,
        ledger=ledger,
        rotation=RotationProtocol(
            tokens=tokens,
            registry=registry,
            ledger=ledger,
            directory=users,
            events=events,
            metrics=metrics,
            clock=clock,
        ),
        authenticator=RequestAuthenticator(
            tokens=tokens,
            ledger=ledger,
            directory=users,
            metrics=metrics,
        ),
        events=events,
        metrics=metrics,
        redis_client=redis_client,
    )
