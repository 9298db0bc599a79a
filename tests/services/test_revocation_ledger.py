from __future__ import annotations

import asyncio

from credential_service.services.kv_store import InMemoryKeyValueStore
from credential_service.services.revocation_ledger import RevocationLedger, remaining_ttl
from tests.conftest import FakeClock, RecordingMetrics


def test_remaining_ttl_is_at_least_one_second() -> None:
    assert remaining_ttl(1000, 400) == 600
    assert remaining_ttl(1000, 999.5) == 1
    assert remaining_ttl(1000, 1000) == 1
    assert remaining_ttl(1000, 5000) == 1


def test_remaining_ttl_rounds_partial_seconds_up() -> None:
    assert remaining_ttl(1000, 400.6) == 600
    assert remaining_ttl(1000, 999.1) == 1


def test_revoked_until_expiry_with_sub_second_clock() -> None:
    clock = FakeClock(1_700_000_000.6)
    store = InMemoryKeyValueStore(clock=clock)
    ledger = RevocationLedger(store, clock=clock)
    expires_at = 1_700_000_900

    asyncio.run(ledger.revoke("jti-1", expires_at))

    clock.now = expires_at - 0.2
    assert asyncio.run(ledger.is_revoked("jti-1")) is True


def test_revoked_until_token_expiry() -> None:
    clock = FakeClock()
    store = InMemoryKeyValueStore(clock=clock)
    ledger = RevocationLedger(store, clock=clock)

    asyncio.run(ledger.revoke("jti-1", clock.now + 300))
    assert asyncio.run(ledger.is_revoked("jti-1")) is True
    assert store.ttl("bl:jti-1") == 300

    clock.advance(299)
    assert asyncio.run(ledger.is_revoked("jti-1")) is True
    clock.advance(1)
    assert asyncio.run(ledger.is_revoked("jti-1")) is False


def test_already_expired_token_is_held_for_one_second() -> None:
    clock = FakeClock()
    store = InMemoryKeyValueStore(clock=clock)
    ledger = RevocationLedger(store, clock=clock)

    asyncio.run(ledger.revoke("old", clock.now - 3600))
    assert store.ttl("bl:old") == 1


def test_unknown_jti_is_not_revoked() -> None:
    ledger = RevocationLedger(InMemoryKeyValueStore())
    assert asyncio.run(ledger.is_revoked("never-seen")) is False


def test_ledger_checks_are_counted() -> None:
    metrics = RecordingMetrics()
    ledger = RevocationLedger(InMemoryKeyValueStore(), metrics=metrics)

    async def scenario() -> None:
        await ledger.revoke("a", 10**10)
        await ledger.is_revoked("a")
        await ledger.is_revoked("b")
        await ledger.is_revoked("c")

    asyncio.run(scenario())
    assert metrics.counts[("ledger_check", "revoked")] == 1
    assert metrics.counts[("ledger_check", "valid")] == 2
