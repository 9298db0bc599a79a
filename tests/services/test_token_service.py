"""Credential issuer tests.

Covers issuance (claims, unique ids, lifetimes), verification with
independent access/refresh keys, legacy-key rollover, and the mapping of
verification outcomes onto MalformedToken / ExpiredToken / TypeMismatch.
"""

from __future__ import annotations

import time

import jwt as pyjwt
import pytest

from credential_service.core.errors import (
    ExpiredToken,
    MalformedToken,
    SigningError,
    TypeMismatch,
)
from credential_service.models.principal import Principal
from credential_service.services.keys import KeyRing, SigningKey, VerifyStatus
from credential_service.services.token_service import (
    ACCESS_AUDIENCE,
    REFRESH_AUDIENCE,
    TokenService,
)

ALICE = Principal(subject="user-a", role="user", email="alice@example.com")


def _service(
    access: KeyRing | None = None,
    refresh: KeyRing | None = None,
    clock=time.time,
) -> TokenService:
    return TokenService(
        access_keys=access or KeyRing(SigningKey.generate()),
        refresh_keys=refresh or KeyRing(SigningKey.generate()),
        issuer="test-issuer",
        access_ttl_seconds=900,
        refresh_ttl_seconds=7 * 24 * 3600,
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Issuance
# ---------------------------------------------------------------------------


def test_access_token_claims() -> None:
    tokens = _service()
    issued = tokens.issue_access(ALICE)

    claims = tokens.verify_access(issued.token)
    assert claims["sub"] == "user-a"
    assert claims["role"] == "user"
    assert claims["email"] == "alice@example.com"
    assert claims["typ"] == "access"
    assert claims["jti"] == issued.jti
    assert claims["exp"] == issued.expires_at
    assert claims["exp"] - claims["iat"] == 900


def test_refresh_token_carries_no_role() -> None:
    tokens = _service()
    issued = tokens.issue_refresh(ALICE)

    claims = tokens.verify_refresh(issued.token)
    assert claims["typ"] == "refresh"
    assert claims["jti"] == issued.jti
    assert "role" not in claims
    assert "email" not in claims
    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600


def test_every_issuance_gets_a_fresh_jti() -> None:
    tokens = _service()
    pairs = [tokens.issue_pair(ALICE) for _ in range(5)]
    jtis = {p.access.jti for p in pairs} | {p.refresh.jti for p in pairs}
    assert len(jtis) == 10


def test_token_header_names_signing_key() -> None:
    access = KeyRing(SigningKey.generate())
    tokens = _service(access=access)
    header = pyjwt.get_unverified_header(tokens.issue_access(ALICE).token)
    assert header["alg"] == "ES256"
    assert header["kid"] == access.signing_key.kid


def test_signing_failure_is_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    access = KeyRing(SigningKey.generate())

    def fail(payload):
        raise pyjwt.InvalidKeyError("key unusable")

    monkeypatch.setattr(access, "sign", fail)
    tokens = _service(access=access)

    with pytest.raises(SigningError):
        tokens.issue_access(ALICE)


# ---------------------------------------------------------------------------
# Kind separation
# ---------------------------------------------------------------------------


def test_refresh_token_rejected_as_access() -> None:
    tokens = _service()
    refresh = tokens.issue_refresh(ALICE)
    with pytest.raises(MalformedToken):
        tokens.verify_access(refresh.token)


def test_access_token_rejected_as_refresh() -> None:
    tokens = _service()
    access = tokens.issue_access(ALICE)
    with pytest.raises(MalformedToken):
        tokens.verify_refresh(access.token)


def test_kinds_stay_apart_even_with_a_shared_key() -> None:
    """Misconfigured deployment: both rings on one key.  Audience still differs."""
    shared = KeyRing(SigningKey.generate())
    tokens = _service(access=shared, refresh=shared)

    with pytest.raises(TypeMismatch):
        tokens.verify_access(tokens.issue_refresh(ALICE).token)
    with pytest.raises(TypeMismatch):
        tokens.verify_refresh(tokens.issue_access(ALICE).token)


def test_forged_typ_claim_rejected() -> None:
    access = KeyRing(SigningKey.generate())
    tokens = _service(access=access)
    now = int(time.time())
    forged = access.sign(
        {
            "sub": "user-a",
            "typ": "refresh",
            "jti": "x",
            "iss": "test-issuer",
            "aud": ACCESS_AUDIENCE,
            "iat": now,
            "exp": now + 60,
        }
    )
    with pytest.raises(TypeMismatch):
        tokens.verify_access(forged)


# ---------------------------------------------------------------------------
# Expiry and malformed input
# ---------------------------------------------------------------------------


def test_expired_access_token() -> None:
    tokens = _service(clock=lambda: time.time() - 3600)
    with pytest.raises(ExpiredToken):
        tokens.verify_access(tokens.issue_access(ALICE).token)


def test_expired_refresh_token_tolerated_when_asked() -> None:
    tokens = _service(clock=lambda: time.time() - 8 * 24 * 3600)
    issued = tokens.issue_refresh(ALICE)

    with pytest.raises(ExpiredToken):
        tokens.verify_refresh(issued.token)
    claims = tokens.verify_refresh(issued.token, verify_exp=False)
    assert claims["jti"] == issued.jti


@pytest.mark.parametrize("garbage", ["", "not.a.jwt", "a.b", "x" * 200])
def test_garbage_is_malformed(garbage: str) -> None:
    with pytest.raises(MalformedToken):
        _service().verify_access(garbage)


def test_alg_none_rejected() -> None:
    tokens = _service()
    now = int(time.time())
    unsigned = pyjwt.encode(
        {
            "sub": "user-a",
            "typ": "access",
            "iss": "test-issuer",
            "aud": ACCESS_AUDIENCE,
            "iat": now,
            "exp": now + 60,
        },
        key=None,
        algorithm="none",
    )
    with pytest.raises(MalformedToken):
        tokens.verify_access(unsigned)


def test_wrong_issuer_is_malformed() -> None:
    refresh = KeyRing(SigningKey.generate())
    tokens = _service(refresh=refresh)
    now = int(time.time())
    other = refresh.sign(
        {
            "sub": "user-a",
            "typ": "refresh",
            "jti": "x",
            "iss": "someone-else",
            "aud": REFRESH_AUDIENCE,
            "iat": now,
            "exp": now + 60,
        }
    )
    with pytest.raises(MalformedToken):
        tokens.verify_refresh(other)


# ---------------------------------------------------------------------------
# Key rollover
# ---------------------------------------------------------------------------


def test_legacy_key_still_verifies_during_rollover() -> None:
    old_key = SigningKey.generate()
    old_tokens = _service(access=KeyRing(old_key))
    issued = old_tokens.issue_access(ALICE)

    rolled = KeyRing(SigningKey.generate(), [old_key.verification_key()])
    assert [k.kid for k in rolled.verification_keys] == [
        rolled.signing_key.kid,
        old_key.kid,
    ]
    new_tokens = _service(access=rolled)

    assert new_tokens.verify_access(issued.token)["jti"] == issued.jti
    # New tokens are signed with the new key only
    header = pyjwt.get_unverified_header(new_tokens.issue_access(ALICE).token)
    assert header["kid"] == rolled.signing_key.kid


def test_key_outside_the_ring_rejected() -> None:
    stranger = _service().issue_access(ALICE)
    with pytest.raises(MalformedToken):
        _service().verify_access(stranger.token)


def test_ring_tries_keys_in_order_when_kid_missing() -> None:
    old_key = SigningKey.generate()
    now = int(time.time())
    token = pyjwt.encode(
        {"sub": "s", "iss": "i", "aud": "a", "iat": now, "exp": now + 60},
        old_key.private_key,
        algorithm="ES256",
    )
    ring = KeyRing(SigningKey.generate(), [old_key.verification_key()])

    result = ring.verify(token, issuer="i", audience="a", required=("sub",))
    assert result.status is VerifyStatus.OK
    assert result.claims is not None and result.claims["sub"] == "s"


def test_ring_reports_bad_signature_without_raising() -> None:
    token = KeyRing(SigningKey.generate()).sign({"sub": "s"})
    result = KeyRing(SigningKey.generate()).verify(
        token, issuer="i", audience="a", required=("sub",)
    )
    assert result.status is VerifyStatus.BAD_SIGNATURE
    assert not result.ok
