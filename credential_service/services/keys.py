"""Signing keys and ordered verification for ES256 tokens.

Each token kind (access, refresh) owns a ``KeyRing``.  The ring's first key
is the active signing key; any further keys are legacy *verification-only*
keys kept during a rollover window.  Verification walks the ring in that
fixed order and reports the outcome as a ``VerifyResult`` value: the loop
moves on to the next key only when a key reports ``BAD_SIGNATURE``.

Tokens carry the signing key's ``kid`` header, so after a rollover the
right key is normally picked directly; the ordered walk is what handles
tokens minted before kids were stamped.

Dev/test: keys are generated in-process (ephemeral; restart = all tokens
invalid).  Prod: keys are loaded from PEM files named in Settings.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from credential_service.core.config import Settings

logger = logging.getLogger(__name__)

ALGORITHM = "ES256"


def _key_id(public_key: ec.EllipticCurvePublicKey) -> str:
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha256(der).hexdigest()[:16]


@dataclass(frozen=True)
class VerificationKey:
    kid: str
    public_key: ec.EllipticCurvePublicKey

    @staticmethod
    def from_public_key(public_key: ec.EllipticCurvePublicKey) -> VerificationKey:
        return VerificationKey(kid=_key_id(public_key), public_key=public_key)


@dataclass(frozen=True)
class SigningKey:
    kid: str
    private_key: ec.EllipticCurvePrivateKey

    @staticmethod
    def generate() -> SigningKey:
        private_key = ec.generate_private_key(ec.SECP256R1())
        return SigningKey(kid=_key_id(private_key.public_key()), private_key=private_key)

    @staticmethod
    def from_private_key(private_key: ec.EllipticCurvePrivateKey) -> SigningKey:
        return SigningKey(kid=_key_id(private_key.public_key()), private_key=private_key)

    def verification_key(self) -> VerificationKey:
        return VerificationKey(kid=self.kid, public_key=self.private_key.public_key())


class VerifyStatus(Enum):
    OK = "ok"
    EXPIRED = "expired"
    BAD_SIGNATURE = "bad_signature"
    WRONG_AUDIENCE = "wrong_audience"
    INVALID = "invalid"


@dataclass(frozen=True)
class VerifyResult:
    status: VerifyStatus
    claims: dict[str, Any] | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is VerifyStatus.OK


class KeyRing:
    """Active signing key plus legacy verification keys, in priority order."""

    def __init__(
        self,
        signing_key: SigningKey,
        legacy_keys: Sequence[VerificationKey] = (),
    ) -> None:
        self._signing_key = signing_key
        self._verification_keys: tuple[VerificationKey, ...] = (
            signing_key.verification_key(),
            *legacy_keys,
        )

    @property
    def signing_key(self) -> SigningKey:
        return self._signing_key

    @property
    def verification_keys(self) -> tuple[VerificationKey, ...]:
        return self._verification_keys

    def sign(self, payload: dict[str, Any]) -> str:
        return jwt.encode(
            payload,
            self._signing_key.private_key,
            algorithm=ALGORITHM,
            headers={"kid": self._signing_key.kid},
        )

    def verify(
        self,
        token: str,
        *,
        issuer: str,
        audience: str,
        required: Sequence[str],
        verify_exp: bool = True,
    ) -> VerifyResult:
        """Verify *token* against the ring, first matching key wins.

        Pins the algorithm to ES256 to prevent alg:none and alg-switching.
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            return VerifyResult(VerifyStatus.INVALID, detail=str(exc))

        if header.get("alg") != ALGORITHM:
            return VerifyResult(
                VerifyStatus.INVALID, detail=f"unexpected alg {header.get('alg')!r}"
            )

        kid = header.get("kid")
        if kid is None:
            candidates = self._verification_keys
        else:
            candidates = tuple(k for k in self._verification_keys if k.kid == kid)
            if not candidates:
                return VerifyResult(VerifyStatus.BAD_SIGNATURE, detail="unknown kid")

        result = VerifyResult(VerifyStatus.BAD_SIGNATURE, detail="no keys")
        for key in candidates:
            result = _decode_with(
                token,
                key,
                issuer=issuer,
                audience=audience,
                required=required,
                verify_exp=verify_exp,
            )
            if result.status is not VerifyStatus.BAD_SIGNATURE:
                return result
        return result


def _decode_with(
    token: str,
    key: VerificationKey,
    *,
    issuer: str,
    audience: str,
    required: Sequence[str],
    verify_exp: bool,
) -> VerifyResult:
    # PyJWT checks the signature before any claim, so EXPIRED and
    # WRONG_AUDIENCE both imply this key signed the token.
    try:
        claims = jwt.decode(
            token,
            key.public_key,
            algorithms=[ALGORITHM],
            issuer=issuer,
            audience=audience,
            options={"require": list(required), "verify_exp": verify_exp},
        )
    except jwt.InvalidSignatureError:
        return VerifyResult(VerifyStatus.BAD_SIGNATURE, detail=f"kid={key.kid}")
    except jwt.ExpiredSignatureError:
        return VerifyResult(VerifyStatus.EXPIRED, detail=f"kid={key.kid}")
    except jwt.InvalidAudienceError as exc:
        return VerifyResult(VerifyStatus.WRONG_AUDIENCE, detail=str(exc))
    except jwt.InvalidTokenError as exc:
        return VerifyResult(VerifyStatus.INVALID, detail=str(exc))
    return VerifyResult(VerifyStatus.OK, claims=claims)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_signing_key(path: str) -> SigningKey:
    private_key = serialization.load_pem_private_key(
        Path(path).read_bytes(), password=None
    )
    if not isinstance(private_key, ec.EllipticCurvePrivateKey):
        raise ValueError(f"{path}: expected an EC private key for {ALGORITHM}")
    return SigningKey.from_private_key(private_key)


def load_verification_key(path: str) -> VerificationKey:
    public_key = serialization.load_pem_public_key(Path(path).read_bytes())
    if not isinstance(public_key, ec.EllipticCurvePublicKey):
        raise ValueError(f"{path}: expected an EC public key for {ALGORITHM}")
    return VerificationKey.from_public_key(public_key)


def build_keyrings(settings: Settings) -> tuple[KeyRing, KeyRing]:
    """Return (access_ring, refresh_ring) with independent signing keys."""
    if settings.access_signing_key_file:
        access_key = load_signing_key(settings.access_signing_key_file)
    else:
        logger.warning("No ACCESS_SIGNING_KEY_FILE; using an ephemeral access key")
        access_key = SigningKey.generate()

    if settings.refresh_signing_key_file:
        refresh_key = load_signing_key(settings.refresh_signing_key_file)
    else:
        logger.warning("No REFRESH_SIGNING_KEY_FILE; using an ephemeral refresh key")
        refresh_key = SigningKey.generate()

    if access_key.kid == refresh_key.kid:
        raise ValueError("access and refresh tokens must use different signing keys")

    legacy: list[VerificationKey] = []
    if settings.access_legacy_public_key_file:
        legacy.append(load_verification_key(settings.access_legacy_public_key_file))
        logger.info("Legacy access verification key loaded  kid=%s", legacy[0].kid)

    return KeyRing(access_key, legacy), KeyRing(refresh_key)
