"""Error taxonomy for the credential core.

These exceptions are framework-agnostic.  The HTTP layer translates them
(see ``credential_service.api.errors``): every ``AuthError`` becomes the
same generic 401, ``StoreUnavailable`` becomes 503.  The class name and
message exist for server-side logs only and must never reach a client.
"""

from __future__ import annotations


class CredentialError(Exception):
    """Base class for all errors raised by the credential core."""


class AuthError(CredentialError):
    """Authentication failed.  Always surfaced as a uniform 401."""

    #: Short machine-friendly reason, used as a metrics label and in logs.
    reason = "invalid"


class MalformedToken(AuthError):
    """Bad signature, unknown key, or a payload missing required claims."""

    reason = "malformed"


class ExpiredToken(AuthError):
    reason = "expired"


class TypeMismatch(AuthError):
    """An access token was presented where a refresh token is expected, or
    vice versa."""

    reason = "type_mismatch"


class RevokedToken(AuthError):
    """The token id is present in the revocation ledger."""

    reason = "revoked"


class ReuseDetected(AuthError):
    """A refresh token that is not the subject's current one was presented.

    Either it was already consumed by a rotation, the session was revoked,
    or a newer login displaced it.
    """

    reason = "reuse"


class UnknownPrincipal(AuthError):
    """The token's subject no longer resolves in the user directory."""

    reason = "unknown_principal"


class StoreUnavailable(CredentialError):
    """The backing key-value store could not be reached.  Fail closed."""


class SigningError(CredentialError):
    """Token signing failed.  A configuration fault, never a client error."""
