from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Principal:
    """Identity a token is issued to, as supplied by the user directory.

    Immutable for the life of any token minted from it.  Endpoints receive
    this from the request authenticator instead of a raw subject string.
    """

    subject: str
    role: str = "user"
    email: str | None = None

    def has_role(self, role: str) -> bool:
        return self.role == role
