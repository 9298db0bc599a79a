from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

TokenType = Literal["access", "refresh"]


@dataclass(frozen=True, slots=True)
class IssuedToken:
    """A freshly signed token together with the claims callers need to track it.

    expires_at is Unix seconds, the same value as the token's ``exp`` claim.
    """

    token: str
    jti: str
    expires_at: int


@dataclass(frozen=True, slots=True)
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken
