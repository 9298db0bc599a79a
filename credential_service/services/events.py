"""Publish interface for session-change fan-out.

The rotation protocol announces what happened (a session was created,
rotated, revoked, or a refresh token was replayed) and nothing more.  Who
listens, realtime push, audit, alerting, lives outside the core behind
``EventPublisher``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

SESSION_CREATED = "auth.session.created"
SESSION_ROTATED = "auth.session.rotated"
SESSION_REVOKED = "auth.session.revoked"
REFRESH_REUSE_DETECTED = "auth.refresh.reuse_detected"


@runtime_checkable
class EventPublisher(Protocol):
    async def publish(self, topic: str, payload: dict[str, Any]) -> None: ...


class NullEventPublisher:
    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        return None


@dataclass
class InMemoryEventPublisher:
    """Collects published events in order.  Used by tests and local dev."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    async def publish(self, topic: str, payload: dict[str, Any]) -> None:
        self.events.append((topic, dict(payload)))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.events]
