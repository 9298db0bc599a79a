from __future__ import annotations

from dataclasses import replace
from typing import Protocol, runtime_checkable
from uuid import UUID

from credential_service.models.principal import Principal
from credential_service.models.user import User


@runtime_checkable
class UserDirectory(Protocol):
    """What the credential core needs from the user store: subject -> principal.

    Returns None for unknown *and* deactivated subjects; both must stop
    token refresh and authentication alike.
    """

    def find_principal(self, subject: str) -> Principal | None: ...


class UserRepo(UserDirectory, Protocol):
    def get_by_id(self, user_id: UUID) -> User | None: ...
    def get_by_email(self, email: str) -> User | None: ...
    def add(self, user: User) -> None: ...
    def set_active(self, user_id: UUID, is_active: bool) -> None: ...
    def set_role(self, user_id: UUID, role: str) -> None: ...
    def update_password_hash(self, user_id: UUID, password_hash: str) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, User] = {}
        self._by_id: dict[UUID, User] = {}

    def get_by_id(self, user_id: UUID) -> User | None:
        return self._by_id.get(user_id)

    def get_by_email(self, email: str) -> User | None:
        return self._by_email.get(email.lower().strip())

    def find_principal(self, subject: str) -> Principal | None:
        try:
            user = self._by_id.get(UUID(subject))
        except ValueError:
            return None
        if user is None or not user.is_active:
            return None
        return user.principal()

    def add(self, user: User) -> None:
        if user.email in self._by_email:
            raise ValueError("email already exists")
        self._by_email[user.email] = user
        self._by_id[user.id] = user

    def _update(self, user_id: UUID, **changes) -> User:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")
        updated = replace(u, **changes)
        self._by_id[user_id] = updated
        self._by_email[updated.email] = updated
        return updated

    def set_active(self, user_id: UUID, is_active: bool) -> None:
        self._update(user_id, is_active=is_active)

    def set_role(self, user_id: UUID, role: str) -> None:
        self._update(user_id, role=role)

    def update_password_hash(self, user_id: UUID, password_hash: str) -> None:
        self._update(user_id, password_hash=password_hash)

    def clear(self) -> None:
        self._by_email.clear()
        self._by_id.clear()
