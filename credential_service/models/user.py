from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from credential_service.models.principal import Principal


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    password_hash: str
    role: str = "user"
    name: str = ""
    is_active: bool = True

    @staticmethod
    def new(
        *,
        email: str,
        password_hash: str,
        role: str = "user",
        name: str = "",
    ) -> User:
        return User(
            id=uuid4(),
            email=email,
            password_hash=password_hash,
            role=role,
            name=name,
            is_active=True,
        )

    @property
    def subject(self) -> str:
        return str(self.id)

    def principal(self) -> Principal:
        return Principal(subject=self.subject, role=self.role, email=self.email)
