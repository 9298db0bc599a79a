"""Password hashing and credential checks for the login endpoint.

The rotation protocol never sees a password: login hands it a principal
that has already been verified here.
"""

from __future__ import annotations

import logging

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from credential_service.models.user import User
from credential_service.repos.user_repo import UserRepo

logger = logging.getLogger(__name__)

_ph = PasswordHasher()

# Verified against when the email is unknown, so a miss costs the same
# argon2 work as a wrong password.
_DUMMY_HASH = _ph.hash("credential-service-dummy-password")


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    # Argon2 includes salt+params in the returned encoded string.
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def authenticate_user(repo: UserRepo, email: str, password: str) -> User | None:
    user = repo.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    if not user.is_active:
        logger.info("Login refused for inactive user=%s", user.id)
        return None

    # Upgrade stored hash if the hasher's parameters changed since it was written.
    if _ph.check_needs_rehash(user.password_hash):
        repo.update_password_hash(user.id, _ph.hash(password))
        logger.info("Rehashed password for user=%s", user.id)

    return user
