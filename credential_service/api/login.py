"""JSON login and registration (/auth/login, /auth/register).

Both verify who the caller is, then start a refresh chain through the
rotation protocol.  The protocol itself never sees a password.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from credential_service.api.dependencies import get_services
from credential_service.api.errors import GENERIC_AUTH_DETAIL
from credential_service.models.tokens import TokenPair
from credential_service.models.user import User
from credential_service.services import auth_service
from credential_service.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# --- Request / Response schemas -------------------------------------------


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterIn(BaseModel):
    name: str
    email: str
    password: str


class UserOut(BaseModel):
    subject: str
    email: str
    name: str
    role: str


class TokenPairOut(BaseModel):
    access_token: str
    access_expires_at: int
    refresh_token: str
    refresh_expires_at: int
    token_type: str = "bearer"

    @classmethod
    def from_pair(cls, pair: TokenPair) -> TokenPairOut:
        return cls(
            access_token=pair.access.token,
            access_expires_at=pair.access.expires_at,
            refresh_token=pair.refresh.token,
            refresh_expires_at=pair.refresh.expires_at,
        )


class LoginOut(TokenPairOut):
    user: UserOut


def _login_out(pair: TokenPair, user: User) -> LoginOut:
    return LoginOut(
        **TokenPairOut.from_pair(pair).model_dump(),
        user=UserOut(
            subject=user.subject, email=user.email, name=user.name, role=user.role
        ),
    )


# --- POST /auth/login -----------------------------------------------------


@router.post("/login", response_model=LoginOut)
async def login(
    payload: LoginIn,
    services: Annotated[Services, Depends(get_services)],
) -> LoginOut:
    email = payload.email.lower().strip()

    user = auth_service.authenticate_user(services.users, email, payload.password)
    if user is None:
        logger.warning("Login failed  email=%s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=GENERIC_AUTH_DETAIL,
            headers={"WWW-Authenticate": "Bearer"},
        )

    pair = await services.rotation.login(user.principal())
    logger.info("Login succeeded  subject=%s email=%s", user.subject, email)
    return _login_out(pair, user)


# --- POST /auth/register --------------------------------------------------


@router.post(
    "/register",
    response_model=LoginOut,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    payload: RegisterIn,
    services: Annotated[Services, Depends(get_services)],
) -> LoginOut:
    email = payload.email.lower().strip()
    name = payload.name.strip()

    if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Invalid email address",
        )
    if not name:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Name is required",
        )
    if len(payload.password) < 8:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Password must be at least 8 characters",
        )

    user = User.new(
        email=email,
        password_hash=auth_service.hash_password(payload.password),
        name=name,
    )
    try:
        services.users.add(user)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists",
        ) from None

    logger.info("User registered  subject=%s email=%s", user.subject, email)

    pair = await services.rotation.login(user.principal())
    return _login_out(pair, user)
