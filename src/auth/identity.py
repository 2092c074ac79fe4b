# src/auth/identity.py - v1
"""Authenticated identity providers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from schedulebud.core.errors import AuthenticationRequiredError
from schedulebud.core.models import User


@runtime_checkable
class IdentityProvider(Protocol):
    async def get_current_user(self) -> User | None: ...


class StaticIdentityProvider:
    """Identity fixed at construction (CLI, tests, single-user installs)."""

    def __init__(self, user_id: str | None, email: str | None = None) -> None:
        self._user = User(id=user_id, email=email or None) if user_id else None

    async def get_current_user(self) -> User | None:
        return self._user


async def require_user(identity: IdentityProvider) -> User:
    user = await identity.get_current_user()
    if user is None:
        raise AuthenticationRequiredError()
    return user
