# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Register / login / logout decisions.

The flow never touches module-level state: the user store and session store
are handed to ``AuthFlow`` and the caller's ``Session`` is passed to every
call. Blocking collaborator work (file I/O, bcrypt) runs in worker threads.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Union

from authgate.auth.passwords import HashError, hash_password, verify_password
from authgate.auth.session import Session, SessionError, SessionStore
from authgate.auth.users import StoreError, UserExistsError, UserRecord, UserStore

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base error of the auth flow. ``message`` is safe to show to clients."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(AuthError):
    pass


class Conflict(AuthError):
    pass


class AuthFailed(AuthError):
    def __init__(self):
        super().__init__("You shall not pass!")


class AlreadyAuthenticated(AuthError):
    def __init__(self, username: str):
        super().__init__(
            f"You are already logged in as {username}. Please log out first before logging in again."
        )
        self.username = username


class NotAuthenticated(AuthError):
    def __init__(self, message: str = "You are not logged in."):
        super().__init__(message)


class AccessDenied(NotAuthenticated):
    def __init__(self):
        super().__init__("You must be logged in to access this resource.")


class NoUsers(AuthError):
    def __init__(self):
        super().__init__("There are no users in the database. You should register a user first.")


class InternalError(AuthError):
    pass


@dataclass(frozen=True)
class Credentials:
    username: Optional[str] = None
    password: Optional[str] = None


def _require_credentials(credentials: Credentials) -> None:
    if not credentials.username:
        raise InvalidInput("Username cannot be empty.")
    if not credentials.password:
        raise InvalidInput("Password cannot be empty.")


def is_authenticated(session: Session) -> bool:
    """Access gate predicate."""
    return bool(session.username)


def check_login(session: Session) -> Union[str, bool]:
    return session.username or False


class AuthFlow:
    def __init__(self, users: UserStore, sessions: SessionStore):
        self.users = users
        self.sessions = sessions

    async def register(self, credentials: Credentials) -> int:
        """Create a user and return its id. The session is left untouched."""
        _require_credentials(credentials)
        username = credentials.username

        try:
            existing = await asyncio.to_thread(self.users.get_user, username)
        except StoreError as exc:
            logger.exception(f"User lookup failed for {username}")
            raise InternalError(f"Server failed to GET user: {exc}") from exc
        if existing:
            raise Conflict(f"Username {username} already exists. Please register with a new username.")

        try:
            password_hash = await asyncio.to_thread(hash_password, credentials.password)
        except HashError as exc:
            logger.exception("Password hashing failed")
            raise InternalError(f"Bcrypt hashing failed: {exc}") from exc

        try:
            record = await asyncio.to_thread(self.users.insert_user, username, password_hash)
        except UserExistsError as exc:
            # lost a race with a concurrent registration
            raise Conflict(f"Username {username} already exists. Please register with a new username.") from exc
        except StoreError as exc:
            logger.exception(f"Insert failed for {username}")
            raise InternalError(f"Server failed to register new user: {exc}") from exc

        logger.info(f"Registered user {username} (id={record.id})")
        return record.id

    async def login(self, credentials: Credentials, session: Session) -> str:
        if session.username:
            raise AlreadyAuthenticated(session.username)
        _require_credentials(credentials)
        username = credentials.username

        try:
            user = await asyncio.to_thread(self.users.get_user, username)
            match = user is not None and await asyncio.to_thread(
                verify_password, user.password_hash, credentials.password
            )
        except (StoreError, HashError) as exc:
            logger.exception(f"Login failed for {username}")
            raise InternalError(f"Server failed to login user: {exc}") from exc

        if not match:
            logger.warning(f"Rejected login for {username}")
            raise AuthFailed()

        session.set_username(username)
        logger.info(f"User logged in: {username}")
        return username

    async def logout(self, session: Session) -> None:
        if not session.username:
            raise NotAuthenticated()
        username = session.username
        try:
            await asyncio.to_thread(self.sessions.destroy, session)
        except SessionError as exc:
            logger.exception(f"Session destroy failed for {username}")
            raise InternalError(f"Server failed to logout user: {exc}") from exc
        logger.info(f"User logged out: {username}")

    async def list_users(self) -> List[UserRecord]:
        """All users; callers must have passed the access gate."""
        try:
            users = await asyncio.to_thread(self.users.list_users)
        except StoreError as exc:
            logger.exception("Listing users failed")
            raise InternalError(f"Server failed to GET all users: {exc}") from exc
        if not users:
            raise NoUsers()
        return users
