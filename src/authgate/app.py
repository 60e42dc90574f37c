# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from authgate.auth.flow import (
    AccessDenied,
    AlreadyAuthenticated,
    AuthError,
    AuthFailed,
    AuthFlow,
    Conflict,
    Credentials,
    InternalError,
    InvalidInput,
    NoUsers,
    NotAuthenticated,
    check_login,
)
from authgate.auth.session import COOKIE_NAME, SessionStore, sign_session_id
from authgate.auth.users import DEFAULT_USERS_PATH, UserStore
from authgate.permissions import cookie_settings, current_session, require_user

USERS_PATH = Path(os.getenv("AUTHGATE_USERS_PATH", str(DEFAULT_USERS_PATH))).resolve()
SESSION_MAX_AGE = int(os.getenv("AUTHGATE_SESSION_MAX_AGE", "28800"))

USERS = UserStore(USERS_PATH)
SESSIONS = SessionStore(max_age=SESSION_MAX_AGE)
FLOW = AuthFlow(USERS, SESSIONS)

# Most specific class first; the first isinstance match wins.
STATUS_BY_ERROR = [
    (AccessDenied, 401),
    (AlreadyAuthenticated, 401),
    (InvalidInput, 401),
    (AuthFailed, 401),
    (Conflict, 403),
    (NoUsers, 404),
    (InternalError, 500),
    (NotAuthenticated, 400),
]

# Malformed bodies on these routes are reported like missing credentials.
CREDENTIAL_ROUTES = {"/api/login", "/api/register"}

app = FastAPI(title="authgate")


class CredentialsIn(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None

    def to_credentials(self) -> Credentials:
        return Credentials(username=self.username, password=self.password)


def _status_for(exc: AuthError) -> int:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return status
    return 500


@app.exception_handler(AuthError)
async def _auth_error_handler(request: Request, exc: AuthError):
    return JSONResponse(status_code=_status_for(exc), content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError):
    path = request.url.path
    if path not in CREDENTIAL_ROUTES:
        return await request_validation_exception_handler(request, exc)
    session = getattr(request.state, "session", None)
    if path == "/api/login" and session is not None and session.username:
        error: AuthError = AlreadyAuthenticated(session.username)
    else:
        fields = {err["loc"][-1] for err in exc.errors() if err.get("loc")}
        field = "Password" if fields == {"password"} else "Username"
        error = InvalidInput(f"{field} cannot be empty.")
    return await _auth_error_handler(request, error)


@app.middleware("http")
async def _session_middleware(request: Request, call_next):
    session = SESSIONS.load(request.cookies.get(COOKIE_NAME, ""))
    request.state.session = session
    response = await call_next(request)

    if session.destroyed:
        response.delete_cookie(COOKIE_NAME, **cookie_settings())
    elif session.modified:
        was_new = session.is_new
        SESSIONS.save(session)
        if was_new:
            response.set_cookie(
                COOKIE_NAME,
                sign_session_id(session.id),
                max_age=SESSIONS.max_age,
                **cookie_settings(),
            )
    return response


# ------------------ Routes ------------------


@app.get("/api/users")
async def list_users(session=Depends(require_user)):
    users = await FLOW.list_users()
    return [u.to_public() for u in users]


@app.get("/api/restricted/{section}")
def restricted(section: str, session=Depends(require_user)):
    return {
        "message": (
            f"You are in {section}. You are allowed to view this because "
            f"you are logged in as {session.username}."
        )
    }


@app.get("/api/checklogin")
def checklogin(session=Depends(current_session)):
    return check_login(session)


@app.post("/api/login", status_code=201)
async def login(body: Optional[CredentialsIn] = None, session=Depends(current_session)):
    username = await FLOW.login((body or CredentialsIn()).to_credentials(), session)
    return {"welcome": username}


@app.post("/api/logout")
async def logout(session=Depends(current_session)):
    await FLOW.logout(session)
    return {"message": "Successfully logged out."}


@app.post("/api/register", status_code=201)
async def register(body: Optional[CredentialsIn] = None):
    return await FLOW.register((body or CredentialsIn()).to_credentials())
