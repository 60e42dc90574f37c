# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os

from fastapi import Request

from authgate.auth.flow import AccessDenied, is_authenticated
from authgate.auth.session import Session


def current_session(request: Request) -> Session:
    return request.state.session


def require_user(request: Request) -> Session:
    """Access gate for protected routes; raises AccessDenied for anonymous sessions."""
    session = current_session(request)
    if not is_authenticated(session):
        raise AccessDenied()
    return session


def cookie_settings() -> dict:
    secure = os.getenv("AUTHGATE_COOKIE_SECURE", "false").lower() in {"1", "true", "yes", "y"}
    return {"httponly": True, "samesite": "lax", "secure": secure}
