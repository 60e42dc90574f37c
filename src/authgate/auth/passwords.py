# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os

import bcrypt


def rounds_from_env() -> int:
    # 12 matches the hashes already issued by the service
    return int(os.getenv("AUTHGATE_BCRYPT_ROUNDS", "12"))


# Work factor (cost)
BCRYPT_ROUNDS = rounds_from_env()


class HashError(Exception):
    """The hasher could not produce or check a hash."""


def hash_password(plain: str) -> str:
    if not plain:
        raise HashError("Password cannot be empty")
    try:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")
    except (ValueError, TypeError) as exc:
        raise HashError(str(exc)) from exc


def verify_password(hash_value: str, plain: str) -> bool:
    """Constant-time check of ``plain`` against a stored bcrypt hash.

    Empty inputs never match. A malformed stored hash raises HashError.
    """
    if not hash_value or not plain:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hash_value.encode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise HashError(str(exc)) from exc
