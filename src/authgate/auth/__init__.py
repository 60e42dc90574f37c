# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication building blocks.

This package provides:
- Password hashing/verification (bcrypt)
- User store backed by data/users.yml
- Server-side sessions with signed cookie ids (itsdangerous)
- The auth flow (register, login, logout, access gate)
"""
