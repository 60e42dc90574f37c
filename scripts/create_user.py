#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from authgate.auth.passwords import hash_password
from authgate.auth.users import DEFAULT_USERS_PATH, UserExistsError, UserStore

USERS_PATH = DEFAULT_USERS_PATH


def main() -> None:
    store = UserStore(USERS_PATH)

    username = input("Username: ").strip()
    if not username:
        raise SystemExit("Username cannot be empty")
    if store.get_user(username):
        raise SystemExit(f"Username {username} already exists")

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if not pw1:
        raise SystemExit("Password cannot be empty")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    try:
        record = store.insert_user(username, hash_password(pw1))
    except UserExistsError:
        raise SystemExit(f"Username {username} already exists")
    print(f"OK -> {USERS_PATH} (id={record.id})")


if __name__ == "__main__":
    main()
