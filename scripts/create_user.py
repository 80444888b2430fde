#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from sav.config import Settings
from sav.context import AppContext
from sav.errors import DuplicateUsername


def main() -> None:
    ctx = AppContext.create(Settings.from_env())
    try:
        username = input("Username: ").strip()
        pw1 = getpass("Password: ")
        pw2 = getpass("Repeat password: ")
        if pw1 != pw2:
            raise SystemExit("Passwords no coinciden")
        try:
            account = ctx.register_local(username, pw1)
        except DuplicateUsername:
            raise SystemExit(f"El usuario '{username}' ya existe")
        except ValueError as e:
            raise SystemExit(str(e))
        print(f"OK -> {account.id}")
    finally:
        ctx.close()


if __name__ == "__main__":
    main()
