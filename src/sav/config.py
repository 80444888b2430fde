# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Anchor defaults to the project root, not the current working directory.
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_DATABASE_URL = f"sqlite:///{BASE_DIR / 'data' / 'sav.db'}"


def _env(*names: str) -> str:
    for name in names:
        v = (os.getenv(name) or "").strip()
        if v:
            return v
    return ""


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class ProviderCredentials:
    client_id: str
    client_secret: str = field(repr=False)
    callback_url: str


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration, loaded once at startup."""

    secret_key: str = field(repr=False)
    encryption_key: str = field(repr=False)
    google: ProviderCredentials
    facebook: ProviderCredentials
    database_url: str = DEFAULT_DATABASE_URL
    cookie_name: str = "sav_session"
    session_max_age: int = 28800  # 8 hours
    cookie_secure: bool = False

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        load_dotenv(env_file or (BASE_DIR / ".env"), override=False)

        required = {
            "SAV_SECRET_KEY": _env("SAV_SECRET_KEY", "SECRET_KEY"),
            "SAV_ENCRYPTION_KEY": _env("SAV_ENCRYPTION_KEY", "ENCRYPTION_KEY"),
            "GOOGLE_CLIENT_ID": _env("GOOGLE_CLIENT_ID"),
            "GOOGLE_CLIENT_SECRET": _env("GOOGLE_CLIENT_SECRET"),
            "GOOGLE_CALLBACK_URL": _env("GOOGLE_CALLBACK_URL"),
            "FACEBOOK_APP_ID": _env("FACEBOOK_APP_ID"),
            "FACEBOOK_APP_SECRET": _env("FACEBOOK_APP_SECRET"),
            "FACEBOOK_CALLBACK_URL": _env("FACEBOOK_CALLBACK_URL"),
        }
        missing = [k for k, v in required.items() if not v]
        if missing:
            raise RuntimeError(f"Faltan variables de entorno requeridas: {', '.join(missing)}")

        return cls(
            secret_key=required["SAV_SECRET_KEY"],
            encryption_key=required["SAV_ENCRYPTION_KEY"],
            google=ProviderCredentials(
                client_id=required["GOOGLE_CLIENT_ID"],
                client_secret=required["GOOGLE_CLIENT_SECRET"],
                callback_url=required["GOOGLE_CALLBACK_URL"],
            ),
            facebook=ProviderCredentials(
                client_id=required["FACEBOOK_APP_ID"],
                client_secret=required["FACEBOOK_APP_SECRET"],
                callback_url=required["FACEBOOK_CALLBACK_URL"],
            ),
            database_url=_env("SAV_DATABASE_URL") or DEFAULT_DATABASE_URL,
            cookie_name=_env("SAV_COOKIE_NAME") or "sav_session",
            session_max_age=int(_env("SAV_SESSION_MAX_AGE") or "28800"),
            cookie_secure=_flag("SAV_COOKIE_SECURE"),
        )
