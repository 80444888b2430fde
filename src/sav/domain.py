# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Domain records handed out by the store and the services.

These are plain frozen dataclasses: callers never see ORM objects, so nothing
outside :mod:`sav.infra` can mutate persisted state by accident.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Secret:
    """One stored note. Only the ciphertext is ever persisted."""

    ciphertext: str


@dataclass(frozen=True)
class Account:
    id: str
    username: Optional[str] = None
    password_hash: Optional[str] = field(default=None, repr=False)
    external_ids: Dict[str, str] = field(default_factory=dict)
    secrets: Tuple[Secret, ...] = ()

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def display_name(self) -> str:
        if self.username:
            return self.username
        if self.external_ids:
            provider = sorted(self.external_ids)[0]
            return f"{provider}:{self.external_ids[provider]}"
        return self.id


@dataclass(frozen=True)
class DecryptedSecret:
    # content is None when the stored ciphertext could not be decrypted
    content: Optional[str]
    readable: bool = True


@dataclass(frozen=True)
class AccountSecrets:
    account_id: str
    username: Optional[str]
    secrets: List[DecryptedSecret]
