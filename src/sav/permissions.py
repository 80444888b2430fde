# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import HTTPException, Request

from sav.context import AppContext
from sav.domain import Account

_UNSET = object()


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def load_user_from_request(request: Request) -> Optional[Account]:
    ctx = get_context(request)
    token = request.cookies.get(ctx.settings.cookie_name, "")
    if not token:
        return None
    return ctx.current_account(token)


def current_user_optional(request: Request) -> Optional[Account]:
    u = getattr(request.state, "user", _UNSET)
    if u is not _UNSET:
        return u
    u = load_user_from_request(request)
    request.state.user = u
    return u


def require_user(request: Request) -> Account:
    u = current_user_optional(request)
    if u:
        return u
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    loc = f"/login?next={quote(next_url, safe='/')}"
    raise HTTPException(status_code=303, headers={"Location": loc})


def cookie_settings(request: Request) -> dict:
    return {"httponly": True, "samesite": "lax", "secure": get_context(request).settings.cookie_secure}
