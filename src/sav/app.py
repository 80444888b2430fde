# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from sav.config import Settings
from sav.context import AppContext
from sav.domain import Account
from sav.errors import AccountNotFound, AuthenticationFailed, DuplicateUsername, ProviderExchangeFailed, StorageUnavailable
from sav.permissions import cookie_settings, current_user_optional, get_context, require_user

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _render(request: Request, template_name: str, ctx: Optional[dict] = None, status_code: int = 200):
    """TemplateResponse wrapper injecting the current user."""
    base_ctx = {"current_user": getattr(request.state, "user", None)}
    merged = {**base_ctx, **(ctx or {})}
    return templates.TemplateResponse(request, template_name, merged, status_code=status_code)


def _safe_next(next_url: str) -> str:
    n = (next_url or "").strip()
    if not n.startswith("/") or n.startswith("//"):
        return "/secrets"
    return n


def _start_session(request: Request, account: Account, next_url: str = "/secrets") -> RedirectResponse:
    ctx = get_context(request)
    token = ctx.login(account)
    resp = RedirectResponse(url=_safe_next(next_url), status_code=303)
    resp.set_cookie(
        ctx.settings.cookie_name,
        token,
        max_age=ctx.settings.session_max_age,
        **cookie_settings(request),
    )
    return resp


def _oauth_cookie(request: Request) -> str:
    return f"{get_context(request).settings.cookie_name}_oauth"


def create_app(ctx: Optional[AppContext] = None) -> FastAPI:
    """Build the web app.

    With no ``ctx`` the context is created from the environment at startup
    and closed at shutdown; a given ``ctx`` stays owned by the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = ctx is None
        app.state.ctx = ctx or AppContext.create(Settings.from_env())
        try:
            yield
        finally:
            if owned:
                app.state.ctx.close()

    app = FastAPI(lifespan=lifespan)
    if ctx is not None:
        app.state.ctx = ctx

    @app.exception_handler(StorageUnavailable)
    async def _storage_unavailable(request: Request, exc: StorageUnavailable):
        logger.error("Storage unavailable while serving %s: %s", request.url.path, exc)
        return _render(request, "error.html", {"message": "Servicio no disponible. Inténtalo más tarde."}, status_code=503)

    # ------------------ Routes ------------------

    @app.get("/", response_class=HTMLResponse)
    def home(request: Request, user=Depends(current_user_optional)):
        return _render(request, "home.html")

    @app.get("/login", response_class=HTMLResponse)
    def login_get(request: Request, next: str = "/secrets", user=Depends(current_user_optional)):
        if user:
            return RedirectResponse(url=_safe_next(next), status_code=303)
        return _render(request, "login.html", {"next": next, "error": ""})

    @app.post("/login")
    def login_post(
        request: Request,
        username: str = Form(...),
        password: str = Form(...),
        next: str = Form("/secrets"),
    ):
        try:
            account = get_context(request).authenticate_local(username, password)
        except AuthenticationFailed:
            return _render(request, "login.html", {"next": next, "error": "Credenciales inválidas"}, status_code=401)
        return _start_session(request, account, next)

    @app.get("/register", response_class=HTMLResponse)
    def register_get(request: Request):
        return _render(request, "register.html", {"error": ""})

    @app.post("/register")
    def register_post(request: Request, username: str = Form(...), password: str = Form(...)):
        try:
            account = get_context(request).register_local(username, password)
        except DuplicateUsername:
            return _render(request, "register.html", {"error": "Ese usuario ya existe"}, status_code=409)
        except ValueError as e:
            return _render(request, "register.html", {"error": str(e)}, status_code=400)
        return _start_session(request, account)

    @app.get("/auth/{provider}")
    def auth_begin(request: Request, provider: str):
        try:
            url, nonce = get_context(request).begin_external(provider)
        except ProviderExchangeFailed:
            return RedirectResponse(url="/login", status_code=303)
        resp = RedirectResponse(url=url, status_code=303)
        resp.set_cookie(_oauth_cookie(request), nonce, max_age=600, **cookie_settings(request))
        return resp

    @app.get("/auth/{provider}/secrets")
    def auth_callback(request: Request, provider: str, code: str = "", state: str = "", error: str = ""):
        nonce = request.cookies.get(_oauth_cookie(request), "")
        if error:
            logger.info("%s sign-in declined: %s", provider, error)
            resp = RedirectResponse(url="/login", status_code=303)
        else:
            try:
                account = get_context(request).authenticate_external(provider, code, state=state, nonce=nonce)
            except ProviderExchangeFailed as e:
                logger.warning("%s sign-in failed: %s", provider, e)
                resp = RedirectResponse(url="/login", status_code=303)
            else:
                resp = _start_session(request, account)
        resp.delete_cookie(_oauth_cookie(request))
        return resp

    @app.get("/secrets", response_class=HTMLResponse)
    def secrets_list(request: Request, user=Depends(current_user_optional)):
        entries = get_context(request).list_all_secrets_decrypted()
        return _render(
            request,
            "secrets.html",
            {"users_with_secrets": entries, "user_id": user.id if user else None},
        )

    @app.get("/submit", response_class=HTMLResponse)
    def submit_get(request: Request, user=Depends(require_user)):
        return _render(request, "submit.html")

    @app.post("/submit")
    def submit_post(request: Request, secret: str = Form(""), user=Depends(require_user)):
        try:
            get_context(request).submit_secret(user.id, secret)
        except AccountNotFound:
            return RedirectResponse(url="/login", status_code=303)
        return RedirectResponse(url="/secrets", status_code=303)

    @app.get("/secrets/{user_id}", response_class=HTMLResponse)
    def secrets_for_user(request: Request, user_id: str, user=Depends(require_user)):
        try:
            items = get_context(request).list_secrets_for_account(user_id)
        except AccountNotFound:
            return _render(request, "error.html", {"message": "Usuario no encontrado"}, status_code=404)
        return _render(request, "user_secrets.html", {"secrets": items})

    def _logout(request: Request) -> RedirectResponse:
        ctx = get_context(request)
        ctx.logout(request.cookies.get(ctx.settings.cookie_name, ""))
        resp = RedirectResponse(url="/", status_code=303)
        resp.delete_cookie(ctx.settings.cookie_name)
        return resp

    @app.get("/logout")
    def logout_get(request: Request):
        return _logout(request)

    @app.post("/logout")
    def logout_post(request: Request):
        return _logout(request)

    return app


app = create_app()
