# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""External identity providers (OAuth 2.0 authorization-code flow).

Each provider only knows how to turn an authorization code into its own
stable subject id. Linking that id to an account is provider-agnostic and
lives in :mod:`sav.auth.external`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from sav.config import ProviderCredentials
from sav.errors import ProviderExchangeFailed

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    name: str = ""

    @abstractmethod
    def authorization_url(self, state: str) -> str:
        """URL the user is redirected to in order to grant consent."""

    @abstractmethod
    def exchange_authorization_for_subject_id(self, code: str) -> str:
        """Trade an authorization code for the provider's subject id.

        Raises ProviderExchangeFailed on network errors, refused codes or
        responses without a subject.
        """

    def close(self) -> None:
        pass


class OAuth2Provider(IdentityProvider):
    authorize_endpoint: str = ""
    token_endpoint: str = ""
    profile_endpoint: str = ""
    scope: str = ""
    subject_field: str = "id"

    def __init__(
        self,
        credentials: ProviderCredentials,
        *,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self.credentials = credentials
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=timeout)

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.credentials.client_id,
            "redirect_uri": self.credentials.callback_url,
            "response_type": "code",
            "state": state,
        }
        if self.scope:
            params["scope"] = self.scope
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    def _request_token(self, code: str) -> httpx.Response:
        return self._http.post(
            self.token_endpoint,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "redirect_uri": self.credentials.callback_url,
            },
            headers={"Accept": "application/json"},
        )

    def _request_profile(self, access_token: str) -> httpx.Response:
        return self._http.get(
            self.profile_endpoint,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ProviderExchangeFailed("Respuesta inesperada del proveedor")
        return data

    def exchange_authorization_for_subject_id(self, code: str) -> str:
        if not code:
            raise ProviderExchangeFailed(f"{self.name}: falta el código de autorización")
        try:
            token_data = self._json(self._request_token(code))
            access_token = token_data.get("access_token")
            if not access_token:
                raise ProviderExchangeFailed(f"{self.name}: la respuesta no contiene access_token")
            profile = self._json(self._request_profile(access_token))
        except httpx.HTTPError as e:
            logger.error("%s exchange failed: %s", self.name, e)
            raise ProviderExchangeFailed(f"{self.name}: fallo en el intercambio del código") from e
        except ValueError as e:
            logger.error("%s returned an invalid response: %s", self.name, e)
            raise ProviderExchangeFailed(f"{self.name}: respuesta inválida") from e

        subject = str(profile.get(self.subject_field) or "").strip()
        if not subject:
            raise ProviderExchangeFailed(f"{self.name}: la respuesta no contiene identificador")
        return subject

    def close(self) -> None:
        if self._owns_http:
            self._http.close()


class GoogleProvider(OAuth2Provider):
    name = "google"
    authorize_endpoint = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint = "https://oauth2.googleapis.com/token"
    profile_endpoint = "https://www.googleapis.com/oauth2/v3/userinfo"
    scope = "profile"
    subject_field = "sub"


class FacebookProvider(OAuth2Provider):
    name = "facebook"
    authorize_endpoint = "https://www.facebook.com/v19.0/dialog/oauth"
    token_endpoint = "https://graph.facebook.com/v19.0/oauth/access_token"
    profile_endpoint = "https://graph.facebook.com/me"

    def _request_token(self, code: str) -> httpx.Response:
        # Graph API takes the code exchange as a GET with query parameters.
        return self._http.get(
            self.token_endpoint,
            params={
                "code": code,
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "redirect_uri": self.credentials.callback_url,
            },
        )

    def _request_profile(self, access_token: str) -> httpx.Response:
        return self._http.get(self.profile_endpoint, params={"fields": "id", "access_token": access_token})
