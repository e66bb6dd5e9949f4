"""OAuth2 grants against the identity provider's token endpoint.

Every operation is a single round trip with no retries. Provider answers are
translated into the error taxonomy here: a 4xx is a rejection of the caller's
credentials, while a 5xx, a timeout or a transport failure means the provider
is unavailable.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

import httpx
from cachetools import TLRUCache
from loguru import logger
from pydantic import ValidationError

from src.identity_broker.core.errors import (
    AuthFailedError,
    BrokerError,
    InvalidTokenError,
    ServiceAuthFailedError,
    ServiceUnavailableError,
)
from src.identity_broker.core.models.identity import TokenSet
from src.identity_broker.core.outcome import Outcome
from src.identity_broker.runtime.config.config_data import IdentityProviderConfig
from src.identity_broker.runtime.context import get_config


def create_identity_http_client(config: IdentityProviderConfig) -> httpx.AsyncClient:
    """Shared client for token and admin calls, with the configured timeouts."""
    timeout = httpx.Timeout(
        config.read_timeout_seconds, connect=config.connect_timeout_seconds
    )
    return httpx.AsyncClient(timeout=timeout)


def _provider_error(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return body.get("error_description") or body.get("error") or str(body)
    return str(body)


class TokenBroker:
    """Exchanges credentials for tokens on behalf of users and of the service."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        config: IdentityProviderConfig | None = None,
    ) -> None:
        self._http = http_client
        self._config = config
        # Keyed by client id, expires at expires_in - skew
        self._service_tokens: TLRUCache[str, TokenSet] = TLRUCache(
            maxsize=8, ttu=self._service_token_ttu
        )

    @property
    def config(self) -> IdentityProviderConfig:
        return self._config or get_config().identity_provider

    def _service_token_ttu(self, _key: str, value: TokenSet, now: float) -> float:
        return now + max(value.expires_in - self.config.token_skew_seconds, 0)

    def _client_auth(self) -> dict[str, str]:
        form = {"client_id": self.config.client_id}
        if self.config.client_secret:
            form["client_secret"] = self.config.client_secret
        return form

    async def _request_tokens(
        self, form: dict[str, Any], rejected: BrokerError
    ) -> TokenSet:
        """POST a grant to the token endpoint.

        Args:
            form: Grant-specific form fields
            rejected: Error raised when the provider answers with a 4xx
        """
        grant_type = form.get("grant_type")
        try:
            response = await self._http.post(
                self.config.token_endpoint, data={**form, **self._client_auth()}
            )
        except httpx.HTTPError as exc:
            logger.error(
                "Token request failed",
                extra={"grant_type": grant_type, "error_type": type(exc).__name__},
            )
            raise ServiceUnavailableError() from exc

        if response.status_code >= 500:
            logger.error(
                "Identity provider error {} for {} grant",
                response.status_code,
                grant_type,
            )
            raise ServiceUnavailableError()
        if response.status_code >= 400:
            logger.warning(
                "{} grant rejected ({}): {}",
                grant_type,
                response.status_code,
                _provider_error(response),
            )
            raise rejected

        try:
            return TokenSet.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            logger.error("Malformed token response for {} grant", grant_type)
            raise ServiceUnavailableError("Malformed token response") from exc

    async def exchange_password(self, username: str, password: str) -> TokenSet:
        return await self._request_tokens(
            {
                "grant_type": "password",
                "username": username,
                "password": password,
                "scope": " ".join(self.config.scopes),
            },
            AuthFailedError("Invalid username or password", code="INVALID_CREDENTIALS"),
        )

    async def exchange_authorization_code(
        self, code: str, redirect_uri: str | None = None
    ) -> TokenSet:
        return await self._request_tokens(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri or self.config.redirect_uri,
            },
            AuthFailedError("Authorization code exchange failed"),
        )

    async def refresh(self, refresh_token: str) -> TokenSet:
        return await self._request_tokens(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            InvalidTokenError("Invalid or expired refresh token"),
        )

    async def revoke(self, refresh_token: str) -> Outcome:
        """End the provider session behind ``refresh_token``; never raises."""
        try:
            response = await self._http.post(
                self.config.logout_endpoint,
                data={"refresh_token": refresh_token, **self._client_auth()},
            )
        except httpx.HTTPError as exc:
            return Outcome.failure(f"logout request failed: {type(exc).__name__}", exc)

        if response.is_success:
            return Outcome.success()
        return Outcome.failure(
            f"logout rejected with {response.status_code}: {_provider_error(response)}"
        )

    async def client_credentials_token(self) -> str:
        """Service-to-service access token for admin API calls.

        Raises:
            ServiceAuthFailedError: If the token cannot be obtained for any reason
        """
        client_id = self.config.client_id
        if self.config.cache_service_token:
            cached = self._service_tokens.get(client_id)
            if cached is not None:
                return cached.access_token

        try:
            tokens = await self._request_tokens(
                {"grant_type": "client_credentials"},
                ServiceAuthFailedError("Client credentials rejected"),
            )
        except ServiceAuthFailedError:
            raise
        except BrokerError as exc:
            raise ServiceAuthFailedError() from exc

        if self.config.cache_service_token:
            self._service_tokens[client_id] = tokens
        return tokens.access_token

    def authorization_url(
        self,
        redirect_uri: str | None = None,
        idp_hint: str | None = None,
        state: str | None = None,
    ) -> str:
        """Browser login URL for the authorization code flow."""
        params = {
            "client_id": self.config.client_id,
            "redirect_uri": redirect_uri or self.config.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self.config.scopes),
        }
        if idp_hint:
            params["kc_idp_hint"] = idp_hint
        if state:
            params["state"] = state
        return f"{self.config.authorization_endpoint}?{urlencode(params)}"

    def google_login_url(self, redirect_uri: str | None = None) -> str:
        """Login URL that skips the realm form and goes straight to Google."""
        return self.authorization_url(redirect_uri, idp_hint=self.config.google_idp_alias)
