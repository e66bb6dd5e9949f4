"""Keycloak admin REST client for user provisioning and role lookups."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from src.identity_broker.core.errors import (
    RegistrationFailedError,
    ServiceUnavailableError,
    UserAlreadyExistsError,
    UserNotFoundError,
)
from src.identity_broker.core.models.identity import ProviderUser, ProviderUserInfo
from src.identity_broker.core.outcome import Outcome, log_and_continue
from src.identity_broker.core.services.oidc.token_broker import TokenBroker
from src.identity_broker.runtime.config.config_data import IdentityProviderConfig

DEFAULT_ROLES_PREFIX = "default-roles"


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split on the first run of whitespace; the last name may be empty."""
    parts = full_name.strip().split(maxsplit=1)
    if not parts:
        return "", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


class AdminDirectoryClient:
    """Admin API calls authenticated with the broker's client-credentials token.

    Failing to obtain that token is fatal (``ServiceAuthFailedError``) for every
    operation except :meth:`assign_realm_role`, which reports it as an outcome.
    """

    def __init__(self, token_broker: TokenBroker, http_client: httpx.AsyncClient) -> None:
        self._broker = token_broker
        self._http = http_client

    @property
    def config(self) -> IdentityProviderConfig:
        return self._broker.config

    async def _auth_headers(self) -> dict[str, str]:
        token = await self._broker.client_credentials_token()
        return {"Authorization": f"Bearer {token}"}

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        headers = await self._auth_headers()
        try:
            response = await self._http.get(url, params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Admin API request failed: GET {} ({})", url, exc)
            raise ServiceUnavailableError() from exc
        return response

    async def create_user(
        self,
        username: str,
        email: str,
        first_name: str,
        last_name: str,
        password: str,
    ) -> None:
        """Create an enabled, email-verified user with a permanent password.

        Raises:
            UserAlreadyExistsError: If the username or email is taken
            RegistrationFailedError: On any other provider or transport failure
        """
        payload = {
            "username": username,
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "enabled": True,
            "emailVerified": True,
            "credentials": [
                {"type": "password", "value": password, "temporary": False}
            ],
        }
        headers = await self._auth_headers()
        try:
            response = await self._http.post(
                self.config.users_endpoint, json=payload, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.error("User creation request failed for {}: {}", username, exc)
            raise RegistrationFailedError() from exc

        if response.status_code == 409:
            raise UserAlreadyExistsError()
        if not response.is_success:
            logger.error(
                "User creation failed for {} with status {}",
                username,
                response.status_code,
            )
            raise RegistrationFailedError()
        logger.info("Created user {} in identity provider", username)

    async def find_exact_user(self, username: str) -> ProviderUser | None:
        response = await self._get(
            self.config.users_endpoint, params={"username": username, "exact": "true"}
        )
        try:
            users = [ProviderUser.model_validate(u) for u in response.json()]
        except (ValueError, ValidationError) as exc:
            raise ServiceUnavailableError("Malformed user lookup response") from exc
        # exact=true is not honored by every provider version
        return next((u for u in users if u.username == username), None)

    async def fetch_user_roles(self, user_id: str) -> set[str]:
        """Realm roles mapped to the user, minus the realm's composite default role.

        Lookup failures degrade to an empty set.
        """
        url = f"{self.config.users_endpoint}/{user_id}/role-mappings/realm"
        try:
            response = await self._get(url)
            names = {role["name"] for role in response.json()}
        except (ServiceUnavailableError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Could not load roles for user {}: {}", user_id, exc)
            return set()
        return {name for name in names if not name.startswith(DEFAULT_ROLES_PREFIX)}

    async def assign_realm_role(self, username: str, role_name: str) -> Outcome:
        """Grant a realm role; every failure is returned, never raised."""
        try:
            user = await self.find_exact_user(username)
        except Exception as exc:
            return Outcome.failure(f"user lookup failed: {exc}", exc)
        if user is None:
            return Outcome.failure(f"user {username} not found")

        try:
            role_response = await self._get(f"{self.config.roles_endpoint}/{role_name}")
            role = role_response.json()
        except Exception as exc:
            return Outcome.failure(f"role {role_name} lookup failed: {exc}", exc)

        try:
            headers = await self._auth_headers()
            response = await self._http.post(
                f"{self.config.users_endpoint}/{user.id}/role-mappings/realm",
                json=[role],
                headers=headers,
            )
        except Exception as exc:
            return Outcome.failure(f"role mapping failed: {exc}", exc)
        if not response.is_success:
            return Outcome.failure(f"role mapping rejected with {response.status_code}")

        logger.info("Assigned role {} to user {}", role_name, username)
        return Outcome.success()

    async def register(
        self, username: str, email: str, full_name: str, password: str
    ) -> None:
        """Create the account, then grant the default role on a best-effort basis."""
        first_name, last_name = split_full_name(full_name)
        await self.create_user(username, email, first_name, last_name, password)
        log_and_continue(
            await self.assign_realm_role(username, self.config.default_role),
            "default role assignment",
            username=username,
        )

    async def get_user_info(self, username: str) -> ProviderUserInfo:
        user = await self.find_exact_user(username)
        if user is None:
            raise UserNotFoundError()
        return ProviderUserInfo(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            roles=await self.fetch_user_roles(user.id),
        )
