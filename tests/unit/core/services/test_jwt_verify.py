"""Unit tests for bearer token verification."""

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from src.identity_broker.core.errors import InvalidTokenError, ServiceUnavailableError
from src.identity_broker.core.services import (
    JWKSCacheInMemory,
    JwksService,
    JwtVerificationService,
)
from src.identity_broker.runtime.context import get_config, with_context
from tests.utils import make_token

ISSUER_OVERRIDE = {
    "identity_provider": {"server_url": "http://idp.test", "realm": "test"},
    "jwt": {"allowed_algorithms": ["HS256"], "audiences": [], "clock_skew": 0},
}
ISSUER = "http://idp.test/realms/test"


@pytest.fixture
def jwks_service_fake(jwks_data: dict[str, Any]) -> JwksService:
    service = JwksService(JWKSCacheInMemory(), httpx.AsyncClient())
    service.fetch_jwks = AsyncMock(return_value=jwks_data)
    return service


@pytest.fixture
def jwt_verify_service(jwks_service_fake: JwksService) -> JwtVerificationService:
    return JwtVerificationService(jwks_service_fake)


class TestVerifyJwt:
    async def test_valid_token(self, jwt_verify_service, hs_key, kid_for_jwt):
        token = make_token(
            hs_key, kid_for_jwt, {"iss": ISSUER, "sub": "kc-ada", "preferred_username": "ada"}
        )

        with with_context(ISSUER_OVERRIDE):
            claims = await jwt_verify_service.verify_jwt(token)

        assert claims["sub"] == "kc-ada"
        assert claims["preferred_username"] == "ada"

    async def test_fetches_configured_jwks_uri(
        self, jwt_verify_service, jwks_service_fake, hs_key, kid_for_jwt
    ):
        token = make_token(hs_key, kid_for_jwt, {"iss": ISSUER, "sub": "kc-ada"})

        with with_context(ISSUER_OVERRIDE):
            await jwt_verify_service.verify_jwt(token)
            jwks_uri = get_config().identity_provider.jwks_uri

        jwks_service_fake.fetch_jwks.assert_awaited_once_with(jwks_uri)

    async def test_wrong_issuer(self, jwt_verify_service, hs_key, kid_for_jwt):
        token = make_token(hs_key, kid_for_jwt, {"iss": "http://evil.test", "sub": "kc-ada"})

        with with_context(ISSUER_OVERRIDE):
            with pytest.raises(InvalidTokenError):
                await jwt_verify_service.verify_jwt(token)

    async def test_expired(self, jwt_verify_service, hs_key, kid_for_jwt):
        token = make_token(
            hs_key, kid_for_jwt, {"iss": ISSUER, "sub": "kc-ada"}, expires_in=-120
        )

        with with_context(ISSUER_OVERRIDE):
            with pytest.raises(InvalidTokenError):
                await jwt_verify_service.verify_jwt(token)

    async def test_missing_subject(self, jwt_verify_service, hs_key, kid_for_jwt):
        token = make_token(hs_key, kid_for_jwt, {"iss": ISSUER})

        with with_context(ISSUER_OVERRIDE):
            with pytest.raises(InvalidTokenError):
                await jwt_verify_service.verify_jwt(token)

    async def test_bad_signature(self, jwt_verify_service, kid_for_jwt):
        other_key = b"some-other-secret-key-0123456789abcdef"
        token = make_token(other_key, kid_for_jwt, {"iss": ISSUER, "sub": "kc-ada"})

        with with_context(ISSUER_OVERRIDE):
            with pytest.raises(InvalidTokenError):
                await jwt_verify_service.verify_jwt(token)

    async def test_unknown_kid(self, jwt_verify_service, hs_key):
        token = make_token(hs_key, "rotated-away", {"iss": ISSUER, "sub": "kc-ada"})

        with with_context(ISSUER_OVERRIDE):
            with pytest.raises(InvalidTokenError, match="kid"):
                await jwt_verify_service.verify_jwt(token)

    async def test_disallowed_algorithm(
        self, jwt_verify_service, jwks_service_fake, hs_key, kid_for_jwt
    ):
        token = make_token(hs_key, kid_for_jwt, {"iss": ISSUER, "sub": "kc-ada"})

        with with_context({**ISSUER_OVERRIDE, "jwt": {"allowed_algorithms": ["RS256"]}}):
            with pytest.raises(InvalidTokenError, match="algorithm"):
                await jwt_verify_service.verify_jwt(token)

        jwks_service_fake.fetch_jwks.assert_not_awaited()

    async def test_audience_enforced_when_configured(
        self, jwt_verify_service, hs_key, kid_for_jwt
    ):
        override = {
            **ISSUER_OVERRIDE,
            "jwt": {**ISSUER_OVERRIDE["jwt"], "audiences": ["identity-broker"]},
        }
        good = make_token(
            hs_key, kid_for_jwt, {"iss": ISSUER, "sub": "kc-ada", "aud": "identity-broker"}
        )
        bad = make_token(hs_key, kid_for_jwt, {"iss": ISSUER, "sub": "kc-ada", "aud": "other"})

        with with_context(override):
            assert (await jwt_verify_service.verify_jwt(good))["sub"] == "kc-ada"
            with pytest.raises(InvalidTokenError):
                await jwt_verify_service.verify_jwt(bad)

    @pytest.mark.parametrize("token", ["not-a-jwt", "a.b", "..", "e30.e30."])
    async def test_malformed(self, jwt_verify_service, token):
        with with_context(ISSUER_OVERRIDE):
            with pytest.raises(InvalidTokenError):
                await jwt_verify_service.verify_jwt(token)


class TestJwksService:
    async def test_fetches_once_then_caches(self, jwks_data):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=jwks_data)

        service = JwksService(
            JWKSCacheInMemory(), httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )

        first = await service.fetch_jwks("http://idp.test/certs")
        second = await service.fetch_jwks("http://idp.test/certs")

        assert first == second == jwks_data
        assert len(calls) == 1

    async def test_fetch_failure_is_unavailable(self):
        service = JwksService(
            JWKSCacheInMemory(),
            httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
        )

        with pytest.raises(ServiceUnavailableError):
            await service.fetch_jwks("http://idp.test/certs")
