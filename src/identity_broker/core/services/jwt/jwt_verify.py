"""Bearer token verification against the identity provider's JWKS."""

import base64
import json
from typing import Any

from authlib.jose import JoseError, JsonWebKey, jwt
from loguru import logger

from src.identity_broker.core.errors import InvalidTokenError
from src.identity_broker.core.services.jwt.jwks import JwksService
from src.identity_broker.runtime.context import get_config


def read_unverified_header(token: str) -> dict[str, Any]:
    """Decode the JOSE header without checking the signature."""
    segments = token.split(".")
    if len(segments) != 3 or not all(segments):
        raise InvalidTokenError("Malformed token")
    header_segment = segments[0]
    try:
        raw = base64.urlsafe_b64decode(header_segment + "=" * (-len(header_segment) % 4))
        header = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidTokenError("Malformed token header") from exc
    if not isinstance(header, dict):
        raise InvalidTokenError("Malformed token header")
    return header


class JwtVerificationService:
    def __init__(self, jwks_service: JwksService):
        self._jwks_service = jwks_service

    async def verify_jwt(self, token: str) -> dict[str, Any]:
        """Verify signature, issuer, audience and lifetime; return the claims.

        Raises:
            InvalidTokenError: If the token is malformed, signed with a
                disallowed algorithm or unknown key, or fails claim validation
        """
        cfg = get_config()
        header = read_unverified_header(token)

        if header.get("alg") not in cfg.jwt.allowed_algorithms:
            raise InvalidTokenError("Disallowed JWT algorithm")

        jwks = await self._jwks_service.fetch_jwks(cfg.identity_provider.jwks_uri)
        kid = header.get("kid")
        if kid:
            jwks = {"keys": [k for k in jwks.get("keys", []) if k.get("kid") == kid]}
            if not jwks["keys"]:
                raise InvalidTokenError(f"No signing key matches kid={kid}")

        claims_options: dict[str, Any] = {
            "iss": {"essential": True, "values": [cfg.identity_provider.issuer]},
            "sub": {"essential": True},
            "exp": {"essential": True},
        }
        if cfg.jwt.audiences:
            claims_options["aud"] = {"essential": True, "values": cfg.jwt.audiences}

        try:
            claims = jwt.decode(
                token, JsonWebKey.import_key_set(jwks), claims_options=claims_options
            )
            claims.validate(leeway=cfg.jwt.clock_skew)
        except (JoseError, ValueError) as exc:
            logger.debug("Token rejected: {}", exc)
            raise InvalidTokenError(f"JWT error: {exc}") from exc

        return dict(claims)
