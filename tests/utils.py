import base64
import time
from typing import Any

from authlib.jose import jwt


def oct_jwk(key: bytes, kid: str) -> dict[str, str]:
    return {
        "kty": "oct",
        "k": base64.urlsafe_b64encode(key).rstrip(b"=").decode("ascii"),
        "alg": "HS256",
        "kid": kid,
    }


def make_token(
    key: bytes,
    kid: str,
    claims: dict[str, Any],
    expires_in: int = 300,
) -> str:
    """HS256 token with ``iat``/``exp`` filled in unless given."""
    now = int(time.time())
    payload = {"iat": now, "exp": now + expires_in, **claims}
    header = {"alg": "HS256", "kid": kid}
    return jwt.encode(header, payload, key).decode("ascii")
