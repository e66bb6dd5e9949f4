"""Derive a canonical identity from verified token claims."""

from collections.abc import Mapping
from typing import Any

from src.identity_broker.core.errors import InvalidTokenError
from src.identity_broker.core.models.identity import CanonicalIdentity


def _text(claims: Mapping[str, Any], name: str) -> str | None:
    value = claims.get(name)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def build_display_name(claims: Mapping[str, Any]) -> str:
    """``name``, else given + family, else either one alone, else the username."""
    name = _text(claims, "name")
    if name:
        return name

    given = _text(claims, "given_name")
    family = _text(claims, "family_name")
    if given and family:
        return f"{given} {family}"
    if given or family:
        return given or family

    return _text(claims, "preferred_username") or ""


def realm_roles(claims: Mapping[str, Any]) -> frozenset[str]:
    realm_access = claims.get("realm_access")
    if not isinstance(realm_access, Mapping):
        return frozenset()
    roles = realm_access.get("roles") or []
    return frozenset(role for role in roles if isinstance(role, str))


def extract_identity(claims: Mapping[str, Any]) -> CanonicalIdentity:
    """Build a :class:`CanonicalIdentity` from already-verified claims.

    Raises:
        InvalidTokenError: If the claims carry no subject
    """
    subject_id = _text(claims, "sub")
    if subject_id is None:
        raise InvalidTokenError("Token has no subject")

    username = _text(claims, "preferred_username") or subject_id
    return CanonicalIdentity(
        subject_id=subject_id,
        username=username,
        email=_text(claims, "email"),
        display_name=build_display_name(claims) or username,
        roles=realm_roles(claims),
    )
