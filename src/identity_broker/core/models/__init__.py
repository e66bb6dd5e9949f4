"""Identity and token models."""

from .identity import CanonicalIdentity, ProviderUser, ProviderUserInfo, TokenSet

__all__ = ["CanonicalIdentity", "ProviderUser", "ProviderUserInfo", "TokenSet"]
