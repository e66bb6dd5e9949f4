"""Identity and token models exchanged with the identity provider."""

from pydantic import BaseModel, ConfigDict, Field


class TokenSet(BaseModel):
    """Tokens issued by the identity provider for a single grant.

    The broker never stores these; they are handed straight back to the caller.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 0  # seconds
    refresh_token: str | None = None
    refresh_expires_in: int | None = None
    id_token: str | None = None
    scope: str | None = None


class CanonicalIdentity(BaseModel):
    """Provider-agnostic view of the subject a verified token speaks for."""

    model_config = ConfigDict(frozen=True)

    subject_id: str
    username: str
    email: str | None = None
    display_name: str
    roles: frozenset[str] = Field(default_factory=frozenset)


class ProviderUser(BaseModel):
    """User representation returned by the admin directory API."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    username: str
    email: str | None = None
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    enabled: bool = True

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class ProviderUserInfo(BaseModel):
    """Directory user enriched with its effective realm roles."""

    id: str
    username: str
    email: str | None = None
    full_name: str = ""
    roles: set[str] = Field(default_factory=set)
