"""Per-request trigger that guarantees a local user exists for the caller."""

from loguru import logger

from src.identity_broker.core.models.identity import CanonicalIdentity
from src.identity_broker.core.outcome import Outcome
from src.identity_broker.core.services.user.user_sync import UserSyncService
from src.identity_broker.runtime.config.config_data import SyncConfig
from src.identity_broker.runtime.context import get_config


class UserSyncGate:
    """Existence check plus first-sighting sync.

    Only a missing user is synced here; field drift is picked up by the
    current-user endpoint, which runs a full sync on every call.
    """

    def __init__(self, user_sync: UserSyncService, config: SyncConfig | None = None) -> None:
        self._user_sync = user_sync
        self._config = config

    @property
    def config(self) -> SyncConfig:
        return self._config or get_config().sync

    def applies_to(self, path: str) -> bool:
        if not self.config.enabled:
            return False
        normalized = path.rstrip("/") or "/"
        if normalized in self.config.included_paths:
            return True
        return not any(path.startswith(prefix) for prefix in self.config.excluded_path_prefixes)

    def run(self, identity: CanonicalIdentity) -> Outcome:
        """Sync ``identity`` if no local user exists yet; failures are returned."""
        try:
            if self._user_sync.exists(identity.subject_id):
                return Outcome.success()
            user = self._user_sync.sync_from_identity(identity)
        except Exception as exc:
            return Outcome.failure(f"{type(exc).__name__}: {exc}", exc)

        logger.debug("Synced first-seen subject {} as user {}", identity.subject_id, user.id)
        return Outcome.success()
