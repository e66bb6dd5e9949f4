from .sync_gate import UserSyncGate
from .user_sync import UserSyncService, diff_identity_fields

__all__ = ["UserSyncGate", "UserSyncService", "diff_identity_fields"]
