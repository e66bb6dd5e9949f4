from .admin_directory import AdminDirectoryClient
from .token_broker import TokenBroker, create_identity_http_client

__all__ = ["AdminDirectoryClient", "TokenBroker", "create_identity_http_client"]
