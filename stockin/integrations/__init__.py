# External Integrations Package
from .commit_client import RemoteCommitClient

__all__ = [
    "RemoteCommitClient",
]
