"""gitops agent runtime helpers."""

from .config import AgentConfig, load_config  # noqa: F401
from .walker import GitStorageWalker  # noqa: F401

__all__ = [
    "AgentConfig",
    "GitStorageWalker",
    "load_config",
]
