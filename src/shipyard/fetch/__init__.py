"""Repository mirroring: transport, fetch throttle, and clone-or-fetch decisions."""

from .coordinator import clone_or_fetch
from .git import GitTransport, RepositoryTransport
from .throttle import FetchThrottle

__all__ = ["FetchThrottle", "GitTransport", "RepositoryTransport", "clone_or_fetch"]
