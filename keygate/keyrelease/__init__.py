"""Key-release service clients."""

from .base import KeyReleaseClient
from .http import HttpKeyReleaseClient
from .local import LocalKeyReleaseService

__all__ = [
    "KeyReleaseClient",
    "HttpKeyReleaseClient",
    "LocalKeyReleaseService",
]
