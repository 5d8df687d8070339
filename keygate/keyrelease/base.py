"""Key-release client interface."""

from typing import Protocol

from ..models import AccessPolicy, AuthSignature


class KeyReleaseClient(Protocol):
    """
    Custodian of symmetric keys.

    ``wrap`` protects a key under an access policy; ``unwrap`` releases it only
    when the authenticated account satisfies that policy. Implementations
    raise ``AuthorizationError`` for denials and ``ServiceError`` for
    everything else.
    """

    async def connect(self) -> None:
        ...

    async def wrap(
        self,
        policy: AccessPolicy,
        symmetric_key: bytes,
        auth_sig: AuthSignature,
        chain: str,
    ) -> bytes:
        ...

    async def unwrap(
        self,
        policy: AccessPolicy,
        wrapped_key: bytes,
        auth_sig: AuthSignature,
        chain: str,
    ) -> bytes:
        ...

    async def close(self) -> None:
        ...
