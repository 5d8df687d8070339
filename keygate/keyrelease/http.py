"""HTTP client for a remote key-release service.

Endpoints:
    GET  /v1/handshake
    POST /v1/keys/wrap    {accessControlConditions, symmetricKey, authSig, chain}
                          -> {encryptedSymmetricKey}
    POST /v1/keys/unwrap  {accessControlConditions, encryptedSymmetricKey, authSig, chain}
                          -> {symmetricKey}

Keys travel as hex. 401/403 responses mean the caller is not authorized.
"""

import asyncio
from typing import Any, Optional

import httpx

from ..config import get_settings
from ..encoding import decode_hex, encode_hex
from ..exceptions import AuthorizationError, DecodeError, ServiceError
from ..models import AccessPolicy, AuthSignature
from ..utils.logging import get_logger

logger = get_logger("keygate.keyrelease.http")

UNAUTHORIZED_STATUSES = (401, 403)


class HttpKeyReleaseClient:
    """Async client for the key-release HTTP API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Service URL (default from settings)
            timeout: Request timeout in seconds (default from settings)
            transport: Custom httpx transport (e.g. a mock in tests)
        """
        settings = get_settings()

        self.base_url = (base_url or settings.key_release.base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.key_release.timeout

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=transport,
        )
        self._connected = False
        self._connect_lock = asyncio.Lock()

    async def __aenter__(self) -> "HttpKeyReleaseClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def close(self) -> None:
        await self._client.aclose()

    async def connect(self) -> None:
        """Perform the service handshake once."""
        async with self._connect_lock:
            if self._connected:
                return
            try:
                response = await self._client.get("/v1/handshake")
                response.raise_for_status()
            except httpx.HTTPError as e:
                logger.error(f"Key-release handshake failed: {e}")
                raise ServiceError(f"Could not connect to key-release service: {e}", cause=e) from e

            self._connected = True
            logger.info(f"Connected to key-release service at {self.base_url}")

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(path, json=body)
        except httpx.TimeoutException as e:
            raise ServiceError("Key-release request timed out", cause=e) from e
        except httpx.HTTPError as e:
            raise ServiceError(f"Key-release request failed: {e}", cause=e) from e

        if response.status_code in UNAUTHORIZED_STATUSES:
            raise AuthorizationError(f"Key-release service denied access: {response.text[:200]}")

        if response.status_code != 200:
            raise ServiceError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(f"Invalid JSON from key-release service: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ServiceError("Unexpected response from key-release service")
        return data

    @staticmethod
    def _key_field(data: dict[str, Any], name: str) -> bytes:
        value = data.get(name)
        if not isinstance(value, str):
            raise ServiceError(f"Key-release response is missing {name}")
        try:
            return decode_hex(value)
        except DecodeError as e:
            raise ServiceError(f"Key-release response has malformed {name}", cause=e) from e

    async def wrap(
        self,
        policy: AccessPolicy,
        symmetric_key: bytes,
        auth_sig: AuthSignature,
        chain: str,
    ) -> bytes:
        """Save a symmetric key under an access policy; returns the wrapped key."""
        data = await self._post(
            "/v1/keys/wrap",
            {
                "accessControlConditions": policy.to_list(),
                "symmetricKey": encode_hex(symmetric_key),
                "authSig": auth_sig.to_dict(),
                "chain": chain,
            },
        )
        return self._key_field(data, "encryptedSymmetricKey")

    async def unwrap(
        self,
        policy: AccessPolicy,
        wrapped_key: bytes,
        auth_sig: AuthSignature,
        chain: str,
    ) -> bytes:
        """Ask the service to release a wrapped key for the signed caller."""
        data = await self._post(
            "/v1/keys/unwrap",
            {
                "accessControlConditions": policy.to_list(),
                "encryptedSymmetricKey": encode_hex(wrapped_key),
                "authSig": auth_sig.to_dict(),
                "chain": chain,
            },
        )
        return self._key_field(data, "symmetricKey")
