"""Auth session management for the key-release service.

An ``AuthSession`` holds the signed challenge that proves control of an
account. It is an explicit object passed into every encrypt/decrypt call, so
several accounts can be used from one process without sharing state.

Concurrency: ``generate_signature`` calls on one session are serialized by
an asyncio lock, but the "current" slot is still last-writer-wins. An
encrypt/decrypt call that is already waiting on I/O keeps the signature it
read, while calls started after a switch use the new account. Callers that
need a stable identity per logical request should use ``for_account()``,
which returns a session pinned to one account.
"""

import asyncio
import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from .config import get_settings
from .exceptions import AuthError, ConfigurationError, NotAuthenticatedError
from .keyrelease.base import KeyReleaseClient
from .models import AuthSignature
from .signing import Signer
from .utils.logging import get_logger

logger = get_logger("keygate.session")

CURRENT_KEY = "auth-signature"
ACCOUNT_KEY_PREFIX = "auth-signature-"


def account_key(account: str) -> str:
    """Store key for a per-account signature."""
    return ACCOUNT_KEY_PREFIX + account.lower()


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SignatureStore(Protocol):
    """Key/value storage for auth signatures."""

    def save(self, key: str, signature: AuthSignature) -> None:
        ...

    def load(self, key: str) -> Optional[AuthSignature]:
        ...

    def delete(self, key: str) -> bool:
        ...

    def clear(self) -> int:
        ...


class MemorySignatureStore:
    """Signatures kept in process memory only."""

    def __init__(self):
        self._signatures: dict[str, AuthSignature] = {}

    def save(self, key: str, signature: AuthSignature) -> None:
        self._signatures[key] = signature

    def load(self, key: str) -> Optional[AuthSignature]:
        return self._signatures.get(key)

    def delete(self, key: str) -> bool:
        return self._signatures.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._signatures)
        self._signatures.clear()
        return count


class FileSignatureStore:
    """
    Signatures persisted to a JSON file with owner-only permissions.

    The file maps store keys to signature dictionaries. It is rewritten in
    full on every change.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Signature store {self.path} is corrupted: {e}")
        if not isinstance(data, dict):
            raise ConfigurationError(f"Signature store {self.path} is corrupted")
        return data

    def _write(self, data: dict[str, dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def save(self, key: str, signature: AuthSignature) -> None:
        data = self._read()
        data[key] = signature.to_dict()
        self._write(data)

    def load(self, key: str) -> Optional[AuthSignature]:
        entry = self._read().get(key)
        if not entry:
            return None
        try:
            return AuthSignature.from_dict(entry)
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Signature store entry {key!r} is corrupted: {e}")

    def delete(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True

    def clear(self) -> int:
        data = self._read()
        if data:
            self._write({})
        return len(data)


@dataclass
class AuthResult:
    """Outcome of a successful signature generation."""

    address: str
    status: int = 200
    result: str = "Created auth signature with success."


class AuthSession:
    """
    Holds proof of account control for one account at a time.

    Usage:
        session = AuthSession(client)
        await session.connect()
        await session.generate_signature(signer, address)
        payload = await EncryptionService(client).encrypt(session, policy, "hi")
    """

    def __init__(
        self,
        client: Optional[KeyReleaseClient] = None,
        store: Optional[SignatureStore] = None,
        message_template: Optional[str] = None,
        derived_via: Optional[str] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """
        Initialize an auth session.

        Args:
            client: Key-release client used by connect()
            store: Signature storage (default: in memory, or the configured file)
            message_template: Challenge template with a {timestamp} placeholder
            derived_via: Derivation method recorded in each signature
            clock: Source of the challenge timestamp
        """
        settings = get_settings()

        if store is None:
            if settings.auth.signature_store:
                store = FileSignatureStore(settings.auth.signature_store)
            else:
                store = MemorySignatureStore()

        self.client = client
        self.store = store
        self.message_template = message_template or settings.auth.message_template
        self.derived_via = derived_via or settings.auth.derived_via
        self._clock = clock
        self._connected = False
        self._connect_lock = asyncio.Lock()
        self._signature_lock = asyncio.Lock()

        if "{timestamp}" not in self.message_template:
            raise ConfigurationError("Auth message template must contain {timestamp}")

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Connect the key-release client. Safe to call repeatedly."""
        if self.client is None:
            raise ConfigurationError("AuthSession has no key-release client to connect")

        async with self._connect_lock:
            if self._connected:
                return
            await self.client.connect()
            self._connected = True
            logger.debug("Connected to key-release service")

    def build_challenge(self, now: Optional[datetime] = None) -> str:
        """Build the canonical challenge message for the given time."""
        return self.message_template.replace("{timestamp}", utc_timestamp(now or self._clock()))

    async def generate_signature(self, signer: Signer, account_address: str) -> AuthResult:
        """
        Ask the signer to sign a fresh challenge and store the signature.

        The signature is stored under the account's key and under the
        "current" key (last write wins).

        Args:
            signer: Signer controlling the account
            account_address: Account to authenticate as

        Returns:
            AuthResult on success

        Raises:
            AuthError: If the signer rejects or fails; nothing is stored
        """
        async with self._signature_lock:
            body = self.build_challenge()

            try:
                sig = await signer.sign(body.encode("utf-8"), account_address)
            except Exception as e:
                logger.error(f"Error generating auth signature for {account_address}: {e}")
                raise AuthError(f"Error generating auth signature: {e}", cause=e) from e

            if not isinstance(sig, str) or not sig:
                raise AuthError("Signer returned an empty signature")

            signature = AuthSignature(
                sig=sig,
                signed_message=body,
                address=account_address,
                derived_via=self.derived_via,
            )
            self.store.save(account_key(account_address), signature)
            self.store.save(CURRENT_KEY, signature)

        logger.info(f"Created auth signature for {account_address}")
        return AuthResult(address=account_address)

    def get_signature(self, account: Optional[str] = None) -> AuthSignature:
        """
        Return the current signature, or the one stored for ``account``.

        Raises:
            NotAuthenticatedError: If no matching signature exists
        """
        key = CURRENT_KEY if account is None else account_key(account)
        signature = self.store.load(key)
        if signature is None:
            raise NotAuthenticatedError()
        return signature

    @property
    def is_authenticated(self) -> bool:
        return self.store.load(CURRENT_KEY) is not None

    @property
    def current_address(self) -> Optional[str]:
        signature = self.store.load(CURRENT_KEY)
        return signature.address if signature else None

    def for_account(self, account: str) -> "AuthSession":
        """
        Return a session pinned to the signature stored for ``account``.

        The new session shares the key-release client but has its own
        in-memory store, so later switches on this session do not affect it.

        Raises:
            NotAuthenticatedError: If no signature is stored for the account
        """
        signature = self.get_signature(account)

        scoped = AuthSession(
            client=self.client,
            store=MemorySignatureStore(),
            message_template=self.message_template,
            derived_via=self.derived_via,
            clock=self._clock,
        )
        scoped.store.save(account_key(account), signature)
        scoped.store.save(CURRENT_KEY, signature)
        scoped._connected = self._connected
        return scoped

    def sign_out(self, account: Optional[str] = None) -> int:
        """
        Remove stored signatures.

        Args:
            account: Account to remove (None = remove everything)

        Returns:
            Number of entries removed
        """
        if account is None:
            return self.store.clear()

        removed = int(self.store.delete(account_key(account)))
        current = self.store.load(CURRENT_KEY)
        if current is not None and current.address.lower() == account.lower():
            removed += int(self.store.delete(CURRENT_KEY))
        return removed
