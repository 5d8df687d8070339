"""In-process key-release service.

Wraps keys with AES-256-GCM under a service master key, binding each wrapped
key to its canonical access policy as associated data. Unwrapping verifies the
caller's auth signature and evaluates the policy against the signing address.
"""

import json
import os
from pathlib import Path
from typing import Callable, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import AuthorizationError, ConfigurationError, ServiceError
from ..models import AccessPolicy, AuthSignature
from ..policy import evaluate_policy, validate_policy
from ..signing import verify_auth_signature
from ..utils.logging import get_logger

logger = get_logger("keygate.keyrelease.local")

MASTER_KEY_SIZE = 32
NONCE_SIZE = 12

Verifier = Callable[[AuthSignature], bool]


class LocalKeyReleaseService:
    """Key-release service running inside the current process."""

    def __init__(
        self,
        master_key: Optional[bytes] = None,
        verifier: Verifier = verify_auth_signature,
        chain: str = "ethereum",
    ):
        """
        Initialize the service.

        Args:
            master_key: 32-byte wrapping key (random if not given)
            verifier: Checks that an auth signature is genuine
            chain: The only chain this service accepts
        """
        if master_key is None:
            master_key = AESGCM.generate_key(bit_length=MASTER_KEY_SIZE * 8)
        if len(master_key) != MASTER_KEY_SIZE:
            raise ConfigurationError(f"Master key must be {MASTER_KEY_SIZE} bytes")

        self._aesgcm = AESGCM(master_key)
        self._master_key = master_key
        self.verifier = verifier
        self.chain = chain
        self.connections = 0

    @classmethod
    def from_state_file(cls, path: Union[str, Path], **kwargs) -> "LocalKeyReleaseService":
        """Load the master key from a state file, creating it if missing."""
        path = Path(path)
        if path.exists():
            try:
                state = json.loads(path.read_text(encoding="utf-8"))
                master_key = bytes.fromhex(state["master_key"])
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Invalid key-release state file {path}: {e}")
            return cls(master_key=master_key, **kwargs)

        service = cls(**kwargs)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"version": 1, "master_key": service._master_key.hex()}, f, indent=2)
        return service

    async def connect(self) -> None:
        self.connections += 1

    async def close(self) -> None:
        return None

    def _check_request(self, auth_sig: AuthSignature, chain: str) -> None:
        if chain != self.chain:
            raise ServiceError(f"Unsupported chain: {chain}")
        if not self.verifier(auth_sig):
            logger.warning(f"Rejected invalid auth signature for {auth_sig.address}")
            raise AuthorizationError("Invalid auth signature")

    async def wrap(
        self,
        policy: AccessPolicy,
        symmetric_key: bytes,
        auth_sig: AuthSignature,
        chain: str,
    ) -> bytes:
        """Seal ``symmetric_key`` so only callers satisfying ``policy`` can recover it."""
        self._check_request(auth_sig, chain)
        validate_policy(policy, allow_empty=False)

        nonce = os.urandom(NONCE_SIZE)
        sealed = self._aesgcm.encrypt(nonce, symmetric_key, policy.to_json().encode("utf-8"))
        logger.debug(f"Wrapped key for {len(policy.conditions)} condition(s)")
        return nonce + sealed

    async def unwrap(
        self,
        policy: AccessPolicy,
        wrapped_key: bytes,
        auth_sig: AuthSignature,
        chain: str,
    ) -> bytes:
        """
        Release a wrapped key if the signer satisfies the policy.

        Raises:
            AuthorizationError: If the signature is invalid, the policy is not
                satisfied, or the policy is not the one the key was wrapped under
        """
        self._check_request(auth_sig, chain)

        if not evaluate_policy(policy, auth_sig.address):
            logger.info(f"Denied key release to {auth_sig.address}")
            raise AuthorizationError(f"{auth_sig.address} does not satisfy the access policy")

        if len(wrapped_key) <= NONCE_SIZE:
            raise ServiceError("Wrapped key is too short")

        nonce, sealed = wrapped_key[:NONCE_SIZE], wrapped_key[NONCE_SIZE:]
        try:
            return self._aesgcm.decrypt(nonce, sealed, policy.to_json().encode("utf-8"))
        except InvalidTag as e:
            raise AuthorizationError(
                "Access policy does not match the wrapped key", cause=e
            ) from e
