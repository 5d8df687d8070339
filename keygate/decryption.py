"""Decrypt payloads by asking the key-release service for their key."""

from typing import Optional

from .cipher import AesGcmCipher, CipherProvider
from .config import get_settings
from .encoding import decode_base64, decode_hex
from .exceptions import KeygateError, ServiceError
from .keyrelease.base import KeyReleaseClient
from .models import EncryptedPayload
from .policy import parse_policy
from .session import AuthSession
from .utils.logging import get_logger

logger = get_logger("keygate.decryption")


class DecryptionService:
    """Recovers plaintext for callers who satisfy a payload's policy."""

    def __init__(
        self,
        client: KeyReleaseClient,
        cipher: Optional[CipherProvider] = None,
        chain: Optional[str] = None,
    ):
        self.client = client
        self.cipher = cipher or AesGcmCipher()
        self.chain = chain or get_settings().key_release.chain

    async def decrypt_bytes(self, session: AuthSession, payload: EncryptedPayload) -> bytes:
        """
        Decrypt a payload to raw bytes.

        Steps run in order and stop at the first failure; nothing is retried.

        Raises:
            NotAuthenticatedError: If the session holds no signature
            DecodeError: If the ciphertext or wrapped key encoding is malformed
            PolicyError: If the serialized policy is malformed
            AuthorizationError: If the caller does not satisfy the policy
            ServiceError: If the key-release service or cipher fails
        """
        auth_sig = session.get_signature()

        try:
            ciphertext = decode_base64(payload.encrypted_string)
        except KeygateError as e:
            logger.error(f"Error decoding b64 string: {e}")
            raise

        access_policy = parse_policy(payload.access_control_conditions)
        wrapped_key = decode_hex(payload.encrypted_symmetric_key)

        try:
            symmetric_key = await self.client.unwrap(
                access_policy, wrapped_key, auth_sig, self.chain
            )
        except KeygateError as e:
            logger.error(f"Error getting encryption key: {e}")
            raise
        except Exception as e:
            logger.error(f"Error getting encryption key: {e}")
            raise ServiceError(f"Error getting encryption key: {e}", cause=e) from e

        try:
            return self.cipher.decrypt(ciphertext, symmetric_key)
        except KeygateError:
            raise
        except Exception as e:
            raise ServiceError(f"Error decrypting string: {e}", cause=e) from e

    async def decrypt(self, session: AuthSession, payload: EncryptedPayload) -> str:
        """Decrypt a payload holding UTF-8 text."""
        data = await self.decrypt_bytes(session, payload)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ServiceError("Decrypted content is not UTF-8 text", cause=e) from e
