"""Encrypt messages under an access policy.

The message body is encrypted locally under a fresh symmetric key; the
key-release service then wraps that key under the policy. The result is an
``EncryptedPayload`` ready for the content store.
"""

from typing import Optional, Sequence, Union

from .cipher import AesGcmCipher, CipherProvider
from .config import get_settings
from .encoding import encode_base64, encode_hex
from .exceptions import KeygateError, ServiceError
from .keyrelease.base import KeyReleaseClient
from .models import AccessPolicy, EncryptedPayload
from .policy import AccessPolicyBuilder, validate_policy
from .session import AuthSession
from .utils.logging import get_logger

logger = get_logger("keygate.encryption")


class EncryptionService:
    """Produces encrypted payloads gated by access policies."""

    def __init__(
        self,
        client: KeyReleaseClient,
        cipher: Optional[CipherProvider] = None,
        chain: Optional[str] = None,
        builder: Optional[AccessPolicyBuilder] = None,
    ):
        """
        Initialize the service.

        Args:
            client: Key-release client that wraps symmetric keys
            cipher: Cipher provider (default: AES-256-GCM)
            chain: Chain name sent with each wrap request (default from settings)
            builder: Policy builder for encrypt_for_recipients
        """
        self.client = client
        self.cipher = cipher or AesGcmCipher()
        self.chain = chain or get_settings().key_release.chain
        self.builder = builder or AccessPolicyBuilder()

    async def encrypt(
        self,
        session: AuthSession,
        access_policy: AccessPolicy,
        plaintext: Union[str, bytes],
    ) -> EncryptedPayload:
        """
        Encrypt a message so only accounts satisfying the policy can read it.

        Args:
            session: Authenticated session of the caller
            access_policy: Who may decrypt
            plaintext: Message text (UTF-8 encoded) or raw bytes

        Returns:
            EncryptedPayload with serialized policy, hex wrapped key and
            base64 ciphertext

        Raises:
            NotAuthenticatedError: If the session holds no signature
            PolicyError: If the policy is malformed or empty
            AuthorizationError: If the service refuses the caller's signature
            ServiceError: If the cipher or key-release service fails
        """
        auth_sig = session.get_signature()
        validate_policy(access_policy, allow_empty=False)

        data = plaintext.encode("utf-8") if isinstance(plaintext, str) else plaintext

        try:
            ciphertext, symmetric_key = self.cipher.encrypt(data)
        except KeygateError:
            raise
        except Exception as e:
            logger.error(f"Error encrypting string: {e}")
            raise ServiceError(f"Error encrypting string: {e}", cause=e) from e

        encoded_ciphertext = encode_base64(ciphertext)

        try:
            wrapped_key = await self.client.wrap(
                access_policy, symmetric_key, auth_sig, self.chain
            )
        except KeygateError as e:
            logger.error(f"Error saving encryption key: {e}")
            raise
        except Exception as e:
            logger.error(f"Error saving encryption key: {e}")
            raise ServiceError(f"Error saving encryption key: {e}", cause=e) from e

        return EncryptedPayload(
            access_control_conditions=access_policy.to_json(),
            encrypted_symmetric_key=encode_hex(wrapped_key),
            encrypted_string=encoded_ciphertext,
        )

    async def encrypt_for_recipients(
        self,
        session: AuthSession,
        recipients: Sequence[str],
        plaintext: Union[str, bytes],
    ) -> EncryptedPayload:
        """Build a direct-message policy for ``recipients`` and encrypt."""
        session.get_signature()
        policy = self.builder.build(recipients)
        return await self.encrypt(session, policy, plaintext)
