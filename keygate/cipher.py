"""Symmetric cipher provider for message bodies.

Uses the cryptography library's AES-256-GCM. Every message gets a fresh
random key; the key itself is what the key-release service wraps.

Ciphertext format: [nonce (12 bytes)] [ciphertext + tag (16 bytes)]
"""

import os
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import ServiceError

KEY_SIZE = 32  # 256 bits for AES-256
NONCE_SIZE = 12  # 96 bits for AES-GCM
TAG_SIZE = 16  # 128-bit authentication tag


class CipherProvider(Protocol):
    """Encrypts under a fresh key and decrypts with a released key."""

    def encrypt(self, plaintext: bytes) -> tuple[bytes, bytes]:
        ...

    def decrypt(self, ciphertext: bytes, symmetric_key: bytes) -> bytes:
        ...


class AesGcmCipher:
    """AES-256-GCM with a random key per message."""

    def generate_key(self) -> bytes:
        """Generate a random 256-bit key."""
        return AESGCM.generate_key(bit_length=KEY_SIZE * 8)

    def encrypt(self, plaintext: bytes) -> tuple[bytes, bytes]:
        """
        Encrypt data under a new key.

        Args:
            plaintext: Data to encrypt

        Returns:
            Tuple of (nonce + ciphertext, symmetric_key)
        """
        key = self.generate_key()
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = AESGCM(key).encrypt(nonce, plaintext, None)
        return nonce + ciphertext, key

    def decrypt(self, ciphertext: bytes, symmetric_key: bytes) -> bytes:
        """
        Decrypt data produced by ``encrypt``.

        Raises:
            ServiceError: If the key is the wrong size or the data does not
                authenticate (corrupted or wrong key)
        """
        if len(symmetric_key) != KEY_SIZE:
            raise ServiceError(f"Key must be {KEY_SIZE} bytes, got {len(symmetric_key)}")
        if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
            raise ServiceError("Ciphertext is too short")

        nonce, body = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
        try:
            return AESGCM(symmetric_key).decrypt(nonce, body, None)
        except InvalidTag as e:
            raise ServiceError("Error decrypting string: corrupted data or wrong key", cause=e) from e
