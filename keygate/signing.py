"""Account signers used to produce auth signatures.

A signer exposes ``async sign(message, account) -> str``. Wallet integrations
implement the same protocol; ``LocalWalletSigner`` is a self-contained Ed25519
signer for CLI use, tests and the in-process key-release service.

Local wallet scheme:
- address: ``0x`` + last 20 bytes of SHA-256(raw public key)
- signature: ``0x`` + raw public key (32 bytes) + Ed25519 signature (64 bytes),
  so verification needs no key registry.
"""

import hashlib
import os
from pathlib import Path
from typing import Protocol, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .encoding import decode_hex
from .exceptions import DecodeError
from .models import AuthSignature

PUBLIC_KEY_SIZE = 32
SIGNATURE_SIZE = 64


class Signer(Protocol):
    """Anything able to sign a challenge on behalf of an account."""

    async def sign(self, message: bytes, account: str) -> str:
        ...


def address_from_public_key(public_bytes: bytes) -> str:
    """Derive the local wallet address for a raw Ed25519 public key."""
    return "0x" + hashlib.sha256(public_bytes).digest()[-20:].hex()


class LocalWalletSigner:
    """Ed25519 signer holding a single private key."""

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        self._public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self.address = address_from_public_key(self._public_bytes)

    @classmethod
    def generate(cls) -> "LocalWalletSigner":
        """Create a signer with a fresh random key."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "LocalWalletSigner":
        """Load a PEM (PKCS8, unencrypted) private key file."""
        pem_data = Path(path).read_bytes()
        private_key = serialization.load_pem_private_key(pem_data, password=None)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError(f"{path} does not contain an Ed25519 private key")
        return cls(private_key)

    def save(self, path: Union[str, Path]) -> Path:
        """Write the private key as PEM with owner-only permissions."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pem_data = self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(pem_data)
        return path

    async def sign(self, message: bytes, account: str) -> str:
        """
        Sign a challenge for ``account``.

        Raises:
            PermissionError: If the account is not the one this signer holds
        """
        if account.lower() != self.address:
            raise PermissionError(f"Signer does not control account {account}")
        signature = self._private_key.sign(message)
        return "0x" + (self._public_bytes + signature).hex()


def verify_auth_signature(auth_sig: AuthSignature) -> bool:
    """
    Check a local wallet auth signature.

    Returns:
        True if the signature is valid for the signed message and the
        embedded public key derives to ``auth_sig.address``
    """
    try:
        raw = decode_hex(auth_sig.sig)
    except DecodeError:
        return False
    if len(raw) != PUBLIC_KEY_SIZE + SIGNATURE_SIZE:
        return False

    public_bytes, signature = raw[:PUBLIC_KEY_SIZE], raw[PUBLIC_KEY_SIZE:]
    if address_from_public_key(public_bytes) != auth_sig.address.lower():
        return False

    try:
        public_key = Ed25519PublicKey.from_public_bytes(public_bytes)
        public_key.verify(signature, auth_sig.signed_message.encode("utf-8"))
        return True
    except (InvalidSignature, ValueError):
        return False
