"""Binary/text encodings used by the encrypted payload.

Ciphertext travels as standard base64, wrapped keys as lowercase hex.
"""

import base64
import binascii

from .exceptions import DecodeError


def encode_base64(data: bytes) -> str:
    """Encode bytes as standard (padded) base64 text."""
    return base64.b64encode(data).decode("ascii")


def decode_base64(text: str) -> bytes:
    """
    Decode strict base64 text.

    Args:
        text: Base64 string (standard alphabet, padded)

    Returns:
        Decoded bytes

    Raises:
        DecodeError: If the input is not valid base64
    """
    if not isinstance(text, str):
        raise DecodeError(f"Expected base64 text, got {type(text).__name__}")
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise DecodeError(f"Error decoding base64 string: {e}", cause=e) from e


def encode_hex(data: bytes) -> str:
    """Encode bytes as lowercase hex without a prefix."""
    return data.hex()


def decode_hex(text: str) -> bytes:
    """
    Decode hex text, accepting an optional 0x prefix.

    Raises:
        DecodeError: If the input is not valid hex
    """
    if not isinstance(text, str):
        raise DecodeError(f"Expected hex text, got {type(text).__name__}")
    if text[:2] in ("0x", "0X"):
        text = text[2:]
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise DecodeError(f"Error decoding hex string: {e}", cause=e) from e
