"""Exceptions for keygate access-gated encryption."""

from typing import Optional


class KeygateError(Exception):
    """Base exception for keygate operations."""

    default_message = "Keygate operation failed."

    def __init__(self, message: str = "", cause: Optional[BaseException] = None):
        super().__init__(message or self.default_message)
        self.cause = cause

    @property
    def kind(self) -> str:
        """Short name of the error kind (the class name)."""
        return type(self).__name__


class AuthError(KeygateError):
    """Raised when the signer rejects or fails to produce an auth signature."""

    default_message = "Error generating auth signature."


class NotAuthenticatedError(KeygateError):
    """Raised when an operation needs an auth signature and none is present."""

    default_message = "User not authenticated to the key-release service."


class DecodeError(KeygateError):
    """Raised when base64 or hex input is malformed."""

    default_message = "Malformed encoded input."


class PolicyError(KeygateError):
    """Raised when an access policy is malformed or cannot be built."""

    default_message = "Invalid access control conditions."


class UnsupportedRecipientError(PolicyError):
    """Raised in strict mode when a recipient is on an unsupported chain."""

    def __init__(self, identifier: str = "", network: str = ""):
        message = (
            f"Recipient {identifier} is on unsupported network {network!r}"
            if identifier
            else "Recipient is on an unsupported network."
        )
        super().__init__(message)
        self.identifier = identifier
        self.network = network


class AuthorizationError(KeygateError):
    """Raised when the caller is authenticated but does not satisfy the policy."""

    default_message = "Account is not authorized to decrypt this content."


class ServiceError(KeygateError):
    """Raised when the cipher or key-release service fails."""

    default_message = "Key-release or cipher service failed."


class ConfigurationError(Exception):
    """Raised for misconfiguration. Not converted into a failed Result."""

    def __init__(self, message: str = "Invalid keygate configuration."):
        super().__init__(message)
