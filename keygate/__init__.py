"""keygate - access-gated encryption for direct messages.

Usage:
    from keygate import (
        AuthSession, DecryptionService, EncryptionService,
        LocalKeyReleaseService, LocalWalletSigner,
    )

    client = LocalKeyReleaseService()
    session = AuthSession(client)
    await session.connect()

    signer = LocalWalletSigner.generate()
    await session.generate_signature(signer, signer.address)

    payload = await EncryptionService(client).encrypt_for_recipients(
        session, [signer.address], "hello"
    )
    text = await DecryptionService(client).decrypt(session, payload)
"""

__version__ = "0.1.0"

# Exceptions
from .exceptions import (
    AuthError,
    AuthorizationError,
    ConfigurationError,
    DecodeError,
    KeygateError,
    NotAuthenticatedError,
    PolicyError,
    ServiceError,
    UnsupportedRecipientError,
)

# Data model
from .models import (
    AccessCondition,
    AccessPolicy,
    AuthSignature,
    EncryptedPayload,
    Operator,
    OperatorNode,
    ReturnValueTest,
)

# Policies
from .policy import (
    AccessPolicyBuilder,
    build_policy,
    evaluate_policy,
    parse_policy,
    serialize_policy,
    validate_policy,
)

# Sessions and signing
from .session import (
    AuthResult,
    AuthSession,
    FileSignatureStore,
    MemorySignatureStore,
)
from .signing import LocalWalletSigner, verify_auth_signature

# Services
from .cipher import AesGcmCipher
from .decryption import DecryptionService
from .encryption import EncryptionService
from .keyrelease import HttpKeyReleaseClient, LocalKeyReleaseService
from .results import Result, capture

__all__ = [
    "__version__",
    # Exceptions
    "KeygateError",
    "AuthError",
    "NotAuthenticatedError",
    "DecodeError",
    "PolicyError",
    "UnsupportedRecipientError",
    "AuthorizationError",
    "ServiceError",
    "ConfigurationError",
    # Data model
    "AccessCondition",
    "AccessPolicy",
    "AuthSignature",
    "EncryptedPayload",
    "Operator",
    "OperatorNode",
    "ReturnValueTest",
    # Policies
    "AccessPolicyBuilder",
    "build_policy",
    "evaluate_policy",
    "parse_policy",
    "serialize_policy",
    "validate_policy",
    # Sessions and signing
    "AuthResult",
    "AuthSession",
    "FileSignatureStore",
    "MemorySignatureStore",
    "LocalWalletSigner",
    "verify_auth_signature",
    # Services
    "AesGcmCipher",
    "EncryptionService",
    "DecryptionService",
    "HttpKeyReleaseClient",
    "LocalKeyReleaseService",
    "Result",
    "capture",
]
