"""Shared pytest fixtures for keygate tests."""

import asyncio
from datetime import datetime, timezone

import pytest


@pytest.fixture(autouse=True)
def default_settings():
    """Run every test with default settings, ignoring the environment."""
    from keygate.config import Settings, set_settings

    set_settings(Settings())
    yield
    set_settings(None)


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run


@pytest.fixture
def fixed_clock():
    """Clock that always returns the same instant."""
    instant = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
    return lambda: instant


@pytest.fixture
def alice():
    from keygate.signing import LocalWalletSigner

    return LocalWalletSigner.generate()


@pytest.fixture
def bob():
    from keygate.signing import LocalWalletSigner

    return LocalWalletSigner.generate()


@pytest.fixture
def mallory():
    from keygate.signing import LocalWalletSigner

    return LocalWalletSigner.generate()


@pytest.fixture
def key_service():
    """In-process key-release service."""
    from keygate.keyrelease import LocalKeyReleaseService

    return LocalKeyReleaseService()


@pytest.fixture
def session(key_service):
    """Unauthenticated session bound to the local key service."""
    from keygate.session import AuthSession, MemorySignatureStore

    return AuthSession(key_service, store=MemorySignatureStore())


@pytest.fixture
def alice_session(key_service, alice, run):
    """Session authenticated as alice."""
    from keygate.session import AuthSession, MemorySignatureStore

    session = AuthSession(key_service, store=MemorySignatureStore())
    run(session.generate_signature(alice, alice.address))
    return session


@pytest.fixture
def encryption_service(key_service):
    from keygate.encryption import EncryptionService

    return EncryptionService(key_service)


@pytest.fixture
def decryption_service(key_service):
    from keygate.decryption import DecryptionService

    return DecryptionService(key_service)


@pytest.fixture
def sample_addresses() -> list[str]:
    """Three EVM addresses on the supported network."""
    return [
        "0x" + "a1" * 20,
        "0x" + "b2" * 20,
        "0x" + "c3" * 20,
    ]


@pytest.fixture
def unsupported_did() -> str:
    """A recipient on a network the policy builder does not support."""
    return "did:pkh:solana:4sGjMW1sUnHzSxGspuhpqLDx6wiyjNtZ:CKg5d12Jhpej1JqtmxLJgaFqqeYjxgPqToJ4LBdvG9Ev"
