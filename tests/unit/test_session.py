"""Unit tests for auth sessions, signers and signature stores."""

import asyncio
import stat

import pytest


class TestLocalWalletSigner:
    """Tests for the Ed25519 local wallet signer."""

    def test_address_format(self, alice):
        """Addresses look like EVM addresses."""
        from keygate.identity import EVM_ADDRESS_PATTERN

        assert EVM_ADDRESS_PATTERN.match(alice.address)
        assert alice.address == alice.address.lower()

    def test_signature_verifies(self, alice, run):
        """Signatures from the local signer verify."""
        from keygate.models import AuthSignature
        from keygate.signing import verify_auth_signature

        message = "hello"
        sig = run(alice.sign(message.encode(), alice.address))

        auth_sig = AuthSignature(sig=sig, signed_message=message, address=alice.address)
        assert verify_auth_signature(auth_sig)

    def test_tampered_signature_fails(self, alice, bob, run):
        """Changed messages or claimed addresses fail verification."""
        from keygate.models import AuthSignature
        from keygate.signing import verify_auth_signature

        sig = run(alice.sign(b"hello", alice.address))

        assert not verify_auth_signature(
            AuthSignature(sig=sig, signed_message="hello!", address=alice.address)
        )
        assert not verify_auth_signature(
            AuthSignature(sig=sig, signed_message="hello", address=bob.address)
        )
        assert not verify_auth_signature(
            AuthSignature(sig="0xzz", signed_message="hello", address=alice.address)
        )

    def test_refuses_foreign_account(self, alice, bob, run):
        """The signer only signs for its own account."""
        with pytest.raises(PermissionError):
            run(alice.sign(b"hello", bob.address))

    def test_save_and_load(self, alice, tmp_path):
        """Key files round-trip with owner-only permissions."""
        from keygate.signing import LocalWalletSigner

        key_file = alice.save(tmp_path / "keys" / "alice.key")
        loaded = LocalWalletSigner.from_file(key_file)

        assert loaded.address == alice.address
        assert stat.S_IMODE(key_file.stat().st_mode) == 0o600


class TestAuthSession:
    """Tests for AuthSession state handling."""

    def test_connect_is_idempotent(self, session, key_service, run):
        """Repeated connects open a single connection."""
        async def connect_many():
            await session.connect()
            await asyncio.gather(session.connect(), session.connect())
            await session.connect()

        run(connect_many())

        assert session.is_connected
        assert key_service.connections == 1

    def test_connect_has_no_auth_side_effect(self, session, run):
        """Connecting does not authenticate."""
        run(session.connect())

        assert not session.is_authenticated

    def test_connect_without_client(self, run):
        """A session without a client cannot connect."""
        from keygate.exceptions import ConfigurationError
        from keygate.session import AuthSession, MemorySignatureStore

        with pytest.raises(ConfigurationError):
            run(AuthSession(store=MemorySignatureStore()).connect())

    def test_challenge_format(self, key_service, fixed_clock):
        """The challenge embeds a millisecond UTC timestamp."""
        from keygate.session import AuthSession, MemorySignatureStore

        session = AuthSession(key_service, store=MemorySignatureStore(), clock=fixed_clock)

        assert session.build_challenge() == (
            "I am creating an account to use the private features of Orbis at "
            "2024-01-02T03:04:05.678Z"
        )

    def test_template_requires_timestamp(self, key_service):
        """Templates without a timestamp placeholder are misconfiguration."""
        from keygate.exceptions import ConfigurationError
        from keygate.session import AuthSession, MemorySignatureStore

        with pytest.raises(ConfigurationError):
            AuthSession(key_service, store=MemorySignatureStore(), message_template="sign me")

    def test_template_with_other_braces(self, key_service, alice, run, fixed_clock):
        """Only the timestamp placeholder is substituted; other braces stay literal."""
        from keygate.session import AuthSession, MemorySignatureStore

        session = AuthSession(
            key_service,
            store=MemorySignatureStore(),
            message_template="Sign {this} at {timestamp}",
            clock=fixed_clock,
        )
        run(session.generate_signature(alice, alice.address))

        assert session.get_signature().signed_message == (
            "Sign {this} at 2024-01-02T03:04:05.678Z"
        )

    def test_generate_signature(self, key_service, alice, run, fixed_clock):
        """A successful signature is stored as current and per account."""
        from keygate.session import AuthSession, MemorySignatureStore
        from keygate.signing import verify_auth_signature

        session = AuthSession(key_service, store=MemorySignatureStore(), clock=fixed_clock)
        result = run(session.generate_signature(alice, alice.address))

        assert result.status == 200
        assert result.address == alice.address

        current = session.get_signature()
        assert current == session.get_signature(alice.address)
        assert current.address == alice.address
        assert current.derived_via == "web3.eth.personal.sign"
        assert current.signed_message.endswith("2024-01-02T03:04:05.678Z")
        assert verify_auth_signature(current)

    def test_get_signature_unauthenticated(self, session, alice):
        """Reading a missing signature raises NotAuthenticatedError."""
        from keygate.exceptions import NotAuthenticatedError

        with pytest.raises(NotAuthenticatedError):
            session.get_signature()
        with pytest.raises(NotAuthenticatedError):
            session.get_signature(alice.address)

    def test_account_switch(self, session, alice, bob, run):
        """A later signature for another account replaces the current slot."""
        run(session.generate_signature(alice, alice.address))
        run(session.generate_signature(bob, bob.address))

        assert session.current_address == bob.address
        assert session.get_signature(alice.address).address == alice.address

    def test_signer_rejection(self, session, alice, bob, run):
        """Signer failures raise AuthError and store nothing."""
        from keygate.exceptions import AuthError

        with pytest.raises(AuthError) as exc_info:
            run(session.generate_signature(alice, bob.address))

        assert isinstance(exc_info.value.cause, PermissionError)
        assert not session.is_authenticated

    def test_failed_switch_keeps_previous(self, session, alice, bob, run):
        """A failed signature attempt leaves the current account untouched."""
        from keygate.exceptions import AuthError

        run(session.generate_signature(alice, alice.address))

        with pytest.raises(AuthError):
            run(session.generate_signature(alice, bob.address))

        assert session.current_address == alice.address

    def test_empty_signature_rejected(self, session, run):
        """Signers returning nothing are treated as failures."""
        from keygate.exceptions import AuthError

        class SilentSigner:
            async def sign(self, message, account):
                return ""

        with pytest.raises(AuthError):
            run(session.generate_signature(SilentSigner(), "0x" + "11" * 20))

        assert not session.is_authenticated

    def test_for_account_is_pinned(self, session, alice, bob, run):
        """Scoped sessions keep their account when the parent switches."""
        run(session.generate_signature(alice, alice.address))
        scoped = session.for_account(alice.address)

        run(session.generate_signature(bob, bob.address))

        assert scoped.current_address == alice.address
        assert session.current_address == bob.address
        assert scoped.client is session.client

    def test_for_account_requires_signature(self, session, alice):
        """Scoping to an unknown account raises NotAuthenticatedError."""
        from keygate.exceptions import NotAuthenticatedError

        with pytest.raises(NotAuthenticatedError):
            session.for_account(alice.address)

    def test_sign_out_account(self, session, alice, bob, run):
        """Signing out the current account clears the current slot too."""
        run(session.generate_signature(alice, alice.address))
        run(session.generate_signature(bob, bob.address))

        removed = session.sign_out(bob.address)

        assert removed == 2
        assert not session.is_authenticated
        assert session.get_signature(alice.address).address == alice.address

    def test_sign_out_all(self, session, alice, run):
        """Signing out without an account clears everything."""
        run(session.generate_signature(alice, alice.address))

        assert session.sign_out() == 2
        assert not session.is_authenticated


class TestSignatureStores:
    """Tests for signature persistence."""

    def test_file_store_persists(self, key_service, alice, run, tmp_path):
        """Signatures written to a file store survive a new session."""
        from keygate.session import AuthSession, FileSignatureStore

        path = tmp_path / "signatures.json"
        first = AuthSession(key_service, store=FileSignatureStore(path))
        run(first.generate_signature(alice, alice.address))

        second = AuthSession(key_service, store=FileSignatureStore(path))

        assert second.get_signature() == first.get_signature()
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_file_store_from_settings(self, key_service, alice, run, tmp_path):
        """The configured signature store path is used by default."""
        from keygate.config import Settings, set_settings
        from keygate.session import AuthSession, FileSignatureStore

        settings = Settings()
        settings.auth.signature_store = tmp_path / "store.json"
        set_settings(settings)

        session = AuthSession(key_service)
        run(session.generate_signature(alice, alice.address))

        assert isinstance(session.store, FileSignatureStore)
        assert (tmp_path / "store.json").exists()

    def test_file_store_corrupted(self, tmp_path):
        """Corrupted store files raise ConfigurationError."""
        from keygate.exceptions import ConfigurationError
        from keygate.session import FileSignatureStore

        path = tmp_path / "signatures.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            FileSignatureStore(path).load("auth-signature")

    def test_file_store_delete_and_clear(self, tmp_path):
        """Deleting and clearing report what was removed."""
        from keygate.models import AuthSignature
        from keygate.session import FileSignatureStore

        store = FileSignatureStore(tmp_path / "signatures.json")
        sig = AuthSignature(sig="0x00", signed_message="m", address="0x" + "11" * 20)
        store.save("a", sig)
        store.save("b", sig)

        assert store.delete("a")
        assert not store.delete("a")
        assert store.load("b") == sig
        assert store.clear() == 1
        assert store.load("b") is None

    def test_memory_store(self):
        """The memory store behaves like a small dictionary."""
        from keygate.models import AuthSignature
        from keygate.session import MemorySignatureStore

        store = MemorySignatureStore()
        sig = AuthSignature(sig="0x00", signed_message="m", address="0x" + "11" * 20)
        store.save("a", sig)

        assert store.load("a") == sig
        assert store.load("missing") is None
        assert store.clear() == 1
