"""Configuration settings for keygate."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import ConfigurationError

AUTH_SIGNATURE_BODY = (
    "I am creating an account to use the private features of Orbis at {timestamp}"
)


@dataclass
class KeyReleaseConfig:
    """Configuration for the key-release service client."""

    base_url: str = "http://localhost:7470"
    timeout: float = 30.0  # Seconds, passed straight to the HTTP transport
    chain: str = "ethereum"


@dataclass
class AuthConfig:
    """Configuration for auth signature generation."""

    message_template: str = AUTH_SIGNATURE_BODY
    derived_via: str = "web3.eth.personal.sign"
    signature_store: Optional[Path] = None  # None = keep signatures in memory


@dataclass
class PolicyConfig:
    """Configuration for direct-message access policies."""

    supported_network: str = "eip155"
    chain: str = "ethereum"
    strict: bool = False  # Raise instead of dropping unsupported recipients


@dataclass
class Settings:
    """Main settings container."""

    key_release: KeyReleaseConfig = field(default_factory=KeyReleaseConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)

    # Local wallet key used by the CLI
    wallet_key_file: Path = field(
        default_factory=lambda: Path.home() / ".config" / "keygate" / "wallet.key"
    )

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Create settings from environment variables.

        Environment variables:
            KEYGATE_SERVICE_URL: Key-release service base URL
            KEYGATE_TIMEOUT: Key-release request timeout in seconds
            KEYGATE_CHAIN: Chain name sent to the key-release service
            KEYGATE_SIGNATURE_STORE: JSON file for persisted auth signatures
            KEYGATE_STRICT_RECIPIENTS: Reject unsupported recipients (true/false)
            KEYGATE_WALLET_KEY: Local wallet key file for the CLI
            LOG_LEVEL: Log level
        """
        settings = cls()

        if url := os.getenv("KEYGATE_SERVICE_URL"):
            settings.key_release.base_url = url

        if timeout := os.getenv("KEYGATE_TIMEOUT"):
            try:
                settings.key_release.timeout = float(timeout)
            except ValueError:
                raise ConfigurationError(f"KEYGATE_TIMEOUT must be a number, got {timeout!r}")

        if chain := os.getenv("KEYGATE_CHAIN"):
            settings.key_release.chain = chain
            settings.policy.chain = chain

        if store := os.getenv("KEYGATE_SIGNATURE_STORE"):
            settings.auth.signature_store = Path(store)

        if os.getenv("KEYGATE_STRICT_RECIPIENTS", "").lower() == "true":
            settings.policy.strict = True

        if key_file := os.getenv("KEYGATE_WALLET_KEY"):
            settings.wallet_key_file = Path(key_file)

        if log_level := os.getenv("LOG_LEVEL"):
            settings.log_level = log_level

        return settings


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set the global settings instance (None resets to environment defaults)."""
    global _settings
    _settings = settings
