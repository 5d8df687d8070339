"""Resolve account identifiers to chain-qualified addresses.

Supported forms:
    did:pkh:<namespace>:<reference>:<address>   (e.g. did:pkh:eip155:1:0xab...)
    0x<40 hex chars>                            (bare EVM address, eip155)
"""

import re
from typing import NamedTuple

from .exceptions import PolicyError

EIP155 = "eip155"

EVM_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")
DID_PKH_PATTERN = re.compile(
    r"^did:pkh:(?P<namespace>[-a-z0-9]{3,8}):(?P<reference>[-_a-zA-Z0-9]{1,32}):(?P<address>[-.%a-zA-Z0-9]{1,128})$"
)


class ResolvedIdentity(NamedTuple):
    """An account address and the chain family it belongs to."""

    address: str
    chain_id: str


def resolve(identifier: str) -> ResolvedIdentity:
    """
    Resolve an identifier to ``(address, chain_id)``.

    EVM addresses are lower-cased so equality checks are case-insensitive.

    Raises:
        PolicyError: If the identifier is not a recognised form
    """
    if not isinstance(identifier, str):
        raise PolicyError(f"Recipient identifier must be a string, got {identifier!r}")

    identifier = identifier.strip()

    if EVM_ADDRESS_PATTERN.match(identifier):
        return ResolvedIdentity(identifier.lower(), EIP155)

    match = DID_PKH_PATTERN.match(identifier)
    if match is None:
        raise PolicyError(f"Cannot resolve recipient identifier: {identifier!r}")

    namespace = match.group("namespace")
    address = match.group("address")
    if namespace == EIP155:
        if not EVM_ADDRESS_PATTERN.match(address):
            raise PolicyError(f"Invalid eip155 address in {identifier!r}")
        address = address.lower()

    return ResolvedIdentity(address, namespace)


def address_to_did(address: str, chain_reference: str = "1") -> str:
    """Build a did:pkh identifier for an EVM address."""
    if not EVM_ADDRESS_PATTERN.match(address):
        raise PolicyError(f"Invalid EVM address: {address!r}")
    return f"did:pkh:{EIP155}:{chain_reference}:{address.lower()}"
