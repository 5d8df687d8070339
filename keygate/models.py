"""Data models for access-gated encryption.

Policies, auth signatures and encrypted payloads serialize to the camelCase
JSON shapes expected by the key-release service and the content store.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Union

from .exceptions import DecodeError, PolicyError

# Placeholder the key-release service substitutes with the caller's address
USER_ADDRESS = ":userAddress"


class Operator(str, Enum):
    """Boolean combinator between two access conditions."""

    OR = "or"
    AND = "and"


@dataclass(frozen=True)
class ReturnValueTest:
    """Comparison applied to the condition's return value."""

    comparator: str = "="
    value: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"comparator": self.comparator, "value": self.value}


@dataclass(frozen=True)
class AccessCondition:
    """One atomic predicate in an access policy."""

    chain: str
    return_value_test: ReturnValueTest
    contract_address: str = ""
    standard_contract_type: str = ""
    method: str = ""
    parameters: tuple[str, ...] = (USER_ADDRESS,)

    @classmethod
    def for_address(cls, address: str, chain: str = "ethereum") -> "AccessCondition":
        """Condition satisfied only when the caller's address equals ``address``."""
        return cls(
            chain=chain,
            return_value_test=ReturnValueTest(comparator="=", value=address),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the canonical dictionary form (key order is significant)."""
        return {
            "contractAddress": self.contract_address,
            "standardContractType": self.standard_contract_type,
            "chain": self.chain,
            "method": self.method,
            "parameters": list(self.parameters),
            "returnValueTest": self.return_value_test.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AccessCondition":
        """Create from dictionary, raising PolicyError on a malformed shape."""
        try:
            test = data["returnValueTest"]
            parameters = data.get("parameters", [])
            condition = cls(
                chain=data["chain"],
                return_value_test=ReturnValueTest(
                    comparator=test["comparator"],
                    value=test["value"],
                ),
                contract_address=data.get("contractAddress", ""),
                standard_contract_type=data.get("standardContractType", ""),
                method=data.get("method", ""),
                parameters=tuple(parameters),
            )
        except (KeyError, TypeError) as e:
            raise PolicyError(f"Invalid access control condition: {e!r}", cause=e) from e

        fields = (
            condition.chain,
            condition.contract_address,
            condition.standard_contract_type,
            condition.method,
            condition.return_value_test.comparator,
            condition.return_value_test.value,
            *condition.parameters,
        )
        if not isinstance(parameters, list) or not all(isinstance(f, str) for f in fields):
            raise PolicyError("Access control condition fields must be strings")
        return condition


@dataclass(frozen=True)
class OperatorNode:
    """Operator element placed between two conditions."""

    operator: Operator = Operator.OR

    def to_dict(self) -> dict[str, str]:
        return {"operator": self.operator.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OperatorNode":
        try:
            return cls(operator=Operator(data["operator"]))
        except (KeyError, TypeError, ValueError) as e:
            raise PolicyError(f"Invalid policy operator: {e!r}", cause=e) from e


PolicyElement = Union[AccessCondition, OperatorNode]


@dataclass(frozen=True)
class AccessPolicy:
    """
    Ordered infix boolean expression over access conditions.

    Elements alternate condition, operator, condition, ... and are evaluated
    left to right with no grouping. Use ``keygate.policy.validate_policy`` to
    check the alternation invariant.
    """

    elements: tuple[PolicyElement, ...] = ()

    def __iter__(self) -> Iterator[PolicyElement]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)

    def __getitem__(self, index: int) -> PolicyElement:
        return self.elements[index]

    @property
    def conditions(self) -> list[AccessCondition]:
        return [e for e in self.elements if isinstance(e, AccessCondition)]

    @property
    def operators(self) -> list[OperatorNode]:
        return [e for e in self.elements if isinstance(e, OperatorNode)]

    @property
    def is_empty(self) -> bool:
        return not self.elements

    def to_list(self) -> list[dict[str, Any]]:
        return [element.to_dict() for element in self.elements]

    def to_json(self) -> str:
        """Canonical text form: compact JSON array."""
        return json.dumps(self.to_list(), separators=(",", ":"))

    @classmethod
    def from_list(cls, data: Any) -> "AccessPolicy":
        """Create from a decoded JSON array. Does not check alternation."""
        if not isinstance(data, list):
            raise PolicyError("Access control conditions must be a JSON array")

        elements: list[PolicyElement] = []
        for item in data:
            if not isinstance(item, dict):
                raise PolicyError(f"Invalid policy element: {item!r}")
            if "operator" in item:
                elements.append(OperatorNode.from_dict(item))
            else:
                elements.append(AccessCondition.from_dict(item))
        return cls(elements=tuple(elements))

    @classmethod
    def from_json(cls, json_str: str) -> "AccessPolicy":
        """Deserialize from JSON text."""
        try:
            data = json.loads(json_str)
        except (json.JSONDecodeError, TypeError) as e:
            raise PolicyError(f"Couldn't parse accessControlConditions: {e}", cause=e) from e
        return cls.from_list(data)


@dataclass(frozen=True)
class AuthSignature:
    """Signed, timestamped message proving control of an account."""

    sig: str
    signed_message: str
    address: str
    derived_via: str = "web3.eth.personal.sign"

    def to_dict(self) -> dict[str, str]:
        return {
            "sig": self.sig,
            "derivedVia": self.derived_via,
            "signedMessage": self.signed_message,
            "address": self.address,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthSignature":
        return cls(
            sig=data["sig"],
            signed_message=data["signedMessage"],
            address=data["address"],
            derived_via=data.get("derivedVia", "web3.eth.personal.sign"),
        )


@dataclass(frozen=True)
class EncryptedPayload:
    """
    Artifact stored verbatim by the external content store.

    All three fields are mandatory: the serialized policy, the wrapped
    symmetric key as hex and the ciphertext as base64.
    """

    access_control_conditions: str
    encrypted_symmetric_key: str
    encrypted_string: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "accessControlConditions": self.access_control_conditions,
            "encryptedSymmetricKey": self.encrypted_symmetric_key,
            "encryptedString": self.encrypted_string,
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EncryptedPayload":
        """
        Create from dictionary.

        Raises:
            PolicyError: If the policy field is missing
            DecodeError: If the key or ciphertext field is missing
        """
        if not isinstance(data, dict):
            raise DecodeError("Encrypted payload must be a JSON object")
        if not isinstance(data.get("accessControlConditions"), str):
            raise PolicyError("Encrypted payload is missing accessControlConditions")
        for key in ("encryptedSymmetricKey", "encryptedString"):
            if not isinstance(data.get(key), str):
                raise DecodeError(f"Encrypted payload is missing {key}")

        return cls(
            access_control_conditions=data["accessControlConditions"],
            encrypted_symmetric_key=data["encryptedSymmetricKey"],
            encrypted_string=data["encryptedString"],
        )

    @classmethod
    def from_json(cls, json_str: str) -> "EncryptedPayload":
        """Deserialize from JSON string."""
        try:
            data = json.loads(json_str)
        except (json.JSONDecodeError, TypeError) as e:
            raise DecodeError(f"Invalid encrypted payload: {e}", cause=e) from e
        return cls.from_dict(data)
