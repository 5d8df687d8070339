"""Access policy construction, validation and evaluation.

The direct-message builder turns a list of recipient identifiers into
``[cond(a), or, cond(b), or, cond(c)]``. Recipients outside the supported
chain family are dropped (or rejected in strict mode). Operators are placed
between emitted conditions, never keyed to input position, so a dropped
recipient can never leave a leading or trailing operator behind.
"""

from typing import Callable, Iterable, Optional, Sequence

from .config import get_settings
from .exceptions import PolicyError, UnsupportedRecipientError
from .identity import ResolvedIdentity, resolve
from .models import (
    USER_ADDRESS,
    AccessCondition,
    AccessPolicy,
    Operator,
    OperatorNode,
    PolicyElement,
)
from .utils.logging import get_logger

logger = get_logger("keygate.policy")

Resolver = Callable[[str], ResolvedIdentity]


def validate_policy(policy: AccessPolicy, allow_empty: bool = True) -> AccessPolicy:
    """
    Check the alternation invariant of a policy.

    Even positions must hold conditions and odd positions operators, so the
    policy neither starts nor ends with an operator and has k-1 operators for
    k conditions.

    Args:
        policy: Policy to check
        allow_empty: Whether a policy with no conditions is acceptable

    Returns:
        The same policy, for chaining

    Raises:
        PolicyError: If the invariant does not hold
    """
    if policy.is_empty:
        if not allow_empty:
            raise PolicyError("Access policy is empty and would grant access to no one")
        return policy

    for index, element in enumerate(policy.elements):
        expect_condition = index % 2 == 0
        if expect_condition and not isinstance(element, AccessCondition):
            raise PolicyError(f"Expected an access condition at position {index}")
        if not expect_condition and not isinstance(element, OperatorNode):
            raise PolicyError(f"Expected an operator at position {index}")

    if isinstance(policy.elements[-1], OperatorNode):
        raise PolicyError("Access policy cannot end with an operator")

    return policy


def serialize_policy(policy: AccessPolicy) -> str:
    """Validate and return the canonical JSON text of a policy."""
    return validate_policy(policy).to_json()


def parse_policy(text: str) -> AccessPolicy:
    """
    Parse the canonical text form back into a validated policy.

    Raises:
        PolicyError: If the text is not JSON or does not describe a valid policy
    """
    return validate_policy(AccessPolicy.from_json(text))


def _condition_holds(condition: AccessCondition, address: str) -> bool:
    if condition.contract_address or condition.standard_contract_type or condition.method:
        raise PolicyError("Only caller-address conditions can be evaluated locally")
    if list(condition.parameters) != [USER_ADDRESS]:
        raise PolicyError(f"Unsupported condition parameters: {list(condition.parameters)}")

    test = condition.return_value_test
    expected = test.value.lower()
    actual = address.lower()
    if test.comparator == "=":
        return actual == expected
    if test.comparator == "!=":
        return actual != expected
    raise PolicyError(f"Unsupported comparator: {test.comparator!r}")


def evaluate_policy(policy: AccessPolicy, address: str) -> bool:
    """
    Evaluate a policy for a caller address, left to right without precedence.

    An empty policy grants access to no one.
    """
    validate_policy(policy)
    if policy.is_empty:
        return False

    elements = policy.elements
    result = _condition_holds(elements[0], address)
    for index in range(1, len(elements), 2):
        operator = elements[index].operator
        value = _condition_holds(elements[index + 1], address)
        result = (result or value) if operator == Operator.OR else (result and value)
    return result


class AccessPolicyBuilder:
    """Builds direct-message access policies from recipient identifiers."""

    def __init__(
        self,
        supported_network: Optional[str] = None,
        chain: Optional[str] = None,
        strict: Optional[bool] = None,
        resolver: Resolver = resolve,
    ):
        """
        Initialize the builder.

        Args:
            supported_network: Chain family whose recipients get a condition
            chain: Chain name written into each condition
            strict: Raise UnsupportedRecipientError instead of dropping
            resolver: Identifier resolver (default: did:pkh / 0x addresses)
        """
        settings = get_settings()

        self.supported_network = supported_network or settings.policy.supported_network
        self.chain = chain or settings.policy.chain
        self.strict = settings.policy.strict if strict is None else strict
        self.resolver = resolver

    def build(self, recipients: Sequence[str]) -> AccessPolicy:
        """
        Convert recipients into an access policy, preserving input order.

        Args:
            recipients: Recipient identifiers (DIDs or addresses)

        Returns:
            AccessPolicy ORing one condition per supported recipient; empty if
            no recipient is on the supported chain family
        """
        elements: list[PolicyElement] = []

        for identifier in recipients:
            address, network = self.resolver(identifier)

            if network != self.supported_network:
                if self.strict:
                    raise UnsupportedRecipientError(identifier, network)
                logger.debug(f"Skipping recipient {identifier} on unsupported network {network}")
                continue

            if elements:
                elements.append(OperatorNode(Operator.OR))
            elements.append(AccessCondition.for_address(address, chain=self.chain))

        policy = AccessPolicy(elements=tuple(elements))
        if policy.is_empty and recipients:
            logger.warning("No recipient is on a supported network; access policy is empty")
        return validate_policy(policy)

    @staticmethod
    def combine(
        policies: Iterable[AccessPolicy],
        operator: Operator = Operator.OR,
    ) -> AccessPolicy:
        """Join policies with an operator, skipping empty ones."""
        elements: list[PolicyElement] = []
        for policy in policies:
            validate_policy(policy)
            if policy.is_empty:
                continue
            if elements:
                elements.append(OperatorNode(operator))
            elements.extend(policy.elements)
        return AccessPolicy(elements=tuple(elements))


def build_policy(recipients: Sequence[str], strict: Optional[bool] = None) -> AccessPolicy:
    """Build a direct-message policy with the configured defaults."""
    return AccessPolicyBuilder(strict=strict).build(recipients)


def generate_access_control_conditions_for_dms(recipients: Sequence[str]) -> list[dict]:
    """Build a direct-message policy and return it in its JSON-ready list form."""
    return build_policy(recipients).to_list()
