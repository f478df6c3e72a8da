"""Parameter rules and retry policies declared by skills.

Both types are immutable and checked on construction, so a malformed
declaration fails at load time rather than while a request is being
handled.

Example::

    from skillrun_core import ParameterSpec, ParameterType, RetryPolicy

    query = ParameterSpec("query", ParameterType.STRING, required=True, min_length=5)
    policy = RetryPolicy(max_attempts=3, backoff="exponential", initial_delay_ms=1000)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from skillrun_core.exceptions import ContractError

#: A parameter value accepted by the runtime.
Scalar = Union[str, int]


class ParameterType(str, Enum):
    """Value types a parameter may declare."""

    STRING = "string"
    INTEGER = "integer"
    ENUM = "enum"


class Backoff(str, Enum):
    """Delay growth between retry attempts."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


def _not_int(value: object) -> bool:
    return not isinstance(value, int) or isinstance(value, bool)


@dataclass(frozen=True)
class ParameterSpec:
    """Validation rule for a single named parameter.

    Args:
        name: Parameter name as it appears in the request.
        type: One of :class:`ParameterType`.
        required: Whether the parameter must be present.
        min_length: Minimum string length (``string`` only).
        max_length: Maximum string length (``string`` only).
        enum: Closed set of allowed values (``enum`` only, required there).
        minimum: Smallest allowed value (``integer`` only).
        maximum: Largest allowed value (``integer`` only).
        description: Free-text description for catalogs.

    Raises:
        ContractError: If the rule is internally inconsistent.
    """

    name: str
    type: ParameterType
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    enum: tuple[Scalar, ...] | None = None
    minimum: int | None = None
    maximum: int | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ContractError("Parameter name must be a non-empty string")
        try:
            object.__setattr__(self, "type", ParameterType(self.type))
        except ValueError:
            raise ContractError(
                f"Parameter '{self.name}': unknown type {self.type!r}; "
                f"expected one of {', '.join(t.value for t in ParameterType)}"
            ) from None

        if self.type is not ParameterType.STRING and (
            self.min_length is not None or self.max_length is not None
        ):
            raise ContractError(
                f"Parameter '{self.name}': minLength/maxLength only apply to strings"
            )
        for label, value in (("minLength", self.min_length), ("maxLength", self.max_length)):
            if value is not None and (_not_int(value) or value < 0):
                raise ContractError(
                    f"Parameter '{self.name}': {label} must be a non-negative integer"
                )
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ContractError(f"Parameter '{self.name}': minLength exceeds maxLength")

        if self.type is not ParameterType.INTEGER and (
            self.minimum is not None or self.maximum is not None
        ):
            raise ContractError(f"Parameter '{self.name}': minimum/maximum only apply to integers")
        for label, value in (("minimum", self.minimum), ("maximum", self.maximum)):
            if value is not None and _not_int(value):
                raise ContractError(f"Parameter '{self.name}': {label} must be an integer")
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ContractError(f"Parameter '{self.name}': minimum exceeds maximum")

        if self.type is ParameterType.ENUM:
            if not self.enum:
                raise ContractError(f"Parameter '{self.name}': enum type requires allowed values")
            object.__setattr__(self, "enum", tuple(self.enum))
            for value in self.enum:
                if not isinstance(value, (str, int)) or isinstance(value, bool):
                    raise ContractError(
                        f"Parameter '{self.name}': enum values must be strings or integers"
                    )
        elif self.enum is not None:
            raise ContractError(f"Parameter '{self.name}': enum values only apply to enum type")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy for an operation.

    The delay before attempt *n* (``n >= 2``) is ``initial_delay_ms``
    for :attr:`Backoff.FIXED` and ``initial_delay_ms * 2 ** (n - 2)``
    for :attr:`Backoff.EXPONENTIAL`, capped at ``max_delay_ms`` when
    set.  No delay precedes the first attempt.

    Raises:
        ContractError: If any field is out of range.
    """

    max_attempts: int = 1
    backoff: Backoff = Backoff.FIXED
    initial_delay_ms: int = 0
    max_delay_ms: int | None = None

    def __post_init__(self) -> None:
        if _not_int(self.max_attempts) or self.max_attempts < 1:
            raise ContractError("max_attempts must be a positive integer")
        try:
            object.__setattr__(self, "backoff", Backoff(self.backoff))
        except ValueError:
            raise ContractError(
                f"Unknown backoff {self.backoff!r}; expected 'fixed' or 'exponential'"
            ) from None
        if _not_int(self.initial_delay_ms) or self.initial_delay_ms < 0:
            raise ContractError("initial_delay_ms must be a non-negative integer")
        if self.max_delay_ms is not None and (_not_int(self.max_delay_ms) or self.max_delay_ms < 0):
            raise ContractError("max_delay_ms must be a non-negative integer")

    def delay_before(self, attempt: int) -> int:
        """Return the wait in milliseconds that precedes *attempt* (1-based)."""
        if attempt <= 1:
            return 0
        if self.backoff is Backoff.EXPONENTIAL:
            delay = self.initial_delay_ms * 2 ** (attempt - 2)
        else:
            delay = self.initial_delay_ms
        if self.max_delay_ms is not None:
            delay = min(delay, self.max_delay_ms)
        return delay


#: Policy used when neither the operation nor its skill declares one.
DEFAULT_RETRY_POLICY = RetryPolicy()
