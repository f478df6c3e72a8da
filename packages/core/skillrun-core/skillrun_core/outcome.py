"""Terminal invocation outcomes and the exit-code taxonomy.

Codes ``0`` and ``1`` are fixed across all skills.  Code ``2`` is the
default slot for a first-order operational failure; skills may attach
their own labels to ``2`` and to higher codes (for example
``QUERY_ERROR=3``).  :data:`ExitCode.CANCELLED` is reserved by the
runtime and cannot be declared by a skill.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any

#: Smallest and largest exit code a skill may declare.
MIN_SKILL_EXIT_CODE = 2
MAX_SKILL_EXIT_CODE = 125


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_INPUT = 1
    OPERATION_FAILED = 2
    CANCELLED = 130


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    INVALID_INPUT = "invalid_input"
    OPERATION_FAILED = "operation_failed"
    SECURITY_ISSUE = "security_issue"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class InvocationOutcome:
    """Terminal result of one dispatch.

    Produced exactly once per request by the
    :class:`~skillrun_core.InvocationDispatcher`.

    Attributes:
        invocation_id: Identifier shared with the lifecycle events.
        kind: Outcome classification.
        detail: Human-readable reason or cause (empty on success).
        exit_code: Numeric code from the exit-code taxonomy.
        result: Handler result value (``SUCCESS`` only).
        attempts: Number of handler invocations made.
        label: Exit-code label, e.g. ``"QUERY_ERROR"``.
    """

    invocation_id: str
    kind: OutcomeKind
    detail: str = ""
    exit_code: int = ExitCode.SUCCESS
    result: Any = None
    attempts: int = 0
    label: str = "SUCCESS"

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Return the boundary representation handed to hosts."""
        return {
            "invocation_id": self.invocation_id,
            "outcome": self.kind.value,
            "detail": self.detail,
            "exit_code": int(self.exit_code),
            "attempts": self.attempts,
            "result": self.result,
        }

    def __repr__(self) -> str:
        return f"InvocationOutcome({self.kind.value}, exit_code={int(self.exit_code)})"
