"""Capability interface for caller-supplied operation handlers.

A handler is an opaque unit of work registered by the embedding host.
It receives the validated parameter mapping and reports back a
:class:`HandlerResult` tagged with a :class:`ResultKind`:

* ``SUCCESS`` -- the operation finished; ``value`` carries its result.
* ``RETRYABLE`` -- an operational failure worth another attempt.
* ``TERMINAL`` -- a failure that must not be retried.  Terminal
  failures are security issues unless created with ``security=False``.

Handlers may be plain functions or coroutine functions::

    async def optimize_query(params):
        try:
            plan = await planner.explain(params["query"])
        except ConnectionError as exc:
            return HandlerResult.retryable(str(exc), code="CONNECTION_ERROR")
        return HandlerResult.success(plan)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from skillrun_core.schema import Scalar


class ResultKind(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class HandlerResult:
    """Tagged result of a single handler invocation.

    Use the :meth:`success`, :meth:`retryable` and :meth:`terminal`
    constructors rather than building instances directly.

    Attributes:
        kind: Result classification.
        value: Operation result (``SUCCESS`` only).
        cause: Human-readable failure cause.
        code: Optional exit-code label declared by the skill
            (e.g. ``"QUERY_ERROR"``).
        security: Whether a ``TERMINAL`` failure is a security issue.
    """

    kind: ResultKind
    value: Any = None
    cause: str = ""
    code: str | None = None
    security: bool = False

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "kind", ResultKind(self.kind))
        except ValueError:
            raise ValueError(f"Unknown result kind '{self.kind}'") from None

    @classmethod
    def success(cls, value: Any = None) -> HandlerResult:
        return cls(kind=ResultKind.SUCCESS, value=value)

    @classmethod
    def retryable(cls, cause: str, *, code: str | None = None) -> HandlerResult:
        return cls(kind=ResultKind.RETRYABLE, cause=cause, code=code)

    @classmethod
    def terminal(
        cls,
        cause: str,
        *,
        code: str | None = None,
        security: bool = True,
    ) -> HandlerResult:
        return cls(kind=ResultKind.TERMINAL, cause=cause, code=code, security=security)

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS


#: A sync or async callable taking the validated parameters.
Handler = Callable[[Mapping[str, Scalar]], Union[HandlerResult, Any, Awaitable[Any]]]
