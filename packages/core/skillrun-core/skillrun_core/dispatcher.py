"""Invocation entry point: resolve, validate, execute, report.

:class:`InvocationDispatcher` is the single place where a request's
final state is translated into an exit code.  Each dispatch walks the
states below in order and always ends in exactly one
:class:`~skillrun_core.InvocationOutcome`::

    RECEIVED -> RESOLVING -> VALIDATING -> EXECUTING -> COMPLETED
                    |            |             |
                    +------------+-------------+--> FAILED

The descriptor is resolved before parameters are validated because the
parameter rules belong to the descriptor.  Failing either step is a
terminal ``INVALID_INPUT`` outcome with no handler attempts and no
lifecycle events.  Once validation passes, an ``invoked`` event is
emitted, the retry executor runs, and a single terminal event follows.

Example::

    dispatcher = InvocationDispatcher(registry, emitter=LifecycleEmitter(LoggingLifecycleSink()))
    outcome = await dispatcher.dispatch(
        InvocationRequest("databases", "QUERY_OPTIMIZATION", {"query": "SELECT 1"})
    )
    sys.exit(outcome.exit_code)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from skillrun_core.contract import OperationDescriptor
from skillrun_core.exceptions import OperationNotFoundError
from skillrun_core.handler import ResultKind
from skillrun_core.lifecycle import LifecycleEmitter, LifecycleEvent, LifecyclePhase
from skillrun_core.outcome import ExitCode, InvocationOutcome, OutcomeKind
from skillrun_core.registry import OperationRegistry
from skillrun_core.retry import ExecutionResult, RetryExecutor
from skillrun_core.validation import validate_params

_logger = logging.getLogger(__name__)

SECURITY_ISSUE_LABEL = "SECURITY_ISSUE"


class DispatchState(str, Enum):
    RECEIVED = "received"
    RESOLVING = "resolving"
    VALIDATING = "validating"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class InvocationRequest:
    """An immutable request to run one operation of one skill.

    Args:
        skill_id: Target skill.
        operation: One of the skill's declared operation names.
        params: Parameter name to value mapping; copied on construction.
        invocation_id: Correlation id for outcome and lifecycle events.
            Generated when omitted.
    """

    skill_id: str
    operation: str
    params: Mapping[str, Any] = field(default_factory=dict)
    invocation_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        if isinstance(self.params, Mapping):
            object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


class InvocationDispatcher:
    """Validates and dispatches :class:`InvocationRequest` objects.

    The dispatcher is stateless between calls; any number of
    :meth:`dispatch` coroutines may run concurrently against the same
    instance.

    Args:
        registry: Populated :class:`~skillrun_core.OperationRegistry`.
        emitter: Lifecycle emitter.  Defaults to one with no sinks.
        executor: Retry executor.  Defaults to a fresh
            :class:`~skillrun_core.RetryExecutor`.
    """

    def __init__(
        self,
        registry: OperationRegistry,
        *,
        emitter: LifecycleEmitter | None = None,
        executor: RetryExecutor | None = None,
    ) -> None:
        self._registry = registry
        self._emitter = emitter or LifecycleEmitter()
        self._executor = executor or RetryExecutor()

    def __repr__(self) -> str:
        return f"InvocationDispatcher({self._registry!r})"

    @property
    def registry(self) -> OperationRegistry:
        return self._registry

    async def invoke(
        self,
        skill_id: str,
        operation: str,
        params: Mapping[str, Any] | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> dict[str, Any]:
        """Boundary entry point returning ``{outcome, detail, exit_code, ...}``."""
        request = InvocationRequest(skill_id, operation, params if params is not None else {})
        outcome = await self.dispatch(request, cancel=cancel)
        return outcome.to_dict()

    async def dispatch_all(
        self,
        requests: Iterable[InvocationRequest],
        *,
        cancel: asyncio.Event | None = None,
    ) -> list[InvocationOutcome]:
        """Dispatch independent requests concurrently, preserving order."""
        return list(await asyncio.gather(*(self.dispatch(r, cancel=cancel) for r in requests)))

    async def dispatch(
        self,
        request: InvocationRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> InvocationOutcome:
        """Run *request* to completion and return its outcome.

        Never raises for bad input, unknown operations or handler
        failures.  If the surrounding task is cancelled while the
        handler runs or backs off, a ``cancelled`` lifecycle event is
        emitted and :class:`asyncio.CancelledError` propagates.
        """
        iid = request.invocation_id
        self._transition(iid, DispatchState.RECEIVED)

        # -- Resolving ------------------------------------------------
        self._transition(iid, DispatchState.RESOLVING)
        malformed = _check_envelope(request)
        if malformed:
            return self._reject(request, malformed)
        try:
            descriptor = self._registry.lookup(request.skill_id, request.operation)
        except OperationNotFoundError:
            return self._reject(
                request,
                f"unknown_operation: '{request.skill_id}/{request.operation}'",
            )

        # -- Validating -----------------------------------------------
        self._transition(iid, DispatchState.VALIDATING)
        validation = validate_params(request.params, descriptor.parameters)
        if not validation.ok:
            return self._reject(request, validation.reason)

        self._emit(request, LifecyclePhase.INVOKED)

        # -- Executing ------------------------------------------------
        self._transition(iid, DispatchState.EXECUTING)
        try:
            execution = await self._executor.execute(
                descriptor.handler,
                request.params,
                descriptor.retry_policy,
                cancel=cancel,
                label=f"{descriptor.qualified_name} [{iid}]",
            )
            outcome = self._map_execution(iid, descriptor, execution)
        except asyncio.CancelledError:
            self._emit(request, LifecyclePhase.CANCELLED, "task cancelled", ExitCode.CANCELLED)
            raise
        except Exception as exc:
            # The executor contains handler errors; this guards the boundary.
            _logger.exception("Unexpected error executing %s", descriptor.qualified_name)
            outcome = InvocationOutcome(
                invocation_id=iid,
                kind=OutcomeKind.OPERATION_FAILED,
                detail=f"{type(exc).__name__}: {exc}",
                exit_code=ExitCode.OPERATION_FAILED,
                label=ExitCode.OPERATION_FAILED.name,
            )

        self._finish(request, outcome)
        return outcome

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _map_execution(
        iid: str,
        descriptor: OperationDescriptor,
        execution: ExecutionResult,
    ) -> InvocationOutcome:
        """Translate the executor's observation into a terminal outcome."""
        result = execution.result
        attempts = execution.attempts

        if execution.cancelled:
            detail = "cancelled"
            if result is not None:
                detail = f"cancelled after {attempts} attempt(s); last cause: {result.cause}"
            return InvocationOutcome(
                invocation_id=iid,
                kind=OutcomeKind.CANCELLED,
                detail=detail,
                exit_code=ExitCode.CANCELLED,
                attempts=attempts,
                label=ExitCode.CANCELLED.name,
            )

        if result is None:
            raise RuntimeError("executor finished without a result or cancellation")
        if result.kind is ResultKind.SUCCESS:
            return InvocationOutcome(
                invocation_id=iid,
                kind=OutcomeKind.SUCCESS,
                exit_code=ExitCode.SUCCESS,
                result=result.value,
                attempts=attempts,
            )

        if result.kind is ResultKind.TERMINAL and result.security:
            label = result.code or SECURITY_ISSUE_LABEL
            kind = OutcomeKind.SECURITY_ISSUE
        else:
            label = result.code or ExitCode.OPERATION_FAILED.name
            kind = OutcomeKind.OPERATION_FAILED
        exit_code = descriptor.exit_code_for(label)
        if result.code and result.code not in descriptor.exit_codes:
            _logger.warning(
                "%s: undeclared exit-code label %r, using %d",
                descriptor.qualified_name,
                result.code,
                exit_code,
            )
        return InvocationOutcome(
            invocation_id=iid,
            kind=kind,
            detail=result.cause,
            exit_code=exit_code,
            attempts=attempts,
            label=label,
        )

    def _reject(self, request: InvocationRequest, reason: str) -> InvocationOutcome:
        _logger.info(
            "Rejected %s/%s [%s]: %s",
            request.skill_id,
            request.operation,
            request.invocation_id,
            reason,
        )
        self._transition(request.invocation_id, DispatchState.FAILED)
        return InvocationOutcome(
            invocation_id=request.invocation_id,
            kind=OutcomeKind.INVALID_INPUT,
            detail=reason,
            exit_code=ExitCode.INVALID_INPUT,
            label=ExitCode.INVALID_INPUT.name,
        )

    def _finish(self, request: InvocationRequest, outcome: InvocationOutcome) -> None:
        if outcome.kind is OutcomeKind.SUCCESS:
            phase = LifecyclePhase.COMPLETED
            self._transition(request.invocation_id, DispatchState.COMPLETED)
        elif outcome.kind is OutcomeKind.CANCELLED:
            phase = LifecyclePhase.CANCELLED
            self._transition(request.invocation_id, DispatchState.FAILED)
        else:
            phase = LifecyclePhase.FAILED
            self._transition(request.invocation_id, DispatchState.FAILED)
        detail = outcome.detail
        if outcome.kind is OutcomeKind.SECURITY_ISSUE:
            detail = f"security_issue: {detail}"
        self._emit(request, phase, detail, outcome.exit_code, outcome.attempts)

    def _emit(
        self,
        request: InvocationRequest,
        phase: LifecyclePhase,
        detail: str = "",
        exit_code: int | None = None,
        attempts: int = 0,
    ) -> None:
        self._emitter.emit(
            LifecycleEvent(
                invocation_id=request.invocation_id,
                skill_id=request.skill_id,
                operation=request.operation,
                phase=phase,
                detail=detail,
                attempts=attempts,
                exit_code=None if exit_code is None else int(exit_code),
            )
        )

    @staticmethod
    def _transition(invocation_id: str, state: DispatchState) -> None:
        _logger.debug("[%s] -> %s", invocation_id, state.value)


def _check_envelope(request: InvocationRequest) -> str | None:
    """Return a reason if the request itself is malformed."""
    if not isinstance(request.skill_id, str) or not request.skill_id:
        return "malformed request: skill_id must be a non-empty string"
    if not isinstance(request.operation, str) or not request.operation:
        return "malformed request: operation must be a non-empty string"
    if not isinstance(request.params, Mapping):
        return "malformed request: params must be a mapping"
    return None
