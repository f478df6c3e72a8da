"""Core runtime for skill invocation contracts.

This package validates untrusted invocation requests against the
parameter rules a skill declares, dispatches them to caller-supplied
handlers under a bounded retry policy, emits lifecycle events, and
reports a fixed exit-code taxonomy:

* :class:`InvocationDispatcher` -- the entry point; returns an
  :class:`InvocationOutcome` for every :class:`InvocationRequest`.
* :class:`OperationRegistry` -- ``(skill_id, operation)`` index with
  eager duplicate detection.
* :func:`validate_params` -- closed-world parameter validation.
* :class:`RetryExecutor` -- cancellable fixed/exponential backoff.
* :class:`LifecycleEmitter` -- fans ``invoked``/``completed``/``failed``
  events out to :class:`LifecycleSink` implementations.
* :func:`parse_skill_contract` -- turns ``SKILL.md`` frontmatter into
  a :class:`SkillContract`.
* :class:`SkillRunError` -- base class for all library exceptions.

Install::

    pip install skillrun
"""

from skillrun_core.contract import OperationDescriptor, SkillContract
from skillrun_core.dispatcher import DispatchState, InvocationDispatcher, InvocationRequest
from skillrun_core.exceptions import (
    ContractError,
    OperationNotFoundError,
    RegistrationError,
    SkillNotFoundError,
    SkillRunError,
)
from skillrun_core.handler import Handler, HandlerResult, ResultKind
from skillrun_core.lifecycle import (
    InMemoryLifecycleSink,
    JsonLinesLifecycleSink,
    LifecycleEmitter,
    LifecycleEvent,
    LifecyclePhase,
    LifecycleSink,
    LoggingLifecycleSink,
)
from skillrun_core.outcome import ExitCode, InvocationOutcome, OutcomeKind
from skillrun_core.parsing import (
    parse_parameter_spec,
    parse_retry_policy,
    parse_skill_contract,
    split_frontmatter,
)
from skillrun_core.provider import ContractProvider, load_skill_contract
from skillrun_core.registry import OperationRegistry
from skillrun_core.retry import ExecutionResult, RetryExecutor
from skillrun_core.schema import Backoff, ParameterSpec, ParameterType, RetryPolicy
from skillrun_core.validation import ValidationResult, validate_params

__all__ = [
    "Backoff",
    "ContractError",
    "ContractProvider",
    "DispatchState",
    "ExecutionResult",
    "ExitCode",
    "Handler",
    "HandlerResult",
    "InMemoryLifecycleSink",
    "InvocationDispatcher",
    "InvocationOutcome",
    "InvocationRequest",
    "JsonLinesLifecycleSink",
    "LifecycleEmitter",
    "LifecycleEvent",
    "LifecyclePhase",
    "LifecycleSink",
    "LoggingLifecycleSink",
    "OperationDescriptor",
    "OperationNotFoundError",
    "OperationRegistry",
    "OutcomeKind",
    "ParameterSpec",
    "ParameterType",
    "RegistrationError",
    "ResultKind",
    "RetryExecutor",
    "RetryPolicy",
    "SkillContract",
    "SkillNotFoundError",
    "SkillRunError",
    "ValidationResult",
    "load_skill_contract",
    "parse_parameter_spec",
    "parse_retry_policy",
    "parse_skill_contract",
    "split_frontmatter",
    "validate_params",
]
