"""Validate invocation parameters against declared parameter rules.

The primary entry-point is :func:`validate_params`, which checks a raw
parameter mapping against an operation's ordered
:class:`~skillrun_core.ParameterSpec` set and returns a
:class:`ValidationResult`.  Validation is **closed-world**: parameters
that no rule declares are rejected.

The validator never raises for bad input -- it always returns a tagged
result -- and has no side effects, so it is safe to call concurrently.

Example::

    from skillrun_core import ParameterSpec, validate_params

    specs = [ParameterSpec("query", "string", required=True, min_length=5)]
    result = validate_params({"query": "ab"}, specs)
    if not result.ok:
        print(result.reason)  # "query too short (minimum 5 characters, got 2)"
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from skillrun_core.schema import ParameterSpec, ParameterType


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of :func:`validate_params`.

    Attributes:
        ok: ``True`` when every rule passed.
        reason: Why validation failed; empty when *ok*.
        parameter: Name of the offending parameter, if any.
    """

    ok: bool
    reason: str = ""
    parameter: str | None = None

    @classmethod
    def passed(cls) -> ValidationResult:
        return cls(ok=True)

    @classmethod
    def invalid(cls, reason: str, parameter: str | None = None) -> ValidationResult:
        return cls(ok=False, reason=reason, parameter=parameter)

    def __bool__(self) -> bool:
        return self.ok


def validate_params(params: Any, specs: Iterable[ParameterSpec]) -> ValidationResult:
    """Validate *params* against the ordered rules in *specs*.

    Rules are applied in declaration order and the first failure is
    reported:

    * a required parameter that is absent fails with ``missing:<name>``;
    * a present value must match its declared type -- booleans are not
      integers, and ``enum`` values must belong to the declared set;
    * strings must satisfy ``minLength <= len <= maxLength``;
    * integers must satisfy ``minimum <= value <= maximum``;
    * any parameter not declared by a rule fails with ``unknown:<name>``.

    Args:
        params: The raw parameter mapping from the request.
        specs: Ordered parameter rules for the target operation.

    Returns:
        A :class:`ValidationResult`.
    """
    if not isinstance(params, Mapping):
        return ValidationResult.invalid(
            f"malformed request: params must be a mapping, got {type(params).__name__}"
        )

    declared: set[str] = set()
    for spec in specs:
        declared.add(spec.name)
        if spec.name not in params:
            if spec.required:
                return ValidationResult.invalid(f"missing:{spec.name}", spec.name)
            continue
        reason = _check_value(spec, params[spec.name])
        if reason:
            return ValidationResult.invalid(reason, spec.name)

    unknown = sorted(str(name) for name in params if name not in declared)
    if unknown:
        return ValidationResult.invalid(f"unknown:{unknown[0]}", unknown[0])

    return ValidationResult.passed()


def _check_value(spec: ParameterSpec, value: Any) -> str | None:
    """Return a failure reason for a single present value, or ``None``."""
    name = spec.name

    if spec.type is ParameterType.STRING:
        if not isinstance(value, str):
            return f"{name} must be a string, got {_type_name(value)}"
        length = len(value)
        if spec.min_length is not None and length < spec.min_length:
            return f"{name} too short (minimum {spec.min_length} characters, got {length})"
        if spec.max_length is not None and length > spec.max_length:
            return f"{name} too long (maximum {spec.max_length} characters, got {length})"
        return None

    if spec.type is ParameterType.INTEGER:
        if not isinstance(value, int) or isinstance(value, bool):
            return f"{name} must be an integer, got {_type_name(value)}"
        if spec.minimum is not None and value < spec.minimum:
            return f"{name} too small (minimum {spec.minimum}, got {value})"
        if spec.maximum is not None and value > spec.maximum:
            return f"{name} too large (maximum {spec.maximum}, got {value})"
        return None

    # enum
    allowed = spec.enum or ()
    if isinstance(value, bool) or not any(
        value == option and type(value) is type(option) for option in allowed
    ):
        choices = ", ".join(str(option) for option in allowed)
        return f"{name} must be one of: {choices}"
    return None


def _type_name(value: Any) -> str:
    return "null" if value is None else type(value).__name__
