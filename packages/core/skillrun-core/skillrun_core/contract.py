"""Operation descriptors and the skill contracts that own them.

A :class:`SkillContract` bundles everything a skill declares: its
atomic operations, their parameter rules and retry policies, a
skill-level default policy, and the skill's exit-code labels.  Contracts
are immutable once built; on construction every descriptor is bound to
the skill id, its effective retry policy and the exit-code table so
that a single registry lookup yields everything needed to dispatch.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from skillrun_core.exceptions import ContractError
from skillrun_core.handler import Handler
from skillrun_core.outcome import MAX_SKILL_EXIT_CODE, MIN_SKILL_EXIT_CODE, ExitCode
from skillrun_core.schema import DEFAULT_RETRY_POLICY, ParameterSpec, RetryPolicy

_EMPTY_CODES: Mapping[str, int] = MappingProxyType({})


@dataclass(frozen=True)
class OperationDescriptor:
    """A skill's declared atomic operation.

    Args:
        name: Operation name, e.g. ``"QUERY_OPTIMIZATION"``.
        handler: Caller-supplied callable that performs the work.
        parameters: Ordered parameter rules.
        retry: Operation-level retry policy.  ``None`` inherits the
            skill default when the descriptor is added to a contract.
        description: Free-text description for catalogs.
        skill_id: Owning skill; set by :class:`SkillContract`.
        exit_codes: Owning skill's label table; set by
            :class:`SkillContract`.
    """

    name: str
    handler: Handler
    parameters: tuple[ParameterSpec, ...] = ()
    retry: RetryPolicy | None = None
    description: str = ""
    skill_id: str = ""
    exit_codes: Mapping[str, int] = field(default_factory=lambda: _EMPTY_CODES, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            raise ContractError("Operation name must be a non-empty string")
        if not callable(self.handler):
            raise ContractError(f"Operation '{self.name}': handler is not callable")
        params = tuple(self.parameters)
        seen: set[str] = set()
        for spec in params:
            if spec.name in seen:
                raise ContractError(
                    f"Operation '{self.name}': duplicate parameter '{spec.name}'"
                )
            seen.add(spec.name)
        object.__setattr__(self, "parameters", params)

    @property
    def retry_policy(self) -> RetryPolicy:
        """Effective retry policy for this operation."""
        return self.retry or DEFAULT_RETRY_POLICY

    @property
    def qualified_name(self) -> str:
        return f"{self.skill_id}/{self.name}"

    def exit_code_for(self, label: str | None) -> int:
        """Map a failure label to its numeric exit code.

        Unknown or missing labels fall back to
        :data:`ExitCode.OPERATION_FAILED`.
        """
        if label is None:
            return int(ExitCode.OPERATION_FAILED)
        return self.exit_codes.get(label, int(ExitCode.OPERATION_FAILED))


@dataclass(frozen=True)
class SkillContract:
    """Immutable declaration of one skill.

    Args:
        skill_id: Unique skill identifier.
        operations: The skill's operation descriptors.
        default_retry: Policy inherited by operations that declare none.
        exit_codes: ``{label: code}`` extension table; codes must lie in
            ``2..125`` and be distinct.
        description: Free-text description for catalogs.

    Raises:
        ContractError: If the declaration is inconsistent.
    """

    skill_id: str
    operations: tuple[OperationDescriptor, ...]
    default_retry: RetryPolicy | None = None
    exit_codes: Mapping[str, int] = field(default_factory=lambda: _EMPTY_CODES)
    description: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.skill_id, str) or not self.skill_id.strip():
            raise ContractError("skill_id must be a non-empty string")

        codes = MappingProxyType(dict(_check_exit_codes(self.skill_id, self.exit_codes)))
        object.__setattr__(self, "exit_codes", codes)

        bound: list[OperationDescriptor] = []
        seen: set[str] = set()
        for op in self.operations:
            if not isinstance(op, OperationDescriptor):
                raise ContractError(
                    f"Skill '{self.skill_id}': expected OperationDescriptor, "
                    f"got {type(op).__name__}"
                )
            if op.name in seen:
                raise ContractError(f"Skill '{self.skill_id}': duplicate operation '{op.name}'")
            seen.add(op.name)
            bound.append(
                replace(
                    op,
                    skill_id=self.skill_id,
                    retry=op.retry or self.default_retry,
                    exit_codes=codes,
                )
            )
        if not bound:
            raise ContractError(f"Skill '{self.skill_id}': declares no operations")
        object.__setattr__(self, "operations", tuple(bound))

    def get_operation(self, name: str) -> OperationDescriptor | None:
        for op in self.operations:
            if op.name == name:
                return op
        return None

    @property
    def operation_names(self) -> list[str]:
        return [op.name for op in self.operations]

    def __repr__(self) -> str:
        return f"SkillContract({self.skill_id!r}, operations={self.operation_names!r})"


def _check_exit_codes(skill_id: str, exit_codes: Mapping[str, int]) -> Iterable[tuple[str, int]]:
    by_code: dict[int, str] = {}
    for label, code in exit_codes.items():
        if not isinstance(label, str) or not label:
            raise ContractError(f"Skill '{skill_id}': exit-code labels must be non-empty strings")
        if not isinstance(code, int) or isinstance(code, bool):
            raise ContractError(f"Skill '{skill_id}': exit code for '{label}' must be an integer")
        if not MIN_SKILL_EXIT_CODE <= code <= MAX_SKILL_EXIT_CODE:
            raise ContractError(
                f"Skill '{skill_id}': exit code {code} for '{label}' is outside "
                f"{MIN_SKILL_EXIT_CODE}..{MAX_SKILL_EXIT_CODE}"
            )
        if code in by_code:
            raise ContractError(
                f"Skill '{skill_id}': exit code {code} declared for both "
                f"'{by_code[code]}' and '{label}'"
            )
        by_code[code] = label
        yield label, code
