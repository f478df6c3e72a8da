"""Operation index with explicit, eager registration.

The :class:`OperationRegistry` maps ``(skill_id, operation)`` pairs to
:class:`~skillrun_core.OperationDescriptor` entries.  Skills are
registered by the host at startup via :meth:`OperationRegistry.register`,
which rejects duplicates before any traffic is served.

Example::

    from skillrun_core import OperationRegistry

    registry = OperationRegistry()
    registry.register(databases_contract)

    descriptor = registry.lookup("databases", "QUERY_OPTIMIZATION")
    print(descriptor.retry_policy)
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from types import MappingProxyType
from typing import Literal, overload
from xml.etree.ElementTree import Element, SubElement, indent, tostring

from skillrun_core.contract import OperationDescriptor, SkillContract
from skillrun_core.exceptions import OperationNotFoundError, RegistrationError
from skillrun_core.schema import ParameterSpec


class OperationRegistry:
    """Read-mostly index over explicitly registered skill contracts.

    Each skill is registered once, as a whole
    :class:`~skillrun_core.SkillContract`.  Registering a skill id that
    is already present -- or any ``(skill_id, operation)`` pair twice --
    raises :class:`~skillrun_core.RegistrationError` and leaves the
    registry untouched.

    Writers serialize on an internal lock and publish a fresh snapshot
    (copy-on-write), so :meth:`lookup` never blocks and never observes a
    half-applied batch.
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._contracts: Mapping[str, SkillContract] = MappingProxyType({})
        self._operations: Mapping[tuple[str, str], OperationDescriptor] = MappingProxyType({})

    def __repr__(self) -> str:
        n = len(self._operations)
        label = "operation" if n == 1 else "operations"
        return f"OperationRegistry({len(self._contracts)} skills, {n} {label})"

    def __len__(self) -> int:
        return len(self._operations)

    @overload
    def register(self, contracts: SkillContract) -> None: ...

    @overload
    def register(self, contracts: list[SkillContract]) -> None: ...

    def register(self, contracts: SkillContract | list[SkillContract]) -> None:
        """Register one skill contract or a batch of them.

        **Single skill**::

            registry.register(databases)

        **Batch registration**::

            registry.register([databases, security])

        Batch registration is **atomic** -- if any contract is a
        duplicate, none of the batch is registered.

        Raises:
            RegistrationError: If a skill or ``(skill_id, operation)``
                pair is already registered, is repeated within the
                batch, or the argument is not a contract.
        """
        if isinstance(contracts, SkillContract):
            batch = [contracts]
        elif isinstance(contracts, list):
            batch = contracts
        else:
            raise RegistrationError("Expected a SkillContract or a list of SkillContract")

        with self._write_lock:
            skills = dict(self._contracts)
            operations = dict(self._operations)
            for contract in batch:
                if not isinstance(contract, SkillContract):
                    raise RegistrationError(
                        f"Expected a SkillContract, got {type(contract).__name__}"
                    )
                self._stage(contract, skills, operations)
            self._publish(skills, operations)

    def replace(self, contract: SkillContract) -> None:
        """Swap in a new contract for an already-registered skill.

        Intended for hot-reload boundaries.  In-flight invocations keep
        the descriptor they already resolved.

        Raises:
            OperationNotFoundError: If the skill is not registered.
        """
        with self._write_lock:
            if contract.skill_id not in self._contracts:
                raise OperationNotFoundError(
                    f"Skill '{contract.skill_id}' not found in registry"
                )
            skills = {k: v for k, v in self._contracts.items() if k != contract.skill_id}
            operations = {
                k: v for k, v in self._operations.items() if k[0] != contract.skill_id
            }
            self._stage(contract, skills, operations)
            self._publish(skills, operations)

    def lookup(self, skill_id: str, operation: str) -> OperationDescriptor:
        """Return the descriptor registered under ``(skill_id, operation)``.

        Raises:
            OperationNotFoundError: If the pair is not registered.
        """
        try:
            return self._operations[(skill_id, operation)]
        except (KeyError, TypeError):
            raise OperationNotFoundError(
                f"Operation '{skill_id}/{operation}' not found in registry"
            ) from None

    def get_contract(self, skill_id: str) -> SkillContract:
        """Return the registered contract for *skill_id*.

        Raises:
            OperationNotFoundError: If the skill is not registered.
        """
        try:
            return self._contracts[skill_id]
        except KeyError:
            raise OperationNotFoundError(f"Skill '{skill_id}' not found in registry") from None

    def list_skills(self) -> list[str]:
        """Return registered skill ids, sorted."""
        return sorted(self._contracts)

    def list_operations(self) -> list[OperationDescriptor]:
        """Return every registered descriptor sorted by ``(skill_id, operation)``."""
        operations = self._operations
        return [operations[key] for key in sorted(operations)]

    def get_operations_catalog(
        self,
        *,
        format: Literal["xml", "markdown"] = "xml",
    ) -> str:
        """Build an operations-catalog string for system-prompt injection.

        ``"xml"``
            An ``<available_operations>`` XML block.

        ``"markdown"``
            A human-readable Markdown catalog grouped by skill.

        Raises:
            ValueError: If *format* is not ``"xml"`` or ``"markdown"``.
        """
        if format == "xml":
            return self._build_xml()
        if format == "markdown":
            return self._build_markdown()
        msg = f"Unsupported format {format!r}; expected 'xml' or 'markdown'."
        raise ValueError(msg)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _stage(
        contract: SkillContract,
        skills: dict[str, SkillContract],
        operations: dict[tuple[str, str], OperationDescriptor],
    ) -> None:
        """Add *contract* to the staged maps, rejecting duplicates."""
        skill_id = contract.skill_id
        for op in contract.operations:
            if (skill_id, op.name) in operations:
                raise RegistrationError(
                    f"Duplicate operation '{skill_id}/{op.name}' -- already registered"
                )
        if skill_id in skills:
            raise RegistrationError(f"Duplicate skill_id '{skill_id}' -- already registered")
        skills[skill_id] = contract
        for op in contract.operations:
            operations[(skill_id, op.name)] = op

    def _publish(
        self,
        skills: dict[str, SkillContract],
        operations: dict[tuple[str, str], OperationDescriptor],
    ) -> None:
        self._contracts = MappingProxyType(skills)
        self._operations = MappingProxyType(operations)

    def _build_xml(self) -> str:
        """Return an ``<available_operations>`` XML block."""
        if not self._contracts:
            return "<available_operations />"

        root = Element("available_operations")
        contracts = self._contracts
        for skill_id in sorted(contracts):
            contract = contracts[skill_id]
            skill_el = SubElement(root, "skill", name=skill_id)
            if contract.description:
                SubElement(skill_el, "description").text = contract.description
            for op in contract.operations:
                op_el = SubElement(skill_el, "operation", name=op.name)
                if op.description:
                    SubElement(op_el, "description").text = op.description
                for spec in op.parameters:
                    param_el = SubElement(
                        op_el,
                        "parameter",
                        name=spec.name,
                        type=spec.type.value,
                        required=str(spec.required).lower(),
                    )
                    param_el.text = _describe_rule(spec) or None
        indent(root, space="  ")
        return tostring(root, encoding="unicode")

    def _build_markdown(self) -> str:
        """Return a Markdown-formatted operations catalog."""
        if not self._contracts:
            return "No operations are currently available."

        lines: list[str] = [
            "# Available Operations",
            "",
        ]
        contracts = self._contracts
        for skill_id in sorted(contracts):
            contract = contracts[skill_id]
            lines.append(f"## {skill_id}")
            if contract.description:
                lines.append(contract.description)
            lines.append("")
            for op in contract.operations:
                lines.append(f"### {op.name}")
                if op.description:
                    lines.append(op.description)
                for spec in op.parameters:
                    flag = "required" if spec.required else "optional"
                    rule = _describe_rule(spec)
                    suffix = f"; {rule}" if rule else ""
                    lines.append(f"- `{spec.name}` ({spec.type.value}, {flag}{suffix})")
                lines.append("")

        return "\n".join(lines)


def _describe_rule(spec: ParameterSpec) -> str:
    parts: list[str] = []
    if spec.min_length is not None:
        parts.append(f"minLength {spec.min_length}")
    if spec.max_length is not None:
        parts.append(f"maxLength {spec.max_length}")
    if spec.minimum is not None:
        parts.append(f"minimum {spec.minimum}")
    if spec.maximum is not None:
        parts.append(f"maximum {spec.maximum}")
    if spec.enum:
        parts.append("one of " + ", ".join(str(v) for v in spec.enum))
    if spec.description:
        parts.append(spec.description)
    return "; ".join(parts)
