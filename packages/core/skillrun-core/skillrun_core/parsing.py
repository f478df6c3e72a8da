"""Parse declarative skill contracts from ``SKILL.md`` frontmatter.

Skills declare their invocation contract in the YAML frontmatter of
their ``SKILL.md``.  This module splits the frontmatter from the body
and turns the declaration into an immutable
:class:`~skillrun_core.SkillContract`, binding each declared operation
to a caller-supplied handler.  Parsing happens once, at load time;
anything malformed raises :class:`~skillrun_core.ContractError`.

Example frontmatter::

    name: databases
    description: Database design and query tuning.
    retry: {max_attempts: 3, backoff: exponential, initial_delay_ms: 1000}
    exit_codes: {CONNECTION_ERROR: 2, QUERY_ERROR: 3}
    operations:
      QUERY_OPTIMIZATION:
        parameters:
          query: {type: string, required: true, minLength: 5}
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import yaml

from skillrun_core.contract import OperationDescriptor, SkillContract
from skillrun_core.exceptions import ContractError
from skillrun_core.handler import Handler
from skillrun_core.schema import ParameterSpec, RetryPolicy

_logger = logging.getLogger(__name__)

# Frontmatter key -> ParameterSpec field.
_PARAMETER_KEYS: dict[str, str] = {
    "type": "type",
    "required": "required",
    "minLength": "min_length",
    "maxLength": "max_length",
    "enum": "enum",
    "minimum": "minimum",
    "maximum": "maximum",
    "description": "description",
}

_RETRY_KEYS: frozenset[str] = frozenset(
    {"max_attempts", "backoff", "initial_delay_ms", "max_delay_ms"}
)
_OPERATION_KEYS: frozenset[str] = frozenset({"description", "parameters", "retry"})

# Agent Skills frontmatter fields that are valid but unused by the runtime.
_PASSTHROUGH_KEYS: frozenset[str] = frozenset(
    {"license", "compatibility", "metadata", "allowed-tools"}
)
_CONTRACT_KEYS: frozenset[str] = frozenset(
    {"name", "description", "retry", "exit_codes", "operations"}
)


def split_frontmatter(raw: str) -> tuple[dict[str, Any], str]:
    """Split ``SKILL.md`` content into YAML frontmatter and markdown body.

    Frontmatter is the YAML block delimited by ``---`` on its own line
    at the very start of the file.  If no valid frontmatter is detected
    the entire content is returned as the body with an empty dict.

    Args:
        raw: Full text content of a ``SKILL.md`` file.

    Returns:
        A ``(frontmatter_dict, body_str)`` tuple.
    """
    if not raw.startswith("---"):
        return {}, raw

    end = raw.find("\n---", 3)
    if end == -1:
        return {}, raw

    fm_text = raw[3:end].strip()
    body = raw[end + 4 :].strip()
    try:
        metadata = yaml.safe_load(fm_text) or {}
    except yaml.YAMLError:
        _logger.debug("Frontmatter is not valid YAML; treating whole file as body")
        return {}, raw
    if not isinstance(metadata, dict):
        return {}, raw
    return metadata, body


def parse_skill_contract(
    skill_id: str,
    document: Mapping[str, Any],
    handlers: Mapping[str, Handler],
) -> SkillContract:
    """Build a :class:`~skillrun_core.SkillContract` from a frontmatter mapping.

    Every declared operation must have a handler, and every handler
    must belong to a declared operation.

    Args:
        skill_id: Identifier the skill is registered under.  If the
            document has a ``name`` it must match.
        document: Parsed frontmatter.
        handlers: ``{operation_name: handler}``.

    Returns:
        The immutable contract.

    Raises:
        ContractError: If the declaration is malformed or the handlers
            do not line up with the declared operations.
    """
    if not isinstance(document, Mapping):
        raise ContractError(f"Skill '{skill_id}': contract must be a mapping")

    name = document.get("name")
    if name is not None and name != skill_id:
        raise ContractError(
            f"Skill '{skill_id}': declared name '{name}' does not match skill_id '{skill_id}'"
        )

    unknown = set(document) - _CONTRACT_KEYS - _PASSTHROUGH_KEYS
    if unknown:
        _logger.warning(
            "Skill '%s': unknown contract keys: %s",
            skill_id,
            ", ".join(sorted(map(str, unknown))),
        )

    default_retry = None
    if document.get("retry") is not None:
        default_retry = parse_retry_policy(document["retry"], where=f"Skill '{skill_id}'")

    exit_codes = document.get("exit_codes") or {}
    if not isinstance(exit_codes, Mapping):
        raise ContractError(f"Skill '{skill_id}': exit_codes must be a mapping")

    declared = document.get("operations")
    if not isinstance(declared, Mapping) or not declared:
        raise ContractError(f"Skill '{skill_id}': operations must be a non-empty mapping")

    missing = [op for op in declared if op not in handlers]
    if missing:
        raise ContractError(
            f"Skill '{skill_id}': no handler for operation(s): {', '.join(map(str, missing))}"
        )
    extra = [op for op in handlers if op not in declared]
    if extra:
        raise ContractError(
            f"Skill '{skill_id}': handler(s) for undeclared operation(s): {', '.join(extra)}"
        )

    operations = [
        _parse_operation(skill_id, str(op_name), body, handlers[op_name])
        for op_name, body in declared.items()
    ]

    return SkillContract(
        skill_id=skill_id,
        operations=tuple(operations),
        default_retry=default_retry,
        exit_codes=dict(exit_codes),
        description=str(document.get("description") or ""),
    )


def parse_parameter_spec(name: str, rule: Any, *, where: str = "") -> ParameterSpec:
    """Convert one frontmatter parameter rule into a :class:`ParameterSpec`.

    Raises:
        ContractError: On unknown keys or inconsistent values.
    """
    prefix = f"{where}: " if where else ""
    if rule is None:
        rule = {}
    if not isinstance(rule, Mapping):
        raise ContractError(f"{prefix}parameter '{name}' must be a mapping")
    unknown = set(rule) - set(_PARAMETER_KEYS)
    if unknown:
        raise ContractError(
            f"{prefix}parameter '{name}' has unknown keys: {', '.join(sorted(map(str, unknown)))}"
        )
    if "type" not in rule:
        raise ContractError(f"{prefix}parameter '{name}' is missing 'type'")
    kwargs = {_PARAMETER_KEYS[key]: value for key, value in rule.items()}
    if "required" in kwargs and not isinstance(kwargs["required"], bool):
        raise ContractError(f"{prefix}parameter '{name}': required must be true or false")
    if kwargs.get("enum") is not None:
        if not isinstance(kwargs["enum"], (list, tuple)):
            raise ContractError(f"{prefix}parameter '{name}': enum must be a list")
        kwargs["enum"] = tuple(kwargs["enum"])
    try:
        return ParameterSpec(name=name, **kwargs)
    except ContractError as exc:
        raise ContractError(f"{prefix}{exc}") from None


def parse_retry_policy(rule: Any, *, where: str = "") -> RetryPolicy:
    """Convert a frontmatter ``retry`` block into a :class:`RetryPolicy`.

    Raises:
        ContractError: On unknown keys or out-of-range values.
    """
    prefix = f"{where}: " if where else ""
    if not isinstance(rule, Mapping):
        raise ContractError(f"{prefix}retry must be a mapping")
    unknown = set(rule) - _RETRY_KEYS
    if unknown:
        raise ContractError(
            f"{prefix}retry has unknown keys: {', '.join(sorted(map(str, unknown)))}"
        )
    try:
        return RetryPolicy(**rule)
    except ContractError as exc:
        raise ContractError(f"{prefix}{exc}") from None


def _parse_operation(
    skill_id: str,
    name: str,
    body: Any,
    handler: Handler,
) -> OperationDescriptor:
    where = f"Skill '{skill_id}' operation '{name}'"
    if body is None:
        body = {}
    if not isinstance(body, Mapping):
        raise ContractError(f"{where}: declaration must be a mapping")
    unknown = set(body) - _OPERATION_KEYS
    if unknown:
        raise ContractError(f"{where}: unknown keys: {', '.join(sorted(map(str, unknown)))}")

    raw_params = body.get("parameters") or {}
    if isinstance(raw_params, Mapping):
        specs = [
            parse_parameter_spec(str(p), rule, where=where) for p, rule in raw_params.items()
        ]
    elif isinstance(raw_params, list):
        specs = []
        for rule in raw_params:
            if not isinstance(rule, Mapping) or "name" not in rule:
                raise ContractError(f"{where}: list-form parameters need a 'name' key")
            rest = {k: v for k, v in rule.items() if k != "name"}
            specs.append(parse_parameter_spec(str(rule["name"]), rest, where=where))
    else:
        raise ContractError(f"{where}: parameters must be a mapping or a list")

    retry = None
    if body.get("retry") is not None:
        retry = parse_retry_policy(body["retry"], where=where)

    try:
        return OperationDescriptor(
            name=name,
            handler=handler,
            parameters=tuple(specs),
            retry=retry,
            description=str(body.get("description") or ""),
        )
    except ContractError as exc:
        raise ContractError(f"Skill '{skill_id}': {exc}") from None
