"""Exception hierarchy for the skill-invocation runtime.

All exceptions raised by :mod:`skillrun_core` (and by contract
providers that follow the library conventions) inherit from
:class:`SkillRunError`, allowing callers to catch the entire family
with a single ``except`` clause.

Exceptions are a **load-time** mechanism: they surface malformed
declarations and duplicate registrations before any traffic is
served.  The dispatch path never raises them to its caller -- every
invocation ends in a typed :class:`~skillrun_core.InvocationOutcome`.

* :class:`ContractError` -- a skill declaration is malformed.
* :class:`RegistrationError` -- a registration was rejected.
* :class:`OperationNotFoundError` -- no ``(skill_id, operation)`` entry.
* :class:`SkillNotFoundError` -- a provider cannot serve a skill.

The ``*NotFoundError`` classes inherit from :class:`LookupError` and the
load-time errors from :class:`ValueError`, so they can also be caught
idiomatically.
"""


class SkillRunError(Exception):
    """Base exception for all skill runtime errors."""


class ContractError(SkillRunError, ValueError):
    """A skill contract declaration is malformed.

    Raised while parsing frontmatter into
    :class:`~skillrun_core.SkillContract` objects, and by the contract
    types themselves when constructed with inconsistent values.

    Example::

        try:
            contract = parse_skill_contract("databases", document, handlers)
        except ContractError as exc:
            print(f"Bad declaration: {exc}")
    """


class RegistrationError(SkillRunError, ValueError):
    """A registration was rejected by the :class:`~skillrun_core.OperationRegistry`.

    The most common cause is a duplicate ``(skill_id, operation)``
    pair.  The registry is left unchanged when this is raised.
    """


class OperationNotFoundError(SkillRunError, LookupError):
    """No operation is registered under the requested ``(skill_id, operation)``.

    Example::

        try:
            descriptor = registry.lookup("databases", "MISSING")
        except OperationNotFoundError:
            print("Unknown operation")
    """


class SkillNotFoundError(SkillRunError, LookupError):
    """A contract provider cannot serve the requested skill.

    Raised by :class:`~skillrun_core.ContractProvider` implementations
    when the skill's ``SKILL.md`` does not exist or cannot be read.
    """
