"""Abstract interface for contract retrieval.

A :class:`ContractProvider` serves the declarative contract of a skill
-- the parsed frontmatter of its ``SKILL.md`` -- by skill id.  It does
**not** enumerate skills and does not know about handlers; the host
binds handlers and registers the resulting
:class:`~skillrun_core.SkillContract` explicitly::

    contract = await load_skill_contract(provider, "databases", handlers)
    registry.register(contract)

All methods are ``async`` so that implementations backed by network I/O
can be non-blocking.  Concrete implementations include
:class:`~skillrun_fs.LocalFileSystemContractProvider` and
:class:`~skillrun_http.HTTPStaticFileContractProvider`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from skillrun_core.contract import SkillContract
from skillrun_core.handler import Handler
from skillrun_core.parsing import parse_skill_contract


class ContractProvider(ABC):
    """Abstract base class that every contract backend must implement.

    Example::

        class MyProvider(ContractProvider):
            async def get_document(self, skill_id: str) -> dict: ...
    """

    @abstractmethod
    async def get_document(self, skill_id: str) -> dict[str, Any]:
        """Return the parsed frontmatter of a skill's ``SKILL.md``.

        Args:
            skill_id: The skill to look up.

        Returns:
            Dictionary of frontmatter key-value pairs (``{}`` when the
            file has no frontmatter).

        Raises:
            SkillNotFoundError: If the skill does not exist.
        """


async def load_skill_contract(
    provider: ContractProvider,
    skill_id: str,
    handlers: Mapping[str, Handler],
) -> SkillContract:
    """Fetch a skill's declaration from *provider* and bind *handlers*.

    Raises:
        SkillNotFoundError: If the provider cannot serve the skill.
        ContractError: If the declaration is malformed.
    """
    document = await provider.get_document(skill_id)
    return parse_skill_contract(skill_id, document, handlers)
