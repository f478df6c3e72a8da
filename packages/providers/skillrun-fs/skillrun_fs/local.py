"""Local filesystem-based contract provider.

This module implements :class:`LocalFileSystemContractProvider`, which
reads skill contracts from the ``SKILL.md`` files of a local directory
tree.  Only the YAML frontmatter is parsed; the markdown body is the
skill's prose and carries no contract information.

File I/O is synchronous inside ``async def`` methods because contracts
are small and read once at startup.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from skillrun_core import ContractProvider, SkillNotFoundError, split_frontmatter

#: Default maximum file size in bytes (10 MB).
DEFAULT_MAX_FILE_BYTES: int = 10 * 1024 * 1024


class LocalFileSystemContractProvider(ContractProvider):
    """Contract provider backed by a local directory tree.

    Each immediate subdirectory of *root* that contains a ``SKILL.md``
    file is a skill; the directory name is its id.

    Expected layout::

        root/
        ├── databases/
        │   ├── SKILL.md          # YAML frontmatter (contract) + markdown body
        │   └── scripts/
        └── security/
            └── SKILL.md

    Args:
        root: Directory containing skill subdirectories.
        max_file_bytes: Largest ``SKILL.md`` accepted.  Defaults to 10 MB.

    Raises:
        NotADirectoryError: If *root* does not exist or is not a
            directory.

    Example::

        provider = LocalFileSystemContractProvider(Path("./skills"))
        contract = await load_skill_contract(provider, "databases", handlers)
    """

    def __init__(self, root: Path, *, max_file_bytes: int = DEFAULT_MAX_FILE_BYTES) -> None:
        self._root = Path(root)
        if not self._root.is_dir():
            raise NotADirectoryError(f"Skill root does not exist: {self._root}")
        self._max_file_bytes = max_file_bytes

    def __repr__(self) -> str:
        return f"LocalFileSystemContractProvider({str(self._root)!r})"

    async def get_document(self, skill_id: str) -> dict[str, Any]:
        """Parse and return the YAML frontmatter of a skill's ``SKILL.md``.

        Raises:
            SkillNotFoundError: If the skill directory or ``SKILL.md``
                does not exist, escapes *root*, or is too large.
        """
        frontmatter, _ = split_frontmatter(self._read_skill_md(skill_id))
        return frontmatter

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _skill_dir(self, skill_id: str) -> Path:
        """Resolve the directory for *skill_id*, refusing path traversal."""
        path = (self._root / skill_id).resolve()
        if not path.is_relative_to(self._root.resolve()) or path == self._root.resolve():
            raise SkillNotFoundError(f"Invalid skill_id: {skill_id!r}")
        if not path.is_dir():
            raise SkillNotFoundError(f"Skill not found: {skill_id!r}")
        return path

    def _read_skill_md(self, skill_id: str) -> str:
        skill_md = self._skill_dir(skill_id) / "SKILL.md"
        if not skill_md.is_file():
            raise SkillNotFoundError(f"SKILL.md not found for skill {skill_id!r}")
        size = skill_md.stat().st_size
        if size > self._max_file_bytes:
            raise SkillNotFoundError(
                f"SKILL.md for skill {skill_id!r} exceeds maximum size "
                f"({self._max_file_bytes} bytes)"
            )
        return skill_md.read_text(encoding="utf-8")
