"""Filesystem contract provider for the skill runtime.

This package provides :class:`LocalFileSystemContractProvider`, a
concrete :class:`~skillrun_core.ContractProvider` that reads skill
contracts from ``SKILL.md`` files in a local directory tree.
"""

from skillrun_fs.local import LocalFileSystemContractProvider

__all__ = ["LocalFileSystemContractProvider"]
