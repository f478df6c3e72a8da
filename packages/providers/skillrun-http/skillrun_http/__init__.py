"""HTTP contract provider for the skill runtime.

This package provides :class:`HTTPStaticFileContractProvider`, a
concrete :class:`~skillrun_core.ContractProvider` that fetches skill
contracts from a static HTTP file host (S3, Azure Blob Storage, CDN,
GitHub Pages, or any web server serving raw files).
"""

from skillrun_http.static import HTTPStaticFileContractProvider

__all__ = ["HTTPStaticFileContractProvider"]
