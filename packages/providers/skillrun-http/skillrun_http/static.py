"""HTTP static-file contract provider.

This module implements :class:`HTTPStaticFileContractProvider`, which
fetches skill contracts from any static HTTP file host.  It expects the
same directory-tree layout used by
:class:`~skillrun_fs.LocalFileSystemContractProvider`, served over HTTP::

    {base_url}/
    ├── databases/SKILL.md
    └── security/SKILL.md

Requests use `httpx <https://www.python-httpx.org/>`_.
"""

from __future__ import annotations

import logging
import re
import warnings
from typing import Any
from urllib.parse import quote, urlparse

import httpx

from skillrun_core import ContractProvider, SkillNotFoundError, SkillRunError, split_frontmatter

_logger = logging.getLogger(__name__)

# skill ids must be a single safe URL path segment.
_SAFE_IDENTIFIER_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")

#: Default maximum HTTP response size in bytes (10 MB).
DEFAULT_MAX_RESPONSE_BYTES: int = 10 * 1024 * 1024

#: Default HTTP request timeout in seconds.
DEFAULT_TIMEOUT_SECONDS: float = 30.0


class HTTPStaticFileContractProvider(ContractProvider):
    """Contract provider backed by a static HTTP file host.

    The provider owns an :class:`httpx.AsyncClient` unless one is
    supplied.  Call :meth:`aclose` or use ``async with`` when finished.

    Args:
        base_url: Root URL of the skill tree.  A trailing slash is
            stripped.
        client: Optional pre-configured :class:`httpx.AsyncClient`;
            the caller remains responsible for closing it.
        headers: Extra headers sent with every request.
        params: Query parameters appended to every request.
        require_tls: Reject ``http://`` base URLs.  When ``False``
            (default) plain HTTP is allowed with a :class:`UserWarning`.
        max_response_bytes: Largest response accepted.

    Example::

        async with HTTPStaticFileContractProvider("https://cdn.example.com/skills") as provider:
            contract = await load_skill_contract(provider, "databases", handlers)
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
        require_tls: bool = False,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    ) -> None:
        if client is not None and (headers is not None or params is not None):
            raise ValueError(
                "Cannot specify both 'client' and 'headers'/'params'. "
                "Configure headers and params on the client directly."
            )

        parsed = urlparse(base_url)
        if parsed.scheme == "http":
            if require_tls:
                raise ValueError(
                    "require_tls is enabled but base_url uses plain HTTP. "
                    "Use an HTTPS URL or set require_tls=False."
                )
            warnings.warn(
                "base_url uses unencrypted HTTP. Contracts fetched over HTTP "
                "can be tampered with in transit. Use HTTPS in production.",
                UserWarning,
                stacklevel=2,
            )

        self._base_url = base_url.rstrip("/")
        self._max_response_bytes = max_response_bytes
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=headers,
            params=params,
            timeout=httpx.Timeout(DEFAULT_TIMEOUT_SECONDS),
            follow_redirects=False,
        )

    def __repr__(self) -> str:
        return f"HTTPStaticFileContractProvider({self._base_url!r})"

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this provider owns it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HTTPStaticFileContractProvider:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def get_document(self, skill_id: str) -> dict[str, Any]:
        """Fetch ``SKILL.md`` and return the parsed YAML frontmatter.

        Raises:
            ValueError: If *skill_id* is not a safe path segment.
            SkillNotFoundError: On HTTP 404.
            SkillRunError: On other HTTP or connection errors, or an
                oversized response.
        """
        if not _SAFE_IDENTIFIER_RE.match(skill_id):
            raise ValueError(
                f"Invalid skill_id: {skill_id!r} -- must start with an "
                f"alphanumeric character and contain only alphanumeric "
                f"characters, hyphens, dots, and underscores"
            )
        url = f"{self._base_url}/{quote(skill_id, safe='')}/SKILL.md"
        frontmatter, _ = split_frontmatter(await self._get_text(url))
        return frontmatter

    async def _get_text(self, url: str) -> str:
        try:
            resp = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise SkillRunError("HTTP request failed") from exc
        if resp.status_code == 404:
            raise SkillNotFoundError("Skill contract not found")
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SkillRunError(f"HTTP {resp.status_code} error") from exc
        if len(resp.content) > self._max_response_bytes:
            raise SkillRunError(
                f"Response exceeds maximum size ({self._max_response_bytes} bytes)"
            )
        _logger.debug("Fetched %s (%d bytes)", url, len(resp.content))
        return resp.text
