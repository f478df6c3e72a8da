"""Build a dispatcher from configuration and expose it over MCP.

This module turns a :class:`~skillrun_mcp_server.config.RuntimeConfig`
into a ready :class:`~skillrun_core.InvocationDispatcher`
(:func:`build_dispatcher`) and wraps a dispatcher in a
`FastMCP <https://pypi.org/project/mcp/>`_ server
(:func:`create_mcp_server`).

Tools
-----

==============================  =============================================
Tool name                       Description
==============================  =============================================
``invoke_operation``            Run one operation; returns the outcome JSON.
``list_operations``             List registered skills and operations.
==============================  =============================================

Resources
---------

==========================================  ==============================================
URI                                         Description
==========================================  ==============================================
``skills://operations/xml``                 XML catalog of registered operations.
``skills://operations/markdown``            Markdown catalog of registered operations.
``skills://tools-usage-instructions``       Workflow instructions for using the tools.
==========================================  ==============================================
"""

from __future__ import annotations

import importlib
import json
import logging
from pathlib import Path
from typing import Any, Union

from mcp.server.fastmcp import FastMCP

from skillrun_core import (
    ContractProvider,
    Handler,
    InvocationDispatcher,
    JsonLinesLifecycleSink,
    LifecycleEmitter,
    LifecycleSink,
    LoggingLifecycleSink,
    OperationRegistry,
    SkillContract,
    load_skill_contract,
)
from skillrun_mcp_server.config import LifecycleConfig, RuntimeConfig, SkillConfig

_logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# Provider and handler resolution
# ------------------------------------------------------------------

#: Provider types that are recognized by :func:`_resolve_provider`.
SUPPORTED_PROVIDERS: frozenset[str] = frozenset({"fs", "http"})


def _resolve_provider(provider_type: str, options: dict[str, Any]) -> ContractProvider:
    """Map a provider type string and options to a concrete provider.

    Raises:
        ImportError: If the required provider package is not installed.
        ValueError: If *provider_type* is not recognized.
    """
    if provider_type == "fs":
        try:
            from skillrun_fs import LocalFileSystemContractProvider
        except ImportError as exc:
            raise ImportError(
                "Provider 'fs' requires the skillrun_fs package. "
                "Install it with:  pip install skillrun"
            ) from exc
        root = Path(options.get("root", "."))
        return LocalFileSystemContractProvider(root=root)

    if provider_type == "http":
        try:
            from skillrun_http import HTTPStaticFileContractProvider
        except ImportError as exc:
            raise ImportError(
                "Provider 'http' requires the skillrun_http package. "
                "Install it with:  pip install skillrun"
            ) from exc
        # Only constructor-safe keys; a ``client`` cannot come from a file.
        safe_http_keys = {"base_url", "headers", "params", "require_tls"}
        filtered = {k: v for k, v in options.items() if k in safe_http_keys}
        return HTTPStaticFileContractProvider(**filtered)

    raise ValueError(
        f"Unknown provider type: {provider_type!r}. "
        f"Supported types: {', '.join(sorted(SUPPORTED_PROVIDERS))}"
    )


def resolve_handler(path: str) -> Handler:
    """Import a handler from a ``package.module:attribute`` path.

    The attribute part may be dotted (``module:Class.method``).

    Raises:
        ImportError: If the module cannot be imported.
        ValueError: If the path is malformed or does not name a callable.
    """
    module_name, sep, attr_path = path.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Handler path must look like 'package.module:attribute', got {path!r}")
    target: Any = importlib.import_module(module_name)
    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise ValueError(f"Handler {path!r}: {part!r} not found") from None
    if not callable(target):
        raise ValueError(f"Handler {path!r} is not callable")
    return target


def build_emitter(config: LifecycleConfig) -> LifecycleEmitter:
    """Create the lifecycle emitter selected by *config*."""
    sinks: list[LifecycleSink] = []
    if config.log:
        sinks.append(LoggingLifecycleSink())
    if config.jsonl_path:
        sinks.append(JsonLinesLifecycleSink(config.jsonl_path))
    return LifecycleEmitter(sinks)


async def load_contract(skill_cfg: SkillConfig) -> SkillContract:
    """Fetch, parse, and bind handlers for one configured skill."""
    handlers = {op: resolve_handler(path) for op, path in skill_cfg.handlers.items()}
    provider = _resolve_provider(skill_cfg.provider, skill_cfg.options)
    try:
        return await load_skill_contract(provider, skill_cfg.id, handlers)
    finally:
        aclose = getattr(provider, "aclose", None)
        if aclose is not None:
            await aclose()


async def build_dispatcher(config: RuntimeConfig) -> InvocationDispatcher:
    """Load every configured skill and return a ready dispatcher.

    All skills are registered as one atomic batch, so a duplicate or
    malformed entry leaves nothing half-registered.

    Raises:
        SkillRunError: If a contract cannot be loaded or registered.
        ImportError: If a handler or provider package cannot be imported.
    """
    contracts = [await load_contract(skill_cfg) for skill_cfg in config.skills]
    registry = OperationRegistry()
    registry.register(contracts)
    _logger.info("Loaded %s", registry)
    return InvocationDispatcher(registry, emitter=build_emitter(config.lifecycle))


# ------------------------------------------------------------------
# Server builder
# ------------------------------------------------------------------


def create_mcp_server(
    dispatcher: InvocationDispatcher,
    *,
    name: str,
    instructions: str | None = None,
) -> FastMCP:
    """Build an MCP server that exposes a skill dispatcher.

    Args:
        dispatcher: The :class:`~skillrun_core.InvocationDispatcher`
            whose registry defines the available operations.
        name: Display name for the MCP server.
        instructions: Optional server-level instructions sent to the
            MCP client during initialization.

    Returns:
        A configured :class:`~mcp.server.fastmcp.FastMCP` server,
        ready for ``server.run()``.
    """
    mcp = FastMCP(name, instructions=instructions)
    registry = dispatcher.registry

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    @mcp.tool()
    async def invoke_operation(
        skill_id: str,
        operation: str,
        params: dict[str, Union[str, int]] | None = None,
    ) -> str:
        """Run one atomic operation of a skill.

        Returns JSON with ``outcome``, ``detail`` and ``exit_code`` (0 success,
        1 invalid input, 2+ skill-specific failures).
        """
        result = await dispatcher.invoke(skill_id, operation, params or {})
        return json.dumps(result, default=str)

    @mcp.tool()
    async def list_operations() -> str:
        """List registered skills, their operations and parameter names."""
        listing: dict[str, dict[str, list[str]]] = {}
        for op in registry.list_operations():
            listing.setdefault(op.skill_id, {})[op.name] = [p.name for p in op.parameters]
        return json.dumps(listing)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    @mcp.resource("skills://operations/xml")
    def operations_catalog_xml() -> str:
        """XML catalog of registered operations for system-prompt injection."""
        return registry.get_operations_catalog(format="xml")

    @mcp.resource("skills://operations/markdown")
    def operations_catalog_markdown() -> str:
        """Markdown catalog of registered operations for system-prompt injection."""
        return registry.get_operations_catalog(format="markdown")

    @mcp.resource("skills://tools-usage-instructions")
    def skills_tools_usage_instructions() -> str:
        """Workflow instructions explaining how to use the invocation tools."""
        return _TOOLS_USAGE_INSTRUCTIONS

    return mcp


_TOOLS_USAGE_INSTRUCTIONS = """\
## How to Invoke Skill Operations

Each skill exposes a small set of **atomic operations** with declared \
parameters. The available operations are listed in the catalog.

### Workflow

1. **Pick an operation**: Choose the skill and operation that match \
the user's request. Call `list_operations()` if the catalog is not in \
context.
2. **Supply only declared parameters**: Undeclared parameters are \
rejected. Respect types, enum values and length limits.
3. **Invoke**: Call `invoke_operation(skill_id, operation, params)`.
4. **Read the exit code**: `0` means success; `1` means the request \
was invalid and should be corrected, not retried; `2` and above are \
skill-specific failures already retried by the runtime.

### Important guidelines

- **Do not retry invalid input unchanged.** Fix the parameter named in \
`detail` first.
- **Security issues are final.** An outcome of `security_issue` must \
not be retried.\
"""
