"""Config-driven host for the skill runtime.

This package bridges :mod:`skillrun_core` and the `Model Context
Protocol <https://modelcontextprotocol.io>`_, providing:

* :func:`build_dispatcher` -- loads the skills named in a
  :class:`RuntimeConfig` and returns a ready dispatcher.
* :func:`create_mcp_server` -- exposes a dispatcher as MCP tools and
  resources.
* CLI entry-point (``python -m skillrun_mcp_server --config runtime.yaml``)
  for serving, or for one-shot invocations whose process exit status is
  the invocation exit code.

Quick start (programmatic)::

    from skillrun_mcp_server import build_dispatcher, create_mcp_server, load_config

    config = load_config(Path("runtime.yaml"))
    dispatcher = await build_dispatcher(config)
    server = create_mcp_server(dispatcher, name=config.name)
    server.run()  # stdio by default
"""

from skillrun_mcp_server.config import RuntimeConfig, load_config
from skillrun_mcp_server.server import build_dispatcher, create_mcp_server

__all__ = [
    "RuntimeConfig",
    "build_dispatcher",
    "create_mcp_server",
    "load_config",
]
