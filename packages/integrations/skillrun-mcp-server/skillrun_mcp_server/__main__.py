"""Run the skill runtime from a config file.

Usage::

    python -m skillrun_mcp_server --config runtime.yaml
    python -m skillrun_mcp_server --config runtime.yaml --transport streamable-http
    python -m skillrun_mcp_server --config runtime.yaml \\
        --invoke databases QUERY_OPTIMIZATION --param "query=SELECT * FROM users" --int-param limit=10

Without ``--invoke`` the runtime is served over MCP.  With ``--invoke``
a single invocation runs, its outcome is printed as JSON, and the
process exits with the invocation's exit code.

MCP client integration (stdio transport)::

    {
        "command": "python",
        "args": ["-m", "skillrun_mcp_server", "--config", "runtime.yaml"]
    }
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from skillrun_core import InvocationDispatcher, SkillRunError


def _parse_params(strings: list[str], integers: list[str]) -> dict[str, Any]:
    """Turn ``KEY=VALUE`` pairs into a parameter mapping."""
    params: dict[str, Any] = {}
    for item in strings:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"--param expects KEY=VALUE, got {item!r}")
        params[key] = value
    for item in integers:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise ValueError(f"--int-param expects KEY=INTEGER, got {item!r}")
        try:
            params[key] = int(value)
        except ValueError:
            raise ValueError(f"--int-param {key}: {value!r} is not an integer") from None
    return params


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skillrun_mcp_server",
        description="Serve or invoke skill operations from a config file.",
    )
    parser.add_argument(
        "--config",
        required=True,
        type=Path,
        help="Path to a JSON or YAML configuration file.",
    )
    parser.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "streamable-http"],
        help="MCP transport type (default: stdio).",
    )
    parser.add_argument(
        "--invoke",
        nargs=2,
        metavar=("SKILL", "OPERATION"),
        help="Run one operation and exit with its exit code instead of serving.",
    )
    parser.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="String parameter for --invoke (repeatable).",
    )
    parser.add_argument(
        "--int-param",
        action="append",
        default=[],
        metavar="KEY=INTEGER",
        help="Integer parameter for --invoke (repeatable).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments, load config, and serve or invoke."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from skillrun_mcp_server.config import load_config
    from skillrun_mcp_server.server import build_dispatcher, create_mcp_server

    config_path: Path = args.config
    if not config_path.exists():
        print(f"Error: config file not found: {config_path}", file=sys.stderr)
        sys.exit(1)

    try:
        config = load_config(config_path)
        dispatcher: InvocationDispatcher = asyncio.run(build_dispatcher(config))
    except (ValidationError, SkillRunError, ImportError, ValueError, yaml.YAMLError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.invoke:
        try:
            params = _parse_params(args.param, args.int_param)
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        skill_id, operation = args.invoke
        result = asyncio.run(dispatcher.invoke(skill_id, operation, params))
        print(json.dumps(result, default=str, indent=2))
        sys.exit(result["exit_code"])

    server = create_mcp_server(dispatcher, name=config.name, instructions=config.instructions)
    server.run(transport=args.transport)


if __name__ == "__main__":
    main()
