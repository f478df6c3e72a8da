"""Pydantic configuration models for skill runtime hosts.

This module defines the declarative configuration schema used by the
CLI (``python -m skillrun_mcp_server --config runtime.yaml``).

String values may contain ``${VAR}`` placeholders that are resolved
from environment variables at load time.  Unset variables resolve to
an empty string and emit a warning.

Example config (YAML)::

    name: Engineering Skills
    lifecycle:
      log: true
      jsonl_path: ./audit/lifecycle.jsonl
    skills:
      - id: databases
        provider: fs
        options: {root: ./skills}
        handlers:
          QUERY_OPTIMIZATION: my_handlers.databases:optimize_query
      - id: security
        provider: http
        options:
          base_url: https://cdn.example.com/skills
          headers: {Authorization: "Bearer ${API_TOKEN}"}
        handlers:
          SECURITY_SCAN: my_handlers.security:scan
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

_logger = logging.getLogger(__name__)

_HANDLER_PATH_RE = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$")


class SkillConfig(BaseModel):
    """Configuration for a single skill."""

    id: str = Field(..., description="Skill identifier")
    provider: str = Field("fs", description="Contract provider type ('fs' or 'http')")
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-specific options passed to the provider constructor",
    )
    handlers: dict[str, str] = Field(
        ...,
        description="Operation name to 'module:attribute' handler import path",
        min_length=1,
    )

    @field_validator("handlers")
    @classmethod
    def _check_handler_paths(cls, value: dict[str, str]) -> dict[str, str]:
        for operation, path in value.items():
            if not _HANDLER_PATH_RE.match(path):
                raise ValueError(
                    f"handler for {operation!r} must look like 'package.module:attribute', "
                    f"got {path!r}"
                )
        return value


class LifecycleConfig(BaseModel):
    """Where lifecycle events go."""

    log: bool = Field(True, description="Write events to the 'skillrun.lifecycle' logger")
    jsonl_path: str | None = Field(None, description="Append events to this JSON-lines file")


class RuntimeConfig(BaseModel):
    """Top-level configuration for a skill runtime host.

    Attributes:
        name: Display name shown to MCP clients during initialization.
        instructions: Optional server-level instructions sent to the
            client during the MCP handshake.
        lifecycle: Lifecycle sink selection.
        skills: One or more skills to load and register.
    """

    name: str = Field(..., description="Display name for the MCP server")
    instructions: str | None = Field(None, description="Optional server-level instructions")
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    skills: list[SkillConfig] = Field(..., description="Skills to register", min_length=1)


def load_config(path: Path) -> RuntimeConfig:
    """Read a JSON or YAML config file into a :class:`RuntimeConfig`.

    ``.yaml``/``.yml`` files are parsed with PyYAML; everything else as
    JSON.  ``${VAR}`` placeholders are resolved before validation.

    Raises:
        FileNotFoundError: If *path* does not exist.
        pydantic.ValidationError: If the document does not match the schema.
    """
    raw = Path(path).read_text(encoding="utf-8")
    if Path(path).suffix in (".yaml", ".yml"):
        data = yaml.safe_load(raw)
    else:
        data = json.loads(raw)
    return RuntimeConfig(**resolve_env_vars(data or {}))


# ------------------------------------------------------------------
# Environment variable resolution
# ------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def resolve_env_vars(data: Any) -> Any:
    """Recursively resolve ``${VAR}`` placeholders in config data.

    Walks dicts, lists, and strings.  Non-string scalars are returned
    as-is.  Unset environment variables resolve to an empty string and
    a warning is logged.
    """
    if isinstance(data, str):
        return _resolve_env_vars_in_string(data)
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]
    return data


def _resolve_env_vars_in_string(value: str) -> str:
    """Replace ``${VAR_NAME}`` tokens in *value* with ``os.environ``."""

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name, "")
        if not env_value:
            _logger.warning(
                "Environment variable '%s' is not set or empty",
                var_name,
            )
        return env_value

    return _ENV_VAR_RE.sub(_replace, value)
