"""Tests for the MCP server builder and config-driven dispatcher."""

import json
import sys
from pathlib import Path

import pytest
from mcp.server.fastmcp import FastMCP

from skillrun_core import (
    ContractError,
    HandlerResult,
    InMemoryLifecycleSink,
    InvocationDispatcher,
    LifecycleEmitter,
    LifecyclePhase,
    OperationDescriptor,
    OperationRegistry,
    ParameterSpec,
    RegistrationError,
    SkillContract,
)
from skillrun_mcp_server import RuntimeConfig, build_dispatcher, create_mcp_server

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

DATABASES_SKILL_MD = """\
---
name: databases
description: Database design and query tuning.
retry: {max_attempts: 2}
exit_codes:
  BACKUP_FAILED: 4
operations:
  QUERY_OPTIMIZATION:
    parameters:
      query: {type: string, required: true, minLength: 5}
  BACKUP:
    parameters:
      database: {type: string, required: true}
---
# Databases
"""

HANDLER_MODULE = """\
from skillrun_core import HandlerResult


def optimize(params):
    if params["query"].upper().startswith("DROP"):
        return HandlerResult.terminal("destructive statement refused")
    return {"plan": "index scan", "query": params["query"]}


def backup(params):
    return HandlerResult.terminal("disk full", code="BACKUP_FAILED", security=False)
"""


def _tool_text(result) -> str:
    """Extract the text of the first content block of a call_tool result."""
    content_list = result[0]
    return content_list[0].text


def _write_skill(root: Path, skill_id: str = "databases", skill_md: str = DATABASES_SKILL_MD):
    skill_dir = root / skill_id
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(skill_md, encoding="utf-8")


@pytest.fixture()
def handler_module(tmp_path, monkeypatch):
    """Make ``runtime_handlers`` importable for handler resolution."""
    (tmp_path / "runtime_handlers.py").write_text(HANDLER_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.delitem(sys.modules, "runtime_handlers", raising=False)
    return "runtime_handlers"


def _config(root: Path, **extra) -> RuntimeConfig:
    return RuntimeConfig(
        name="Engineering Skills",
        skills=[
            {
                "id": "databases",
                "options": {"root": str(root)},
                "handlers": {
                    "QUERY_OPTIMIZATION": "runtime_handlers:optimize",
                    "BACKUP": "runtime_handlers:backup",
                },
            }
        ],
        **extra,
    )


@pytest.fixture()
def sink() -> InMemoryLifecycleSink:
    return InMemoryLifecycleSink()


@pytest.fixture()
def dispatcher(sink) -> InvocationDispatcher:
    registry = OperationRegistry()
    registry.register(
        SkillContract(
            "databases",
            (
                OperationDescriptor(
                    "QUERY_OPTIMIZATION",
                    lambda params: HandlerResult.success({"plan": "index scan"}),
                    parameters=(ParameterSpec("query", "string", required=True, min_length=5),),
                    description="Explain and tune a query.",
                ),
            ),
            description="Database design and query tuning.",
        )
    )
    return InvocationDispatcher(registry, emitter=LifecycleEmitter(sink))


@pytest.fixture()
def server(dispatcher) -> FastMCP:
    return create_mcp_server(dispatcher, name="Test Server")


# ------------------------------------------------------------------
# Server structure
# ------------------------------------------------------------------


class TestCreateMCPServer:
    async def test_returns_fastmcp_instance(self, server):
        assert isinstance(server, FastMCP)

    async def test_server_name(self, server):
        assert server.name == "Test Server"

    async def test_instructions(self, dispatcher):
        server = create_mcp_server(dispatcher, name="Test", instructions="Use the catalog.")
        assert server.instructions == "Use the catalog."

    async def test_tool_names(self, server):
        tools = await server.list_tools()
        assert {t.name for t in tools} == {"invoke_operation", "list_operations"}

    async def test_resource_uris(self, server):
        resources = await server.list_resources()
        assert {str(r.uri) for r in resources} == {
            "skills://operations/xml",
            "skills://operations/markdown",
            "skills://tools-usage-instructions",
        }


# ------------------------------------------------------------------
# Tools
# ------------------------------------------------------------------


class TestMCPTools:
    async def test_invoke_operation_success(self, server, sink):
        result = await server.call_tool(
            "invoke_operation",
            {
                "skill_id": "databases",
                "operation": "QUERY_OPTIMIZATION",
                "params": {"query": "SELECT * FROM users"},
            },
        )
        outcome = json.loads(_tool_text(result))
        assert outcome["outcome"] == "success"
        assert outcome["exit_code"] == 0
        assert outcome["result"] == {"plan": "index scan"}
        assert [e.phase for e in sink.events] == [
            LifecyclePhase.INVOKED,
            LifecyclePhase.COMPLETED,
        ]

    async def test_invoke_operation_invalid_input(self, server, sink):
        result = await server.call_tool(
            "invoke_operation",
            {
                "skill_id": "databases",
                "operation": "QUERY_OPTIMIZATION",
                "params": {"query": "ab"},
            },
        )
        outcome = json.loads(_tool_text(result))
        assert outcome["outcome"] == "invalid_input"
        assert outcome["exit_code"] == 1
        assert outcome["attempts"] == 0
        assert len(sink) == 0

    async def test_invoke_operation_without_params(self, server):
        result = await server.call_tool(
            "invoke_operation", {"skill_id": "databases", "operation": "QUERY_OPTIMIZATION"}
        )
        assert json.loads(_tool_text(result))["detail"] == "missing:query"

    async def test_invoke_unknown_operation(self, server):
        result = await server.call_tool(
            "invoke_operation", {"skill_id": "databases", "operation": "VACUUM"}
        )
        outcome = json.loads(_tool_text(result))
        assert outcome["exit_code"] == 1
        assert outcome["detail"].startswith("unknown_operation")

    async def test_list_operations(self, server):
        result = await server.call_tool("list_operations", {})
        assert json.loads(_tool_text(result)) == {"databases": {"QUERY_OPTIMIZATION": ["query"]}}


# ------------------------------------------------------------------
# Resources
# ------------------------------------------------------------------


class TestMCPResources:
    async def test_xml_catalog(self, server):
        contents = await server.read_resource("skills://operations/xml")
        text = contents[0].content
        assert text.startswith("<available_operations>")
        assert "QUERY_OPTIMIZATION" in text

    async def test_markdown_catalog(self, server):
        contents = await server.read_resource("skills://operations/markdown")
        text = contents[0].content
        assert text.startswith("# Available Operations")
        assert "### QUERY_OPTIMIZATION" in text

    async def test_instructions_mention_tools(self, server):
        contents = await server.read_resource("skills://tools-usage-instructions")
        text = contents[0].content
        assert "Workflow" in text
        assert "invoke_operation" in text
        assert "list_operations" in text


# ------------------------------------------------------------------
# Config-driven dispatcher (integration)
# ------------------------------------------------------------------


class TestBuildDispatcher:
    async def test_loads_and_dispatches(self, tmp_path, handler_module):
        _write_skill(tmp_path / "skills")
        dispatcher = await build_dispatcher(_config(tmp_path / "skills"))

        assert dispatcher.registry.list_skills() == ["databases"]
        ok = await dispatcher.invoke("databases", "QUERY_OPTIMIZATION", {"query": "SELECT 1"})
        assert ok["exit_code"] == 0
        assert ok["result"] == {"plan": "index scan", "query": "SELECT 1"}

    async def test_security_issue_not_retried(self, tmp_path, handler_module):
        _write_skill(tmp_path / "skills")
        dispatcher = await build_dispatcher(_config(tmp_path / "skills"))
        result = await dispatcher.invoke(
            "databases", "QUERY_OPTIMIZATION", {"query": "DROP TABLE users"}
        )
        assert result["outcome"] == "security_issue"
        assert result["attempts"] == 1

    async def test_declared_exit_code(self, tmp_path, handler_module):
        _write_skill(tmp_path / "skills")
        dispatcher = await build_dispatcher(_config(tmp_path / "skills"))
        result = await dispatcher.invoke("databases", "BACKUP", {"database": "orders"})
        assert result["outcome"] == "operation_failed"
        assert result["exit_code"] == 4

    async def test_jsonl_lifecycle(self, tmp_path, handler_module):
        _write_skill(tmp_path / "skills")
        audit = tmp_path / "audit" / "events.jsonl"
        config = _config(tmp_path / "skills", lifecycle={"log": False, "jsonl_path": str(audit)})
        dispatcher = await build_dispatcher(config)
        await dispatcher.invoke("databases", "QUERY_OPTIMIZATION", {"query": "SELECT 1"})
        phases = [json.loads(line)["phase"] for line in audit.read_text().splitlines()]
        assert phases == ["invoked", "completed"]

    async def test_handler_mismatch_raises(self, tmp_path, handler_module):
        _write_skill(tmp_path / "skills")
        config = RuntimeConfig(
            name="Broken",
            skills=[
                {
                    "id": "databases",
                    "options": {"root": str(tmp_path / "skills")},
                    "handlers": {"QUERY_OPTIMIZATION": "runtime_handlers:optimize"},
                }
            ],
        )
        with pytest.raises(ContractError, match="no handler for operation"):
            await build_dispatcher(config)

    async def test_duplicate_skill_raises(self, tmp_path, handler_module):
        _write_skill(tmp_path / "skills")
        skill = _config(tmp_path / "skills").skills[0]
        config = RuntimeConfig(name="Dup", skills=[skill, skill])
        with pytest.raises(RegistrationError, match="Duplicate"):
            await build_dispatcher(config)
