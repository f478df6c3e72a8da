"""In-process dispatch -- filesystem provider.

This script loads the example skills from ``./skills``, registers them,
and runs a handful of invocations directly against an
:class:`~skillrun_core.InvocationDispatcher`, printing each outcome and
the lifecycle events it produced.

Flow:
    1. Load contracts with a LocalFileSystemContractProvider
    2. Register them in an OperationRegistry as one batch
    3. Dispatch valid, invalid and refused requests concurrently
    4. Print outcomes and lifecycle events

Requirements:
    pip install -e .

Usage:
    cd examples && python local_dispatch.py
"""

import asyncio
import json
from pathlib import Path

import example_handlers

from skillrun_core import (
    InMemoryLifecycleSink,
    InvocationDispatcher,
    InvocationRequest,
    LifecycleEmitter,
    LoggingLifecycleSink,
    OperationRegistry,
    load_skill_contract,
)
from skillrun_fs import LocalFileSystemContractProvider


async def main() -> None:
    # ------------------------------------------------------------------
    # 1. Load and register contracts
    # ------------------------------------------------------------------
    provider = LocalFileSystemContractProvider(Path(__file__).resolve().parent / "skills")
    databases = await load_skill_contract(
        provider,
        "databases",
        {
            "BACKUP": example_handlers.backup,
            "QUERY_OPTIMIZATION": example_handlers.optimize_query,
        },
    )
    security = await load_skill_contract(
        provider, "security", {"SECRET_SCAN": example_handlers.secret_scan}
    )
    registry = OperationRegistry()
    registry.register([databases, security])

    print(registry.get_operations_catalog(format="markdown"))
    print()

    # ------------------------------------------------------------------
    # 2. Dispatch
    # ------------------------------------------------------------------
    sink = InMemoryLifecycleSink()
    dispatcher = InvocationDispatcher(
        registry, emitter=LifecycleEmitter([LoggingLifecycleSink(), sink])
    )
    requests = [
        InvocationRequest(
            "databases", "QUERY_OPTIMIZATION", {"query": "SELECT * FROM users ORDER BY id"}
        ),
        InvocationRequest("databases", "QUERY_OPTIMIZATION", {"query": "ab"}),
        InvocationRequest("databases", "QUERY_OPTIMIZATION", {"query": "DROP TABLE users"}),
        InvocationRequest("security", "SECRET_SCAN", {"path": ".", "max_files": 200}),
        InvocationRequest("databases", "VACUUM"),
    ]
    outcomes = await dispatcher.dispatch_all(requests)

    # ------------------------------------------------------------------
    # 3. Report
    # ------------------------------------------------------------------
    for outcome in outcomes:
        print(json.dumps(outcome.to_dict(), default=str))
    print()
    print(f"=== Lifecycle events ({len(sink)}) ===")
    for event in sink.events:
        print(f"  {event.invocation_id[:8]} {event.skill_id}/{event.operation} {event.phase.value}")


if __name__ == "__main__":
    asyncio.run(main())
