"""Handlers for the example ``databases`` and ``security`` skills.

Referenced from ``runtime.yaml`` as ``example_handlers:<name>``.  Run
the CLI from this directory so the module is importable.
"""

from __future__ import annotations

import asyncio
import os
import re
import shutil
from datetime import datetime
from pathlib import Path

from skillrun_core import HandlerResult

# ------------------------------------------------------------------
# databases
# ------------------------------------------------------------------

_DESTRUCTIVE_RE = re.compile(r"^\s*(DROP|TRUNCATE|ALTER)\b", re.IGNORECASE)
_UNBOUNDED_DELETE_RE = re.compile(r"^\s*DELETE\s+FROM\s+\w+\s*;?\s*$", re.IGNORECASE)


async def backup(params):
    database = params["database"]
    keep = params.get("keep", 7)
    if shutil.which("pg_dump") is None:
        return HandlerResult.terminal("pg_dump is not installed", code="BACKUP_FAILED", security=False)

    backup_dir = Path(os.environ.get("BACKUP_DIR", "./backups"))
    backup_dir.mkdir(parents=True, exist_ok=True)
    target = backup_dir / f"{database}_{datetime.now():%Y%m%d_%H%M%S}.sql.gz"

    proc = await asyncio.create_subprocess_shell(
        f"pg_dump {_quote(database)} | gzip > {_quote(str(target))}",
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await proc.communicate()
    if proc.returncode != 0 or not target.is_file():
        target.unlink(missing_ok=True)
        return HandlerResult.retryable(
            stderr.decode(errors="replace").strip() or "pg_dump failed", code="BACKUP_FAILED"
        )

    dumps = sorted(backup_dir.glob(f"{database}_*.sql.gz"), reverse=True)
    for old in dumps[keep:]:
        old.unlink()
    return {"file": str(target), "bytes": target.stat().st_size, "pruned": len(dumps[keep:])}


def optimize_query(params):
    query = params["query"]
    if _DESTRUCTIVE_RE.match(query):
        return HandlerResult.terminal("destructive statements are not reviewed")
    if _UNBOUNDED_DELETE_RE.match(query):
        return HandlerResult.terminal("DELETE without WHERE clause")

    hints = []
    if re.search(r"SELECT\s+\*", query, re.IGNORECASE):
        hints.append("List the columns you need instead of SELECT *.")
    if re.search(r"\bLIKE\s+'%", query, re.IGNORECASE):
        hints.append("A leading wildcard in LIKE cannot use a b-tree index.")
    if re.search(r"\bORDER\s+BY\b", query, re.IGNORECASE) and not re.search(
        r"\bLIMIT\b", query, re.IGNORECASE
    ):
        hints.append("ORDER BY without LIMIT sorts the whole result set.")
    if query.count("(") != query.count(")"):
        return HandlerResult.terminal("unbalanced parentheses", code="QUERY_ERROR", security=False)
    return {"dialect": params.get("dialect", "postgres"), "hints": hints}


def _quote(value: str) -> str:
    return "'" + value.replace("'", "'\\''") + "'"


# ------------------------------------------------------------------
# security
# ------------------------------------------------------------------

_SECRET_PATTERNS = {
    "aws_access_key": re.compile(r"AKIA[0-9A-Z]{16}"),
    "private_key": re.compile(r"-----BEGIN (?:RSA |EC |OPENSSH )?PRIVATE KEY-----"),
    "password_assignment": re.compile(r"(?i)\b(password|passwd|secret)\s*[:=]\s*['\"][^'\"]{4,}"),
}


def secret_scan(params):
    root = Path(params["path"])
    if not root.is_dir():
        return HandlerResult.terminal(f"not a directory: {root}", security=False)
    max_files = params.get("max_files", 10_000)

    findings = []
    scanned = 0
    for path in root.rglob("*"):
        if not path.is_file() or ".git" in path.parts:
            continue
        scanned += 1
        if scanned > max_files:
            break
        try:
            text = path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError):
            continue
        for kind, pattern in _SECRET_PATTERNS.items():
            for lineno, line in enumerate(text.splitlines(), start=1):
                if pattern.search(line):
                    findings.append({"file": str(path), "line": lineno, "kind": kind})

    if findings:
        return HandlerResult.terminal(
            f"{len(findings)} possible secret(s) found", code="SECRETS_FOUND", security=False
        )
    return {"scanned": min(scanned, max_files), "findings": []}
