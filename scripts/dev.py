#!/usr/bin/env python3
"""Development task runner for skillrun.

Usage:
    python scripts/dev.py lint        # Check linting
    python scripts/dev.py format      # Auto-format code
    python scripts/dev.py check       # Format check + lint + type check
    python scripts/dev.py test        # Run all package tests
    python scripts/dev.py example     # Run the in-process dispatch example
    python scripts/dev.py clean       # Remove cache files
    python scripts/dev.py all         # Format + lint + test
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
SOURCES = ["packages/", "examples/", "scripts/"]

# Use sys.executable -m so tools resolve from the active venv.
_PY = sys.executable


def _run(cmd: list[str], *, cwd: Path = ROOT, check: bool = True) -> int:
    print(f"\n$ {' '.join(cmd)}\n")
    result = subprocess.run(cmd, cwd=cwd, check=False)
    if check and result.returncode != 0:
        sys.exit(result.returncode)
    return result.returncode


def lint() -> None:
    """Run ruff linter (check only)."""
    _run([_PY, "-m", "ruff", "check", *SOURCES])


def fmt() -> None:
    """Auto-format with ruff, then apply lint fixes."""
    _run([_PY, "-m", "ruff", "format", *SOURCES])
    _run([_PY, "-m", "ruff", "check", "--fix", *SOURCES])


def fmt_check() -> None:
    """Check formatting without changing files."""
    _run([_PY, "-m", "ruff", "format", "--check", *SOURCES])


def typecheck() -> None:
    """Run mypy over the packages."""
    _run([_PY, "-m", "mypy", "packages/"], check=False)


def check() -> None:
    """Run all checks without modifying files."""
    fmt_check()
    lint()
    typecheck()


def test() -> None:
    """Run the test suite (pytest config lives in pyproject.toml)."""
    _run([_PY, "-m", "pytest", "-v", *sys.argv[2:]])


def example() -> None:
    """Run examples/local_dispatch.py from the examples directory."""
    _run([_PY, "local_dispatch.py"], cwd=ROOT / "examples")


def clean() -> None:
    """Remove cache and build artifacts outside the root .venv."""
    patterns = ["__pycache__", ".pytest_cache", ".mypy_cache", ".ruff_cache", "*.egg-info", "build"]
    root_venv = ROOT / ".venv"
    removed = 0
    for pattern in patterns:
        for path in ROOT.rglob(pattern):
            if root_venv in (path, *path.parents):
                continue
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()
            print(f"  Removed {path.relative_to(ROOT)}")
            removed += 1
    print(f"\n  Cleaned {removed} item(s)." if removed else "  Nothing to clean.")


def all_tasks() -> None:
    """Run format + lint + test."""
    fmt()
    lint()
    test()


TASKS = {
    "lint": lint,
    "format": fmt,
    "fmt": fmt,
    "format:check": fmt_check,
    "typecheck": typecheck,
    "check": check,
    "test": test,
    "example": example,
    "clean": clean,
    "all": all_tasks,
}


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] in ("-h", "--help", "help"):
        print(__doc__)
        print("Available tasks:")
        for name, fn in TASKS.items():
            print(f"  {name:16s} {fn.__doc__ or ''}")
        sys.exit(0)

    task = TASKS.get(sys.argv[1])
    if task is None:
        print(f"Unknown task: {sys.argv[1]}")
        print(f"Available: {', '.join(TASKS)}")
        sys.exit(1)
    task()


if __name__ == "__main__":
    main()
