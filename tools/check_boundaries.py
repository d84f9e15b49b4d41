"""
Boundary Gate - Keep the index core free of transport and storage libraries

The engines in tag_index/ talk to storage only through a gateway object.
This tool verifies that no module in the core package imports boto3,
botocore, flask or fastapi at module level, so the engines stay testable
with plain fakes and reusable behind any entry point.

Usage:
    python tools/check_boundaries.py

Exit codes:
    0 - Boundary intact
    1 - Forbidden import found (or core package missing)
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path
from typing import List, Optional

CORE_PACKAGE = "tag_index"

# Top-level modules the core package must never import at module level
FORBIDDEN_IMPORTS = {"boto3", "botocore", "flask", "flask_cors", "fastapi"}


def fail(msg: str) -> int:
    """Print error message and return failure code."""
    print(f"❌ boundary gate: {msg}", file=sys.stderr)
    return 1


def module_level_imports(source: str) -> List[str]:
    """Top-level names imported by statements directly in the module body."""
    names: List[str] = []
    for node in ast.parse(source).body:
        if isinstance(node, ast.Import):
            names.extend(alias.name.split(".")[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            names.append(node.module.split(".")[0])
    return names


def main(repo: Optional[Path] = None) -> int:
    """Run boundary verification checks."""
    # Repo root is one level up from tools/
    repo = repo or Path(__file__).resolve().parents[1]
    core = repo / CORE_PACKAGE
    if not core.is_dir():
        return fail(f"missing core package: {CORE_PACKAGE}/")

    for path in sorted(core.rglob("*.py")):
        rel = path.relative_to(repo)
        try:
            imports = module_level_imports(path.read_text(encoding="utf-8"))
        except (OSError, SyntaxError) as e:
            return fail(f"failed to parse {str(rel)!r}: {e}")

        bad = sorted(set(imports) & FORBIDDEN_IMPORTS)
        if bad:
            return fail(f"{str(rel)!r} imports {bad}")

    print("✅ boundary gate: OK")
    print(f"   - {CORE_PACKAGE}/ imports no transport or storage libraries")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
