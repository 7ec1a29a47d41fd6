"""Shared helpers for CLI commands."""
from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# Ensure project root is on sys.path (fallback for development mode)
try:
    import modbuild  # noqa: F401
except ImportError:
    ROOT_DIR = Path(__file__).resolve().parent.parent
    if str(ROOT_DIR) not in sys.path:
        sys.path.insert(0, str(ROOT_DIR))

from modbuild.build.config import ProjectLayout  # noqa: E402


def load_project_env(root: Path) -> None:
    """Load `<root>/.env` without overriding variables already set."""
    env_file = root / ".env"
    if env_file.is_file():
        load_dotenv(env_file, override=False)


def resolve_layout(path: str | Path | None = None) -> ProjectLayout:
    layout = ProjectLayout.from_root(path)
    load_project_env(layout.root)
    return layout


def output_json(data: Any) -> None:
    """Write JSON to stdout for every command."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def run_async(coro) -> Any:
    """Run an async coroutine from sync CLI context."""
    return asyncio.run(coro)
