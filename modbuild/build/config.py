#!/usr/bin/env python3
"""
build/config.py - Environment-based configuration and constants for builds.

This module centralizes file extension mappings, default options, project
layout resolution and external tool lookup for the build pipeline.
"""
from __future__ import annotations

import json
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from modbuild.logger import env_flag


# ---------------------------------------------------------------------------
# Dialects and extensions
# ---------------------------------------------------------------------------
DECLARATION_SUFFIXES = (".d.ts", ".d.mts", ".d.cts")
TEMPLATED_UI_EXTS = {".tsx", ".jsx"}
PLAIN_EXTS = {".ts", ".mts", ".cts", ".js", ".mjs", ".cjs"}

# Extension of every compiled module in the output tree
CANONICAL_EXT = ".js"

# ---------------------------------------------------------------------------
# Build defaults
# ---------------------------------------------------------------------------
DEFAULT_INPUT = "src/**/*"
DEFAULT_STYLES = "src/components/index.css"
DEFAULT_STYLE_BUNDLE = "dist/bundle.css"
DEFAULT_TSCONFIG = "tsconfig.json"
DEFAULT_TARGET = "esnext"
DEFAULT_PLATFORM = "node"
DEFAULT_EXTERNALS = ("esbuild", "*.png")

UI_PREAMBLE = 'import React from "react";\nimport ReactDOM from "react-dom";\n'
JSX_FACTORY = "React.createElement"

ESM_REQUIRE_SHIM = (
    'import { createRequire as __modbuildCreateRequire } from "module";'
    "const require = __modbuildCreateRequire(import.meta.url);"
)

DEFAULT_PKG_TARGETS = "node18-linux-x64,node18-macos-x64,node18-win-x64"


def pkg_targets() -> str:
    return os.environ.get("PKG_TARGETS") or DEFAULT_PKG_TARGETS


def rewrites_disabled() -> bool:
    return env_flag("NO_REWRITES")


# ---------------------------------------------------------------------------
# Project layout
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ProjectLayout:
    """Where a package keeps its sources, output and descriptor."""

    root: Path
    src_dir: Path
    out_dir: Path

    @classmethod
    def from_root(cls, root: str | Path | None = None) -> "ProjectLayout":
        base = Path(root or os.getcwd()).resolve()
        return cls(root=base, src_dir=base / "src", out_dir=base / "dist")

    @property
    def package_json(self) -> Path:
        return self.root / "package.json"

    def read_package_json(self) -> Dict[str, Any]:
        """Return the parsed package descriptor, or {} when absent."""
        try:
            return json.loads(self.package_json.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            return {}

    def resolve(self, path: str | Path) -> Path:
        p = Path(path)
        if not p.is_absolute():
            p = self.root / p
        return p


# ---------------------------------------------------------------------------
# External tools
# ---------------------------------------------------------------------------
_TOOL_ENV = {
    "esbuild": "ESBUILD_BIN",
    "tsc": "TSC_BIN",
    "tailwindcss": "TAILWIND_BIN",
    "pkg": "PKG_BIN",
}


def resolve_tool(name: str, root: Optional[Path] = None) -> str:
    """Locate an external tool: env override > node_modules/.bin > PATH."""
    override = os.environ.get(_TOOL_ENV.get(name, ""), "").strip()
    if override:
        return override
    if root is not None:
        local = root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)
    return shutil.which(name) or name
