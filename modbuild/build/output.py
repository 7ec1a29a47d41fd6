"""Output-tree lifecycle: clearing, invalidation, temp tsconfig, metadata patch."""
from __future__ import annotations

import asyncio
import json
import os
import re
import shutil
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence

from modbuild.logger import AssetIOError, get_logger

from .classify import SourceFile, destination_for
from .config import JSX_FACTORY, ProjectLayout
from .request import OutputFormat

logger = get_logger(__name__)


def clear_output(out_dir: Path) -> None:
    """Full-clear policy: remove the whole output tree."""
    if out_dir.exists():
        logger.debug("Cleaning old output: %s", out_dir)
        shutil.rmtree(out_dir)


def invalidate(destination: Path) -> bool:
    """Single-path policy: delete one emitted file. Returns True if it existed."""
    try:
        destination.unlink()
    except FileNotFoundError:
        return False
    logger.debug("Cleaned emitted file: %s", destination)
    return True


def remove_output_tree(directory: Path, layout: ProjectLayout) -> bool:
    """Delete the output counterpart of a removed source directory."""
    try:
        target = layout.out_dir / directory.relative_to(layout.src_dir)
    except ValueError:
        return False
    if target == layout.out_dir or not target.is_dir():
        return False
    shutil.rmtree(target)
    return True


# ---------------------------------------------------------------------------
# Derived tsconfig
# ---------------------------------------------------------------------------
_COMMENT_RE = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.S)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _load_jsonc(text: str) -> Dict[str, Any]:
    stripped = _COMMENT_RE.sub(lambda m: m.group(1) or "", text)
    stripped = _TRAILING_COMMA_RE.sub(r"\1", stripped)
    return json.loads(stripped) if stripped.strip() else {}


def read_tsconfig(path: Path) -> Dict[str, Any]:
    try:
        return _load_jsonc(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}


def derive_tsconfig(path: Path) -> Dict[str, Any]:
    """Copy a tsconfig with UI fields overridden and relative paths re-anchored."""
    config = read_tsconfig(path)
    base = path.parent
    extends = config.get("extends")
    if isinstance(extends, str) and extends.startswith("."):
        config["extends"] = str((base / extends).resolve())
    compiler_options = dict(config.get("compilerOptions") or {})
    base_url = compiler_options.get("baseUrl")
    if isinstance(base_url, str) and not os.path.isabs(base_url):
        compiler_options["baseUrl"] = str((base / base_url).resolve())
    compiler_options["jsx"] = "react"
    compiler_options["jsxFactory"] = JSX_FACTORY
    config["compilerOptions"] = compiler_options
    return config


@contextmanager
def derived_tsconfig(path: Path) -> Iterator[Path]:
    """Write a per-build tsconfig copy into the temp dir and always delete it."""
    temp_copy = Path(tempfile.gettempdir()) / f"tsconfig.{time.time_ns()}.json"
    temp_copy.write_text(json.dumps(derive_tsconfig(path), indent=2), encoding="utf-8")
    logger.debug("tsconfig copied to %s", temp_copy)
    try:
        yield temp_copy
    finally:
        temp_copy.unlink(missing_ok=True)
        logger.debug("Deleted tsconfig copy %s", temp_copy)


# ---------------------------------------------------------------------------
# Metadata patch
# ---------------------------------------------------------------------------
def patch_package_type(out_dir: Path, fmt: OutputFormat) -> bool:
    """Ensure dist/package.json declares the requested linkage.

    Returns False without writing when the field already matches.
    """
    pkg_path = out_dir / "package.json"
    try:
        pkg = json.loads(pkg_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        pkg = {}
    if not isinstance(pkg, dict):
        pkg = {}
    if pkg.get("type") == fmt.package_type:
        return False
    pkg["type"] = fmt.package_type
    out_dir.mkdir(parents=True, exist_ok=True)
    pkg_path.write_text(json.dumps(pkg, indent=2) + "\n", encoding="utf-8")
    return True


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------
def _copy_one(src: Path, dest: Path) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dest)
    return dest


async def copy_assets(files: Sequence[SourceFile], layout: ProjectLayout) -> List[Path]:
    """Copy non-source files into the mirrored output directories."""
    jobs = []
    for f in files:
        dest = destination_for(f.path, layout)
        logger.debug("Copying non-source file %s -> %s", f.path, dest)
        jobs.append(asyncio.to_thread(_copy_one, f.path, dest))
    try:
        return list(await asyncio.gather(*jobs))
    except OSError as exc:
        raise AssetIOError(f"Failed to copy {getattr(exc, 'filename', '')}: {exc}") from exc
