"""Optional post-compile stages: styles, binaries, type declarations.

Each stage is a subprocess call to an external tool. Failures surface as
AuxiliaryStageError so the orchestrator can log them and move on.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

from modbuild.async_subprocess import run_subprocess_async
from modbuild.logger import AuxiliaryStageError, get_logger

from .config import DEFAULT_STYLE_BUNDLE, ProjectLayout, pkg_targets, resolve_tool

logger = get_logger(__name__)


async def _run_tool(name: str, args: List[str], layout: ProjectLayout) -> str:
    cmd = [resolve_tool(name, layout.root), *args]
    result = await run_subprocess_async(cmd, cwd=str(layout.root))
    if not result["ok"]:
        detail = (result.get("stderr") or result.get("stdout") or "").strip()
        raise AuxiliaryStageError(f"{name} exited with status {result['code']}: {detail[:500]}")
    return result["stdout"]


def style_bundle_path(layout: ProjectLayout) -> Path:
    style = layout.read_package_json().get("style") or DEFAULT_STYLE_BUNDLE
    return layout.resolve(style)


async def build_stylesheet(entry: Path, output: Path, dev: bool, layout: ProjectLayout) -> Path:
    """Compile one stylesheet with the style toolchain."""
    output.parent.mkdir(parents=True, exist_ok=True)
    args = ["-i", str(entry), "-o", str(output)]
    if not dev:
        args.append("--minify")
    await _run_tool("tailwindcss", args, layout)
    return output


async def build_styles(
    styles: str,
    layout: ProjectLayout,
    *,
    dev: bool,
    bundle: bool,
) -> List[Path]:
    """Build the global stylesheet, then every copied stylesheet in bundle mode.

    Returns the stylesheets written; an absent entry point is not an error.
    """
    entry = layout.resolve(styles)
    if not entry.exists():
        logger.info("Bundle styles not found for this project. Checked: %s", entry)
        return []
    written = [await build_stylesheet(entry, style_bundle_path(layout), dev, layout)]
    if bundle:
        emitted = sorted(layout.out_dir.rglob("*.css"))
        written.extend(
            await asyncio.gather(
                *(build_stylesheet(css, css, dev, layout) for css in emitted)
            )
        )
    return written


def binary_entry(layout: ProjectLayout) -> Path:
    pkg = layout.read_package_json()
    bin_field = pkg.get("bin")
    if isinstance(bin_field, dict):
        bin_field = next(iter(bin_field.values()), None)
    return layout.resolve(bin_field or (layout.out_dir / "bin.js"))


async def build_binaries(layout: ProjectLayout, targets: Optional[str] = None) -> Path:
    """Package the output tree into platform executables named bin-<platform>."""
    entry = binary_entry(layout)
    if not entry.exists():
        raise AuxiliaryStageError(f"Binary entry point {entry} does not exist")
    logger.warning(
        "Top-level await is not supported by the binary packager; "
        "wrap it in an async IIFE."
    )
    await _run_tool(
        "pkg",
        [str(entry), "--targets", targets or pkg_targets(), "--output", str(layout.root / "bin")],
        layout,
    )
    return entry


async def emit_declarations(layout: ProjectLayout, tsconfig: str) -> int:
    """Run the declaration emitter and return how many .d.ts files it wrote."""
    project = layout.resolve(tsconfig)
    args = ["--declaration", "--emitDeclarationOnly", "--outDir", str(layout.out_dir)]
    if project.exists():
        args = ["-p", str(project), *args]
    await _run_tool("tsc", args, layout)
    return sum(1 for _ in layout.out_dir.rglob("*.d.ts"))
