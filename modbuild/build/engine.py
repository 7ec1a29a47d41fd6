"""Transform invoker: a normalized wrapper around the esbuild CLI."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from modbuild.async_subprocess import run_subprocess_async
from modbuild.logger import CompileError, get_logger

from .config import (
    DEFAULT_EXTERNALS,
    DEFAULT_PLATFORM,
    ESM_REQUIRE_SHIM,
    JSX_FACTORY,
    UI_PREAMBLE,
    ProjectLayout,
    resolve_tool,
)
from .request import BuildRequest, OutputFormat

logger = get_logger(__name__)


@dataclass(frozen=True)
class EnginePlugin:
    """A named hook contributing engine flags."""

    name: str
    externals: Tuple[str, ...] = ()

    def flags(self) -> List[str]:
        return [f"--external:{pattern}" for pattern in self.externals]


# Same-package relative imports stay imports instead of being inlined.
RELATIVE_EXTERNS = EnginePlugin(name="relative-externs", externals=("./*", "../*"))


@dataclass(frozen=True)
class EngineOptions:
    target: str
    format: OutputFormat
    minify: bool
    bundle: bool
    splitting: bool
    define: Dict[str, str]
    external: Tuple[str, ...] = ()
    platform: str = DEFAULT_PLATFORM
    tsconfig: Optional[Path] = None
    banner: Optional[str] = None
    plugins: Tuple[EnginePlugin, ...] = field(default_factory=tuple)
    charset: str = "utf8"
    log_level: str = "error"

    def flags(self, *, single_buffer: bool = False, transform: bool = False) -> List[str]:
        """Render engine flags.

        Single-buffer builds never split chunks; transforms have no bundling
        surface at all (no externals, banner or plugins).
        """
        args = [
            f"--target={self.target}",
            f"--format={self.format.value}",
            f"--charset={self.charset}",
            "--jsx=transform",
            f"--jsx-factory={JSX_FACTORY}",
            f"--log-level={self.log_level}",
        ]
        if self.minify:
            args.append("--minify")
        for key, value in self.define.items():
            args.append(f"--define:{key}={value}")
        if transform:
            return args
        args.append(f"--platform={self.platform}")
        if self.tsconfig is not None:
            args.append(f"--tsconfig={self.tsconfig}")
        if self.bundle:
            args.append("--bundle")
            args.append("--tree-shaking=true")
            for ext in self.external:
                args.append(f"--external:{ext}")
            # esbuild only accepts externals for bundles
            for plugin in self.plugins:
                args.extend(plugin.flags())
            if self.splitting and not single_buffer:
                args.append("--splitting")
            if self.banner:
                args.append(f"--banner:js={self.banner}")
        return args


def engine_options(
    request: BuildRequest,
    layout: ProjectLayout,
    tsconfig: Optional[Path] = None,
) -> EngineOptions:
    """Translate a normalized BuildRequest into engine options."""
    pkg = layout.read_package_json()
    plugins: List[EnginePlugin] = []
    if not request.standalone:
        plugins.append(RELATIVE_EXTERNS)
    banner = None
    if request.bundle and request.format is OutputFormat.ESM:
        banner = ESM_REQUIRE_SHIM
    mode = request.mode.value
    return EngineOptions(
        target=request.target,
        format=request.format,
        minify=not request.development,
        bundle=request.bundle,
        splitting=request.splitting,
        define={"process.env.NODE_ENV": json.dumps(mode)},
        external=(*DEFAULT_EXTERNALS, *request.external) if request.bundle else (),
        platform=str(pkg.get("platform") or DEFAULT_PLATFORM),
        tsconfig=tsconfig,
        banner=banner,
        plugins=tuple(plugins),
        log_level="warning" if request.development else "error",
    )


class TransformEngine(Protocol):
    async def build_entry_points(
        self, entry_points: Sequence[Path], options: EngineOptions, layout: ProjectLayout
    ) -> None: ...

    async def build_buffer(
        self, source: str, sourcefile: Path, outfile: Path, options: EngineOptions
    ) -> None: ...

    async def transform(self, source: str, sourcefile: str, options: EngineOptions) -> str: ...


class EsbuildEngine:
    """Runs the esbuild binary as a subprocess."""

    def __init__(self, binary: Optional[str] = None, layout: Optional[ProjectLayout] = None):
        self.layout = layout or ProjectLayout.from_root()
        self.binary = binary or resolve_tool("esbuild", self.layout.root)

    async def _run(self, args: List[str], *, stdin: Optional[str] = None, cwd: Optional[Path] = None) -> str:
        cmd = [self.binary, *args]
        logger.debug("esbuild %s", " ".join(args))
        result = await run_subprocess_async(
            cmd,
            cwd=str(cwd or self.layout.root),
            input_data=stdin,
        )
        if not result["ok"]:
            raise CompileError(
                f"esbuild exited with status {result['code']}",
                diagnostic=result.get("stderr", ""),
            )
        if result.get("stderr"):
            logger.warning(result["stderr"].strip())
        return result["stdout"]

    async def build_entry_points(
        self, entry_points: Sequence[Path], options: EngineOptions, layout: ProjectLayout
    ) -> None:
        if not entry_points:
            return
        args = [
            *[str(p) for p in entry_points],
            f"--outbase={layout.src_dir}",
            f"--outdir={layout.out_dir}",
            *options.flags(),
        ]
        await self._run(args, cwd=layout.root)

    async def build_buffer(
        self, source: str, sourcefile: Path, outfile: Path, options: EngineOptions
    ) -> None:
        # stdin entry points resolve relative imports from the process cwd
        args = [
            f"--sourcefile={sourcefile}",
            "--loader=tsx",
            f"--outfile={outfile}",
            *options.flags(single_buffer=True),
        ]
        resolve_dir = Path(sourcefile).parent
        await self._run(args, stdin=source, cwd=resolve_dir if resolve_dir.is_dir() else None)

    async def transform(self, source: str, sourcefile: str, options: EngineOptions) -> str:
        args = [f"--sourcefile={sourcefile}", "--loader=tsx", *options.flags(transform=True)]
        return await self._run(args, stdin=source)


def with_ui_preamble(source: str) -> str:
    """Prefix templated-UI source with the runtime factory imports."""
    return UI_PREAMBLE + source
