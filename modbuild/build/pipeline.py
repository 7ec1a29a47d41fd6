"""Build orchestrator.

Sequences one build pass:

    Clearing -> Classifying -> Compiling (templated-UI || plain)
      -> CopyingAssets -> NormalizingSpecifiers -> PatchingMetadata
      -> [Styles -> Binaries] -> EmittingDeclarations -> Done

Literal (stdin) builds skip discovery entirely and either write a single
output file or return the compiled text.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional, Sequence, Union

from modbuild.logger import ContextLogger, get_logger

from .auxiliary import build_binaries, build_styles, emit_declarations
from .classify import Dialect, SourceFile, classify_path, destination_for, discover, group_by_dialect
from .config import ProjectLayout, rewrites_disabled
from .engine import EngineOptions, EsbuildEngine, TransformEngine, engine_options, with_ui_preamble
from .normalize import normalize_files
from .output import (
    clear_output,
    copy_assets,
    derived_tsconfig,
    invalidate,
    patch_package_type,
)
from .progress import BuildReport, BuildStage, stage_progress
from .request import BuildRequest

logger = get_logger(__name__)


async def _compile_templated_ui(
    files: Sequence[SourceFile],
    engine: TransformEngine,
    options: EngineOptions,
    layout: ProjectLayout,
) -> List[Path]:
    async def _one(f: SourceFile) -> Path:
        source = await asyncio.to_thread(f.path.read_text, encoding="utf-8")
        outfile = destination_for(f.path, layout)
        await engine.build_buffer(with_ui_preamble(source), f.path, outfile, options)
        return outfile

    # Every file settles before the first failure is re-raised.
    results = await asyncio.gather(*(_one(f) for f in files), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def _compile_plain(
    files: Sequence[SourceFile],
    engine: TransformEngine,
    options: EngineOptions,
    layout: ProjectLayout,
) -> List[Path]:
    if not files:
        return []
    await engine.build_entry_points([f.path for f in files], options, layout)
    return [destination_for(f.path, layout) for f in files]


async def _compile(
    groups,
    engine: TransformEngine,
    options: EngineOptions,
    layout: ProjectLayout,
) -> List[Path]:
    # Both branches finish before the first failure is re-raised.
    results = await asyncio.gather(
        _compile_templated_ui(groups[Dialect.TEMPLATED_UI], engine, options, layout),
        _compile_plain(groups[Dialect.PLAIN], engine, options, layout),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            raise result
    ui_out, plain_out = results
    return [*ui_out, *plain_out]


async def _build_literal(
    request: BuildRequest,
    layout: ProjectLayout,
    engine: TransformEngine,
    log: ContextLogger,
) -> Optional[str]:
    report = BuildReport(mode=request.mode.value)
    source = request.literal_source or ""
    if request.no_write:
        options = engine_options(request, layout)
        async with stage_progress(
            report, BuildStage.COMPILING,
            "Transforming stdin.", "Transformed stdin.", "Error transforming stdin.",
            logger=log,
        ):
            code = await engine.transform(source, request.stdin_file, options)
        return code

    sourcefile = layout.resolve(request.stdin_file)
    outfile = destination_for(sourcefile, layout)
    with derived_tsconfig(layout.resolve(request.tsconfig)) as temp_config:
        options = engine_options(request, layout, temp_config)
        async with stage_progress(
            report, BuildStage.COMPILING,
            f"Building stdin to {outfile}.", f"Built stdin to {outfile}.", "Error building stdin.",
            logger=log,
        ):
            await engine.build_buffer(source, sourcefile, outfile, options)
    log.info("Use --no-write to print to stdout instead.")
    return None


async def _build_files(
    request: BuildRequest,
    layout: ProjectLayout,
    engine: TransformEngine,
    log: ContextLogger,
) -> BuildReport:
    report = BuildReport(mode=request.mode.value)
    log.info(f"modbuild [{request.mode.value}]", input=request.input)

    async with stage_progress(
        report, BuildStage.CLEARING,
        "Clearing output.", "Cleared output.", "Failed to clear output.",
        logger=log,
    ):
        if request.is_single_path:
            # Declaration outputs belong to tsc.
            if classify_path(request.input) is not Dialect.DECLARATION:
                await asyncio.to_thread(invalidate, destination_for(request.input, layout))
        elif request.clear:
            await asyncio.to_thread(clear_output, layout.out_dir)

    async with stage_progress(
        report, BuildStage.CLASSIFYING,
        "Discovering source files.", "Discovered source files.", "Failed to discover source files.",
        logger=log,
    ):
        files = await asyncio.to_thread(discover, request.input, layout)
        groups = group_by_dialect(files)
        report.declarations = len(groups[Dialect.DECLARATION])
        log.debug("Classified files", **{d.value: len(g) for d, g in groups.items()})

    with derived_tsconfig(layout.resolve(request.tsconfig)) as temp_config:
        options = engine_options(request, layout, temp_config)
        async with stage_progress(
            report, BuildStage.COMPILING,
            "Compiling TSX/TS/JS files.", "Compiled TSX/TS/JS files.", "Failed to compile files.",
            logger=log,
        ):
            report.compiled = await _compile(groups, engine, options, layout)

    async with stage_progress(
        report, BuildStage.COPYING_ASSETS,
        "Copying non-source files to dist/.", "Copied non-source files to dist/.",
        "Failed to copy non-source files to dist/.",
        logger=log,
    ):
        report.copied_assets = await copy_assets(groups[Dialect.ASSET], layout)

    if not rewrites_disabled():
        async with stage_progress(
            report, BuildStage.NORMALIZING,
            "Normalizing import specifiers.", "Normalized import specifiers.",
            "Failed to normalize import specifiers.",
            logger=log,
        ):
            sources = {destination_for(f.path, layout): f for f in files if f.compiled}
            for result in await normalize_files(report.compiled, sources):
                report.rewritten += result.rewritten
                report.unresolved.extend(result.unresolved)

    async with stage_progress(
        report, BuildStage.PATCHING_METADATA,
        "Checking package type in dist/.", "Checked package type in dist/.",
        "Failed to patch dist/package.json.",
        logger=log,
    ):
        report.patched_metadata = await asyncio.to_thread(
            patch_package_type, layout.out_dir, request.format
        )
        if report.patched_metadata:
            log.info(f'Forced "type" package.json field in dist ({request.format.package_type}).')

    if request.runtime_only:
        report.state = BuildStage.DONE
        return report

    if not request.js_only:
        async with stage_progress(
            report, BuildStage.STYLES,
            "Bundling styles.", "Bundled styles.", "Failed to bundle styles.",
            logger=log,
        ):
            await build_styles(
                request.styles, layout, dev=request.development, bundle=request.bundle
            )

        if request.binary:
            async with stage_progress(
                report, BuildStage.BINARIES,
                "Building binary executables.", "Built binary executables.",
                "Failed to build binaries.",
                logger=log,
            ):
                await build_binaries(layout)

    async with stage_progress(
        report, BuildStage.DECLARATIONS,
        "Generating type declarations.", "Generated type declarations.",
        "Failed to generate type declarations.",
        logger=log,
    ):
        report.declarations_emitted = await emit_declarations(layout, request.tsconfig)

    report.state = BuildStage.DONE
    log.info(
        "Build complete.",
        compiled=len(report.compiled),
        declarations=report.declarations,
        failures=len(report.failures),
    )
    return report


async def build(
    request: BuildRequest,
    *,
    engine: Optional[TransformEngine] = None,
    layout: Optional[ProjectLayout] = None,
) -> Union[BuildReport, str, None]:
    """Run one build pass.

    Returns a BuildReport for file builds, the compiled text for
    write-suppressed literal builds, and None for literal builds that write.
    """
    request = request.normalized()
    layout = layout or ProjectLayout.from_root()
    engine = engine or EsbuildEngine(layout=layout)
    log = ContextLogger(logger, mode=request.mode.value)
    if request.is_literal:
        return await _build_literal(request, layout, engine, log)
    return await _build_files(request, layout, engine, log)


def run_build(request: BuildRequest, **kwargs) -> Union[BuildReport, str, None]:
    """Run a build from synchronous code."""
    return asyncio.run(build(request, **kwargs))
