"""Stage reporting for the build state machine."""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from modbuild.logger import ContextLogger, UnresolvedSpecifierWarning, get_logger


class BuildStage(str, Enum):
    IDLE = "idle"
    CLEARING = "clearing"
    CLASSIFYING = "classifying"
    COMPILING = "compiling"
    COPYING_ASSETS = "copying-assets"
    NORMALIZING = "normalizing-specifiers"
    PATCHING_METADATA = "patching-metadata"
    STYLES = "styles"
    BINARIES = "binaries"
    DECLARATIONS = "emitting-declarations"
    DONE = "done"
    FAILED = "failed"


# Stages whose failure fails the whole build
REQUIRED_STAGES = frozenset({
    BuildStage.CLEARING,
    BuildStage.CLASSIFYING,
    BuildStage.COMPILING,
    BuildStage.COPYING_ASSETS,
    BuildStage.NORMALIZING,
    BuildStage.PATCHING_METADATA,
})


@dataclass
class BuildReport:
    mode: str = "production"
    state: BuildStage = BuildStage.IDLE
    stages: List[Tuple[BuildStage, str]] = field(default_factory=list)
    compiled: List[Path] = field(default_factory=list)
    copied_assets: List[Path] = field(default_factory=list)
    declarations: int = 0
    declarations_emitted: int = 0
    rewritten: int = 0
    unresolved: List[UnresolvedSpecifierWarning] = field(default_factory=list)
    patched_metadata: bool = False
    failures: List[Tuple[BuildStage, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is BuildStage.DONE

    @property
    def partial(self) -> bool:
        return self.ok and bool(self.failures)

    def status_of(self, stage: BuildStage) -> Optional[str]:
        for s, status in reversed(self.stages):
            if s is stage:
                return status
        return None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "mode": self.mode,
            "state": self.state.value,
            "stages": [{"stage": s.value, "status": status} for s, status in self.stages],
            "compiled": len(self.compiled),
            "copied_assets": len(self.copied_assets),
            "declarations": self.declarations,
            "declarations_emitted": self.declarations_emitted,
            "rewritten_specifiers": self.rewritten,
            "unresolved_specifiers": [
                {"file": w.file, "specifier": w.specifier} for w in self.unresolved
            ],
            "patched_metadata": self.patched_metadata,
            "failures": [{"stage": s.value, "error": err} for s, err in self.failures],
        }


@asynccontextmanager
async def stage_progress(
    report: BuildReport,
    stage: BuildStage,
    start: str,
    success: str,
    error: str,
    *,
    logger: Optional[ContextLogger] = None,
) -> AsyncIterator[None]:
    """Log start/success/failure of one stage and record it on the report.

    Required stages re-raise; optional stages record the failure and let the
    build continue with the next stage.
    """
    log = logger or ContextLogger(get_logger("modbuild.build"))
    report.state = stage
    report.stages.append((stage, "started"))
    log.info(start, stage=stage.value)
    t0 = time.perf_counter()
    try:
        yield
    except Exception as exc:
        report.stages.append((stage, "failed"))
        if stage in REQUIRED_STAGES:
            report.state = BuildStage.FAILED
            log.error(f"{error} {exc}", stage=stage.value)
            raise
        report.failures.append((stage, str(exc)))
        log.error(f"{error} {exc}", stage=stage.value)
        return
    report.stages.append((stage, "succeeded"))
    log.info(success, stage=stage.value, elapsed_ms=round((time.perf_counter() - t0) * 1000, 1))
