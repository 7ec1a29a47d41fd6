"""Rewrite relative import/export specifiers in emitted output.

This is a shallow lexical scan over declarative clauses only:

    import x from "./a"      export * from "./a"      import "./a"

Dynamic `import()` calls and computed specifiers are not touched. Bare
package specifiers are never rewritten.
"""
from __future__ import annotations

import asyncio
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from modbuild.logger import UnresolvedSpecifierWarning, get_logger

from .classify import SourceFile
from .config import CANONICAL_EXT

logger = get_logger(__name__)

_CLAUSE_RE = re.compile(
    r"""(?P<head>\b(?:import|export)\b[^;'"`]*?\bfrom\s*|\bimport\s*)"""
    r"""(?P<q>["'])(?P<spec>[^"'\r\n]+)(?P=q)"""
)


@dataclass(frozen=True)
class EmittedArtifact:
    output_path: Path
    source: Optional[SourceFile] = None
    specifiers: Tuple[str, ...] = ()


@dataclass
class NormalizeResult:
    artifact: EmittedArtifact
    rewritten: int = 0
    unresolved: List[UnresolvedSpecifierWarning] = field(default_factory=list)


def is_relative(spec: str) -> bool:
    return spec in (".", "..") or spec.startswith(("./", "../"))


def scan_specifiers(text: str) -> List[str]:
    return [m.group("spec") for m in _CLAUSE_RE.finditer(text)]


def resolve_specifier(spec: str, base_dir: Path) -> Tuple[str, bool]:
    """Return (specifier, resolved) for one relative specifier.

    An existing file is left alone. Otherwise `<spec>.js` is preferred over
    `<spec>/index.js`.
    """
    target = Path(os.path.normpath(base_dir / spec))
    # Bare "." / ".." and trailing-slash specifiers name a directory.
    dir_only = spec in (".", "..") or spec.endswith("/")
    if not dir_only and target.is_file():
        return spec, True
    if spec.endswith(CANONICAL_EXT):
        return spec, False
    if not dir_only and target.with_name(target.name + CANONICAL_EXT).is_file():
        return spec + CANONICAL_EXT, True
    if target.is_dir() and (target / f"index{CANONICAL_EXT}").is_file():
        return spec.rstrip("/") + f"/index{CANONICAL_EXT}", True
    return spec, False


def normalize_text(text: str, base_dir: Path, file_label: str = "") -> Tuple[str, int, List[UnresolvedSpecifierWarning]]:
    rewritten = 0
    unresolved: List[UnresolvedSpecifierWarning] = []

    def _sub(m: re.Match) -> str:
        nonlocal rewritten
        spec = m.group("spec")
        if not is_relative(spec):
            return m.group(0)
        new_spec, ok = resolve_specifier(spec, base_dir)
        if not ok:
            unresolved.append(UnresolvedSpecifierWarning(file_label, spec))
            return m.group(0)
        if new_spec == spec:
            return m.group(0)
        rewritten += 1
        q = m.group("q")
        return f"{m.group('head')}{q}{new_spec}{q}"

    return _CLAUSE_RE.sub(_sub, text), rewritten, unresolved


def normalize_file(path: str | Path, source: Optional[SourceFile] = None) -> NormalizeResult:
    """Normalize one emitted file in place; files with no rewrites are not written."""
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    new_text, rewritten, unresolved = normalize_text(text, p.parent, str(p))
    if rewritten:
        p.write_text(new_text, encoding="utf-8")
    for warning in unresolved:
        logger.warning(str(warning))
    artifact = EmittedArtifact(
        output_path=p,
        source=source,
        specifiers=tuple(scan_specifiers(new_text)),
    )
    return NormalizeResult(artifact=artifact, rewritten=rewritten, unresolved=unresolved)


async def normalize_files(
    paths: Iterable[Path],
    sources: Optional[dict] = None,
) -> List[NormalizeResult]:
    """Normalize just-emitted files concurrently; missing files are skipped."""
    sources = sources or {}
    existing = [Path(p) for p in paths if Path(p).is_file()]
    return list(
        await asyncio.gather(
            *(asyncio.to_thread(normalize_file, p, sources.get(p)) for p in existing)
        )
    )
