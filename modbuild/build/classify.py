"""Source discovery and dialect classification."""
from __future__ import annotations

import glob
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List

from .config import (
    CANONICAL_EXT,
    DECLARATION_SUFFIXES,
    PLAIN_EXTS,
    TEMPLATED_UI_EXTS,
    ProjectLayout,
)


class Dialect(str, Enum):
    TEMPLATED_UI = "templated-ui"
    PLAIN = "plain"
    ASSET = "asset"
    DECLARATION = "declaration"

    @property
    def compiled(self) -> bool:
        return self in (Dialect.TEMPLATED_UI, Dialect.PLAIN)


@dataclass(frozen=True)
class SourceFile:
    path: Path
    dialect: Dialect
    relative: str

    @property
    def compiled(self) -> bool:
        return self.dialect.compiled


def classify_path(path: str | Path) -> Dialect:
    name = Path(path).name.lower()
    if name.endswith(DECLARATION_SUFFIXES):
        return Dialect.DECLARATION
    suffix = Path(name).suffix
    if suffix in TEMPLATED_UI_EXTS:
        return Dialect.TEMPLATED_UI
    if suffix in PLAIN_EXTS:
        return Dialect.PLAIN
    return Dialect.ASSET


def destination_for(path: str | Path, layout: ProjectLayout) -> Path:
    """Map a source path to its output path.

    The `src` root segment is replaced by `dist`; code files get the
    canonical `.js` extension, assets keep their name.
    """
    p = Path(path)
    if not p.is_absolute():
        p = layout.root / p
    try:
        rel = p.relative_to(layout.src_dir)
    except ValueError:
        rel = Path(p.name)
    dest = layout.out_dir / rel
    if classify_path(p) in (Dialect.TEMPLATED_UI, Dialect.PLAIN):
        dest = dest.with_suffix(CANONICAL_EXT)
    return dest


def _source_file(path: Path, layout: ProjectLayout) -> SourceFile:
    try:
        rel = path.relative_to(layout.root).as_posix()
    except ValueError:
        rel = path.name
    return SourceFile(path=path, dialect=classify_path(path), relative=rel)


def discover(pattern: str, layout: ProjectLayout) -> List[SourceFile]:
    """Expand the inclusion pattern and classify every matched file.

    Absolute patterns that expand to nothing (some platforms do not glob
    absolute paths) are kept as a single-element result.
    """
    if os.path.isabs(pattern):
        matches = glob.glob(pattern, recursive=True)
    else:
        matches = glob.glob(pattern, root_dir=str(layout.root), recursive=True)
        matches = [str(layout.root / m) for m in matches]

    seen = set()
    files: List[SourceFile] = []
    for m in sorted(matches):
        p = Path(m).resolve()
        if p in seen or not p.is_file():
            continue
        seen.add(p)
        files.append(_source_file(p, layout))

    if not files and os.path.isabs(pattern) and not glob.has_magic(pattern):
        files.append(_source_file(Path(pattern), layout))
    return files


def group_by_dialect(files: Iterable[SourceFile]) -> Dict[Dialect, List[SourceFile]]:
    groups: Dict[Dialect, List[SourceFile]] = {d: [] for d in Dialect}
    for f in files:
        groups[f.dialect].append(f)
    return groups
