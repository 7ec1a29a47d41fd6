import json
import sys
from pathlib import Path
from typing import List, Sequence

import pytest

# Ensure repository root is on sys.path so `import modbuild...` works locally
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from modbuild.build.config import ProjectLayout  # noqa: E402
from modbuild.logger import CompileError  # noqa: E402


class FakeEngine:
    """Stands in for esbuild: copies source text to the computed outputs.

    Any source containing SYNTAX_ERROR is rejected like a real engine would.
    """

    def __init__(self):
        self.entry_point_calls: List[List[Path]] = []
        self.buffer_calls: List[tuple] = []
        self.transform_calls: List[tuple] = []

    @staticmethod
    def _check(source: str, label) -> None:
        if "SYNTAX_ERROR" in source:
            raise CompileError(f"failed to compile {label}", diagnostic="error: Unexpected token")

    async def build_entry_points(self, entry_points: Sequence[Path], options, layout: ProjectLayout) -> None:
        self.entry_point_calls.append(list(entry_points))
        for entry in entry_points:
            source = Path(entry).read_text(encoding="utf-8")
            self._check(source, entry)
            out = layout.out_dir / Path(entry).relative_to(layout.src_dir)
            out = out.with_suffix(".js")
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_text(source, encoding="utf-8")

    async def build_buffer(self, source: str, sourcefile: Path, outfile: Path, options) -> None:
        self.buffer_calls.append((source, Path(sourcefile), Path(outfile)))
        self._check(source, sourcefile)
        Path(outfile).parent.mkdir(parents=True, exist_ok=True)
        Path(outfile).write_text(source, encoding="utf-8")

    async def transform(self, source: str, sourcefile: str, options) -> str:
        self.transform_calls.append((source, sourcefile))
        self._check(source, sourcefile)
        return f"// {sourcefile}\n{source}"

    @property
    def compiled_inputs(self) -> List[Path]:
        paths = [p for call in self.entry_point_calls for p in call]
        paths.extend(sf for _, sf, _ in self.buffer_calls)
        return paths


@pytest.fixture()
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def project(tmp_path: Path) -> ProjectLayout:
    """A minimal package: package.json, tsconfig.json and an empty src/."""
    (tmp_path / "src").mkdir()
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "fixture", "type": "module"}), encoding="utf-8"
    )
    (tmp_path / "tsconfig.json").write_text(
        '{\n  // comments are allowed\n  "compilerOptions": {"jsx": "preserve", "strict": true,},\n}\n',
        encoding="utf-8",
    )
    return ProjectLayout.from_root(tmp_path)


def write(root: Path, rel: str, text: str) -> Path:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p


@pytest.fixture()
def write_file():
    return write


@pytest.fixture(autouse=True)
def _no_rewrite_override(monkeypatch):
    """Tests control NO_REWRITES explicitly."""
    monkeypatch.delenv("NO_REWRITES", raising=False)
    yield
