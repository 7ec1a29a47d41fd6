import json
import stat
import sys

import pytest

from modbuild.build.auxiliary import (
    binary_entry,
    build_binaries,
    build_styles,
    emit_declarations,
    style_bundle_path,
)
from modbuild.logger import AuxiliaryStageError


def _fake_tool(path, body: str):
    """Write an executable python script standing in for a node tool."""
    path.write_text(f"#!{sys.executable}\nimport sys, pathlib\n{body}\n")
    path.chmod(path.stat().st_mode | stat.S_IEXEC)
    return path


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_style_entry_is_skipped(project):
    assert await build_styles("src/components/index.css", project, dev=False, bundle=False) == []


@pytest.mark.unit
def test_style_bundle_path_from_package_json(project):
    assert style_bundle_path(project) == project.root / "dist" / "bundle.css"
    project.package_json.write_text(json.dumps({"style": "dist/styles.css"}))
    assert style_bundle_path(project) == project.root / "dist" / "styles.css"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_styles_invoke_tool_with_minify(project, write_file, tmp_path, monkeypatch):
    log = tmp_path / "tailwind.log"
    tool = _fake_tool(
        tmp_path / "tailwindcss",
        f"pathlib.Path({str(log)!r}).write_text(' '.join(sys.argv[1:]))",
    )
    monkeypatch.setenv("TAILWIND_BIN", str(tool))
    write_file(project.root, "src/components/index.css", "@tailwind base;")

    written = await build_styles("src/components/index.css", project, dev=False, bundle=False)

    assert written == [project.out_dir / "bundle.css"]
    args = log.read_text().split()
    assert args[0] == "-i" and args[1].endswith("index.css")
    assert "--minify" in args


@pytest.mark.unit
@pytest.mark.asyncio
async def test_declarations_counted_after_emit(project, tmp_path, monkeypatch):
    tool = _fake_tool(
        tmp_path / "tsc",
        "out = pathlib.Path(sys.argv[sys.argv.index('--outDir') + 1])\n"
        "out.mkdir(parents=True, exist_ok=True)\n"
        "(out / 'a.d.ts').write_text('export {};')\n"
        "(out / 'b.d.ts').write_text('export {};')",
    )
    monkeypatch.setenv("TSC_BIN", str(tool))
    assert await emit_declarations(project, "tsconfig.json") == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_tool_failure_raises_auxiliary_error(project, tmp_path, monkeypatch):
    tool = _fake_tool(tmp_path / "tsc", "sys.stderr.write('TS2307: Cannot find module'); sys.exit(2)")
    monkeypatch.setenv("TSC_BIN", str(tool))
    with pytest.raises(AuxiliaryStageError, match="TS2307"):
        await emit_declarations(project, "tsconfig.json")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_binaries_require_entry_point(project):
    project.package_json.write_text(json.dumps({"bin": {"tool": "dist/cli.js"}}))
    assert binary_entry(project) == project.root / "dist" / "cli.js"
    with pytest.raises(AuxiliaryStageError):
        await build_binaries(project)
