import json

import pytest

from modbuild.build.classify import Dialect, SourceFile
from modbuild.build.output import (
    clear_output,
    copy_assets,
    derive_tsconfig,
    derived_tsconfig,
    invalidate,
    patch_package_type,
    read_tsconfig,
    remove_output_tree,
)
from modbuild.build.request import OutputFormat
from modbuild.logger import AssetIOError


@pytest.mark.unit
def test_clear_output_removes_tree(project, write_file):
    write_file(project.root, "dist/stale.js", "old")
    write_file(project.root, "dist/deep/stale.js", "old")
    clear_output(project.out_dir)
    assert not project.out_dir.exists()
    # clearing a missing tree is a no-op
    clear_output(project.out_dir)


@pytest.mark.unit
def test_invalidate_touches_only_one_file(project, write_file):
    keep = write_file(project.root, "dist/keep.js", "keep")
    target = write_file(project.root, "dist/a.js", "a")
    assert invalidate(target) is True
    assert not target.exists()
    assert keep.read_text() == "keep"
    assert invalidate(target) is False


@pytest.mark.unit
def test_remove_output_tree_for_source_directory(project, write_file):
    write_file(project.root, "dist/ui/App.js", "")
    write_file(project.root, "dist/other.js", "")
    assert remove_output_tree(project.src_dir / "ui", project) is True
    assert not (project.out_dir / "ui").exists()
    assert (project.out_dir / "other.js").exists()
    # never removes the whole output root, or paths outside src/
    assert remove_output_tree(project.src_dir, project) is False
    assert remove_output_tree(project.root / "elsewhere", project) is False


@pytest.mark.unit
def test_read_tsconfig_accepts_comments_and_trailing_commas(project):
    config = read_tsconfig(project.root / "tsconfig.json")
    assert config == {"compilerOptions": {"jsx": "preserve", "strict": True}}
    assert read_tsconfig(project.root / "absent.json") == {}


@pytest.mark.unit
def test_read_tsconfig_keeps_slashes_inside_strings(tmp_path):
    p = tmp_path / "tsconfig.json"
    p.write_text('{"compilerOptions": {"paths": {"@/*": ["./src/*"]}}, /* c */ "include": ["src"]}')
    assert read_tsconfig(p) == {"compilerOptions": {"paths": {"@/*": ["./src/*"]}}, "include": ["src"]}


@pytest.mark.unit
def test_derive_tsconfig_overrides_ui_fields_and_reanchors(tmp_path):
    p = tmp_path / "tsconfig.json"
    p.write_text(json.dumps({"extends": "./base.json", "compilerOptions": {"baseUrl": "."}}))
    config = derive_tsconfig(p)
    assert config["compilerOptions"]["jsx"] == "react"
    assert config["compilerOptions"]["jsxFactory"] == "React.createElement"
    assert config["compilerOptions"]["baseUrl"] == str(tmp_path.resolve())
    assert config["extends"] == str((tmp_path / "base.json").resolve())


@pytest.mark.unit
def test_derived_tsconfig_deleted_after_use(project):
    with derived_tsconfig(project.root / "tsconfig.json") as temp:
        assert temp.exists()
        assert json.loads(temp.read_text())["compilerOptions"]["jsx"] == "react"
    assert not temp.exists()


@pytest.mark.unit
def test_derived_tsconfig_deleted_on_failure(project):
    seen = []
    with pytest.raises(RuntimeError):
        with derived_tsconfig(project.root / "tsconfig.json") as temp:
            seen.append(temp)
            raise RuntimeError("boom")
    assert not seen[0].exists()


@pytest.mark.unit
def test_patch_package_type_is_idempotent(project):
    assert patch_package_type(project.out_dir, OutputFormat.ESM) is True
    pkg_path = project.out_dir / "package.json"
    first = pkg_path.read_bytes()
    assert json.loads(first) == {"type": "module"}

    assert patch_package_type(project.out_dir, OutputFormat.ESM) is False
    assert pkg_path.read_bytes() == first

    assert patch_package_type(project.out_dir, OutputFormat.CJS) is True
    assert json.loads(pkg_path.read_text()) == {"type": "commonjs"}


@pytest.mark.unit
def test_patch_package_type_preserves_other_fields(project, write_file):
    write_file(project.root, "dist/package.json", json.dumps({"name": "x", "type": "commonjs"}))
    patch_package_type(project.out_dir, OutputFormat.ESM)
    assert json.loads((project.out_dir / "package.json").read_text()) == {"name": "x", "type": "module"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_copy_assets_mirrors_layout(project, write_file):
    logo = write_file(project.root, "src/assets/logo.png", "png-bytes")
    files = [SourceFile(path=logo, dialect=Dialect.ASSET, relative="src/assets/logo.png")]
    copied = await copy_assets(files, project)
    assert copied == [project.out_dir / "assets" / "logo.png"]
    assert copied[0].read_text() == "png-bytes"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_copy_assets_failure_is_asset_error(project):
    ghost = project.src_dir / "ghost.png"
    files = [SourceFile(path=ghost, dialect=Dialect.ASSET, relative="src/ghost.png")]
    with pytest.raises(AssetIOError):
        await copy_assets(files, project)
