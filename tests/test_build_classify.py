import pytest

from modbuild.build.classify import (
    Dialect,
    classify_path,
    destination_for,
    discover,
    group_by_dialect,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "name, dialect",
    [
        ("types.d.ts", Dialect.DECLARATION),
        ("Button.d.mts", Dialect.DECLARATION),
        ("App.tsx", Dialect.TEMPLATED_UI),
        ("App.jsx", Dialect.TEMPLATED_UI),
        ("index.ts", Dialect.PLAIN),
        ("legacy.cjs", Dialect.PLAIN),
        ("logo.png", Dialect.ASSET),
        ("index.css", Dialect.ASSET),
    ],
)
def test_classify_priority(name, dialect):
    assert classify_path(f"/x/src/{name}") is dialect


@pytest.mark.unit
def test_destination_substitutes_root_and_extension(project):
    src = project.src_dir
    assert destination_for(src / "a.ts", project) == project.out_dir / "a.js"
    assert destination_for(src / "ui" / "App.tsx", project) == project.out_dir / "ui" / "App.js"
    assert destination_for(src / "assets" / "logo.png", project) == project.out_dir / "assets" / "logo.png"
    # relative paths are anchored at the project root
    assert destination_for("src/path/to/newFile.ts", project) == project.out_dir / "path/to/newFile.js"


@pytest.mark.unit
def test_discover_classifies_and_dedupes(project, write_file):
    write_file(project.root, "src/a.ts", "export const a = 1;")
    write_file(project.root, "src/ui/App.tsx", "export default () => <div/>;")
    write_file(project.root, "src/types.d.ts", "export type T = number;")
    write_file(project.root, "src/assets/logo.png", "png")

    files = discover("src/**/*", project)
    rel = sorted(f.relative for f in files)
    assert rel == ["src/a.ts", "src/assets/logo.png", "src/types.d.ts", "src/ui/App.tsx"]
    assert len({f.path for f in files}) == len(files)

    groups = group_by_dialect(files)
    assert [f.relative for f in groups[Dialect.DECLARATION]] == ["src/types.d.ts"]
    assert [f.relative for f in groups[Dialect.TEMPLATED_UI]] == ["src/ui/App.tsx"]
    assert not any(f.compiled for f in groups[Dialect.DECLARATION])


@pytest.mark.unit
def test_discover_keeps_unmatched_absolute_input(project):
    missing = project.src_dir / "not-yet-written.ts"
    files = discover(str(missing), project)
    assert len(files) == 1
    assert files[0].path == missing
    assert files[0].dialect is Dialect.PLAIN


@pytest.mark.unit
def test_discover_empty_is_not_an_error(project):
    assert discover("src/**/*", project) == []
