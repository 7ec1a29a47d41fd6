import pytest

from modbuild.build.normalize import (
    normalize_file,
    normalize_files,
    normalize_text,
    resolve_specifier,
    scan_specifiers,
)


@pytest.fixture
def dist(tmp_path):
    d = tmp_path / "dist"
    d.mkdir()
    (d / "b.js").write_text("export const b = 1;\n")
    (d / "lib").mkdir()
    (d / "lib" / "index.js").write_text("export {};\n")
    (d / "util.js").write_text("export {};\n")
    return d


@pytest.mark.unit
def test_extensionless_sibling_is_rewritten(dist):
    a = dist / "a.js"
    a.write_text('import { b } from "./b";\nconsole.log(b);\n')

    result = normalize_file(a)

    assert a.read_text() == 'import { b } from "./b.js";\nconsole.log(b);\n'
    assert result.rewritten == 1
    assert result.unresolved == []
    assert result.artifact.specifiers == ("./b.js",)


@pytest.mark.unit
def test_directory_with_index_gets_index_suffix(dist):
    text, rewritten, unresolved = normalize_text('export * from "./lib";', dist)
    assert text == 'export * from "./lib/index.js";'
    assert rewritten == 1
    assert not unresolved


@pytest.mark.unit
def test_sibling_file_wins_over_directory_index(dist):
    (dist / "util").mkdir()
    (dist / "util" / "index.js").write_text("")
    assert resolve_specifier("./util", dist) == ("./util.js", True)


@pytest.mark.unit
def test_bare_and_resolved_specifiers_untouched(dist):
    source = (
        'import React from "react";\n'
        'import x from "./b.js";\n'
        "import fs from 'node:fs';\n"
    )
    text, rewritten, unresolved = normalize_text(source, dist)
    assert text == source
    assert rewritten == 0
    assert unresolved == []


@pytest.mark.unit
def test_unresolved_specifier_is_reported_not_fatal(dist):
    a = dist / "a.js"
    a.write_text('import m from "./missing";\n')

    result = normalize_file(a)

    assert a.read_text() == 'import m from "./missing";\n'
    assert result.rewritten == 0
    assert [w.specifier for w in result.unresolved] == ["./missing"]
    assert result.unresolved[0].file == str(a)


@pytest.mark.unit
def test_missing_js_specifier_left_alone(dist):
    assert resolve_specifier("./gone.js", dist) == ("./gone.js", False)


@pytest.mark.unit
def test_minified_and_side_effect_clauses(dist):
    source = 'import{b as c}from"./b";export*from"./lib";import"./util";'
    text, rewritten, _ = normalize_text(source, dist)
    assert text == 'import{b as c}from"./b.js";export*from"./lib/index.js";import"./util.js";'
    assert rewritten == 3


@pytest.mark.unit
def test_dynamic_import_not_scanned(dist):
    source = 'const m = await import("./b");\n'
    assert scan_specifiers(source) == []
    text, rewritten, _ = normalize_text(source, dist)
    assert text == source
    assert rewritten == 0


@pytest.mark.unit
def test_parent_directory_specifier(dist):
    nested = dist / "nested"
    nested.mkdir()
    text, rewritten, _ = normalize_text('import { b } from "../b";', nested)
    assert text == 'import { b } from "../b.js";'
    assert rewritten == 1


@pytest.mark.unit
def test_bare_parent_specifier_ignores_sibling_module(dist):
    (dist / "lib.js").write_text("export {};\n")
    inner = dist / "lib" / "inner"
    inner.mkdir()
    text, rewritten, _ = normalize_text('import { x } from "..";', inner)
    assert text == 'import { x } from "../index.js";'
    assert rewritten == 1


@pytest.mark.unit
def test_bare_current_specifier_ignores_sibling_module(dist):
    (dist / "lib.js").write_text("export {};\n")
    text, _, unresolved = normalize_text('import { x } from ".";', dist / "lib")
    assert text == 'import { x } from "./index.js";'
    assert unresolved == []


@pytest.mark.unit
def test_trailing_slash_specifier_resolves_to_index(dist):
    (dist / "lib.js").write_text("export {};\n")
    assert resolve_specifier("./lib/", dist) == ("./lib/index.js", True)


@pytest.mark.unit
def test_second_pass_is_byte_identical(dist):
    a = dist / "a.js"
    a.write_text('import { b } from "./b";\nexport * from "./lib";\n')
    normalize_file(a)
    first = a.read_bytes()
    mtime = a.stat().st_mtime_ns

    result = normalize_file(a)

    assert a.read_bytes() == first
    assert result.rewritten == 0
    # nothing to rewrite, nothing written
    assert a.stat().st_mtime_ns == mtime


@pytest.mark.unit
@pytest.mark.asyncio
async def test_normalize_files_skips_missing(dist):
    a = dist / "a.js"
    a.write_text('import { b } from "./b";\n')
    results = await normalize_files([a, dist / "never-emitted.js"])
    assert len(results) == 1
    assert results[0].artifact.output_path == a
    assert results[0].rewritten == 1
