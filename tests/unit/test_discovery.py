"""Unit tests for test file discovery.

Total: 7 tests
"""

from __future__ import annotations

import os

import pytest

from tars.core.base import Framework
from tars.core.discovery import find_test_files
from tars.core.frameworks import UnsupportedFrameworkError


def _touch(root, *relative: str) -> None:
    for rel in relative:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")


def test_matches_framework_pattern_and_prunes_ignored_dirs(tmp_path):
    _touch(
        tmp_path,
        "a.test.ts",
        "b.spec.js",
        "helpers.ts",
        "nested/deep/c.test.tsx",
        "node_modules/lib/x.test.js",
        "dist/y.test.js",
        ".git/z.test.js",
    )

    files = find_test_files(str(tmp_path), Framework.JEST)

    assert files == [
        os.path.join(str(tmp_path), "a.test.ts"),
        os.path.join(str(tmp_path), "b.spec.js"),
        os.path.join(str(tmp_path), "nested", "deep", "c.test.tsx"),
    ]


def test_returns_absolute_paths_for_relative_root(tmp_path, monkeypatch):
    _touch(tmp_path, "e2e/home.cy.ts", "e2e/home.test.ts")
    monkeypatch.chdir(tmp_path)

    files = find_test_files("e2e", "cypress")

    assert files == [os.path.join(str(tmp_path), "e2e", "home.cy.ts")]


def test_java_sources_skip_build_output(tmp_path):
    _touch(
        tmp_path,
        "src/test/java/LoginTest.java",
        "src/test/java/Helper.java",
        "target/test-classes/LoginTest.java",
        ".gradle/cache/OtherTest.java",
    )

    files = find_test_files(str(tmp_path), Framework.JUNIT)

    assert [os.path.basename(f) for f in files] == ["LoginTest.java"]


def test_missing_root_yields_empty_list(tmp_path):
    assert find_test_files(str(tmp_path / "nope"), Framework.MOCHA) == []


def test_pattern_overrides_framework_convention(tmp_path):
    _touch(tmp_path, "flow.e2e.js", "unit.test.js")

    files = find_test_files(str(tmp_path), Framework.JEST, r"\.e2e\.js$")

    assert files == [os.path.join(str(tmp_path), "flow.e2e.js")]


def test_invalid_pattern_raises_value_error(tmp_path):
    with pytest.raises(ValueError, match="Invalid file pattern"):
        find_test_files(str(tmp_path), Framework.JEST, "(unclosed")


def test_unknown_framework_raises(tmp_path):
    with pytest.raises(UnsupportedFrameworkError):
        find_test_files(str(tmp_path), "pytest")
