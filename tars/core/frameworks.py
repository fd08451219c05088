"""Framework adapter registry.

Maps each supported framework to the recipe used to invoke it: the
executable and argument list, the file-name pattern used by discovery, the
output grammar used by the summary parser and a cheap availability probe.
The table is built once at import time and never mutated.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from tars.core.base import Framework, TestInvocation

Command = tuple[str, list[str]]
Recipe = Callable[[TestInvocation], Command]
Probe = Callable[[Path], bool]


class UnsupportedFrameworkError(ValueError):
    """Raised when a framework identifier has no registered adapter."""

    def __init__(self, framework: object) -> None:
        supported = ", ".join(f.value for f in Framework)
        super().__init__(f"Unsupported framework: {framework!r}. Supported: {supported}")
        self.framework = framework


@dataclass(frozen=True)
class FrameworkAdapter:
    """Static invocation recipe for one framework."""

    framework: Framework
    build: Recipe
    file_pattern: re.Pattern[str]
    grammar: str
    is_available: Probe


# ── Manifest probing ──────────────────────────────────────────────────────────


def _has_file(*names: str) -> Probe:
    def _probe(working_dir: Path) -> bool:
        return any((working_dir / name).is_file() for name in names)

    return _probe


def _first_match(
    rules: list[tuple[Probe, Recipe]],
    default: Recipe,
) -> Recipe:
    """Build a recipe that picks the first rule whose probe matches the working dir."""

    def _recipe(invocation: TestInvocation) -> Command:
        working_dir = Path(invocation.working_dir)
        for probe, recipe in rules:
            if probe(working_dir):
                return recipe(invocation)
        return default(invocation)

    return _recipe


def _class_name(test_file: str) -> str:
    """Return the Java class name for a test source file (Path.stem of Foo.java)."""
    return Path(test_file).stem


_has_maven = _has_file("pom.xml")
_has_gradle = _has_file("build.gradle", "build.gradle.kts")


def _maven(invocation: TestInvocation) -> Command:
    return "mvn", ["test", f"-Dtest={_class_name(invocation.test_file)}", "-q"]


def _gradle(invocation: TestInvocation) -> Command:
    return "./gradlew", ["test", "--tests", _class_name(invocation.test_file), "-q"]


def _java_direct(invocation: TestInvocation) -> Command:
    return "java", ["-cp", ".", invocation.test_file]


def _testng_direct(invocation: TestInvocation) -> Command:
    return "java", ["-cp", ".", "org.testng.TestNG", invocation.test_file]


# ── Availability probes ───────────────────────────────────────────────────────


def _declares_npm_dependency(package: str) -> Probe:
    def _probe(working_dir: Path) -> bool:
        pkg_path = working_dir / "package.json"
        try:
            data = json.loads(pkg_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return False
        if not isinstance(data, dict):
            return False
        for section in ("dependencies", "devDependencies"):
            deps = data.get(section)
            if isinstance(deps, dict) and package in deps:
                return True
        return False

    return _probe


def _mentions(text: str, *names: str) -> Probe:
    def _probe(working_dir: Path) -> bool:
        for name in names:
            try:
                if text in (working_dir / name).read_text(encoding="utf-8", errors="replace"):
                    return True
            except OSError:
                continue
        return False

    return _probe


# ── Registry ──────────────────────────────────────────────────────────────────


def _npx(*args: str) -> Recipe:
    """Recipe for an npm-installed runner; ``{file}`` is replaced by the target."""

    def _recipe(invocation: TestInvocation) -> Command:
        return "npx", [invocation.test_file if a == "{file}" else a for a in args]

    return _recipe


_JAVA_TEST_PATTERN = re.compile(r"Test\.java$")

_ADAPTERS: dict[Framework, FrameworkAdapter] = {
    Framework.JEST: FrameworkAdapter(
        framework=Framework.JEST,
        build=_npx("jest", "{file}", "--json", "--colors"),
        file_pattern=re.compile(r"\.(test|spec)\.(ts|js|tsx|jsx)$"),
        grammar="jest",
        is_available=_declares_npm_dependency("jest"),
    ),
    Framework.MOCHA: FrameworkAdapter(
        framework=Framework.MOCHA,
        build=_npx("mocha", "{file}", "--reporter", "json"),
        file_pattern=re.compile(r"\.(test|spec)\.(ts|js)$"),
        grammar="mocha",
        is_available=_declares_npm_dependency("mocha"),
    ),
    Framework.CYPRESS: FrameworkAdapter(
        framework=Framework.CYPRESS,
        build=_npx("cypress", "run", "--spec", "{file}", "--reporter", "json"),
        file_pattern=re.compile(r"\.cy\.(ts|js)$"),
        grammar="cypress",
        is_available=_declares_npm_dependency("cypress"),
    ),
    Framework.PLAYWRIGHT: FrameworkAdapter(
        framework=Framework.PLAYWRIGHT,
        build=_npx("playwright", "test", "{file}", "--reporter=json"),
        file_pattern=re.compile(r"\.spec\.(ts|js)$"),
        grammar="playwright",
        is_available=_declares_npm_dependency("@playwright/test"),
    ),
    Framework.JUNIT: FrameworkAdapter(
        framework=Framework.JUNIT,
        build=_first_match([(_has_maven, _maven), (_has_gradle, _gradle)], _java_direct),
        file_pattern=_JAVA_TEST_PATTERN,
        grammar="junit",
        is_available=_has_file("pom.xml", "build.gradle", "build.gradle.kts"),
    ),
    Framework.TESTNG: FrameworkAdapter(
        framework=Framework.TESTNG,
        build=_first_match([(_has_maven, _maven)], _testng_direct),
        file_pattern=_JAVA_TEST_PATTERN,
        grammar="testng",
        is_available=_mentions("testng", "pom.xml", "build.gradle", "build.gradle.kts"),
    ),
}

ADAPTERS = MappingProxyType(_ADAPTERS)


def _coerce(framework: Framework | str) -> Framework:
    if isinstance(framework, Framework):
        return framework
    try:
        return Framework(framework)
    except ValueError:
        raise UnsupportedFrameworkError(framework) from None


def get_adapter(framework: Framework | str) -> FrameworkAdapter:
    """Return the adapter for *framework* or raise UnsupportedFrameworkError."""
    adapter = ADAPTERS.get(_coerce(framework))
    if adapter is None:
        raise UnsupportedFrameworkError(framework)
    return adapter


def build_command(invocation: TestInvocation) -> Command:
    """Return (executable, args) for *invocation*, probing build manifests if needed."""
    return get_adapter(invocation.framework).build(invocation)


def framework_is_available(framework: Framework | str, working_dir: str) -> bool:
    """Lightweight pre-flight check: does *working_dir* declare *framework*?"""
    adapter = get_adapter(framework)
    return adapter.is_available(Path(working_dir))
