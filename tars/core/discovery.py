"""Test file discovery."""

from __future__ import annotations

import logging
import os
import re

from tars.core.base import Framework
from tars.core.frameworks import get_adapter

logger = logging.getLogger(__name__)

# Build, dependency and version-control output; never descended into.
IGNORED_DIRS = frozenset({"node_modules", "dist", "build", "target", ".git", ".gradle"})


def _compile_override(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid file pattern {pattern!r}: {exc}") from exc


def find_test_files(
    root: str,
    framework: Framework | str,
    pattern: str | None = None,
) -> list[str]:
    """Return absolute paths of files under *root* whose name matches the test pattern.

    *pattern* is a regular expression that overrides the framework's own
    naming convention. A missing root yields an empty list.
    """
    test_pattern = _compile_override(pattern) if pattern else get_adapter(framework).file_pattern
    base = os.path.abspath(root)
    if not os.path.isdir(base):
        logger.info("discovery: %s does not exist, nothing to run", base)
        return []

    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(base):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS)
        for name in sorted(filenames):
            if not test_pattern.search(name):
                continue
            full_path = os.path.join(dirpath, name)
            if os.path.isfile(full_path):
                files.append(full_path)

    logger.debug("discovery: %d file(s) matched %s in %s", len(files), test_pattern.pattern, base)
    return files
