"""Source file enumeration."""

from __future__ import annotations

import fnmatch
import logging
import pathlib
from typing import Iterable, List, Sequence

logger = logging.getLogger(__name__)


def is_ignored(base: pathlib.Path, path: pathlib.Path, ignore_globs: Sequence[str]) -> bool:
    try:
        rel = path.relative_to(base).as_posix()
    except ValueError:
        return True
    # "**/x/**" should also match "x/..." at the root of the scan.
    candidates = {rel, f"./{rel}"}
    return any(
        fnmatch.fnmatch(candidate, pattern)
        for candidate in candidates
        for pattern in ignore_globs
    )


def collect_source_files(
    base: pathlib.Path,
    entry: Iterable[str],
    exclude: Sequence[str] = (),
) -> List[pathlib.Path]:
    """Expand entry globs below ``base`` into a sorted, de-duplicated file list."""

    base = base.resolve()
    found: set[pathlib.Path] = set()
    for pattern in entry:
        candidate = base / pattern
        if candidate.is_file():
            matches: Iterable[pathlib.Path] = [candidate]
        else:
            matches = base.glob(pattern)
        for path in matches:
            path = path.resolve()
            if not path.is_file():
                continue
            if is_ignored(base, path, exclude):
                logger.debug("ignoring %s", path)
                continue
            found.add(path)
    files = sorted(found)
    logger.debug("expanded %d source files below %s", len(files), base)
    return files


def collect_directory(directory: pathlib.Path, exclude: Sequence[str] = ()) -> List[pathlib.Path]:
    """Return every Python file below ``directory``."""

    return collect_source_files(directory, ["**/*.py"], exclude)
