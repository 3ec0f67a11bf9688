"""Atomic file replacement."""

from __future__ import annotations

import logging
import os
import pathlib
import tempfile

logger = logging.getLogger(__name__)


def atomic_write(path: pathlib.Path, data: str) -> None:
    """Atomically write ``data`` to ``path``.

    The data goes to a temporary file in the same directory, which is fsynced
    and then moved over the target, so readers see either the old or the new
    content. Permission bits of an existing target are preserved.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        orig_mode = path.stat().st_mode & 0o777
    except OSError:
        orig_mode = None

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            delete=False,
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            encoding="utf-8",
            newline="\n",
        ) as handle:
            tmp_name = handle.name
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if orig_mode is not None:
            os.chmod(tmp_name, orig_mode)
        os.replace(tmp_name, path)
        tmp_name = None
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.debug("could not remove temporary file %s", tmp_name)
