# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Safe filesystem operations for hippo-release.

Several platform jobs write into the same artifact group at the same time,
so every write that lands in a shared directory must be atomic: readers see
either the complete file or no file, never a half-written one.

Atomic writes work by writing to a temporary file in the same directory as
the target, then renaming. Rename on the same filesystem is atomic on POSIX
and os.replace gives the same guarantee on Windows.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import IO

_TEMP_PREFIX = ".hippo_tmp_"
_TEMP_SUFFIX = ".tmp"


def _new_temp_file(target_path: Path) -> IO[bytes]:
    target_path.parent.mkdir(parents=True, exist_ok=True)
    # delete=False because the file must survive closing so we can rename it.
    return tempfile.NamedTemporaryFile(
        mode="wb",
        dir=str(target_path.parent),
        prefix=_TEMP_PREFIX,
        suffix=_TEMP_SUFFIX,
        delete=False,
    )


def atomic_write_bytes(target_path: Path, data: bytes) -> None:
    """
    Write binary data to a file atomically.

    Text callers encode first so line endings are exactly what they wrote,
    on every platform.

    Raises:
        OSError: If the write or rename fails.
    """
    temp_fd = _new_temp_file(target_path)
    temp_path = Path(temp_fd.name)

    try:
        temp_fd.write(data)
        temp_fd.flush()
        temp_fd.close()
        os.replace(temp_path, target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_copy(source_path: Path, target_path: Path) -> None:
    """
    Copy a file into place atomically, streaming instead of reading it whole.

    Archives can be large, so this copies through shutil.copyfileobj into the
    temp file and renames at the end.

    Raises:
        FileNotFoundError: If source_path doesn't exist.
        OSError: If the copy or rename fails.
    """
    if not source_path.is_file():
        raise FileNotFoundError(f"File not found: {source_path}")

    temp_fd = _new_temp_file(target_path)
    temp_path = Path(temp_fd.name)

    try:
        with open(source_path, "rb") as src:
            shutil.copyfileobj(src, temp_fd)
        temp_fd.flush()
        temp_fd.close()
        os.replace(temp_path, target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if it doesn't exist. Returns the path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def reset_directory(path: Path) -> Path:
    """
    Remove a directory if it exists and recreate it empty.

    Used for staging: the archive must contain only what we put there, so any
    leftovers from a previous run have to go first.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path
