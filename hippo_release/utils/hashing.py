# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Hashing utilities for hippo-release.

Every published archive gets a SHA256 digest in the checksum manifest, and
verification recomputes the same digest. Both go through these helpers so
there is exactly one definition of "the hash of a file".
"""

import hashlib
from pathlib import Path

HASH_BUFFER_SIZE = 65536  # 64 KiB
SHA256_HEX_LENGTH = 64


def compute_sha256(file_path: Path) -> str:
    """
    Compute the SHA256 hex digest of a file.

    Reads in 64 KiB chunks so large archives never need to fit in memory.

    Args:
        file_path: Path to the file to hash.

    Returns:
        Lowercase hex string of the SHA256 digest.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        OSError: If the file can't be read.
    """
    hasher = hashlib.sha256()
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(HASH_BUFFER_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def is_sha256_hex(value: str) -> bool:
    """True if value looks like a lowercase 64-character SHA256 hex digest."""
    if len(value) != SHA256_HEX_LENGTH:
        return False
    return all(c in "0123456789abcdef" for c in value)
