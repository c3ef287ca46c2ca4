"""
Shared utility helpers.

This module contains small, reusable helpers that do not belong
to policy resolution, identity handling, or filter orchestration.
"""

from __future__ import annotations

import base64
import binascii
import os
import tempfile
from pathlib import Path
from typing import Optional

from Crypto.Hash import BLAKE2b


# ---------------------------------------------------------------------------
# Hashing / identifiers
# ---------------------------------------------------------------------------


def content_hash(data: bytes) -> str:
    """Return the hex BLAKE2b-256 digest of arbitrary bytes."""
    return BLAKE2b.new(digest_bits=256, data=data).hexdigest()


def path_digest(path: str) -> str:
    """Return a filesystem-safe name derived from a repository path."""
    return content_hash(path.encode("utf-8"))


# ---------------------------------------------------------------------------
# age payload helpers
# ---------------------------------------------------------------------------

AGE_HEADER = b"age-encryption.org/v1\n"
ARMOR_BEGIN = b"-----BEGIN AGE ENCRYPTED FILE-----"
ARMOR_END = b"-----END AGE ENCRYPTED FILE-----"
SCRYPT_STANZA = b"-> scrypt "


def is_armored(data: bytes) -> bool:
    return data.lstrip().startswith(ARMOR_BEGIN)


def dearmor(data: bytes) -> Optional[bytes]:
    """
    Decode an ASCII-armored age payload.

    Returns None if the armor is malformed.
    """

    lines = data.strip().splitlines()
    if len(lines) < 2 or lines[0].strip() != ARMOR_BEGIN or lines[-1].strip() != ARMOR_END:
        return None
    try:
        return base64.b64decode(b"".join(line.strip() for line in lines[1:-1]), validate=True)
    except (binascii.Error, ValueError):
        return None


def binary_payload(data: bytes) -> Optional[bytes]:
    """Return the binary form of an age payload, or None if ``data`` is not one."""
    if data.startswith(AGE_HEADER):
        return data
    if is_armored(data):
        raw = dearmor(data)
        if raw is not None and raw.startswith(AGE_HEADER):
            return raw
    return None


def is_age_payload(data: bytes) -> bool:
    return binary_payload(data) is not None


def is_scrypt_payload(data: bytes) -> bool:
    """True if ``data`` is an age payload wrapped with a passphrase."""
    raw = binary_payload(data)
    if raw is None:
        return False
    first_stanza = raw[len(AGE_HEADER):].split(b"\n", 1)[0]
    return first_stanza.startswith(SCRYPT_STANZA)


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


def ensure_parent_dir(path: Path) -> None:
    """Ensure the parent directory of a file exists."""
    path.parent.mkdir(parents=True, exist_ok=True)


def atomic_write(path: Path, data: bytes) -> None:
    """
    Replace ``path`` with ``data`` so readers see either the old or the new
    content, never a partial write.

    The temporary file lives in the target directory so the final
    ``os.replace`` stays on one filesystem.
    """

    ensure_parent_dir(path)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.name + ".", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
