"""
Input hardening helpers for uploaded file names and storage keys.
"""

import re
import uuid
from pathlib import PurePosixPath

_MAX_NAME_LENGTH = 200


def sanitize_filename(filename: str) -> str:
    """
    Reduce a client-supplied file name to a safe single path component.

    Directory parts, control characters and leading dots are removed and
    anything outside ``[A-Za-z0-9_.-]`` becomes an underscore. An empty
    result is replaced with a random name.
    """
    if not filename:
        return f"unnamed_{uuid.uuid4().hex[:8]}"

    name = PurePosixPath(filename.replace("\\", "/")).name
    name = re.sub(r"[\x00-\x1f\x7f]", "", name)
    name = re.sub(r"[^\w.\-\s]", "_", name)
    name = re.sub(r"[_\s]+", "_", name).lstrip(".")

    if not name or name == "_":
        return f"unnamed_{uuid.uuid4().hex[:8]}"

    if len(name) > _MAX_NAME_LENGTH:
        stem, _, ext = name.rpartition(".")
        if stem and ext and len(ext) < 10:
            name = stem[: _MAX_NAME_LENGTH - len(ext) - 1] + "." + ext
        else:
            name = name[:_MAX_NAME_LENGTH]
    return name


def file_extension(filename: str, default: str = "bin") -> str:
    """Lower-cased extension of ``filename`` without the dot."""
    safe = sanitize_filename(filename)
    _, dot, ext = safe.rpartition(".")
    if not dot or not ext:
        return default
    return ext.lower()


def is_safe_storage_path(path: str) -> bool:
    """True for a relative, traversal-free ``a/b/c.ext`` key."""
    if not path or path.startswith("/") or "\\" in path or "\x00" in path:
        return False
    parts = path.split("/")
    return all(part not in ("", ".", "..") for part in parts)
