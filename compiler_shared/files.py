from __future__ import annotations

import re
import secrets
import shutil
from pathlib import Path


_SAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9._-]+")
_RANDOM_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def safe_name(name: str, fallback: str = "file") -> str:
    value = _SAFE_NAME_RE.sub("_", (name or "").strip()).strip("._")
    return value or fallback


def random_file_name() -> str:
    """Random ``xxxxxxxx.xxx`` style name, always carrying an extension."""
    stem = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(8))
    ext = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(3))
    return f"{stem}.{ext}"


def copy_if_exists(source: Path, directory: Path | None) -> Path | None:
    """
    Copy ``source`` into ``directory`` keeping its file name, overwriting any
    existing file. Returns the destination, or None when nothing was copied
    because the directory or the source is missing.
    """
    if directory is None or not directory.is_dir():
        return None
    if not source.is_file():
        return None
    destination = directory / source.name
    shutil.copyfile(source, destination)
    return destination


def remove_tree(path: Path) -> bool:
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True
