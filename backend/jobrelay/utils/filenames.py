from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

DEFAULT_EXTENSION = ".bin"

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def default_base_name(operation: str, now: Optional[datetime] = None) -> str:
    """`<yyMMdd_HHmmss>_<operation>`, used when the caller gives no base name."""
    stamp = (now or datetime.now()).strftime("%y%m%d_%H%M%S")
    return f"{stamp}_{safe_name(operation)}"


def safe_name(name: str) -> str:
    cleaned = _UNSAFE.sub("_", (name or "").strip()).strip("._")
    return cleaned or "output"


def normalize_extension(ext: Optional[str]) -> Optional[str]:
    if not ext:
        return None
    ext = ext.strip().lower()
    if not ext or ext == ".":
        return None
    return ext if ext.startswith(".") else f".{ext}"


def output_file_name(base: str, index: int, total: int, extension: Optional[str]) -> str:
    """Destination name: `base-<n>` suffix only when there are several outputs."""
    stem = safe_name(base)
    if total > 1:
        stem = f"{stem}-{index}"
    return f"{stem}{normalize_extension(extension) or DEFAULT_EXTENSION}"
