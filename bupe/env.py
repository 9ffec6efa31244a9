from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

TMP_DIR_ENV = "BUPE_TMP_DIR"
LOG_LEVEL_ENV = "BUPE_LOG_LEVEL"


def _file_value(name: str) -> Optional[str]:
    path = os.getenv(f"{name}_FILE")
    if not path:
        return None
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except OSError:
        return None


def read_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Look up ``name``, then the file named by ``name_FILE``.

    Blank values count as unset, so ``default`` is returned for them.
    """
    value = (os.getenv(name) or "").strip() or _file_value(name)
    return value or default


def staging_root() -> Optional[str]:
    return read_env(TMP_DIR_ENV)


def log_level(default: str = "WARNING") -> str:
    return read_env(LOG_LEVEL_ENV, default).upper()
