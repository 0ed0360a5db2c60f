from __future__ import annotations

import os
from typing import List, Optional

from dotenv import load_dotenv

# Load .env once on import so scripts and the ASGI app see the same settings.
load_dotenv()


def _env_str(name: str, default: str = "") -> str:
    """Read a string env var, stripping whitespace."""
    return (os.getenv(name, default) or "").strip()


def _env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean env var with common truthy values."""
    raw = _env_str(name, "").lower()
    if not raw:
        return default
    return raw in {"y", "yes", "t", "true", "on", "1"}


def _env_int(name: str, default: int = 0, *, minimum: Optional[int] = None) -> int:
    """
    Read an int env var.

    Raises ValueError on garbage so the config loader can report the variable name.
    """
    v = _env_str(name, "")
    out = int(v) if v else int(default)
    if minimum is not None:
        out = max(minimum, out)
    return out


def _env_float(name: str, default: float = 0.0, *, minimum: Optional[float] = None) -> float:
    """Read a float env var, optionally clamped from below."""
    v = _env_str(name, "")
    out = float(v) if v else float(default)
    if minimum is not None:
        out = max(minimum, out)
    return out


def _env_csv(name: str, default: str = "") -> List[str]:
    raw = _env_str(name, default)
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]
