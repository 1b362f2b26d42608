"""Environment variable readers shared by the ``from_env`` constructors."""

from __future__ import annotations

import os
from pathlib import Path


def env_str(env_var: str, default: str) -> str:
    """Return the stripped value of ``env_var`` or ``default`` when blank."""
    return os.environ.get(env_var, "").strip() or default


def env_optional(env_var: str) -> str | None:
    """Return the stripped value of ``env_var`` or ``None`` when blank."""
    return os.environ.get(env_var, "").strip() or None


def env_path(env_var: str, default: Path) -> Path:
    """Return ``env_var`` as a path, or ``default`` when blank."""
    raw = os.environ.get(env_var, "").strip()
    return Path(raw) if raw else default


def positive_float(env_var: str, default: float) -> float:
    """Read a strictly positive number.

    Raises
    ------
    ValueError
        If the variable is set but not a positive number.

    """
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def positive_int(env_var: str, default: int) -> int:
    """Read a strictly positive integer.

    Raises
    ------
    ValueError
        If the variable is set but not a positive integer.

    """
    raw = os.environ.get(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def env_list(env_var: str) -> tuple[str, ...]:
    """Return the comma-separated, non-blank entries of ``env_var``."""
    raw = os.environ.get(env_var, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())
