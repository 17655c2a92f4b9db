"""Runtime settings read from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

DIVISION_IEEE: Final[str] = "ieee"
DIVISION_NODATA: Final[str] = "nodata"
DIVISION_POLICIES: Final[tuple[str, ...]] = (DIVISION_IEEE, DIVISION_NODATA)
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    program_cache_max: int = 256
    division_policy: str = DIVISION_IEEE
    log_level: str = "WARNING"


def _int_setting(environ: Mapping[str, str], name: str, default: int, *, minimum: int) -> int:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ

    policy = env.get("BANDCALC_DIVISION_POLICY", DIVISION_IEEE).strip().lower() or DIVISION_IEEE
    if policy not in DIVISION_POLICIES:
        raise ValueError(f"BANDCALC_DIVISION_POLICY must be one of {', '.join(DIVISION_POLICIES)}, got {policy!r}")

    log_level = env.get("BANDCALC_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"
    if log_level not in LOG_LEVELS:
        raise ValueError(f"BANDCALC_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    return Settings(
        program_cache_max=_int_setting(env, "BANDCALC_PROGRAM_CACHE_MAX", 256, minimum=1),
        division_policy=policy,
        log_level=log_level,
    )


SETTINGS: Final[Settings] = load_settings()
