from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from nuzlocke_tracker.utils.env import load_env, resolve
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://pokeapi.co/api/v2"
DEFAULT_CACHE_DIR = "data/pokedex_cache"
DEFAULT_LANGUAGE = "de"
DEFAULT_TIMEOUT = 10.0
DEFAULT_REQUEST_DELAY = 0.1
# Heuristic only: valid IDs are contiguous, so a long not-found streak means we ran past the end.
DEFAULT_NOT_FOUND_THRESHOLD = 20


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    cache_dir: Path = Path(DEFAULT_CACHE_DIR)
    language: str = DEFAULT_LANGUAGE
    timeout: float = DEFAULT_TIMEOUT
    request_delay: float = DEFAULT_REQUEST_DELAY
    not_found_threshold: int = DEFAULT_NOT_FOUND_THRESHOLD


def _as_float(key: str, raw: Optional[str], default: float) -> float:
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {raw!r}") from exc


def _as_int(key: str, raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from exc


def load_settings(env_path: str | Path = ".env", **overrides: object) -> Settings:
    """Resolve settings: explicit overrides, then environment, then .env, then defaults."""
    env = load_env(env_path)

    base_url = overrides.get("base_url") or resolve("POKEAPI_BASE_URL", env, DEFAULT_BASE_URL)
    cache_dir = overrides.get("cache_dir") or resolve("POKEDEX_CACHE_DIR", env, DEFAULT_CACHE_DIR)
    language = overrides.get("language") or resolve("POKEDEX_LANGUAGE", env, DEFAULT_LANGUAGE)

    timeout = overrides.get("timeout")
    if timeout is None:
        timeout = _as_float("POKEAPI_TIMEOUT", resolve("POKEAPI_TIMEOUT", env), DEFAULT_TIMEOUT)
    request_delay = overrides.get("request_delay")
    if request_delay is None:
        request_delay = _as_float("POKEAPI_REQUEST_DELAY", resolve("POKEAPI_REQUEST_DELAY", env), DEFAULT_REQUEST_DELAY)
    threshold = overrides.get("not_found_threshold")
    if threshold is None:
        threshold = _as_int(
            "POKEDEX_NOT_FOUND_THRESHOLD",
            resolve("POKEDEX_NOT_FOUND_THRESHOLD", env),
            DEFAULT_NOT_FOUND_THRESHOLD,
        )

    if float(request_delay) < 0:
        raise ValueError("request delay must not be negative")
    if int(threshold) < 1:
        raise ValueError("not-found threshold must be at least 1")

    settings = Settings(
        base_url=str(base_url).rstrip("/"),
        cache_dir=Path(str(cache_dir)),
        language=str(language),
        timeout=float(timeout),
        request_delay=float(request_delay),
        not_found_threshold=int(threshold),
    )
    logger.debug("settings_loaded", base_url=settings.base_url, cache_dir=str(settings.cache_dir), language=settings.language)
    return settings
