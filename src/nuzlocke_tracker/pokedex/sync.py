from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from nuzlocke_tracker.pokedex.cache import SpeciesCache
from nuzlocke_tracker.pokedex.errors import NotFoundError
from nuzlocke_tracker.pokedex.progress import SyncProgress
from nuzlocke_tracker.pokedex.species import CachedSpecies, extract_gif_sprite
from nuzlocke_tracker.utils.config import DEFAULT_NOT_FOUND_THRESHOLD, DEFAULT_REQUEST_DELAY
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)

# Generation I-IV (Platinum national dex)
NARROW_RANGE: Tuple[int, int] = (1, 493)
# Every species known so far plus headroom for new ones
WIDE_RANGE: Tuple[int, int] = (1, 1050)

SYNC_PRESETS: Dict[str, Tuple[int, int]] = {
    "narrow": NARROW_RANGE,
    "wide": WIDE_RANGE,
}

GIF_SYNC_DELAY = 0.15

ProgressCallback = Callable[[int, int], None]


@dataclass
class SyncResult:
    species: List[CachedSpecies]
    progress: SyncProgress
    attempted: int = 0
    not_found: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    stopped_early: bool = False
    cancelled: bool = False

    @property
    def count(self) -> int:
        return len(self.species)


@dataclass(frozen=True)
class GifSyncResult:
    total: int
    updated: int


def sync_range(
    cache: SpeciesCache,
    start_id: int,
    end_id: int,
    on_progress: Optional[ProgressCallback] = None,
    progress: Optional[SyncProgress] = None,
    delay: float = DEFAULT_REQUEST_DELAY,
    not_found_threshold: int = DEFAULT_NOT_FOUND_THRESHOLD,
    max_consecutive_errors: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SyncResult:
    """Ensure every ID in ``start_id..end_id`` (inclusive) is cached, one at a time.

    Per-ID failures are logged and skipped. The scan stops early once
    ``not_found_threshold`` consecutive IDs are missing upstream, which is a
    heuristic for having run past the last valid ID rather than a guarantee.
    When ``max_consecutive_errors`` is set, that many back-to-back transient
    failures also stop the scan.
    """
    if start_id < 1:
        raise ValueError(f"start_id must be positive, got {start_id}")
    if end_id < start_id:
        raise ValueError(f"end_id ({end_id}) must not be below start_id ({start_id})")
    if not_found_threshold < 1:
        raise ValueError("not_found_threshold must be at least 1")

    total = end_id - start_id + 1
    progress = progress or SyncProgress()
    if progress.snapshot().is_running:
        # Already started by the caller; keep any cancel it has seen.
        progress.update(0, total)
    else:
        progress.start(total)
    result = SyncResult(species=[], progress=progress)
    not_found_streak = 0
    error_streak = 0
    logger.info("sync_started", start=start_id, end=end_id, total=total)

    try:
        for index, pokedex_id in enumerate(range(start_id, end_id + 1), start=1):
            if progress.cancelled:
                result.cancelled = True
                logger.info("sync_cancelled", pokedex_id=pokedex_id)
                break

            try:
                result.species.append(cache.ensure_cached(pokedex_id))
                not_found_streak = 0
                error_streak = 0
            except NotFoundError:
                not_found_streak += 1
                error_streak = 0
                result.not_found.append(pokedex_id)
                logger.warning("sync_not_found", pokedex_id=pokedex_id, streak=not_found_streak)
            except Exception as exc:
                not_found_streak = 0
                error_streak += 1
                result.failed.append(pokedex_id)
                logger.error("sync_failed", pokedex_id=pokedex_id, error=str(exc))

            result.attempted = index
            progress.update(index)
            if on_progress:
                on_progress(index, total)

            if not_found_streak >= not_found_threshold:
                result.stopped_early = True
                logger.info("sync_range_exhausted", last_id=pokedex_id, streak=not_found_streak)
                break
            if max_consecutive_errors is not None and error_streak >= max_consecutive_errors:
                result.stopped_early = True
                logger.error("sync_aborted_upstream_unavailable", last_id=pokedex_id, streak=error_streak)
                break

            if index < total and delay > 0:
                sleep(delay)
    finally:
        progress.finish()

    logger.info(
        "sync_finished",
        synced=result.count,
        attempted=result.attempted,
        not_found=len(result.not_found),
        failed=len(result.failed),
        stopped_early=result.stopped_early,
    )
    return result


def sync_preset(cache: SpeciesCache, preset: str, **kwargs) -> SyncResult:
    try:
        start_id, end_id = SYNC_PRESETS[preset]
    except KeyError as exc:
        raise ValueError(f"Unknown sync preset {preset!r}, expected one of {sorted(SYNC_PRESETS)}") from exc
    return sync_range(cache, start_id, end_id, **kwargs)


def sync_narrow_range(cache: SpeciesCache, **kwargs) -> SyncResult:
    return sync_preset(cache, "narrow", **kwargs)


def sync_wide_range(cache: SpeciesCache, **kwargs) -> SyncResult:
    return sync_preset(cache, "wide", **kwargs)


def sync_gif_sprites(
    cache: SpeciesCache,
    on_progress: Optional[Callable[[int, int, int], None]] = None,
    delay: float = GIF_SYNC_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> GifSyncResult:
    """Fill in animated sprite URLs for cached species that have none."""
    missing = cache.store.missing_gif_sprites()
    total = len(missing)
    updated = 0
    logger.info("gif_sync_started", total=total)

    for index, pokedex_id in enumerate(missing, start=1):
        try:
            gif_url = _find_gif_sprite(cache, pokedex_id)
            if gif_url:
                cache.store.upsert(cache.store.get(pokedex_id).with_gif_sprite(gif_url))
                updated += 1
                logger.info("gif_sprite_updated", pokedex_id=pokedex_id)
            else:
                logger.info("gif_sprite_missing", pokedex_id=pokedex_id)
        except Exception as exc:
            logger.error("gif_sync_failed", pokedex_id=pokedex_id, error=str(exc))

        if on_progress:
            on_progress(index, total, updated)
        if index < total and delay > 0:
            sleep(delay)

    logger.info("gif_sync_finished", total=total, updated=updated)
    return GifSyncResult(total=total, updated=updated)


def _find_gif_sprite(cache: SpeciesCache, pokedex_id: int) -> Optional[str]:
    pokemon = cache.client.fetch_pokemon(pokedex_id)
    return extract_gif_sprite(pokemon.get("sprites")) or cache.client.showdown_gif_url(pokedex_id)
