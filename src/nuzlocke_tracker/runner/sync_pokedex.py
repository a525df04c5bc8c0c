from __future__ import annotations

import argparse
from typing import List, Optional

from nuzlocke_tracker.pokedex.cache import SpeciesCache
from nuzlocke_tracker.pokedex.errors import PokeApiError
from nuzlocke_tracker.pokedex.sync import SYNC_PRESETS, sync_gif_sprites, sync_range
from nuzlocke_tracker.utils.config import load_settings
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)

PROGRESS_EVERY = 50


def _print_progress(current: int, total: int) -> None:
    if current % PROGRESS_EVERY == 0 or current == total:
        print(f"  Progress: {current}/{total}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch Pokemon species from PokeAPI into the local Pokedex cache.")
    parser.add_argument("--cache-dir", help="Cache directory (default: POKEDEX_CACHE_DIR or data/pokedex_cache)")
    parser.add_argument("--base-url", help="PokeAPI base URL")
    parser.add_argument("--language", help="Language code for localized names (default: de)")
    parser.add_argument("--env-file", default=".env", help="Optional .env file with settings")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--id", type=int, nargs="+", dest="ids", help="Ensure specific Pokedex IDs are cached")
    mode.add_argument("--preset", choices=sorted(SYNC_PRESETS), help="Sync a named ID range")
    mode.add_argument("--range", type=int, nargs=2, metavar=("START", "END"), help="Sync an inclusive ID range")
    mode.add_argument("--gifs", action="store_true", help="Backfill animated sprites for cached species")

    parser.add_argument("--force", action="store_true", help="Re-fetch IDs given with --id even if cached")
    parser.add_argument("--delay", type=float, help="Seconds to wait between requests")
    parser.add_argument("--not-found-threshold", type=int, help="Consecutive 404s before a range sync stops")
    parser.add_argument("--max-errors", type=int, help="Consecutive transient failures before a range sync stops")
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(
        args.env_file,
        cache_dir=args.cache_dir,
        base_url=args.base_url,
        language=args.language,
        request_delay=args.delay,
        not_found_threshold=args.not_found_threshold,
    )
    cache = SpeciesCache.from_settings(settings)

    if args.ids:
        failures = 0
        for pokedex_id in args.ids:
            try:
                species = cache.ensure_cached(pokedex_id, force_update=args.force)
            except (PokeApiError, ValueError) as exc:
                failures += 1
                print(f"  [FAIL] #{pokedex_id}: {exc}")
                continue
            print(f"  [OK] #{species.pokedex_id} {species.display_name} ({'/'.join(species.types)})")
        return 1 if failures else 0

    if args.gifs:
        result = sync_gif_sprites(cache, delay=max(settings.request_delay, 0.15))
        print(f"Animated sprites updated: {result.updated} of {result.total}")
        return 0

    start_id, end_id = tuple(args.range) if args.range else SYNC_PRESETS[args.preset or "narrow"]
    print(f"Syncing Pokedex IDs {start_id}-{end_id} ...")
    result = sync_range(
        cache,
        start_id,
        end_id,
        on_progress=_print_progress,
        delay=settings.request_delay,
        not_found_threshold=settings.not_found_threshold,
        max_consecutive_errors=args.max_errors,
    )
    print(
        f"Done. Synced {result.count} species "
        f"({len(result.not_found)} not found, {len(result.failed)} failed). Cached total: {cache.count()}"
    )
    if result.stopped_early:
        print("Stopped early; see logs for the last ID tried.")
    return 0


def main() -> None:
    raise SystemExit(run())


if __name__ == "__main__":
    main()
