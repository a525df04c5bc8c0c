import argparse
import threading
import time
from typing import Any, Callable, Dict, Optional

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from nuzlocke_tracker.pokedex.cache import SpeciesCache
from nuzlocke_tracker.pokedex.errors import NotFoundError, PokeApiError
from nuzlocke_tracker.pokedex.evolutions import fetch_evolution_chain
from nuzlocke_tracker.pokedex.progress import SyncProgress
from nuzlocke_tracker.pokedex.sync import NARROW_RANGE, WIDE_RANGE, sync_gif_sprites, sync_range
from nuzlocke_tracker.utils.config import Settings, load_settings
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)

NO_STORE = {"Cache-Control": "no-store"}
LIST_CACHE = {"Cache-Control": "public, s-maxage=300, stale-while-revalidate=600"}
LOG_EVERY = 50


def create_app(
    settings: Optional[Settings] = None,
    cache: Optional[SpeciesCache] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Nuzlocke Tracker Pokedex")
    app.state.settings = settings
    app.state.cache = cache or SpeciesCache.from_settings(settings)
    # Latest sync token; replaced by every new sync so the progress endpoint follows it.
    app.state.sync_progress = SyncProgress()
    app.state.sync_lock = threading.Lock()
    app.state.sleep = sleep

    @app.post("/api/admin/pokemon/sync")
    def sync_pokemon(request: Request, sync_all: bool = Query(False, alias="all")) -> Dict[str, object]:
        """Run a full range sync; blocks until it is done."""
        state = request.app.state
        if not state.sync_lock.acquire(blocking=False):
            raise HTTPException(status_code=409, detail="A Pokemon sync is already running")
        try:
            start_id, end_id = WIDE_RANGE if sync_all else NARROW_RANGE
            progress = SyncProgress()
            # Running before it is published, so a cancel never sees an idle token.
            progress.start(end_id - start_id + 1)
            state.sync_progress = progress
            logger.info("admin_sync_requested", scope="all" if sync_all else "narrow")

            def on_progress(current: int, total: int) -> None:
                if current % LOG_EVERY == 0:
                    logger.info("admin_sync_progress", current=current, total=total)

            result = sync_range(
                state.cache,
                start_id,
                end_id,
                on_progress=on_progress,
                progress=progress,
                delay=state.settings.request_delay,
                not_found_threshold=state.settings.not_found_threshold,
                sleep=state.sleep,
            )
        finally:
            state.sync_lock.release()

        return {
            "success": True,
            "count": result.count,
            "notFound": len(result.not_found),
            "failed": len(result.failed),
            "stoppedEarly": result.stopped_early,
            "cancelled": result.cancelled,
            "message": f"{result.count} Pokemon synced",
        }

    @app.get("/api/admin/pokemon/sync/progress")
    def sync_progress(request: Request) -> JSONResponse:
        snapshot = request.app.state.sync_progress.snapshot()
        return JSONResponse(snapshot.to_dict(), headers=NO_STORE)

    @app.post("/api/admin/pokemon/sync/cancel")
    def cancel_sync(request: Request) -> Dict[str, object]:
        progress: SyncProgress = request.app.state.sync_progress
        if not progress.snapshot().is_running:
            raise HTTPException(status_code=409, detail="No Pokemon sync is running")
        progress.cancel()
        logger.info("admin_sync_cancel_requested")
        return {"success": True}

    @app.post("/api/admin/pokemon/add")
    def add_pokemon(request: Request, payload: Dict[str, Any] = Body(...)) -> Dict[str, object]:
        raw_id = payload.get("pokedexId")
        if raw_id in (None, ""):
            raise HTTPException(status_code=400, detail="pokedexId is required")
        try:
            pokedex_id = int(str(raw_id))
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid pokedexId")
        low, high = NARROW_RANGE
        if not low <= pokedex_id <= high:
            raise HTTPException(status_code=400, detail=f"pokedexId must be between {low} and {high}")

        try:
            species = request.app.state.cache.ensure_cached(pokedex_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail=f"Pokemon #{pokedex_id} not found upstream")
        except PokeApiError as exc:
            logger.error("admin_add_failed", pokedex_id=pokedex_id, error=str(exc))
            raise HTTPException(status_code=502, detail=f"Failed to fetch Pokemon #{pokedex_id}")

        return {
            "success": True,
            "data": {"pokemon": species.to_dict(), "message": f"Pokemon #{pokedex_id} added"},
        }

    @app.post("/api/admin/pokemon/sync-gifs")
    def sync_gifs(request: Request) -> Dict[str, object]:
        def on_progress(current: int, total: int, updated: int) -> None:
            if current % 10 == 0:
                logger.info("admin_gif_sync_progress", current=current, total=total, updated=updated)

        result = sync_gif_sprites(request.app.state.cache, on_progress=on_progress, sleep=request.app.state.sleep)
        return {
            "success": True,
            "message": f"Animated sprites synced: {result.updated} of {result.total} updated",
            "total": result.total,
            "updated": result.updated,
        }

    @app.get("/api/pokemon")
    def list_pokemon(request: Request) -> JSONResponse:
        pokemon = [species.to_dict() for species in request.app.state.cache.all()]
        return JSONResponse({"pokemon": pokemon, "count": len(pokemon)}, headers=LIST_CACHE)

    @app.get("/api/pokemon/{pokedex_id}/evolutions")
    def evolutions(request: Request, pokedex_id: str) -> Dict[str, object]:
        try:
            parsed = int(pokedex_id)
        except ValueError:
            parsed = 0
        if parsed < 1:
            raise HTTPException(status_code=400, detail="Invalid Pokedex ID")
        return fetch_evolution_chain(request.app.state.cache, parsed).to_dict()

    return app


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--host", type=str, default="0.0.0.0")
    parser.add_argument("--cache-dir", type=str, help="Pokedex cache directory")
    parser.add_argument("--env-file", type=str, default=".env")
    args = parser.parse_args()

    settings = load_settings(args.env_file, cache_dir=args.cache_dir)
    app = create_app(settings)

    print(f"Pokedex service running at http://localhost:{args.port}")
    print(f"Cache directory: {settings.cache_dir}")

    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
