from __future__ import annotations

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional

from nuzlocke_tracker.pokedex.species import CachedSpecies
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)

STORE_FILENAME = "pokedex.json"


class SpeciesStore:
    """Cached species persisted as one JSON document keyed by Pokédex ID."""

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.cache_dir / STORE_FILENAME
        self._lock = threading.Lock()
        self._entries: Dict[int, CachedSpecies] = self._load()

    def get(self, pokedex_id: int) -> Optional[CachedSpecies]:
        return self._entries.get(pokedex_id)

    def upsert(self, species: CachedSpecies) -> CachedSpecies:
        with self._lock:
            created = species.pokedex_id not in self._entries
            entries = dict(self._entries)
            entries[species.pokedex_id] = species
            # Memory only follows the file once the file write has landed.
            self._flush(entries)
            self._entries = entries
        logger.debug("species_upserted", pokedex_id=species.pokedex_id, created=created)
        return species

    def all(self) -> List[CachedSpecies]:
        with self._lock:
            return [self._entries[key] for key in sorted(self._entries)]

    def count(self) -> int:
        return len(self._entries)

    def missing_gif_sprites(self) -> List[int]:
        with self._lock:
            return [key for key in sorted(self._entries) if not self._entries[key].sprite_gif_url]

    def _load(self) -> Dict[int, CachedSpecies]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        except (OSError, ValueError) as exc:
            self._set_aside()
            logger.warning("store_load_failed", path=str(self.path), error=str(exc))
            return {}

        entries: Dict[int, CachedSpecies] = {}
        for key, info in data.items():
            try:
                species = CachedSpecies.from_dict(info)
            except ValueError as exc:
                logger.warning("store_entry_skipped", key=key, error=str(exc))
                continue
            entries[species.pokedex_id] = species
        logger.info("store_loaded", path=str(self.path), count=len(entries))
        return entries

    def _set_aside(self) -> None:
        corrupt = self.path.with_name(self.path.name + ".corrupt")
        try:
            os.replace(self.path, corrupt)
        except OSError as exc:
            logger.warning("store_set_aside_failed", path=str(self.path), error=str(exc))
            return
        logger.warning("store_set_aside", path=str(corrupt))

    def _flush(self, entries: Dict[int, CachedSpecies]) -> None:
        payload = {str(key): entries[key].to_dict() for key in sorted(entries)}
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".pokedex-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
