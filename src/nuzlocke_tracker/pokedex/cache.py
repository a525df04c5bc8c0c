from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from nuzlocke_tracker.pokedex.errors import NotFoundError, PokeApiError, TransientFetchError
from nuzlocke_tracker.pokedex.pokeapi_client import PokeApiClient
from nuzlocke_tracker.pokedex.species import CachedSpecies, species_from_payload
from nuzlocke_tracker.pokedex.store import SpeciesStore
from nuzlocke_tracker.utils.config import Settings
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)


class SpeciesCache:
    """Read-through cache of species metadata in front of PokeAPI."""

    def __init__(self, store: SpeciesStore, client: PokeApiClient, language: str = "de") -> None:
        self.store = store
        self.client = client
        self.language = language

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[PokeApiClient] = None) -> "SpeciesCache":
        client = client or PokeApiClient(base_url=settings.base_url, timeout=settings.timeout)
        return cls(SpeciesStore(settings.cache_dir), client, language=settings.language)

    def ensure_cached(self, pokedex_id: int, force_update: bool = False) -> CachedSpecies:
        """Return the cached species, fetching and storing it on a miss.

        Raises ``NotFoundError`` when PokeAPI has no such ID and
        ``TransientFetchError`` for every other upstream failure.
        """
        if pokedex_id < 1:
            raise ValueError(f"Pokedex ID must be positive, got {pokedex_id}")

        existing = self.store.get(pokedex_id)
        if existing is not None and not force_update:
            return existing

        logger.info("species_fetch", pokedex_id=pokedex_id, refresh=existing is not None)
        pokemon = self.client.fetch_pokemon(pokedex_id)
        species_payload = self._fetch_localization(pokedex_id)
        species = species_from_payload(pokedex_id, pokemon, species_payload, language=self.language)
        try:
            self.store.upsert(species)
        except OSError as exc:
            logger.error("species_store_failed", pokedex_id=pokedex_id, error=str(exc))
            raise TransientFetchError(f"Could not store Pokemon #{pokedex_id}: {exc}") from exc
        logger.info("species_cached", pokedex_id=pokedex_id, name=species.name, types=list(species.types))
        return species

    def ensure_many(self, pokedex_ids: Iterable[int]) -> List[CachedSpecies]:
        results: List[CachedSpecies] = []
        for pokedex_id in pokedex_ids:
            try:
                results.append(self.ensure_cached(pokedex_id))
            except PokeApiError as exc:
                logger.warning("species_skipped", pokedex_id=pokedex_id, error=str(exc))
        return results

    def get(self, pokedex_id: int) -> Optional[CachedSpecies]:
        return self.store.get(pokedex_id)

    def all(self) -> List[CachedSpecies]:
        return self.store.all()

    def count(self) -> int:
        return self.store.count()

    def _fetch_localization(self, pokedex_id: int) -> Optional[Dict[str, object]]:
        # No species record only means no localized name; transient failures propagate.
        try:
            return self.client.fetch_species(pokedex_id)
        except NotFoundError:
            logger.info("species_localization_missing", pokedex_id=pokedex_id)
            return None
