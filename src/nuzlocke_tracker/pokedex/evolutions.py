from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple

from nuzlocke_tracker.pokedex.cache import SpeciesCache
from nuzlocke_tracker.pokedex.errors import PokeApiError
from nuzlocke_tracker.pokedex.species import CachedSpecies
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)

_SPECIES_URL_RE = re.compile(r"/pokemon-species/(\d+)/?$")


@dataclass(frozen=True)
class EvolutionOption:
    pokedex_id: int
    name: str
    localized_name: str | None
    sprite_url: str | None
    sprite_gif_url: str | None

    @classmethod
    def from_species(cls, species: CachedSpecies) -> "EvolutionOption":
        return cls(
            pokedex_id=species.pokedex_id,
            name=species.name,
            localized_name=species.localized_name,
            sprite_url=species.sprite_url,
            sprite_gif_url=species.sprite_gif_url,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "pokedexId": self.pokedex_id,
            "name": self.name,
            "localizedName": self.localized_name,
            "spriteUrl": self.sprite_url,
            "spriteGifUrl": self.sprite_gif_url,
        }


@dataclass(frozen=True)
class EvolutionChain:
    pre_evolutions: List[EvolutionOption] = field(default_factory=list)
    evolutions: List[EvolutionOption] = field(default_factory=list)

    def contains(self, pokedex_id: int) -> bool:
        return any(option.pokedex_id == pokedex_id for option in self.pre_evolutions + self.evolutions)

    def to_dict(self) -> Dict[str, object]:
        return {
            "preEvolutions": [option.to_dict() for option in self.pre_evolutions],
            "evolutions": [option.to_dict() for option in self.evolutions],
        }


def pokedex_id_from_url(url: str) -> int:
    """``.../pokemon-species/25/`` -> 25, 0 when the URL does not match."""
    match = _SPECIES_URL_RE.search(url or "")
    return int(match.group(1)) if match else 0


def flatten_chain(link: Mapping[str, object], depth: int = 0) -> List[Tuple[int, int]]:
    """Walk an evolution chain link into ``(pokedex_id, depth)`` pairs."""
    members: List[Tuple[int, int]] = []
    pokedex_id = pokedex_id_from_url(link.get("species", {}).get("url", ""))
    if pokedex_id > 0:
        members.append((pokedex_id, depth))
    for child in link.get("evolves_to", []):
        members.extend(flatten_chain(child, depth + 1))
    return members


def fetch_evolution_chain(cache: SpeciesCache, pokedex_id: int) -> EvolutionChain:
    """Pre-evolutions and evolutions of a species, each ensured in the cache.

    Upstream failures are logged and produce an empty chain.
    """
    try:
        species = cache.client.fetch_species(pokedex_id)
        chain_url = (species.get("evolution_chain") or {}).get("url")
        if not chain_url:
            return EvolutionChain()
        chain = cache.client.fetch_url(chain_url)
        members = flatten_chain(chain["chain"])
    except (PokeApiError, KeyError, TypeError, AttributeError) as exc:
        logger.error("evolution_chain_failed", pokedex_id=pokedex_id, error=str(exc))
        return EvolutionChain()

    current_depth = next((depth for member_id, depth in members if member_id == pokedex_id), 0)
    pre_ids = [member_id for member_id, depth in members if depth < current_depth and member_id != pokedex_id]
    post_ids = [member_id for member_id, depth in members if depth > current_depth and member_id != pokedex_id]

    return EvolutionChain(
        pre_evolutions=_resolve(cache, pre_ids),
        evolutions=_resolve(cache, post_ids),
    )


def is_in_evolution_chain(cache: SpeciesCache, source_id: int, target_id: int) -> bool:
    return fetch_evolution_chain(cache, source_id).contains(target_id)


def _resolve(cache: SpeciesCache, pokedex_ids: List[int]) -> List[EvolutionOption]:
    options: List[EvolutionOption] = []
    for member_id in pokedex_ids:
        try:
            options.append(EvolutionOption.from_species(cache.ensure_cached(member_id)))
        except PokeApiError as exc:
            logger.error("evolution_member_failed", pokedex_id=member_id, error=str(exc))
    return options
