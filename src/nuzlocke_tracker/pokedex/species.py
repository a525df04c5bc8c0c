from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Tuple

from nuzlocke_tracker.pokedex.errors import TransientFetchError

# PokeAPI stat tag -> BaseStats field
STAT_TAGS: Dict[str, str] = {
    "hp": "hp",
    "attack": "attack",
    "defense": "defense",
    "special-attack": "special_attack",
    "special-defense": "special_defense",
    "speed": "speed",
}


@dataclass(frozen=True)
class BaseStats:
    hp: int = 0
    attack: int = 0
    defense: int = 0
    special_attack: int = 0
    special_defense: int = 0
    speed: int = 0

    @property
    def total(self) -> int:
        return self.hp + self.attack + self.defense + self.special_attack + self.special_defense + self.speed

    def to_dict(self) -> Dict[str, int]:
        return {
            "hp": self.hp,
            "attack": self.attack,
            "defense": self.defense,
            "spAttack": self.special_attack,
            "spDefense": self.special_defense,
            "speed": self.speed,
        }


@dataclass(frozen=True)
class CachedSpecies:
    pokedex_id: int
    name: str
    types: Tuple[str, ...]
    base_stats: BaseStats
    last_updated: str
    localized_name: Optional[str] = None
    sprite_url: Optional[str] = None
    sprite_gif_url: Optional[str] = None

    def __post_init__(self) -> None:
        validate_species(self)

    @property
    def display_name(self) -> str:
        return self.localized_name or self.name

    def with_gif_sprite(self, url: Optional[str]) -> "CachedSpecies":
        return replace(self, sprite_gif_url=url, last_updated=utc_timestamp())

    def to_dict(self) -> Dict[str, object]:
        """JSON shape shared by the store file and the HTTP responses."""
        payload: Dict[str, object] = {
            "pokedexId": self.pokedex_id,
            "name": self.name,
            "localizedName": self.localized_name,
            "types": list(self.types),
        }
        payload.update(self.base_stats.to_dict())
        payload.update(
            {
                "spriteUrl": self.sprite_url,
                "spriteGifUrl": self.sprite_gif_url,
                "lastUpdated": self.last_updated,
            }
        )
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "CachedSpecies":
        try:
            stats = BaseStats(
                hp=data["hp"],
                attack=data["attack"],
                defense=data["defense"],
                special_attack=data["spAttack"],
                special_defense=data["spDefense"],
                speed=data["speed"],
            )
            return cls(
                pokedex_id=data["pokedexId"],
                name=data["name"],
                localized_name=data.get("localizedName"),
                types=tuple(data["types"]),
                base_stats=stats,
                sprite_url=data.get("spriteUrl"),
                sprite_gif_url=data.get("spriteGifUrl"),
                last_updated=data["lastUpdated"],
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid cached species entry: {exc}") from exc


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_count(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_species(species: CachedSpecies) -> None:
    if not isinstance(species.pokedex_id, int) or isinstance(species.pokedex_id, bool) or species.pokedex_id < 1:
        raise ValueError(f"pokedex_id must be a positive integer, got {species.pokedex_id!r}")
    if not species.name:
        raise ValueError("species name must not be empty")
    if not 1 <= len(species.types) <= 2:
        raise ValueError(f"species #{species.pokedex_id} must have 1 or 2 types, got {len(species.types)}")
    for field_name in STAT_TAGS.values():
        value = getattr(species.base_stats, field_name)
        if not _is_count(value):
            raise ValueError(f"stat {field_name} of #{species.pokedex_id} must be a non-negative integer")


# -- PokeAPI payload normalization -------------------------------------------


def extract_stats(stats_payload: object) -> BaseStats:
    """Match stats on their tag; a missing tag counts as 0."""
    values: Dict[str, int] = {}
    for entry in stats_payload or []:
        tag = entry.get("stat", {}).get("name")
        field_name = STAT_TAGS.get(tag)
        if field_name is None:
            continue
        value = entry.get("base_stat")
        if not _is_count(value):
            raise TransientFetchError(f"Malformed base stat {tag}={value!r}")
        values[field_name] = value
    return BaseStats(**values)


def extract_types(types_payload: object) -> Tuple[str, ...]:
    entries = list(types_payload or [])
    if all("slot" in entry for entry in entries):
        entries.sort(key=lambda entry: entry["slot"])
    types = tuple(entry["type"]["name"] for entry in entries)
    if not 1 <= len(types) <= 2:
        raise TransientFetchError(f"Expected 1 or 2 types, got {len(types)}")
    return types


def extract_sprite(sprites: Mapping[str, object] | None) -> Optional[str]:
    """Official artwork, then the default sprite, then nothing."""
    sprites = sprites or {}
    artwork = (sprites.get("other") or {}).get("official-artwork") or {}
    return artwork.get("front_default") or sprites.get("front_default") or None


def extract_gif_sprite(sprites: Mapping[str, object] | None) -> Optional[str]:
    """Animated sprite advertised by the payload: Showdown, then Black/White."""
    sprites = sprites or {}
    showdown = (sprites.get("other") or {}).get("showdown") or {}
    black_white = ((sprites.get("versions") or {}).get("generation-v") or {}).get("black-white") or {}
    animated = black_white.get("animated") or {}
    return showdown.get("front_default") or animated.get("front_default") or None


def extract_localized_name(species_payload: Mapping[str, object] | None, language: str) -> Optional[str]:
    for entry in (species_payload or {}).get("names", []):
        if entry.get("language", {}).get("name") == language and entry.get("name"):
            return entry["name"]
    return None


def species_from_payload(
    pokedex_id: int,
    pokemon: Mapping[str, object],
    species: Mapping[str, object] | None,
    language: str = "de",
) -> CachedSpecies:
    """Normalize the two upstream records into a ``CachedSpecies``."""
    try:
        name = pokemon["name"]
        base_stats = extract_stats(pokemon.get("stats"))
        types = extract_types(pokemon.get("types"))
        sprites = pokemon.get("sprites")
        localized = extract_localized_name(species, language)
        return CachedSpecies(
            pokedex_id=pokedex_id,
            name=name,
            localized_name=localized or name,
            types=types,
            base_stats=base_stats,
            sprite_url=extract_sprite(sprites),
            sprite_gif_url=extract_gif_sprite(sprites),
            last_updated=utc_timestamp(),
        )
    except TransientFetchError:
        raise
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise TransientFetchError(f"Malformed payload for Pokemon #{pokedex_id}: {exc}") from exc
