from pathlib import Path
from typing import Dict, List, Set

import pytest
import requests

from nuzlocke_tracker.pokedex.cache import SpeciesCache
from nuzlocke_tracker.pokedex.pokeapi_client import PokeApiClient
from nuzlocke_tracker.pokedex.store import SpeciesStore

BASE_URL = "http://pokeapi.test/api/v2"


class DummyResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")
        return None

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def pokemon_payload(pokedex_id, name, types, stats, artwork="default", front="default"):
    stat_names = ["hp", "attack", "defense", "special-attack", "special-defense", "speed"]
    if artwork == "default":
        artwork = f"https://img.test/artwork/{pokedex_id}.png"
    if front == "default":
        front = f"https://img.test/front/{pokedex_id}.png"
    return {
        "id": pokedex_id,
        "name": name,
        "types": [{"slot": i + 1, "type": {"name": t}} for i, t in enumerate(types)],
        "stats": [{"base_stat": value, "stat": {"name": tag}} for tag, value in zip(stat_names, stats)],
        "sprites": {"front_default": front, "other": {"official-artwork": {"front_default": artwork}}},
    }


def species_payload(names: Dict[str, str], chain_url=None):
    payload = {"names": [{"language": {"name": lang}, "name": name} for lang, name in names.items()]}
    if chain_url:
        payload["evolution_chain"] = {"url": chain_url}
    return payload


class FakePokeApi:
    """Routes requests by URL; unknown URLs answer 404."""

    def __init__(self):
        self.routes: Dict[str, object] = {}
        self.transient: Set[str] = set()
        self.calls: List[str] = []

    def add_pokemon(self, pokedex_id, name, types, stats, localized=None, **sprites):
        self.routes[f"{BASE_URL}/pokemon/{pokedex_id}"] = pokemon_payload(pokedex_id, name, types, stats, **sprites)
        names = {"en": name.title()}
        if localized:
            names["de"] = localized
        self.routes[f"{BASE_URL}/pokemon-species/{pokedex_id}"] = species_payload(names)

    def fail(self, url):
        self.transient.add(url)

    def __call__(self, url, timeout=10):
        self.calls.append(url)
        if url in self.transient:
            raise requests.ConnectionError("upstream unavailable")
        if url not in self.routes:
            return DummyResponse({"detail": "Not found."}, status_code=404)
        return DummyResponse(self.routes[url])


@pytest.fixture
def fake_api():
    return FakePokeApi()


@pytest.fixture
def cache(tmp_path: Path, fake_api: FakePokeApi) -> SpeciesCache:
    client = PokeApiClient(base_url=BASE_URL, requester=fake_api, head_requester=lambda url, **kw: DummyResponse(status_code=404))
    return SpeciesCache(SpeciesStore(tmp_path), client, language="de")
