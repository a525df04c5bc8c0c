from __future__ import annotations

from typing import Callable, Dict, Optional

import requests

from nuzlocke_tracker.pokedex.errors import NotFoundError, TransientFetchError
from nuzlocke_tracker.utils.config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from nuzlocke_tracker.utils.logger import get_logger

logger = get_logger(__name__)

SHOWDOWN_GIF_URL = "https://raw.githubusercontent.com/PokeAPI/sprites/master/sprites/pokemon/other/showdown/{pokedex_id}.gif"


class PokeApiClient:
    """Thin read-only PokeAPI client that maps failures onto two error kinds."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        requester: Optional[Callable[..., object]] = None,
        head_requester: Optional[Callable[..., object]] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._requester = requester or requests.get
        self._head_requester = head_requester or requests.head

    def fetch_pokemon(self, pokedex_id: int) -> Dict[str, object]:
        return self.fetch_url(f"{self.base_url}/pokemon/{pokedex_id}")

    def fetch_species(self, pokedex_id: int) -> Dict[str, object]:
        return self.fetch_url(f"{self.base_url}/pokemon-species/{pokedex_id}")

    def fetch_url(self, url: str) -> Dict[str, object]:
        try:
            resp = self._requester(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.info("pokeapi_request_failed", url=url, error=str(exc))
            raise TransientFetchError(f"Request to {url} failed: {exc}", url=url) from exc

        status = getattr(resp, "status_code", 200)
        if status == 404:
            raise NotFoundError(f"No upstream record at {url}", url=url, status=status)
        try:
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.info("pokeapi_bad_status", url=url, status=status)
            raise TransientFetchError(f"Unexpected status {status} from {url}", url=url, status=status) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise TransientFetchError(f"Response from {url} is not JSON", url=url, status=status) from exc
        if not isinstance(data, dict):
            raise TransientFetchError(f"Response from {url} is not a JSON object", url=url, status=status)
        return data

    def resource_exists(self, url: str) -> bool:
        """HEAD probe used for sprite files outside the API itself."""
        try:
            resp = self._head_requester(url, timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as exc:
            logger.debug("resource_probe_failed", url=url, error=str(exc))
            return False
        return 200 <= getattr(resp, "status_code", 0) < 300

    def showdown_gif_url(self, pokedex_id: int) -> Optional[str]:
        url = SHOWDOWN_GIF_URL.format(pokedex_id=pokedex_id)
        return url if self.resource_exists(url) else None
