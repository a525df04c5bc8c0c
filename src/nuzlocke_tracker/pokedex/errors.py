from __future__ import annotations

from typing import Optional


class PokeApiError(RuntimeError):
    """Base class for failures talking to the upstream Pokédex API."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class NotFoundError(PokeApiError):
    """The upstream API has no record for the requested ID (HTTP 404)."""


class TransientFetchError(PokeApiError):
    """Network failure, unexpected HTTP status or malformed payload."""
