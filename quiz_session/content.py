"""Content index and game instance retrieval.

Game content lives on a static host laid out as::

    dict/{language}/index.json      -> {"instances": <n>}
    dict/{language}/{index}.json    -> opaque game instance

``HttpContentSource`` talks to such a host with httpx.  Every failure mode
(transport error, timeout, non-2xx status, undecodable body) is reported as
``ContentUnavailable`` so callers only handle one error type.  The instance
payload is not interpreted here beyond being valid JSON; its schema belongs to
the game-play screen.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from .errors import ContentUnavailable, InvalidIndexBounds

logger = structlog.get_logger(__name__)

JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


@dataclass(frozen=True, slots=True)
class ContentIndex:
    instance_count: int

    @classmethod
    def from_json(cls, data: object, *, language: str) -> "ContentIndex":
        if not isinstance(data, dict):
            raise ContentUnavailable("content index is not a JSON object", language=language)
        raw = data.get("instances")
        # bool is an int subclass; {"instances": true} is not a count.
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise InvalidIndexBounds(f"content index has no integer 'instances': {raw!r}", language=language)
        if raw <= 0:
            raise InvalidIndexBounds(f"content index has {raw} instances", language=language)
        return cls(instance_count=raw)


@dataclass(frozen=True, slots=True)
class GameInstance:
    language: str
    index: int
    payload: Any

    @property
    def key(self) -> tuple[str, int]:
        return (self.language, self.index)


class ContentSource(Protocol):
    async def fetch_index(self, language: str) -> ContentIndex: ...
    async def fetch_instance(self, language: str, index: int) -> GameInstance: ...


def index_path(language: str) -> str:
    return f"dict/{language}/index.json"


def instance_path(language: str, index: int) -> str:
    return f"dict/{language}/{index}.json"


class HttpContentSource:
    """ContentSource backed by an ``httpx.AsyncClient``.

    Pass ``client`` to share an existing client; otherwise one is built from
    ``base_url``/``timeout_s``/``transport`` and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout_s: float = 5.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_s,
            headers=JSON_HEADERS,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpContentSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_index(self, language: str) -> ContentIndex:
        data = await self._get_json(index_path(language), language=language)
        return ContentIndex.from_json(data, language=language)

    async def fetch_instance(self, language: str, index: int) -> GameInstance:
        if index < 0:
            raise InvalidIndexBounds(f"negative instance index {index}", language=language, index=index)
        data = await self._get_json(instance_path(language, index), language=language, index=index)
        return GameInstance(language=language, index=index, payload=data)

    async def _get_json(self, path: str, *, language: str, index: int | None = None) -> object:
        try:
            response = await self._client.get(path, headers=JSON_HEADERS)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            logger.info("content_request_failed", path=path, error=str(exc))
            raise ContentUnavailable(f"request for {path} failed: {exc}", language=language, index=index) from exc
        except ValueError as exc:
            # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors.
            logger.info("content_body_invalid", path=path, error=str(exc))
            raise ContentUnavailable(f"{path} is not valid JSON", language=language, index=index) from exc
