from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from deep_research.config import Settings


@dataclass
class SearchResult:
    """Normalized search result from the Exa search API."""
    id: str
    title: str
    url: str
    text: str
    published_date: str = ""
    author: str = ""


def _parse_exa_response(payload: Any) -> list[SearchResult]:
    if not isinstance(payload, dict):
        raise ValueError("Exa response must be a JSON object")
    results: list[SearchResult] = []
    for item in payload.get("results") or []:
        if not isinstance(item, dict):
            continue
        results.append(
            SearchResult(
                id=str(item.get("id") or ""),
                title=str(item.get("title") or ""),
                url=str(item.get("url") or ""),
                text=str(item.get("text") or ""),
                published_date=str(item.get("publishedDate") or ""),
                author=str(item.get("author") or ""),
            )
        )
    return results


class ExaSearchClient:
    """Web search over Exa's ``/search`` endpoint.

    API: POST https://api.exa.ai/search
    Headers:
        - x-api-key: <api_key>
    Body:
        {"query": ..., "type": "auto", "numResults": N, "contents": {"text": true}}

    The client owns an ``httpx.AsyncClient`` unless one is passed in; close it
    with ``aclose`` or use the instance as an async context manager.
    """

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = "https://api.exa.ai/search",
        num_results: int = 10,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ValueError("EXA_API_KEY not configured")
        self.api_key = api_key
        self.endpoint = endpoint
        self.num_results = num_results
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExaSearchClient":
        return cls(
            settings.exa_api_key,
            endpoint=settings.exa_endpoint,
            num_results=settings.exa_num_search_results,
            timeout=settings.search_timeout_seconds,
        )

    async def search_results(self, query: str, num_results: int | None = None) -> list[SearchResult]:
        """Execute a web search and return structured results in ranking order."""
        body = {
            "query": query,
            "type": "auto",
            "numResults": num_results or self.num_results,
            "contents": {"text": True},
        }
        t0 = time.monotonic()
        response = await self._client.post(
            self.endpoint,
            json=body,
            headers={"x-api-key": self.api_key},
        )
        response.raise_for_status()
        results = _parse_exa_response(response.json())
        logger.debug(
            f"Exa search returned {len(results)} results for {query!r} "
            f"in {int((time.monotonic() - t0) * 1000)}ms"
        )
        return results

    async def search(self, query: str, num_results: int | None = None) -> list[str]:
        results = await self.search_results(query, num_results)
        return [r.text for r in results]

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ExaSearchClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
