import asyncio
import logging
from typing import Any, Dict, List, Optional

from .types import Citation, SearchResults

logger = logging.getLogger(__name__)

SERPER_URL = "https://google.serper.dev/search"


class SearchClient:
    """
    Grounding search across Tavily and Serper.

    Both providers are queried concurrently. A provider that is not
    configured or fails contributes an empty list.
    """

    def __init__(
        self,
        tavily_api_key: Optional[str] = None,
        serper_api_key: Optional[str] = None,
        max_results: int = 5,
        timeout: float = 30.0,
        tavily_client: Optional[Any] = None,
    ):
        self.serper_api_key = serper_api_key
        self.max_results = max_results
        self.timeout = timeout
        self.tavily_client = tavily_client
        if self.tavily_client is None and tavily_api_key:
            from tavily import AsyncTavilyClient
            self.tavily_client = AsyncTavilyClient(api_key=tavily_api_key)

    @property
    def configured(self) -> bool:
        return bool(self.tavily_client or self.serper_api_key)

    async def search(self, query: str) -> SearchResults:
        tavily_results, serper_results = await asyncio.gather(
            self._search_tavily(query),
            self._search_serper(query),
        )
        return SearchResults(tavily_results=tavily_results, serper_results=serper_results)

    async def _search_tavily(self, query: str) -> List[Citation]:
        if self.tavily_client is None:
            return []
        try:
            response = await self.tavily_client.search(
                query=query,
                search_depth="basic",
                include_answer=True,
                max_results=self.max_results,
            )
        except Exception as e:
            logger.warning("Tavily search failed: %s", e)
            return []

        return [
            Citation(
                title=r.get("title", ""),
                url=r.get("url", ""),
                snippet=(r.get("content") or "")[:500],
                source="tavily",
                score=r.get("score", 0.0) or 0.0,
            )
            for r in response.get("results", [])
        ]

    async def _search_serper(self, query: str) -> List[Citation]:
        if not self.serper_api_key:
            return []

        import httpx

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    SERPER_URL,
                    headers={"X-API-KEY": self.serper_api_key, "Content-Type": "application/json"},
                    json={"q": query},
                )
                response.raise_for_status()
                data: Dict[str, Any] = response.json()
        except Exception as e:
            logger.warning("Serper search failed: %s", e)
            return []

        return [
            Citation(
                title=r.get("title", ""),
                url=r.get("link", ""),
                snippet=r.get("snippet", ""),
                source="serper",
                score=1.0 / (index + 1),
            )
            for index, r in enumerate(data.get("organic", [])[: self.max_results])
        ]
