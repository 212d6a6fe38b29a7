"""Tests for core/search.py."""

from unittest.mock import AsyncMock, MagicMock, patch

from core.search import SERPER_URL, SearchClient


def tavily_returning(results):
    client = MagicMock()
    client.search = AsyncMock(return_value={"results": results})
    return client


def serper_http(payload=None, error=None):
    response = MagicMock()
    response.json.return_value = payload or {}
    http = MagicMock()
    http.post = AsyncMock(return_value=response, side_effect=error)
    http.__aenter__ = AsyncMock(return_value=http)
    http.__aexit__ = AsyncMock(return_value=False)
    return http


async def test_unconfigured_client_returns_nothing():
    client = SearchClient()
    results = await client.search("光伏")
    assert not client.configured
    assert not results.success


async def test_tavily_results_become_citations():
    tavily = tavily_returning([
        {"title": "光伏政策", "url": "https://www.gov.cn/a", "content": "x" * 600, "score": 0.9},
        {"title": "无分数", "url": "https://36kr.com/b", "content": None, "score": None},
    ])
    results = await SearchClient(tavily_client=tavily, max_results=3).search("光伏")

    first, second = results.tavily_results
    assert first.source == "tavily"
    assert len(first.snippet) == 500
    assert first.score == 0.9
    assert second.snippet == ""
    assert second.score == 0.0
    assert tavily.search.call_args.kwargs["max_results"] == 3


async def test_tavily_failure_contributes_nothing():
    tavily = MagicMock()
    tavily.search = AsyncMock(side_effect=RuntimeError("quota exceeded"))
    results = await SearchClient(tavily_client=tavily).search("光伏")
    assert results.tavily_results == []


async def test_serper_results_are_ranked_by_position():
    http = serper_http({"organic": [
        {"title": "a", "link": "https://a.com", "snippet": "one"},
        {"title": "b", "link": "https://b.com", "snippet": "two"},
    ]})
    with patch("httpx.AsyncClient", return_value=http):
        results = await SearchClient(serper_api_key="key").search("光伏")

    assert [c.url for c in results.serper_results] == ["https://a.com", "https://b.com"]
    assert [c.score for c in results.serper_results] == [1.0, 0.5]
    url = http.post.call_args.args[0]
    assert url == SERPER_URL
    assert http.post.call_args.kwargs["headers"]["X-API-KEY"] == "key"


async def test_both_providers_are_combined():
    tavily = tavily_returning([{"title": "t", "url": "https://t.com", "content": "c"}])
    http = serper_http({"organic": [{"title": "s", "link": "https://s.com", "snippet": "s"}]})
    with patch("httpx.AsyncClient", return_value=http):
        results = await SearchClient(serper_api_key="key", tavily_client=tavily).search("光伏")

    assert [c.source for c in results.combined] == ["tavily", "serper"]


async def test_serper_failure_contributes_nothing():
    http = serper_http(error=ConnectionError("timeout"))
    with patch("httpx.AsyncClient", return_value=http):
        results = await SearchClient(serper_api_key="key").search("光伏")
    assert results.serper_results == []
