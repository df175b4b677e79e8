"""Tests for mineagent.search: wiki lookup with web fallback."""

import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from mineagent import search
from mineagent.search import (
    NO_WEB_HITS,
    WEB_SEARCH_URL,
    split_broad_marker,
    strip_html,
    web_search,
    wiki_search,
)

WIKI_URL = "https://wiki.example/api.php"


def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            f"HTTP {status}", request=MagicMock(), response=resp
        )
    )
    return resp


WIKI_HITS = {"query": {"search": [
    {"title": "Beacon", "snippet": "A <span class=\"searchmatch\">beacon</span> is a block &amp; light"},
    {"title": "Beacon pyramid", "snippet": "Pyramid of mineral blocks"},
]}}
WIKI_EMPTY = {"query": {"search": []}}
WEB_ABSTRACT = {"AbstractText": "Minecraft is a <b>sandbox</b> game.", "RelatedTopics": []}


def test_strip_html():
    assert strip_html("<b>a</b>  &lt;b&gt;\n c") == "a <b> c"


def test_split_broad_marker():
    assert split_broad_marker("widely redstone clock") == (True, "redstone clock")
    assert split_broad_marker("redstone Widely clock") == (True, "redstone clock")
    assert split_broad_marker("widelyknown thing") == (False, "widelyknown thing")


async def test_wiki_search_formats_hits():
    mock_get = AsyncMock(return_value=_mock_response(WIKI_HITS))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await wiki_search(http, "beacon", WIKI_URL)
    assert result == (
        "Wiki results:\n"
        "- Beacon: A beacon is a block & light\n"
        "- Beacon pyramid: Pyramid of mineral blocks"
    )
    assert mock_get.call_args[0][0] == WIKI_URL
    assert mock_get.call_args.kwargs["params"]["srsearch"] == "beacon"


async def test_wiki_search_no_hits():
    mock_get = AsyncMock(return_value=_mock_response(WIKI_EMPTY))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            assert await wiki_search(http, "zzz", WIKI_URL) is None


async def test_wiki_search_error_is_text():
    mock_get = AsyncMock(return_value=_mock_response({}, status=503))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await wiki_search(http, "beacon", WIKI_URL)
    assert result.startswith("Wiki search failed:")


async def test_web_search_abstract():
    mock_get = AsyncMock(return_value=_mock_response(WEB_ABSTRACT))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await web_search(http, "minecraft")
    assert result == "Web summary (minecraft): Minecraft is a sandbox game."
    assert mock_get.call_args[0][0] == WEB_SEARCH_URL


async def test_web_search_related_topics():
    body = {"AbstractText": "", "RelatedTopics": [
        {"Text": "First"},
        {"Name": "Group", "Topics": [{"Text": "Second"}, {"Text": "Third"}, {"Text": "Fourth"}]},
    ]}
    mock_get = AsyncMock(return_value=_mock_response(body))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await web_search(http, "q")
    assert result == "Related results:\n- First\n- Second\n- Third"


async def test_web_search_nothing():
    mock_get = AsyncMock(return_value=_mock_response({"AbstractText": "", "RelatedTopics": []}))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            assert await web_search(http, "q") == NO_WEB_HITS


async def test_web_search_connection_error():
    mock_get = AsyncMock(side_effect=httpx.ConnectError("offline"))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await web_search(http, "q")
    assert result == "Web search failed: offline"


async def test_search_prefers_wiki():
    mock_get = AsyncMock(return_value=_mock_response(WIKI_HITS))
    fallback = MagicMock()
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await search.search(http, "beacon", WIKI_URL, on_fallback=fallback)
    assert result.startswith("Wiki results:")
    assert mock_get.call_count == 1
    fallback.assert_not_called()


async def test_search_falls_back_to_web():
    mock_get = AsyncMock(side_effect=[_mock_response(WIKI_EMPTY), _mock_response(WEB_ABSTRACT)])
    fallback = MagicMock()
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await search.search(http, "minecraft", WIKI_URL, on_fallback=fallback)
    assert result.startswith("Web summary")
    fallback.assert_called_once()
    assert mock_get.call_args_list[1][0][0] == WEB_SEARCH_URL


async def test_search_broad_skips_wiki():
    mock_get = AsyncMock(return_value=_mock_response(WEB_ABSTRACT))
    with patch("httpx.AsyncClient.get", mock_get):
        async with httpx.AsyncClient() as http:
            result = await search.search(http, "widely minecraft", WIKI_URL)
    assert result == "Web summary (minecraft): Minecraft is a sandbox game."
    assert mock_get.call_count == 1
    assert mock_get.call_args[0][0] == WEB_SEARCH_URL
