"""Wiki and web search used by the #search tool.

Both helpers take the chat client's shared httpx.AsyncClient and never raise:
failures come back as text so they can be fed to the agent like any other
search result.
"""

import html
import logging
import re
from collections.abc import Callable

import httpx

logger = logging.getLogger(__name__)

WEB_SEARCH_URL = "https://api.duckduckgo.com/"
USER_AGENT = "MineAgent/1.0"
MAX_HITS = 3

# Marker word that asks for a general web search instead of the wiki
BROAD_MARKER = "widely"

NO_WIKI_HITS = "No matching wiki entries."
NO_WEB_HITS = "No web results found."


def strip_html(text: str) -> str:
    """Remove tags and unescape entities from a search snippet."""
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def split_broad_marker(query: str) -> tuple[bool, str]:
    """Return (broad, query) with the broad marker removed."""
    words = query.split()
    if BROAD_MARKER in (w.lower() for w in words):
        kept = [w for w in words if w.lower() != BROAD_MARKER]
        return True, " ".join(kept)
    return False, query.strip()


async def wiki_search(http: httpx.AsyncClient, query: str, wiki_url: str) -> str | None:
    """Query a MediaWiki search API. Returns a summary, or None if nothing matched."""
    params = {
        "action": "query",
        "list": "search",
        "srsearch": query,
        "format": "json",
        "utf8": "1",
    }
    try:
        resp = await http.get(wiki_url, params=params, headers={"User-Agent": USER_AGENT})
        resp.raise_for_status()
        hits = resp.json().get("query", {}).get("search", [])
    except (httpx.HTTPError, ValueError, AttributeError) as e:
        logger.warning("wiki search failed query=%r: %s", query, e)
        return f"Wiki search failed: {e}"

    if not hits:
        return None
    lines = ["Wiki results:"]
    for hit in hits[:MAX_HITS]:
        lines.append(f"- {hit.get('title', '')}: {strip_html(hit.get('snippet', ''))}")
    return "\n".join(lines)


def _collect_topics(topics: list, out: list[str]) -> None:
    for item in topics:
        if len(out) >= MAX_HITS:
            return
        if not isinstance(item, dict):
            continue
        if "Topics" in item:
            _collect_topics(item["Topics"], out)
        elif item.get("Text"):
            out.append(strip_html(item["Text"]))


async def web_search(http: httpx.AsyncClient, query: str) -> str:
    """Query the DuckDuckGo Instant Answer API and summarise the top hits."""
    params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}
    try:
        resp = await http.get(WEB_SEARCH_URL, params=params, headers={"User-Agent": USER_AGENT})
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("web search failed query=%r: %s", query, e)
        return f"Web search failed: {e}"

    if not isinstance(data, dict):
        return NO_WEB_HITS
    abstract = data.get("AbstractText") or ""
    if abstract:
        return f"Web summary ({query}): {strip_html(abstract)}"

    found: list[str] = []
    _collect_topics(data.get("RelatedTopics") or [], found)
    if not found:
        return NO_WEB_HITS
    return "Related results:\n" + "\n".join(f"- {t}" for t in found)


async def search(
    http: httpx.AsyncClient,
    query: str,
    wiki_url: str,
    on_fallback: Callable[[], None] | None = None,
) -> str:
    """Wiki first, falling back to the web; the broad marker skips the wiki."""
    broad, query = split_broad_marker(query)
    if broad:
        return await web_search(http, query)
    result = await wiki_search(http, query, wiki_url)
    if result is None:
        logger.info("no wiki hits for %r, trying web search", query)
        if on_fallback is not None:
            on_fallback()
        return await web_search(http, query)
    return result
