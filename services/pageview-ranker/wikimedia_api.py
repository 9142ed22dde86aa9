"""Request builders and response parsers for the Wikimedia APIs.

Covers the three upstream calls the pipeline depends on: the daily top
list and per-article history of the pageviews REST API, and page metadata
from the MediaWiki action API.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, urlencode

from resilient_fetcher import ParseFailure, ResilientFetcher
from shared.models import Article, ArticleMetadata, Language, ViewHistoryPoint

PAGEVIEWS_API_BASE = "https://wikimedia.org/api/rest_v1/metrics/pageviews"
METADATA_BATCH_LIMIT = 25
DESCRIPTION_MAX_CHARS = 150
MAX_CATEGORIES = 10
METADATA_MAX_CONTINUATIONS = 5


def build_top_url(language: Language, day: date) -> str:
    project = Language(language).project
    return f"{PAGEVIEWS_API_BASE}/top/{project}/all-access/{day:%Y}/{day:%m}/{day:%d}"


def build_history_url(article: str, language: Language, start: date, end: date) -> str:
    project = Language(language).project
    return (
        f"{PAGEVIEWS_API_BASE}/per-article/{project}/all-access/all-agents/"
        f"{quote(article, safe='')}/daily/{start:%Y%m%d}/{end:%Y%m%d}"
    )


def build_metadata_url(
    titles: Sequence[str], language: Language, continuation: Optional[Dict[str, Any]] = None
) -> str:
    """Build a MediaWiki query for extracts, thumbnails and categories.

    Titles are decoded, space-separated titles; at most 25 per request.
    ``continuation`` is the ``continue`` object of the previous response.
    """
    if len(titles) > METADATA_BATCH_LIMIT:
        raise ValueError(f"At most {METADATA_BATCH_LIMIT} titles per metadata request")
    params = {
        "action": "query",
        "format": "json",
        "formatversion": "2",
        "prop": "pageimages|extracts|categories",
        "exintro": "1",
        "explaintext": "1",
        "exlimit": "max",
        "pithumbsize": "100",
        "pilimit": str(len(titles)),
        "cllimit": "max",
        "titles": "|".join(titles),
        "origin": "*",
    }
    for key, value in (continuation or {}).items():
        params[key] = str(value)
    return f"https://{Language(language).value}.wikipedia.org/w/api.php?{urlencode(params)}"


def parse_top_articles(payload: Any) -> List[Article]:
    """Extract the ranked article list from a top-list response."""
    try:
        raw_articles = payload["items"][0]["articles"]
        return [Article(article=str(item["article"]), views=int(item["views"]))
                for item in raw_articles]
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise ParseFailure(f"Unexpected top articles payload: {e}") from e


def parse_view_history(payload: Any) -> List[ViewHistoryPoint]:
    """Convert a per-article response into dated view counts."""
    try:
        items = payload.get("items") or []
        history = []
        for item in items:
            ts = str(item["timestamp"])
            history.append(ViewHistoryPoint(date=f"{ts[0:4]}-{ts[4:6]}-{ts[6:8]}",
                                            views=int(item["views"])))
        return history
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ParseFailure(f"Unexpected view history payload: {e}") from e


def parse_page_metadata(payload: Any) -> Dict[str, ArticleMetadata]:
    """Map each requested title to its metadata.

    MediaWiki normalises titles (e.g. first-letter case); those are mapped
    back so callers can look entries up by the title they sent. Missing or
    invalid pages produce no entry.
    """
    try:
        query = payload.get("query") or {}
        pages = query.get("pages") or []
        requested_by_title: Dict[str, List[str]] = {}
        for norm in query.get("normalized") or []:
            requested_by_title.setdefault(norm["to"], []).append(norm["from"])

        metadata: Dict[str, ArticleMetadata] = {}
        for page in pages:
            if page.get("missing") or page.get("invalid"):
                continue
            extract = page.get("extract") or ""
            thumbnail = (page.get("thumbnail") or {}).get("source") or ""
            categories = tuple(cat["title"] for cat in (page.get("categories") or [])[:MAX_CATEGORIES])
            entry = ArticleMetadata(
                description=extract[:DESCRIPTION_MAX_CHARS],
                thumbnail=thumbnail,
                categories=categories,
                extract=extract,
            )
            title = page["title"]
            metadata[title] = entry
            for original in requested_by_title.get(title, []):
                metadata[original] = entry
        return metadata
    except (AttributeError, KeyError, TypeError) as e:
        raise ParseFailure(f"Unexpected metadata payload: {e}") from e


def merge_metadata_pages(pages: Dict[str, Dict[str, Any]], payload: Any) -> None:
    """Fold one continuation chunk into the pages collected so far.

    Continued MediaWiki queries repeat every page but fill in extracts and
    categories only for the part covered by that chunk.
    """
    for page in (payload.get("query") or {}).get("pages") or []:
        merged = pages.setdefault(page["title"], {"title": page["title"], "categories": []})
        for flag in ("missing", "invalid"):
            if page.get(flag):
                merged[flag] = True
        for key in ("extract", "thumbnail"):
            if page.get(key) and not merged.get(key):
                merged[key] = page[key]
        for category in page.get("categories") or []:
            if category not in merged["categories"]:
                merged["categories"].append(category)


def _checked_metadata_payload(payload: Any) -> Any:
    parse_page_metadata(payload)
    return payload


class WikimediaAPI:
    """Typed access to the Wikimedia endpoints through a ResilientFetcher."""

    def __init__(self, fetcher: ResilientFetcher) -> None:
        self.fetcher = fetcher

    async def fetch_top_articles(self, language: Language, day: date) -> List[Article]:
        url = build_top_url(language, day)
        return await self.fetcher.fetch(url, parse_top_articles)

    async def fetch_view_history(
        self, article: str, language: Language, start: date, end: date
    ) -> List[ViewHistoryPoint]:
        url = build_history_url(article, language, start, end)
        return await self.fetcher.fetch(url, parse_view_history)

    async def fetch_page_metadata(
        self, titles: Sequence[str], language: Language
    ) -> Dict[str, ArticleMetadata]:
        """Fetch metadata for one batch, following MediaWiki continuations.

        TextExtracts returns at most 20 intro extracts per request, so a full
        batch of 25 titles needs a continued query for the remaining ones.
        """
        if not titles:
            return {}

        pages: Dict[str, Dict[str, Any]] = {}
        normalized: Dict[str, Dict[str, Any]] = {}
        continuation: Optional[Dict[str, Any]] = None

        for _ in range(METADATA_MAX_CONTINUATIONS + 1):
            url = build_metadata_url(titles, language, continuation)
            payload = await self.fetcher.fetch(url, _checked_metadata_payload)
            merge_metadata_pages(pages, payload)
            for norm in (payload.get("query") or {}).get("normalized") or []:
                normalized[norm["from"]] = norm
            continuation = payload.get("continue")
            if not continuation:
                break

        return parse_page_metadata({
            "query": {"pages": list(pages.values()), "normalized": list(normalized.values())}
        })
