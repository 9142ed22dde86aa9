"""
Metadata Enricher

Attaches descriptions, thumbnails, categories and extracts from the
MediaWiki API to ranked articles. Enrichment is best-effort: any failure
leaves the articles exactly as they were.
"""

from dataclasses import replace
from typing import List, Sequence

import structlog

from shared.models import Article, Language, decode_title
from wikimedia_api import METADATA_BATCH_LIMIT, WikimediaAPI


class MetadataEnricher:
    """Batch metadata lookups for lists of articles."""

    def __init__(self, api: WikimediaAPI, batch_size: int = METADATA_BATCH_LIMIT) -> None:
        """
        Initialize the enricher.

        Args:
            api: Wikimedia API wrapper used for the metadata requests
            batch_size: Titles per metadata request (upstream limit is 25)
        """
        if not 1 <= batch_size <= METADATA_BATCH_LIMIT:
            raise ValueError(f"Batch size must be between 1 and {METADATA_BATCH_LIMIT}")
        self.api = api
        self.batch_size = batch_size
        self.logger = structlog.get_logger(__name__)

    async def enrich(self, articles: Sequence[Article], language: Language) -> List[Article]:
        """Return new articles with metadata attached where the API has some.

        Articles without a matching metadata entry are returned unchanged. If
        any batch fails, the input articles are returned unmodified.

        Args:
            articles: Articles to enrich, order is preserved
            language: Language edition the titles belong to

        Returns:
            Enriched copy of the article list
        """
        if not articles:
            return []

        log = self.logger.bind(language=Language(language).value, articles=len(articles))
        enriched: List[Article] = []

        try:
            for start in range(0, len(articles), self.batch_size):
                batch = articles[start:start + self.batch_size]
                titles = [decode_title(article.article) for article in batch]
                metadata = await self.api.fetch_page_metadata(titles, language)

                for article, title in zip(batch, titles):
                    entry = metadata.get(title)
                    enriched.append(replace(article, metadata=entry) if entry else article)
        except Exception as e:
            log.warning("Metadata enrichment failed, returning articles unchanged", error=str(e))
            return list(articles)

        log.debug("Metadata enrichment complete",
                  enriched=sum(1 for article in enriched if article.metadata is not None))
        return enriched
