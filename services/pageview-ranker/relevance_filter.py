"""
Swiss Relevance Filter

Two-stage selection of Switzerland-related articles. Stage one matches
titles against a vocabulary of Swiss places, demonyms and institutions.
When that yields too few articles, stage two looks up the categories of
the remaining articles and matches them against a core vocabulary.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Set

import structlog

from metadata_enricher import MetadataEnricher
from shared.models import Article, Language, decode_title

SWISS_LOCATION_TERMS = (
    "zurich", "zürich", "genève", "geneva", "genf", "basel", "bâle", "bern", "berne",
    "lausanne", "winterthur", "winterthour", "lucerne", "luzern", "lugano", "sankt gallen",
    "saint-gall", "biel", "bienne", "thun", "thoune", "köniz", "fribourg", "freiburg",
    "schaffhausen", "schaffhouse", "chur", "coire", "sion", "sitten", "bellinzona",
)

SWISS_GENERAL_TERMS = (
    "suisse", "schweiz", "switzerland", "svizzera", "swiss", "schweizerische",
    "fédéral", "federal", "confederation", "confédération", "eidgenössische",
    "national", "bundesrat", "conseil fédéral",
)

SWISS_KEYWORDS = tuple(dict.fromkeys(SWISS_LOCATION_TERMS + SWISS_GENERAL_TERMS))

SWISS_CATEGORY_TERMS = ("suisse", "schweiz", "switzerland", "svizzera")


@dataclass
class RelevanceFilterConfig:
    """Configuration parameters for the Swiss relevance filter."""

    # Stage one result size that makes the category lookup unnecessary
    keyword_match_threshold: int = 10

    # Articles enriched per stage two round
    category_batch_size: int = 50

    # Stage two stops once this many articles matched overall
    max_results: int = 50

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.keyword_match_threshold < 0:
            raise ValueError("Keyword match threshold must be non-negative")
        if self.category_batch_size < 1:
            raise ValueError("Category batch size must be at least 1")
        if self.max_results < 1:
            raise ValueError("Max results must be at least 1")


def matches_swiss_keyword(article: Article) -> bool:
    title = decode_title(article.article).lower()
    return any(term in title for term in SWISS_KEYWORDS)


def has_swiss_category(article: Article) -> bool:
    if article.metadata is None or not article.metadata.categories:
        return False
    return any(
        term in category.lower()
        for category in article.metadata.categories
        for term in SWISS_CATEGORY_TERMS
    )


class SwissRelevanceFilter:
    """Keep only articles related to Switzerland.

    The result keeps the input rank order. Articles matched through their
    categories are returned in their enriched form.
    """

    def __init__(
        self,
        enricher: MetadataEnricher,
        config: Optional[RelevanceFilterConfig] = None,
    ) -> None:
        self.enricher = enricher
        self.config = config or RelevanceFilterConfig()
        self.logger = structlog.get_logger(__name__)

    async def filter_relevant(self, articles: Sequence[Article], language: Language) -> List[Article]:
        """
        Select the Switzerland-related subset of ``articles``.

        Args:
            articles: Ranked articles to filter
            language: Language edition used for category lookups

        Returns:
            Matching articles in input order
        """
        log = self.logger.bind(language=Language(language).value, articles=len(articles))

        keyword_matches = [article for article in articles if matches_swiss_keyword(article)]
        if len(keyword_matches) >= self.config.keyword_match_threshold:
            log.debug("Keyword stage sufficient", matches=len(keyword_matches))
            return keyword_matches

        try:
            category_matches = await self._match_categories(articles, keyword_matches, language)
        except Exception as e:
            log.warning("Category filtering failed, keeping keyword matches",
                        matches=len(keyword_matches), error=str(e))
            return keyword_matches

        matched_keys: Set[str] = {article.article for article in keyword_matches}
        enriched_by_key = {article.article: article for article in category_matches}
        matched_keys.update(enriched_by_key)

        result = [enriched_by_key.get(article.article, article)
                  for article in articles if article.article in matched_keys]
        log.debug("Category stage complete", keyword_matches=len(keyword_matches),
                  category_matches=len(category_matches))
        return result

    async def _match_categories(
        self,
        articles: Sequence[Article],
        keyword_matches: Sequence[Article],
        language: Language,
    ) -> List[Article]:
        already_matched = {article.article for article in keyword_matches}
        remaining = [article for article in articles if article.article not in already_matched]

        matches: List[Article] = []
        batch_size = self.config.category_batch_size
        for start in range(0, len(remaining), batch_size):
            batch = remaining[start:start + batch_size]
            enriched = await self.enricher.enrich(batch, language)
            matches.extend(article for article in enriched if has_swiss_category(article))

            if len(keyword_matches) + len(matches) >= self.config.max_results:
                break
        return matches


def create_relevance_filter_config(
    keyword_match_threshold: int = 10,
    category_batch_size: int = 50,
    max_results: int = 50,
) -> RelevanceFilterConfig:
    """
    Create a relevance filter configuration with common parameters.

    Args:
        keyword_match_threshold: Keyword matches that skip the category lookup
        category_batch_size: Articles enriched per category round
        max_results: Overall matches that stop the category lookup

    Returns:
        Configured RelevanceFilterConfig object
    """
    return RelevanceFilterConfig(
        keyword_match_threshold=keyword_match_threshold,
        category_batch_size=category_batch_size,
        max_results=max_results,
    )
