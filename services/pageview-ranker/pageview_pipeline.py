"""
Pageview Pipeline

Composes fetching, page filtering, relevance filtering, enrichment and trend
computation into the operations offered to the display layer. Failures at
this boundary are logged and turned into an empty result: an empty list
means "no data, possibly a transient failure", never "no articles exist".
"""

import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, List, Optional

import structlog
from prometheus_client import Counter, Histogram

from metadata_enricher import MetadataEnricher
from page_filter import filter_unwanted_pages
from relevance_filter import RelevanceFilterConfig, SwissRelevanceFilter
from shared.models import Article, Language, Period, ViewHistoryPoint
from trend_calculator import TrendCalculator, TrendCalculatorConfig
from wikimedia_api import WikimediaAPI

logger = structlog.get_logger(__name__)

# Prometheus metrics
PIPELINE_DURATION = Histogram('pageview_pipeline_seconds', 'Pipeline operation duration',
                              ['operation'])
PIPELINE_FAILURES = Counter('pageview_pipeline_failures_total',
                            'Operations that returned no data because of a failure', ['operation'])


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass
class PipelineConfig:
    """Configuration parameters for the pipeline operations."""

    # Maximum number of articles returned by a ranking operation
    result_limit: int = 50

    # Days back from today of the most recent complete day
    current_day_offset: int = 1

    # Default length of an article view history
    default_history_days: int = 30

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.result_limit < 1:
            raise ValueError("Result limit must be at least 1")
        if self.current_day_offset < 0:
            raise ValueError("Current day offset must be non-negative")
        if self.default_history_days < 1:
            raise ValueError("History length must be at least 1 day")


class PageviewPipeline:
    """Top and trending article operations for one shared set of collaborators."""

    def __init__(
        self,
        api: WikimediaAPI,
        enricher: MetadataEnricher,
        relevance_filter: SwissRelevanceFilter,
        trend_calculator: TrendCalculator,
        config: Optional[PipelineConfig] = None,
        today: Callable[[], date] = utc_today,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            api: Wikimedia API wrapper for snapshots and histories
            enricher: Metadata enricher
            relevance_filter: Swiss relevance filter
            trend_calculator: Growth computation between snapshots
            config: Result caps and date settings
            today: Source of the current date, injectable for tests
        """
        self.api = api
        self.enricher = enricher
        self.relevance_filter = relevance_filter
        self.trend_calculator = trend_calculator
        self.config = config or PipelineConfig()
        self._today = today

    def current_day(self) -> date:
        """Most recent fully elapsed day."""
        return self._today() - timedelta(days=self.config.current_day_offset)

    def comparison_day(self, period: Period) -> date:
        return self._today() - timedelta(days=Period(period).comparison_offset_days)

    async def get_top_articles(
        self, language: Language, period: Period, swiss_only: bool
    ) -> List[Article]:
        """
        Most viewed articles of the latest complete day.

        Args:
            language: Language edition
            period: Requested period (the upstream only has daily top lists)
            swiss_only: Keep only Switzerland-related articles

        Returns:
            Up to ``result_limit`` articles in rank order, empty on failure
        """
        log = logger.bind(operation="top", language=Language(language).value,
                          period=Period(period).value, swiss_only=swiss_only)
        start = time.perf_counter()
        try:
            articles = await self._top_articles(language, swiss_only)
        except Exception as e:
            PIPELINE_FAILURES.labels(operation="top").inc()
            log.error("Top articles unavailable", error=str(e))
            return []
        finally:
            PIPELINE_DURATION.labels(operation="top").observe(time.perf_counter() - start)

        log.info("Top articles ready", count=len(articles))
        return articles

    async def get_trending_articles(
        self, language: Language, period: Period, swiss_only: bool
    ) -> List[Article]:
        """
        Articles growing fastest compared with the period's comparison day.

        The comparison baseline is never relevance filtered; the Swiss filter
        is applied only after trend computation.

        Args:
            language: Language edition
            period: Period selecting the comparison day
            swiss_only: Keep only Switzerland-related articles

        Returns:
            Up to ``result_limit`` articles with growth fields, empty on failure
        """
        log = logger.bind(operation="trending", language=Language(language).value,
                          period=Period(period).value, swiss_only=swiss_only)
        start = time.perf_counter()
        try:
            current = await self._top_articles(language, swiss_only=False)
            previous = await self._snapshot(language, self.comparison_day(period))

            trending = self.trend_calculator.compute_trends(current, previous)
            if swiss_only:
                trending = await self.relevance_filter.filter_relevant(trending, language)
            trending = trending[:self.config.result_limit]
        except Exception as e:
            PIPELINE_FAILURES.labels(operation="trending").inc()
            log.error("Trending articles unavailable", error=str(e))
            return []
        finally:
            PIPELINE_DURATION.labels(operation="trending").observe(time.perf_counter() - start)

        log.info("Trending articles ready", count=len(trending))
        return trending

    async def get_article_view_history(
        self, article: str, language: Language, days: Optional[int] = None
    ) -> List[ViewHistoryPoint]:
        """
        Daily views of one article from ``days`` ago up to today.

        Args:
            article: Article key as found in a snapshot
            language: Language edition
            days: Number of days to look back, defaults to the configured length

        Returns:
            Chronological daily views, empty on failure
        """
        days = days or self.config.default_history_days
        end = self._today()
        start = end - timedelta(days=days)
        try:
            return await self.api.fetch_view_history(article, language, start, end)
        except Exception as e:
            PIPELINE_FAILURES.labels(operation="history").inc()
            logger.error("View history unavailable", article=article,
                         language=Language(language).value, error=str(e))
            return []

    async def _snapshot(self, language: Language, day: date) -> List[Article]:
        articles = await self.api.fetch_top_articles(language, day)
        return filter_unwanted_pages(articles)

    async def _top_articles(self, language: Language, swiss_only: bool) -> List[Article]:
        articles = await self._snapshot(language, self.current_day())

        if swiss_only:
            articles = await self.relevance_filter.filter_relevant(articles, language)

        # enrichment preserves order and length
        articles = articles[:self.config.result_limit]
        if articles:
            articles = await self.enricher.enrich(articles, language)

        return articles


def create_pipeline(
    api: WikimediaAPI,
    pipeline_config: Optional[PipelineConfig] = None,
    relevance_filter_config: Optional[RelevanceFilterConfig] = None,
    trend_calculator_config: Optional[TrendCalculatorConfig] = None,
    metadata_batch_size: int = 25,
) -> PageviewPipeline:
    """
    Wire a pipeline and its collaborators around one API wrapper.

    Args:
        api: Wikimedia API wrapper shared by all stages
        pipeline_config: Result caps and date settings
        relevance_filter_config: Swiss filter thresholds
        trend_calculator_config: Reliability thresholds
        metadata_batch_size: Titles per metadata request

    Returns:
        Ready to use PageviewPipeline
    """
    enricher = MetadataEnricher(api, batch_size=metadata_batch_size)
    return PageviewPipeline(
        api=api,
        enricher=enricher,
        relevance_filter=SwissRelevanceFilter(enricher, relevance_filter_config),
        trend_calculator=TrendCalculator(trend_calculator_config),
        config=pipeline_config,
    )
