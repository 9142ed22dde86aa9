#!/usr/bin/env python3
"""
Pageview Ranker Service

Serves most viewed and trending Wikipedia articles per language edition to
the display layer, optionally restricted to Switzerland-related topics.
Provides health check endpoints and metrics collection.

An empty ``articles`` list means no data was available, which may be a
transient upstream failure rather than a genuine absence of articles.
"""

import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response
import uvicorn
import structlog

from pageview_pipeline import PageviewPipeline, PipelineConfig, create_pipeline
from relevance_filter import create_relevance_filter_config
from resilient_fetcher import DEFAULT_USER_AGENT, ResilientFetcher
from response_cache import ResponseCache
from shared.models import Article, Language, Period
from trend_calculator import create_trend_calculator_config
from wikimedia_api import WikimediaAPI

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

# Global service instances
response_cache: Optional[ResponseCache] = None
fetcher: Optional[ResilientFetcher] = None
pipeline: Optional[PageviewPipeline] = None

# FastAPI app for the ranking API, health checks and metrics
app = FastAPI(title="Pageview Ranker", version="1.0.0")


def _ranking_response(
    articles: List[Article], language: Language, period: Period, swiss_only: bool
) -> Dict[str, Any]:
    return {
        "language": language.value,
        "period": period.value,
        "swiss_only": swiss_only,
        "count": len(articles),
        "last_updated": datetime.now(timezone.utc).isoformat(),
        "articles": [dict(article.to_dict(), url=article.url(language)) for article in articles],
    }


def _require_pipeline() -> PageviewPipeline:
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")
    return pipeline


@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint for Docker health checks."""
    if pipeline is None:
        return {"status": "starting", "service": "pageview-ranker"}

    cache_stats = response_cache.get_stats() if response_cache is not None else {}
    return {"status": "healthy", "service": "pageview-ranker", "cache": cache_stats}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root() -> Dict[str, Any]:
    """Root endpoint with service information."""
    return {
        "service": "pageview-ranker",
        "status": "running",
        "description": "Most viewed and trending Wikipedia articles per language edition",
        "languages": [language.value for language in Language],
        "periods": [period.value for period in Period],
    }


@app.get("/articles/top")
async def top_articles(
    language: Language = Language.FR,
    period: Period = Period.DAILY,
    swiss_only: bool = False,
) -> Dict[str, Any]:
    """Most viewed articles of the latest complete day."""
    articles = await _require_pipeline().get_top_articles(language, period, swiss_only)
    return _ranking_response(articles, language, period, swiss_only)


@app.get("/articles/trending")
async def trending_articles(
    language: Language = Language.FR,
    period: Period = Period.DAILY,
    swiss_only: bool = False,
) -> Dict[str, Any]:
    """Articles with the strongest growth against the period's comparison day."""
    articles = await _require_pipeline().get_trending_articles(language, period, swiss_only)
    return _ranking_response(articles, language, period, swiss_only)


@app.get("/articles/{article:path}/history")
async def article_history(
    article: str,
    language: Language = Language.FR,
    days: int = Query(30, ge=1, le=365),
) -> Dict[str, Any]:
    """Daily views of a single article."""
    history = await _require_pipeline().get_article_view_history(article, language, days)
    return {
        "article": article,
        "language": language.value,
        "days": days,
        "history": [point.to_dict() for point in history],
    }


async def initialize_pipeline() -> None:
    """Initialize the cache, fetcher and pipeline from the environment."""
    global response_cache, fetcher, pipeline

    try:
        response_cache = ResponseCache(
            max_entries=int(os.getenv("CACHE_MAX_ENTRIES", "100")),
            ttl_seconds=float(os.getenv("CACHE_TTL_SECONDS", "900")),
        )
        fetcher = ResilientFetcher(
            response_cache,
            max_attempts=int(os.getenv("FETCH_MAX_ATTEMPTS", "3")),
            initial_backoff=float(os.getenv("FETCH_INITIAL_BACKOFF", "1.0")),
            timeout_seconds=float(os.getenv("FETCH_TIMEOUT_SECONDS", "15")),
            user_agent=os.getenv("WIKIMEDIA_USER_AGENT", DEFAULT_USER_AGENT),
        )
        await fetcher.__aenter__()

        pipeline = create_pipeline(
            WikimediaAPI(fetcher),
            pipeline_config=PipelineConfig(result_limit=int(os.getenv("RESULT_LIMIT", "50"))),
            relevance_filter_config=create_relevance_filter_config(
                keyword_match_threshold=int(os.getenv("SWISS_KEYWORD_THRESHOLD", "10")),
                category_batch_size=int(os.getenv("SWISS_CATEGORY_BATCH_SIZE", "50")),
                max_results=int(os.getenv("SWISS_MAX_RESULTS", "50")),
            ),
            trend_calculator_config=create_trend_calculator_config(
                reliability_floor=int(os.getenv("TREND_RELIABILITY_FLOOR", "100")),
                high_current_views=int(os.getenv("TREND_HIGH_CURRENT_VIEWS", "10000")),
                high_previous_views=int(os.getenv("TREND_HIGH_PREVIOUS_VIEWS", "1000")),
            ),
        )

        logger.info("Pipeline initialized successfully",
                    cache_max_entries=response_cache.max_entries,
                    cache_ttl_seconds=response_cache.ttl_seconds)

    except Exception as e:
        logger.error("Failed to initialize pipeline", error=str(e))
        raise


async def cleanup_pipeline() -> None:
    """Close the HTTP session held by the fetcher."""
    global fetcher, pipeline

    try:
        if fetcher:
            await fetcher.close()
        pipeline = None
        logger.info("Pipeline cleaned up successfully")
    except Exception as e:
        logger.error("Failed to cleanup pipeline", error=str(e))


async def main() -> None:
    """Main application entry point."""
    log_level = os.getenv("LOG_LEVEL", "INFO")
    service_port = int(os.getenv("SERVICE_PORT", "8003"))

    logging.basicConfig(level=getattr(logging, log_level.upper(), logging.INFO),
                        format="%(message)s")
    logger.info("Starting Pageview Ranker service", port=service_port, log_level=log_level)

    try:
        await initialize_pipeline()

        config = uvicorn.Config(
            app,
            host="0.0.0.0",
            port=service_port,
            log_level=log_level.lower()
        )
        server = uvicorn.Server(config)
        await server.serve()

    except Exception as e:
        logger.error("Failed to start Pageview Ranker service", error=str(e))
        raise
    finally:
        await cleanup_pipeline()


if __name__ == "__main__":
    asyncio.run(main())
