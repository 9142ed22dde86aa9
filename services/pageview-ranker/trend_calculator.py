#!/usr/bin/env python3
"""
Trend Calculation

This module compares a current pageview snapshot with a snapshot from an
earlier period, computes absolute and relative growth, classifies how
reliable each growth figure is and ranks the growing articles.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from shared.models import Article, ReliabilityTier

logger = logging.getLogger(__name__)


@dataclass
class TrendCalculatorConfig:
    """Configuration parameters for trend calculation."""

    # Previous views below this are too few for a meaningful growth figure
    reliability_floor: int = 100

    # Both thresholds must be exceeded for a high reliability classification
    high_current_views: int = 10000
    high_previous_views: int = 1000

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.reliability_floor < 1:
            raise ValueError("Reliability floor must be at least 1")
        if self.high_current_views < 0 or self.high_previous_views < 0:
            raise ValueError("High reliability thresholds must be non-negative")


class TrendCalculator:
    """
    Growth computation between two ranked snapshots.

    Output contains only growing articles, high reliability first, then by
    descending absolute growth.
    """

    def __init__(self, config: Optional[TrendCalculatorConfig] = None):
        """
        Initialize the trend calculator.

        Args:
            config: Thresholds for reliability classification
        """
        self.config = config or TrendCalculatorConfig()

    def compute_trends(self, current: Sequence[Article], previous: Sequence[Article]) -> List[Article]:
        """
        Compute growth of the current articles against the previous snapshot.

        Args:
            current: Articles of the current period
            previous: Articles of the comparison period

        Returns:
            Growing articles with growth fields populated, ranked
        """
        previous_views: Dict[str, int] = {article.article: article.views for article in previous}

        trends = [self._evaluate(article, previous_views.get(article.article, 0))
                  for article in current]
        growing = [article for article in trends if article.growth > 0]

        growing.sort(key=lambda a: (a.reliability != ReliabilityTier.HIGH, -a.growth))

        logger.info(f"Computed trends for {len(current)} articles, {len(growing)} growing")
        return growing

    def _evaluate(self, article: Article, previous_views: int) -> Article:
        """
        Attach growth figures to a single article.

        Args:
            article: Article from the current snapshot
            previous_views: Views in the comparison period, 0 if absent

        Returns:
            New article carrying growth, percentage and reliability
        """
        if previous_views < self.config.reliability_floor:
            return replace(
                article,
                growth=0,
                growth_percentage=0.0,
                previous_views=previous_views,
                reliability=ReliabilityTier.LOW,
            )

        growth = article.views - previous_views
        growth_percentage = (growth / previous_views) * 100

        if (article.views > self.config.high_current_views and
                previous_views > self.config.high_previous_views):
            reliability = ReliabilityTier.HIGH
        else:
            reliability = ReliabilityTier.MEDIUM

        return replace(
            article,
            growth=growth,
            growth_percentage=growth_percentage,
            previous_views=previous_views,
            reliability=reliability,
        )


def create_trend_calculator_config(
    reliability_floor: int = 100,
    high_current_views: int = 10000,
    high_previous_views: int = 1000,
) -> TrendCalculatorConfig:
    """
    Create a trend calculator configuration with common parameters.

    Args:
        reliability_floor: Minimum previous views for a non-zero growth figure
        high_current_views: Current views required for high reliability
        high_previous_views: Previous views required for high reliability

    Returns:
        Configured TrendCalculatorConfig object
    """
    return TrendCalculatorConfig(
        reliability_floor=reliability_floor,
        high_current_views=high_current_views,
        high_previous_views=high_previous_views,
    )
