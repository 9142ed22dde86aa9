"""Shared data models for the pageview ranking service.

This module contains the core data structures used throughout the pipeline
for representing ranked articles, their metadata and view histories.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote


class Language(str, Enum):
    """Supported Wikipedia language editions."""

    FR = "fr"
    EN = "en"
    DE = "de"
    ES = "es"

    @property
    def project(self) -> str:
        return f"{self.value}.wikipedia"


class Period(str, Enum):
    """Observation periods offered to the display layer.

    The upstream service only publishes daily top lists, so a period only
    changes the comparison date used for trend computation.
    """

    DAILY = "daily"
    HOURS_48 = "48h"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def comparison_offset_days(self) -> int:
        """Days back from today for the comparison snapshot."""
        return _COMPARISON_OFFSETS[self]


_COMPARISON_OFFSETS = {
    Period.DAILY: 2,
    Period.HOURS_48: 3,
    Period.WEEKLY: 8,
    Period.MONTHLY: 31,
}


class ReliabilityTier(str, Enum):
    """Confidence in a computed growth figure."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def decode_title(article: str) -> str:
    """Decode a URL-encoded article key into a readable title.

    Underscores stand in for spaces in article keys.
    """
    return unquote(article).replace("_", " ")


@dataclass(frozen=True)
class ArticleMetadata:
    """Descriptive data attached to an article after enrichment.

    Attributes:
        description: Short description (first characters of the extract)
        thumbnail: Thumbnail URL or empty string
        categories: Category titles the article belongs to
        extract: Full introduction text
    """

    description: str = ""
    thumbnail: str = ""
    categories: Tuple[str, ...] = field(default_factory=tuple)
    extract: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "thumbnail": self.thumbnail,
            "categories": list(self.categories),
            "extract": self.extract,
        }


@dataclass(frozen=True)
class Article:
    """Represents one ranked article from a pageview snapshot.

    Instances are never mutated: each pipeline stage builds new ones with
    ``dataclasses.replace``.

    Attributes:
        article: URL-encoded article key, unique within a snapshot
        views: Views during the observation window
        growth: views - previous_views, set by trend computation
        growth_percentage: growth relative to previous_views in percent
        previous_views: Views in the comparison period (0 if absent)
        reliability: Confidence tier of the growth figure
        metadata: Optional descriptive data from the metadata service
    """

    article: str
    views: int
    growth: Optional[int] = None
    growth_percentage: Optional[float] = None
    previous_views: Optional[int] = None
    reliability: Optional[ReliabilityTier] = None
    metadata: Optional[ArticleMetadata] = None

    def __post_init__(self) -> None:
        """Validate article data."""
        if not self.article:
            raise ValueError("Article key cannot be empty")
        if self.views < 0:
            raise ValueError("Views must be non-negative")

    @property
    def title(self) -> str:
        return decode_title(self.article)

    def url(self, language: Language) -> str:
        """Link to the article on its language edition."""
        return f"https://{Language(language).value}.wikipedia.org/wiki/{self.article}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "article": self.article,
            "title": self.title,
            "views": self.views,
        }
        if self.growth is not None:
            data["growth"] = self.growth
        if self.growth_percentage is not None:
            data["growth_percentage"] = self.growth_percentage
        if self.previous_views is not None:
            data["previous_views"] = self.previous_views
        if self.reliability is not None:
            data["reliability"] = self.reliability.value
        if self.metadata is not None:
            data["metadata"] = self.metadata.to_dict()
        return data


@dataclass(frozen=True)
class ViewHistoryPoint:
    """Daily view count of a single article.

    Attributes:
        date: Day in ISO format (YYYY-MM-DD)
        views: Views on that day
    """

    date: str
    views: int

    def __post_init__(self) -> None:
        if self.views < 0:
            raise ValueError("Views must be non-negative")

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "views": self.views}
