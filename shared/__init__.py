"""Shared modules for the pageview ranking service."""

from .models import (
    Article,
    ArticleMetadata,
    Language,
    Period,
    ReliabilityTier,
    ViewHistoryPoint,
    decode_title,
)

__all__ = [
    "Article",
    "ArticleMetadata",
    "Language",
    "Period",
    "ReliabilityTier",
    "ViewHistoryPoint",
    "decode_title",
]
