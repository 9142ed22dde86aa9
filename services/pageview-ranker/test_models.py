"""Tests for the shared data models."""

import pytest

from shared.models import (
    Article,
    ArticleMetadata,
    Language,
    Period,
    ReliabilityTier,
    ViewHistoryPoint,
    decode_title,
)


class TestArticle:
    """Test Article validation and serialization."""

    def test_validation(self):
        with pytest.raises(ValueError, match="empty"):
            Article(article="", views=1)
        with pytest.raises(ValueError, match="non-negative"):
            Article(article="Bern", views=-1)

    def test_immutable(self):
        article = Article(article="Bern", views=1)

        with pytest.raises(AttributeError):
            article.views = 2

    def test_title_and_url(self):
        article = Article(article="Conseil_f%C3%A9d%C3%A9ral", views=1)

        assert article.title == "Conseil fédéral"
        assert article.url(Language.FR) == "https://fr.wikipedia.org/wiki/Conseil_f%C3%A9d%C3%A9ral"

    def test_to_dict_minimal(self):
        assert Article(article="Bern", views=10).to_dict() == {
            "article": "Bern", "title": "Bern", "views": 10}

    def test_to_dict_full(self):
        article = Article(
            article="Bern", views=3000, growth=2000, growth_percentage=200.0,
            previous_views=1000, reliability=ReliabilityTier.MEDIUM,
            metadata=ArticleMetadata(description="Capitale", categories=("A", "B")),
        )

        data = article.to_dict()

        assert data["reliability"] == "medium"
        assert data["metadata"]["categories"] == ["A", "B"]
        assert data["growth_percentage"] == 200.0


class TestEnums:
    """Test language and period helpers."""

    def test_language_project(self):
        assert Language.ES.project == "es.wikipedia"

    @pytest.mark.parametrize("period,offset", [
        (Period.DAILY, 2), (Period.HOURS_48, 3), (Period.WEEKLY, 8), (Period.MONTHLY, 31),
    ])
    def test_comparison_offsets(self, period, offset):
        assert period.comparison_offset_days == offset

    def test_period_from_value(self):
        assert Period("48h") is Period.HOURS_48


def test_decode_title():
    assert decode_title("Z%C3%BCrich_Hauptbahnhof") == "Zürich Hauptbahnhof"


def test_view_history_point_validation():
    with pytest.raises(ValueError):
        ViewHistoryPoint(date="2024-05-01", views=-5)
