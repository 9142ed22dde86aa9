"""
Tests for the Swiss relevance filter.

These tests verify the keyword stage short-circuit, the category stage with
its early stop, rank order of the result and degradation on failures.
"""

from dataclasses import replace
from typing import List, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from relevance_filter import (
    RelevanceFilterConfig,
    SwissRelevanceFilter,
    create_relevance_filter_config,
    has_swiss_category,
    matches_swiss_keyword,
)
from resilient_fetcher import TransportFailure
from shared.models import Article, ArticleMetadata, Language

SWISS_TITLES = ["Zürich", "Genève", "Bern", "Lausanne", "Lugano", "Basel", "Swiss_Alps",
                "Luzern", "Fribourg", "Bellinzona", "Schweizer_Armee", "Conseil_fédéral"]

SWISS_CATEGORY_ARTICLES = {"Roger_Federer", "Matterhorn", "Toblerone"}


def make_articles(keys: Sequence[str]) -> List[Article]:
    return [Article(article=key, views=100000 - i * 100) for i, key in enumerate(keys)]


def neutral(count: int, start: int = 0) -> List[str]:
    return [f"Topic_{i}" for i in range(start, start + count)]


@pytest.fixture
def enricher() -> MagicMock:
    """Enricher mock giving Swiss categories to a fixed set of articles."""
    async def enrich(articles: Sequence[Article], language: Language) -> List[Article]:
        enriched = []
        for article in articles:
            if article.article in SWISS_CATEGORY_ARTICLES:
                categories = ("Catégorie:Personnalité suisse", "Catégorie:Sport")
            else:
                categories = ("Catégorie:Divers",)
            enriched.append(replace(article, metadata=ArticleMetadata(categories=categories)))
        return enriched

    enricher = MagicMock()
    enricher.enrich = AsyncMock(side_effect=enrich)
    return enricher


class TestMatchers:
    """Test the keyword and category predicates."""

    @pytest.mark.parametrize("key", ["Z%C3%BCrich", "FC_Basel", "Swiss_International_Air_Lines",
                                     "Banque_nationale_suisse", "GENÈVE", "Schweizerische_Bundesbahnen"])
    def test_keyword_match(self, key):
        assert matches_swiss_keyword(Article(article=key, views=1))

    @pytest.mark.parametrize("key", ["Topic_1", "Paris", "Taylor_Swift", "Python_(langage)"])
    def test_keyword_no_match(self, key):
        assert not matches_swiss_keyword(Article(article=key, views=1))

    def test_category_match_is_case_insensitive(self):
        article = Article(article="X", views=1,
                          metadata=ArticleMetadata(categories=("Category:SWITZERLAND stubs",)))

        assert has_swiss_category(article)

    def test_category_without_metadata(self):
        assert not has_swiss_category(Article(article="X", views=1))
        assert not has_swiss_category(Article(article="X", views=1, metadata=ArticleMetadata()))


class TestConfig:
    """Test configuration validation."""

    def test_defaults(self):
        config = RelevanceFilterConfig()

        assert config.keyword_match_threshold == 10
        assert config.category_batch_size == 50
        assert config.max_results == 50

    def test_invalid_batch_size(self):
        with pytest.raises(ValueError, match="batch size"):
            RelevanceFilterConfig(category_batch_size=0)

    def test_create_config(self):
        config = create_relevance_filter_config(keyword_match_threshold=5, max_results=20)

        assert config.keyword_match_threshold == 5
        assert config.category_batch_size == 50
        assert config.max_results == 20

        with pytest.raises(ValueError, match="Max results"):
            create_relevance_filter_config(max_results=0)


class TestKeywordStage:
    """Test stage one and its short-circuit."""

    @pytest.mark.asyncio
    async def test_short_circuit_returns_exact_keyword_subset(self, enricher):
        keys = []
        for swiss, other in zip(SWISS_TITLES, neutral(len(SWISS_TITLES))):
            keys.extend([other, swiss])
        keys.append("Roger_Federer")
        articles = make_articles(keys)

        result = await SwissRelevanceFilter(enricher).filter_relevant(articles, Language.FR)

        assert [a.article for a in result] == SWISS_TITLES
        enricher.enrich.assert_not_called()

    @pytest.mark.asyncio
    async def test_threshold_is_inclusive(self, enricher):
        articles = make_articles(SWISS_TITLES[:10] + neutral(5))

        result = await SwissRelevanceFilter(enricher).filter_relevant(articles, Language.FR)

        assert len(result) == 10
        enricher.enrich.assert_not_called()


class TestCategoryStage:
    """Test stage two category lookups."""

    @pytest.mark.asyncio
    async def test_category_matches_merged_in_rank_order(self, enricher):
        keys = ["Topic_0", "Roger_Federer", "Zürich", "Topic_1", "Matterhorn", "Bern", "Topic_2"]
        articles = make_articles(keys)

        result = await SwissRelevanceFilter(enricher).filter_relevant(articles, Language.DE)

        assert [a.article for a in result] == ["Roger_Federer", "Zürich", "Matterhorn", "Bern"]
        assert result[0].metadata is not None
        assert result[1].metadata is None

    @pytest.mark.asyncio
    async def test_only_unmatched_articles_are_enriched(self, enricher):
        articles = make_articles(["Zürich", "Topic_0", "Roger_Federer"])

        await SwissRelevanceFilter(enricher).filter_relevant(articles, Language.FR)

        enriched_keys = [a.article for call in enricher.enrich.await_args_list for a in call.args[0]]
        assert enriched_keys == ["Topic_0", "Roger_Federer"]

    @pytest.mark.asyncio
    async def test_batches_and_early_stop(self, enricher):
        keys = ["Roger_Federer", "Matterhorn", "Toblerone"] + neutral(10)
        config = RelevanceFilterConfig(category_batch_size=2, max_results=2)
        articles = make_articles(keys)

        result = await SwissRelevanceFilter(enricher, config).filter_relevant(articles, Language.FR)

        assert enricher.enrich.await_count == 1
        assert [a.article for a in result] == ["Roger_Federer", "Matterhorn"]

    @pytest.mark.asyncio
    async def test_all_batches_processed_below_cap(self, enricher):
        keys = neutral(7) + ["Toblerone"]
        config = RelevanceFilterConfig(category_batch_size=3)

        result = await SwissRelevanceFilter(enricher, config).filter_relevant(
            make_articles(keys), Language.FR)

        assert enricher.enrich.await_count == 3
        assert [a.article for a in result] == ["Toblerone"]

    @pytest.mark.asyncio
    async def test_no_matches_at_all(self, enricher):
        result = await SwissRelevanceFilter(enricher).filter_relevant(
            make_articles(neutral(4)), Language.EN)

        assert result == []

    @pytest.mark.asyncio
    async def test_failure_returns_keyword_matches(self, enricher):
        enricher.enrich.side_effect = TransportFailure("metadata service down")
        articles = make_articles(["Topic_0", "Zürich", "Roger_Federer", "Bern"])

        result = await SwissRelevanceFilter(enricher).filter_relevant(articles, Language.FR)

        assert [a.article for a in result] == ["Zürich", "Bern"]

    @pytest.mark.asyncio
    async def test_failure_in_later_batch_returns_keyword_matches(self, enricher):
        calls = {"count": 0}
        original = enricher.enrich.side_effect

        async def flaky(articles, language):
            calls["count"] += 1
            if calls["count"] > 1:
                raise TransportFailure("metadata service down")
            return await original(articles, language)

        enricher.enrich.side_effect = flaky
        config = RelevanceFilterConfig(category_batch_size=1)
        articles = make_articles(["Roger_Federer", "Genève", "Topic_0"])

        result = await SwissRelevanceFilter(enricher, config).filter_relevant(articles, Language.FR)

        assert [a.article for a in result] == ["Genève"]
