"""Tests for batch metadata enrichment."""

from typing import Dict, List, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from metadata_enricher import MetadataEnricher
from resilient_fetcher import TransportFailure
from shared.models import Article, ArticleMetadata, Language


def metadata_for(title: str) -> ArticleMetadata:
    return ArticleMetadata(
        description=f"About {title}",
        thumbnail=f"https://upload.wikimedia.org/{title}.png",
        categories=(f"Catégorie:{title}",),
        extract=f"About {title}. Long text.",
    )


@pytest.fixture
def api() -> MagicMock:
    """API mock answering with metadata for every requested title except 'Unknown *'."""
    async def fetch_page_metadata(titles: Sequence[str], language: Language) -> Dict[str, ArticleMetadata]:
        return {title: metadata_for(title) for title in titles if not title.startswith("Unknown")}

    api = MagicMock()
    api.fetch_page_metadata = AsyncMock(side_effect=fetch_page_metadata)
    return api


def make_articles(count: int, prefix: str = "Page") -> List[Article]:
    return [Article(article=f"{prefix}_{i}", views=10000 - i) for i in range(count)]


class TestMetadataEnricher:
    """Test suite for MetadataEnricher."""

    def test_invalid_batch_size(self, api):
        with pytest.raises(ValueError):
            MetadataEnricher(api, batch_size=26)
        with pytest.raises(ValueError):
            MetadataEnricher(api, batch_size=0)

    @pytest.mark.asyncio
    async def test_empty_input(self, api):
        enricher = MetadataEnricher(api)

        assert await enricher.enrich([], Language.FR) == []
        api.fetch_page_metadata.assert_not_called()

    @pytest.mark.asyncio
    async def test_attaches_metadata_by_decoded_title(self, api):
        enricher = MetadataEnricher(api)
        articles = [Article(article="Roger_Federer", views=5000),
                    Article(article="Z%C3%BCrich", views=4000)]

        result = await enricher.enrich(articles, Language.FR)

        api.fetch_page_metadata.assert_awaited_once_with(["Roger Federer", "Zürich"], Language.FR)
        assert result[0].metadata == metadata_for("Roger Federer")
        assert result[1].metadata == metadata_for("Zürich")
        assert [a.views for a in result] == [5000, 4000]

    @pytest.mark.asyncio
    async def test_batches_of_25(self, api):
        enricher = MetadataEnricher(api)

        result = await enricher.enrich(make_articles(60), Language.EN)

        batch_sizes = [len(call.args[0]) for call in api.fetch_page_metadata.await_args_list]
        assert batch_sizes == [25, 25, 10]
        assert [a.article for a in result] == [a.article for a in make_articles(60)]

    @pytest.mark.asyncio
    async def test_unmatched_articles_returned_unchanged(self, api):
        enricher = MetadataEnricher(api)
        articles = [Article(article="Known", views=3), Article(article="Unknown_page", views=2)]

        result = await enricher.enrich(articles, Language.DE)

        assert len(result) == 2
        assert result[0].metadata is not None
        assert result[1] is articles[1]

    @pytest.mark.asyncio
    async def test_input_is_not_modified(self, api):
        enricher = MetadataEnricher(api)
        articles = make_articles(3)

        result = await enricher.enrich(articles, Language.FR)

        assert all(a.metadata is None for a in articles)
        assert all(a.metadata is not None for a in result)

    @pytest.mark.asyncio
    async def test_failure_returns_original_articles(self, api):
        api.fetch_page_metadata.side_effect = [
            {"Page 0": metadata_for("Page 0")},
            TransportFailure("connection reset"),
        ]
        enricher = MetadataEnricher(api)
        articles = make_articles(30)

        result = await enricher.enrich(articles, Language.ES)

        assert result == articles
        assert all(a.metadata is None for a in result)
