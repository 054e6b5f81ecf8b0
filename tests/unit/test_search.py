"""
Unit Tests - Search Engine

Validation, ranking, option handling and caching.
"""

import json

import pytest

from lufykms.core.exceptions import InvalidOptionsError, InvalidQueryError
from lufykms.core.types import Document, SearchOptions, SearchResult


async def _seed(document_store, *docs):
    for doc_id, content, embedding, metadata in docs:
        await document_store.save(
            Document(id=doc_id, content=content, embedding=embedding, metadata=metadata)
        )


# Vectors in the keyword space: python, redis, cache, search, vector, cooking, garden, music
PYTHON = [1.0, 0, 0, 0, 0, 0, 0, 0]
PYTHON_REDIS = [1.0, 1.0, 0, 0, 0, 0, 0, 0]
REDIS = [0, 1.0, 0, 0, 0, 0, 0, 0]
COOKING = [0, 0, 0, 0, 0, 1.0, 0, 0]


@pytest.fixture
async def seeded(document_store):
    await _seed(
        document_store,
        ("py", "Python notes.", PYTHON, {"source": "wiki", "lang": "en"}),
        ("pyredis", "Python and Redis.", PYTHON_REDIS, {"source": "blog", "lang": "en"}),
        ("redis", "Redis notes.", REDIS, {"source": "wiki", "lang": "fr"}),
        ("cook", "Cooking notes.", COOKING, {"source": "wiki", "lang": "en"}),
        ("bare", "No embedding.", None, {"source": "wiki"}),
    )
    return document_store


class TestValidation:
    """Tests for query and option validation."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    async def test_blank_query(self, search_engine, backend, query):
        with pytest.raises(InvalidQueryError):
            await search_engine.search_similar(query)
        assert backend.call_count == 0

    @pytest.mark.asyncio
    async def test_query_too_long(self, search_engine):
        with pytest.raises(InvalidQueryError):
            await search_engine.search_similar("a" * 10001)

    @pytest.mark.asyncio
    async def test_query_at_limit_is_accepted(self, search_engine):
        assert await search_engine.search_similar("a" * 10000) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "options",
        [{"limit": 0}, {"limit": 101}, {"min_similarity": -0.1}, {"min_similarity": 1.5}],
    )
    async def test_invalid_options(self, search_engine, backend, options):
        with pytest.raises(InvalidOptionsError):
            await search_engine.search_similar("python", options)
        assert backend.call_count == 0

    @pytest.mark.asyncio
    async def test_wrong_option_type(self, search_engine, backend):
        with pytest.raises(InvalidOptionsError) as exc_info:
            await search_engine.search_similar("python", {"limit": "many"})
        assert exc_info.value.context["errors"]
        assert backend.call_count == 0

    @pytest.mark.asyncio
    async def test_unknown_option_key(self, search_engine, backend):
        with pytest.raises(InvalidOptionsError):
            await search_engine.search_similar("python", {"minSimilarity": 0.99})
        assert backend.call_count == 0


class TestCacheKey:
    """Tests for create_search_cache_key."""

    def test_defaults_filled_in(self, search_engine):
        key = search_engine.create_search_cache_key("  Python ", SearchOptions())
        prefix, options_json = key.rsplit("_", 1)
        assert prefix == "search_python"
        assert json.loads(options_json) == {
            "includeMetadata": True,
            "limit": 5,
            "minSimilarity": 0.1,
        }

    def test_zero_min_similarity_is_kept(self, search_engine):
        key = search_engine.create_search_cache_key("q", SearchOptions(min_similarity=0.0))
        assert '"minSimilarity": 0.0' in key

    def test_equivalent_options_share_key(self, search_engine):
        explicit = SearchOptions(limit=5, min_similarity=0.1, include_metadata=True)
        assert search_engine.create_search_cache_key(
            "Q", explicit
        ) == search_engine.create_search_cache_key("q", SearchOptions())


class TestSearchSimilar:
    """Tests for search_similar."""

    @pytest.mark.asyncio
    async def test_ranked_descending(self, search_engine, seeded):
        results = await search_engine.search_similar("python")
        assert [r.id for r in results] == ["py", "pyredis"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].similarity >= results[1].similarity

    @pytest.mark.asyncio
    async def test_base_floor_excludes_unrelated(self, search_engine, seeded):
        results = await search_engine.search_similar("python")
        assert "cook" not in {r.id for r in results}
        assert all(r.similarity >= 0.1 for r in results)

    @pytest.mark.asyncio
    async def test_documents_without_embedding_ignored(self, search_engine, seeded):
        results = await search_engine.search_similar("python redis")
        assert "bare" not in {r.id for r in results}

    @pytest.mark.asyncio
    async def test_min_similarity(self, search_engine, seeded):
        results = await search_engine.search_similar("python", {"min_similarity": 0.9})
        assert [r.id for r in results] == ["py"]
        assert all(r.similarity >= 0.9 for r in results)

    @pytest.mark.asyncio
    async def test_limit(self, search_engine, seeded):
        results = await search_engine.search_similar("python redis", {"limit": 1})
        assert [r.id for r in results] == ["pyredis"]

    @pytest.mark.asyncio
    async def test_default_limit_is_five(self, search_engine, document_store):
        await _seed(
            document_store,
            *[(f"d{i}", f"doc {i}", PYTHON, {}) for i in range(8)],
        )
        results = await search_engine.search_similar("python")
        assert len(results) == 5

    @pytest.mark.asyncio
    async def test_ties_keep_corpus_order(self, search_engine, document_store):
        await _seed(
            document_store,
            *[(f"d{i}", f"doc {i}", PYTHON, {}) for i in range(4)],
        )
        results = await search_engine.search_similar("python", {"limit": 10})
        assert [r.id for r in results] == ["d0", "d1", "d2", "d3"]

    @pytest.mark.asyncio
    async def test_exclude_metadata(self, search_engine, seeded):
        results = await search_engine.search_similar("python", {"include_metadata": False})
        assert results
        assert all(r.metadata == {} for r in results)

        stored = await seeded.get("py")
        assert stored.metadata["source"] == "wiki"

    @pytest.mark.asyncio
    async def test_corrupt_dimension_is_skipped(self, search_engine, document_store, log_buffer):
        await _seed(
            document_store,
            ("good", "Python.", PYTHON, {}),
            ("broken", "Python too.", [1.0, 0.0], {}),
        )
        results = await search_engine.search_similar("python")

        assert [r.id for r in results] == ["good"]
        assert "Skipping document during scoring" in log_buffer.messages()

    @pytest.mark.asyncio
    async def test_empty_corpus(self, search_engine):
        assert await search_engine.search_similar("python") == []


class TestSearchCaching:
    """Tests for the two cache levels."""

    @pytest.mark.asyncio
    async def test_repeat_query_served_from_cache(self, search_engine, seeded, backend, metrics):
        first = await search_engine.search_similar("python")
        calls = backend.call_count
        second = await search_engine.search_similar("python")

        assert first == second
        assert backend.call_count == calls
        assert metrics.counter("search_requests_total").get(cache="hit") == 1

    @pytest.mark.asyncio
    async def test_cached_results_isolated_from_caller(self, search_engine, seeded):
        first = await search_engine.search_similar("python")
        first[0].metadata["source"] = "edited"
        first.clear()

        second = await search_engine.search_similar("python")
        second[0].metadata["lang"] = "edited"

        third = await search_engine.search_similar("python")
        assert third[0].metadata == {"source": "wiki", "lang": "en"}

    @pytest.mark.asyncio
    async def test_snapshot_reused_across_queries(self, search_engine, seeded):
        list_calls = []
        original = seeded.list_all

        async def counting_list_all():
            list_calls.append(1)
            return await original()

        seeded.list_all = counting_list_all

        await search_engine.search_similar("python")
        await search_engine.search_similar("redis")
        assert len(list_calls) == 1

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self, search_engine, seeded, clock):
        list_calls = []
        original = seeded.list_all

        async def counting_list_all():
            list_calls.append(1)
            return await original()

        seeded.list_all = counting_list_all

        await search_engine.search_similar("python")
        clock.advance(1799)
        await search_engine.search_similar("python")
        assert len(list_calls) == 1

        clock.advance(1)
        await search_engine.search_similar("python")
        assert len(list_calls) == 2

    @pytest.mark.asyncio
    async def test_invalidation_forces_reload(self, search_engine, seeded):
        await search_engine.search_similar("python")
        await seeded.save(Document(id="new", content="Python again.", embedding=PYTHON))

        # Still cached
        assert "new" not in {r.id for r in await search_engine.search_similar("python")}

        search_engine.invalidate_cache()
        results = await search_engine.search_similar("python", {"limit": 10})
        assert "new" in {r.id for r in results}

    @pytest.mark.asyncio
    async def test_invalidation_during_load_is_respected(self, search_engine, seeded):
        """A search racing a mutation does not re-cache the stale snapshot."""
        original = seeded.list_all

        async def list_then_invalidate():
            documents = await original()
            search_engine.invalidate_cache()
            return documents

        seeded.list_all = list_then_invalidate
        await search_engine.search_similar("python")

        assert search_engine.cache.get_documents() is None
        assert search_engine.get_cache_stats().query_entries == 0

    @pytest.mark.asyncio
    async def test_clear_cache(self, search_engine, seeded, metrics):
        await search_engine.search_similar("python")
        search_engine.clear_cache()

        stats = search_engine.get_cache_stats()
        assert stats.document_entries == 0
        assert stats.query_entries == 0
        assert metrics.counter("cache_invalidations_total").get(reason="manual") == 1


class TestSearchHelpers:
    """Tests for highlights, suggestions, metadata filter and summaries."""

    @pytest.mark.asyncio
    async def test_highlights(self, search_engine, document_store):
        content = "Python is great. Cooking is fun! Python scales well? The end."
        await _seed(document_store, ("h", content, PYTHON, {}))

        results = await search_engine.search_with_highlights("python")
        assert results[0].highlights == ["Python is great", "Python scales well"]

    def test_highlights_ignore_short_words(self, search_engine):
        assert search_engine.extract_highlights("An ox. A cat.", "an ox") == []

    def test_highlights_capped_at_three(self, search_engine):
        content = "redis one. redis two. redis three. redis four."
        assert len(search_engine.extract_highlights(content, "redis")) == 3

    @pytest.mark.asyncio
    async def test_suggestions(self, search_engine, document_store):
        await _seed(
            document_store,
            ("a", "Python pythonic pythonista py", PYTHON, {}),
            ("b", "pythonic code", PYTHON, {}),
        )
        suggestions = await search_engine.get_search_suggestions("Py")
        assert suggestions == ["python", "pythonic", "pythonista"]

    @pytest.mark.asyncio
    async def test_suggestions_limit_and_short_input(self, search_engine, document_store):
        await _seed(document_store, ("a", "pa1 pa2 pa3 pa4", PYTHON, {}))
        assert await search_engine.get_search_suggestions("p") == []
        assert await search_engine.get_search_suggestions("pa", limit=2) == ["pa1", "pa2"]

    @pytest.mark.asyncio
    async def test_metadata_filter(self, search_engine, seeded):
        results = await search_engine.search_with_metadata_filter(
            "python redis",
            {"source": "wiki"},
            {"limit": 1},
        )
        assert [r.id for r in results] == ["py"]

    @pytest.mark.asyncio
    async def test_metadata_filter_multiple_fields(self, search_engine, seeded):
        results = await search_engine.search_with_metadata_filter(
            "python redis",
            {"source": "wiki", "lang": "fr"},
        )
        assert [r.id for r in results] == ["redis"]

    @pytest.mark.asyncio
    async def test_metadata_filter_without_metadata(self, search_engine, seeded):
        results = await search_engine.search_with_metadata_filter(
            "python redis",
            {"source": "wiki"},
            {"include_metadata": False},
        )
        assert [r.id for r in results] == ["py", "redis"]
        assert all(r.metadata == {} for r in results)

    def test_summary_no_results(self, search_engine):
        summary = search_engine.create_search_summary("q", [], 12)
        assert summary == 'No relevant documents found for "q" (searched 12 documents)'

    def test_summary(self, search_engine):
        results = [
            SearchResult(id="a", content="a", similarity=0.9),
            SearchResult(id="b", content="b", similarity=0.5),
        ]
        summary = search_engine.create_search_summary("q", results, 10)
        assert summary == (
            'Found 2 relevant documents for "q" | Best match: 0.900 similarity | '
            "Average similarity: 0.700 | Searched 10 total documents"
        )
