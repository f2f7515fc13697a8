"""Tests for database models and result assembly."""

import uuid
from decimal import Decimal

from painpoint.models import Search, SearchStats, StoredAnalysis, StoredPainPoint, StoredQuote
from painpoint.orchestrator.schemas import SearchStatus
from painpoint.store.search_repository import build_search_result


def _search(status="completed", **kwargs):
    fields = dict(
        id=uuid.uuid4(),
        topic="database scalability",
        tags=["ask_hn", "story"],
        time_range="month",
        min_upvotes=10,
        sort_by="relevance",
        search_key="searchKey:{}",
        status=status,
    )
    fields.update(kwargs)
    return Search(**fields)


def _pain_point(search, title="Sharding is painful", severity=Decimal("7.50")):
    return StoredPainPoint(
        id=uuid.uuid4(),
        search_id=search.id,
        title=title,
        source_tag="ask_hn",
        mentions_count=12,
        severity_score=severity,
    )


def _quote(pain_point, permalink="https://news.ycombinator.com/item?id=1"):
    return StoredQuote(
        id=uuid.uuid4(),
        pain_point_id=pain_point.id,
        quote_text="We re-sharded twice.",
        author_handle="pg_fan",
        upvotes=40,
        permalink=permalink,
    )


class TestSearchModel:
    def test_create_instance(self):
        search = _search(status="pending", client_fingerprint="ab" * 32)
        assert search.status == "pending"
        assert search.tags == ["ask_hn", "story"]
        assert len(search.client_fingerprint) == 64

    def test_table_names(self):
        assert Search.__tablename__ == "searches"
        assert SearchStats.__tablename__ == "search_results"
        assert StoredPainPoint.__tablename__ == "pain_points"
        assert StoredQuote.__tablename__ == "pain_point_quotes"
        assert StoredAnalysis.__tablename__ == "ai_analyses"

    def test_search_key_indexed(self):
        assert Search.__table__.c.search_key.index is True


class TestBuildSearchResult:
    def test_completed_full_result(self):
        search = _search()
        stats = SearchStats(
            search_id=search.id,
            total_mentions=30,
            total_posts_considered=50,
            total_comments_considered=400,
            source_tags=["ask_hn"],
        )
        pp = _pain_point(search)
        analysis = StoredAnalysis(
            search_id=search.id,
            summary="Scaling is hard.",
            problem_clusters=[{
                "title": "Sharding", "description": "Manual", "severity": 8,
                "mentionCount": 12, "examples": ["ex"],
            }],
            product_ideas=[{
                "title": "Planner", "description": "Plans shards",
                "targetProblem": "Sharding", "impactScore": 7,
            }],
            model="gemini-2.5-flash",
            tokens_used=1000,
        )

        result = build_search_result(search, stats, [pp], [_quote(pp)], analysis)

        assert result.search_id == str(search.id)
        assert result.status is SearchStatus.COMPLETED
        assert result.total_mentions == 30
        assert result.pain_points[0].severity_score == 7.5
        assert result.quotes[0].pain_point_id == str(pp.id)
        assert result.analysis.problem_clusters[0].mention_count == 12
        assert result.analysis.product_ideas[0].impact_score == 7

    def test_malformed_analysis_entries_dropped(self):
        search = _search()
        analysis = StoredAnalysis(
            search_id=search.id,
            summary="s",
            problem_clusters=[{"title": "no severity", "description": "d"}, "junk"],
            product_ideas=[{"title": "t", "description": "d", "targetProblem": "p", "impactScore": "high"}],
        )

        result = build_search_result(search, None, [], [], analysis)
        assert result.analysis.problem_clusters == []
        assert result.analysis.product_ideas == []

    def test_unknown_tags_filtered(self):
        search = _search(tags=["ask_hn", "reddit"])
        result = build_search_result(search, None, [], [], None)
        assert [t.value for t in result.tags] == ["ask_hn"]

    def test_processing_search_has_no_findings(self):
        search = _search(status="processing")
        pp = _pain_point(search)

        result = build_search_result(search, None, [pp], [_quote(pp)], None)
        assert result.status is SearchStatus.PROCESSING
        assert result.pain_points == []
        assert result.quotes == []

    def test_failed_carries_error(self):
        search = _search(status="failed", error_message="worker crashed")
        result = build_search_result(search, None, [], [], None)
        assert result.status is SearchStatus.FAILED
        assert result.error_message == "worker crashed"

    def test_null_severity(self):
        search = _search()
        result = build_search_result(search, None, [_pain_point(search, severity=None)], [], None)
        assert result.pain_points[0].severity_score is None
