"""
Tests for the hybrid DuplicateDetectionEngine: chronological merging,
relevance and embedding filtering, AI verification and error containment.
"""
from dataclasses import replace

import pytest

from listing_dedup.detection import DuplicateDetectionEngine, create_detector
from listing_dedup.detection.advanced import AdvancedDuplicateDetector
from listing_dedup.detection.engine import filter_relevant_listings, is_compatible_floor
from listing_dedup.exceptions import ConfigurationError
from listing_dedup.interfaces import SegmentFilter
from listing_dedup.models import ProcessingStatus
from listing_dedup.repository import InMemoryObjectRepository

from helpers import (
    ALPHA,
    SIMILAR_060,
    SIMILAR_090,
    FakeCompletionService,
    FakeVectorizer,
    FlakyRepository,
    make_listing,
    members,
)


def build_engine(config, listings, vectors=None, answer="ДА", repository=None, **kwargs):
    repository = repository or InMemoryObjectRepository(listings)
    vectorizer = kwargs.pop('vectorizer', None) or FakeVectorizer(vectors or {})
    completion = kwargs.pop('completion', None) or FakeCompletionService(answer)
    engine = DuplicateDetectionEngine(config, repository, vectorizer, completion, **kwargs)
    return engine, repository, vectorizer, completion


class TestRelevanceFilter:

    def test_unknown_floor_is_compatible(self):
        assert is_compatible_floor(None, 5)
        assert is_compatible_floor(5, None)
        assert is_compatible_floor(5, 5)
        assert not is_compatible_floor(5, 9)

    def test_property_type_must_match(self):
        new = make_listing("n", property_type="2-room")
        older = [make_listing("a", property_type="1-room"), make_listing("b", property_type="2-room")]
        assert [l.id for l in filter_relevant_listings(new, older)] == ["b"]

    def test_floor_mismatch_rejected(self):
        new = make_listing("n", floor=9)
        older = [make_listing("a", floor=5), make_listing("b", floor=None)]
        assert [l.id for l in filter_relevant_listings(new, older)] == ["b"]


class TestPlacement:

    def test_lone_listing_creates_single_object(self, config):
        listing = make_listing("L1")
        engine, repository, _, completion = build_engine(config, [listing])

        results = engine.run(repository.listings)

        assert members(repository) == {"obj_1": ["L1"]}
        assert listing.processing_status == ProcessingStatus.PROCESSED
        assert results.objects_created == 1
        assert results.merged == 0
        assert completion.prompts == []

    def test_confirmed_duplicate_joins_older_object(self, config):
        a = make_listing("A", day=1, area_total=40, description="Светлая квартира, есть сауна alpha")
        b = make_listing("B", day=3, area_total=41, description="Продаётся квартира с сауной, сауна beta")
        engine, repository, _, completion = build_engine(
            config, [b, a], vectors={"alpha": ALPHA, "beta": SIMILAR_090}, answer="ДА")

        results = engine.run(repository.listings)

        assert members(repository) == {"obj_1": ["A", "B"]}
        assert a.object_id == b.object_id == "obj_1"
        assert results.merged == 1
        assert results.objects_created == 1
        assert results.processed == 2
        assert results.ai_verified == 1
        assert len(completion.prompts) == 1

    def test_floor_mismatch_skips_embedding_and_ai(self, config):
        c = make_listing("C", day=1, floor=5, description="alpha")
        d = make_listing("D", day=2, floor=9, description="alpha")
        engine, repository, vectorizer, completion = build_engine(config, [c, d], vectors={"alpha": ALPHA})

        results = engine.run(repository.listings)

        assert sorted(members(repository).values()) == [["C"], ["D"]]
        assert vectorizer.embed_calls == []
        assert completion.prompts == []
        assert results.relevance_filtered == 1

    def test_low_embedding_similarity_never_reaches_ai(self, config):
        a = make_listing("A", day=1, description="alpha")
        b = make_listing("B", day=2, description="gamma")
        engine, repository, _, completion = build_engine(
            config, [a, b], vectors={"alpha": ALPHA, "gamma": SIMILAR_060})

        results = engine.run(repository.listings)

        assert completion.prompts == []
        assert results.embedding_filtered == 1
        assert results.filtered == 1
        assert len(repository.objects) == 2

    def test_ai_rejection_creates_new_object(self, config):
        a = make_listing("A", day=1, description="alpha")
        b = make_listing("B", day=2, description="beta")
        engine, repository, _, _ = build_engine(
            config, [a, b], vectors={"alpha": ALPHA, "beta": SIMILAR_090}, answer="НЕТ")

        results = engine.run(repository.listings)

        assert sorted(members(repository).values()) == [["A"], ["B"]]
        assert results.analyzed == 1
        assert results.merged == 0

    def test_first_confirmed_candidate_wins(self, config):
        a = make_listing("A", day=1, description="alpha one")
        b = make_listing("B", day=2, description="beta two")
        c = make_listing("C", day=3, description="alpha three")

        def answer(prompt):
            # Only C vs A is a duplicate
            return "ДА" if "alpha one" in prompt and "alpha three" in prompt else "НЕТ"

        engine, repository, _, completion = build_engine(
            config, [a, b, c], vectors={"alpha": ALPHA, "beta": SIMILAR_090}, answer=answer)

        engine.run(repository.listings)

        assert members(repository)[a.object_id] == ["A", "C"]
        assert b.object_id != a.object_id
        # B vs A, then C vs A (best similarity first) which confirms
        assert len(completion.prompts) == 2

    def test_merged_listing_stays_a_comparison_target(self, config):
        listings = [make_listing(f"L{i}", day=i, description="alpha") for i in range(1, 4)]
        repository = FlakyRepository(listings)
        engine, _, _, _ = build_engine(config, listings, vectors={"alpha": ALPHA}, repository=repository)

        engine.run(repository.listings)

        assert members(repository) == {"obj_1": ["L1", "L2", "L3"]}
        history = repository.snapshots["obj_1"]
        assert history == [["L1"], ["L1", "L2"], ["L1", "L2", "L3"]]
        for before, after in zip(history, history[1:]):
            assert set(before) <= set(after)

    def test_listings_without_timestamp_processed_last(self, config):
        undated = make_listing("X", day=None, description="alpha")
        dated = make_listing("Y", day=5, description="alpha")
        engine, repository, _, _ = build_engine(config, [undated, dated], vectors={"alpha": ALPHA})

        engine.run(repository.listings)

        assert members(repository) == {"obj_1": ["Y", "X"]}

    def test_groups_are_independent(self, config):
        a = make_listing("A", address_id="addr_1", description="alpha")
        b = make_listing("B", address_id="addr_2", description="alpha")
        engine, repository, _, completion = build_engine(config, [a, b], vectors={"alpha": ALPHA})

        results = engine.run(repository.listings)

        assert results.groups == 2
        assert len(repository.objects) == 2
        assert completion.prompts == []

    def test_parallel_groups_match_sequential(self, config):
        def dataset():
            return [make_listing(f"{addr}-{i}", day=i, address_id=addr, description="alpha")
                    for addr in ("a1", "a2", "a3") for i in range(1, 3)]

        sequential_listings = dataset()
        engine, seq_repo, _, _ = build_engine(config, sequential_listings, vectors={"alpha": ALPHA})
        sequential = engine.run(seq_repo.listings)

        parallel_listings = dataset()
        engine, par_repo, _, _ = build_engine(replace(config, n_jobs=2), parallel_listings,
                                              vectors={"alpha": ALPHA})
        parallel = engine.run(par_repo.listings)

        assert parallel.merged == sequential.merged == 3
        assert sorted(map(sorted, members(par_repo).values())) == \
            sorted(map(sorted, members(seq_repo).values()))


class TestRuns:

    def test_second_run_changes_nothing(self, config):
        listings = [make_listing("A", day=1, description="alpha"),
                    make_listing("B", day=2, description="alpha"),
                    make_listing("C", day=3, floor=9, description="alpha")]
        engine, repository, _, completion = build_engine(config, listings, vectors={"alpha": ALPHA})

        engine.run(repository.listings)
        first = members(repository)
        prompts = len(completion.prompts)

        second = engine.run(repository.listings)

        assert members(repository) == first
        assert second.total_found == 0
        assert second.objects_created == 0
        assert len(completion.prompts) == prompts

    def test_new_listing_joins_object_from_earlier_run(self, config):
        a = make_listing("A", day=1, description="alpha")
        engine, repository, _, _ = build_engine(config, [a], vectors={"alpha": ALPHA, "beta": SIMILAR_090})
        engine.run(repository.listings)

        b = make_listing("B", day=4, description="beta")
        repository.add_listings([b])
        results = engine.run(repository.listings)

        assert members(repository) == {"obj_1": ["A", "B"]}
        assert results.merged == 1
        assert results.objects_created == 0

    def test_listing_id_filter(self, config):
        listings = [make_listing("A", address_id="x"), make_listing("B", address_id="y")]
        engine, repository, _, _ = build_engine(config, listings)

        results = engine.run(repository.listings, listing_ids=["B"])

        assert results.total_found == 1
        assert listings[0].processing_status == ProcessingStatus.DUPLICATE_CHECK_NEEDED
        assert listings[1].processing_status == ProcessingStatus.PROCESSED

    def test_predicate_filter(self, config):
        listings = [make_listing("A", address_id="x", price=1e6), make_listing("B", address_id="y", price=9e6)]
        engine, repository, _, _ = build_engine(config, listings)

        results = engine.run(repository.listings, predicate=lambda l: l.price > 5e6)

        assert results.total_found == 1
        assert listings[1].object_id is not None

    def test_only_pending_listings_collected(self, config):
        pending = make_listing("A")
        archived = make_listing("B", address_id="y", processing_status=ProcessingStatus.ARCHIVED)
        no_address = make_listing("C", address_id=None, processing_status=ProcessingStatus.NEEDS_ADDRESS)
        engine, repository, _, _ = build_engine(config, [pending, archived, no_address])

        results = engine.run(repository.listings)

        assert results.total_found == 1
        assert results.errors == 0

    def test_empty_run_returns_message(self, config):
        engine, repository, _, _ = build_engine(config, [])

        results = engine.run([])

        assert results.total_found == 0
        assert "No listings" in results.summary()

    def test_progress_events(self, config):
        events = []
        listings = [make_listing("A", day=1, description="alpha"), make_listing("B", day=2, description="alpha")]
        engine, repository, _, _ = build_engine(config, listings, vectors={"alpha": ALPHA},
                                                progress_callback=events.append)

        engine.run(repository.listings)

        stages = [e.stage for e in events]
        assert stages[0] == 'embedding_preparation'
        assert 'grouped' in stages
        assert 'ai_verification' in stages
        assert stages[-1] == 'completed'
        percents = [e.progress_percent for e in events]
        assert percents == sorted(percents)
        assert percents[-1] == 100

    def test_failing_progress_callback_is_ignored(self, config):
        def callback(event):
            raise RuntimeError("sink down")

        engine, repository, _, _ = build_engine(config, [make_listing("A")], progress_callback=callback)

        results = engine.run(repository.listings)

        assert results.processed == 1


class TestErrorContainment:

    def test_missing_description_is_skipped_and_counted(self, config):
        listing = make_listing("A", description=None)
        engine, repository, _, _ = build_engine(config, [listing])

        results = engine.run(repository.listings)

        assert results.errors == 1
        assert results.skipped == 1
        assert listing.processing_status == ProcessingStatus.DUPLICATE_CHECK_NEEDED
        assert repository.objects == []

    def test_missing_description_allowed_when_not_required(self, config):
        listing = make_listing("A", description=None)
        engine, repository, _, _ = build_engine(replace(config, require_description=False), [listing])

        results = engine.run(repository.listings)

        assert results.processed == 1

    def test_ai_failure_counts_error_and_keeps_going(self, config):
        a = make_listing("A", day=1, description="alpha")
        b = make_listing("B", day=2, description="alpha")
        engine, repository, _, _ = build_engine(config, [a, b], vectors={"alpha": ALPHA},
                                                completion=FakeCompletionService(fail=True))

        results = engine.run(repository.listings)

        assert len(repository.objects) == 2
        assert results.errors == 1
        assert results.processed == 2

    def test_ai_timeout_is_a_no(self, config):
        a = make_listing("A", day=1, description="alpha")
        b = make_listing("B", day=2, description="alpha")
        engine, repository, _, _ = build_engine(replace(config, ai_timeout=0.05), [a, b],
                                                vectors={"alpha": ALPHA},
                                                completion=FakeCompletionService("ДА", delay=0.5))

        results = engine.run(repository.listings)

        assert len(repository.objects) == 2
        assert results.errors == 1

    def test_vectorizer_failure_fails_open(self, config):
        a = make_listing("A", day=1, description="alpha")
        b = make_listing("B", day=2, description="zzz")
        vectorizer = FakeVectorizer(fail=True)
        engine, repository, _, completion = build_engine(config, [a, b], vectorizer=vectorizer)

        results = engine.run(repository.listings)

        assert len(completion.prompts) == 1
        assert members(repository) == {"obj_1": ["A", "B"]}
        # warm-up failure plus one failed filter call
        assert results.errors == 2

    def test_repository_write_failure_leaves_listing_pending(self, config):
        a = make_listing("A", day=1, address_id="x")
        b = make_listing("B", day=1, address_id="y")
        repository = FlakyRepository([a, b], fail_create_for={"A"})
        engine, _, _, _ = build_engine(config, [a, b], repository=repository)

        results = engine.run(repository.listings)

        assert a.processing_status == ProcessingStatus.DUPLICATE_CHECK_NEEDED
        assert a.object_id is None
        assert b.processing_status == ProcessingStatus.PROCESSED
        assert results.errors == 1

    def test_lost_status_update_recovered_next_run(self, config):
        a = make_listing("A")
        repository = FlakyRepository([a], fail_status_for={"A"})
        engine, _, _, _ = build_engine(config, [a], repository=repository)

        first = engine.run(repository.listings)
        assert first.errors == 1
        assert a.processing_status == ProcessingStatus.DUPLICATE_CHECK_NEEDED

        second = engine.run(repository.listings)

        assert second.objects_created == 0
        assert a.processing_status == ProcessingStatus.PROCESSED
        assert members(repository) == {"obj_1": ["A"]}

    def test_unreadable_address_skips_group(self, config):
        a = make_listing("A")
        repository = FlakyRepository([a], fail_address_reads=True)
        engine, _, _, _ = build_engine(config, [a], repository=repository)

        results = engine.run(repository.listings)

        assert results.errors == 1
        assert a.processing_status == ProcessingStatus.DUPLICATE_CHECK_NEEDED


class TestConfiguration:

    def test_repository_required(self, config):
        with pytest.raises(ConfigurationError):
            DuplicateDetectionEngine(config, None, FakeVectorizer(), FakeCompletionService())

    def test_repository_contract_checked(self, config):
        with pytest.raises(ConfigurationError):
            DuplicateDetectionEngine(config, object(), FakeVectorizer(), FakeCompletionService())

    def test_vectorizer_and_completion_required(self, config):
        repository = InMemoryObjectRepository()
        with pytest.raises(ConfigurationError):
            DuplicateDetectionEngine(config, repository, None, FakeCompletionService())
        with pytest.raises(ConfigurationError):
            DuplicateDetectionEngine(config, repository, FakeVectorizer(), None)

    def test_segment_filter_needs_provider(self, config):
        engine, repository, _, _ = build_engine(config, [make_listing("A")])
        with pytest.raises(ConfigurationError):
            engine.run(repository.listings, segment_filter=SegmentFilter(segment_ids=("s1",)))

    def test_create_detector_by_mode(self, config):
        repository = InMemoryObjectRepository()
        hybrid = create_detector(config, repository, FakeVectorizer(), FakeCompletionService())
        clustering = create_detector(replace(config, engine_mode="clustering"), repository)

        assert isinstance(hybrid, DuplicateDetectionEngine)
        assert isinstance(clustering, AdvancedDuplicateDetector)
