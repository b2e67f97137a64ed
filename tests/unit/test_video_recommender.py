"""Unit tests for the module video recommendation pipeline."""

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import FakeProvider, build_candidate
from models.video import SearchOptions
from services.video_recommender import (
    VideoRecommender,
    FALLBACK_OPTIONS,
    build_queries,
    dedupe_by_id,
    filter_subject_relevant,
    filter_unused,
    level_tag,
    select_diverse,
    strip_module_prefix,
)

GENERIC_SUFFIXES = ("tutorial", "lesson", "guide", "course", "introduction", "fundamentals")


class TestQueryFanOut:

    def test_strip_module_prefix(self):
        assert strip_module_prefix("Module 3: Loops and Iteration") == "Loops and Iteration"
        assert strip_module_prefix("module 12 :  Decorators") == "Decorators"
        assert strip_module_prefix("Getting Started") == "Getting Started"

    @pytest.mark.parametrize("number, expected", [
        (1, "beginner"), (2, "basics"), (3, "basics"), (4, "intermediate"),
        (6, "intermediate"), (7, "advanced"), (12, "advanced"),
    ])
    def test_level_tag(self, number, expected):
        assert level_tag(number) == expected

    def test_build_queries_order(self):
        queries = build_queries("Python", "Module 4: File Handling", 4)
        assert queries == [
            "Python File Handling",
            "Python tutorial",
            "Python lesson",
            "learn Python",
            "Python guide",
            "Python intermediate",
            "Python course",
            "Python introduction",
            "Python fundamentals",
        ]

    def test_short_variants_are_discarded(self):
        queries = build_queries("Go", "Module 1:", 1)
        # the title variant collapses to "Go" and is dropped
        assert "Go" not in queries
        assert all(len(q) >= 5 for q in queries)
        assert "Go guide" in queries
        assert "learn Go" in queries


class TestFilters:

    def test_dedupe_keeps_first_occurrence(self):
        first = build_candidate("a", score=10)
        second = build_candidate("a", score=90)
        other = build_candidate("b")
        assert dedupe_by_id([first, other, second]) == [first, other]

    def test_subject_filter(self):
        in_title = build_candidate("a", title="Intro to PYTHON", score=10)
        in_description = build_candidate("b", title="Snakes", description="we use python here", score=10)
        high_score = build_candidate("c", title="Programming", score=70)
        dropped = build_candidate("d", title="Cooking pasta", score=69)

        kept = filter_subject_relevant([in_title, in_description, high_score, dropped], "Python")

        assert kept == [in_title, in_description, high_score]
        for candidate in kept:
            text = (candidate.title + candidate.description).lower()
            assert "python" in text or candidate.relevance_score >= 70

    def test_filter_unused(self):
        a, b = build_candidate("a"), build_candidate("b")
        assert filter_unused([a, b], frozenset({"a"})) == [b]


class TestDiversitySelector:

    def test_two_channels_allowed_before_requiring_unique(self):
        a = build_candidate("a", channel="X", score=95)
        b = build_candidate("b", channel="X", score=90)
        c = build_candidate("c", channel="Y", score=80)
        d = build_candidate("d", channel="Z", score=70)

        assert select_diverse([d, c, b, a]) == [a, b, c, d]

    def test_second_pass_fills_remaining_slots(self):
        a = build_candidate("a", channel="X", score=95)
        b = build_candidate("b", channel="Y", score=90)
        c = build_candidate("c", channel="X", score=85)
        d = build_candidate("d", channel="Z", score=70)
        e = build_candidate("e", channel="Y", score=60)

        # c is skipped in the first pass (X taken, two channels already) and added in the second
        assert select_diverse([a, b, c, d, e]) == [a, b, d, c]

    def test_never_more_than_four_and_only_inputs(self):
        pool = [build_candidate(str(i), channel=f"ch{i % 3}", score=i) for i in range(10)]
        selected = select_diverse(pool)
        assert len(selected) == 4
        assert all(candidate in pool for candidate in selected)
        assert len({c.id for c in selected}) == 4

    def test_small_pool(self):
        only = build_candidate("a")
        assert select_diverse([only]) == [only]
        assert select_diverse([]) == []

    def test_ties_keep_input_order(self):
        first = build_candidate("first", channel="A", score=50)
        second = build_candidate("second", channel="B", score=50)
        assert select_diverse([first, second]) == [first, second]


def module_responses(subject, title, number, candidates):
    """Map the module-specific query of a module to candidates."""
    return {build_queries(subject, title, number)[0]: candidates}


class TestVideoRecommender:

    async def test_fan_out_issues_every_variant(self):
        provider = FakeProvider()
        recommender = VideoRecommender(provider, SearchOptions(max_results=3))

        await recommender.fan_out("Python", "Module 2: Variables", 2)

        assert sorted(provider.queries()) == sorted(build_queries("Python", "Module 2: Variables", 2))
        assert all(options.max_results == 3 for _, options in provider.calls)

    async def test_fan_out_concatenates_in_variant_order(self):
        first = build_candidate("first")
        second = build_candidate("second")
        provider = FakeProvider({"Python Variables": [first], "Python tutorial": [second]})
        recommender = VideoRecommender(provider)

        pool = await recommender.fan_out("Python", "Module 2: Variables", 2)

        assert pool == [first, second]

    async def test_module_selection_commits_ids(self):
        videos = [build_candidate(f"v{i}", channel=f"ch{i}", score=90 - i) for i in range(6)]
        provider = FakeProvider(module_responses("Python", "Module 1: Basics", 1, videos))
        recommender = VideoRecommender(provider)

        selection, used = await recommender.recommend_for_module("Python", 1, "Module 1: Basics", frozenset({"x"}))

        assert selection.video_ids == ["v0", "v1", "v2", "v3"]
        assert used == frozenset({"x", "v0", "v1", "v2", "v3"})
        assert not selection.used_fallback

    async def test_off_subject_results_are_dropped(self):
        relevant = build_candidate("good", title="Python loops", score=40)
        off_topic = build_candidate("bad", title="Cooking show", score=40)
        provider = FakeProvider(module_responses("Python", "Module 1: Loops", 1, [off_topic, relevant]))

        selection, _ = await VideoRecommender(provider).recommend_for_module("Python", 1, "Module 1: Loops", frozenset())

        assert selection.video_ids == ["good"]

    async def test_global_dedup_across_modules(self):
        shared = build_candidate("shared", channel="A", score=99)
        responses = {}
        responses.update(module_responses("Python", "Module 2: Variables", 2, [shared]))
        responses.update(module_responses("Python", "Module 5: Functions", 5, [
            shared, build_candidate("fresh", channel="B", score=60),
        ]))
        provider = FakeProvider(responses)
        modules = [(n, f"Module {n}: {t}") for n, t in
                   [(1, "Intro"), (2, "Variables"), (3, "Loops"), (4, "Lists"), (5, "Functions")]]

        selections = await VideoRecommender(provider).recommend_for_curriculum("Python", modules)

        assert selections[2].video_ids == ["shared"]
        assert selections[5].video_ids == ["fresh"]

    async def test_no_id_repeats_across_run(self):
        generic = [build_candidate(f"g{i}", channel=f"ch{i}", score=80 - i) for i in range(12)]
        provider = FakeProvider({"Python tutorial": generic, "Python course": generic})
        modules = [(n, f"Module {n}: Part {n}") for n in range(1, 6)]

        selections = await VideoRecommender(provider).recommend_for_curriculum("Python", modules)

        all_ids = [vid for s in selections.values() for vid in s.video_ids]
        assert len(all_ids) == len(set(all_ids)) == 12
        assert selections[1].video_ids == ["g0", "g1", "g2", "g3"]
        assert selections[4].video_ids == []

    async def test_empty_module_does_not_stop_generation(self):
        responses = {}
        for number in (1, 2, 4, 5):
            title = f"Module {number}: Part {number}"
            responses.update(module_responses("Python", title, number, [
                build_candidate(f"m{number}", channel="A", score=80),
            ]))
        provider = FakeProvider(responses)
        modules = [(n, f"Module {n}: Part {n}") for n in range(1, 6)]

        selections = await VideoRecommender(provider).recommend_for_curriculum("Python", modules)

        assert selections[3].videos == []
        assert selections[4].video_ids == ["m4"]
        assert selections[5].video_ids == ["m5"]

    async def test_failing_module_yields_empty_selection(self):
        provider = FakeProvider(
            {"Python Part 1": [build_candidate("ok", score=80)]},
            failing_queries={"Python Part 2"},
        )
        modules = [(1, "Module 1: Part 1"), (2, "Module 2: Part 2"), (3, "Module 3: Part 3")]

        selections = await VideoRecommender(provider).recommend_for_curriculum("Python", modules)

        assert selections[1].video_ids == ["ok"]
        assert selections[2].videos == []
        assert set(selections) == {1, 2, 3}

    async def test_modules_processed_in_number_order(self):
        shared = build_candidate("shared", score=90)
        responses = {}
        responses.update(module_responses("Python", "Module 1: A", 1, [shared]))
        responses.update(module_responses("Python", "Module 2: B", 2, [shared]))
        provider = FakeProvider(responses)

        selections = await VideoRecommender(provider).recommend_for_curriculum(
            "Python", [(2, "Module 2: B"), (1, "Module 1: A")])

        assert selections[1].video_ids == ["shared"]
        assert selections[2].video_ids == []

    async def test_fallback_for_late_module(self):
        single = build_candidate("only", channel="A", score=75)
        used = build_candidate("used", channel="B", score=99)
        fallback_pool = [
            single,
            used,
            build_candidate("f1", channel="C", score=30, title="Unrelated"),
            build_candidate("f2", channel="C", score=60, title="Unrelated"),
            build_candidate("f3", channel="D", score=50, title="Unrelated"),
            build_candidate("f4", channel="E", score=20, title="Unrelated"),
        ]
        responses = module_responses("Python", "Module 7: Decorators", 7, [single])
        responses["Python"] = fallback_pool
        provider = FakeProvider(responses)

        selection, committed = await VideoRecommender(provider).recommend_for_module(
            "Python", 7, "Module 7: Decorators", frozenset({"used"}))

        # fallback skips the subject filter but honors global dedup
        assert selection.video_ids == ["only", "f2", "f3", "f1"]
        assert selection.used_fallback
        assert committed == frozenset({"used", "only", "f2", "f3", "f1"})
        fallback_calls = [options for query, options in provider.calls if query == "Python"]
        assert fallback_calls == [FALLBACK_OPTIONS]
        assert FALLBACK_OPTIONS.max_results == 10
        assert (FALLBACK_OPTIONS.min_duration_seconds, FALLBACK_OPTIONS.max_duration_seconds) == (60, 3600)

    async def test_no_fallback_before_module_six(self):
        single = build_candidate("only", score=75)
        responses = module_responses("Python", "Module 5: Classes", 5, [single])
        responses["Python"] = [build_candidate("extra", score=90)]
        provider = FakeProvider(responses)

        selection, _ = await VideoRecommender(provider).recommend_for_module(
            "Python", 5, "Module 5: Classes", frozenset())

        assert selection.video_ids == ["only"]
        assert "Python" not in provider.queries()

    async def test_no_fallback_when_two_selected(self):
        pool = [build_candidate("a", score=80), build_candidate("b", channel="Other", score=70)]
        provider = FakeProvider(module_responses("Python", "Module 8: Async", 8, pool))

        selection, _ = await VideoRecommender(provider).recommend_for_module(
            "Python", 8, "Module 8: Async", frozenset())

        assert selection.video_ids == ["a", "b"]
        assert "Python" not in provider.queries()

    async def test_fallback_with_nothing_found_ships_empty(self):
        provider = FakeProvider()

        selection, committed = await VideoRecommender(provider).recommend_for_module(
            "Python", 9, "Module 9: Packaging", frozenset({"x"}))

        assert selection.videos == []
        assert selection.used_fallback
        assert committed == frozenset({"x"})

    async def test_slow_search_times_out_as_empty(self):

        class SlowProvider(FakeProvider):
            def search(self, query, options=None):
                time.sleep(0.3)
                return [build_candidate("late", score=90)]

        recommender = VideoRecommender(SlowProvider(), timeout=0.05)

        assert await recommender._search("Python tutorial", SearchOptions()) == []

    async def test_stalled_module_does_not_starve_the_next(self):
        # searches must not depend on the loop default executor
        asyncio.get_running_loop().set_default_executor(ThreadPoolExecutor(max_workers=1))
        release = threading.Event()

        class StallingProvider(FakeProvider):
            def search(self, query, options=None):
                with self._lock:
                    self.calls.append((query, options))
                    stalled = len(self.calls) <= 9
                if stalled:
                    release.wait(5)
                    return []
                return list(self.responses.get(query, []))

        provider = StallingProvider({"Python Topic 2": [build_candidate("fresh", channel="A", score=80)]})
        recommender = VideoRecommender(provider, timeout=0.2)

        try:
            selections = await recommender.recommend_for_curriculum(
                "Python", [(1, "Module 1: Topic 1"), (2, "Module 2: Topic 2")]
            )
        finally:
            release.set()

        assert selections[1].videos == []
        assert [c.id for c in selections[2].videos] == ["fresh"]
