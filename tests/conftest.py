"""Shared fixtures for Opal tests."""

import threading
from typing import Dict, List, Optional

import pytest

from models.curriculum import Curriculum, Module, Quiz, QuizQuestion
from models.video import VideoCandidate, SearchOptions
from services.search_provider import SearchProvider


def build_candidate(video_id: str, channel: str = "Channel", score: int = 50,
                    title: Optional[str] = None, description: str = "",
                    duration: int = 600, views: int = 1000) -> VideoCandidate:
    return VideoCandidate(
        id=video_id,
        title=title if title is not None else f"Python video {video_id}",
        description=description,
        duration_seconds=duration,
        channel=channel,
        view_count=views,
        platform="youtube",
        relevance_score=score,
    )


class FakeProvider(SearchProvider):
    """Returns canned, pre-scored results per exact query and records calls."""

    name = "fake"

    def __init__(self, responses: Optional[Dict[str, List[VideoCandidate]]] = None,
                 failing_queries=()):
        self.responses = responses or {}
        self.failing_queries = set(failing_queries)
        self.calls = []
        self._lock = threading.Lock()

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[VideoCandidate]:
        with self._lock:
            self.calls.append((query, options))
        if query in self.failing_queries:
            raise RuntimeError(f"boom: {query}")
        return list(self.responses.get(query, []))

    def queries(self) -> List[str]:
        return [query for query, _ in self.calls]


@pytest.fixture
def make_candidate():
    return build_candidate


@pytest.fixture
def sample_curriculum() -> Curriculum:
    modules = [
        Module(
            module_number=number,
            title=f"Module {number}: Topic {number}",
            learning_objectives=[f"Objective {number}"],
            content=f"# Topic {number}\n\nContent.",
            quiz=Quiz(questions=[
                QuizQuestion(question="2 + 2?", type="multiple-choice", answer="4", options=["3", "4"]),
                QuizQuestion(question="Python is a language.", type="true-false", answer="True"),
            ]),
        )
        for number in (1, 2, 3)
    ]
    final_test = Quiz(questions=[QuizQuestion(question="Name a loop keyword", type="short-answer", answer="for")])
    return Curriculum(subject="Python", program_overview="# Python\n\nOverview.", modules=modules,
                      final_test=final_test)


@pytest.fixture
def test_config(tmp_path) -> dict:
    return {
        'gemini_api_key': 'test-key',
        'gemini_model': 'gemini-2.5-flash',
        'enable_videos': True,
        'youtube_api_key': None,
        'video_providers': [],
        'peertube_instances': [],
        'max_results_per_query': 5,
        'min_video_duration_seconds': 60,
        'max_video_duration_seconds': 1800,
        'search_timeout_seconds': 5,
        'database_path': str(tmp_path / 'opal_test.db'),
        'log_level': 'INFO',
    }
