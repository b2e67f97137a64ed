"""Heuristic educational relevance scoring for video candidates."""

import math
from typing import List, Tuple

from models.video import VideoCandidate

REPUTABLE_CHANNELS = [
    'Khan Academy',
    'TED-Ed',
    'Crash Course',
    'SciShow',
    'Veritasium',
    'MinutePhysics',
    'Professor Leonard',
    '3Blue1Brown',
    'MIT OpenCourseWare',
    'Stanford',
    'Coursera',
    'edX',
]

EDUCATIONAL_KEYWORDS = [
    'tutorial', 'lesson', 'course', 'learn', 'education', 'teaching',
    'beginner', 'advanced', 'introduction', 'explanation', 'how to',
    'step by step', 'guide', 'fundamentals', 'basics', 'overview',
]

BASE_SCORE = 30
REPUTABLE_BASE_SCORE = 40
TITLE_WEIGHT = 25
DESCRIPTION_WEIGHT = 15
MAX_VIEW_POINTS = 20
IDEAL_DURATION = (300, 900)
ACCEPTABLE_DURATION = (180, 1800)


def is_reputable_channel(channel: str) -> bool:
    """Check if channel is a known educational source."""
    channel = (channel or '').lower()
    return any(name.lower() in channel for name in REPUTABLE_CHANNELS)


def _keyword_overlap(query_words: List[str], text: str) -> float:
    """Fraction of query words found inside some word of the text."""
    if not query_words:
        return 0.0
    text_words = text.lower().split()
    matches = sum(1 for word in query_words if any(word in tw for tw in text_words))
    return matches / len(query_words)


def score(candidate: VideoCandidate, query: str) -> int:
    """Score a candidate's fit to a query on a 0-100 scale.

    Deterministic: depends only on the candidate's channel, title,
    description, view count and duration, and on the query text.
    """
    total = float(REPUTABLE_BASE_SCORE if is_reputable_channel(candidate.channel) else BASE_SCORE)

    query_words = query.lower().split()
    total += _keyword_overlap(query_words, candidate.title or '') * TITLE_WEIGHT
    total += _keyword_overlap(query_words, candidate.description or '') * DESCRIPTION_WEIGHT

    if candidate.view_count > 0:
        total += min(math.log10(candidate.view_count) * 5, MAX_VIEW_POINTS)

    duration = candidate.duration_seconds
    if IDEAL_DURATION[0] <= duration <= IDEAL_DURATION[1]:
        total += 10
    elif ACCEPTABLE_DURATION[0] <= duration <= ACCEPTABLE_DURATION[1]:
        total += 5

    total = max(0.0, min(total, 100.0))
    # Round half up
    return int(math.floor(total + 0.5))


def extract_educational_tags(title: str, description: str) -> Tuple[str, ...]:
    """Extract up to five educational keywords from title and description."""
    text = f"{title or ''} {description or ''}".lower()
    tags = [keyword for keyword in EDUCATIONAL_KEYWORDS if keyword in text]
    return tuple(tags[:5])
