"""Video recommendations for curriculum modules.

For each module the recommender fans a handful of query variants out to the
search provider, drops duplicates and off-subject results, removes videos
already given to an earlier module, and picks up to four videos that favor
channel variety. Late modules with too few survivors get one broad
bare-subject search as a fallback.

Modules are processed one at a time in module-number order. The set of video
ids already handed out is threaded through each step as an explicit
accumulator, so a video placed in one module never shows up in a later one.
"""

import asyncio
import contextlib
import logging
import re
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from models.video import VideoCandidate, SearchOptions, ModuleVideoSelection
from services.search_provider import SearchProvider, QuotaExceededError

logger = logging.getLogger(__name__)

MAX_VIDEOS_PER_MODULE = 4
DIVERSITY_CHANNEL_THRESHOLD = 2
SUBJECT_OVERRIDE_SCORE = 70
MIN_QUERY_LENGTH = 5

FALLBACK_FROM_MODULE = 6
FALLBACK_MIN_VIDEOS = 2
FALLBACK_OPTIONS = SearchOptions(max_results=10, min_duration_seconds=60, max_duration_seconds=3600)

_MODULE_PREFIX = re.compile(r"^\s*module\s+\d+\s*:\s*", re.IGNORECASE)


def strip_module_prefix(title: str) -> str:
    """'Module 3: Loops' -> 'Loops'."""
    return _MODULE_PREFIX.sub("", title or "").strip()


def level_tag(module_number: int) -> str:
    if module_number <= 1:
        return "beginner"
    if module_number <= 3:
        return "basics"
    if module_number <= 6:
        return "intermediate"
    return "advanced"


def build_queries(subject: str, module_title: str, module_number: int) -> List[str]:
    """Build the ordered query variants for one module."""
    subject = subject.strip()
    topic = strip_module_prefix(module_title)
    variants = [
        f"{subject} {topic}",
        f"{subject} tutorial",
        f"{subject} lesson",
        f"learn {subject}",
        f"{subject} guide",
        f"{subject} {level_tag(module_number)}",
        f"{subject} course",
        f"{subject} introduction",
        f"{subject} fundamentals",
    ]
    return [q.strip() for q in variants if len(q.strip()) >= MIN_QUERY_LENGTH]


def dedupe_by_id(candidates: Iterable[VideoCandidate]) -> List[VideoCandidate]:
    """Keep the first occurrence of each video id."""
    seen: Set[str] = set()
    unique = []
    for candidate in candidates:
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        unique.append(candidate)
    return unique


def is_subject_relevant(candidate: VideoCandidate, subject: str) -> bool:
    needle = subject.strip().lower()
    if needle and (needle in candidate.title.lower() or needle in candidate.description.lower()):
        return True
    return candidate.relevance_score >= SUBJECT_OVERRIDE_SCORE


def filter_subject_relevant(candidates: Iterable[VideoCandidate], subject: str) -> List[VideoCandidate]:
    kept = []
    for candidate in candidates:
        if is_subject_relevant(candidate, subject):
            kept.append(candidate)
        else:
            logger.debug(
                f"Dropped off-subject video {candidate.id} '{candidate.title}' "
                f"(score {candidate.relevance_score})"
            )
    return kept


def filter_unused(candidates: Iterable[VideoCandidate], used_ids: FrozenSet[str]) -> List[VideoCandidate]:
    return [c for c in candidates if c.id not in used_ids]


def rank_by_score(candidates: Iterable[VideoCandidate]) -> List[VideoCandidate]:
    """Sort descending by relevance score; ties keep their incoming order."""
    return sorted(candidates, key=lambda c: c.relevance_score, reverse=True)


def select_diverse(candidates: Sequence[VideoCandidate], limit: int = MAX_VIDEOS_PER_MODULE) -> List[VideoCandidate]:
    """Pick up to ``limit`` candidates, preferring channels not yet chosen.

    The first pass takes a candidate when its channel is new, or while fewer
    than two distinct channels have been taken. The second pass fills any
    remaining slots in score order.
    """
    ranked = rank_by_score(candidates)
    selected: List[VideoCandidate] = []
    selected_ids: Set[str] = set()
    channels: Set[str] = set()

    for candidate in ranked:
        if len(selected) >= limit:
            break
        if candidate.channel not in channels or len(channels) < DIVERSITY_CHANNEL_THRESHOLD:
            selected.append(candidate)
            selected_ids.add(candidate.id)
            channels.add(candidate.channel)

    for candidate in ranked:
        if len(selected) >= limit:
            break
        if candidate.id not in selected_ids:
            selected.append(candidate)
            selected_ids.add(candidate.id)

    return selected


class VideoRecommender:
    """Chooses videos for every module of a curriculum.

    ``timeout`` bounds one query end to end, including any provider hand-off
    inside the search provider.
    """

    def __init__(self, provider: SearchProvider, search_options: Optional[SearchOptions] = None,
                 timeout: Optional[float] = 5.0):
        self.provider = provider
        self.search_options = search_options or SearchOptions()
        self.timeout = timeout

    @contextlib.contextmanager
    def _search_executor(self, workers: int):
        """A thread pool owned by one module's searches.

        Timed-out searches keep their threads until they return, so each module
        gets fresh workers instead of queueing behind the previous module.
        """
        executor = ThreadPoolExecutor(max_workers=max(workers, 1), thread_name_prefix="video-search")
        try:
            yield executor
        finally:
            executor.shutdown(wait=False)

    async def _search(self, query: str, options: SearchOptions,
                      executor: Optional[Executor] = None) -> List[VideoCandidate]:
        """Run one blocking provider search with a time limit; failures yield []."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(executor, self.provider.search, query, options),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Video search timed out after {self.timeout}s: '{query}'")
        except QuotaExceededError as e:
            logger.warning(f"Video search quota exceeded for '{query}': {e}")
        return []

    async def fan_out(self, subject: str, module_title: str, module_number: int) -> List[VideoCandidate]:
        """Search every query variant concurrently; results keep variant order."""
        queries = build_queries(subject, module_title, module_number)
        with self._search_executor(len(queries)) as executor:
            results = await asyncio.gather(*(self._search(q, self.search_options, executor) for q in queries))
        pool = [candidate for batch in results for candidate in batch]
        logger.debug(f"Module {module_number}: {len(pool)} candidates from {len(queries)} queries")
        return pool

    async def _fallback(self, subject: str, selected: List[VideoCandidate],
                        used_ids: FrozenSet[str]) -> List[VideoCandidate]:
        taken = used_ids | {c.id for c in selected}
        with self._search_executor(1) as executor:
            pool = dedupe_by_id(await self._search(subject.strip(), FALLBACK_OPTIONS, executor))
        extra = rank_by_score(filter_unused(pool, taken))
        return extra[:MAX_VIDEOS_PER_MODULE - len(selected)]

    async def recommend_for_module(self, subject: str, module_number: int, module_title: str,
                                   used_ids: FrozenSet[str]) -> Tuple[ModuleVideoSelection, FrozenSet[str]]:
        """Select videos for one module.

        Returns the selection and the used-id set extended with its videos.
        """
        pool = await self.fan_out(subject, module_title, module_number)

        candidates = dedupe_by_id(pool)
        candidates = filter_subject_relevant(candidates, subject)
        candidates = filter_unused(candidates, used_ids)

        selected = select_diverse(candidates)
        used_fallback = False

        if module_number >= FALLBACK_FROM_MODULE and len(selected) < FALLBACK_MIN_VIDEOS:
            logger.info(f"Module {module_number}: only {len(selected)} videos, trying broad search")
            selected = selected + await self._fallback(subject, selected, used_ids)
            used_fallback = True

        logger.info(f"Module {module_number}: selected {len(selected)} videos")
        selection = ModuleVideoSelection(module_number, selected, used_fallback)
        return selection, used_ids | frozenset(selection.video_ids)

    async def recommend_for_curriculum(self, subject: str,
                                       modules: Iterable[Tuple[int, str]]) -> Dict[int, ModuleVideoSelection]:
        """Select videos for each (module_number, title) pair in module order.

        A module whose processing fails gets an empty selection; the run
        always completes.
        """
        selections: Dict[int, ModuleVideoSelection] = {}
        used_ids: FrozenSet[str] = frozenset()

        for module_number, title in sorted(modules, key=lambda m: m[0]):
            try:
                selection, used_ids = await self.recommend_for_module(subject, module_number, title, used_ids)
            except Exception as e:
                logger.error(f"Video recommendation failed for module {module_number}: {e}")
                selection = ModuleVideoSelection(module_number)
            selections[module_number] = selection

        total = sum(len(s.videos) for s in selections.values())
        logger.info(f"Recommended {total} videos across {len(selections)} modules for '{subject}'")
        return selections
