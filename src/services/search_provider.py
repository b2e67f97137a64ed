"""Search provider interface and the ordered provider chain."""

import concurrent.futures
import dataclasses
import logging
from typing import List, Optional, Sequence

from models.video import VideoCandidate, SearchOptions
from services.relevance import score

logger = logging.getLogger(__name__)


class QuotaExceededError(Exception):
    """Raised by a provider when the platform reports a rate-limit or quota signal."""
    pass


class SearchProvider:
    """Base class for a single video platform.

    Subclasses implement ``_fetch`` and return unscored candidates. ``search``
    applies the duration window, scores every candidate against the query and
    turns any failure other than a quota signal into an empty result. The
    survivors are ranked by score before being cut to ``max_results``.
    """

    name = "base"

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[VideoCandidate]:
        """Search the platform; returns [] on failure, raises only QuotaExceededError."""
        options = options or SearchOptions()
        if not query or not query.strip():
            return []

        try:
            candidates = self._fetch(query, options)
        except QuotaExceededError:
            raise
        except Exception as e:
            logger.error(f"{self.name} search failed for '{query}': {e}")
            return []

        results = []
        filtered_count = 0
        for candidate in candidates:
            if not options.accepts_duration(candidate.duration_seconds):
                filtered_count += 1
                continue
            results.append(dataclasses.replace(candidate, relevance_score=score(candidate, query)))

        if filtered_count:
            logger.debug(f"{self.name}: filtered {filtered_count} videos outside duration window")
        results.sort(key=lambda c: c.relevance_score, reverse=True)
        return results[:options.max_results]

    def _fetch(self, query: str, options: SearchOptions) -> List[VideoCandidate]:
        raise NotImplementedError


class ProviderChain(SearchProvider):
    """Tries each provider in order until one returns results.

    A provider that comes back empty or signals a quota problem is replaced by
    the next one for the same query. So is one still running after
    ``timeout`` seconds.
    """

    name = "chain"

    def __init__(self, providers: Sequence[SearchProvider], timeout: Optional[float] = None):
        self.providers = list(providers)
        self.timeout = timeout

    @property
    def max_wait_seconds(self) -> Optional[float]:
        """Longest a single query can spend walking the whole chain."""
        if self.timeout is None:
            return None
        return self.timeout * max(len(self.providers), 1)

    def _call(self, provider: SearchProvider, query: str,
              options: Optional[SearchOptions]) -> List[VideoCandidate]:
        if self.timeout is None:
            return provider.search(query, options)

        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"search-{provider.name}")
        try:
            return executor.submit(provider.search, query, options).result(timeout=self.timeout)
        finally:
            # an abandoned call finishes on its own thread and its result is dropped
            executor.shutdown(wait=False)

    def search(self, query: str, options: Optional[SearchOptions] = None) -> List[VideoCandidate]:
        if not query or not query.strip():
            return []

        for provider in self.providers:
            try:
                results = self._call(provider, query, options)
            except QuotaExceededError as e:
                logger.warning(f"{provider.name} quota exceeded, trying next provider: {e}")
                continue
            except concurrent.futures.TimeoutError:
                logger.warning(f"{provider.name} timed out after {self.timeout}s for '{query}', trying next provider")
                continue

            if results:
                return results
            logger.debug(f"{provider.name} returned no results for '{query}'")

        return []
