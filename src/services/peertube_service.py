"""PeerTube search provider across public educational instances."""

import logging
from typing import List, Dict, Optional, Sequence

import httpx

from models.video import VideoCandidate, SearchOptions
from services.relevance import extract_educational_tags
from services.search_provider import SearchProvider

logger = logging.getLogger(__name__)


class PeerTubeProvider(SearchProvider):
    """Searches each configured PeerTube instance and merges the results."""

    name = "peertube"

    def __init__(self, instances: Sequence[str], timeout: float = 5.0,
                 client: Optional[httpx.Client] = None):
        self.instances = [instance.rstrip("/") for instance in instances]
        self.timeout = timeout
        self._client = client

    def _fetch(self, query: str, options: SearchOptions) -> List[VideoCandidate]:
        logger.info(f"Searching PeerTube for: '{query}'")
        client = self._client or httpx.Client(timeout=self.timeout)
        candidates: List[VideoCandidate] = []
        try:
            for instance in self.instances:
                candidates.extend(self._search_instance(client, instance, query, options))
        finally:
            if self._client is None:
                client.close()

        logger.debug(f"PeerTube returned {len(candidates)} videos for '{query}'")
        return candidates

    def _search_instance(self, client: httpx.Client, instance: str, query: str,
                         options: SearchOptions) -> List[VideoCandidate]:
        try:
            response = client.get(
                f"{instance}/api/v1/search/videos",
                params={"search": query, "count": min(options.max_results, 10)},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Failed to search PeerTube instance {instance}: {e}")
            return []

        videos = data.get("data") if isinstance(data, dict) else None
        if not isinstance(videos, list):
            return []
        return [self._parse_video(video, instance) for video in videos if video.get("uuid")]

    def _parse_video(self, video: Dict, instance: str) -> VideoCandidate:
        uuid = video["uuid"]
        title = video.get("name") or "Untitled"
        description = video.get("description") or ""
        channel = (video.get("account") or {}).get("displayName") \
            or (video.get("channel") or {}).get("displayName") \
            or "Unknown"
        thumbnail_path = video.get("thumbnailPath")

        return VideoCandidate(
            id=f"peertube_{uuid}",
            title=title,
            description=description,
            duration_seconds=int(video.get("duration") or 0),
            channel=channel,
            view_count=int(video.get("views") or 0),
            platform="peertube",
            url=f"{instance}/w/{uuid}",
            embed_url=f"{instance}/videos/embed/{uuid}",
            thumbnail=f"{instance}{thumbnail_path}" if thumbnail_path else "",
            published_at=video.get("publishedAt"),
            educational_tags=extract_educational_tags(title, description),
        )
