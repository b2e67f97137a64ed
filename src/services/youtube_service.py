"""YouTube search providers: the Data API v3 and keyless yt-dlp search."""

import json
import logging
import re
import threading
from typing import List, Dict, Optional

import httplib2
import yt_dlp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from models.video import VideoCandidate, SearchOptions
from services.relevance import extract_educational_tags
from services.search_provider import SearchProvider, QuotaExceededError

logger = logging.getLogger(__name__)

# Configure yt-dlp logging to be silent
logging.getLogger("yt_dlp").setLevel(logging.CRITICAL)
logging.getLogger("yt_dlp.extractor").setLevel(logging.CRITICAL)

EDUCATIONAL_QUERY_SUFFIX = ' (tutorial OR lesson OR explanation OR "how to" OR educational OR course OR learning)'
QUOTA_REASONS = ("quotaExceeded", "rateLimitExceeded", "dailyLimitExceeded", "userRateLimitExceeded")

_ISO_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def parse_iso_duration(value: str) -> int:
    """Parse an ISO 8601 duration such as PT4M13S into seconds."""
    match = _ISO_DURATION.match(value or "")
    if not match:
        return 0
    hours, minutes, seconds = (int(part or 0) for part in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def _http_error_reason(error: HttpError) -> str:
    """Extract the API error reason (e.g. quotaExceeded) from an HttpError."""
    try:
        payload = json.loads(error.content.decode("utf-8") if isinstance(error.content, bytes) else error.content)
        errors = payload.get("error", {}).get("errors", [])
        if errors:
            return errors[0].get("reason", "")
    except (ValueError, AttributeError):
        pass
    return ""


class YouTubeAPIProvider(SearchProvider):
    """Searches YouTube through the Data API v3; needs an API key."""

    name = "youtube"

    def __init__(self, api_key: Optional[str], educational_only: bool = True, language: str = "en",
                 timeout: float = 5.0):
        self.api_key = api_key
        self.timeout = timeout
        self.educational_only = educational_only
        self.language = language
        # one client per thread, httplib2 is not thread-safe
        self._local = threading.local()

    @property
    def client(self):
        client = getattr(self._local, "client", None)
        if client is None:
            client = build(
                "youtube", "v3",
                developerKey=self.api_key,
                http=httplib2.Http(timeout=self.timeout),
                cache_discovery=False,
            )
            self._local.client = client
        return client

    def _fetch(self, query: str, options: SearchOptions) -> List[VideoCandidate]:
        if not self.api_key:
            logger.debug(f"YouTube search skipped for '{query}': no API key configured")
            return []

        search_query = query + EDUCATIONAL_QUERY_SUFFIX if self.educational_only else query
        logger.info(f"Searching YouTube for: '{query}'")

        try:
            search_response = self.client.search().list(
                part="snippet",
                q=search_query,
                type="video",
                maxResults=min(options.max_results, 25),
                order="relevance",
                safeSearch="strict",
                regionCode="US",
                relevanceLanguage=self.language,
            ).execute()

            video_ids = [
                item["id"]["videoId"]
                for item in search_response.get("items", [])
                if item.get("id", {}).get("videoId")
            ]
            if not video_ids:
                return []

            details = self.client.videos().list(
                part="contentDetails,statistics,snippet",
                id=",".join(video_ids),
            ).execute()

        except HttpError as e:
            reason = _http_error_reason(e)
            if e.resp.status in (403, 429) and reason in QUOTA_REASONS:
                raise QuotaExceededError(f"YouTube API {reason}")
            raise

        return [self._parse_video(item) for item in details.get("items", [])]

    def _parse_video(self, video: Dict) -> VideoCandidate:
        snippet = video.get("snippet", {})
        thumbnails = snippet.get("thumbnails", {})
        thumbnail = (thumbnails.get("medium") or thumbnails.get("default") or {}).get("url", "")
        video_id = video["id"]
        title = snippet.get("title", "Unknown Title")
        description = snippet.get("description") or ""

        return VideoCandidate(
            id=video_id,
            title=title,
            description=description,
            duration_seconds=parse_iso_duration(video.get("contentDetails", {}).get("duration", "")),
            channel=snippet.get("channelTitle", ""),
            view_count=int(video.get("statistics", {}).get("viewCount", 0) or 0),
            platform="youtube",
            url=f"https://www.youtube.com/watch?v={video_id}",
            embed_url=f"https://www.youtube-nocookie.com/embed/{video_id}",
            thumbnail=thumbnail,
            published_at=snippet.get("publishedAt"),
            educational_tags=extract_educational_tags(title, description),
        )


class YtDlpProvider(SearchProvider):
    """Keyless YouTube search using yt-dlp."""

    name = "ytdlp"

    def __init__(self, timeout: float = 5.0):
        self.ydl_opts = {
            "socket_timeout": timeout,
            "quiet": True,
            "no_warnings": True,
            "extract_flat": "in_playlist",
            "ignoreerrors": True,
        }

    def _fetch(self, query: str, options: SearchOptions) -> List[VideoCandidate]:
        logger.info(f"Searching YouTube (yt-dlp) for: '{query}'")

        search_query = f"ytsearch{options.max_results * 2}:{query}"
        with yt_dlp.YoutubeDL(self.ydl_opts) as ydl:
            search_results = ydl.extract_info(search_query, download=False)

        if not search_results or "entries" not in search_results:
            return []

        candidates = []
        for entry in search_results["entries"]:
            if entry is None:
                continue
            candidate = self._parse_video_entry(entry)
            if candidate:
                candidates.append(candidate)
        return candidates

    def _parse_video_entry(self, entry: Dict) -> Optional[VideoCandidate]:
        """Parse a yt-dlp video entry into a VideoCandidate."""
        video_id = entry.get("id")
        if not video_id:
            return None

        title = entry.get("title") or "Unknown Title"
        description = entry.get("description") or ""
        thumbnails = entry.get("thumbnails") or []

        return VideoCandidate(
            id=video_id,
            title=title,
            description=description,
            duration_seconds=int(entry.get("duration") or 0),
            channel=entry.get("channel") or entry.get("uploader") or "",
            view_count=int(entry.get("view_count") or 0),
            platform="youtube",
            url=f"https://www.youtube.com/watch?v={video_id}",
            embed_url=f"https://www.youtube-nocookie.com/embed/{video_id}",
            thumbnail=thumbnails[-1].get("url", "") if thumbnails else "",
            educational_tags=extract_educational_tags(title, description),
        )
