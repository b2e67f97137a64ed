"""Video-related data models."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class VideoCandidate:
    """Represents a normalized video search result from any platform."""

    id: str
    title: str
    description: str
    duration_seconds: int
    channel: str
    view_count: int
    platform: str  # youtube, peertube
    relevance_score: int = 0  # 0-100, set once by the relevance scorer
    url: str = ""
    embed_url: str = ""
    thumbnail: str = ""
    published_at: Optional[str] = None
    educational_tags: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        """Convert candidate to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "durationSeconds": self.duration_seconds,
            "channel": self.channel,
            "viewCount": self.view_count,
            "platform": self.platform,
            "relevanceScore": self.relevance_score,
            "url": self.url,
            "embedUrl": self.embed_url,
            "thumbnail": self.thumbnail,
            "publishedAt": self.published_at,
            "educationalTags": list(self.educational_tags),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VideoCandidate":
        """Create candidate from a stored dictionary."""
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            duration_seconds=int(data.get("durationSeconds", 0)),
            channel=data.get("channel", ""),
            view_count=int(data.get("viewCount", 0)),
            platform=data.get("platform", "youtube"),
            relevance_score=int(data.get("relevanceScore", 0)),
            url=data.get("url", ""),
            embed_url=data.get("embedUrl", ""),
            thumbnail=data.get("thumbnail", ""),
            published_at=data.get("publishedAt"),
            educational_tags=tuple(data.get("educationalTags", [])),
        )


@dataclass
class SearchOptions:
    """Options passed to a search provider for a single query."""

    max_results: int = 5
    min_duration_seconds: int = 60
    max_duration_seconds: int = 1800

    def accepts_duration(self, duration_seconds: int) -> bool:
        return self.min_duration_seconds <= duration_seconds <= self.max_duration_seconds


@dataclass
class ModuleVideoSelection:
    """Ordered videos chosen for one curriculum module."""

    module_number: int
    videos: List[VideoCandidate] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def video_ids(self) -> List[str]:
        return [video.id for video in self.videos]
