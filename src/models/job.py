"""Job and status models for curriculum generation runs."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Dict
import json


class JobStatus(Enum):
    """Status enumeration for generation jobs."""
    QUEUED = "queued"
    GENERATING_CURRICULUM = "generating_curriculum"
    SEARCHING_VIDEOS = "searching_videos"
    SAVING = "saving"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class GenerationJob:
    """Represents one curriculum generation run with all its state."""

    job_id: str
    subject: str
    status: JobStatus
    created_at: datetime
    updated_at: datetime
    module_count: Optional[int] = None
    videos_per_module: Optional[Dict[int, int]] = None
    error_message: Optional[str] = None

    @property
    def total_videos(self) -> int:
        return sum((self.videos_per_module or {}).values())

    def to_dict(self) -> dict:
        """Convert job to dictionary for database storage."""
        return {
            'job_id': self.job_id,
            'subject': self.subject,
            'status': self.status.value,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'module_count': self.module_count,
            'videos_per_module': json.dumps(self.videos_per_module) if self.videos_per_module is not None else None,
            'error_message': self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GenerationJob':
        """Create job from dictionary loaded from database."""
        videos = json.loads(data['videos_per_module']) if data.get('videos_per_module') else None
        return cls(
            job_id=data['job_id'],
            subject=data['subject'],
            status=JobStatus(data['status']),
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            module_count=data.get('module_count'),
            # JSON object keys come back as strings
            videos_per_module={int(k): v for k, v in videos.items()} if videos is not None else None,
            error_message=data.get('error_message'),
        )

    def update_status(self, new_status: JobStatus, error_message: Optional[str] = None) -> None:
        """Update job status and timestamp."""
        self.status = new_status
        self.updated_at = datetime.now()
        if error_message:
            self.error_message = error_message
