"""Main CurriculumProcessor class for orchestrating the entire workflow."""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from models.curriculum import Curriculum, CurriculumVideo, LearningProgress, QuizResult
from models.job import GenerationJob, JobStatus
from models.video import ModuleVideoSelection, SearchOptions
from services.ai_service import AIService
from services.peertube_service import PeerTubeProvider
from services.quiz_grader import grade_quiz
from services.search_provider import ProviderChain, SearchProvider
from services.video_recommender import VideoRecommender
from services.youtube_service import YouTubeAPIProvider, YtDlpProvider
from utils.config import load_config, validate_config
from utils import database

logger = logging.getLogger(__name__)


def build_search_provider(config: Dict) -> ProviderChain:
    """Build the ordered provider chain named by the video_providers setting."""
    timeout = config.get("search_timeout_seconds", 5)
    providers: List[SearchProvider] = []
    for name in config.get("video_providers", []):
        if name == "youtube":
            providers.append(YouTubeAPIProvider(config.get("youtube_api_key"), timeout=timeout))
        elif name == "ytdlp":
            providers.append(YtDlpProvider(timeout=timeout))
        elif name == "peertube":
            providers.append(PeerTubeProvider(config.get("peertube_instances", []), timeout=timeout))
        else:
            logger.warning(f"Ignoring unknown video provider: {name}")
    logger.info(f"Video providers: {', '.join(p.name for p in providers) or 'none'}")
    return ProviderChain(providers, timeout=timeout)


def attach_videos(curriculum: Curriculum, selections: Dict[int, ModuleVideoSelection]) -> None:
    """Merge each module's selected videos into the curriculum."""
    for module in curriculum.modules:
        selection = selections.get(module.module_number)
        module.videos = [CurriculumVideo.from_candidate(c) for c in selection.videos] if selection else []


class CurriculumProcessor:
    """Central orchestrator for Opal."""

    def __init__(self, config: Optional[Dict] = None, ai_service: Optional[AIService] = None,
                 recommender: Optional[VideoRecommender] = None):
        """Initialize the processor with configuration."""
        self.config = config or load_config()

        config_errors = validate_config(self.config)
        if config_errors:
            error_msg = "Configuration errors: " + "; ".join(config_errors)
            logger.error(error_msg)
            raise ValueError(error_msg)

        self.ai_service = ai_service or AIService(
            self.config["gemini_api_key"],
            self.config.get("gemini_model", "gemini-2.5-flash"),
        )

        if recommender is None:
            options = SearchOptions(
                max_results=self.config.get("max_results_per_query", 5),
                min_duration_seconds=self.config.get("min_video_duration_seconds", 60),
                max_duration_seconds=self.config.get("max_video_duration_seconds", 1800),
            )
            chain = build_search_provider(self.config)
            recommender = VideoRecommender(chain, options, timeout=chain.max_wait_seconds)
        self.recommender = recommender

        self.db_path = self.config.get("database_path", "opal_progress.db")
        database.init_database(self.db_path)

        logger.info("Opal initialized successfully")

    async def generate(self, subject: str, include_videos: Optional[bool] = None) -> LearningProgress:
        """Generate a curriculum, enrich it with videos and save it as a new session."""
        if include_videos is None:
            include_videos = self.config.get("enable_videos", True)

        job = GenerationJob(
            job_id=uuid.uuid4().hex,
            subject=subject.strip(),
            status=JobStatus.QUEUED,
            created_at=datetime.now(),
            updated_at=datetime.now(),
        )
        database.save_job(job, self.db_path)

        try:
            self._update_job(job, JobStatus.GENERATING_CURRICULUM)
            loop = asyncio.get_running_loop()
            curriculum = await loop.run_in_executor(None, self.ai_service.generate_curriculum, subject)
            job.module_count = len(curriculum.modules)
        except Exception as e:
            logger.error(f"Curriculum generation failed for '{subject}': {e}")
            self._update_job(job, JobStatus.FAILED, str(e))
            raise

        if include_videos:
            self._update_job(job, JobStatus.SEARCHING_VIDEOS)
            selections = await self.recommender.recommend_for_curriculum(
                curriculum.subject or subject,
                [(m.module_number, m.title) for m in curriculum.modules],
            )
            attach_videos(curriculum, selections)
            job.videos_per_module = {n: len(s.videos) for n, s in selections.items()}

        self._update_job(job, JobStatus.SAVING)
        progress = LearningProgress(curriculum=curriculum)
        database.save_progress(progress, self.db_path)

        self._update_job(job, JobStatus.COMPLETED)
        logger.info(
            f"Curriculum ready: {len(curriculum.modules)} modules, {job.total_videos} videos"
        )
        return progress

    def _update_job(self, job: GenerationJob, status: JobStatus, error_message: Optional[str] = None) -> None:
        job.update_status(status, error_message)
        database.save_job(job, self.db_path)
        logger.debug(f"Job {job.job_id}: {status.value}")

    def load_progress(self) -> Optional[LearningProgress]:
        """Load the saved session; a corrupted session is cleared and None returned."""
        try:
            return database.load_progress(self.db_path)
        except database.ProgressCorruptedError as e:
            logger.error(f"Could not load saved data: {e}")
            database.clear_progress(self.db_path)
            return None

    def submit_quiz(self, progress: LearningProgress, quiz_id: str, answers: Dict[int, str]) -> QuizResult:
        """Grade a quiz attempt, record it and save the session."""
        quiz = progress.curriculum.get_quiz(quiz_id)
        if quiz is None:
            raise KeyError(f"Unknown quiz: {quiz_id}")

        result = grade_quiz(quiz, answers)
        progress.record_quiz_result(quiz_id, result)
        database.save_progress(progress, self.db_path)
        logger.info(f"Quiz {quiz_id}: {result.score}/{result.total} ({result.percentage}%)")
        return result

    def reset(self) -> None:
        database.clear_progress(self.db_path)

    def recent_jobs(self, limit: int = 10) -> List[GenerationJob]:
        return database.get_recent_jobs(self.db_path, limit)

    def get_job(self, job_id: str) -> Optional[GenerationJob]:
        return database.load_job(job_id, self.db_path)

    def job_statistics(self) -> Dict[str, int]:
        return database.get_job_statistics(self.db_path)
