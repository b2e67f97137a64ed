"""Configuration loading and validation for Opal."""

import os
import logging
from typing import Dict, List
from pathlib import Path
from dotenv import load_dotenv
from rich.logging import RichHandler

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / '.env')

KNOWN_PROVIDERS = ('youtube', 'ytdlp', 'peertube')

DEFAULT_PEERTUBE_INSTANCES = [
    'https://diode.zone',
    'https://tube.tchncs.de',
    'https://peertube.tv',
    'https://video.blender.org',
    'https://share.tube',
]


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(',') if item.strip()]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def load_config() -> Dict:
    """Load configuration from environment variables."""
    # Helper function to resolve paths relative to project root
    def resolve_path(path: str, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    peertube_instances = os.getenv('PEERTUBE_INSTANCES')

    config = {
        # Required API keys
        'gemini_api_key': os.getenv('GEMINI_API_KEY'),
        'gemini_model': os.getenv('GEMINI_MODEL', 'gemini-2.5-flash'),

        # Video search
        'enable_videos': _env_bool('ENABLE_VIDEOS', 'true'),
        'youtube_api_key': os.getenv('YOUTUBE_API_KEY'),
        'video_providers': _split_list(os.getenv('VIDEO_PROVIDERS', ','.join(KNOWN_PROVIDERS))),
        'peertube_instances': _split_list(peertube_instances) if peertube_instances else list(DEFAULT_PEERTUBE_INSTANCES),
        'max_results_per_query': int(os.getenv('MAX_RESULTS_PER_QUERY', '5')),
        'min_video_duration_seconds': int(os.getenv('MIN_VIDEO_DURATION_SECONDS', '60')),
        'max_video_duration_seconds': int(os.getenv('MAX_VIDEO_DURATION_SECONDS', '1800')),
        'search_timeout_seconds': float(os.getenv('SEARCH_TIMEOUT_SECONDS', '5')),

        # Saved sessions and generation history
        'database_path': resolve_path(os.getenv('DATABASE_PATH'), 'opal_progress.db'),

        'log_level': os.getenv('LOG_LEVEL', 'INFO'),
    }

    return config


def validate_config(config: Dict) -> List[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if not config.get('gemini_api_key'):
        errors.append("GEMINI_API_KEY is required")

    unknown = [p for p in config.get('video_providers', []) if p not in KNOWN_PROVIDERS]
    if unknown:
        errors.append(
            f"Unknown VIDEO_PROVIDERS: {', '.join(unknown)} "
            f"(expected any of {', '.join(KNOWN_PROVIDERS)})"
        )

    if config.get('search_timeout_seconds', 5) <= 0:
        errors.append("SEARCH_TIMEOUT_SECONDS must be positive")

    if config.get('max_results_per_query', 5) <= 0:
        errors.append("MAX_RESULTS_PER_QUERY must be positive")

    min_duration = config.get('min_video_duration_seconds', 60)
    max_duration = config.get('max_video_duration_seconds', 1800)
    if min_duration > max_duration:
        errors.append("MIN_VIDEO_DURATION_SECONDS cannot exceed MAX_VIDEO_DURATION_SECONDS")

    # YouTube API key is optional; without it the youtube provider returns nothing

    return errors


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration with Rich for terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False  # Disable markup to avoid conflicts
    )

    # File handler for plain text logging
    log_file = PROJECT_ROOT / 'opal.log'
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[rich_handler, file_handler],
        format="%(message)s"
    )

    # Suppress noisy third-party loggers
    noisy_loggers = [
        'httpx',
        'httpcore',
        'google_genai',
        'google_genai.models',
        'googleapiclient.discovery',
        'googleapiclient.discovery_cache',
        'urllib3.connectionpool',
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    for logger_name in ('yt_dlp', 'yt_dlp.extractor'):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)
