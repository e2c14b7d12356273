"""
Runtime configuration
Reads credentials and pipeline knobs from the environment (.env supported)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_RECENT_VIDEO_COUNT = 5
MAX_RECENT_VIDEO_COUNT = 10
DEFAULT_VIDEO_BATCH_SIZE = 3
DEFAULT_ANALYSIS_TIMEOUT_SECONDS = 20.0
AI_PROVIDERS = ("auto", "openai", "anthropic")


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    youtube_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    ai_provider: str = "auto"
    ai_model: Optional[str] = None
    recent_video_count: int = DEFAULT_RECENT_VIDEO_COUNT
    video_batch_size: int = DEFAULT_VIDEO_BATCH_SIZE
    analysis_timeout_seconds: float = DEFAULT_ANALYSIS_TIMEOUT_SECONDS
    api_secret_key: str = ""
    allowed_origins: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        origins = os.environ.get("ALLOWED_ORIGINS", "")
        return cls(
            youtube_api_key=os.environ.get("YOUTUBE_API_KEY") or None,
            openai_api_key=os.environ.get("OPENAI_API_KEY") or None,
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            ai_provider=os.environ.get("AI_PROVIDER", "auto").strip().lower() or "auto",
            ai_model=os.environ.get("AI_MODEL") or None,
            recent_video_count=max(1, min(MAX_RECENT_VIDEO_COUNT, _int_env("RECENT_VIDEO_COUNT", DEFAULT_RECENT_VIDEO_COUNT))),
            video_batch_size=max(1, _int_env("VIDEO_BATCH_SIZE", DEFAULT_VIDEO_BATCH_SIZE)),
            analysis_timeout_seconds=max(1.0, _float_env("ANALYSIS_TIMEOUT_SECONDS", DEFAULT_ANALYSIS_TIMEOUT_SECONDS)),
            api_secret_key=os.environ.get("API_SECRET_KEY", "").strip(),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
        )

    def missing_credentials(self) -> list[str]:
        """Names of required credentials (or invalid settings) for the configured provider."""
        missing = []
        if not self.youtube_api_key:
            missing.append("YOUTUBE_API_KEY")
        if self.ai_provider not in AI_PROVIDERS:
            missing.append(f"AI_PROVIDER (got {self.ai_provider!r}, expected one of {', '.join(AI_PROVIDERS)})")
        elif self.ai_provider == "openai" and not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        elif self.ai_provider == "anthropic" and not self.anthropic_api_key:
            missing.append("ANTHROPIC_API_KEY")
        elif self.ai_provider == "auto" and not (self.openai_api_key or self.anthropic_api_key):
            missing.append("OPENAI_API_KEY or ANTHROPIC_API_KEY")
        return missing
