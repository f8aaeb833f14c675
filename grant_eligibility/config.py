import os
import tempfile
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_timeout_seconds: float = 60.0

    # Rate limiting is disabled unless a backing store is configured
    redis_url: Optional[str] = None
    rate_limit_requests: int = 3
    rate_limit_window_seconds: int = 60

    poll_interval_seconds: float = 1.0
    run_timeout_seconds: float = 240.0
    download_timeout_seconds: float = 30.0
    scratch_dir: str = tempfile.gettempdir()

    log_level: str = "INFO"

    @property
    def rate_limiting_enabled(self) -> bool:
        return bool(self.redis_url)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and .env, if present)."""
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            openai_timeout_seconds=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60")),
            redis_url=os.getenv("REDIS_URL") or None,
            rate_limit_requests=int(os.getenv("RATE_LIMIT_REQUESTS", "3")),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60")),
            poll_interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", "1.0")),
            run_timeout_seconds=float(os.getenv("RUN_TIMEOUT_SECONDS", "240")),
            download_timeout_seconds=float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "30")),
            scratch_dir=os.getenv("SCRATCH_DIR", tempfile.gettempdir()),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
