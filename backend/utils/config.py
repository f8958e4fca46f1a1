"""
Environment configuration for the backend.
Values come from the process environment, optionally seeded from a .env file.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000,http://localhost:8000"


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str]
    openai_model: str
    log_buffer_size: int
    cors_origins: List[str]
    port: int
    quality_min_handoffs: int
    quality_max_missing_ratio: float


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings once per process"""
    load_dotenv()

    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
        log_buffer_size=int(os.getenv("LOG_BUFFER_SIZE", "500")),
        cors_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",") if o.strip()],
        port=int(os.getenv("PORT", "8000")),
        quality_min_handoffs=int(os.getenv("QUALITY_MIN_HANDOFFS", "5")),
        quality_max_missing_ratio=float(os.getenv("QUALITY_MAX_MISSING_RATIO", "0.3")),
    )
