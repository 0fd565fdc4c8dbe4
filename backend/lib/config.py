"""
Runtime configuration

All values come from the environment (optionally a .env file). Only values
live here; behaviour stays in the tutor package.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()
load_dotenv('../.env')  # Also try parent directory

DEFAULT_ALLOWED_ORIGINS = "http://localhost:5173,http://localhost:5174"


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class Settings:
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    max_output_tokens: int = 500
    port: int = 3000
    allowed_origins: List[str] = field(default_factory=list)
    daily_conversation_limit: int = 3
    completion_threshold: int = 5
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)
        return cls(
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            max_output_tokens=_int_env("MAX_OUTPUT_TOKENS", 500),
            port=_int_env("PORT", 3000),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            daily_conversation_limit=_int_env("DAILY_CONVERSATION_LIMIT", 3),
            completion_threshold=_int_env("COMPLETION_THRESHOLD", 5),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the process settings singleton"""
    global _settings

    if _settings is None:
        _settings = Settings.from_env()

    return _settings
