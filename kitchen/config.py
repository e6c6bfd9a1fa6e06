from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: Env = Env.local
    html_dir: Path = Path("assets/html")
    assets_dir: Path = Path("assets")
    db_url: str = "sqlite+aiosqlite:///kitchen.db"
    log_level: str = "INFO"

    core_model: str = "gpt-4o"
    transcription_model: str = "whisper-1"
    speech_model: str = "tts-1"
    speech_voice: str = "alloy"
    openai_api_key: str | None = None
    request_timeout: float = 60 * 2

    session_secret: str = "change-me"
    # Browsers whose screen state is kept in memory at once.
    max_sessions: int = 1000

    # Accounts variant: sign-in required, data namespaced per user.
    accounts: bool = False
    supabase_url: str | None = None
    supabase_key: str | None = None
