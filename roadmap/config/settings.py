from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, RedisDsn, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values shipped in .env templates; treated as "not configured".
REMOTE_PLACEHOLDERS = ("your-project", "your-anon-key")

class Settings(BaseSettings):
    # Local store
    STORE_MEDIUM: Literal["memory", "file", "sql", "redis"] = "sql"
    DATABASE_URL: str = "sqlite:///./roadmap.db"
    SNAPSHOT_FILE: str = "./roadmap-store.json"
    REDIS_URL: RedisDsn = "redis://localhost:6379/0"
    KV_STORE_KEY: str = "roadmap:v1:store"

    # Remote backend (PostgREST / Supabase)
    REMOTE_URL: Optional[str] = None
    REMOTE_KEY: Optional[SecretStr] = None
    REMOTE_TIMEOUT: float = Field(10.0, gt=0)

    # API
    ROADMAP_API_SECRET: Optional[SecretStr] = None
    LOG_LEVEL: str = "INFO"

    @field_validator("ROADMAP_API_SECRET")
    def validate_secret(cls, v):
        if v is not None and len(v.get_secret_value()) < 32:
            raise ValueError("ROADMAP_API_SECRET must be at least 32 characters long.")
        return v

    @property
    def remote_key_value(self) -> str:
        return self.REMOTE_KEY.get_secret_value() if self.REMOTE_KEY else ""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

@lru_cache
def get_settings() -> Settings:
    return Settings()
