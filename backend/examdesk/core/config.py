from functools import lru_cache
import json
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[2]
BACKEND_ENV_FILE = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8", extra="ignore")

    project_name: str = "ExamDesk API"
    api_prefix: str = "/api"
    environment: str = "development"
    log_level: str | None = None

    database_url: str = "sqlite+pysqlite:///./examdesk.db"

    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    max_request_size_bytes: int = 1_000_000

    # Scheduling policy. Changing these never requires a code change.
    students_per_proctor: int = 30
    overcapacity_tolerance: int = 0
    large_gap_minutes: int = 120
    low_utilization_threshold: float = 0.5

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("students_per_proctor")
    @classmethod
    def validate_students_per_proctor(cls, value: int) -> int:
        if value < 1:
            raise ValueError("students_per_proctor must be at least 1")
        return value

    @field_validator("low_utilization_threshold")
    @classmethod
    def validate_utilization_threshold(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ValueError("low_utilization_threshold must be between 0 and 1")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
