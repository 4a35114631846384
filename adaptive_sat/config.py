"""Application configuration settings."""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "Adaptive SAT Practice"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/adaptive_sat.db"

    # Paths
    base_dir: Path = Path(__file__).parent.parent
    data_dir: Path = base_dir / "data"
    exams_dir: Path = data_dir / "exams"

    # Seeding
    skip_seeding: bool = False

    # Frontend origins allowed by CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Old non-adaptive finalize flow (straight linear section scaling).
    # Off by default; the weighted per-module path is canonical.
    legacy_linear_finalize: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "ADAPTIVE_SAT_"


settings = Settings()
