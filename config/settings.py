"""
CRM Matching Engine - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/crm_matching.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    @property
    def log_dir(self) -> Path:
        """Return the log directory, defaulting to PROJECT_ROOT/logs."""
        return Path(self.LOG_DIR) if self.LOG_DIR else PROJECT_ROOT / "logs"

    @property
    def criteria_path(self) -> Path:
        """Return the criterion table to load, falling back to the bundled one."""
        if self.MATCHING_CRITERIA_FILE:
            return Path(self.MATCHING_CRITERIA_FILE)
        return PROJECT_ROOT / "config" / "matching_criteria.yaml"

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    LOG_TO_FILE: bool = Field(default=True)
    LOG_DIR: str = Field(default="")

    # Criterion table (YAML); empty means config/matching_criteria.yaml
    MATCHING_CRITERIA_FILE: str = Field(default="")

    # Confidence thresholds (percent, inclusive lower bounds)
    EXCELLENT_THRESHOLD: float = Field(default=95.0)
    GOOD_THRESHOLD: float = Field(default=80.0)
    FAIR_THRESHOLD: float = Field(default=60.0)
    POOR_THRESHOLD: float = Field(default=30.0)

    # Candidate retrieval
    CANDIDATE_LIMIT: int = Field(default=10)
    MIN_CANDIDATE_SCORE: float = Field(default=10.0)
    CANDIDATE_ROLE: str = Field(default="debtor")

    # Normalization
    PHONE_SUBSCRIBER_DIGITS: int = Field(default=8)

    # Linked debt defaults
    DEFAULT_DUE_DAYS: int = Field(default=30)

    # In-memory history of recent match results per engine
    HISTORY_CACHE_SIZE: int = Field(default=500)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
