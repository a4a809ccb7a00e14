"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Packaged rule and protocol tables
RULESETS_DIR = Path(__file__).parent.parent / "rulesets"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application environment
    env: Literal["dev", "test", "staging", "prod"] = "dev"

    # Logging
    log_level: str = "INFO"
    # Audit events kept in memory for inspection
    audit_buffer_size: int = 1000

    # Risk flag rules table (file name inside rulesets_dir)
    rulesets_dir: Path = RULESETS_DIR
    flag_ruleset_filename: str = "flag-rules-v1.0.0.yaml"

    # Operator-editable crisis protocol table, reloadable at runtime
    protocols_file: Path = RULESETS_DIR / "crisis-protocols-v1.0.0.yaml"

    # Notification group ids
    emergency_services_group_id: str = "emergency_services"
    operations_group_id: str = "clinical_operations"
    # Groups used when no protocol record matches an alert
    fallback_notification_groups: list[str] = ["crisis_team", "senior_staff"]

    # Safety banner configuration (shown during intake)
    safety_banner_text: str = (
        "If you are in immediate danger or thinking about ending your life, "
        "call your local emergency number now. In the US you can call or text "
        "988 (Suicide & Crisis Lifeline) at any time."
    )
    safety_banner_enabled: bool = True

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.env == "dev"

    @property
    def is_prod(self) -> bool:
        """Check if running in production mode."""
        return self.env == "prod"

    @property
    def is_test(self) -> bool:
        """Check if running in test mode."""
        return self.env == "test"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
