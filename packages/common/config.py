"""
Application configuration using Pydantic Settings
Reads from environment variables and .env file
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    environment: str = Field(default="production", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # AI providers
    ai_provider: str = Field(default="anthropic", alias="AI_PROVIDER")
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-5", alias="ANTHROPIC_MODEL")
    anthropic_max_tokens: int = Field(default=4096, alias="ANTHROPIC_MAX_TOKENS")
    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")

    # AI learning system
    field_mapping_path: str = Field(default="ai-field-mappings.json", alias="AI_FIELD_MAPPING_PATH")
    transform_cache_path: str = Field(default="ai-transformation-cache.json", alias="AI_TRANSFORM_CACHE_PATH")
    mapping_sample_size: int = Field(default=5, ge=1, alias="AI_MAPPING_SAMPLE_SIZE")
    max_examples_per_template: int = Field(default=5, ge=1, alias="AI_MAX_EXAMPLES_PER_TEMPLATE")
    cache_similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0, alias="AI_CACHE_SIMILARITY")
    cache_hit_threshold: float = Field(default=0.8, ge=0.0, le=1.0, alias="AI_CACHE_HIT_THRESHOLD")
    populate_missing_fields: bool = Field(default=True, alias="AI_POPULATE_MISSING_FIELDS")

    # Sync
    lookback_hours: int = Field(default=24, ge=1, alias="LOOKBACK_HOURS")
    batch_size: int = Field(default=10, ge=1, alias="BATCH_SIZE")
    review_mode: bool = Field(default=True, alias="REVIEW_MODE")
    dry_run: bool = Field(default=False, alias="DRY_RUN")
    filter_by_category: bool = Field(default=False, alias="FILTER_BY_CATEGORY")
    allowed_categories: str = Field(default="", alias="ALLOWED_CATEGORIES")
    focus_categories: str = Field(default="", alias="FOCUS_CATEGORIES")

    # Monitoring
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")

    @property
    def category_filter(self) -> List[str]:
        """Focus categories override the allowed list when set"""
        raw = self.focus_categories or self.allowed_categories
        return [c.strip() for c in raw.split(",") if c.strip()]

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment"""
        valid_envs = ["development", "staging", "production", "test"]
        if v.lower() not in valid_envs:
            raise ValueError(f"ENVIRONMENT must be one of {valid_envs}")
        return v.lower()

    @field_validator("ai_provider")
    @classmethod
    def validate_ai_provider(cls, v):
        """Validate AI provider"""
        valid_providers = ["anthropic", "gemini"]
        if v.lower() not in valid_providers:
            raise ValueError(f"AI_PROVIDER must be one of {valid_providers}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
