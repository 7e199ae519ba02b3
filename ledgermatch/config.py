"""
Configuration management using Pydantic Settings.
All parameters are loaded from environment variables with sensible defaults.
"""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_env: str = Field(default="development")
    app_log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    # Runner
    acceptance_floor: float = Field(default=0.35)

    # Candidate windows (days)
    single_match_window_days: int = Field(default=30)
    group_window_days: int = Field(default=3)
    date_group_windows: List[int] = Field(default_factory=lambda: [1, 3, 7])
    date_group_max_pool: int = Field(default=30)

    # Subset-sum grouping (many bank entries -> one record)
    subset_sum_window_days: int = Field(default=3)
    subset_sum_max_pool: int = Field(default=20)
    subset_sum_max_extra: int = Field(default=5)
    max_days_from_transaction: int = Field(default=14)
    near_transaction_days: int = Field(default=3)

    # Amounts
    amount_tolerance_cents: int = Field(default=100)
    currency_symbol: str = Field(default="£")

    # Fuzzy thresholds
    group_proximity_threshold: float = Field(default=0.85)
    related_name_threshold: float = Field(default=0.5)
    borrower_name_threshold: float = Field(default=0.5)
    investor_name_threshold: float = Field(default=0.75)
    pattern_keyword_threshold: float = Field(default=0.5)
    keyword_levenshtein_threshold: float = Field(default=0.75)

    # Strategy toggles
    enable_loan_repayments: bool = Field(default=True)
    enable_loan_disbursements: bool = Field(default=True)
    enable_investor_credits: bool = Field(default=True)
    enable_investor_withdrawals: bool = Field(default=True)
    enable_expenses: bool = Field(default=True)
    enable_patterns: bool = Field(default=True)

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
