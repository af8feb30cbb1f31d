"""Configuration management for the experience verification core.

Configuration is loaded from environment variables; every section has its
own prefix so deployments can override a single knob without touching the
rest.
"""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LEDGER_MAX_BACKOFF_SECONDS = 8.0


class AppEnvironment(StrEnum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class AppConfig(BaseSettings):
    name: str = Field(default="truthstream-verification")
    env: AppEnvironment = Field(default=AppEnvironment.LOCAL)
    version: str = Field(default="0.1.0")
    log_level: LogLevel = Field(default=LogLevel.INFO)

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        if isinstance(v, AppEnvironment):
            return v
        return AppEnvironment(v.strip().lower())

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        return LogLevel(v.strip().upper())


class ObservabilityConfig(BaseSettings):
    service_name: str = Field(default="truthstream-verification")
    log_record_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="OTEL_")


class VerificationConfig(BaseSettings):
    """Orchestrator thresholds and per-stage timeouts."""

    stage_timeout_seconds: float = Field(default=15.0, gt=0)
    location_timeout_seconds: float | None = Field(default=None, gt=0)
    payment_timeout_seconds: float | None = Field(default=None, gt=0)
    social_timeout_seconds: float | None = Field(default=None, gt=0)
    ledger_timeout_seconds: float | None = Field(default=None, gt=0)

    min_valid_proofs: int = Field(default=2, ge=1)
    confidence_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    proof_max_age_hours: float = Field(default=24.0, gt=0)

    model_config = SettingsConfigDict(env_prefix="VERIFICATION_")

    def timeout_for(self, stage: str) -> float:
        """Resolve the timeout for a stage, falling back to the shared default."""
        override = getattr(self, f"{stage.removesuffix('_record')}_timeout_seconds", None)
        return override if override is not None else self.stage_timeout_seconds


class TrustScoreConfig(BaseSettings):
    """Bonus constants for the trust score formula."""

    quantity_bonus_per_entry: float = Field(default=2.0)
    quantity_bonus_cap: float = Field(default=20.0)
    score_cap: float = Field(default=100.0)

    # (minimum span in days, bonus) checked top-down; span must be strictly greater.
    consistency_tiers: list[tuple[float, float]] = Field(
        default=[(90.0, 10.0), (30.0, 7.0), (7.0, 5.0)]
    )
    consistency_floor_bonus: float = Field(default=2.0)

    model_config = SettingsConfigDict(env_prefix="TRUST_")

    @field_validator("consistency_tiers", mode="after")
    @classmethod
    def sort_tiers(cls, v: list[tuple[float, float]]) -> list[tuple[float, float]]:
        return sorted(v, key=lambda tier: tier[0], reverse=True)


class LedgerConfig(BaseSettings):
    base_url: str = Field(default="")
    records_path: str = Field(default="/api/v1/experience-records")
    api_key: SecretStr = Field(default=SecretStr(""))
    timeout_seconds: float = Field(default=10.0)
    retry_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=0.5)

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    @property
    def retry_budget_seconds(self) -> float:
        """Worst-case wall time of one record call: every attempt times out, plus backoff."""
        backoff = sum(
            min(self.retry_backoff_seconds * 2**attempt, LEDGER_MAX_BACKOFF_SECONDS)
            for attempt in range(self.retry_attempts - 1)
        )
        return self.retry_attempts * self.timeout_seconds + backoff


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    verification: VerificationConfig = Field(default_factory=VerificationConfig)
    trust: TrustScoreConfig = Field(default_factory=TrustScoreConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)

    @model_validator(mode="after")
    def validate_ledger_settings(self) -> Settings:
        if self.app.env == AppEnvironment.PROD and not self.ledger.base_url:
            raise ValueError("LEDGER_BASE_URL must be set in production environment")
        return self

    @model_validator(mode="after")
    def derive_ledger_timeout(self) -> Settings:
        if self.verification.ledger_timeout_seconds is None:
            ledger_timeout = max(
                self.verification.stage_timeout_seconds,
                self.ledger.retry_budget_seconds,
            )
            self.verification = self.verification.model_copy(
                update={"ledger_timeout_seconds": ledger_timeout}
            )
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()
