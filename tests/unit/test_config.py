"""Unit tests for config module."""

import pytest
from pydantic import ValidationError

from truthstream.core.config import (
    AppConfig,
    AppEnvironment,
    LedgerConfig,
    LogLevel,
    Settings,
    TrustScoreConfig,
    VerificationConfig,
    get_settings,
    reload_settings,
)


def test_app_config_defaults(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    config = AppConfig()
    assert config.name == "truthstream-verification"
    assert config.env == AppEnvironment.LOCAL
    assert config.log_level == LogLevel.INFO


def test_app_config_env_parsing():
    assert AppConfig(env=" PROD ").env == AppEnvironment.PROD
    assert AppConfig(log_level="debug").log_level == LogLevel.DEBUG


def test_verification_config_defaults():
    config = VerificationConfig()
    assert config.stage_timeout_seconds == 15.0
    assert config.min_valid_proofs == 2
    assert config.confidence_threshold == 0.70
    assert config.proof_max_age_hours == 24.0


def test_timeout_for_falls_back_to_stage_default():
    config = VerificationConfig(stage_timeout_seconds=5.0, payment_timeout_seconds=2.0)
    assert config.timeout_for("location") == 5.0
    assert config.timeout_for("payment") == 2.0
    assert config.timeout_for("ledger_record") == 5.0


def test_timeout_for_ledger_override():
    config = VerificationConfig(ledger_timeout_seconds=30.0)
    assert config.timeout_for("ledger_record") == 30.0


def test_verification_config_rejects_non_positive_timeout():
    with pytest.raises(ValidationError):
        VerificationConfig(stage_timeout_seconds=0)


def test_verification_config_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("VERIFICATION_STAGE_TIMEOUT_SECONDS", "3.5")
    monkeypatch.setenv("VERIFICATION_MIN_VALID_PROOFS", "3")
    config = VerificationConfig()
    assert config.stage_timeout_seconds == 3.5
    assert config.min_valid_proofs == 3


def test_trust_config_sorts_tiers_descending():
    config = TrustScoreConfig(consistency_tiers=[(7, 5), (90, 10), (30, 7)])
    assert config.consistency_tiers == [(90, 10), (30, 7), (7, 5)]


def test_ledger_config_defaults():
    config = LedgerConfig()
    assert config.base_url == ""
    assert config.records_path == "/api/v1/experience-records"
    assert config.api_key.get_secret_value() == ""
    assert config.retry_attempts == 3


def test_settings_rejects_prod_without_ledger_url():
    with pytest.raises(ValidationError, match="LEDGER_BASE_URL"):
        Settings(app=AppConfig(env="prod"), ledger=LedgerConfig(base_url=""))


def test_settings_accepts_prod_with_ledger_url():
    settings = Settings(app=AppConfig(env="prod"), ledger=LedgerConfig(base_url="https://ledger"))
    assert settings.ledger.base_url == "https://ledger"


def test_ledger_retry_budget_covers_attempts_and_backoff():
    config = LedgerConfig(timeout_seconds=10.0, retry_attempts=3, retry_backoff_seconds=0.5)
    assert config.retry_budget_seconds == pytest.approx(31.5)
    capped = LedgerConfig(timeout_seconds=1.0, retry_attempts=4, retry_backoff_seconds=5.0)
    assert capped.retry_budget_seconds == pytest.approx(4.0 + 5.0 + 8.0 + 8.0)


def test_settings_ledger_timeout_covers_client_retries():
    settings = Settings()
    assert settings.verification.timeout_for("ledger_record") == pytest.approx(
        settings.ledger.retry_budget_seconds
    )
    assert settings.verification.timeout_for("ledger_record") > (
        settings.verification.stage_timeout_seconds
    )


def test_settings_ledger_timeout_keeps_larger_stage_timeout():
    settings = Settings(
        verification=VerificationConfig(stage_timeout_seconds=60.0),
        ledger=LedgerConfig(timeout_seconds=1.0, retry_attempts=1),
    )
    assert settings.verification.timeout_for("ledger_record") == 60.0


def test_settings_ledger_timeout_explicit_override_kept():
    verification = VerificationConfig(ledger_timeout_seconds=5.0)
    settings = Settings(verification=verification)
    assert settings.verification.timeout_for("ledger_record") == 5.0
    assert verification.ledger_timeout_seconds == 5.0


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_reload_settings_picks_up_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("VERIFICATION_CONFIDENCE_THRESHOLD", "0.8")
    settings = reload_settings()
    assert settings.verification.confidence_threshold == 0.8
