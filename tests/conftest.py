"""Root conftest for tests."""

import os
from datetime import UTC, datetime

import pytest

if os.getenv("APP_ENV", "").strip().lower() == "prod":
    raise RuntimeError("Refusing to run tests with APP_ENV=prod")

os.environ["APP_ENV"] = "test"
os.environ.setdefault("OTEL_LOG_RECORD_FORMAT", "console")

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    dir_marker_map = {
        "unit": pytest.mark.unit,
        "smoke": pytest.mark.smoke,
        "integration": pytest.mark.integration,
        "e2e": pytest.mark.e2e,
    }
    for item in items:
        test_path = str(item.fspath)
        for dir_name, marker in dir_marker_map.items():
            if f"/{dir_name}/" in test_path or f"\\{dir_name}\\" in test_path:
                item.add_marker(marker)
                break


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached process-wide; start every test from the environment."""
    from truthstream.core.config import reload_settings

    reload_settings()
    yield
    reload_settings()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def claim():
    from truthstream.verification.models import Claim, ExperienceType

    return Claim(
        experience_id="exp-001",
        user_id="user-001",
        occurred_at=datetime(2026, 3, 1, 11, 0, tzinfo=UTC),
        experience_type=ExperienceType.MEAL,
        title="Dinner at Le Bernardin",
        place="Le Bernardin, New York",
        estimated_amount=185.0,
        social_post_ref="post-42",
    )


@pytest.fixture
def location_payload() -> dict:
    return {
        "latitude": 40.7614,
        "longitude": -73.9776,
        "accuracy": 12.0,
        "timestamp": "2026-03-01T11:30:00Z",
    }


@pytest.fixture
def payment_payload() -> dict:
    return {
        "merchant": "le-bernardin",
        "amount": 182.5,
        "merchant_verified": True,
        "timestamp": "2026-03-01T11:45:00Z",
    }


@pytest.fixture
def social_payload() -> dict:
    return {
        "platform": "instagram",
        "post_id": "post-42",
        "engagement": 57,
        "timestamp": "2026-03-01T11:50:00Z",
    }
