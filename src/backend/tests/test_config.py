"""Tests for settings parsing and timestamp helpers."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from smarthome.core.config import Settings
from smarthome.core.timeutils import (
    InvalidTimestampError,
    ensure_utc,
    isoformat_utc,
    parse_timestamp,
)


class TestSettings:
    """Tests for Settings."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@db/home", "postgresql+asyncpg://u:p@db/home"),
            ("postgresql://u:p@db/home", "postgresql+asyncpg://u:p@db/home"),
            ("postgresql+asyncpg://u:p@db/home", "postgresql+asyncpg://u:p@db/home"),
            ("sqlite+aiosqlite:///./dev.db", "sqlite+aiosqlite:///./dev.db"),
        ],
    )
    def test_database_url_normalised(self, url, expected):
        assert Settings(database_url=url).database_url == expected

    def test_cors_origins_comma_separated(self):
        settings = Settings(cors_origins_str="http://a.test, http://b.test,")

        assert settings.cors_origins == ["http://a.test", "http://b.test"]

    def test_cors_origins_json(self):
        settings = Settings(cors_origins_str='["http://a.test"]')

        assert settings.cors_origins == ["http://a.test"]

    def test_ingest_defaults(self):
        settings = Settings()

        assert settings.strict_ingest_validation is True
        assert settings.registry_upsert_policy == "first"
        assert settings.ingest_max_batch_size == 10000

    def test_upsert_policy_from_environment(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_UPSERT_POLICY", "latest")

        assert Settings().registry_upsert_policy == "latest"

    def test_unknown_upsert_policy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(registry_upsert_policy="random")


class TestTimeUtils:
    """Tests for UTC parsing and formatting."""

    def test_parse_zulu(self):
        assert parse_timestamp("2025-01-01T00:00:00.000Z") == datetime(
            2025, 1, 1, tzinfo=timezone.utc
        )

    def test_parse_offset_is_normalised(self):
        parsed = parse_timestamp("2025-01-01T02:00:00+02:00")

        assert parsed == datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert parsed.utcoffset() == timedelta(0)

    def test_parse_naive_is_utc(self):
        assert parse_timestamp("2025-01-01T00:00:00").tzinfo is not None

    @pytest.mark.parametrize("value", ["", "not-a-date", "2025-13-45"])
    def test_parse_invalid(self, value):
        with pytest.raises(InvalidTimestampError):
            parse_timestamp(value)

    def test_ensure_utc_naive(self):
        assert ensure_utc(datetime(2025, 1, 1)).tzinfo == timezone.utc

    def test_isoformat_utc(self):
        value = datetime(2025, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)

        assert isoformat_utc(value) == "2025-01-01T12:00:00.123Z"
