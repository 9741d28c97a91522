"""
Tests for the read/write database layer and its configuration.
"""

import pytest
from sqlalchemy import text

from querycache.config import Settings, validate_database_config
from querycache.db import ReadWriteDatabase
from querycache.exceptions import ConfigurationError
from querycache.models import CacheableMixin
from tests.sample_models import Order, Widget


class TestConfig:
    """Tests for settings validation."""

    def test_missing_urls_reported(self):
        errors = validate_database_config(Settings(read_database_url="", write_database_url=""))

        assert len(errors) == 2
        assert "READ_DATABASE_URL" in errors[0]
        assert "WRITE_DATABASE_URL" in errors[1]

    def test_complete_config(self, test_settings):
        assert validate_database_config(test_settings) == []

    def test_database_url_feeds_both_paths(self, monkeypatch):
        monkeypatch.delenv("READ_DATABASE_URL", raising=False)
        monkeypatch.delenv("WRITE_DATABASE_URL", raising=False)
        monkeypatch.setenv("DATABASE_URL", "sqlite:///shared.db")

        settings = Settings()

        assert settings.read_database_url == "sqlite:///shared.db"
        assert settings.write_database_url == "sqlite:///shared.db"

    def test_redis_url(self):
        settings = Settings(redis_host="cache", redis_port=6380, redis_db=2, redis_password="pw")
        assert settings.redis_url == "redis://:pw@cache:6380/2"

    def test_redis_url_quotes_password(self):
        settings = Settings(redis_password="p@ss/word")
        assert settings.redis_url == "redis://:p%40ss%2Fword@localhost:6379/0"

    def test_bucket_retention_default(self):
        assert Settings().cache_bucket_ttl_seconds == 60 * 60 * 24


class TestReadWriteDatabase:
    """Tests for ReadWriteDatabase."""

    def test_from_settings_rejects_missing_config(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ReadWriteDatabase.from_settings(Settings(read_database_url="", write_database_url=""))

        assert len(exc_info.value.errors) == 2

    def test_from_settings_initializes(self, test_settings):
        database = ReadWriteDatabase.from_settings(test_settings)
        try:
            assert database.is_initialized
            assert database.read_engine is database.write_engine
        finally:
            database.reset()

    def test_separate_engines(self, tmp_path):
        database = ReadWriteDatabase(Settings())
        database.initialize(
            read_url=f"sqlite:///{tmp_path / 'replica.db'}",
            write_url=f"sqlite:///{tmp_path / 'primary.db'}",
        )
        try:
            assert database.read_engine is not database.write_engine
        finally:
            database.reset()

    def test_uninitialized_raises(self):
        database = ReadWriteDatabase(Settings())

        with pytest.raises(RuntimeError, match="not initialized"):
            with database.read():
                pass

    def test_write_commits(self, database):
        with database.write() as session:
            session.add(Widget(id=1, name="gear"))

        with database.read() as session:
            assert session.get(Widget, 1).name == "gear"

    def test_write_rolls_back_on_error(self, database):
        with pytest.raises(ValueError):
            with database.write() as session:
                session.add(Widget(id=1, name="gear"))
                session.flush()
                raise ValueError("boom")

        with database.read() as session:
            assert session.get(Widget, 1) is None

    def test_save_upserts(self, database):
        database.save(Widget(id=1, name="gear", color="red"))
        saved = database.save(Widget(id=1, name="gear", color="blue"))

        assert saved.color == "blue"
        with database.read() as session:
            assert session.query(Widget).count() == 1

    def test_sqlite_foreign_keys_enabled(self, database):
        with database.read() as session:
            assert session.execute(text("PRAGMA foreign_keys")).scalar() == 1

    def test_health_check(self, database):
        result = database.health_check()

        assert result["healthy"] is True
        assert result["error"] is None

    def test_health_check_uninitialized(self):
        assert ReadWriteDatabase(Settings()).health_check()["healthy"] is False

    def test_reset(self, test_settings):
        database = ReadWriteDatabase(test_settings)
        database.initialize()
        database.reset()

        assert not database.is_initialized
        assert database.read_engine is None


class TestCacheableMixin:
    """Tests for cache key/bucket derivation from models."""

    def test_filters_skip_unset_columns(self):
        assert Order(status="active").cache_filters() == {"status": "active"}

    def test_key_in_column_order(self):
        assert Order(region="eu", status="active", id=3).get_cache_key() == (
            "id=3,status=active,region=eu"
        )

    def test_empty_criteria(self):
        assert Order().get_cache_key() == ""

    def test_bucket_is_table_name(self):
        assert Widget().get_cache_bucket() == "widgets"

    def test_plain_mixin_has_no_table(self):
        class Loose(CacheableMixin):
            pass

        assert Loose().get_cache_bucket() == ""
