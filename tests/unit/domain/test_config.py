"""Tests for configuration domain models."""

import pytest

from wabbitd.domain.config import (
    DEFAULT_PORT,
    EngineConfig,
    HealthConfig,
    PoolConfig,
    WabbitdConfig,
    WatchConfig,
)


class TestEngineConfig:
    """Tests for EngineConfig validation."""

    def test_defaults(self) -> None:
        config = EngineConfig()

        assert config.binary == "vw"
        assert config.port == DEFAULT_PORT == 26542
        assert config.workers == 4
        assert config.quiet is True
        assert config.updatable is False

    def test_rejects_single_worker(self) -> None:
        """One worker would give an empty connection pool."""
        with pytest.raises(ValueError, match="workers must be at least 2"):
            EngineConfig(workers=1)

    def test_rejects_port_without_room_for_alternate(self) -> None:
        with pytest.raises(ValueError, match="port must be between"):
            EngineConfig(port=65535)

    def test_rejects_zero_port(self) -> None:
        with pytest.raises(ValueError, match="port must be between"):
            EngineConfig(port=0)

    def test_rejects_empty_binary(self) -> None:
        with pytest.raises(ValueError, match="binary cannot be empty"):
            EngineConfig(binary="")


class TestHealthConfig:
    """Tests for HealthConfig validation."""

    def test_defaults_match_startup_budget(self) -> None:
        config = HealthConfig()

        assert config.start_tries == 5
        assert config.start_delay_ms == 500

    @pytest.mark.parametrize(
        "field", ["start_tries", "start_delay_ms", "stop_tries", "stop_delay_ms"]
    )
    def test_rejects_non_positive(self, field: str) -> None:
        with pytest.raises(ValueError, match=f"{field} must be positive"):
            HealthConfig(**{field: 0})


class TestPoolConfig:
    """Tests for PoolConfig validation."""

    def test_checkout_blocks_forever_by_default(self) -> None:
        assert PoolConfig().checkout_timeout is None

    def test_rejects_non_positive_checkout_timeout(self) -> None:
        with pytest.raises(ValueError, match="checkout_timeout must be positive"):
            PoolConfig(checkout_timeout=0)

    def test_rejects_non_positive_connect_timeout(self) -> None:
        with pytest.raises(ValueError, match="connect_timeout must be positive"):
            PoolConfig(connect_timeout=-1)


class TestWatchConfig:
    def test_default_interval_is_one_second(self) -> None:
        assert WatchConfig().interval == 1.0

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError, match="interval must be positive"):
            WatchConfig(interval=0)


class TestWabbitdConfig:
    def test_default_builds_all_sections(self) -> None:
        config = WabbitdConfig.default()

        assert config == WabbitdConfig()
        assert config.engine == EngineConfig()
        assert config.watch == WatchConfig()
