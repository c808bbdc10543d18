"""Unit tests for TomlConfigProvider adapter."""

from pathlib import Path
from unittest.mock import patch

import pytest

from wabbitd.adapters.config.toml_config_provider import TomlConfigProvider
from wabbitd.domain.config import WabbitdConfig


@pytest.fixture
def provider() -> TomlConfigProvider:
    """Create a TomlConfigProvider instance."""
    return TomlConfigProvider()


@pytest.fixture
def global_config(tmp_path: Path):
    """Point the global config at a temporary location.

    Keeps tests isolated from the user's ~/.config/wabbitd/config.toml.
    """
    path = tmp_path / "global" / "config.toml"
    with patch(
        "wabbitd.adapters.config.toml_config_provider.get_global_config_path",
        return_value=path,
    ):
        yield path


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestLoad:
    """Tests for config layering."""

    def test_no_files_returns_defaults(
        self, provider: TomlConfigProvider, global_config: Path, workdir: Path
    ) -> None:
        assert provider.load(cwd=workdir) == WabbitdConfig.default()

    def test_global_config_is_used(
        self, provider: TomlConfigProvider, global_config: Path, workdir: Path
    ) -> None:
        write(global_config, "[engine]\nworkers = 8\n")

        assert provider.load(cwd=workdir).engine.workers == 8

    def test_local_overrides_global_per_key(
        self, provider: TomlConfigProvider, global_config: Path, workdir: Path
    ) -> None:
        write(global_config, "[engine]\nworkers = 8\nbinary = \"/opt/vw\"\n")
        write(workdir / "wabbitd.toml", "[engine]\nworkers = 6\n")

        config = provider.load(cwd=workdir)

        assert config.engine.workers == 6
        assert config.engine.binary == "/opt/vw"

    def test_explicit_path_has_highest_priority(
        self, provider: TomlConfigProvider, global_config: Path, workdir: Path, tmp_path: Path
    ) -> None:
        write(workdir / "wabbitd.toml", "[engine]\nworkers = 6\n")
        explicit = write(tmp_path / "explicit.toml", "[engine]\nworkers = 10\n")

        assert provider.load(explicit, cwd=workdir).engine.workers == 10

    def test_broken_local_config_is_skipped(
        self,
        provider: TomlConfigProvider,
        global_config: Path,
        workdir: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        write(global_config, "[engine]\nworkers = 8\n")
        write(workdir / "wabbitd.toml", "[engine\nworkers =")

        config = provider.load(cwd=workdir)

        assert config.engine.workers == 8
        assert "Ignoring it" in caplog.text

    def test_missing_explicit_path_raises(
        self, provider: TomlConfigProvider, global_config: Path, workdir: Path, tmp_path: Path
    ) -> None:
        with pytest.raises(FileNotFoundError):
            provider.load(tmp_path / "missing.toml", cwd=workdir)

    def test_invalid_values_raise(
        self, provider: TomlConfigProvider, global_config: Path, workdir: Path
    ) -> None:
        write(workdir / "wabbitd.toml", "[engine]\nworkers = 1\n")

        with pytest.raises(ValueError, match="workers must be at least 2"):
            provider.load(cwd=workdir)
