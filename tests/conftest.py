"""Pytest configuration and shared fixtures."""

import logging
from pathlib import Path

import pytest

# ============================================================================
# Model Artifacts
# ============================================================================


@pytest.fixture
def model_file(tmp_path: Path) -> Path:
    """Create a model artifact on disk.

    The engine never reads it in tests; only its existence and mtime matter.
    """
    path = tmp_path / "model.vw"
    path.write_bytes(b"weights")
    return path


# ============================================================================
# Logging
# ============================================================================


@pytest.fixture(autouse=True)
def wabbitd_log_level(caplog: pytest.LogCaptureFixture):
    """Capture wabbitd logs at INFO so tests can assert on them."""
    caplog.set_level(logging.INFO, logger="wabbitd")
    yield
