"""Test helper utilities for the wabbitd test suite."""

from tests.helpers.engine import (
    FakeConnection,
    FakeConnector,
    FakeController,
    FakeEngineServer,
    bump_mtime,
    free_port_pair,
)

__all__ = [
    "FakeConnection",
    "FakeConnector",
    "FakeController",
    "FakeEngineServer",
    "bump_mtime",
    "free_port_pair",
]
