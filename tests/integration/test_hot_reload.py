"""Integration tests for hot-reload over real TCP connections.

The engine processes are simulated by FakeController, but every prediction
goes through the real pool, line protocol and sockets to a FakeEngineServer
listening on the daemon's port.
"""

import threading
import time
from pathlib import Path

import pytest

from tests.helpers.engine import FakeController, bump_mtime, free_port_pair
from wabbitd.adapters.daemon.handle import DaemonHandle
from wabbitd.core.supervisor import Supervisor
from wabbitd.domain.config import HealthConfig, WatchConfig
from wabbitd.domain.exceptions import DaemonNotRunningError, PoolError, TransportError

FAST_HEALTH = HealthConfig(start_tries=3, start_delay_ms=1, stop_tries=3, stop_delay_ms=1)


def wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def port() -> int:
    return free_port_pair()


@pytest.fixture
def controller():
    controller = FakeController(serve=True)
    yield controller
    controller.shutdown()


@pytest.fixture
def watcher_errors() -> list[BaseException]:
    return []


@pytest.fixture
def handle(model_file: Path, port: int, controller: FakeController, watcher_errors: list):
    handle = DaemonHandle.construct(
        "vw",
        port,
        4,
        str(model_file),
        updatable=True,
        controller=controller,
        health=FAST_HEALTH,
        watch=WatchConfig(interval=0.02),
        on_change=Supervisor(default_port=port).recreate,
        on_error=watcher_errors.append,
    )
    handle.run()
    yield handle
    handle.close()


class TestPredictOverTcp:
    """Tests for predictions through real sockets."""

    def test_predict_round_trip(self, handle: DaemonHandle, port: int, controller: FakeController) -> None:
        prediction = handle.predict(b"1 |f a:1")

        assert prediction.value == 0.5
        assert prediction.tag == f"port{port}"
        assert controller.servers[port].requests == ["1 |f a:1"]

    def test_concurrent_predictions_share_pool(self, handle: DaemonHandle, port: int) -> None:
        results: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(25):
                tag = handle.predict(b"1 |f a:1").tag
                with lock:
                    results.append(tag)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert len(results) == 200
        assert set(results) == {f"port{port}"}
        assert handle.pool.available == handle.pool.capacity == 2


class TestHotReload:
    """Tests for model changes triggering a swap."""

    def test_model_change_swaps_to_alternate_port(
        self,
        handle: DaemonHandle,
        port: int,
        model_file: Path,
        controller: FakeController,
        watcher_errors: list,
    ) -> None:
        holder = handle
        mtime = bump_mtime(model_file)

        assert wait_for(lambda: holder.port == port + 1)

        assert holder.predict(b"1 |f a:1").tag == f"port{port + 1}"
        assert holder.model.mtime == mtime
        assert wait_for(lambda: controller.count(port) == 0)
        assert controller.count(port + 1) == 5
        assert watcher_errors == []

    def test_second_change_returns_to_default_port(
        self, handle: DaemonHandle, port: int, model_file: Path
    ) -> None:
        bump_mtime(model_file)
        assert wait_for(lambda: handle.port == port + 1)

        bump_mtime(model_file)
        assert wait_for(lambda: handle.port == port)

        assert handle.predict(b"1 |f a:1").tag == f"port{port}"
        assert wait_for(lambda: handle.watcher.reloads == 2)

    def test_predictions_continue_across_swap(
        self, handle: DaemonHandle, port: int, model_file: Path
    ) -> None:
        """Callers keep getting answers; requests racing the swap may fail."""
        stop = threading.Event()
        tags: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            while not stop.is_set():
                try:
                    tag = handle.predict(b"1 |f a:1", timeout=1.0).tag
                except (PoolError, TransportError, DaemonNotRunningError):
                    continue
                with lock:
                    tags.append(tag)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        try:
            assert wait_for(lambda: f"port{port}" in tags)
            bump_mtime(model_file)
            assert wait_for(lambda: f"port{port + 1}" in tags)
        finally:
            stop.set()
            for thread in threads:
                thread.join(timeout=10)

        assert handle.port == port + 1

    def test_unhealthy_replacement_stops_watcher(
        self, model_file: Path, port: int, watcher_errors: list
    ) -> None:
        controller = FakeController(serve=True, unhealthy_ports=(port + 1,))
        handle = DaemonHandle.construct(
            "vw",
            port,
            4,
            str(model_file),
            updatable=True,
            controller=controller,
            health=FAST_HEALTH,
            watch=WatchConfig(interval=0.02),
            on_change=Supervisor(default_port=port).recreate,
            on_error=watcher_errors.append,
        )
        try:
            handle.run()
            bump_mtime(model_file)

            assert wait_for(lambda: watcher_errors != [])
            assert wait_for(lambda: not handle.watcher.is_alive)
            assert handle.port == port
            assert handle.is_running is False
            assert controller.count(port) == 0
        finally:
            handle.watcher.stop()
            controller.table.by_port.pop(port + 1, None)
            controller.shutdown()
