"""Config domain models for wabbitd.

Configuration is stored in config.toml and describes which engine binary to
supervise, how it is health-checked, how connections to it are pooled, and
how often its model artifact is polled. This module defines the domain
models that represent validated configuration state.
"""

from dataclasses import dataclass, field

DEFAULT_PORT = 26542


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for the supervised prediction engine.

    Attributes:
        binary: Engine executable (resolved via PATH if not absolute)
        port: Default TCP port; hot-reloads alternate between port and port + 1
        workers: Number of child worker processes the engine forks
        model_path: Model artifact loaded with -i (required to construct a daemon)
        test_mode: Start the engine with -t (no learning, predictions only)
        quiet: Pass --quiet to the engine
        updatable: Watch model_path and hot-reload when it changes

    Raises:
        ValueError: If workers < 2 (the pool holds workers // 2 connections)
                   or port is outside 1..65534.
    """

    binary: str = "vw"
    port: int = DEFAULT_PORT
    workers: int = 4
    model_path: str = ""
    test_mode: bool = False
    quiet: bool = True
    updatable: bool = False

    def __post_init__(self) -> None:
        """Validate engine config after initialization."""
        if not self.binary:
            raise ValueError("binary cannot be empty")
        if self.workers < 2:
            raise ValueError(f"workers must be at least 2, got {self.workers}")
        # port + 1 must still be a valid port for the alternate instance
        if not 1 <= self.port <= 65534:
            raise ValueError(f"port must be between 1 and 65534, got {self.port}")


@dataclass(frozen=True)
class HealthConfig:
    """Configuration for process health polling.

    Attributes:
        start_tries: Polls after launching a daemon before giving up
        start_delay_ms: Delay between start polls in milliseconds
        stop_tries: Polls after killing a daemon to confirm it is gone
        stop_delay_ms: Delay between stop polls in milliseconds

    Raises:
        ValueError: If any value is not positive.
    """

    start_tries: int = 5
    start_delay_ms: int = 500
    stop_tries: int = 5
    stop_delay_ms: int = 500

    def __post_init__(self) -> None:
        """Validate health config after initialization."""
        for name in (
            "start_tries",
            "start_delay_ms",
            "stop_tries",
            "stop_delay_ms",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")


@dataclass(frozen=True)
class PoolConfig:
    """Configuration for the TCP connection pool.

    Attributes:
        host: Address the engine listens on
        connect_timeout: Seconds allowed for each connection attempt
        checkout_timeout: Seconds to wait for a free connection (None = forever)

    Raises:
        ValueError: If a timeout is not positive.
    """

    host: str = "127.0.0.1"
    connect_timeout: float = 5.0
    checkout_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate pool config after initialization."""
        if self.connect_timeout <= 0:
            raise ValueError(
                f"connect_timeout must be positive, got {self.connect_timeout}"
            )
        if self.checkout_timeout is not None and self.checkout_timeout <= 0:
            raise ValueError(
                f"checkout_timeout must be positive, got {self.checkout_timeout}"
            )


@dataclass(frozen=True)
class WatchConfig:
    """Configuration for model artifact polling.

    Attributes:
        interval: Seconds between mtime checks

    Raises:
        ValueError: If interval is not positive.
    """

    interval: float = 1.0

    def __post_init__(self) -> None:
        """Validate watch config after initialization."""
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")


@dataclass(frozen=True)
class WabbitdConfig:
    """Complete wabbitd configuration.

    Attributes:
        engine: Engine process configuration
        health: Health polling configuration
        pool: Connection pool configuration
        watch: Model watcher configuration
    """

    engine: EngineConfig = field(default_factory=EngineConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)

    @staticmethod
    def default() -> "WabbitdConfig":
        """Create a config with all default values."""
        return WabbitdConfig(
            engine=EngineConfig(),
            health=HealthConfig(),
            pool=PoolConfig(),
            watch=WatchConfig(),
        )
