"""Engine daemon supervision.

Architecture:
- process.py: Launches, kills and counts engine processes by port
- protocol.py: Newline-delimited request/response framing
- pool.py: Bounded pool of TCP connections to one daemon
- handle.py: Daemon handle (one instance, swappable in place)
- watcher.py: Model file polling that triggers hot-reloads
"""

from wabbitd.adapters.daemon.handle import DaemonHandle

__all__ = ["DaemonHandle"]
