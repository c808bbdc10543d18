"""Domain value objects with validation.

Value objects that provide validation at construction time,
ensuring invalid states are unrepresentable.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from wabbitd.domain.exceptions import ModelNotFoundError, PredictionParseError

LINE_TERMINATOR = b"\n"


def ensure_line_terminated(data: bytes) -> bytes:
    """Append a newline to a request payload unless it already ends with one.

    The daemon protocol is line-delimited, so a request without a trailing
    newline would never be answered. Applying this twice is a no-op.

    Args:
        data: Raw request bytes.

    Returns:
        The payload, guaranteed to end with exactly the original terminator.
    """
    if data.endswith(LINE_TERMINATOR):
        return data
    return data + LINE_TERMINATOR


@dataclass(frozen=True)
class Prediction:
    """Result of a single prediction request.

    Attributes:
        value: The predicted scalar.
        tag: The request tag echoed back by the daemon (may be empty).
    """

    value: float
    tag: str = ""

    @classmethod
    def from_line(cls, line: str) -> "Prediction":
        """Parse a daemon response line of the form '<value> <tag>'.

        Args:
            line: One response line, with or without its trailing newline.

        Returns:
            Parsed Prediction.

        Raises:
            PredictionParseError: If the line is empty or the value is not numeric.
        """
        parts = line.split(maxsplit=1)
        if not parts:
            raise PredictionParseError("Empty response line from daemon", line=line)

        try:
            value = float(parts[0])
        except ValueError as e:
            raise PredictionParseError(
                f"Invalid prediction value {parts[0]!r} in response {line!r}",
                line=line,
            ) from e

        tag = parts[1].strip() if len(parts) > 1 else ""
        return cls(value=value, tag=tag)

    def __str__(self) -> str:
        return f"{self.value} {self.tag}".rstrip()


@dataclass(frozen=True)
class ModelReference:
    """Reference to the model artifact a daemon was started with.

    The stored mtime is the value observed when the current daemon instance
    was started. It only changes when a hot-reload swaps in the reference
    taken for the replacement instance, so a stale mtime is exactly what
    signals a reload.

    Attributes:
        path: Path to the model file.
        mtime: Modification time recorded for the running instance.
        updatable: Whether the file is watched for changes.
    """

    path: Path
    mtime: float
    updatable: bool = False

    @classmethod
    def stat(cls, path: str | os.PathLike[str], updatable: bool = False) -> "ModelReference":
        """Build a reference from the file currently on disk.

        Raises:
            ModelNotFoundError: If the file cannot be stat'ed.
        """
        model_path = Path(path)
        return cls(path=model_path, mtime=_read_mtime(model_path), updatable=updatable)

    def current_mtime(self) -> float:
        """Re-stat the artifact and return its modification time."""
        return _read_mtime(self.path)

    def has_changed(self) -> bool:
        """Check whether the artifact was modified since this reference was taken.

        Returns:
            True if the file's mtime differs from the stored one.

        Raises:
            ModelNotFoundError: If the file disappeared.
        """
        return self.current_mtime() != self.mtime


def _read_mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError as e:
        raise ModelNotFoundError(
            f"Model file not found: {path}",
            hint="Check the model_path setting in your wabbitd config",
        ) from e
