"""Tests for domain value objects."""

import os
from pathlib import Path

import pytest

from wabbitd.domain.exceptions import ModelNotFoundError, PredictionParseError
from wabbitd.domain.value_objects import (
    ModelReference,
    Prediction,
    ensure_line_terminated,
)


class TestEnsureLineTerminated:
    """Tests for request line termination."""

    def test_appends_missing_newline(self) -> None:
        assert ensure_line_terminated(b"1 |f a:1") == b"1 |f a:1\n"

    def test_keeps_existing_newline(self) -> None:
        assert ensure_line_terminated(b"1 |f a:1\n") == b"1 |f a:1\n"

    def test_is_idempotent(self) -> None:
        """Applying twice produces the same payload as applying once."""
        for payload in (b"1 |f a:1", b"1 |f a:1\n", b""):
            once = ensure_line_terminated(payload)
            assert ensure_line_terminated(once) == once

    def test_empty_payload_becomes_bare_newline(self) -> None:
        assert ensure_line_terminated(b"") == b"\n"


class TestPrediction:
    """Tests for Prediction parsing."""

    def test_parses_value_and_tag(self) -> None:
        prediction = Prediction.from_line("0.5 tag1\n")

        assert prediction == Prediction(value=0.5, tag="tag1")

    def test_parses_value_without_tag(self) -> None:
        prediction = Prediction.from_line("-1.25\n")

        assert prediction.value == -1.25
        assert prediction.tag == ""

    def test_tag_keeps_inner_whitespace(self) -> None:
        prediction = Prediction.from_line("1 some tag\n")

        assert prediction.tag == "some tag"

    def test_empty_line_raises_structured_error(self) -> None:
        with pytest.raises(PredictionParseError) as exc_info:
            Prediction.from_line("\n")

        assert exc_info.value.line == "\n"

    def test_non_numeric_value_raises_structured_error(self) -> None:
        with pytest.raises(PredictionParseError, match="Invalid prediction value") as exc_info:
            Prediction.from_line("oops tag1")

        assert exc_info.value.line == "oops tag1"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_str_round_trips_display(self) -> None:
        assert str(Prediction(0.5, "tag1")) == "0.5 tag1"
        assert str(Prediction(0.5)) == "0.5"

    def test_is_immutable(self) -> None:
        prediction = Prediction(0.5, "tag1")

        with pytest.raises(AttributeError):
            prediction.value = 1.0  # type: ignore[misc]


class TestModelReference:
    """Tests for model artifact change detection."""

    @pytest.fixture
    def model_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "model.vw"
        path.write_bytes(b"model")
        os.utime(path, (1_000_000, 1_000_000))
        return path

    def test_stat_records_mtime(self, model_file: Path) -> None:
        reference = ModelReference.stat(model_file, updatable=True)

        assert reference.path == model_file
        assert reference.mtime == 1_000_000
        assert reference.updatable is True

    def test_stat_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ModelNotFoundError, match="Model file not found"):
            ModelReference.stat(tmp_path / "missing.vw")

    def test_unchanged_file_is_not_changed(self, model_file: Path) -> None:
        reference = ModelReference.stat(model_file)

        assert reference.has_changed() is False

    def test_touched_file_is_changed(self, model_file: Path) -> None:
        reference = ModelReference.stat(model_file)
        os.utime(model_file, (2_000_000, 2_000_000))

        assert reference.has_changed() is True
        # Detection does not update the stored mtime
        assert reference.mtime == 1_000_000
        assert reference.has_changed() is True

    def test_reference_for_new_mtime_is_not_changed(self, model_file: Path) -> None:
        """A change is reported once per distinct mtime, until swapped in."""
        reference = ModelReference.stat(model_file)
        os.utime(model_file, (2_000_000, 2_000_000))
        assert reference.has_changed() is True

        swapped_in = ModelReference.stat(model_file)
        assert swapped_in.has_changed() is False

        os.utime(model_file, (3_000_000, 3_000_000))
        assert swapped_in.has_changed() is True

    def test_deleted_file_raises(self, model_file: Path) -> None:
        reference = ModelReference.stat(model_file)
        model_file.unlink()

        with pytest.raises(ModelNotFoundError):
            reference.has_changed()
