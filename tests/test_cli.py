"""
Tests for the studyreg command line.
"""

import io
import json
import logging
from pathlib import Path

import pytest

from studyreg import __version__
from studyreg.cli import main


@pytest.fixture(autouse=True)
def drop_log_handler():
    """main() installs a root handler bound to the captured stderr."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_studyreg", False):
            root.removeHandler(handler)


@pytest.fixture
def criteria_file(tmp_path: Path, baseline_criteria: dict) -> Path:
    path = tmp_path / "criteria.json"
    path.write_text(json.dumps(baseline_criteria), encoding="utf-8")
    return path


class TestEstimateCommand:
    """Tests for `studyreg estimate`."""

    def test_summary(self, criteria_file: Path, capsys: pytest.CaptureFixture) -> None:
        assert main(["estimate", str(criteria_file)]) == 0
        out = capsys.readouterr().out
        assert out.strip() == (
            "Estimated 10,000 out of 10,000 possible volunteers meet your criteria."
        )

    def test_json(self, criteria_file: Path, capsys: pytest.CaptureFixture) -> None:
        assert main(["estimate", str(criteria_file), "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == {"available": 10_000, "matched": 10_000}

    def test_json_with_breakdown(
        self, tmp_path: Path, strict_criteria: dict, capsys: pytest.CaptureFixture
    ) -> None:
        path = tmp_path / "strict.json"
        path.write_text(json.dumps(strict_criteria), encoding="utf-8")
        assert main(["estimate", str(path), "--json", "--explain"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["matched"] == 188
        first = payload["breakdown"][0]
        assert (first["step"], first["kind"]) == ("platform", "multiply")
        assert first["pool_after"] == pytest.approx(6500.0)

    def test_explain_text(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"medical_exclude": ["Stroke"]}), encoding="utf-8")
        assert main(["estimate", str(path), "--explain"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert out[0].startswith("Estimated ")
        assert "medical_exclude" in out[1]
        assert "coverage" in out[2]

    def test_stdin(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO('{"platform": "jdr"}'))
        assert main(["estimate", "-", "--json"]) == 0
        assert json.loads(capsys.readouterr().out)["matched"] == 4_333

    def test_weights_from_environment(
        self, criteria_file: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        monkeypatch.setenv("STUDYREG_BASELINE_POPULATION", "2000")
        assert main(["estimate", str(criteria_file), "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == {"available": 2_000, "matched": 2_000}

    @pytest.mark.parametrize("content", [None, "{not json", "[1, 2]"])
    def test_unreadable_criteria(
        self, tmp_path: Path, content: str | None, capsys: pytest.CaptureFixture
    ) -> None:
        path = tmp_path / "bad.json"
        if content is not None:
            path.write_text(content, encoding="utf-8")
        assert main(["estimate", str(path)]) == 2
        assert "error: cannot read criteria" in capsys.readouterr().err


class TestParser:
    """Tests for argument parsing."""

    def test_version(self, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
