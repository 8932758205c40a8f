"""Tests for the CLI module."""

import argparse
import json
from pathlib import Path

import pytest

from comms_orchestrator.cli import _check_config_toml, cmd_analyze, cmd_report


def _write(path: Path, data) -> str:
	path.write_text(json.dumps(data))
	return str(path)


@pytest.fixture
def milestone_file(tmp_path: Path) -> str:
	return _write(tmp_path / "release.json", {
		"task_id": "release-1",
		"current_focus": "Build",
		"milestones": [
			{"id": "design", "name": "Design", "status": "completed"},
			{"id": "build", "name": "Build", "progress": 50, "dependencies": ["design"]},
			{"id": "ship", "name": "Ship", "dependencies": ["build"]},
		],
	})


def _report_args(path: str, fmt: str = "markdown", analysis: bool = False, predictions: bool = False):
	return argparse.Namespace(file=path, format=fmt, analysis=analysis, predictions=predictions)


def test_check_config_toml_missing(tmp_path: Path):
	status, issue = _check_config_toml(tmp_path)
	assert status == "not found (optional)"
	assert issue is None


def test_check_config_toml_invalid(tmp_path: Path):
	(tmp_path / "config.toml").write_text("this is = = not toml")
	status, issue = _check_config_toml(tmp_path)
	assert status.startswith("INVALID")
	assert issue is not None


def test_report_json(milestone_file, capsys):
	cmd_report(_report_args(milestone_file, "json", analysis=True, predictions=True))
	data = json.loads(capsys.readouterr().out)
	assert data["task_id"] == "release-1"
	assert data["summary"]["overall_progress"] == 50.0
	assert data["summary"]["milestones_completed"] == 1
	assert data["detailed_analysis"]["critical_path"] == ["design", "build", "ship"]
	assert data["predictions"]["completion"]["completed_samples"] == 1


def test_report_markdown(milestone_file, capsys):
	cmd_report(_report_args(milestone_file))
	out = capsys.readouterr().out
	assert "Progress Summary" in out
	assert "Overall progress: 50.0%" in out


def test_report_tree(milestone_file, capsys):
	cmd_report(_report_args(milestone_file, "tree"))
	out = capsys.readouterr().out
	assert "release-1" in out
	assert "Build" in out


def test_report_task_id_from_filename(tmp_path: Path, capsys):
	path = _write(tmp_path / "nightly.json", {"milestones": ["Only step"]})
	cmd_report(_report_args(path, "json"))
	assert json.loads(capsys.readouterr().out)["task_id"] == "nightly"


def test_report_missing_file(tmp_path: Path, capsys):
	with pytest.raises(SystemExit):
		cmd_report(_report_args(str(tmp_path / "nope.json")))
	assert "File not found" in capsys.readouterr().out


def test_report_requires_milestones(tmp_path: Path, capsys):
	path = _write(tmp_path / "bad.json", {"task_id": "x"})
	with pytest.raises(SystemExit):
		cmd_report(_report_args(path))
	assert "'milestones' list" in capsys.readouterr().out


def test_report_invalid_milestone(tmp_path: Path, capsys):
	path = _write(tmp_path / "bad.json", {"milestones": [42]})
	with pytest.raises(SystemExit):
		cmd_report(_report_args(path))
	assert "Invalid milestone entry" in capsys.readouterr().out


def test_analyze(tmp_path: Path, capsys):
	path = _write(tmp_path / "ctx.json", {
		"task": {"type": "architecture", "requirements": ["a", "b", "c", "d", "e"]},
		"user": {"experience_level": "expert"},
		"environment": {"terminal_width": 100},
	})
	cmd_analyze(argparse.Namespace(file=path, message_type="error"))
	data = json.loads(capsys.readouterr().out)
	assert data["context"]["task_complexity"] == "high"
	assert data["context"]["user_preferences"]["verbosity_level"] == "concise"
	assert data["context"]["environment_info"]["terminal_width"] == 100
	assert data["recommendations"]["tone"] == "supportive"


def test_analyze_without_message_type(tmp_path: Path, capsys):
	path = _write(tmp_path / "ctx.json", {})
	cmd_analyze(argparse.Namespace(file=path, message_type=None))
	data = json.loads(capsys.readouterr().out)
	assert "recommendations" not in data
	assert data["context"]["task_complexity"] == "low"
