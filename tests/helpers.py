"""Shared test fixtures and helpers for comms-orchestrator tests."""

from pathlib import Path
from typing import Callable

from comms_orchestrator.config import Config
from comms_orchestrator.models.task import TaskResult, TaskStatus


def make_config(tmp_path: Path, **overrides) -> Config:
	"""Config rooted in a temporary directory."""
	return Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
		**overrides,
	)


def capture_tools(register_fn: Callable, *args) -> dict:
	"""Register tools on a mock MCP and return the captured tool functions.

	Args:
		register_fn: The registration function (e.g., register_progress_tools)
		*args: Remaining registration arguments (config, orchestrator)

	Returns:
		Dict mapping tool name to the tool function
	"""
	captured = {}

	class MockMCP:
		def tool(self):
			def decorator(fn):
				captured[fn.__name__] = fn
				return fn
			return decorator

	register_fn(MockMCP(), *args)
	return captured


def make_task_result(
	task_id: str = "task-1",
	title: str = "Add login endpoint",
	outputs: int = 0,
	changes: int = 0,
	failed: bool = False,
	task_type: str = "",
) -> TaskResult:
	"""Create a TaskResult with realistic content for testing."""
	result = TaskResult(id=task_id, title=title, duration=12.5)
	if task_type:
		result.metadata["type"] = task_type
	for i in range(outputs):
		result.add_output(f"output_{i}", f"value {i}", f"Output number {i}")
	for i in range(changes):
		result.add_change({"type": "file", "description": f"Edited module {i}", "file": f"src/mod_{i}.py"})
	if failed:
		result.status = TaskStatus.FAILED
		result.add_error("Connection timeout while calling the API")
	return result


def two_step_milestones() -> list[dict]:
	"""Two milestones where the second depends on the first."""
	return [
		{"name": "Design schema", "estimated_time": 10},
		{"name": "Write migrations", "estimated_time": 10, "dependencies": ["milestone_0"]},
	]
