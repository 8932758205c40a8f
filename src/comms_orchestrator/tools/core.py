"""Core tools: health check, cleanup and shared argument parsing."""

import json
from typing import Any

import pydantic
from mcp.server.fastmcp import FastMCP

from ..communication.orchestrator import CommunicationOrchestrator
from ..config import Config
from ..errors import ValidationError
from ..models.task import TaskResult


def load_json_arg(raw: str, name: str, default: Any = None) -> Any:
	"""Decode a JSON tool argument. Empty strings give `default`."""
	if not raw or not raw.strip():
		return default
	try:
		return json.loads(raw)
	except json.JSONDecodeError as e:
		raise ValidationError(f"{name} is not valid JSON: {e}")


def load_task_result(raw: str) -> TaskResult:
	data = load_json_arg(raw, "task_result")
	if not isinstance(data, dict):
		raise ValidationError("task_result must be a JSON object")
	try:
		return TaskResult.model_validate(data)
	except pydantic.ValidationError as e:
		raise ValidationError(f"Invalid task_result: {e}")


def response_payload(response) -> str:
	"""Serialise a FormattedResponse for a tool result."""
	metadata = response.get_metadata()
	return json.dumps({
		"markdown": response.render(),
		"sections": [s.title for s in response.sections],
		"degraded": response.degraded,
		"word_count": metadata.word_count,
		"character_count": metadata.character_count,
	}, indent=2)


def register_core_tools(mcp: FastMCP, config: Config, orchestrator: CommunicationOrchestrator) -> None:
	"""Register core tools."""

	@mcp.tool()
	async def health_check() -> str:
		"""
		Check the health of the comms-orchestrator server.
		Returns configuration paths and engine statistics.
		"""
		stats = orchestrator.get_system_statistics()
		status = {
			"server": "running",
			"config_dir": str(config.config_dir),
			"data_dir": str(config.data_dir),
			"log_level": config.log_level,
			"active_tasks": stats["progress_tracker"]["active_tasks"],
			"active_collaborations": stats["collaboration_engine"]["active_sessions"],
			"total_communications": stats["system"]["total_communications"],
			"degradations": stats["system"]["degradations"],
		}
		return json.dumps(status, indent=2)

	@mcp.tool()
	async def run_cleanup(max_age_hours: float = 0) -> str:
		"""
		Purge history and engine entries older than a given age.

		Args:
			max_age_hours: Age threshold in hours (0 = configured per-engine defaults)
		"""
		max_age = max_age_hours * 3600 if max_age_hours > 0 else None
		purged = orchestrator.cleanup(max_age)
		return json.dumps({
			"success": True,
			"purged": purged,
			"max_age_seconds": max_age if max_age is not None else config.cleanup_max_age,
		}, indent=2)

	@mcp.tool()
	async def get_communication_recommendations(context_info: str = "", message_type: str = "default") -> str:
		"""
		Get tone, length, detail and format advice for a context.

		Args:
			context_info: JSON object with optional "task", "user" and "environment" descriptors
			message_type: default, error, progress, confirmation, final_response, handoff,
				collaboration, simple_confirmation, progress_update or warning
		"""
		try:
			info = load_json_arg(context_info, "context_info", {})
		except ValidationError as e:
			return json.dumps({"error": str(e)})
		recommendations = await orchestrator.get_communication_recommendations(info, message_type)
		return json.dumps(recommendations, indent=2, default=str)
