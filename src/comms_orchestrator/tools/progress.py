"""Milestone progress tools."""

import json

from mcp.server.fastmcp import FastMCP

from ..communication.orchestrator import CommunicationOrchestrator
from ..config import Config
from ..errors import CommsError
from .core import load_json_arg, response_payload


def register_progress_tools(mcp: FastMCP, config: Config, orchestrator: CommunicationOrchestrator) -> None:
	"""Register milestone progress tools."""
	tracker = orchestrator.tracker

	@mcp.tool()
	async def initialize_progress(
		task_id: str,
		milestones: str,
		current_focus: str = "",
		enable_real_time: bool = False,
	) -> str:
		"""
		Start tracking milestones for a task (replaces existing tracking).

		Args:
			task_id: Task identifier
			milestones: JSON list of milestone names or objects
				({"id", "name", "estimated_time" (seconds), "dependencies"})
			current_focus: Initial focus text
			enable_real_time: Advance in-progress milestones from elapsed time
		"""
		try:
			entries = load_json_arg(milestones, "milestones", [])
		except CommsError as e:
			return json.dumps({"error": str(e)})
		if not isinstance(entries, list):
			return json.dumps({"error": "milestones must be a JSON list"})

		result = await orchestrator.initialize_progress_tracking(task_id, entries, {
			"current_focus": current_focus,
			"enable_real_time": enable_real_time,
		})
		return json.dumps(result, indent=2, default=str)

	@mcp.tool()
	async def start_milestone(task_id: str, milestone_id: str) -> str:
		"""
		Mark a milestone as in progress.

		Args:
			task_id: Task identifier
			milestone_id: Milestone identifier
		"""
		try:
			milestone = tracker.start_milestone(task_id, milestone_id)
		except CommsError as e:
			return json.dumps({"error": str(e)})
		return json.dumps({
			"success": True,
			"milestone": milestone.model_dump(mode="json"),
			"status": tracker.get_progress_status(task_id),
		}, indent=2, default=str)

	@mcp.tool()
	async def update_milestone_progress(
		task_id: str,
		milestone_id: str,
		progress: float,
		generate_report: bool = False,
	) -> str:
		"""
		Set a milestone's progress percentage (100 completes it).

		Args:
			task_id: Task identifier
			milestone_id: Milestone identifier
			progress: Percentage, clamped to 0-100
			generate_report: Return a rendered progress report as well
		"""
		response = await orchestrator.update_progress(task_id, milestone_id, progress, {
			"generate_report": generate_report,
		})
		if response is not None and response.degraded:
			return response_payload(response)

		result = {"success": True, "status": tracker.get_progress_status(task_id)}
		if response is not None:
			result["report"] = response.render()
		return json.dumps(result, indent=2, default=str)

	@mcp.tool()
	async def complete_milestone(task_id: str, milestone_id: str) -> str:
		"""
		Mark a milestone completed. Completing it again changes nothing.

		Args:
			task_id: Task identifier
			milestone_id: Milestone identifier
		"""
		try:
			milestone = tracker.complete_milestone(task_id, milestone_id)
		except CommsError as e:
			return json.dumps({"error": str(e)})
		return json.dumps({
			"success": True,
			"milestone": milestone.model_dump(mode="json"),
			"status": tracker.get_progress_status(task_id),
		}, indent=2, default=str)

	@mcp.tool()
	async def add_milestone_blocker(task_id: str, milestone_id: str, description: str) -> str:
		"""
		Record something that blocks a milestone.

		Args:
			task_id: Task identifier
			milestone_id: Milestone identifier
			description: What is blocking it
		"""
		try:
			milestone = tracker.add_milestone_blocker(task_id, milestone_id, description)
		except CommsError as e:
			return json.dumps({"error": str(e)})
		return json.dumps({
			"success": True,
			"milestone_id": milestone.id,
			"blockers": [b.description for b in milestone.blockers],
		}, indent=2)

	@mcp.tool()
	async def get_progress_report(
		task_id: str,
		include_detailed_analysis: bool = False,
		include_predictions: bool = False,
		include_next_steps: bool = True,
		context_info: str = "",
	) -> str:
		"""
		Render a progress report for a task.

		Args:
			task_id: Task identifier
			include_detailed_analysis: Add efficiency, bottlenecks, trends and risks
			include_predictions: Add a completion forecast
			include_next_steps: Name the next milestone to work on
			context_info: JSON object with optional "task", "user" and "environment" descriptors
		"""
		try:
			info = load_json_arg(context_info, "context_info", {})
		except CommsError as e:
			return json.dumps({"error": str(e)})
		response = await orchestrator.generate_progress_report(task_id, info, {
			"include_detailed_analysis": include_detailed_analysis,
			"include_predictions": include_predictions,
			"include_next_steps": include_next_steps,
		})
		return response_payload(response)
