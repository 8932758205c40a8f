"""Final response and handoff tools."""

import json

from mcp.server.fastmcp import FastMCP

from ..communication.orchestrator import CommunicationOrchestrator
from ..config import Config
from ..errors import CommsError
from .core import load_json_arg, load_task_result, response_payload


def register_response_tools(mcp: FastMCP, config: Config, orchestrator: CommunicationOrchestrator) -> None:
	"""Register response and handoff tools."""

	@mcp.tool()
	async def format_task_response(
		task_result: str,
		context_info: str = "",
		template: str = "",
		include_handoff: bool = False,
		progress_task_id: str = "",
	) -> str:
		"""
		Compose the final response for a finished task.

		Args:
			task_result: JSON TaskResult ({"id", "title", "status", "outputs", "changes", ...})
			context_info: JSON object with optional "task", "user" and "environment" descriptors
			template: Force a template (simple_success, basic_success, standard_success,
				detailed_success, error_detailed)
			include_handoff: Append the top next steps
			progress_task_id: Append progress for this tracked task
		"""
		try:
			result = load_task_result(task_result)
			info = load_json_arg(context_info, "context_info", {})
		except CommsError as e:
			return json.dumps({"error": str(e)})

		options = {"include_handoff": include_handoff}
		if template:
			options["template"] = template
		if progress_task_id:
			options["progress_task_id"] = progress_task_id
		response = await orchestrator.format_final_response(result, info, options)
		return response_payload(response)

	@mcp.tool()
	async def create_handoff(
		task_result: str,
		next_actions: str = "",
		context_info: str = "",
		include_validation: bool = True,
	) -> str:
		"""
		Render handoff instructions (next actions, validation steps, options).

		Args:
			task_result: JSON TaskResult
			next_actions: Optional JSON list of actions (strings or objects); generated when empty
			context_info: JSON object with optional "task", "user" and "environment" descriptors
			include_validation: Warn when the handoff is incomplete
		"""
		try:
			result = load_task_result(task_result)
			actions = load_json_arg(next_actions, "next_actions", [])
			info = load_json_arg(context_info, "context_info", {})
		except CommsError as e:
			return json.dumps({"error": str(e)})

		response = await orchestrator.create_handoff_instructions(
			result,
			actions,
			info,
			{"include_validation": include_validation},
		)
		return response_payload(response)
