"""Collaboration session tools."""

import json

from mcp.server.fastmcp import FastMCP

from ..communication.orchestrator import CommunicationOrchestrator
from ..config import Config
from ..errors import CommsError
from .core import load_json_arg, load_task_result, response_payload


def register_collaboration_tools(mcp: FastMCP, config: Config, orchestrator: CommunicationOrchestrator) -> None:
	"""Register collaboration tools."""

	@mcp.tool()
	async def start_collaboration(
		session_id: str,
		task_result: str,
		feedback_points: str,
		context_info: str = "",
	) -> str:
		"""
		Open a collaboration session and render the feedback request.

		Args:
			session_id: Session identifier (reusing one restarts the session)
			task_result: JSON TaskResult describing the work so far
			feedback_points: JSON list of questions (strings or objects with
				"title", "description", "type", "options")
			context_info: JSON object with optional "task", "user" and "environment" descriptors
		"""
		try:
			result = load_task_result(task_result)
			points = load_json_arg(feedback_points, "feedback_points", [])
			info = load_json_arg(context_info, "context_info", {})
		except CommsError as e:
			return json.dumps({"error": str(e)})
		if not isinstance(points, list):
			return json.dumps({"error": "feedback_points must be a JSON list"})

		response = await orchestrator.facilitate_collaboration(session_id, result, points, info)
		return response_payload(response)

	@mcp.tool()
	async def submit_feedback(session_id: str, answers: str, generate_handoff: bool = False) -> str:
		"""
		Submit one round of answers to a collaboration session.

		Args:
			session_id: Session identifier
			answers: JSON object of answer text keyed by feedback point id or title
			generate_handoff: Append handoff instructions when no more feedback is needed
		"""
		try:
			data = load_json_arg(answers, "answers", {})
		except CommsError as e:
			return json.dumps({"error": str(e)})
		if not isinstance(data, dict):
			return json.dumps({"error": "answers must be a JSON object"})

		response = await orchestrator.process_collaborative_feedback(
			session_id,
			{str(k): str(v) for k, v in data.items()},
			{"generate_handoff": generate_handoff},
		)
		return response_payload(response)

	@mcp.tool()
	async def complete_collaboration(session_id: str) -> str:
		"""
		Close a collaboration session and summarise it.

		Args:
			session_id: Session identifier
		"""
		response = await orchestrator.complete_collaboration(session_id)
		return response_payload(response)
