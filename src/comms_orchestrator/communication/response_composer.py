"""
Response Composer - Turns task results into CLI-friendly formatted responses.

Picks a template, applies it, clamps the result to the terminal's limits and
refuses to hand back an empty response.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ValidationError
from ..models.context import CommunicationContext
from ..models.response import FormattedResponse
from ..models.task import TaskResult
from .templates import DEFAULT_TEMPLATES, Template, format_outputs, recovery_suggestions, select_template

logger = logging.getLogger(__name__)


@dataclass
class CLIConstraints:
	"""Hard limits for terminal output."""
	max_width: int = 80
	preferred_width: int = 70
	max_section_depth: int = 3
	max_response_length: int = 2000
	max_code_block_length: int = 500


class ResponseComposer:
	"""Template-driven response formatting."""

	def __init__(self, constraints: Optional[CLIConstraints] = None):
		self.constraints = constraints or CLIConstraints()
		self._templates: dict[str, Template] = dict(DEFAULT_TEMPLATES)
		self.total_formatted = 0
		self.format_failures = 0
		self.average_length = 0.0

	def register_template(self, name: str, template: Template) -> None:
		self._templates[name] = template
		logger.info(f"Registered format template: {name}")

	@property
	def template_names(self) -> list[str]:
		return list(self._templates)

	async def format_final_response(
		self,
		task_result: TaskResult,
		context: Optional[CommunicationContext] = None,
		template: Optional[str] = None,
	) -> FormattedResponse:
		"""
		Compose the final response for a task.

		Args:
			task_result: Finished task
			context: Communication context (optional)
			template: Force a template by name

		Returns:
			FormattedResponse clamped to CLI limits

		Raises:
			ValidationError: unknown template or nothing to show
		"""
		name = template or select_template(task_result, context)
		apply = self._templates.get(name)
		if apply is None:
			raise ValidationError(f"Unknown format template: {name}")

		logger.debug(f"Formatting final response for {task_result.id} with template {name}")
		try:
			response = await apply(task_result, context)
			response = self.optimize_for_cli(response, context)
			self.validate_response(response, context)
		except Exception:
			self.format_failures += 1
			raise

		self._record(response)
		return response

	def optimize_for_cli(
		self,
		response: FormattedResponse,
		context: Optional[CommunicationContext] = None,
	) -> FormattedResponse:
		"""
		Clamp length, section depth and width.

		Returns the response itself, or a truncated copy when it was too long.
		"""
		max_length = self.constraints.max_response_length
		width = self.constraints.max_width
		if context is not None:
			max_length = min(context.get_max_length(), max_length)
			width = min(context.environment_info.terminal_width or width, width)

		response = response.truncate(max_length)
		response.styling.max_width = width
		for section in response.sections:
			if section.level > self.constraints.max_section_depth:
				section.level = self.constraints.max_section_depth
		return response

	def validate_response(
		self,
		response: FormattedResponse,
		context: Optional[CommunicationContext] = None,
	) -> None:
		if not response.sections and not response.content:
			raise ValidationError("Response has no content or sections")
		metadata = response.get_metadata()
		if metadata.character_count == 0:
			raise ValidationError("Empty response generated")
		if context is not None and metadata.character_count > context.get_max_length():
			logger.warning(
				f"Response exceeds max length: {metadata.character_count} > {context.get_max_length()}"
			)

	def format_error_response(
		self,
		error: BaseException,
		partial_results: Optional[TaskResult] = None,
		context: Optional[CommunicationContext] = None,
	) -> FormattedResponse:
		response = FormattedResponse()
		response.add_section("Error Encountered", f"**{error}**")
		if partial_results is not None and partial_results.outputs:
			response.add_section("Partial Results", format_outputs(partial_results))
		response.add_section("Next Steps", recovery_suggestions(str(error), partial_results))
		return self.optimize_for_cli(response, context)

	def format_simple_confirmation(
		self,
		action: str,
		details: Optional[dict[str, Any]] = None,
		context: Optional[CommunicationContext] = None,
	) -> FormattedResponse:
		details = details or {}
		response = FormattedResponse()
		if context is not None and context.is_verbose():
			response.add_section("Action Completed", action)
			if details:
				response.add_section("Details", "\n".join(f"{k}: {v}" for k, v in details.items()), 2)
		else:
			response.add_section("Completed", action)
			response.content = f"{action}: {details['file']}" if details.get("file") else action
		return response

	def format_collaborative_response(
		self,
		task_result: TaskResult,
		feedback_points: list[Any],
		context: Optional[CommunicationContext] = None,
	) -> FormattedResponse:
		response = FormattedResponse()
		work = []
		if task_result.outputs:
			work.append("**Outputs Generated:**")
			work.append("\n".join(f"- {k}: {o.value}" for k, o in task_result.outputs.items()))
		if task_result.changes:
			work.append("\n**Changes Made:**")
			work.append("\n".join(f"- {c.description or c.type}" for c in task_result.changes))
		if task_result.validation_results:
			passed = sum(1 for v in task_result.validation_results if v.success)
			work.append("\n**Validation Results:**")
			work.append(f"- {passed}/{len(task_result.validation_results)} validations passed")
		response.add_section("Work Completed", "\n".join(work) or task_result.title)

		points = []
		for index, point in enumerate(feedback_points):
			title = getattr(point, "title", None) or f"Feedback Point {index + 1}"
			description = getattr(point, "description", None) or str(point)
			text = f"{index + 1}. **{title}**\n   {description}"
			options = getattr(point, "options", None)
			if options:
				text += f"\n   Options: {', '.join(options)}"
			points.append(text)
		response.add_section("Feedback Needed", "\n\n".join(points))
		response.add_section("Next Steps", "Please review the above points and provide feedback to continue.")
		return self.optimize_for_cli(response, context)

	def apply_custom_styling(self, response: FormattedResponse, **style: Any) -> FormattedResponse:
		"""Overlay styling options (use_colors, use_emoji, max_width, indent_size)."""
		response.styling = response.styling.model_copy(update=style)
		return response

	def create_fallback_response(self, task_result: Optional[TaskResult], error: BaseException) -> FormattedResponse:
		logger.debug(f"Building fallback response after: {error}")
		response = FormattedResponse(degraded=True)
		if task_result is None:
			response.content = "Response generation encountered an issue."
		elif task_result.is_successful():
			response.content = f"Task completed: {task_result.title}"
		else:
			response.content = f"Task failed: {task_result.title}"
		return response

	def _record(self, response: FormattedResponse) -> None:
		self.total_formatted += 1
		length = response.get_metadata().character_count
		self.average_length += (length - self.average_length) / self.total_formatted

	def get_statistics(self) -> dict[str, Any]:
		attempts = self.total_formatted + self.format_failures
		return {
			"total_formatted": self.total_formatted,
			"format_failures": self.format_failures,
			"average_length": self.average_length,
			"success_rate": self.total_formatted / attempts * 100 if attempts else 0.0,
			"available_templates": self.template_names,
		}
