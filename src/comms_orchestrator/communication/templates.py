"""
Response templates.

A template is an async callable (task_result, context) -> FormattedResponse.
select_template() picks one by outcome and context, first match wins:

    not successful          -> error_detailed
    complex task            -> detailed_success
    has changes or outputs  -> standard_success
    simple task             -> simple_success
    otherwise               -> basic_success
"""

from typing import Awaitable, Callable, Optional

from ..models.context import CommunicationContext
from ..models.response import FormattedResponse
from ..models.task import TaskChange, TaskIssue, TaskResult, ValidationOutcome
from ..visualizer.utils import format_duration

Template = Callable[[TaskResult, Optional[CommunicationContext]], Awaitable[FormattedResponse]]

ERROR_DETAILED = "error_detailed"
DETAILED_SUCCESS = "detailed_success"
STANDARD_SUCCESS = "standard_success"
SIMPLE_SUCCESS = "simple_success"
BASIC_SUCCESS = "basic_success"


def select_template(task_result: TaskResult, context: Optional[CommunicationContext]) -> str:
	if not task_result.is_successful():
		return ERROR_DETAILED
	if context is not None and context.is_complex_task():
		return DETAILED_SUCCESS
	if task_result.changes or task_result.outputs:
		return STANDARD_SUCCESS
	if context is not None and context.is_simple_task():
		return SIMPLE_SUCCESS
	return BASIC_SUCCESS


# -- text helpers --------------------------------------------------------

def format_outputs(task_result: TaskResult) -> str:
	if not task_result.outputs:
		return "No partial results available."
	lines = []
	for key, output in task_result.outputs.items():
		line = f"{key}: {output.value}"
		if output.description:
			line += f" - {output.description}"
		lines.append(line)
	return "\n".join(lines)


def format_changes(changes: list[TaskChange], detailed: bool = False) -> str:
	lines = []
	for change in changes:
		line = f"- {change.description or change.type}"
		if detailed and change.file:
			line += f" ({change.file})"
		if detailed:
			extra = change.model_extra or {}
			stats = []
			if extra.get("lines_added"):
				stats.append(f"+{extra['lines_added']}")
			if extra.get("lines_removed"):
				stats.append(f"-{extra['lines_removed']}")
			if stats:
				line += f" [{', '.join(stats)}]"
		lines.append(line)
	return "\n".join(lines)


def format_validation_summary(results: list[ValidationOutcome]) -> str:
	passed = [r for r in results if r.success]
	summary = f"{len(passed)}/{len(results)} validations passed"
	failed = [r for r in results if not r.success]
	if failed:
		summary += "\n\nFailed validations:\n" + "\n".join(
			f"- {r.message or 'Validation failed'}" for r in failed
		)
	return summary


def format_validation_details(results: list[ValidationOutcome]) -> str:
	lines = []
	for result in results:
		line = f"{'✓' if result.success else '✗'} {result.name or 'Validation'}"
		if result.message:
			line += f": {result.message}"
		lines.append(line)
	return "\n".join(lines)


def format_warnings(warnings: list[TaskIssue]) -> str:
	return "\n".join(
		f"⚠ {w.message}" + (f" ({w.context})" if w.context else "")
		for w in warnings
	)


def format_detailed_summary(task_result: TaskResult) -> str:
	lines = [
		f"Status: {task_result.status.value}",
		f"Duration: {format_duration(task_result.duration)}",
	]
	if task_result.outputs:
		lines.append(f"Outputs: {len(task_result.outputs)} generated")
	if task_result.changes:
		lines.append(f"Changes: {len(task_result.changes)} modifications made")
	if task_result.validation_results:
		passed = sum(1 for r in task_result.validation_results if r.success)
		lines.append(f"Validation: {passed}/{len(task_result.validation_results)} tests passed")
	return "\n".join(lines)


def recovery_suggestions(message: str, partial: Optional[TaskResult] = None) -> str:
	"""Bullet list of next steps for an error message."""
	message = message.lower()
	suggestions = []
	if "timeout" in message:
		suggestions += ["Try running the task again with a longer timeout", "Break the task into smaller steps"]
	if "permission" in message:
		suggestions += ["Check file permissions and access rights", "Ensure you have necessary credentials"]
	if "not found" in message:
		suggestions += ["Verify all required files and dependencies exist", "Check file paths and references"]
	if partial is not None and partial.outputs:
		suggestions += ["Review partial results above for completed work", "Consider continuing from the last successful step"]
	if not suggestions:
		suggestions = [
			"Review the error details above",
			"Check system logs for additional information",
			"Retry the operation if appropriate",
		]
	return "\n".join(f"- {s}" for s in suggestions)


# -- templates -----------------------------------------------------------

async def simple_success(task_result: TaskResult, context: Optional[CommunicationContext]) -> FormattedResponse:
	response = FormattedResponse()
	response.add_section("Completed", task_result.title)
	return response


async def basic_success(task_result: TaskResult, context: Optional[CommunicationContext]) -> FormattedResponse:
	response = FormattedResponse()
	response.add_section("Task Completed", task_result.title)
	if task_result.outputs:
		response.add_section("Results", format_outputs(task_result), 2)
	return response


async def standard_success(task_result: TaskResult, context: Optional[CommunicationContext]) -> FormattedResponse:
	response = FormattedResponse()
	response.add_section("Task Completed", task_result.title)
	if task_result.outputs:
		response.add_section("Outputs", format_outputs(task_result), 2)
	if task_result.changes:
		response.add_section("Changes Made", format_changes(task_result.changes), 2)
	if task_result.validation_results:
		response.add_section("Validation", format_validation_summary(task_result.validation_results), 2)
	return response


async def detailed_success(task_result: TaskResult, context: Optional[CommunicationContext]) -> FormattedResponse:
	response = FormattedResponse()
	response.add_section("Implementation Complete", task_result.title)
	response.add_section("Summary", format_detailed_summary(task_result), 2)
	if task_result.outputs:
		response.add_section("Outputs Generated", format_outputs(task_result), 2)
	if task_result.changes:
		response.add_section("Changes Made", format_changes(task_result.changes, detailed=True), 2)
	if task_result.validation_results:
		response.add_section("Testing & Validation", format_validation_details(task_result.validation_results), 2)
	if task_result.has_warnings():
		response.add_section("Notes", format_warnings(task_result.warnings), 2)
	return response


async def error_detailed(task_result: TaskResult, context: Optional[CommunicationContext]) -> FormattedResponse:
	response = FormattedResponse()
	response.add_section("Task Failed", task_result.title)
	if task_result.errors:
		response.add_section("Errors Encountered", "\n".join(f"- {e.message}" for e in task_result.errors), 2)
	if task_result.outputs:
		response.add_section("Partial Results", format_outputs(task_result), 2)
	first_error = task_result.errors[0].message if task_result.errors else ""
	response.add_section("Recovery Options", recovery_suggestions(first_error, task_result), 2)
	return response


DEFAULT_TEMPLATES: dict[str, Template] = {
	SIMPLE_SUCCESS: simple_success,
	BASIC_SUCCESS: basic_success,
	STANDARD_SUCCESS: standard_success,
	DETAILED_SUCCESS: detailed_success,
	ERROR_DETAILED: error_detailed,
}
