"""
Handoff Planner - What should happen after a task finishes.

Generates next actions, validation steps, continuation options and
recommendations, and wraps them into formal handoff protocols when work
changes hands.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from ..errors import NotFoundError, ValidationError
from ..history import DEFAULT_LIMIT, DEFAULT_TRIM_TO, BoundedHistory, cutoff_for
from ..models.context import CommunicationContext
from ..models.handoff import (
	HandoffInstructions,
	HandoffProtocol,
	NextAction,
	TransitionType,
	priority_rank,
)
from ..models.task import TaskResult

logger = logging.getLogger(__name__)

DEPLOY_TERMS = ("deployment", "build", "package", "release")
SYSTEM_CHANGE_TERMS = ("configuration", "system", "infrastructure")
USER_FACING_OUTPUTS = ("user_interface", "frontend")
LONG_TASK_SECONDS = 30

TRANSITION_REQUIREMENTS = {
	TransitionType.HANDOVER: [
		{"description": "Complete knowledge transfer session", "priority": "high", "mandatory": True},
		{"description": "Document any domain-specific knowledge", "priority": "medium", "mandatory": False},
	],
	TransitionType.PAUSE: [
		{"description": "Document current state and progress", "priority": "high", "mandatory": True},
		{"description": "Plan resumption strategy", "priority": "medium", "mandatory": False},
	],
	TransitionType.COMPLETE: [
		{"description": "Perform final quality check", "priority": "high", "mandatory": True},
		{"description": "Archive work products appropriately", "priority": "medium", "mandatory": False},
	],
}

TYPE_CONTINUATIONS = {
	"feature_addition": [
		{
			"title": "Feature Enhancement",
			"description": "Add advanced features or optimizations to the implemented functionality",
			"effort": "medium",
			"benefits": ["Enhanced user experience", "Additional capabilities"],
		},
		{
			"title": "Performance Optimization",
			"description": "Optimize the feature for better performance and scalability",
			"effort": "medium",
			"benefits": ["Better performance", "Scalability improvements"],
		},
	],
	"bug_fix": [
		{
			"title": "Related Issues Investigation",
			"description": "Investigate and fix related or similar issues in the codebase",
			"effort": "high",
			"benefits": ["System stability", "Proactive problem solving"],
		},
	],
	"refactoring": [
		{
			"title": "Extended Refactoring",
			"description": "Continue refactoring other related components for consistency",
			"effort": "high",
			"benefits": ["Code consistency", "Maintainability improvements"],
		},
	],
}

GENERAL_CONTINUATIONS = [
	{
		"title": "Testing Enhancement",
		"description": "Add more comprehensive tests for better coverage",
		"effort": "low",
		"benefits": ["Better test coverage", "Increased confidence"],
	},
	{
		"title": "Documentation Improvement",
		"description": "Create or update documentation for the implemented changes",
		"effort": "low",
		"benefits": ["Better maintainability", "Knowledge sharing"],
	},
]

TYPE_RECOMMENDATIONS = {
	"bug_fix": {
		"required_validations": ["regression_test", "affected_functionality_test"],
		"suggested_next_actions": ["Deploy to staging", "Monitor for related issues"],
		"stakeholder_notifications": ["QA team", "Product owner"],
	},
	"feature_addition": {
		"required_validations": ["feature_test", "integration_test", "user_acceptance_test"],
		"suggested_next_actions": ["Documentation update", "User training preparation"],
		"stakeholder_notifications": ["Product team", "Users", "Support team"],
	},
	"refactoring": {
		"required_validations": ["performance_test", "functionality_preservation_test"],
		"suggested_next_actions": ["Code review", "Performance monitoring"],
		"stakeholder_notifications": ["Development team"],
	},
	"architecture": {
		"transition_type": "handover",
		"urgency": "high",
		"required_validations": ["architecture_review", "scalability_test"],
		"suggested_next_actions": ["Architecture documentation", "Team training"],
		"stakeholder_notifications": ["Architecture team", "Engineering leads"],
	},
}


@dataclass
class HandoffValidation:
	"""Completeness check of a handoff."""
	is_complete: bool = True
	missing_elements: list[str] = field(default_factory=list)
	recommendations: list[str] = field(default_factory=list)
	score: int = 0


@dataclass
class HandoffRecord:
	"""One entry in the handoff history (creation or execution)."""
	kind: str
	handoff_id: str
	task_id: str
	details: dict[str, Any] = field(default_factory=dict)
	timestamp: datetime = field(default_factory=datetime.now)


def _mentions(text: Optional[str], terms: tuple[str, ...]) -> bool:
	text = (text or "").lower()
	return any(term in text for term in terms)


def is_deployable(task_result: TaskResult) -> bool:
	"""Output keys or recorded changes mention deployment, build, package or release."""
	if any(_mentions(key, DEPLOY_TERMS) for key in task_result.outputs):
		return True
	return any(
		_mentions(change.type, DEPLOY_TERMS) or _mentions(change.description, DEPLOY_TERMS)
		for change in task_result.changes
	)


def needs_documentation(task_result: TaskResult) -> bool:
	return bool(task_result.changes or task_result.outputs) or task_result.task_type == "feature_addition"


def requires_system_validation(task_result: TaskResult) -> bool:
	return any(_mentions(change.type, SYSTEM_CHANGE_TERMS) for change in task_result.changes)


def is_user_facing(task_result: TaskResult) -> bool:
	if any(key in task_result.outputs for key in USER_FACING_OUTPUTS):
		return True
	return any(_mentions(change.description, ("user",)) for change in task_result.changes)


def validation_command(key: str, value: Any) -> str:
	lower = key.lower()
	if "file" in lower or "script" in lower:
		return f"Execute and test: {value}"
	if "config" in lower:
		return f"Validate configuration: {value}"
	if "api" in lower or "service" in lower:
		return f"Test API/service functionality: {value}"
	return f"Verify output: {value}"


def _success_actions(task_result: TaskResult) -> list[NextAction]:
	actions = [NextAction(
		action="Validate implementation completeness",
		priority="high",
		estimated_time=15,
		description="Verify all requirements have been met",
		category="follow_up",
	)]
	if task_result.outputs:
		actions.append(NextAction(
			action="Test generated outputs",
			priority="high",
			estimated_time=30,
			description="Ensure all outputs function correctly",
			category="follow_up",
		))
	if task_result.changes:
		actions.append(NextAction(
			action="Review code changes",
			priority="medium",
			estimated_time=20,
			description="Code review for quality and standards compliance",
			category="follow_up",
		))
	actions.append(NextAction(
		action="Update project documentation",
		priority="medium",
		estimated_time=25,
		description="Document changes and new functionality",
		category="follow_up",
	))
	return actions


def _recovery_actions(task_result: TaskResult) -> list[NextAction]:
	actions = [NextAction(
		action="Analyze failure causes",
		priority="high",
		estimated_time=30,
		description="Investigate what went wrong and why",
		category="recovery",
	)]
	if task_result.outputs:
		actions.append(NextAction(
			action="Salvage partial results",
			priority="medium",
			estimated_time=20,
			description="Identify and preserve any useful partial outputs",
			category="recovery",
		))
	actions.append(NextAction(
		action="Plan recovery strategy",
		priority="high",
		estimated_time=25,
		description="Determine best approach to complete the task",
		category="recovery",
	))
	actions.append(NextAction(
		action="Implement fixes and retry",
		priority="high",
		estimated_time=60,
		description="Apply fixes and re-attempt the task",
		category="recovery",
	))
	return actions


def _deployment_actions() -> list[NextAction]:
	return [
		NextAction(
			action="Prepare deployment package",
			priority="medium",
			estimated_time=20,
			description="Package changes for deployment",
			category="deployment",
		),
		NextAction(
			action="Deploy to staging environment",
			priority="high",
			estimated_time=15,
			description="Deploy and test in staging",
			category="deployment",
		),
		NextAction(
			action="Plan production deployment",
			priority="medium",
			estimated_time=30,
			description="Schedule and prepare production deployment",
			category="deployment",
		),
	]


def _documentation_actions(task_result: TaskResult) -> list[NextAction]:
	actions = [NextAction(
		action="Update technical documentation",
		priority="medium",
		estimated_time=40,
		description="Document technical changes and architecture",
		category="documentation",
	)]
	if is_user_facing(task_result):
		actions.append(NextAction(
			action="Update user documentation",
			priority="medium",
			estimated_time=30,
			description="Update user guides and help documentation",
			category="documentation",
		))
	return actions


def prioritize(actions: list[NextAction]) -> list[NextAction]:
	"""Sort by priority (high first), then by shorter estimated time."""
	return sorted(actions, key=lambda a: (priority_rank(a.priority), a.estimated_time))


class HandoffPlanner:
	"""Builds handoff instructions and protocols and tracks their execution."""

	def __init__(
		self,
		history_limit: int = DEFAULT_LIMIT,
		history_trim_to: int = DEFAULT_TRIM_TO,
	):
		self._active: dict[str, Union[HandoffInstructions, HandoffProtocol]] = {}
		self._history: BoundedHistory[HandoffRecord] = BoundedHistory(history_limit, history_trim_to)
		self._counter = 0
		self.total_handoffs = 0
		self.successful_transitions = 0
		self.average_handoff_time = 0.0
		self._executions = 0
		self.transition_counts: dict[str, int] = {}

	def _next_id(self, prefix: str) -> str:
		self._counter += 1
		return f"{prefix}_{self._counter}"

	async def generate_next_actions(
		self,
		task_result: TaskResult,
		context: Optional[CommunicationContext] = None,
	) -> list[NextAction]:
		"""Context-aware next actions, sorted by priority then estimated time."""
		if task_result.is_successful():
			actions = _success_actions(task_result)
		else:
			actions = _recovery_actions(task_result)

		for key in task_result.outputs:
			actions.append(NextAction(
				action=f"Validate {key} output",
				priority="high",
				estimated_time=10,
				description=f"Test and verify {key} works as expected",
				category="validation",
			))

		if is_deployable(task_result):
			actions.extend(_deployment_actions())
		if needs_documentation(task_result):
			actions.extend(_documentation_actions(task_result))

		actions = prioritize(actions)
		logger.debug(f"Generated {len(actions)} next actions for {task_result.title}")
		return actions

	async def create_handoff_instructions(
		self,
		task_result: TaskResult,
		next_actions: Optional[list[Union[NextAction, str, dict]]] = None,
		context: Optional[CommunicationContext] = None,
	) -> HandoffInstructions:
		"""
		Build the full set of handoff instructions for a task.

		Args:
			task_result: Finished task
			next_actions: Explicit actions; generated when omitted or empty
			context: Communication context (optional)

		Returns:
			HandoffInstructions
		"""
		logger.info(f"Creating handoff instructions for task: {task_result.title}")
		instructions = HandoffInstructions(
			id=self._next_id("handoff"),
			task_result=task_result,
			context=context,
		)

		if next_actions:
			for action in next_actions:
				instructions.add_next_action(action)
		else:
			for action in await self.generate_next_actions(task_result, context):
				instructions.add_next_action(action)

		self._add_validation_steps(instructions, task_result)
		self._add_continuation_options(instructions, task_result)
		self._add_recommendations(instructions, task_result, context)

		self._active[instructions.id] = instructions
		self.total_handoffs += 1
		self._history.append(HandoffRecord(
			kind="creation",
			handoff_id=instructions.id,
			task_id=task_result.id,
			details={
				"actions": len(instructions.next_actions),
				"validations": len(instructions.validation_steps),
			},
		))
		return instructions

	def _add_validation_steps(self, instructions: HandoffInstructions, task_result: TaskResult) -> None:
		for key, output in task_result.outputs.items():
			instructions.add_validation_step({
				"description": f"Verify {key} output is correct and functional",
				"expected_result": output.description or "Output works as expected",
				"command": validation_command(key, output.value),
			})
		if task_result.changes:
			instructions.add_validation_step({
				"description": "Verify all changes are applied correctly",
				"expected_result": "Changes are in place and functioning",
				"command": "Review change log and test affected functionality",
			})
		if requires_system_validation(task_result):
			instructions.add_validation_step({
				"description": "Run system health check",
				"expected_result": "All systems operational",
				"command": "Execute system health check script",
			})

	def _add_continuation_options(self, instructions: HandoffInstructions, task_result: TaskResult) -> None:
		for option in TYPE_CONTINUATIONS.get(task_result.task_type, []) + GENERAL_CONTINUATIONS:
			instructions.add_continuation_option(dict(option))

	def _add_recommendations(
		self,
		instructions: HandoffInstructions,
		task_result: TaskResult,
		context: Optional[CommunicationContext],
	) -> None:
		if task_result.is_successful():
			instructions.add_recommendation({
				"text": "Task completed successfully - proceed with validation and deployment",
				"priority": "high",
				"reasoning": "All objectives met without errors",
			})
			if task_result.outputs:
				instructions.add_recommendation({
					"text": "Test all generated outputs thoroughly before integration",
					"priority": "high",
					"reasoning": "Ensure outputs work correctly in target environment",
				})
		else:
			instructions.add_recommendation({
				"text": "Review errors and consider recovery options before proceeding",
				"priority": "high",
				"reasoning": "Task had errors that may affect downstream work",
			})

		if context is not None and context.session_context.urgency == "high":
			instructions.add_recommendation({
				"text": "Fast-track validation due to high urgency",
				"priority": "high",
				"reasoning": "Urgent timeline requires accelerated process",
			})
		if task_result.has_warnings():
			instructions.add_recommendation({
				"text": "Review warnings and assess their impact on system behavior",
				"priority": "medium",
				"reasoning": "Warnings may indicate potential issues",
			})
		if task_result.duration > LONG_TASK_SECONDS:
			instructions.add_recommendation({
				"text": "Consider optimization if this task will be run frequently",
				"priority": "low",
				"reasoning": "Long execution time may impact user experience",
			})

	async def create_handoff_protocol(
		self,
		from_context: str,
		to_context: str,
		task_result: TaskResult,
		transition_type: Union[TransitionType, str] = TransitionType.CONTINUE,
		requirements: Optional[dict[str, Any]] = None,
	) -> HandoffProtocol:
		"""
		Build a formal handoff between two contexts.

		Args:
			from_context: Who or what hands off the work
			to_context: Who or what receives it
			task_result: Finished task
			transition_type: continue, pause, complete or handover
			requirements: Optional priority, deadline, context (CommunicationContext)
				and custom_requirements (list of requirement entries)

		Raises:
			ValidationError: unknown transition type
		"""
		requirements = requirements or {}
		try:
			transition = TransitionType(transition_type)
		except ValueError:
			raise ValidationError(f"Unknown transition type: {transition_type}")

		logger.info(f"Creating handoff protocol: {from_context} -> {to_context} ({transition.value})")
		protocol = HandoffProtocol(
			id=self._next_id("protocol"),
			from_context=from_context,
			to_context=to_context,
			transition_type=transition,
		)

		protocol.add_context_item("task_id", task_result.id, "Unique identifier for the completed task")
		protocol.add_context_item("task_title", task_result.title, "Title/description of completed work")
		protocol.add_context_item("completion_status", task_result.status.value, "Final status of task execution")
		protocol.add_context_item("duration", task_result.duration, "Time taken to complete task (s)")
		if task_result.outputs:
			protocol.add_context_item("outputs_generated", len(task_result.outputs), "Number of outputs produced")
			protocol.add_context_item("output_types", ", ".join(task_result.outputs), "Types of outputs generated")
		if task_result.changes:
			protocol.add_context_item("changes_made", len(task_result.changes), "Number of changes implemented")
		if requirements.get("priority"):
			protocol.add_context_item("priority_level", requirements["priority"], "Priority level for follow-up work")
		if requirements.get("deadline"):
			protocol.add_context_item("deadline", requirements["deadline"], "Deadline for next phase")

		protocol.add_requirement({
			"description": "Review handoff instructions thoroughly",
			"priority": "high",
			"mandatory": True,
		})
		protocol.add_requirement({
			"description": "Validate all outputs before proceeding",
			"priority": "high",
			"mandatory": True,
		})
		for entry in TRANSITION_REQUIREMENTS.get(transition, []):
			protocol.add_requirement(dict(entry))
		for entry in requirements.get("custom_requirements") or []:
			protocol.add_requirement(entry)

		protocol.instructions = await self.create_handoff_instructions(
			task_result, None, requirements.get("context")
		)
		self._active[protocol.id] = protocol
		self.transition_counts[transition.value] = self.transition_counts.get(transition.value, 0) + 1
		return protocol

	def validate_handoff_completeness(self, handoff: Union[HandoffInstructions, HandoffProtocol]) -> HandoffValidation:
		"""Score a handoff in four 25-point buckets and list what is missing."""
		validation = HandoffValidation()
		instructions = handoff.instructions if isinstance(handoff, HandoffProtocol) else handoff
		has_outputs = instructions.task_result is not None and bool(instructions.task_result.outputs)

		if not instructions.next_actions:
			validation.missing_elements.append("Next actions not defined")
			validation.is_complete = False
		else:
			validation.score += 25

		if instructions.validation_steps:
			validation.score += 25
		elif has_outputs:
			validation.missing_elements.append("Validation steps missing for outputs")
			validation.recommendations.append("Add validation steps to verify outputs work correctly")

		if instructions.continuation_options:
			validation.score += 25
		else:
			validation.recommendations.append("Consider adding continuation options for future work")

		if instructions.recommendations:
			validation.score += 25
		else:
			validation.recommendations.append("Add recommendations to guide decision making")

		if isinstance(handoff, HandoffProtocol):
			if not handoff.context:
				validation.missing_elements.append("Context information missing")
				validation.is_complete = False
			if not handoff.requirements:
				validation.recommendations.append("Define specific requirements for handoff success")

		return validation

	def get_handoff_recommendations(
		self,
		task_type: str,
		task_result: TaskResult,
		context: Optional[CommunicationContext] = None,
	) -> dict[str, Any]:
		base = TYPE_RECOMMENDATIONS.get(task_type, {})
		recommendations = {
			"transition_type": base.get("transition_type", "continue"),
			"urgency": base.get("urgency", "normal"),
			"required_validations": list(base.get("required_validations", [])),
			"suggested_next_actions": list(base.get("suggested_next_actions", [])),
			"stakeholder_notifications": list(base.get("stakeholder_notifications", [])),
			"risk_factors": [],
		}
		if context is not None and context.session_context.urgency == "high":
			recommendations["urgency"] = "high"
			recommendations["suggested_next_actions"][:0] = ["Immediate validation", "Fast-track review"]
		if task_result.errors:
			recommendations["risk_factors"].append("Partial failure during execution")
			recommendations["required_validations"].insert(0, "error_impact_assessment")
		if task_result.warnings:
			recommendations["risk_factors"].append("Warnings encountered during execution")
		return recommendations

	def get_handoff(self, handoff_id: str) -> Union[HandoffInstructions, HandoffProtocol]:
		handoff = self._active.get(handoff_id)
		if handoff is None:
			raise NotFoundError("handoff", handoff_id)
		return handoff

	def track_handoff_execution(self, handoff_id: str, status: str, feedback: Optional[dict] = None) -> HandoffRecord:
		"""
		Record progress on executing a handoff.

		A "completed" status retires the handoff from the active map.
		"""
		handoff = self.get_handoff(handoff_id)
		created = handoff.created_at if isinstance(handoff, HandoffProtocol) else handoff.generated_at
		duration = (datetime.now() - created).total_seconds()
		task_result = handoff.instructions.task_result if isinstance(handoff, HandoffProtocol) else handoff.task_result

		record = HandoffRecord(
			kind="execution",
			handoff_id=handoff_id,
			task_id=task_result.id if task_result is not None else "",
			details={"status": status, "feedback": feedback or {}, "duration": duration},
		)
		self._history.append(record)

		if status in ("completed", "successful"):
			self.successful_transitions += 1
		self._executions += 1
		self.average_handoff_time += (duration - self.average_handoff_time) / self._executions
		if status == "completed":
			del self._active[handoff_id]

		logger.info(f"Handoff execution tracked: {handoff_id} - {status}")
		return record

	def get_statistics(self) -> dict[str, Any]:
		return {
			"total_handoffs": self.total_handoffs,
			"active_handoffs": len(self._active),
			"history_size": len(self._history),
			"successful_transitions": self.successful_transitions,
			"average_handoff_time": self.average_handoff_time,
			"transition_types": dict(self.transition_counts),
			"success_rate": self.successful_transitions / self.total_handoffs * 100 if self.total_handoffs else 0.0,
		}

	def cleanup(self, max_age: float) -> int:
		"""Drop history entries and active handoffs older than max_age seconds."""
		cutoff = cutoff_for(max_age)
		stale = []
		for handoff_id, handoff in self._active.items():
			created = handoff.created_at if isinstance(handoff, HandoffProtocol) else handoff.generated_at
			if created < cutoff:
				stale.append(handoff_id)
		for handoff_id in stale:
			del self._active[handoff_id]
		purged = len(stale) + self._history.purge_older_than(cutoff)
		if purged:
			logger.info(f"Cleaned up {purged} old handoff records")
		return purged
