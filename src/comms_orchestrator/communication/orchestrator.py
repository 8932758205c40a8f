"""
Communication Orchestrator - Facade over the communication engines.

Every public operation analyzes the context first, then delegates to the
response composer, progress tracker, collaboration engine or handoff
planner. Engine failures never escape: they are logged, recorded as
TransientDegradation and answered with a minimal response flagged
`degraded`.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from ..config import Config, get_config
from ..errors import TransientDegradation
from ..history import BoundedHistory, cutoff_for
from ..models.context import CommunicationContext, UserProfile
from ..models.response import FormattedResponse, simple_response
from ..models.task import TaskResult
from ..visualizer.utils import format_duration
from .adaptation_rules import MessageType
from .collaboration import CollaborationEngine, FeedbackPoint
from .context_analyzer import AdaptationResult, ContextAnalyzer
from .handoff_planner import HandoffPlanner, HandoffValidation
from .progress_tracker import ProgressTracker
from .response_composer import CLIConstraints, ResponseComposer

logger = logging.getLogger(__name__)

CONCISE_SHARE = 0.7
MINIMAL_MAX_LEVEL = 2
STRUCTURE_MIN_SECTIONS = 3
HANDOFF_PREVIEW_ACTIONS = 3
OVERDUE_FACTOR = 1.5


@dataclass
class CommunicationRecord:
	"""One composed message, kept for statistics."""
	type: str
	task_title: str
	complexity: str
	verbosity: str
	style: str
	word_count: int
	sections: int
	character_count: int
	processing_time: float
	timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class SystemStats:
	total_communications: int = 0
	average_response_time: float = 0.0
	degradations: int = 0
	started_at: datetime = field(default_factory=datetime.now)


class CommunicationOrchestrator:
	"""
	Single entry point for composing responses, progress reports,
	handoffs and collaboration rounds.

	`context_info` arguments are dicts with optional "task", "user" and
	"environment" descriptors, passed to ContextAnalyzer.analyze_context.
	"""

	def __init__(self, config: Optional[Config] = None):
		self.config = config or get_config()
		limit, trim_to = self.config.history_limit, self.config.history_trim_to

		self.analyzer = ContextAnalyzer(limit, trim_to)
		self.composer = ResponseComposer(CLIConstraints(
			max_width=self.config.terminal_width,
			max_section_depth=self.config.max_section_depth,
			max_response_length=self.config.max_response_length,
		))
		self.tracker = ProgressTracker(limit, trim_to)
		self.collaboration = CollaborationEngine(limit, trim_to)
		self.handoffs = HandoffPlanner(limit, trim_to)

		self._history: BoundedHistory[CommunicationRecord] = BoundedHistory(limit, trim_to)
		self._degradations: BoundedHistory[TransientDegradation] = BoundedHistory(limit, trim_to)
		self.stats = SystemStats()

	# -- helpers ---------------------------------------------------------

	async def _analyze(
		self,
		context_info: Optional[dict[str, Any]],
		task_defaults: dict[str, Any],
	) -> CommunicationContext:
		context_info = context_info or {}
		task_info = {**task_defaults, **(context_info.get("task") or {})}
		return await self.analyzer.analyze_context(
			task_info,
			context_info.get("user"),
			context_info.get("environment"),
		)

	def _note_degradation(self, operation: str, error: BaseException) -> TransientDegradation:
		degradation = TransientDegradation(operation, error)
		self._degradations.append(degradation)
		self.stats.degradations += 1
		logger.error(f"{degradation}", exc_info=error)
		return degradation

	def _degrade(self, operation: str, error: BaseException, fallback: FormattedResponse) -> FormattedResponse:
		self._note_degradation(operation, error)
		fallback.degraded = True
		return fallback

	@property
	def degradations(self) -> list[TransientDegradation]:
		return list(self._degradations)

	def _record(
		self,
		kind: str,
		task_title: str,
		context: CommunicationContext,
		response: FormattedResponse,
		started: float,
	) -> CommunicationRecord:
		elapsed = time.monotonic() - started
		metadata = response.get_metadata()
		record = CommunicationRecord(
			type=kind,
			task_title=task_title,
			complexity=context.task_complexity.value,
			verbosity=context.user_preferences.verbosity_level.value,
			style=context.adaptation_strategy.communication_style,
			word_count=metadata.word_count,
			sections=len(response.sections),
			character_count=metadata.character_count,
			processing_time=elapsed,
		)
		self._history.append(record)

		self.stats.total_communications += 1
		n = self.stats.total_communications
		self.stats.average_response_time += (elapsed - self.stats.average_response_time) / n
		logger.info(f"{kind} composed in {format_duration(elapsed)}")
		return record

	def _apply_style_adaptations(
		self,
		response: FormattedResponse,
		adapted: AdaptationResult,
		context: CommunicationContext,
	) -> FormattedResponse:
		if "shorten" in adapted.length_adjustments and context.is_concise():
			response = response.truncate(int(context.get_max_length() * CONCISE_SHARE))

		if "minimal" in adapted.style_recommendations:
			for section in response.sections:
				section.level = min(section.level, MINIMAL_MAX_LEVEL)

		if "add_structure" in adapted.format_adjustments and len(response.sections) > STRUCTURE_MIN_SECTIONS:
			titles = ", ".join(s.title for s in response.sections if s.title)
			response.insert_section(0, "Overview", f"This response covers the following areas: {titles}.")
		return response

	# -- final responses -------------------------------------------------

	async def format_final_response(
		self,
		task_result: TaskResult,
		context_info: Optional[dict[str, Any]] = None,
		options: Optional[dict[str, Any]] = None,
	) -> FormattedResponse:
		"""
		Compose the final response for a finished task.

		Args:
			task_result: Finished task
			context_info: task/user/environment descriptors
			options: template (name), include_handoff (bool),
				progress_task_id (adds a progress section for that task)

		Returns:
			FormattedResponse, flagged degraded when composition failed
		"""
		options = options or {}
		started = time.monotonic()
		logger.info(f"Formatting final response for: {task_result.title}")
		try:
			context = await self._analyze(context_info, {
				"id": task_result.id,
				"title": task_result.title,
				"type": task_result.task_type,
				"requirements": task_result.metadata.get("requirements") or [],
			})
			adapted = self.analyzer.adapt_communication_style(
				context,
				MessageType.FINAL_RESPONSE,
				{"description": task_result.title, "options": dict(options)},
			)
			response = await self.composer.format_final_response(task_result, context, options.get("template"))
			response = self._apply_style_adaptations(response, adapted, context)

			if options.get("include_handoff"):
				await self._add_handoff_section(response, task_result, context)
			if options.get("progress_task_id"):
				self._add_progress_section(response, options["progress_task_id"])

			self._record("final_response", task_result.title, context, response, started)
			return response
		except Exception as e:
			return self._degrade(
				"format_final_response",
				e,
				self.composer.create_fallback_response(task_result, e),
			)

	async def _add_handoff_section(
		self,
		response: FormattedResponse,
		task_result: TaskResult,
		context: CommunicationContext,
	) -> None:
		try:
			actions = await self.handoffs.generate_next_actions(task_result, context)
		except Exception as e:
			logger.warning(f"Skipping next steps section: {e}")
			return
		top = actions[:HANDOFF_PREVIEW_ACTIONS]
		if top:
			response.add_section("Next Steps", "\n".join(f"- {a.action}" for a in top), 2)

	def _add_progress_section(self, response: FormattedResponse, task_id: str) -> None:
		try:
			graph = self.tracker.get_graph(task_id)
			content = (
				f"Progress: {graph.overall_progress:.1f}% complete\n"
				f"Milestones: {len(graph.completed)}/{len(graph.milestones)} completed"
			)
		except Exception as e:
			logger.warning(f"Skipping progress section: {e}")
			return
		response.add_section("Progress Status", content, 2)

	# -- progress --------------------------------------------------------

	async def initialize_progress_tracking(
		self,
		task_id: str,
		milestones: list[Any],
		options: Optional[dict[str, Any]] = None,
	) -> dict[str, Any]:
		"""
		Start tracking milestones for a task.

		Options: current_focus, enable_real_time, update_interval (seconds).
		Returns a status dict; tracking_enabled is False when setup failed.
		"""
		options = options or {}
		try:
			graph = self.tracker.initialize_progress(task_id, milestones, options.get("current_focus", ""))
			if options.get("enable_real_time"):
				await self.tracker.start_real_time_updates(
					options.get("update_interval", self.config.realtime_interval)
				)
			return {
				"task_id": task_id,
				"tracking_enabled": True,
				"progress": graph.model_dump(mode="json"),
			}
		except Exception as e:
			self._note_degradation("initialize_progress_tracking", e)
			return {"task_id": task_id, "tracking_enabled": False, "error": str(e)}

	async def update_progress(
		self,
		task_id: str,
		milestone_id: str,
		progress: float,
		options: Optional[dict[str, Any]] = None,
	) -> Optional[FormattedResponse]:
		"""
		Apply a progress update (100 completes the milestone).

		Options: metadata, completion_data, generate_report, context_info.
		Returns a progress report when generate_report is set, else None.
		A failed update returns a degraded notice.
		"""
		options = options or {}
		try:
			if progress >= 100:
				completion_data = {**(options.get("metadata") or {}), **(options.get("completion_data") or {})}
				self.tracker.start_milestone(task_id, milestone_id)
				self.tracker.complete_milestone(task_id, milestone_id, completion_data)
			else:
				self.tracker.update_milestone_progress(task_id, milestone_id, progress, options.get("metadata"))
		except Exception as e:
			return self._degrade(
				"update_progress",
				e,
				simple_response("Progress Update", f"Progress update for {milestone_id} could not be applied."),
			)

		if options.get("generate_report"):
			return await self.generate_progress_report(task_id, options.get("context_info"))
		return None

	async def generate_progress_report(
		self,
		task_id: str,
		context_info: Optional[dict[str, Any]] = None,
		options: Optional[dict[str, Any]] = None,
	) -> FormattedResponse:
		"""
		Render a progress report for a task.

		Options: include_detailed_analysis, include_predictions,
		include_recommendations (default True), include_next_steps.
		"""
		options = options or {}
		started = time.monotonic()
		logger.info(f"Generating progress report for {task_id}")
		try:
			context = await self._analyze(context_info, {
				"id": task_id,
				"title": "Progress Report",
				"type": "progress_update",
			})
			report = await self.tracker.generate_progress_report(
				task_id,
				include_detailed_analysis=options.get("include_detailed_analysis", False),
				include_predictions=options.get("include_predictions", False),
				include_recommendations=options.get("include_recommendations", True),
			)
			response = report.render(context.user_preferences.preferred_format)

			if report.predictions:
				completion = report.predictions["completion"]
				response.add_section(
					"Forecast",
					f"Estimated time remaining: {format_duration(completion['estimated_time_remaining'])}\n"
					f"Confidence: {completion['confidence']}",
					2,
				)
			if options.get("include_recommendations", True):
				self._add_attention_section(response, task_id)
			if options.get("include_next_steps"):
				next_milestone = self.tracker.get_graph(task_id).get_next_milestone()
				if next_milestone is not None:
					response.add_section("Next Milestone", f"Continue with: {next_milestone.name}", 2)

			self._record("progress_report", task_id, context, response, started)
			return response
		except Exception as e:
			return self._degrade(
				"generate_progress_report",
				e,
				simple_response("Progress Update", "Progress report generation encountered an issue."),
			)

	def _add_attention_section(self, response: FormattedResponse, task_id: str) -> None:
		try:
			graph = self.tracker.get_graph(task_id)
			overdue = [
				m for m in graph.in_progress
				if m.estimated_time > 0 and m.get_duration() > m.estimated_time * OVERDUE_FACTOR
			]
		except Exception as e:
			logger.warning(f"Skipping attention section: {e}")
			return
		if overdue:
			response.add_section("Attention", f"- Review {len(overdue)} overdue milestone(s)", 2)

	# -- handoffs --------------------------------------------------------

	async def create_handoff_instructions(
		self,
		task_result: TaskResult,
		next_actions: Optional[list[Any]] = None,
		context_info: Optional[dict[str, Any]] = None,
		options: Optional[dict[str, Any]] = None,
	) -> FormattedResponse:
		"""
		Render handoff instructions for a task.

		Options: include_validation adds a completeness warning when the
		handoff is incomplete.
		"""
		options = options or {}
		started = time.monotonic()
		try:
			context = await self._analyze(context_info, {
				"id": task_result.id,
				"title": task_result.title,
				"type": task_result.task_type,
			})
			instructions = await self.handoffs.create_handoff_instructions(task_result, next_actions, context)
			response = instructions.render(context.user_preferences.preferred_format)

			if options.get("include_validation"):
				validation = self.handoffs.validate_handoff_completeness(instructions)
				if not validation.is_complete:
					response.add_section("Handoff Validation", _format_validation_warning(validation), 2)

			self._record("handoff_instructions", task_result.title, context, response, started)
			return response
		except Exception as e:
			fallback = FormattedResponse()
			fallback.add_section("Handoff Instructions", "Unable to generate detailed handoff instructions.")
			fallback.add_section("Basic Next Steps", "Review task results and plan next actions manually.")
			return self._degrade("create_handoff_instructions", e, fallback)

	# -- collaboration ---------------------------------------------------

	async def facilitate_collaboration(
		self,
		session_id: str,
		task_result: TaskResult,
		feedback_points: list[Union[FeedbackPoint, str, dict]],
		context_info: Optional[dict[str, Any]] = None,
	) -> FormattedResponse:
		"""Open a collaboration session and render the feedback request."""
		started = time.monotonic()
		logger.info(f"Facilitating collaboration session: {session_id}")
		try:
			context = await self._analyze(context_info, {
				"id": task_result.id,
				"title": "Collaborative Review",
				"type": "collaboration",
			})
			self.collaboration.create_session(session_id, task_result, feedback_points, context)
			response = self.collaboration.generate_feedback_request(session_id)
			adapted = self.analyzer.adapt_communication_style(
				context,
				MessageType.COLLABORATION,
				{"description": task_result.title, "feedback_points": len(feedback_points)},
			)
			response = self._apply_style_adaptations(response, adapted, context)
			self._record("collaboration_request", task_result.title, context, response, started)
			return response
		except Exception as e:
			return self._degrade(
				"facilitate_collaboration",
				e,
				simple_response("Collaboration Request", "Please review the completed work and provide feedback."),
			)

	async def process_collaborative_feedback(
		self,
		session_id: str,
		answers: dict[str, str],
		options: Optional[dict[str, Any]] = None,
	) -> FormattedResponse:
		"""
		Classify one round of answers and render the plan.

		Options: generate_handoff appends handoff instructions once no more
		feedback is needed.
		"""
		options = options or {}
		started = time.monotonic()
		try:
			session = self.collaboration.get_session(session_id)
			context = session.context or await self._analyze(None, {
				"id": session.task_result.id,
				"title": "Collaborative Review",
				"type": "collaboration",
			})
			plan = await self.collaboration.process_feedback(session_id, answers)
			response = FormattedResponse()
			response.add_section("Feedback Received", "Thank you for your feedback. Here's how I'll proceed:")
			if plan.changes:
				response.add_section("Planned Changes", "\n".join(f"- {c['description']}" for c in plan.changes), 2)
			if plan.requires_more_feedback:
				response.add_section("Additional Questions", _format_feedback_points(plan.new_feedback_points), 2)
			else:
				response.add_section("Next Steps", "Proceeding with implementation based on your feedback.", 2)
				if options.get("generate_handoff"):
					handoff = await self.create_handoff_instructions(session.task_result)
					if not handoff.degraded:
						for section in handoff.sections:
							response.add_section(section.title, section.content, section.level)

			self._record(
				"collaboration_feedback",
				session.task_result.title,
				context,
				response,
				started,
			)
			return response
		except Exception as e:
			return self._degrade(
				"process_collaborative_feedback",
				e,
				simple_response("Feedback Processing Error", "Unable to process feedback. Please try again."),
			)

	async def complete_collaboration(
		self,
		session_id: str,
		completion_data: Optional[dict[str, Any]] = None,
	) -> FormattedResponse:
		"""Close a collaboration session and render its summary."""
		try:
			summary = self.collaboration.complete_collaboration(session_id, completion_data)
			response = FormattedResponse()
			response.add_section(
				"Collaboration Complete",
				"Thank you for your participation in this collaborative process.",
			)
			response.add_section("Session Summary", _format_collaboration_summary(summary), 2)
			logger.info(f"Collaboration session completed: {session_id}")
			return response
		except Exception as e:
			return self._degrade(
				"complete_collaboration",
				e,
				simple_response("Collaboration Session", "Session completed with some issues."),
			)

	# -- profiles, recommendations and housekeeping ----------------------

	def update_user_profile(
		self,
		user_id: str,
		interaction: Optional[dict[str, Any]] = None,
		feedback: Optional[dict[str, Any]] = None,
	) -> Optional[UserProfile]:
		try:
			return self.analyzer.update_user_profile(user_id, interaction, feedback)
		except Exception as e:
			self._note_degradation("update_user_profile", e)
			return None

	async def get_communication_recommendations(
		self,
		context_info: Optional[dict[str, Any]] = None,
		message_type: Union[MessageType, str] = MessageType.DEFAULT,
	) -> dict[str, Any]:
		"""Tone, length, detail, format, examples and timing advice for a context."""
		try:
			context = await self._analyze(context_info, {})
			return self.analyzer.get_recommendations(context, message_type)
		except Exception as e:
			self._note_degradation("get_communication_recommendations", e)
			return {"error": str(e), "degraded": True}

	def get_system_statistics(self) -> dict[str, Any]:
		return {
			"system": {
				"total_communications": self.stats.total_communications,
				"average_response_time": self.stats.average_response_time,
				"degradations": self.stats.degradations,
				"uptime": (datetime.now() - self.stats.started_at).total_seconds(),
				"active_communications": self.collaboration.get_statistics()["active_sessions"],
				"communication_history": len(self._history),
			},
			"response_composer": self.composer.get_statistics(),
			"progress_tracker": self.tracker.get_statistics(),
			"collaboration_engine": self.collaboration.get_statistics(),
			"context_analyzer": self.analyzer.get_statistics(),
			"handoff_planner": self.handoffs.get_statistics(),
		}

	def cleanup(self, max_age: Optional[float] = None) -> int:
		"""
		Purge history and engine entries older than max_age seconds.

		Without max_age, collaboration sessions and handoffs use their own
		configured ages and everything else uses cleanup_max_age. Returns
		the number of entries removed.
		"""
		default_age = self.config.cleanup_max_age if max_age is None else max_age
		collaboration_age = self.config.collaboration_max_age if max_age is None else max_age
		handoff_age = self.config.handoff_max_age if max_age is None else max_age
		cutoff = cutoff_for(default_age)

		purged = self._history.purge_older_than(cutoff)
		purged += self._degradations.purge_older_than(cutoff)
		purged += self.tracker.cleanup(default_age)
		purged += self.collaboration.cleanup(collaboration_age)
		purged += self.analyzer.cleanup(default_age)
		purged += self.handoffs.cleanup(handoff_age)

		if purged:
			logger.info(f"Cleanup removed {purged} old records")
		return purged

	async def shutdown(self) -> None:
		await self.tracker.stop_real_time_updates()


def _format_validation_warning(validation: HandoffValidation) -> str:
	lines = [f"Handoff completeness: {validation.score}/100"]
	if validation.missing_elements:
		lines.append("\nMissing elements:")
		lines.extend(f"- {e}" for e in validation.missing_elements)
	if validation.recommendations:
		lines.append("\nRecommendations:")
		lines.extend(f"- {r}" for r in validation.recommendations)
	return "\n".join(lines)


def _format_feedback_points(points: list[FeedbackPoint]) -> str:
	items = []
	for index, point in enumerate(points):
		item = f"{index + 1}. **{point.title}**\n   {point.description}"
		if point.options:
			item += f"\n   Options: {', '.join(point.options)}"
		items.append(item)
	return "\n\n".join(items)


def _format_collaboration_summary(summary: dict[str, Any]) -> str:
	lines = [
		f"Duration: {format_duration(summary['duration'])}",
		f"Iterations: {summary['total_iterations']}",
		f"Feedback Points: {summary['feedback_points_count']}",
		f"Status: {summary['status']}",
	]
	if summary.get("key_decisions"):
		lines.append("\nKey Decisions:")
		lines.extend(f"- {d['decision']}" for d in summary["key_decisions"])
	return "\n".join(lines)


# Singleton
_orchestrator: Optional[CommunicationOrchestrator] = None


def get_orchestrator(config: Optional[Config] = None) -> CommunicationOrchestrator:
	"""Get or create the process-wide orchestrator. `config` only applies on first creation."""
	global _orchestrator
	if _orchestrator is None:
		_orchestrator = CommunicationOrchestrator(config)
	return _orchestrator
