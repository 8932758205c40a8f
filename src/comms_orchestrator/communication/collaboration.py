"""
Collaboration Engine - Multi-round human feedback sessions.

Each session is a small state machine:

    CREATED -> AWAITING_FEEDBACK -> READY_TO_PROCEED | AWAITING_FEEDBACK -> COMPLETED

Feedback rounds are classified deterministically (see feedback_classifier)
and turned into an iteration plan. COMPLETED is terminal and only reached
through complete_collaboration().
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from ..errors import NotFoundError, SessionStateError, ValidationError
from ..history import DEFAULT_LIMIT, DEFAULT_TRIM_TO, BoundedHistory, cutoff_for
from ..models.context import CommunicationContext
from ..models.response import FormattedResponse
from ..models.task import TaskResult
from . import feedback_classifier as classifier

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
SLOW_AFTER_DAYS = 2
STALLED_AFTER_DAYS = 7
FOLLOW_UP_OPTIONS = ["Proceed as suggested", "Modify approach", "Skip for now"]
HIGH_PRIORITY_CONCERNS = 2


class CollaborationStatus(str, Enum):
	"""Lifecycle of a collaboration session."""
	CREATED = "created"
	AWAITING_FEEDBACK = "awaiting_feedback"
	READY_TO_PROCEED = "ready_to_proceed"
	COMPLETED = "completed"


class FeedbackPoint(BaseModel):
	"""A question put to the user."""
	id: str
	title: str
	description: str
	type: str = Field(default="open_question", description="open_question or choice")
	required: bool = Field(default=True)
	options: list[str] = Field(default_factory=list)
	context: Optional[str] = Field(default=None)
	examples: list[str] = Field(default_factory=list)


class PointResponse(BaseModel):
	"""Classification of one answered feedback point."""
	point_id: str
	text: str
	intent: classifier.Intent
	actionable: bool
	confidence: str


class FeedbackAnalysis(BaseModel):
	"""Everything derived from one round of answers."""
	responses: dict[str, PointResponse] = Field(default_factory=dict)
	sentiment: classifier.Sentiment = Field(default=classifier.Sentiment.NEUTRAL)
	action_items: list[dict[str, Any]] = Field(default_factory=list)
	concerns: list[dict[str, Any]] = Field(default_factory=list)
	approvals: list[dict[str, Any]] = Field(default_factory=list)
	suggestions: list[dict[str, Any]] = Field(default_factory=list)


class IterationPlan(BaseModel):
	"""What the agent will do in response to a feedback round."""
	iteration_number: int
	changes: list[dict[str, Any]] = Field(default_factory=list)
	validations: list[dict[str, Any]] = Field(default_factory=list)
	new_feedback_points: list[FeedbackPoint] = Field(default_factory=list)
	requires_more_feedback: bool = Field(default=False)
	estimated_effort: int = Field(default=0)
	priority: str = Field(default="normal")


@dataclass
class FeedbackRound:
	"""One processed batch of answers."""
	raw_feedback: dict[str, str]
	analysis: FeedbackAnalysis
	iteration_plan: IterationPlan
	timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class CollaborationSession:
	"""State of one collaboration."""
	id: str
	task_result: TaskResult
	feedback_points: list[FeedbackPoint]
	context: Optional[CommunicationContext] = None
	status: CollaborationStatus = CollaborationStatus.CREATED
	rounds: list[FeedbackRound] = field(default_factory=list)
	checkpoints: list[dict[str, Any]] = field(default_factory=list)
	improvement_plan: Optional[dict[str, Any]] = None
	completion_data: dict[str, Any] = field(default_factory=dict)
	created_at: datetime = field(default_factory=datetime.now)
	last_updated: datetime = field(default_factory=datetime.now)
	completed_at: Optional[datetime] = None

	@property
	def iteration_count(self) -> int:
		return len(self.rounds)

	@property
	def latest_round(self) -> Optional[FeedbackRound]:
		return self.rounds[-1] if self.rounds else None

	def find_point(self, key: str) -> Optional[FeedbackPoint]:
		for point in self.feedback_points:
			if point.id == key or point.title == key:
				return point
		return None


@dataclass
class FeedbackRecord:
	session_id: str
	feedback: dict[str, str]
	sentiment: str
	timestamp: datetime = field(default_factory=datetime.now)


def normalize_feedback_point(point: Union[FeedbackPoint, str, dict], index: int) -> FeedbackPoint:
	"""
	Turn a string or dict into a FeedbackPoint.

	Raises:
		ValidationError: the entry is neither text nor a mapping with a description
	"""
	if isinstance(point, FeedbackPoint):
		return point
	if isinstance(point, str):
		if not point.strip():
			raise ValidationError(f"Feedback point {index} is empty")
		return FeedbackPoint(id=f"feedback_{index}", title=f"Feedback Point {index + 1}", description=point)
	if isinstance(point, dict):
		description = point.get("description") or point.get("question")
		if not description:
			raise ValidationError(f"Feedback point {index} has no description")
		data = {k: v for k, v in point.items() if k in FeedbackPoint.model_fields}
		data["description"] = description
		data["id"] = point.get("id") or f"feedback_{index}"
		data["title"] = point.get("title") or f"Feedback Point {index + 1}"
		return FeedbackPoint(**data)
	raise ValidationError(f"Feedback point {index} must be a string or mapping, got {type(point).__name__}")


def _topic(point_id: str) -> str:
	return point_id.replace("feedback_", "Point ")


class CollaborationEngine:
	"""
	Runs collaboration sessions and classifies feedback.

	Sessions live in memory until swept by cleanup().
	"""

	def __init__(
		self,
		history_limit: int = DEFAULT_LIMIT,
		history_trim_to: int = DEFAULT_TRIM_TO,
	):
		self._sessions: dict[str, CollaborationSession] = {}
		self._feedback_history: BoundedHistory[FeedbackRecord] = BoundedHistory(history_limit, history_trim_to)
		self.total_sessions = 0
		self.successful_collaborations = 0

	def get_session(self, session_id: str) -> CollaborationSession:
		session = self._sessions.get(session_id)
		if session is None:
			raise NotFoundError("collaboration session", session_id)
		return session

	def create_session(
		self,
		session_id: str,
		task_result: TaskResult,
		feedback_points: list[Union[FeedbackPoint, str, dict]],
		context: Optional[CommunicationContext] = None,
	) -> CollaborationSession:
		"""
		Start a collaboration session (replaces an existing one with the same id).

		Raises:
			ValidationError: a feedback point is malformed
		"""
		points = [normalize_feedback_point(p, i) for i, p in enumerate(feedback_points)]
		session = CollaborationSession(
			id=session_id,
			task_result=task_result,
			feedback_points=points,
			context=context,
		)
		session.status = CollaborationStatus.AWAITING_FEEDBACK
		self._sessions[session_id] = session
		self.total_sessions += 1
		logger.info(f"Collaboration session {session_id} started with {len(points)} feedback points")
		return session

	def generate_feedback_request(self, session_id: str) -> FormattedResponse:
		session = self.get_session(session_id)
		response = FormattedResponse()
		response.add_section("Work Completed", self._format_completed_work(session.task_result))
		response.add_section("Feedback Needed", self._format_feedback_points(session.feedback_points))
		response.add_section("How to Respond", FEEDBACK_INSTRUCTIONS)
		return response

	async def process_feedback(self, session_id: str, answers: dict[str, str]) -> IterationPlan:
		"""
		Classify one round of answers and plan the next iteration.

		Args:
			session_id: Session identifier
			answers: Answer text keyed by feedback point id or title

		Returns:
			IterationPlan for the round

		Raises:
			NotFoundError: unknown session
			SessionStateError: the session is completed
		"""
		session = self.get_session(session_id)
		if session.status == CollaborationStatus.COMPLETED:
			raise SessionStateError(f"Collaboration session {session_id} is completed")

		analysis = self._analyze_feedback(session, answers)
		plan = self._build_iteration_plan(session, analysis)

		session.rounds.append(FeedbackRound(raw_feedback=dict(answers), analysis=analysis, iteration_plan=plan))
		if plan.new_feedback_points:
			session.feedback_points.extend(plan.new_feedback_points)
		session.status = (
			CollaborationStatus.AWAITING_FEEDBACK
			if plan.requires_more_feedback
			else CollaborationStatus.READY_TO_PROCEED
		)
		session.last_updated = datetime.now()

		self._feedback_history.append(
			FeedbackRecord(session_id=session_id, feedback=dict(answers), sentiment=analysis.sentiment.value)
		)
		logger.info(
			f"Processed feedback round {session.iteration_count} for {session_id}: "
			f"{analysis.sentiment.value}, {len(plan.changes)} changes"
		)
		return plan

	def _analyze_feedback(self, session: CollaborationSession, answers: dict[str, str]) -> FeedbackAnalysis:
		analysis = FeedbackAnalysis()
		for point in session.feedback_points:
			text = answers.get(point.id)
			if text is None:
				text = answers.get(point.title)
			if text is None:
				continue
			text = str(text)
			options = point.options if point.type == "choice" else None
			analysis.responses[point.id] = PointResponse(
				point_id=point.id,
				text=text,
				intent=classifier.classify_intent(text),
				actionable=classifier.is_actionable(text),
				confidence=classifier.assess_confidence(text, options),
			)

		analysis.sentiment = classifier.analyze_sentiment(r.text for r in analysis.responses.values())

		for point_id, response in analysis.responses.items():
			if response.actionable:
				analysis.action_items.append({
					"id": f"action_{len(analysis.action_items)}",
					"source": point_id,
					"description": response.text,
					"intent": response.intent.value,
					"priority": "high" if response.confidence == "high" else "normal",
					"estimated_effort": classifier.estimate_effort(response.text),
				})
			if response.intent in (classifier.Intent.REJECTION, classifier.Intent.UNCERTAIN):
				analysis.concerns.append({
					"source": point_id,
					"description": response.text,
					"severity": "high" if response.confidence == "high" else "medium",
					"type": "objection" if response.intent == classifier.Intent.REJECTION else "uncertainty",
				})
			elif response.intent == classifier.Intent.APPROVAL:
				analysis.approvals.append({"topic": _topic(point_id), "confidence": response.confidence})
			elif response.intent == classifier.Intent.SUGGESTION:
				analysis.suggestions.append({
					"topic": _topic(point_id),
					"suggestion": response.text,
					"confidence": response.confidence,
				})
		return analysis

	def _build_iteration_plan(self, session: CollaborationSession, analysis: FeedbackAnalysis) -> IterationPlan:
		plan = IterationPlan(iteration_number=session.iteration_count + 1)

		for item in analysis.action_items:
			plan.changes.append({
				"id": f"change_{len(plan.changes)}",
				"description": item["description"],
				"type": "modification",
				"priority": item["priority"],
				"estimated_effort": item["estimated_effort"],
				"validation_required": True,
				"rollback_plan": "Revert to previous iteration state",
			})

		for concern in analysis.concerns:
			plan.validations.append({
				"id": f"validation_{len(plan.validations)}",
				"description": f"Validate resolution of: {concern['description']}",
				"type": "acceptance_test" if concern["type"] == "objection" else "clarification_check",
				"severity": concern["severity"],
			})

		offset = len(session.feedback_points)
		for suggestion in analysis.suggestions:
			index = offset + len(plan.new_feedback_points)
			plan.new_feedback_points.append(FeedbackPoint(
				id=f"feedback_{index}",
				title=f"Regarding: {suggestion['topic']}",
				description=f"How would you like to handle: {suggestion['suggestion']}",
				type="choice",
				options=list(FOLLOW_UP_OPTIONS),
			))

		plan.requires_more_feedback = bool(plan.new_feedback_points)
		plan.estimated_effort = sum(c["estimated_effort"] for c in plan.changes)
		plan.priority = "high" if len(analysis.concerns) > HIGH_PRIORITY_CONCERNS else "normal"
		return plan

	def create_iteration_checkpoint(self, session_id: str, name: str, data: Optional[dict] = None) -> dict[str, Any]:
		session = self.get_session(session_id)
		checkpoint = {
			"name": name,
			"data": data or {},
			"timestamp": datetime.now().isoformat(),
			"iteration_count": session.iteration_count,
		}
		session.checkpoints.append(checkpoint)
		logger.debug(f"Checkpoint {name} created for session {session_id}")
		return checkpoint

	async def plan_improvement(self, session_id: str, goals: list[dict[str, Any]]) -> dict[str, Any]:
		"""
		Build an improvement plan for a running session.

		Goals are dicts with type (efficiency, clarity, sequential...),
		description, priority, urgency and effort.
		"""
		session = self.get_session(session_id)
		actions = []
		for goal in goals:
			if goal.get("type") == "efficiency":
				actions.append({
					"action": "Streamline feedback collection process",
					"description": "Reduce feedback rounds by asking more targeted questions",
					"priority": "medium",
					"effort": "low",
				})
			if goal.get("type") == "clarity":
				actions.append({
					"action": "Improve feedback point descriptions",
					"description": "Add more context and examples to each feedback point",
					"priority": "high",
					"effort": "medium",
				})

		effort_points = {"high": 3, "medium": 2}
		total_effort = sum(effort_points.get(g.get("effort"), 1) for g in goals)

		risks = []
		if len(goals) > 3:
			risks.append({
				"risk": "Scope creep",
				"probability": "medium",
				"impact": "high",
				"mitigation": "Prioritize goals and implement incrementally",
			})
		if session.iteration_count > 3:
			risks.append({
				"risk": "User fatigue",
				"probability": "high",
				"impact": "medium",
				"mitigation": "Streamline feedback process and reduce iteration cycles",
			})

		plan = {
			"goals": goals,
			"current_state": self._assess_current_state(session),
			"recommended_actions": actions,
			"expected_outcomes": [
				{
					"goal": g.get("description", ""),
					"confidence": "medium",
					"timeline": "immediate" if g.get("urgency") == "high" else "next_iteration",
				}
				for g in goals
			],
			"timeline": {
				"total_effort": total_effort,
				"estimated_duration": f"{total_effort} iteration(s)",
				"parallelizable": sum(1 for g in goals if g.get("type") != "sequential"),
				"critical_path": sum(1 for g in goals if g.get("priority") == "high"),
			},
			"risk_factors": risks,
		}
		session.improvement_plan = plan
		session.last_updated = datetime.now()
		logger.info(f"Improvement plan created for session {session_id}")
		return plan

	def get_summary(self, session_id: str) -> dict[str, Any]:
		session = self.get_session(session_id)
		end = session.completed_at or datetime.now()
		return {
			"session_id": session_id,
			"status": session.status.value,
			"total_iterations": session.iteration_count,
			"feedback_points_count": len(session.feedback_points),
			"responses_received": len(session.rounds),
			"duration": (end - session.created_at).total_seconds(),
			"key_decisions": self._extract_key_decisions(session),
			"consensus_level": self._consensus_level(session),
			"momentum": self._momentum(session),
			"user_preferences": self._infer_user_preferences(session),
			"outcome_assessment": self._assess_outcome(session),
		}

	def complete_collaboration(self, session_id: str, completion_data: Optional[dict] = None) -> dict[str, Any]:
		"""
		Move a session to COMPLETED and summarise it.

		Completing an already completed session returns its summary unchanged.
		"""
		session = self.get_session(session_id)
		if session.status == CollaborationStatus.COMPLETED:
			return self.get_summary(session_id)

		session.status = CollaborationStatus.COMPLETED
		session.completed_at = datetime.now()
		session.completion_data = completion_data or {}

		latest = session.latest_round
		if latest is not None and latest.analysis.sentiment != classifier.Sentiment.NEGATIVE:
			self.successful_collaborations += 1

		logger.info(f"Collaboration {session_id} completed after {session.iteration_count} iterations")
		return self.get_summary(session_id)

	# -- summary helpers -------------------------------------------------

	def _extract_key_decisions(self, session: CollaborationSession) -> list[dict[str, Any]]:
		decisions = []
		for index, rnd in enumerate(session.rounds):
			for item in rnd.analysis.action_items:
				if item["priority"] == "high":
					decisions.append({
						"iteration": index + 1,
						"decision": item["description"],
						"rationale": "High priority user feedback",
					})
		return decisions

	def _consensus_level(self, session: CollaborationSession) -> float:
		latest = session.latest_round
		if latest is None:
			return 0.0
		answered = len(latest.analysis.responses)
		if not answered:
			return 0.0
		return len(latest.analysis.approvals) / answered * 100

	def _feedback_completeness(self, session: CollaborationSession) -> float:
		latest = session.latest_round
		if latest is None or not session.feedback_points:
			return 0.0
		return len(latest.analysis.responses) / len(session.feedback_points) * 100

	def _momentum(self, session: CollaborationSession, now: Optional[datetime] = None) -> str:
		if not session.rounds:
			return "stalled"
		days = ((now or datetime.now()) - session.last_updated).total_seconds() / DAY_SECONDS
		if days > STALLED_AFTER_DAYS:
			return "stalled"
		if days > SLOW_AFTER_DAYS:
			return "slow"
		return "active"

	def _assess_current_state(self, session: CollaborationSession) -> dict[str, Any]:
		return {
			"iteration_count": session.iteration_count,
			"feedback_completeness": self._feedback_completeness(session),
			"consensus_level": self._consensus_level(session),
			"momentum": self._momentum(session),
		}

	def _infer_user_preferences(self, session: CollaborationSession) -> dict[str, str]:
		preferences = {
			"communication_style": "standard",
			"detail_level": "normal",
			"feedback_frequency": "normal",
			"decision_making": "collaborative",
		}
		if session.rounds:
			total = sum(len(" ".join(str(v) for v in r.raw_feedback.values())) for r in session.rounds)
			avg_length = total / len(session.rounds)
			if avg_length > 200:
				preferences["detail_level"] = "detailed"
			elif avg_length < 50:
				preferences["detail_level"] = "brief"
		return preferences

	def _assess_outcome(self, session: CollaborationSession) -> dict[str, str]:
		assessment = {
			"effectiveness": "moderate",
			"user_satisfaction": "neutral",
			"goal_achievement": "partial",
		}
		if session.rounds and session.iteration_count <= 2:
			assessment["effectiveness"] = "high"
		elif session.iteration_count > 5:
			assessment["effectiveness"] = "low"

		latest = session.latest_round
		if latest is not None:
			if latest.analysis.sentiment == classifier.Sentiment.POSITIVE:
				assessment["user_satisfaction"] = "high"
			elif latest.analysis.sentiment == classifier.Sentiment.NEGATIVE:
				assessment["user_satisfaction"] = "low"
			if session.status == CollaborationStatus.COMPLETED and not latest.iteration_plan.requires_more_feedback:
				assessment["goal_achievement"] = "complete"
		return assessment

	# -- formatting helpers ----------------------------------------------

	def _format_completed_work(self, task_result: TaskResult) -> str:
		parts = []
		if task_result.outputs:
			parts.append("**Outputs Generated:**")
			parts.append("\n".join(f"- {key}: {out.value}" for key, out in task_result.outputs.items()))
		if task_result.changes:
			parts.append("\n**Changes Made:**")
			parts.append("\n".join(f"- {c.description or c.type}" for c in task_result.changes))
		if not parts:
			parts.append(task_result.title)
		return "\n".join(parts)

	def _format_feedback_points(self, points: list[FeedbackPoint]) -> str:
		items = []
		for index, point in enumerate(points):
			text = f"{index + 1}. **{point.title}**\n   {point.description}"
			if point.options:
				text += f"\n   Options: {', '.join(point.options)}"
			if point.context:
				text += f"\n   Context: {point.context}"
			items.append(text)
		return "\n\n".join(items)

	# -- housekeeping ----------------------------------------------------

	def get_statistics(self) -> dict[str, Any]:
		completed = [s for s in self._sessions.values() if s.status == CollaborationStatus.COMPLETED]
		active = len(self._sessions) - len(completed)
		return {
			"total_sessions": self.total_sessions,
			"active_sessions": active,
			"completed_sessions": len(completed),
			"successful_collaborations": self.successful_collaborations,
			"average_iterations": (
				sum(s.iteration_count for s in completed) / len(completed) if completed else 0.0
			),
			"feedback_records": len(self._feedback_history),
		}

	def cleanup(self, max_age: float) -> int:
		"""Drop sessions and feedback records idle for longer than max_age seconds."""
		cutoff = cutoff_for(max_age)
		stale = [
			sid for sid, s in self._sessions.items()
			if (s.completed_at or s.last_updated) < cutoff
		]
		for sid in stale:
			del self._sessions[sid]
		purged = len(stale) + self._feedback_history.purge_older_than(cutoff)
		if purged:
			logger.info(f"Collaboration cleanup removed {purged} entries")
		return purged


FEEDBACK_INSTRUCTIONS = (
	"Please provide your feedback on the points above. You can:\n\n"
	"- Answer each numbered point directly\n"
	"- Use \"approve\" or \"looks good\" for acceptance\n"
	"- Describe any changes or improvements needed\n"
	"- Ask questions if anything is unclear\n\n"
	"Your feedback will help me improve the work and continue effectively."
)
