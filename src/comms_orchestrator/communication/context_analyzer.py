"""
Context Analyzer - Scores task complexity and resolves how to communicate.

Turns task, user and environment descriptors into a CommunicationContext
with exactly one AdaptationStrategy. Preference sources are merged in a
fixed precedence where later sources only fill fields that are still unset:

    explicit -> stored profile -> history-inferred -> experience defaults -> global defaults
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from ..history import DEFAULT_LIMIT, DEFAULT_TRIM_TO, BoundedHistory, cutoff_for
from ..models.context import (
	AdaptationStrategy,
	CommunicationContext,
	EnvironmentInfo,
	SessionContext,
	TaskComplexity,
	UserPreferences,
	UserProfile,
	Verbosity,
)
from .adaptation_rules import (
	ADAPTATION_RULES,
	AdaptationRule,
	MessageType,
	collect_adjustments,
)

logger = logging.getLogger(__name__)

TYPE_WEIGHTS = {
	"simple_edit": 5,
	"bug_fix": 15,
	"feature_addition": 25,
	"refactoring": 30,
	"architecture": 40,
	"system_design": 45,
}
DEFAULT_TYPE_WEIGHT = 20
ADVANCED_TECHNOLOGIES = ("kubernetes", "microservices", "blockchain", "ai", "ml")
HIGH_COMPLEXITY = 60
MEDIUM_COMPLEXITY = 30

EXPERIENCE_DEFAULTS = {
	"beginner": {
		"verbosity_level": Verbosity.VERBOSE,
		"show_technical_details": True,
		"example_preference": "many",
	},
	"expert": {
		"verbosity_level": Verbosity.CONCISE,
		"show_technical_details": False,
		"example_preference": "few",
	},
}

VERBOSITY_SCALE = ["concise", "normal", "verbose"]
TECHNICAL_SCALE = ["low", "medium", "high"]
NARROW_TERMINAL = 60

EXPANDED_SUFFIX = "\n\nThis approach ensures comprehensive coverage while maintaining clarity and precision."
ADDITIONAL_CONTEXT = (
	"Additional context and background information can help provide better understanding "
	"of the implementation details and decision-making process."
)
DEFAULT_EXAMPLES = [
	"Example implementation showing practical application",
	"Common usage pattern with expected outcomes",
]


@dataclass
class AdaptationResult:
	"""Outcome of adapt_communication_style."""
	original_content: dict[str, Any]
	adapted_content: dict[str, Any]
	style_recommendations: list[str] = field(default_factory=list)
	format_adjustments: list[str] = field(default_factory=list)
	length_adjustments: list[str] = field(default_factory=list)


@dataclass
class ContextRecord:
	task_type: str
	complexity: TaskComplexity
	requirements: int
	timestamp: datetime = field(default_factory=datetime.now)


def assess_complexity(task_info: dict[str, Any]) -> tuple[TaskComplexity, int]:
	"""Score a task and map the score to a complexity band."""
	score = min(len(task_info.get("requirements") or []) * 5, 25)
	score += TYPE_WEIGHTS.get(task_info.get("type", "general"), DEFAULT_TYPE_WEIGHT)

	if len(task_info.get("dependencies") or []) > 3:
		score += 15
	if len(task_info.get("constraints") or {}) > 2:
		score += 10

	hours = task_info.get("estimated_hours") or 0
	if hours > 8:
		score += 20
	elif hours > 4:
		score += 10
	elif hours > 1:
		score += 5

	technologies = [str(t).lower() for t in task_info.get("technologies") or []]
	if any(adv in tech for tech in technologies for adv in ADVANCED_TECHNOLOGIES):
		score += 15

	if score >= HIGH_COMPLEXITY:
		return TaskComplexity.HIGH, score
	if score >= MEDIUM_COMPLEXITY:
		return TaskComplexity.MEDIUM, score
	return TaskComplexity.LOW, score


def infer_preferences_from_history(history: list[dict[str, Any]], current: dict[str, Any]) -> dict[str, Any]:
	"""
	Guess preferences from past interactions.

	Args:
		history: Interactions with optional user_response text and feedback.rating
		current: Preferences resolved so far (used by the technical-detail toggle)
	"""
	inferred: dict[str, Any] = {}
	if not history:
		return inferred

	responses = [str(i.get("user_response") or "") for i in history]
	avg_length = sum(len(r) for r in responses) / len(history)
	if avg_length > 200:
		inferred["verbosity_level"] = Verbosity.VERBOSE
	elif avg_length < 50:
		inferred["verbosity_level"] = Verbosity.CONCISE

	rated = [i["feedback"] for i in history if i.get("feedback")]
	if rated:
		avg_rating = sum(f.get("rating", 3) for f in rated) / len(rated)
		if avg_rating < 3:
			shown = current.get("show_technical_details", UserPreferences().show_technical_details)
			inferred["show_technical_details"] = not shown

	questions = sum(1 for r in responses if "?" in r)
	if questions > len(history) * 0.5:
		inferred["example_preference"] = "many"
		inferred["verbosity_level"] = Verbosity.VERBOSE

	return inferred


def _shift(value: Any, scale: list[str], direction: int) -> Any:
	value = getattr(value, "value", value)
	if value not in scale:
		return value
	index = max(0, min(len(scale) - 1, scale.index(value) + direction))
	return scale[index]


class ContextAnalyzer:
	"""
	Builds communication contexts and adapts content to them.

	Also keeps learned user profiles and a bounded history of analyses.
	"""

	def __init__(
		self,
		history_limit: int = DEFAULT_LIMIT,
		history_trim_to: int = DEFAULT_TRIM_TO,
	):
		self._profiles: dict[str, UserProfile] = {}
		self._history: BoundedHistory[ContextRecord] = BoundedHistory(history_limit, history_trim_to)
		self._rules = dict(ADAPTATION_RULES)
		self.total_analyses = 0
		self.average_analysis_time = 0.0
		self.complexity_counts: dict[str, int] = {}

	async def analyze_context(
		self,
		task_info: Optional[dict[str, Any]] = None,
		user_info: Optional[dict[str, Any]] = None,
		environment_info: Optional[dict[str, Any]] = None,
	) -> CommunicationContext:
		"""
		Analyze task, user and environment descriptors.

		Args:
			task_info: id, type, title/goal, requirements, dependencies, constraints,
				estimated_hours, technologies, urgency
			user_info: user_id, preferences, interaction_history, experience_level
			environment_info: terminal (dict), terminal_width, platform, session_type,
				urgency, deadline

		Returns:
			CommunicationContext with its adaptation strategy
		"""
		started = datetime.now()
		task_info = task_info or {}
		user_info = user_info or {}
		environment_info = environment_info or {}

		complexity, score = assess_complexity(task_info)
		context = CommunicationContext(
			task_complexity=complexity,
			complexity_score=score,
			user_preferences=self.resolve_preferences(user_info),
			environment_info=self._analyze_environment(environment_info),
			session_context=SessionContext(
				task_id=task_info.get("id"),
				task_type=task_info.get("type", "general"),
				user_experience=user_info.get("experience_level", "intermediate"),
				previous_interactions=len(user_info.get("interaction_history") or []),
				current_goal=task_info.get("goal") or task_info.get("title"),
				urgency=task_info.get("urgency", "normal"),
			),
		)
		context.adaptation_strategy = self.determine_strategy(context)

		self._history.append(ContextRecord(
			task_type=context.session_context.task_type,
			complexity=complexity,
			requirements=len(task_info.get("requirements") or []),
		))
		elapsed = (datetime.now() - started).total_seconds()
		self.total_analyses += 1
		self.average_analysis_time += (elapsed - self.average_analysis_time) / self.total_analyses
		self.complexity_counts[complexity.value] = self.complexity_counts.get(complexity.value, 0) + 1

		logger.debug(
			f"Context analyzed: {complexity.value} complexity (score {score}), "
			f"{context.adaptation_strategy.communication_style} style"
		)
		return context

	def resolve_preferences(self, user_info: dict[str, Any]) -> UserPreferences:
		"""Merge preference sources; earlier sources win."""
		resolved: dict[str, Any] = {}

		def fill(source: dict[str, Any]) -> None:
			for key, value in source.items():
				if key in UserPreferences.model_fields and key not in resolved:
					resolved[key] = value

		fill(user_info.get("preferences") or {})

		user_id = user_info.get("user_id")
		if user_id and user_id in self._profiles:
			fill(self._profiles[user_id].preferences)

		fill(infer_preferences_from_history(user_info.get("interaction_history") or [], resolved))
		fill(EXPERIENCE_DEFAULTS.get(user_info.get("experience_level", ""), {}))

		return UserPreferences(**resolved)

	def _analyze_environment(self, environment_info: dict[str, Any]) -> EnvironmentInfo:
		data: dict[str, Any] = {}
		terminal = environment_info.get("terminal") or {}
		data.update({k: v for k, v in terminal.items() if k in EnvironmentInfo.model_fields})
		for key in ("terminal_width", "color_support", "cli", "platform", "session_type", "time_constraints"):
			if key in environment_info:
				data[key] = environment_info[key]
		if environment_info.get("urgency") == "high" or environment_info.get("deadline"):
			data["time_constraints"] = True
		return EnvironmentInfo(**data)

	def determine_strategy(self, context: CommunicationContext) -> AdaptationStrategy:
		strategy = AdaptationStrategy()

		if context.is_complex_task():
			strategy.communication_style = "detailed"
			strategy.detail_level = "high"
			strategy.response_pattern = "structured"
			strategy.adaptation_priority.extend(["clarity", "completeness"])
		elif context.is_simple_task():
			strategy.communication_style = "concise"
			strategy.detail_level = "minimal"
			strategy.response_pattern = "direct"
			strategy.adaptation_priority.extend(["brevity", "efficiency"])

		if context.is_verbose():
			strategy.detail_level = "high"
			strategy.response_pattern = "comprehensive"
			strategy.adaptation_priority.insert(0, "completeness")
		elif context.is_concise():
			strategy.detail_level = "minimal"
			strategy.response_pattern = "direct"
			strategy.adaptation_priority.insert(0, "brevity")

		if context.environment_info.time_constraints:
			strategy.response_pattern = "prioritized"
			strategy.adaptation_priority.insert(0, "efficiency")

		if context.environment_info.terminal_width < NARROW_TERMINAL:
			strategy.adaptation_priority.append("mobile-friendly")

		return strategy

	# -- adaptation ------------------------------------------------------

	def register_adaptation_rule(self, message_type: Union[MessageType, str], rule: AdaptationRule) -> None:
		message_type = MessageType(message_type)
		self._rules[message_type] = self._rules.get(message_type, ()) + (rule,)

	def adapt_communication_style(
		self,
		context: CommunicationContext,
		message_type: Union[MessageType, str],
		content: dict[str, Any],
	) -> AdaptationResult:
		"""
		Apply every matching adaptation rule to a content dict.

		The original dict is left untouched. Applying the result again yields
		the same adapted content.
		"""
		adjustments = collect_adjustments(context, message_type, self._rules)
		adapted = copy.deepcopy(content)

		if "shorten" in adjustments["length"]:
			self._shorten(adapted)
		elif "expand" in adjustments["length"]:
			self._expand(adapted)

		for adjustment in adjustments["format"]:
			if adjustment == "add_structure":
				adapted.setdefault("structure", {
					"overview": True,
					"steps": True,
					"summary": True,
					"next_actions": True,
				})
			elif adjustment == "simplify_format" and isinstance(adapted.get("formatting"), dict):
				adapted["formatting"].update({"use_bold": False, "use_italics": False, "bullet_points": "simple"})
			elif adjustment == "add_examples":
				if "examples" not in adapted and context.user_preferences.example_preference != "none":
					adapted["examples"] = list(DEFAULT_EXAMPLES)

		logger.debug(f"Communication adapted for {getattr(message_type, 'value', message_type)}: {adjustments}")
		return AdaptationResult(
			original_content=content,
			adapted_content=adapted,
			style_recommendations=adjustments["style"],
			format_adjustments=adjustments["format"],
			length_adjustments=adjustments["length"],
		)

	def _shorten(self, content: dict[str, Any]) -> None:
		description = content.get("description")
		if isinstance(description, str) and len(description) > 200:
			sentences = description.split(".")
			content["description"] = ".".join(sentences[:2]) + ("." if len(sentences) > 2 else "")
		if isinstance(content.get("sections"), list):
			content["sections"] = content["sections"][:3]

	def _expand(self, content: dict[str, Any]) -> None:
		if content.get("description") and "expanded_description" not in content:
			content["expanded_description"] = content["description"] + EXPANDED_SUFFIX
		content.setdefault("additional_context", ADDITIONAL_CONTEXT)

	# -- recommendations -------------------------------------------------

	def get_recommendations(
		self,
		context: CommunicationContext,
		message_type: Union[MessageType, str] = MessageType.DEFAULT,
	) -> dict[str, Any]:
		"""Tone, length, detail, format, examples and timing advice. No side effects."""
		message_type = getattr(message_type, "value", message_type)
		prefs = context.user_preferences
		env = context.environment_info

		if message_type in ("error", "warning"):
			tone = "supportive"
		elif context.session_context.urgency == "high":
			tone = "direct"
		elif context.is_complex_task():
			tone = "professional"
		else:
			tone = prefs.communication_style or "professional"

		if env.time_constraints:
			length = "short"
		elif context.is_verbose() and context.is_complex_task():
			length = "long"
		elif context.is_concise() or context.is_simple_task():
			length = "short"
		else:
			length = "medium"

		if message_type == "error":
			detail = "high"
		elif not prefs.show_technical_details:
			detail = "low"
		elif context.is_complex_task():
			detail = "high"
		else:
			detail = "medium"

		fmt = {
			"structure": "sections",
			"bullets": True,
			"code_blocks": prefs.show_technical_details,
			"emphasis": True,
			"line_length": min(env.terminal_width - 5, 75),
		}
		if context.is_concise():
			fmt["structure"] = "minimal"
			fmt["emphasis"] = False
		if message_type == "simple_confirmation":
			fmt["structure"] = "single_line"
			fmt["bullets"] = False

		example_pref = prefs.example_preference or "some"
		if example_pref == "none":
			examples = {"include": False, "count": 0}
		elif message_type == "error" or context.is_complex_task():
			examples = {"include": True, "count": 3 if example_pref == "many" else 1}
		else:
			examples = {"include": example_pref != "few", "count": 2 if example_pref == "many" else 1}

		if env.time_constraints:
			timing = {"urgency": "immediate", "max_delay": 0}
		elif message_type in ("progress", "progress_update"):
			timing = {"urgency": "realtime", "max_delay": 1000}
		else:
			timing = {"urgency": "normal", "max_delay": 5000}

		return {
			"tone": tone,
			"length": length,
			"detail": detail,
			"format": fmt,
			"examples": examples,
			"timing": timing,
		}

	# -- user profiles ---------------------------------------------------

	def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
		return self._profiles.get(user_id)

	def update_user_profile(
		self,
		user_id: str,
		interaction: Optional[dict[str, Any]] = None,
		feedback: Optional[dict[str, Any]] = None,
	) -> UserProfile:
		"""
		Record an interaction and learn from explicit feedback signals.

		Recognised feedback keys: too_verbose, too_technical, need_more_detail,
		preferred_length, preferred_style, communication_rating (1-5).
		"""
		feedback = feedback or {}
		profile = self._profiles.get(user_id)
		if profile is None:
			profile = UserProfile(user_id=user_id)
			self._profiles[user_id] = profile

		profile.record(interaction or {}, feedback)
		prefs = profile.preferences
		defaults = UserPreferences()

		if feedback.get("too_verbose"):
			current = prefs.get("verbosity_level", defaults.verbosity_level)
			prefs["verbosity_level"] = Verbosity(_shift(current, VERBOSITY_SCALE, -1))
		if feedback.get("too_technical"):
			current = prefs.get("technical_detail", defaults.technical_detail)
			prefs["technical_detail"] = _shift(current, TECHNICAL_SCALE, -1)
		if feedback.get("need_more_detail"):
			current = prefs.get("verbosity_level", defaults.verbosity_level)
			prefs["verbosity_level"] = Verbosity(_shift(current, VERBOSITY_SCALE, 1))
		if feedback.get("preferred_length"):
			prefs["response_length"] = feedback["preferred_length"]
		if feedback.get("preferred_style"):
			prefs["communication_style"] = feedback["preferred_style"]
		if (feedback.get("communication_rating") or 0) >= 4:
			profile.adaptation_success += 1

		logger.debug(f"User profile updated for {user_id}: {profile.total_interactions} interactions")
		return profile

	# -- housekeeping ----------------------------------------------------

	def get_statistics(self) -> dict[str, Any]:
		successes = sum(p.adaptation_success for p in self._profiles.values())
		interactions = sum(p.total_interactions for p in self._profiles.values())
		return {
			"total_analyses": self.total_analyses,
			"average_analysis_time": self.average_analysis_time,
			"complexity_counts": dict(self.complexity_counts),
			"context_history_size": len(self._history),
			"user_profiles": len(self._profiles),
			"adaptation_rules": sum(len(rules) for rules in self._rules.values()),
			"adaptation_success_rate": successes / interactions * 100 if interactions else 0.0,
		}

	def cleanup(self, max_age: float) -> int:
		"""Drop analysis records and profiles untouched for longer than max_age seconds."""
		cutoff = cutoff_for(max_age)
		stale = [uid for uid, p in self._profiles.items() if p.last_updated < cutoff]
		for uid in stale:
			del self._profiles[uid]
		purged = len(stale) + self._history.purge_older_than(cutoff)
		if purged:
			logger.info(f"Context cleanup removed {purged} entries")
		return purged
