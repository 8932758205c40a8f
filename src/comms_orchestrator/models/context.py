"""
Communication context models - who we are talking to, about what, and where.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

INTERACTION_LIMIT = 50
INTERACTION_TRIM_TO = 25


class TaskComplexity(str, Enum):
	"""Complexity band derived from the complexity score."""
	LOW = "low"
	MEDIUM = "medium"
	HIGH = "high"


class Verbosity(str, Enum):
	"""How much text the user wants."""
	CONCISE = "concise"
	NORMAL = "normal"
	VERBOSE = "verbose"


class UserPreferences(BaseModel):
	"""Resolved formatting preferences."""
	verbosity_level: Verbosity = Field(default=Verbosity.NORMAL)
	preferred_format: str = Field(default="markdown")
	include_timestamps: bool = Field(default=False)
	show_technical_details: bool = Field(default=True)
	max_response_length: int = Field(default=2000)
	communication_style: str = Field(default="professional")
	example_preference: str = Field(default="some", description="none, few, some or many")
	technical_detail: str = Field(default="medium")
	response_length: str = Field(default="medium")


class EnvironmentInfo(BaseModel):
	"""Where the response will be displayed."""
	cli: bool = Field(default=True)
	terminal_width: int = Field(default=80)
	color_support: bool = Field(default=True)
	platform: str = Field(default="unknown")
	session_type: str = Field(default="interactive")
	time_constraints: bool = Field(default=False)


class SessionContext(BaseModel):
	"""Facts about the current working session."""
	task_id: Optional[str] = Field(default=None)
	task_type: str = Field(default="general")
	session_start: datetime = Field(default_factory=datetime.now)
	user_experience: str = Field(default="intermediate")
	previous_interactions: int = Field(default=0)
	current_goal: Optional[str] = Field(default=None)
	urgency: str = Field(default="normal")


class AdaptationStrategy(BaseModel):
	"""The single style a response should follow."""
	communication_style: str = Field(default="standard")
	detail_level: str = Field(default="balanced")
	response_pattern: str = Field(default="comprehensive")
	interaction_mode: str = Field(default="guided")
	adaptation_priority: list[str] = Field(default_factory=list)


class CommunicationContext(BaseModel):
	"""Per-call context value; built by the context analyzer."""
	task_complexity: TaskComplexity = Field(default=TaskComplexity.MEDIUM)
	complexity_score: int = Field(default=0)
	user_preferences: UserPreferences = Field(default_factory=UserPreferences)
	environment_info: EnvironmentInfo = Field(default_factory=EnvironmentInfo)
	session_context: SessionContext = Field(default_factory=SessionContext)
	adaptation_strategy: AdaptationStrategy = Field(default_factory=AdaptationStrategy)
	interaction_history: list[dict[str, Any]] = Field(default_factory=list)
	created_at: datetime = Field(default_factory=datetime.now)

	def add_interaction(self, interaction: dict[str, Any]) -> None:
		self.interaction_history.append({**interaction, "timestamp": datetime.now().isoformat()})
		if len(self.interaction_history) > INTERACTION_LIMIT:
			self.interaction_history = self.interaction_history[-INTERACTION_TRIM_TO:]

	def is_verbose(self) -> bool:
		return self.user_preferences.verbosity_level == Verbosity.VERBOSE

	def is_concise(self) -> bool:
		return self.user_preferences.verbosity_level == Verbosity.CONCISE

	def is_complex_task(self) -> bool:
		return self.task_complexity == TaskComplexity.HIGH

	def is_simple_task(self) -> bool:
		return self.task_complexity == TaskComplexity.LOW

	def get_max_length(self) -> int:
		return self.user_preferences.max_response_length

	def should_show_technical_details(self) -> bool:
		return self.user_preferences.show_technical_details


class ProfileInteraction(BaseModel):
	"""One recorded interaction in a user profile."""
	interaction: dict[str, Any] = Field(default_factory=dict)
	feedback: dict[str, Any] = Field(default_factory=dict)
	timestamp: datetime = Field(default_factory=datetime.now)


class UserProfile(BaseModel):
	"""
	Learned preferences for one user.

	`preferences` only holds keys learned from explicit feedback signals, so
	unset keys fall through to lower-precedence sources.
	"""
	user_id: str
	preferences: dict[str, Any] = Field(default_factory=dict)
	history: list[ProfileInteraction] = Field(default_factory=list)
	adaptation_success: int = Field(default=0)
	total_interactions: int = Field(default=0)
	created_at: datetime = Field(default_factory=datetime.now)
	last_updated: datetime = Field(default_factory=datetime.now)

	def record(self, interaction: dict[str, Any], feedback: dict[str, Any]) -> None:
		self.history.append(ProfileInteraction(interaction=interaction, feedback=feedback))
		if len(self.history) > INTERACTION_LIMIT:
			self.history = self.history[-INTERACTION_TRIM_TO:]
		self.total_interactions += 1
		self.last_updated = datetime.now()
