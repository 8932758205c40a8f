"""Models module - Value types shared by the communication engines."""

from .context import (
	AdaptationStrategy,
	CommunicationContext,
	EnvironmentInfo,
	SessionContext,
	TaskComplexity,
	UserPreferences,
	UserProfile,
	Verbosity,
)
from .handoff import (
	ContinuationOption,
	HandoffInstructions,
	HandoffProtocol,
	NextAction,
	Recommendation,
	Requirement,
	TransitionType,
	ValidationStep,
)
from .progress import Milestone, MilestoneStatus, ProgressGraph, ProgressReport
from .response import FormattedResponse, Section, SectionType
from .task import TaskChange, TaskResult, TaskStatus

__all__ = [
	"TaskResult",
	"TaskStatus",
	"TaskChange",
	"Milestone",
	"MilestoneStatus",
	"ProgressGraph",
	"ProgressReport",
	"FormattedResponse",
	"Section",
	"SectionType",
	"CommunicationContext",
	"TaskComplexity",
	"Verbosity",
	"UserPreferences",
	"EnvironmentInfo",
	"SessionContext",
	"AdaptationStrategy",
	"UserProfile",
	"HandoffInstructions",
	"HandoffProtocol",
	"NextAction",
	"ValidationStep",
	"ContinuationOption",
	"Recommendation",
	"Requirement",
	"TransitionType",
]
