"""Communication module - Context analysis, composition, progress, collaboration and handoffs."""

from .adaptation_rules import AdaptationRule, Adjustment, MessageType
from .collaboration import CollaborationEngine, CollaborationStatus, FeedbackPoint, IterationPlan
from .context_analyzer import AdaptationResult, ContextAnalyzer
from .handoff_planner import HandoffPlanner, HandoffValidation
from .orchestrator import CommunicationOrchestrator, get_orchestrator
from .progress_tracker import ProgressTracker
from .response_composer import CLIConstraints, ResponseComposer

__all__ = [
	"CommunicationOrchestrator",
	"get_orchestrator",
	"ContextAnalyzer",
	"AdaptationResult",
	"AdaptationRule",
	"Adjustment",
	"MessageType",
	"ResponseComposer",
	"CLIConstraints",
	"ProgressTracker",
	"CollaborationEngine",
	"CollaborationStatus",
	"FeedbackPoint",
	"IterationPlan",
	"HandoffPlanner",
	"HandoffValidation",
]
