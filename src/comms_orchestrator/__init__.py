"""comms-orchestrator - Adaptive communication and progress orchestration for task-executing agents."""

from .communication import (
	CollaborationEngine,
	CommunicationOrchestrator,
	ContextAnalyzer,
	HandoffPlanner,
	ProgressTracker,
	ResponseComposer,
	get_orchestrator,
)
from .errors import CommsError, NotFoundError, SessionStateError, TransientDegradation, ValidationError

__version__ = "0.1.0"

__all__ = [
	"CommunicationOrchestrator",
	"get_orchestrator",
	"ContextAnalyzer",
	"ResponseComposer",
	"ProgressTracker",
	"CollaborationEngine",
	"HandoffPlanner",
	"CommsError",
	"NotFoundError",
	"ValidationError",
	"SessionStateError",
	"TransientDegradation",
]
