"""
Progress models - milestones, per-task milestone graphs and reports.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from .response import FormattedResponse


class MilestoneStatus(str, Enum):
	"""Lifecycle of a milestone."""
	PENDING = "pending"
	IN_PROGRESS = "in_progress"
	COMPLETED = "completed"


class Blocker(BaseModel):
	"""Something preventing a milestone from moving forward."""
	description: str
	added_at: datetime = Field(default_factory=datetime.now)


class Milestone(BaseModel):
	"""
	A unit of progress inside a task.

	status == COMPLETED exactly when progress == 100. completed_at is set once,
	on the transition into COMPLETED.
	"""
	id: str
	name: str
	description: str = Field(default="")
	status: MilestoneStatus = Field(default=MilestoneStatus.PENDING)
	progress: float = Field(default=0.0, ge=0, le=100)
	estimated_time: float = Field(default=0.0, description="Estimated duration in seconds")
	actual_time: float = Field(default=0.0, description="Measured duration in seconds")
	dependencies: list[str] = Field(default_factory=list, description="Milestone ids this depends on")
	blockers: list[Blocker] = Field(default_factory=list)
	metadata: dict[str, Any] = Field(default_factory=dict)
	created_at: datetime = Field(default_factory=datetime.now)
	started_at: Optional[datetime] = Field(default=None)
	completed_at: Optional[datetime] = Field(default=None)
	last_updated: datetime = Field(default_factory=datetime.now)

	@property
	def is_completed(self) -> bool:
		return self.status == MilestoneStatus.COMPLETED

	@property
	def is_in_progress(self) -> bool:
		return self.status == MilestoneStatus.IN_PROGRESS

	@property
	def is_blocked(self) -> bool:
		return bool(self.blockers)

	@property
	def score(self) -> float:
		"""Contribution to overall progress."""
		if self.is_completed:
			return 100.0
		if self.is_in_progress:
			return self.progress
		return 0.0

	def start(self) -> bool:
		"""Move a pending milestone to in-progress. Returns False otherwise."""
		if self.status != MilestoneStatus.PENDING:
			return False
		now = datetime.now()
		self.status = MilestoneStatus.IN_PROGRESS
		self.started_at = now
		self.last_updated = now
		return True

	def complete(self) -> bool:
		"""Mark the milestone completed. Idempotent; returns False when already completed."""
		if self.is_completed:
			return False
		now = datetime.now()
		self.status = MilestoneStatus.COMPLETED
		self.progress = 100.0
		self.completed_at = now
		self.last_updated = now
		if self.started_at is not None:
			self.actual_time = (now - self.started_at).total_seconds()
		return True

	def update_progress(self, progress: float) -> None:
		"""
		Set progress, clamped to [0, 100].

		A positive value starts a pending milestone and 100 completes it.
		Completed milestones are left untouched.
		"""
		if self.is_completed:
			return
		progress = max(0.0, min(100.0, float(progress)))
		if progress >= 100:
			if self.started_at is None:
				self.start()
			self.complete()
			return
		if progress > 0 and self.status == MilestoneStatus.PENDING:
			self.start()
		self.progress = progress
		self.last_updated = datetime.now()

	def add_blocker(self, description: str) -> Blocker:
		blocker = Blocker(description=description)
		self.blockers.append(blocker)
		self.last_updated = datetime.now()
		return blocker

	def remove_blocker(self, index: int) -> Optional[Blocker]:
		if 0 <= index < len(self.blockers):
			self.last_updated = datetime.now()
			return self.blockers.pop(index)
		return None

	def get_duration(self, now: Optional[datetime] = None) -> float:
		"""Seconds spent so far (or in total once completed)."""
		if self.started_at is None:
			return 0.0
		end = self.completed_at or now or datetime.now()
		return (end - self.started_at).total_seconds()


class ProgressGraph(BaseModel):
	"""Ordered milestones for one task plus derived overall progress."""
	task_id: str
	milestones: list[Milestone] = Field(default_factory=list)
	overall_progress: float = Field(default=0.0)
	current_focus: str = Field(default="")
	estimated_time_remaining: float = Field(default=0.0)
	created_at: datetime = Field(default_factory=datetime.now)
	last_updated: datetime = Field(default_factory=datetime.now)

	def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
		for milestone in self.milestones:
			if milestone.id == milestone_id:
				return milestone
		return None

	def recalculate(self) -> None:
		"""Recompute overall progress and remaining estimate."""
		if self.milestones:
			total = sum(m.score for m in self.milestones)
			self.overall_progress = total / len(self.milestones)
		else:
			self.overall_progress = 0.0
		self.estimated_time_remaining = sum(
			m.estimated_time * (100 - m.progress) / 100
			for m in self.milestones
			if not m.is_completed
		)
		self.last_updated = datetime.now()

	@property
	def completed(self) -> list[Milestone]:
		return [m for m in self.milestones if m.is_completed]

	@property
	def in_progress(self) -> list[Milestone]:
		return [m for m in self.milestones if m.is_in_progress]

	@property
	def pending(self) -> list[Milestone]:
		return [m for m in self.milestones if m.status == MilestoneStatus.PENDING]

	@property
	def blocked(self) -> list[Milestone]:
		return [m for m in self.milestones if m.is_blocked]

	def dependencies_met(self, milestone: Milestone) -> bool:
		"""True when every known dependency is completed. Unknown ids are ignored."""
		for dep in milestone.dependencies:
			other = self.get_milestone(dep)
			if other is not None and not other.is_completed:
				return False
		return True

	def ready_milestones(self) -> list[Milestone]:
		"""Pending milestones that can start now."""
		return [m for m in self.pending if self.dependencies_met(m)]

	def get_next_milestone(self) -> Optional[Milestone]:
		ready = self.ready_milestones()
		return ready[0] if ready else None


class ProgressSummary(BaseModel):
	"""Headline numbers of a progress report."""
	overall_progress: float
	milestones_completed: int
	milestones_total: int
	current_focus: str = ""
	estimated_time_remaining: float = 0.0


class ProgressReport(BaseModel):
	"""Snapshot of a task's progress, optionally with analysis and forecasts."""
	task_id: str
	generated_at: datetime = Field(default_factory=datetime.now)
	summary: ProgressSummary
	completed: list[Milestone] = Field(default_factory=list)
	in_progress: list[Milestone] = Field(default_factory=list)
	pending: list[Milestone] = Field(default_factory=list)
	blocked: list[Milestone] = Field(default_factory=list)
	detailed_analysis: Optional[dict[str, Any]] = Field(default=None)
	predictions: Optional[dict[str, Any]] = Field(default=None)
	recommendations: list[dict[str, Any]] = Field(default_factory=list)

	@classmethod
	def from_graph(cls, graph: ProgressGraph) -> "ProgressReport":
		snapshot = graph.model_copy(deep=True)
		return cls(
			task_id=graph.task_id,
			summary=ProgressSummary(
				overall_progress=round(snapshot.overall_progress, 1),
				milestones_completed=len(snapshot.completed),
				milestones_total=len(snapshot.milestones),
				current_focus=snapshot.current_focus,
				estimated_time_remaining=snapshot.estimated_time_remaining,
			),
			completed=snapshot.completed,
			in_progress=snapshot.in_progress,
			pending=snapshot.pending,
			blocked=snapshot.blocked,
		)

	def render(self, format: str = "markdown") -> FormattedResponse:
		response = FormattedResponse(format=format)
		summary = self.summary
		lines = [
			f"Overall progress: {summary.overall_progress:.1f}%",
			f"Milestones: {summary.milestones_completed}/{summary.milestones_total} completed",
		]
		if summary.current_focus:
			lines.append(f"Current focus: {summary.current_focus}")
		response.add_section("Progress Summary", "\n".join(lines), 1)

		groups = (
			("Completed", self.completed),
			("In Progress", self.in_progress),
			("Upcoming", self.pending),
			("Blocked", self.blocked),
		)
		for title, milestones in groups:
			if milestones:
				response.add_section(title, "\n".join(_milestone_line(m) for m in milestones), 2)

		if self.recommendations:
			response.add_section(
				"Recommendations",
				"\n".join(f"- {r['description']}" for r in self.recommendations),
				2,
			)
		return response


def _milestone_line(milestone: Milestone) -> str:
	text = f"- {milestone.name}"
	if milestone.is_in_progress:
		text += f" ({milestone.progress:.0f}%)"
	if milestone.completed_at is not None:
		text += f" - completed at {milestone.completed_at.strftime('%H:%M:%S')}"
	if milestone.blockers:
		text += f" - BLOCKED: {milestone.blockers[0].description}"
	return text
