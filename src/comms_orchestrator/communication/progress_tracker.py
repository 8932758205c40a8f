"""
Progress Tracker - Milestone graphs per task, reports and forecasts.

Responsibilities:
- Own one ProgressGraph per task id
- Apply milestone transitions and keep overall progress current
- Build progress reports with optional analysis, predictions and recommendations
- Optionally advance in-progress milestones from elapsed time (real-time sweep)
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from ..errors import NotFoundError, ValidationError
from ..history import DEFAULT_LIMIT, DEFAULT_TRIM_TO, BoundedHistory, cutoff_for
from ..models.progress import Milestone, ProgressGraph, ProgressReport
from . import progress_analysis as analysis

logger = logging.getLogger(__name__)

REALTIME_PROGRESS_CAP = 90.0


@dataclass
class ArchivedProgress:
	"""A graph moved out of the live map."""
	task_id: str
	graph: ProgressGraph
	timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class TrackerStats:
	total_reports: int = 0
	average_report_time: float = 0.0
	milestones_tracked: int = 0
	milestones_completed: int = 0


def _build_milestone(entry: Union[Milestone, dict, str], index: int) -> Milestone:
	if isinstance(entry, Milestone):
		return entry.model_copy(deep=True)
	if isinstance(entry, str):
		return Milestone(id=f"milestone_{index}", name=entry)
	if not isinstance(entry, dict):
		raise ValidationError(f"Invalid milestone entry at index {index}: {entry!r}")

	data = dict(entry)
	data.setdefault("id", f"milestone_{index}")
	if not data.get("id"):
		data["id"] = f"milestone_{index}"
	data.setdefault("name", data["id"])
	deps = data.get("dependencies") or []
	data["dependencies"] = [deps] if isinstance(deps, str) else list(deps)
	# Replayed entries may carry state; apply it through the transitions below
	status = data.pop("status", None)
	progress = data.pop("progress", None)
	milestone = Milestone(**data)
	if status == "completed":
		milestone.start()
		milestone.complete()
	elif status == "in_progress" or progress:
		milestone.start()
		if progress:
			milestone.update_progress(progress)
	return milestone


class ProgressTracker:
	"""
	Tracks milestone progress for many tasks.

	Graphs stay in memory until archived or swept by cleanup().
	"""

	def __init__(
		self,
		history_limit: int = DEFAULT_LIMIT,
		history_trim_to: int = DEFAULT_TRIM_TO,
	):
		self._graphs: dict[str, ProgressGraph] = {}
		self._history: BoundedHistory[ArchivedProgress] = BoundedHistory(history_limit, history_trim_to)
		self._realtime_task: Optional[asyncio.Task] = None
		self.stats = TrackerStats()

	# -- graph lifecycle -------------------------------------------------

	def initialize_progress(
		self,
		task_id: str,
		milestones: list[Union[Milestone, dict, str]],
		current_focus: str = "",
	) -> ProgressGraph:
		"""
		Create (or overwrite) the milestone graph for a task.

		Args:
			task_id: Task identifier
			milestones: Milestone names, dicts or models; a missing id becomes milestone_<index>
			current_focus: Initial focus text

		Returns:
			The new ProgressGraph
		"""
		graph = ProgressGraph(task_id=task_id, current_focus=current_focus)
		for index, entry in enumerate(milestones):
			graph.milestones.append(_build_milestone(entry, index))
		graph.recalculate()

		if analysis.has_dependency_cycle(graph):
			logger.warning(f"Dependency cycle in milestones for task {task_id}; chains will be cut at the cycle")

		if task_id in self._graphs:
			logger.info(f"Overwriting progress graph for task {task_id}")
		self._graphs[task_id] = graph
		self.stats.milestones_tracked += len(graph.milestones)
		logger.info(f"Initialized progress for task {task_id} with {len(graph.milestones)} milestones")
		return graph

	def get_graph(self, task_id: str) -> ProgressGraph:
		graph = self._graphs.get(task_id)
		if graph is None:
			raise NotFoundError("task", task_id)
		return graph

	def has_task(self, task_id: str) -> bool:
		return task_id in self._graphs

	def _get_milestone(self, task_id: str, milestone_id: str) -> tuple[ProgressGraph, Milestone]:
		graph = self.get_graph(task_id)
		milestone = graph.get_milestone(milestone_id)
		if milestone is None:
			raise NotFoundError("milestone", f"{task_id}/{milestone_id}")
		return graph, milestone

	# -- milestone transitions -------------------------------------------

	def start_milestone(self, task_id: str, milestone_id: str, start_data: Optional[dict] = None) -> Milestone:
		graph, milestone = self._get_milestone(task_id, milestone_id)
		if milestone.start():
			graph.current_focus = milestone.name
			logger.debug(f"Started milestone {milestone_id} of task {task_id}")
		if start_data:
			milestone.metadata.update(start_data)
		graph.recalculate()
		return milestone

	def update_milestone_progress(
		self,
		task_id: str,
		milestone_id: str,
		progress: float,
		metadata: Optional[dict[str, Any]] = None,
	) -> Milestone:
		"""
		Set a milestone's progress (clamped to [0, 100]).

		Raises:
			NotFoundError: unknown task or milestone
		"""
		graph, milestone = self._get_milestone(task_id, milestone_id)
		was_completed = milestone.is_completed
		milestone.update_progress(progress)
		if metadata:
			milestone.metadata.update(metadata)
		if milestone.is_in_progress:
			graph.current_focus = milestone.name
		if milestone.is_completed and not was_completed:
			self._finish_milestone(graph, milestone)
		graph.recalculate()
		return milestone

	def _finish_milestone(self, graph: ProgressGraph, milestone: Milestone) -> None:
		"""Bookkeeping after a milestone transitions to completed."""
		self.stats.milestones_completed += 1
		next_milestone = graph.get_next_milestone()
		graph.current_focus = next_milestone.name if next_milestone else ""
		logger.info(f"Completed milestone {milestone.id} of task {graph.task_id}")

	def complete_milestone(
		self,
		task_id: str,
		milestone_id: str,
		completion_data: Optional[dict[str, Any]] = None,
	) -> Milestone:
		"""Mark a milestone completed. A second call changes nothing."""
		graph, milestone = self._get_milestone(task_id, milestone_id)
		if milestone.complete():
			if completion_data:
				milestone.metadata.update(completion_data)
			self._finish_milestone(graph, milestone)
		graph.recalculate()
		return milestone

	def add_milestone_blocker(self, task_id: str, milestone_id: str, description: str) -> Milestone:
		graph, milestone = self._get_milestone(task_id, milestone_id)
		milestone.add_blocker(description)
		graph.recalculate()
		logger.info(f"Milestone {milestone_id} of task {task_id} blocked: {description}")
		return milestone

	def remove_milestone_blocker(self, task_id: str, milestone_id: str, index: int) -> Milestone:
		graph, milestone = self._get_milestone(task_id, milestone_id)
		if milestone.remove_blocker(index) is None:
			raise ValidationError(f"No blocker at index {index} on milestone {milestone_id}")
		graph.recalculate()
		return milestone

	# -- reporting -------------------------------------------------------

	async def generate_progress_report(
		self,
		task_id: str,
		include_detailed_analysis: bool = False,
		include_predictions: bool = False,
		include_recommendations: bool = True,
	) -> ProgressReport:
		"""
		Build a snapshot report for a task.

		Args:
			task_id: Task identifier
			include_detailed_analysis: Add efficiency, bottlenecks, trends and risks
			include_predictions: Add completion estimate, next milestones and delays
			include_recommendations: Add actionable recommendations

		Returns:
			ProgressReport
		"""
		started = datetime.now()
		graph = self.get_graph(task_id)
		report = ProgressReport.from_graph(graph)

		if include_detailed_analysis:
			report.detailed_analysis = self.analyze_progress(task_id)
		if include_predictions:
			report.predictions = {
				"completion": analysis.estimate_completion(graph),
				"next_milestones": analysis.predict_next_milestones(graph),
				"potential_delays": analysis.predict_delays(graph),
			}
		if include_recommendations:
			report.recommendations = analysis.build_recommendations(graph)

		elapsed = (datetime.now() - started).total_seconds()
		self.stats.total_reports += 1
		n = self.stats.total_reports
		self.stats.average_report_time += (elapsed - self.stats.average_report_time) / n
		return report

	def analyze_progress(self, task_id: str) -> dict[str, Any]:
		graph = self.get_graph(task_id)
		return {
			"efficiency": analysis.calculate_efficiency(graph),
			"bottlenecks": analysis.identify_bottlenecks(graph),
			"trends": analysis.analyze_trends(graph),
			"risk_factors": analysis.assess_risk_factors(graph),
			"critical_path": analysis.critical_path(graph),
			"has_dependency_cycle": analysis.has_dependency_cycle(graph),
		}

	def estimate_completion_time(self, task_id: str) -> dict[str, Any]:
		return analysis.estimate_completion(self.get_graph(task_id))

	def get_critical_path(self, task_id: str) -> list[str]:
		return analysis.critical_path(self.get_graph(task_id))

	def get_progress_status(self, task_id: str) -> dict[str, Any]:
		graph = self.get_graph(task_id)
		next_milestone = graph.get_next_milestone()
		return {
			"task_id": task_id,
			"overall_progress": graph.overall_progress,
			"current_focus": graph.current_focus,
			"milestones_total": len(graph.milestones),
			"milestones_completed": len(graph.completed),
			"milestones_in_progress": len(graph.in_progress),
			"milestones_blocked": len(graph.blocked),
			"next_milestone": next_milestone.id if next_milestone else None,
			"last_updated": graph.last_updated.isoformat(),
		}

	# -- real-time sweep -------------------------------------------------

	def process_real_time_updates(self, now: Optional[datetime] = None) -> int:
		"""
		Advance in-progress milestones from elapsed time.

		Progress moves toward min(90, elapsed / estimated * 100) and never
		backwards; the sweep never completes a milestone. Milestones without
		an estimate are skipped. Returns the number of milestones advanced.
		"""
		now = now or datetime.now()
		advanced = 0
		for graph in self._graphs.values():
			changed = False
			for milestone in graph.in_progress:
				if milestone.estimated_time <= 0:
					continue
				elapsed = milestone.get_duration(now)
				auto = min(REALTIME_PROGRESS_CAP, elapsed / milestone.estimated_time * 100)
				if auto > milestone.progress:
					milestone.update_progress(auto)
					changed = True
					advanced += 1
			if changed:
				graph.recalculate()
		return advanced

	async def start_real_time_updates(self, interval: float = 5.0) -> None:
		"""Start the background sweep. No-op when already running."""
		if self.real_time_enabled:
			return
		self._realtime_task = asyncio.create_task(self._real_time_loop(interval))
		logger.info(f"Real-time progress updates enabled (every {interval}s)")

	async def stop_real_time_updates(self) -> None:
		if self._realtime_task is None:
			return
		self._realtime_task.cancel()
		try:
			await self._realtime_task
		except asyncio.CancelledError:
			pass
		self._realtime_task = None
		logger.info("Real-time progress updates disabled")

	@property
	def real_time_enabled(self) -> bool:
		return self._realtime_task is not None and not self._realtime_task.done()

	async def _real_time_loop(self, interval: float) -> None:
		while True:
			try:
				await asyncio.sleep(interval)
				self.process_real_time_updates()
			except asyncio.CancelledError:
				break
			except Exception as e:
				logger.error(f"Real-time progress sweep failed: {e}")

	# -- housekeeping ----------------------------------------------------

	def archive_progress(self, task_id: str) -> ProgressGraph:
		"""Move a task's graph from the live map into the archive."""
		graph = self._graphs.pop(task_id, None)
		if graph is None:
			raise NotFoundError("task", task_id)
		self._history.append(ArchivedProgress(task_id=task_id, graph=graph))
		logger.info(f"Archived progress for task {task_id}")
		return graph

	def get_statistics(self) -> dict[str, Any]:
		tracked = self.stats.milestones_tracked
		return {
			"active_tasks": len(self._graphs),
			"archived_tasks": len(self._history),
			"total_reports": self.stats.total_reports,
			"average_report_time": self.stats.average_report_time,
			"milestones_tracked": tracked,
			"completion_rate": self.stats.milestones_completed / tracked * 100 if tracked else 0.0,
			"real_time_enabled": self.real_time_enabled,
		}

	def cleanup(self, max_age: float) -> int:
		"""Drop graphs and archive entries not updated within max_age seconds."""
		cutoff = cutoff_for(max_age)
		stale = [task_id for task_id, graph in self._graphs.items() if graph.last_updated < cutoff]
		for task_id in stale:
			del self._graphs[task_id]
		purged = len(stale) + self._history.purge_older_than(cutoff)
		if purged:
			logger.info(f"Progress cleanup removed {purged} entries")
		return purged
