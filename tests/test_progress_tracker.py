"""Tests for milestone graphs, progress reports and the real-time sweep."""

from datetime import datetime, timedelta

import pytest

from comms_orchestrator.communication.progress_tracker import REALTIME_PROGRESS_CAP, ProgressTracker
from comms_orchestrator.errors import NotFoundError, ValidationError
from comms_orchestrator.models.progress import MilestoneStatus

from .helpers import two_step_milestones


@pytest.fixture
def tracker():
	return ProgressTracker()


class TestInitialize:
	def test_missing_ids_default_to_index(self, tracker):
		graph = tracker.initialize_progress("t1", ["Plan", {"name": "Build"}])
		assert [m.id for m in graph.milestones] == ["milestone_0", "milestone_1"]
		assert graph.overall_progress == 0.0

	def test_string_dependency_becomes_list(self, tracker):
		graph = tracker.initialize_progress("t1", [
			{"id": "a", "name": "A"},
			{"id": "b", "name": "B", "dependencies": "a"},
		])
		assert graph.get_milestone("b").dependencies == ["a"]

	def test_invalid_milestone_entry(self, tracker):
		with pytest.raises(ValidationError):
			tracker.initialize_progress("t1", [42])

	def test_overwrite_replaces_graph(self, tracker):
		tracker.initialize_progress("t1", ["Old"])
		tracker.initialize_progress("t1", ["New A", "New B"])
		assert len(tracker.get_graph("t1").milestones) == 2

	def test_remaining_time_from_estimates(self, tracker):
		graph = tracker.initialize_progress("t1", two_step_milestones())
		assert graph.estimated_time_remaining == 20


class TestOverallProgress:
	def test_completed_and_in_progress_average(self, tracker):
		tracker.initialize_progress("t1", ["A", "B", "C", "D"])
		tracker.complete_milestone("t1", "milestone_0")
		tracker.complete_milestone("t1", "milestone_1")
		tracker.update_milestone_progress("t1", "milestone_2", 50)
		tracker.update_milestone_progress("t1", "milestone_3", 50)
		assert tracker.get_graph("t1").overall_progress == 75.0

	def test_dependent_pair_reaches_three_quarters(self, tracker):
		tracker.initialize_progress("t1", two_step_milestones())
		tracker.complete_milestone("t1", "milestone_0")
		tracker.update_milestone_progress("t1", "milestone_1", 50)
		assert tracker.get_graph("t1").overall_progress == 75.0

	def test_pending_milestones_score_zero(self, tracker):
		tracker.initialize_progress("t1", ["A", "B"])
		tracker.complete_milestone("t1", "milestone_0")
		assert tracker.get_graph("t1").overall_progress == 50.0


class TestMilestoneTransitions:
	def test_progress_clamped_low(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		milestone = tracker.update_milestone_progress("t1", "milestone_0", -5)
		assert milestone.progress == 0.0
		assert milestone.status == MilestoneStatus.PENDING

	def test_progress_clamped_high_completes(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		milestone = tracker.update_milestone_progress("t1", "milestone_0", 150)
		assert milestone.progress == 100.0
		assert milestone.is_completed
		assert milestone.completed_at is not None

	def test_positive_progress_starts_milestone(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		milestone = tracker.update_milestone_progress("t1", "milestone_0", 30)
		assert milestone.is_in_progress
		assert milestone.started_at is not None
		assert tracker.get_graph("t1").current_focus == "A"

	def test_completion_is_idempotent(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		first = tracker.complete_milestone("t1", "milestone_0")
		completed_at = first.completed_at
		second = tracker.complete_milestone("t1", "milestone_0")
		assert second.completed_at == completed_at
		assert tracker.get_statistics()["completion_rate"] == 100.0

	def test_completed_milestone_ignores_progress(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		tracker.complete_milestone("t1", "milestone_0")
		milestone = tracker.update_milestone_progress("t1", "milestone_0", 10)
		assert milestone.progress == 100.0
		assert milestone.is_completed

	def test_completion_moves_focus_to_next_ready(self, tracker):
		tracker.initialize_progress("t1", two_step_milestones())
		tracker.start_milestone("t1", "milestone_0")
		tracker.complete_milestone("t1", "milestone_0")
		assert tracker.get_graph("t1").current_focus == "Write migrations"

	def test_reaching_full_progress_moves_focus(self, tracker):
		tracker.initialize_progress("t1", two_step_milestones())
		tracker.update_milestone_progress("t1", "milestone_0", 40)
		assert tracker.get_graph("t1").current_focus == "Design schema"
		tracker.update_milestone_progress("t1", "milestone_0", 100)
		assert tracker.get_graph("t1").current_focus == "Write migrations"
		assert tracker.get_statistics()["completion_rate"] == 50.0

	def test_blocker_add_and_remove(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		milestone = tracker.add_milestone_blocker("t1", "milestone_0", "Waiting on credentials")
		assert milestone.is_blocked
		tracker.remove_milestone_blocker("t1", "milestone_0", 0)
		assert not milestone.is_blocked
		with pytest.raises(ValidationError):
			tracker.remove_milestone_blocker("t1", "milestone_0", 0)

	def test_unknown_task(self, tracker):
		with pytest.raises(NotFoundError):
			tracker.update_milestone_progress("missing", "milestone_0", 10)

	def test_unknown_milestone(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		with pytest.raises(NotFoundError):
			tracker.start_milestone("t1", "nope")


class TestCriticalPath:
	def test_execution_order(self, tracker):
		tracker.initialize_progress("t1", [
			{"id": "c", "name": "C", "dependencies": ["b"]},
			{"id": "a", "name": "A"},
			{"id": "b", "name": "B", "dependencies": ["a"]},
			{"id": "d", "name": "D", "dependencies": ["a"]},
		])
		assert tracker.get_critical_path("t1") == ["a", "b", "c"]

	def test_no_dependencies(self, tracker):
		tracker.initialize_progress("t1", ["A", "B"])
		assert tracker.get_critical_path("t1") == []

	def test_cycle_is_tolerated(self, tracker):
		tracker.initialize_progress("t1", [
			{"id": "a", "name": "A", "dependencies": ["b"]},
			{"id": "b", "name": "B", "dependencies": ["a"]},
		])
		path = tracker.get_critical_path("t1")
		assert len(path) == 2
		assert tracker.analyze_progress("t1")["has_dependency_cycle"] is True

	@pytest.mark.asyncio
	async def test_fully_ordered_graph(self, tracker):
		milestones = [
			{"id": f"m_{i}", "name": f"Step {i}", "dependencies": [f"m_{j}" for j in range(i)]}
			for i in range(40)
		]
		tracker.initialize_progress("t1", milestones)
		assert tracker.get_critical_path("t1") == [f"m_{i}" for i in range(40)]
		report = await tracker.generate_progress_report("t1", include_detailed_analysis=True)
		assert len(report.detailed_analysis["critical_path"]) == 40
		assert any(r["type"] == "dependency_optimization" for r in report.recommendations)

	def test_unknown_dependency_ignored(self, tracker):
		graph = tracker.initialize_progress("t1", [{"id": "a", "name": "A", "dependencies": ["ghost"]}])
		assert graph.get_next_milestone().id == "a"


class TestRealTimeSweep:
	def test_caps_below_completion(self, tracker):
		tracker.initialize_progress("t1", [{"name": "A", "estimated_time": 10}])
		milestone = tracker.start_milestone("t1", "milestone_0")
		now = milestone.started_at + timedelta(seconds=60)
		assert tracker.process_real_time_updates(now) == 1
		assert milestone.progress == REALTIME_PROGRESS_CAP
		assert milestone.is_in_progress

	def test_never_moves_backwards(self, tracker):
		tracker.initialize_progress("t1", [{"name": "A", "estimated_time": 100}])
		milestone = tracker.update_milestone_progress("t1", "milestone_0", 60)
		now = milestone.started_at + timedelta(seconds=10)
		assert tracker.process_real_time_updates(now) == 0
		assert milestone.progress == 60

	def test_skips_without_estimate(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		milestone = tracker.start_milestone("t1", "milestone_0")
		assert tracker.process_real_time_updates(milestone.started_at + timedelta(hours=1)) == 0

	@pytest.mark.asyncio
	async def test_start_and_stop(self, tracker):
		await tracker.start_real_time_updates(interval=60)
		assert tracker.real_time_enabled
		await tracker.stop_real_time_updates()
		assert not tracker.real_time_enabled


class TestReports:
	@pytest.mark.asyncio
	async def test_report_groups(self, tracker):
		tracker.initialize_progress("t1", two_step_milestones(), current_focus="Design schema")
		tracker.update_milestone_progress("t1", "milestone_0", 40)
		tracker.add_milestone_blocker("t1", "milestone_1", "Schema not final")

		report = await tracker.generate_progress_report("t1")
		assert report.summary.milestones_total == 2
		assert report.summary.overall_progress == 20.0
		assert [m.id for m in report.in_progress] == ["milestone_0"]
		assert [m.id for m in report.blocked] == ["milestone_1"]
		assert report.detailed_analysis is None
		assert report.predictions is None

	@pytest.mark.asyncio
	async def test_report_is_a_snapshot(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		report = await tracker.generate_progress_report("t1")
		tracker.update_milestone_progress("t1", "milestone_0", 50)
		assert report.pending[0].progress == 0.0

	@pytest.mark.asyncio
	async def test_analysis_and_predictions(self, tracker):
		tracker.initialize_progress("t1", two_step_milestones())
		report = await tracker.generate_progress_report(
			"t1", include_detailed_analysis=True, include_predictions=True,
		)
		assert set(report.detailed_analysis) >= {"efficiency", "bottlenecks", "trends", "critical_path"}
		assert report.detailed_analysis["trends"]["trend"] == "insufficient_data"
		assert set(report.predictions) == {"completion", "next_milestones", "potential_delays"}

	@pytest.mark.asyncio
	async def test_rendered_report(self, tracker):
		tracker.initialize_progress("t1", ["A", "B"], current_focus="A")
		tracker.complete_milestone("t1", "milestone_0")
		report = await tracker.generate_progress_report("t1", include_recommendations=False)
		text = report.render().render()
		assert text.startswith("# Progress Summary")
		assert "Overall progress: 50.0%" in text
		assert "## Completed" in text
		assert "## Upcoming" in text

	@pytest.mark.asyncio
	async def test_unknown_task(self, tracker):
		with pytest.raises(NotFoundError):
			await tracker.generate_progress_report("missing")


class TestHousekeeping:
	def test_status(self, tracker):
		tracker.initialize_progress("t1", two_step_milestones())
		status = tracker.get_progress_status("t1")
		assert status["milestones_total"] == 2
		assert status["next_milestone"] == "milestone_0"

	def test_archive(self, tracker):
		tracker.initialize_progress("t1", ["A"])
		tracker.archive_progress("t1")
		assert not tracker.has_task("t1")
		assert tracker.get_statistics()["archived_tasks"] == 1
		with pytest.raises(NotFoundError):
			tracker.archive_progress("t1")

	def test_cleanup_removes_stale_graphs(self, tracker):
		tracker.initialize_progress("old", ["A"])
		tracker.initialize_progress("fresh", ["A"])
		tracker.get_graph("old").last_updated = datetime.now() - timedelta(days=2)
		assert tracker.cleanup(24 * 60 * 60) == 1
		assert tracker.has_task("fresh")
		assert not tracker.has_task("old")
