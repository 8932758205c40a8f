"""Tests for the communication orchestrator facade."""

from datetime import datetime, timedelta

import pytest

from comms_orchestrator.communication.handoff_planner import HandoffValidation
from comms_orchestrator.communication.orchestrator import CommunicationOrchestrator, get_orchestrator

from .helpers import make_config, make_task_result, two_step_milestones


@pytest.fixture
def orchestrator(tmp_path):
	return CommunicationOrchestrator(make_config(tmp_path))


class TestFinalResponse:
	@pytest.mark.asyncio
	async def test_standard_response(self, orchestrator):
		response = await orchestrator.format_final_response(make_task_result(outputs=1))
		assert not response.degraded
		assert [s.title for s in response.sections] == ["Task Completed", "Outputs"]
		stats = orchestrator.get_system_statistics()
		assert stats["system"]["total_communications"] == 1
		assert stats["system"]["degradations"] == 0

	@pytest.mark.asyncio
	async def test_handoff_and_progress_sections(self, orchestrator):
		orchestrator.tracker.initialize_progress("t1", ["A", "B"])
		orchestrator.tracker.complete_milestone("t1", "milestone_0")
		response = await orchestrator.format_final_response(
			make_task_result(outputs=1),
			options={"include_handoff": True, "progress_task_id": "t1"},
		)
		titles = [s.title for s in response.sections]
		assert "Next Steps" in titles
		assert titles[-1] == "Progress Status"
		assert "Progress: 50.0% complete" in response.render()

	@pytest.mark.asyncio
	async def test_unknown_progress_task_skipped(self, orchestrator):
		response = await orchestrator.format_final_response(
			make_task_result(), options={"progress_task_id": "missing"},
		)
		assert not response.degraded
		assert "Progress Status" not in [s.title for s in response.sections]

	@pytest.mark.asyncio
	async def test_progress_section_failure_is_omitted(self, orchestrator):
		def broken(task_id):
			raise RuntimeError("graph store unavailable")

		orchestrator.tracker.get_graph = broken
		response = await orchestrator.format_final_response(
			make_task_result(), options={"progress_task_id": "t1"},
		)
		assert not response.degraded
		assert "Progress Status" not in [s.title for s in response.sections]

	@pytest.mark.asyncio
	async def test_concise_user_gets_flat_sections(self, orchestrator):
		response = await orchestrator.format_final_response(
			make_task_result(outputs=1, changes=1),
			{"user": {"experience_level": "expert"}, "task": {"type": "architecture"}},
		)
		assert all(s.level <= 2 for s in response.sections)

	@pytest.mark.asyncio
	async def test_failure_degrades(self, orchestrator):
		response = await orchestrator.format_final_response(
			make_task_result(), options={"template": "does_not_exist"},
		)
		assert response.degraded
		assert response.render() == "Task completed: Add login endpoint"
		assert len(orchestrator.degradations) == 1
		assert orchestrator.degradations[0].operation == "format_final_response"


class TestProgress:
	@pytest.mark.asyncio
	async def test_initialize(self, orchestrator):
		result = await orchestrator.initialize_progress_tracking("t1", two_step_milestones(), {"current_focus": "Design"})
		assert result["tracking_enabled"] is True
		assert len(result["progress"]["milestones"]) == 2

	@pytest.mark.asyncio
	async def test_initialize_failure(self, orchestrator):
		result = await orchestrator.initialize_progress_tracking("t1", [42])
		assert result["tracking_enabled"] is False
		assert orchestrator.get_system_statistics()["system"]["degradations"] == 1

	@pytest.mark.asyncio
	async def test_real_time_updates(self, orchestrator):
		await orchestrator.initialize_progress_tracking("t1", ["A"], {"enable_real_time": True, "update_interval": 60})
		assert orchestrator.tracker.real_time_enabled
		await orchestrator.shutdown()
		assert not orchestrator.tracker.real_time_enabled

	@pytest.mark.asyncio
	async def test_update_completes_milestone(self, orchestrator):
		await orchestrator.initialize_progress_tracking("t1", two_step_milestones())
		assert await orchestrator.update_progress("t1", "milestone_0", 100) is None
		graph = orchestrator.tracker.get_graph("t1")
		assert graph.get_milestone("milestone_0").is_completed
		assert graph.overall_progress == 50.0

	@pytest.mark.asyncio
	async def test_full_progress_keeps_completion_data(self, orchestrator):
		await orchestrator.initialize_progress_tracking("t1", two_step_milestones())
		await orchestrator.update_progress("t1", "milestone_0", 100, {"completion_data": {"reviewer": "ann"}})
		graph = orchestrator.tracker.get_graph("t1")
		milestone = graph.get_milestone("milestone_0")
		assert milestone.is_completed
		assert milestone.metadata["reviewer"] == "ann"
		assert milestone.started_at is not None
		assert graph.current_focus == "Write migrations"

	@pytest.mark.asyncio
	async def test_attention_failure_omits_section(self, orchestrator, monkeypatch):
		import comms_orchestrator.communication.orchestrator as module

		await orchestrator.initialize_progress_tracking("t1", two_step_milestones())
		orchestrator.tracker.start_milestone("t1", "milestone_0")
		monkeypatch.setattr(module, "OVERDUE_FACTOR", None)
		response = await orchestrator.generate_progress_report("t1")
		assert not response.degraded
		assert "Attention" not in [s.title for s in response.sections]

	@pytest.mark.asyncio
	async def test_update_with_report(self, orchestrator):
		await orchestrator.initialize_progress_tracking("t1", two_step_milestones())
		response = await orchestrator.update_progress("t1", "milestone_0", 40, {"generate_report": True})
		assert "Overall progress: 20.0%" in response.render()

	@pytest.mark.asyncio
	async def test_update_unknown_task_degrades(self, orchestrator):
		response = await orchestrator.update_progress("missing", "milestone_0", 40)
		assert response.degraded
		assert response.sections[0].title == "Progress Update"
		assert orchestrator.degradations[0].operation == "update_progress"

	@pytest.mark.asyncio
	async def test_report_sections(self, orchestrator):
		await orchestrator.initialize_progress_tracking("t1", two_step_milestones())
		milestone = orchestrator.tracker.start_milestone("t1", "milestone_0")
		milestone.started_at = datetime.now() - timedelta(seconds=60)

		response = await orchestrator.generate_progress_report(
			"t1", options={"include_predictions": True, "include_next_steps": True},
		)
		titles = [s.title for s in response.sections]
		assert titles[0] == "Progress Summary"
		assert "Forecast" in titles
		assert "Attention" in titles
		assert "Next Milestone" not in titles

	@pytest.mark.asyncio
	async def test_report_next_milestone(self, orchestrator):
		await orchestrator.initialize_progress_tracking("t1", two_step_milestones())
		response = await orchestrator.generate_progress_report("t1", options={"include_next_steps": True})
		assert "Continue with: Design schema" in response.render()

	@pytest.mark.asyncio
	async def test_report_unknown_task_degrades(self, orchestrator):
		response = await orchestrator.generate_progress_report("missing")
		assert response.degraded
		assert response.render() == "# Progress Update\n\nProgress report generation encountered an issue."


class TestHandoff:
	@pytest.mark.asyncio
	async def test_instructions(self, orchestrator):
		response = await orchestrator.create_handoff_instructions(make_task_result(outputs=1))
		titles = [s.title for s in response.sections]
		assert titles[:2] == ["Next Actions", "Validation Steps"]
		assert not response.degraded

	@pytest.mark.asyncio
	async def test_incomplete_handoff_warning(self, orchestrator):
		orchestrator.handoffs.validate_handoff_completeness = lambda handoff: _incomplete()
		response = await orchestrator.create_handoff_instructions(
			make_task_result(), options={"include_validation": True},
		)
		assert response.sections[-1].title == "Handoff Validation"
		assert "Handoff completeness: 25/100" in response.sections[-1].content


def _incomplete():
	return HandoffValidation(is_complete=False, missing_elements=["Context information missing"], score=25)


class TestCollaboration:
	@pytest.mark.asyncio
	async def test_full_round(self, orchestrator):
		request = await orchestrator.facilitate_collaboration(
			"s1", make_task_result(outputs=1), ["Does the output format work?"],
		)
		assert "Does the output format work?" in request.render()

		response = await orchestrator.process_collaborative_feedback(
			"s1", {"feedback_0": "yes looks great"}, {"generate_handoff": True},
		)
		titles = [s.title for s in response.sections]
		assert titles[:2] == ["Feedback Received", "Next Steps"]
		assert "Next Actions" in titles

		summary = await orchestrator.complete_collaboration("s1")
		assert "Iterations: 1" in summary.render()
		assert orchestrator.get_system_statistics()["system"]["active_communications"] == 0

	@pytest.mark.asyncio
	async def test_old_session_with_recent_feedback_survives_cleanup(self, orchestrator):
		await orchestrator.facilitate_collaboration("s1", make_task_result(), ["Does the output format work?"])
		orchestrator.collaboration.get_session("s1").created_at = datetime.now() - timedelta(hours=2)
		orchestrator.cleanup(3600)
		response = await orchestrator.process_collaborative_feedback("s1", {"feedback_0": "yes looks great"})
		assert not response.degraded
		assert orchestrator.get_system_statistics()["system"]["active_communications"] == 1

	@pytest.mark.asyncio
	async def test_idle_session_removed_by_cleanup(self, orchestrator):
		await orchestrator.facilitate_collaboration("s1", make_task_result(), ["Does the output format work?"])
		orchestrator.collaboration.get_session("s1").last_updated = datetime.now() - timedelta(hours=2)
		assert orchestrator.cleanup(3600) >= 1
		assert orchestrator.get_system_statistics()["system"]["active_communications"] == 0
		response = await orchestrator.process_collaborative_feedback("s1", {"feedback_0": "yes"})
		assert response.degraded

	@pytest.mark.asyncio
	async def test_follow_up_questions(self, orchestrator):
		await orchestrator.facilitate_collaboration("s1", make_task_result(), ["Which cache?"])
		response = await orchestrator.process_collaborative_feedback("s1", {"feedback_0": "I suggest redis instead"})
		assert "Additional Questions" in [s.title for s in response.sections]

	@pytest.mark.asyncio
	async def test_unknown_session_degrades(self, orchestrator):
		response = await orchestrator.process_collaborative_feedback("missing", {"feedback_0": "yes"})
		assert response.degraded
		assert response.sections[0].title == "Feedback Processing Error"
		assert orchestrator.degradations[-1].operation == "process_collaborative_feedback"

	@pytest.mark.asyncio
	async def test_malformed_points_degrade(self, orchestrator):
		response = await orchestrator.facilitate_collaboration("s1", make_task_result(), [{"title": "no question"}])
		assert response.degraded
		assert response.sections[0].title == "Collaboration Request"


class TestHousekeeping:
	@pytest.mark.asyncio
	async def test_recommendations(self, orchestrator):
		recs = await orchestrator.get_communication_recommendations({"task": {"type": "architecture"}}, "error")
		assert recs["tone"] == "supportive"

	def test_profile_update(self, orchestrator):
		profile = orchestrator.update_user_profile("u1", feedback={"too_verbose": True})
		assert profile.preferences["verbosity_level"] == "concise"

	def test_statistics_keys(self, orchestrator):
		assert set(orchestrator.get_system_statistics()) == {
			"system",
			"response_composer",
			"progress_tracker",
			"collaboration_engine",
			"context_analyzer",
			"handoff_planner",
		}

	@pytest.mark.asyncio
	async def test_default_cleanup_uses_configured_ages(self, tmp_path):
		orchestrator = CommunicationOrchestrator(make_config(tmp_path, collaboration_max_age=60, handoff_max_age=60))
		await orchestrator.facilitate_collaboration("s1", make_task_result(), ["Which cache?"])
		await orchestrator.initialize_progress_tracking("t1", ["A"])
		orchestrator.collaboration.get_session("s1").last_updated = datetime.now() - timedelta(minutes=5)
		orchestrator.cleanup()
		assert orchestrator.collaboration.get_statistics()["active_sessions"] == 0
		assert orchestrator.tracker.has_task("t1")

	@pytest.mark.asyncio
	async def test_cleanup_counts_removed(self, orchestrator):
		await orchestrator.initialize_progress_tracking("old", ["A"])
		await orchestrator.initialize_progress_tracking("fresh", ["A"])
		orchestrator.tracker.get_graph("old").last_updated = datetime.now() - timedelta(days=2)
		assert orchestrator.cleanup() == 1
		assert orchestrator.tracker.has_task("fresh")

	def test_singleton(self, tmp_path, monkeypatch):
		import comms_orchestrator.communication.orchestrator as module

		monkeypatch.setattr(module, "_orchestrator", None)
		first = get_orchestrator(make_config(tmp_path))
		assert get_orchestrator() is first
