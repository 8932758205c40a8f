"""Tests for next actions, handoff instructions and handoff protocols."""

from datetime import datetime, timedelta

import pytest

from comms_orchestrator.communication.handoff_planner import (
	HandoffPlanner,
	is_deployable,
	prioritize,
	validation_command,
)
from comms_orchestrator.errors import NotFoundError, ValidationError
from comms_orchestrator.models.context import CommunicationContext
from comms_orchestrator.models.handoff import HandoffInstructions, NextAction, TransitionType

from .helpers import make_task_result


@pytest.fixture
def planner():
	return HandoffPlanner()


class TestHelpers:
	def test_prioritize_by_priority_then_time(self):
		actions = [
			NextAction(action="slow high", priority="high", estimated_time=30),
			NextAction(action="low", priority="low", estimated_time=1),
			NextAction(action="fast high", priority="high", estimated_time=5),
			NextAction(action="medium", priority="medium", estimated_time=10),
		]
		assert [a.action for a in prioritize(actions)] == ["fast high", "slow high", "medium", "low"]

	def test_deployable_from_output_key(self):
		result = make_task_result()
		result.add_output("build_artifact", "dist/app.whl")
		assert is_deployable(result)

	def test_deployable_from_change(self):
		result = make_task_result()
		result.add_change({"type": "file", "description": "Bump release version"})
		assert is_deployable(result)

	def test_plain_changes_not_deployable(self):
		assert not is_deployable(make_task_result(changes=2))

	@pytest.mark.parametrize("key,expected", [
		("setup_script", "Execute and test: x"),
		("config_path", "Validate configuration: x"),
		("api_endpoint", "Test API/service functionality: x"),
		("summary", "Verify output: x"),
	])
	def test_validation_command(self, key, expected):
		assert validation_command(key, "x") == expected


class TestNextActions:
	@pytest.mark.asyncio
	async def test_success_actions_sorted(self, planner):
		actions = await planner.generate_next_actions(make_task_result(outputs=1))
		assert actions[0].action == "Validate output_0 output"
		priorities = [a.priority for a in actions]
		assert priorities == sorted(priorities, key=lambda p: {"high": 0, "medium": 1}[p])
		assert any(a.category == "documentation" for a in actions)

	@pytest.mark.asyncio
	async def test_recovery_actions(self, planner):
		actions = await planner.generate_next_actions(make_task_result(failed=True))
		assert {a.category for a in actions} == {"recovery"}
		assert actions[0].action == "Plan recovery strategy"

	@pytest.mark.asyncio
	async def test_deployment_actions(self, planner):
		result = make_task_result()
		result.add_output("release_notes", "v1.2")
		actions = await planner.generate_next_actions(result)
		assert "Deploy to staging environment" in [a.action for a in actions]


class TestInstructions:
	@pytest.mark.asyncio
	async def test_validation_steps_per_output(self, planner):
		instructions = await planner.create_handoff_instructions(make_task_result(outputs=2))
		assert len(instructions.validation_steps) == 2
		assert all("health check" not in s.description for s in instructions.validation_steps)

	@pytest.mark.asyncio
	async def test_system_changes_add_health_check(self, planner):
		result = make_task_result(outputs=1)
		result.add_change({"type": "configuration", "description": "Raise pool size"})
		instructions = await planner.create_handoff_instructions(result)
		assert len(instructions.validation_steps) == 3
		assert instructions.validation_steps[-1].description == "Run system health check"

	@pytest.mark.asyncio
	async def test_explicit_next_actions(self, planner):
		instructions = await planner.create_handoff_instructions(
			make_task_result(), ["Open a pull request", {"action": "Tag release", "priority": "high"}],
		)
		assert [a.action for a in instructions.next_actions] == ["Open a pull request", "Tag release"]
		assert instructions.next_actions[1].id == "action_1"

	@pytest.mark.asyncio
	async def test_continuations_by_task_type(self, planner):
		instructions = await planner.create_handoff_instructions(make_task_result(task_type="bug_fix"))
		titles = [o.title for o in instructions.continuation_options]
		assert titles == ["Related Issues Investigation", "Testing Enhancement", "Documentation Improvement"]

	@pytest.mark.asyncio
	async def test_recommendations_follow_context(self, planner):
		result = make_task_result()
		result.duration = 45
		result.add_warning("Slow query")
		context = CommunicationContext()
		context.session_context.urgency = "high"
		instructions = await planner.create_handoff_instructions(result, context=context)
		texts = [r.text for r in instructions.recommendations]
		assert "Fast-track validation due to high urgency" in texts
		assert "Review warnings and assess their impact on system behavior" in texts
		assert "Consider optimization if this task will be run frequently" in texts

	@pytest.mark.asyncio
	async def test_sequential_ids(self, planner):
		first = await planner.create_handoff_instructions(make_task_result())
		second = await planner.create_handoff_instructions(make_task_result())
		assert (first.id, second.id) == ("handoff_1", "handoff_2")
		assert planner.get_handoff("handoff_2") is second

	@pytest.mark.asyncio
	async def test_render(self, planner):
		instructions = await planner.create_handoff_instructions(make_task_result(outputs=1))
		text = instructions.render().render()
		assert text.startswith("# Next Actions")
		assert "# Validation Steps" in text
		assert "Command: `Verify output: value 0`" in text


class TestProtocol:
	@pytest.mark.asyncio
	async def test_pause_protocol(self, planner):
		protocol = await planner.create_handoff_protocol(
			"agent", "reviewer", make_task_result(outputs=1), "pause",
			{"priority": "high", "custom_requirements": ["Ping the reviewer"]},
		)
		assert protocol.transition_type == TransitionType.PAUSE
		descriptions = [r.description for r in protocol.requirements]
		assert descriptions[2] == "Document current state and progress"
		assert descriptions[-1] == "Ping the reviewer"
		assert len(descriptions) == 5
		assert protocol.get_context_item("priority_level") == "high"
		assert protocol.get_context_item("outputs_generated") == 1
		assert protocol.instructions.next_actions

	@pytest.mark.asyncio
	async def test_unknown_transition(self, planner):
		with pytest.raises(ValidationError):
			await planner.create_handoff_protocol("a", "b", make_task_result(), "teleport")

	@pytest.mark.asyncio
	async def test_render_mandatory_first(self, planner):
		protocol = await planner.create_handoff_protocol("a", "b", make_task_result(), TransitionType.COMPLETE)
		text = protocol.render().render()
		assert text.startswith("# Work Handoff\n\nTransition type: complete")
		assert "**Perform final quality check**" in text

	@pytest.mark.asyncio
	async def test_transition_statistics(self, planner):
		await planner.create_handoff_protocol("a", "b", make_task_result(), "handover")
		assert planner.get_statistics()["transition_types"] == {"handover": 1}

	def test_statistics_keys(self, planner):
		assert set(planner.get_statistics()) == {
			"total_handoffs",
			"active_handoffs",
			"history_size",
			"successful_transitions",
			"average_handoff_time",
			"transition_types",
			"success_rate",
		}


class TestCompleteness:
	@pytest.mark.asyncio
	async def test_full_handoff_scores_100(self, planner):
		instructions = await planner.create_handoff_instructions(make_task_result(outputs=1))
		validation = planner.validate_handoff_completeness(instructions)
		assert validation.score == 100
		assert validation.is_complete
		assert validation.missing_elements == []

	def test_empty_handoff(self, planner):
		validation = planner.validate_handoff_completeness(
			HandoffInstructions(task_result=make_task_result(outputs=1))
		)
		assert validation.score == 0
		assert not validation.is_complete
		assert "Next actions not defined" in validation.missing_elements
		assert "Validation steps missing for outputs" in validation.missing_elements


class TestRecommendations:
	def test_architecture(self, planner):
		recs = planner.get_handoff_recommendations("architecture", make_task_result())
		assert recs["transition_type"] == "handover"
		assert recs["urgency"] == "high"

	def test_errors_and_urgency(self, planner):
		context = CommunicationContext()
		context.session_context.urgency = "high"
		recs = planner.get_handoff_recommendations("bug_fix", make_task_result(failed=True), context)
		assert recs["required_validations"][0] == "error_impact_assessment"
		assert recs["suggested_next_actions"][:2] == ["Immediate validation", "Fast-track review"]
		assert recs["risk_factors"] == ["Partial failure during execution"]

	def test_unknown_type(self, planner):
		recs = planner.get_handoff_recommendations("poetry", make_task_result())
		assert recs["transition_type"] == "continue"
		assert recs["required_validations"] == []


class TestExecution:
	@pytest.mark.asyncio
	async def test_completed_retires_handoff(self, planner):
		instructions = await planner.create_handoff_instructions(make_task_result())
		planner.track_handoff_execution(instructions.id, "in_progress")
		assert planner.get_handoff(instructions.id) is instructions
		record = planner.track_handoff_execution(instructions.id, "completed", {"rating": 5})
		assert record.task_id == "task-1"
		with pytest.raises(NotFoundError):
			planner.get_handoff(instructions.id)
		assert planner.get_statistics()["successful_transitions"] == 1

	def test_unknown_handoff(self, planner):
		with pytest.raises(NotFoundError):
			planner.track_handoff_execution("handoff_99", "completed")

	@pytest.mark.asyncio
	async def test_cleanup(self, planner):
		instructions = await planner.create_handoff_instructions(make_task_result())
		instructions.generated_at = datetime.now() - timedelta(days=8)
		assert planner.cleanup(7 * 24 * 60 * 60) == 1
		assert planner.get_statistics()["active_handoffs"] == 0
