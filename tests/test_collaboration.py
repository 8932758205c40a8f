"""Tests for collaboration sessions and feedback classification."""

from datetime import datetime, timedelta

import pytest

from comms_orchestrator.communication import feedback_classifier as classifier
from comms_orchestrator.communication.collaboration import (
	CollaborationEngine,
	CollaborationStatus,
	normalize_feedback_point,
)
from comms_orchestrator.errors import NotFoundError, SessionStateError, ValidationError

from .helpers import make_task_result


@pytest.fixture
def engine():
	return CollaborationEngine()


@pytest.fixture
def session(engine):
	return engine.create_session(
		"s1",
		make_task_result(outputs=1, changes=1),
		["Does the layout work for you?"],
	)


class TestClassifier:
	def test_first_matching_intent_wins(self):
		assert classifier.classify_intent("yes, but change the colour") == classifier.Intent.APPROVAL
		assert classifier.classify_intent("no thanks") == classifier.Intent.REJECTION
		assert classifier.classify_intent("I suggest a cache") == classifier.Intent.SUGGESTION
		assert classifier.classify_intent("ok") == classifier.Intent.NEUTRAL

	def test_word_boundaries(self):
		assert classifier.classify_intent("nothing to report") == classifier.Intent.NEUTRAL
		assert classifier.analyze_sentiment(["know your goods"]) == classifier.Sentiment.NEUTRAL

	def test_actionable(self):
		assert classifier.is_actionable("please update the README")
		assert not classifier.is_actionable("looks fine")

	def test_confidence_rules(self):
		assert classifier.assess_confidence("Option A", ["Option A", "Option B"]) == "high"
		assert classifier.assess_confidence("fine") == "low"
		assert classifier.assess_confidence("I am definitely happy with it") == "high"
		assert classifier.assess_confidence("perhaps we could wait") == "low"
		assert classifier.assess_confidence("the layout works for me") == "medium"

	def test_sentiment_ratio(self):
		assert classifier.analyze_sentiment(["great", "perfect"]) == classifier.Sentiment.POSITIVE
		assert classifier.analyze_sentiment(["bad and wrong"]) == classifier.Sentiment.NEGATIVE
		assert classifier.analyze_sentiment(["good but wrong"]) == classifier.Sentiment.NEUTRAL

	def test_effort_prefixes(self):
		assert classifier.estimate_effort("completely rework it") == 5
		assert classifier.estimate_effort("added a flag") == 3
		assert classifier.estimate_effort("update copy") == 2
		assert classifier.estimate_effort("tweak") == 1


class TestFeedbackPoints:
	def test_string_point(self):
		point = normalize_feedback_point("Is the API shape right?", 2)
		assert point.id == "feedback_2"
		assert point.title == "Feedback Point 3"

	def test_dict_point_with_question(self):
		point = normalize_feedback_point({"question": "Pick one", "options": ["A", "B"], "type": "choice"}, 0)
		assert point.description == "Pick one"
		assert point.options == ["A", "B"]

	@pytest.mark.parametrize("bad", ["   ", {"title": "No description"}, 7])
	def test_malformed_point(self, bad):
		with pytest.raises(ValidationError):
			normalize_feedback_point(bad, 0)

	def test_malformed_point_rejects_session(self, engine):
		with pytest.raises(ValidationError):
			engine.create_session("s1", make_task_result(), ["ok", {"title": "missing"}])
		with pytest.raises(NotFoundError):
			engine.get_session("s1")


class TestProcessFeedback:
	@pytest.mark.asyncio
	async def test_approval_round(self, engine, session):
		plan = await engine.process_feedback("s1", {"feedback_0": "yes looks great"})
		analysis = session.latest_round.analysis

		assert analysis.sentiment == classifier.Sentiment.POSITIVE
		assert len(analysis.approvals) == 1
		assert not analysis.action_items
		assert plan.requires_more_feedback is False
		assert plan.changes == []
		assert session.status == CollaborationStatus.READY_TO_PROCEED

	@pytest.mark.asyncio
	async def test_answers_keyed_by_title(self, engine, session):
		await engine.process_feedback("s1", {"Feedback Point 1": "yes looks great"})
		assert "feedback_0" in session.latest_round.analysis.responses

	@pytest.mark.asyncio
	async def test_rejection_creates_change_and_validation(self, engine, session):
		plan = await engine.process_feedback("s1", {"feedback_0": "No, change the button colour"})
		assert len(plan.changes) == 1
		assert plan.changes[0]["estimated_effort"] == 2
		assert plan.estimated_effort == 2
		assert plan.validations[0]["type"] == "acceptance_test"

	@pytest.mark.asyncio
	async def test_suggestion_adds_follow_up_point(self, engine, session):
		plan = await engine.process_feedback("s1", {"feedback_0": "I suggest a sidebar instead"})
		assert plan.requires_more_feedback
		follow_up = plan.new_feedback_points[0]
		assert follow_up.id == "feedback_1"
		assert follow_up.type == "choice"
		assert len(session.feedback_points) == 2
		assert session.status == CollaborationStatus.AWAITING_FEEDBACK

	@pytest.mark.asyncio
	async def test_unanswered_points_ignored(self, engine, session):
		plan = await engine.process_feedback("s1", {"unknown": "anything"})
		assert session.latest_round.analysis.responses == {}
		assert plan.iteration_number == 1

	@pytest.mark.asyncio
	async def test_unknown_session(self, engine):
		with pytest.raises(NotFoundError):
			await engine.process_feedback("missing", {})

	@pytest.mark.asyncio
	async def test_completed_session_rejects_feedback(self, engine, session):
		engine.complete_collaboration("s1")
		with pytest.raises(SessionStateError):
			await engine.process_feedback("s1", {"feedback_0": "one more thing"})


class TestCompletion:
	@pytest.mark.asyncio
	async def test_summary(self, engine, session):
		await engine.process_feedback("s1", {"feedback_0": "yes looks great"})
		summary = engine.complete_collaboration("s1", {"note": "shipped"})

		assert summary["status"] == "completed"
		assert summary["total_iterations"] == 1
		assert summary["consensus_level"] == 100.0
		assert summary["outcome_assessment"]["user_satisfaction"] == "high"
		assert summary["outcome_assessment"]["goal_achievement"] == "complete"
		assert engine.get_statistics()["successful_collaborations"] == 1

	def test_completing_twice_returns_same_summary(self, engine, session):
		first = engine.complete_collaboration("s1")
		completed_at = session.completed_at
		second = engine.complete_collaboration("s1")
		assert session.completed_at == completed_at
		assert second["status"] == first["status"] == "completed"
		assert engine.get_statistics()["completed_sessions"] == 1

	def test_feedback_request_sections(self, engine, session):
		response = engine.generate_feedback_request("s1")
		assert [s.title for s in response.sections] == ["Work Completed", "Feedback Needed", "How to Respond"]
		assert "Does the layout work for you?" in response.render()

	@pytest.mark.asyncio
	async def test_improvement_plan(self, engine, session):
		plan = await engine.plan_improvement("s1", [
			{"type": "clarity", "description": "Clearer questions", "priority": "high", "effort": "medium"},
		])
		assert plan["recommended_actions"][0]["action"] == "Improve feedback point descriptions"
		assert plan["timeline"]["total_effort"] == 2
		assert session.improvement_plan is plan


class TestCleanup:
	def test_idle_sessions_removed(self, engine, session):
		engine.create_session("fresh", make_task_result(), ["Anything else?"])
		session.last_updated = datetime.now() - timedelta(days=10)
		assert engine.cleanup(7 * 24 * 60 * 60) == 1
		with pytest.raises(NotFoundError):
			engine.get_session("s1")
		assert engine.get_session("fresh")
