"""
Handoff models - what to do next once a task has finished.

Builders accept a ready model, a plain string or a dict of options; every
option has a named default on the model itself.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from .context import CommunicationContext
from .response import FormattedResponse
from .task import TaskResult

PRIORITY_ORDER = {"high": 0, "medium": 1, "normal": 1, "low": 2}


def priority_rank(priority: str) -> int:
	return PRIORITY_ORDER.get(priority, 1)


class TransitionType(str, Enum):
	"""How work changes hands."""
	CONTINUE = "continue"
	PAUSE = "pause"
	COMPLETE = "complete"
	HANDOVER = "handover"


class NextAction(BaseModel):
	"""A follow-up action for whoever picks up the work."""
	id: str = Field(default="")
	action: str
	description: str = Field(default="")
	priority: str = Field(default="normal")
	estimated_time: int = Field(default=0, description="Estimated effort in minutes")
	dependencies: list[str] = Field(default_factory=list)
	category: str = Field(default="general")


class ValidationStep(BaseModel):
	"""A check that confirms the work is sound."""
	id: str = Field(default="")
	description: str
	command: Optional[str] = Field(default=None)
	expected_result: Optional[str] = Field(default=None)


class ContinuationOption(BaseModel):
	"""A direction the work could take next."""
	id: str = Field(default="")
	title: str
	description: str = Field(default="")
	effort: str = Field(default="medium")
	benefits: list[str] = Field(default_factory=list)


class Recommendation(BaseModel):
	"""Advice attached to a handoff."""
	id: str = Field(default="")
	text: str
	priority: str = Field(default="normal")
	reasoning: Optional[str] = Field(default=None)


class Requirement(BaseModel):
	"""Something the receiving side must (or should) honour."""
	id: str = Field(default="")
	description: str
	priority: str = Field(default="normal")
	mandatory: bool = Field(default=True)


class ContextItem(BaseModel):
	"""A keyed fact carried across a handoff."""
	value: Any = Field(default=None)
	description: str = Field(default="")
	timestamp: datetime = Field(default_factory=datetime.now)


def build_next_action(source: Union[NextAction, str, dict], index: int) -> NextAction:
	if isinstance(source, NextAction):
		action = source.model_copy()
	elif isinstance(source, str):
		action = NextAction(action=source)
	else:
		action = NextAction(**source)
	if not action.id:
		action.id = f"action_{index}"
	return action


def build_validation_step(source: Union[ValidationStep, str, dict], index: int) -> ValidationStep:
	if isinstance(source, ValidationStep):
		step = source.model_copy()
	elif isinstance(source, str):
		step = ValidationStep(description=source)
	else:
		step = ValidationStep(**source)
	if not step.id:
		step.id = f"validation_{index}"
	return step


def build_continuation_option(source: Union[ContinuationOption, dict], index: int) -> ContinuationOption:
	option = source.model_copy() if isinstance(source, ContinuationOption) else ContinuationOption(**source)
	if not option.id:
		option.id = f"option_{index}"
	return option


def build_recommendation(source: Union[Recommendation, str, dict], index: int) -> Recommendation:
	if isinstance(source, Recommendation):
		rec = source.model_copy()
	elif isinstance(source, str):
		rec = Recommendation(text=source)
	else:
		rec = Recommendation(**source)
	if not rec.id:
		rec.id = f"recommendation_{index}"
	return rec


def build_requirement(source: Union[Requirement, str, dict], index: int) -> Requirement:
	if isinstance(source, Requirement):
		req = source.model_copy()
	elif isinstance(source, str):
		req = Requirement(description=source)
	else:
		req = Requirement(**source)
	if not req.id:
		req.id = f"requirement_{index}"
	return req


class HandoffInstructions(BaseModel):
	"""Next actions, validation steps, continuation options and recommendations."""
	id: str = Field(default="")
	task_result: Optional[TaskResult] = Field(default=None)
	context: Optional[CommunicationContext] = Field(default=None)
	next_actions: list[NextAction] = Field(default_factory=list)
	validation_steps: list[ValidationStep] = Field(default_factory=list)
	continuation_options: list[ContinuationOption] = Field(default_factory=list)
	recommendations: list[Recommendation] = Field(default_factory=list)
	generated_at: datetime = Field(default_factory=datetime.now)

	def add_next_action(self, source: Union[NextAction, str, dict]) -> NextAction:
		action = build_next_action(source, len(self.next_actions))
		self.next_actions.append(action)
		return action

	def add_validation_step(self, source: Union[ValidationStep, str, dict]) -> ValidationStep:
		step = build_validation_step(source, len(self.validation_steps))
		self.validation_steps.append(step)
		return step

	def add_continuation_option(self, source: Union[ContinuationOption, dict]) -> ContinuationOption:
		option = build_continuation_option(source, len(self.continuation_options))
		self.continuation_options.append(option)
		return option

	def add_recommendation(self, source: Union[Recommendation, str, dict]) -> Recommendation:
		rec = build_recommendation(source, len(self.recommendations))
		self.recommendations.append(rec)
		return rec

	def render(self, format: str = "markdown") -> FormattedResponse:
		response = FormattedResponse(format=format)
		if self.next_actions:
			response.add_section("Next Actions", self._render_next_actions())
		if self.validation_steps:
			response.add_section("Validation Steps", self._render_validation_steps())
		if self.continuation_options:
			response.add_section("Continuation Options", self._render_continuation_options())
		if self.recommendations:
			response.add_section("Recommendations", self._render_recommendations())
		return response

	def _render_next_actions(self) -> str:
		lines = []
		for action in sorted(self.next_actions, key=lambda a: priority_rank(a.priority)):
			item = action.action or action.description
			if action.estimated_time > 0:
				item += f" (estimated: {action.estimated_time}min)"
			lines.append(item)
		return "\n".join(lines)

	def _render_validation_steps(self) -> str:
		items = []
		for index, step in enumerate(self.validation_steps):
			item = f"{index + 1}. {step.description}"
			if step.command:
				item += f"\n   Command: `{step.command}`"
			if step.expected_result:
				item += f"\n   Expected: {step.expected_result}"
			items.append(item)
		return "\n\n".join(items)

	def _render_continuation_options(self) -> str:
		items = []
		for option in self.continuation_options:
			item = f"**{option.title}**\n{option.description}"
			if option.effort:
				item += f"\nEffort: {option.effort}"
			if option.benefits:
				item += f"\nBenefits: {', '.join(option.benefits)}"
			items.append(item)
		return "\n\n".join(items)

	def _render_recommendations(self) -> str:
		lines = []
		for rec in sorted(self.recommendations, key=lambda r: priority_rank(r.priority)):
			item = rec.text
			if rec.reasoning:
				item += f" ({rec.reasoning})"
			lines.append(item)
		return "\n".join(lines)


class HandoffProtocol(BaseModel):
	"""A structured transition of work from one context to another."""
	id: str = Field(default="")
	from_context: str = Field(default="")
	to_context: str = Field(default="")
	transition_type: TransitionType = Field(default=TransitionType.CONTINUE)
	instructions: HandoffInstructions = Field(default_factory=HandoffInstructions)
	context: dict[str, ContextItem] = Field(default_factory=dict)
	requirements: list[Requirement] = Field(default_factory=list)
	created_at: datetime = Field(default_factory=datetime.now)

	def add_context_item(self, key: str, value: Any, description: str = "") -> None:
		self.context[key] = ContextItem(value=value, description=description)

	def get_context_item(self, key: str, default: Any = None) -> Any:
		item = self.context.get(key)
		return item.value if item is not None else default

	def add_requirement(self, source: Union[Requirement, str, dict]) -> Requirement:
		req = build_requirement(source, len(self.requirements))
		self.requirements.append(req)
		return req

	def render(self, format: str = "markdown") -> FormattedResponse:
		response = FormattedResponse(format=format)
		response.add_section("Work Handoff", self._render_header())
		if self.context:
			response.add_section("Context Information", self._render_context(), 2)
		if self.requirements:
			response.add_section("Requirements", self._render_requirements(), 2)
		for section in self.instructions.render(format).sections:
			response.add_section(section.title, section.content, section.level)
		return response

	def _render_header(self) -> str:
		lines = [f"Transition type: {self.transition_type.value}"]
		if self.from_context:
			lines.append(f"From: {self.from_context}")
		if self.to_context:
			lines.append(f"To: {self.to_context}")
		return "\n".join(lines)

	def _render_context(self) -> str:
		lines = []
		for key, item in self.context.items():
			line = f"{key}: {item.value}"
			if item.description:
				line += f" - {item.description}"
			lines.append(line)
		return "\n".join(lines)

	def _render_requirements(self) -> str:
		ordered = sorted(
			self.requirements,
			key=lambda r: (not r.mandatory, priority_rank(r.priority)),
		)
		return "\n".join(f"**{r.description}**" if r.mandatory else r.description for r in ordered)
