"""
Adaptation rule registry.

Each message type maps to a tuple of (predicate, adjustment) rules. Every
rule whose predicate matches the context contributes its adjustment; the
results are unioned in rule order. Unknown message types fall back to the
DEFAULT rules.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from ..models.context import CommunicationContext


class MessageType(str, Enum):
	"""Kinds of message the analyzer can adapt."""
	DEFAULT = "default"
	ERROR = "error"
	PROGRESS = "progress"
	CONFIRMATION = "confirmation"
	FINAL_RESPONSE = "final_response"
	HANDOFF = "handoff"
	COLLABORATION = "collaboration"
	SIMPLE_CONFIRMATION = "simple_confirmation"
	PROGRESS_UPDATE = "progress_update"
	WARNING = "warning"


@dataclass(frozen=True)
class Adjustment:
	"""Length, format and style changes a rule asks for."""
	length: tuple[str, ...] = ()
	format: tuple[str, ...] = ()
	style: tuple[str, ...] = ()


@dataclass(frozen=True)
class AdaptationRule:
	name: str
	predicate: Callable[[CommunicationContext], bool]
	adjustment: Adjustment = field(default_factory=Adjustment)


ADAPTATION_RULES: dict[MessageType, tuple[AdaptationRule, ...]] = {
	MessageType.DEFAULT: (
		AdaptationRule(
			"concise_user",
			lambda ctx: ctx.is_concise(),
			Adjustment(length=("shorten",), format=("simplify_format",), style=("direct", "minimal")),
		),
		AdaptationRule(
			"verbose_user",
			lambda ctx: ctx.is_verbose(),
			Adjustment(
				length=("expand",),
				format=("add_structure", "add_examples"),
				style=("comprehensive", "detailed"),
			),
		),
		AdaptationRule(
			"complex_task",
			lambda ctx: ctx.is_complex_task(),
			Adjustment(format=("add_structure",), style=("structured", "professional")),
		),
	),
	MessageType.ERROR: (
		AdaptationRule(
			"always_detail_errors",
			lambda ctx: True,
			Adjustment(length=("expand",), format=("add_structure",), style=("supportive", "actionable")),
		),
	),
	MessageType.PROGRESS: (
		AdaptationRule(
			"time_constrained",
			lambda ctx: ctx.environment_info.time_constraints,
			Adjustment(length=("shorten",), style=("direct", "essential_only")),
		),
	),
	MessageType.CONFIRMATION: (
		AdaptationRule(
			"simple_and_concise",
			lambda ctx: ctx.is_simple_task() and ctx.is_concise(),
			Adjustment(length=("shorten",), format=("simplify_format",), style=("minimal",)),
		),
	),
}


RuleRegistry = dict[MessageType, tuple[AdaptationRule, ...]]


def _coerce(message_type: Union[MessageType, str]) -> MessageType:
	try:
		return MessageType(message_type)
	except ValueError:
		return MessageType.DEFAULT


def rules_for(
	message_type: Union[MessageType, str],
	registry: Optional[RuleRegistry] = None,
) -> tuple[AdaptationRule, ...]:
	"""Rules registered for a message type, or the DEFAULT rules."""
	registry = ADAPTATION_RULES if registry is None else registry
	return registry.get(_coerce(message_type), registry[MessageType.DEFAULT])


def _union(target: list[str], values: tuple[str, ...]) -> None:
	for value in values:
		if value not in target:
			target.append(value)


def collect_adjustments(
	context: CommunicationContext,
	message_type: Union[MessageType, str],
	registry: Optional[RuleRegistry] = None,
) -> dict[str, list[str]]:
	"""Union of the adjustments of every matching rule, in rule order."""
	collected: dict[str, list[str]] = {"length": [], "format": [], "style": []}
	for rule in rules_for(message_type, registry):
		if rule.predicate(context):
			_union(collected["length"], rule.adjustment.length)
			_union(collected["format"], rule.adjustment.format)
			_union(collected["style"], rule.adjustment.style)
	return collected
