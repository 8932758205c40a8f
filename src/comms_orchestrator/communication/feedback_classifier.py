"""
Deterministic feedback classification.

The keyword lists and thresholds below are the behavioural contract: intent
is decided by the first matching pattern in INTENT_PATTERNS order, sentiment
by counting positive and negative keywords.
"""

import re
from enum import Enum
from typing import Iterable, Optional

INTENT_PATTERNS = (
	("approval", re.compile(r"\b(yes|approve|good|correct|right|agree)\b", re.IGNORECASE)),
	("rejection", re.compile(r"\b(no|reject|wrong|disagree|change)\b", re.IGNORECASE)),
	("uncertain", re.compile(r"\b(maybe|unsure|depends|consider)\b", re.IGNORECASE)),
	("suggestion", re.compile(r"\b(suggest|recommend|try|instead|better)\b", re.IGNORECASE)),
)
ACTIONABLE_PATTERN = re.compile(r"\b(change|update|add|remove|modify|fix|improve)\b", re.IGNORECASE)

HIGH_CONFIDENCE_PATTERN = re.compile(r"\b(definitely|absolutely|certainly|sure|confident)\b", re.IGNORECASE)
LOW_CONFIDENCE_PATTERN = re.compile(r"\b(maybe|perhaps|possibly|might|unsure)\b", re.IGNORECASE)
SHORT_ANSWER_LENGTH = 10

POSITIVE_WORDS = ("good", "great", "excellent", "perfect", "love", "like", "approve", "yes")
NEGATIVE_WORDS = ("bad", "wrong", "hate", "dislike", "no", "terrible", "awful", "reject")
SENTIMENT_RATIO = 1.5

# Checked in order; word prefixes so "completely" or "added" still count
EFFORT_RULES = (
	(re.compile(r"\b(major|complete|overhaul)", re.IGNORECASE), 5),
	(re.compile(r"\b(add|create|implement)", re.IGNORECASE), 3),
	(re.compile(r"\b(modify|update|change)", re.IGNORECASE), 2),
)
DEFAULT_EFFORT = 1


class Intent(str, Enum):
	APPROVAL = "approval"
	REJECTION = "rejection"
	UNCERTAIN = "uncertain"
	SUGGESTION = "suggestion"
	NEUTRAL = "neutral"


class Sentiment(str, Enum):
	POSITIVE = "positive"
	NEGATIVE = "negative"
	NEUTRAL = "neutral"


def classify_intent(text: str) -> Intent:
	for name, pattern in INTENT_PATTERNS:
		if pattern.search(text):
			return Intent(name)
	return Intent.NEUTRAL


def is_actionable(text: str) -> bool:
	return bool(ACTIONABLE_PATTERN.search(text))


def assess_confidence(text: str, options: Optional[Iterable[str]] = None) -> str:
	"""high / medium / low, in rule order: exact option, length, certainty words."""
	stripped = text.strip()
	if options and stripped in options:
		return "high"
	if len(stripped) < SHORT_ANSWER_LENGTH:
		return "low"
	if HIGH_CONFIDENCE_PATTERN.search(stripped):
		return "high"
	if LOW_CONFIDENCE_PATTERN.search(stripped):
		return "low"
	return "medium"


def _count_keywords(text: str, words: Iterable[str]) -> int:
	return sum(1 for word in words if re.search(rf"\b{word}\b", text, re.IGNORECASE))


def analyze_sentiment(texts: Iterable[str]) -> Sentiment:
	"""Aggregate sentiment; one side must outnumber the other by more than 1.5x."""
	combined = " ".join(texts)
	positive = _count_keywords(combined, POSITIVE_WORDS)
	negative = _count_keywords(combined, NEGATIVE_WORDS)
	if positive > negative * SENTIMENT_RATIO:
		return Sentiment.POSITIVE
	if negative > positive * SENTIMENT_RATIO:
		return Sentiment.NEGATIVE
	return Sentiment.NEUTRAL


def estimate_effort(text: str) -> int:
	for pattern, effort in EFFORT_RULES:
		if pattern.search(text):
			return effort
	return DEFAULT_EFFORT
