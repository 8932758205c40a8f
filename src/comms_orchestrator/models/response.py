"""
Formatted response model.

A response is an ordered list of sections rendered to plain markdown text.
The render format is the one external protocol of the package:

    heading  -> "#" * level + " " + title + "\\n\\n" + content
    code     -> "```lang\\ncode\\n```"
    list     -> "- item" / "N. item" lines

Sections are separated by a blank line and the whole render is stripped.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

TRUNCATION_RESERVE = 50
TRUNCATION_TITLE = "..."
TRUNCATION_NOTICE = "[Content truncated for length]"
WORDS_PER_MINUTE = 200


class SectionType(str, Enum):
	"""Kind of response section."""
	HEADING = "heading"
	CODE = "code"
	LIST = "list"


class Section(BaseModel):
	"""One renderable block of a response."""
	id: str
	type: SectionType = Field(default=SectionType.HEADING)
	title: str = Field(default="")
	content: str = Field(default="")
	level: int = Field(default=1, ge=1)
	language: str = Field(default="")
	items: list[str] = Field(default_factory=list)
	ordered: bool = Field(default=False)
	timestamp: datetime = Field(default_factory=datetime.now)

	def render(self) -> str:
		if self.type == SectionType.CODE:
			return f"```{self.language}\n{self.content}\n```\n"
		if self.type == SectionType.LIST:
			lines = [
				f"{i + 1}. {item}" if self.ordered else f"- {item}"
				for i, item in enumerate(self.items)
			]
			return "\n".join(lines) + "\n"
		return f"{'#' * self.level} {self.title}\n\n{self.content}\n"


class ResponseStyling(BaseModel):
	"""Presentation hints for the rendered text."""
	use_colors: bool = True
	use_emoji: bool = False
	max_width: int = 80
	indent_size: int = 2


class ResponseMetadata(BaseModel):
	"""Derived statistics about a rendered response."""
	word_count: int = 0
	character_count: int = 0
	estimated_read_time: int = Field(default=0, description="Minutes at 200 words per minute")
	generated_at: datetime = Field(default_factory=datetime.now)


class FormattedResponse(BaseModel):
	"""An ordered set of sections plus an optional raw content override."""
	content: Optional[str] = Field(default=None, description="Raw text returned by render() when set")
	format: str = Field(default="markdown")
	sections: list[Section] = Field(default_factory=list)
	styling: ResponseStyling = Field(default_factory=ResponseStyling)
	metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)
	degraded: bool = Field(default=False, description="True for fallback responses")

	def add_section(self, title: str, content: Any, level: int = 1) -> Section:
		section = Section(
			id=f"section_{len(self.sections)}",
			title=title,
			content="" if content is None else str(content),
			level=max(1, level),
		)
		self.sections.append(section)
		self._refresh_metadata()
		return section

	def add_code_block(self, code: str, language: str = "") -> Section:
		section = Section(
			id=f"code_{len(self.sections)}",
			type=SectionType.CODE,
			content=code,
			language=language,
		)
		self.sections.append(section)
		self._refresh_metadata()
		return section

	def add_list(self, items: list[Any], ordered: bool = False) -> Section:
		section = Section(
			id=f"list_{len(self.sections)}",
			type=SectionType.LIST,
			items=[str(item) for item in items],
			ordered=ordered,
		)
		self.sections.append(section)
		self._refresh_metadata()
		return section

	def insert_section(self, index: int, title: str, content: Any, level: int = 1) -> Section:
		section = Section(
			id=f"section_{len(self.sections)}",
			title=title,
			content="" if content is None else str(content),
			level=max(1, level),
		)
		self.sections.insert(index, section)
		self._refresh_metadata()
		return section

	def is_empty(self) -> bool:
		return not self.render().strip()

	def render(self) -> str:
		if self.content:
			return self.content
		return _render_sections(self.sections)

	def get_metadata(self) -> ResponseMetadata:
		self._refresh_metadata()
		return self.metadata

	def truncate(self, max_length: int) -> "FormattedResponse":
		"""
		Return a copy whose render fits in `max_length` characters.

		Sections are packed greedily in order while the projected render,
		notice included, stays within `max_length`; a level-3 notice section
		is then appended. Any `max_length` above TRUNCATION_RESERVE fits the
		notice. Returns self when the response already fits.
		"""
		rendered = self.render()
		if len(rendered) <= max_length:
			return self

		truncated = FormattedResponse(
			format=self.format,
			styling=self.styling.model_copy(),
			degraded=self.degraded,
		)

		if self.content:
			suffix = f"\n\n{TRUNCATION_NOTICE}"
			keep = max(0, max_length - len(suffix))
			truncated.content = self.content[:keep].rstrip() + suffix
			truncated._refresh_metadata()
			return truncated

		notice = Section(id="truncation_notice", title=TRUNCATION_TITLE, content=TRUNCATION_NOTICE, level=3)
		kept: list[Section] = []
		for section in self.sections:
			if len(_render_sections(kept + [section, notice])) > max_length:
				break
			kept.append(section.model_copy(deep=True))

		truncated.sections = kept
		truncated.add_section(TRUNCATION_TITLE, TRUNCATION_NOTICE, 3)
		return truncated

	def _refresh_metadata(self) -> None:
		text = self.render()
		words = len(text.split())
		self.metadata = ResponseMetadata(
			word_count=words,
			character_count=len(text),
			estimated_read_time=math.ceil(words / WORDS_PER_MINUTE),
		)


def _render_sections(sections: list[Section]) -> str:
	return "".join(section.render() + "\n" for section in sections).strip()


def simple_response(title: str, content: str, level: int = 1) -> FormattedResponse:
	"""Build a one-section response."""
	response = FormattedResponse()
	response.add_section(title, content, level)
	return response
