"""Tests for the formatted response model and its markdown render."""

import pytest

from comms_orchestrator.models.response import (
	TRUNCATION_NOTICE,
	TRUNCATION_RESERVE,
	TRUNCATION_TITLE,
	FormattedResponse,
	simple_response,
)


def _long_response(sections: int = 10) -> FormattedResponse:
	response = FormattedResponse()
	for i in range(sections):
		response.add_section(f"Section {i}", "word " * 20)
	return response


class TestRender:
	def test_heading_markers_in_order(self):
		response = FormattedResponse()
		response.add_section("Task Completed", "Added caching")
		response.add_section("Outputs", "hits: 12", 2)
		assert response.render() == "# Task Completed\n\nAdded caching\n\n## Outputs\n\nhits: 12"

	def test_render_is_stable(self):
		response = _long_response(3)
		assert response.render() == response.render()

	def test_code_and_list_sections(self):
		response = FormattedResponse()
		response.add_code_block("print('hi')", "python")
		response.add_list(["first", "second"], ordered=True)
		assert response.render() == "```python\nprint('hi')\n```\n\n1. first\n2. second"

	def test_content_overrides_sections(self):
		response = simple_response("Ignored", "body")
		response.content = "raw text"
		assert response.render() == "raw text"

	def test_level_floor(self):
		response = FormattedResponse()
		section = response.add_section("Title", "body", 0)
		assert section.level == 1

	def test_metadata(self):
		response = simple_response("Done", "one two three")
		metadata = response.get_metadata()
		assert metadata.word_count == 5
		assert metadata.character_count == len(response.render())
		assert metadata.estimated_read_time == 1

	def test_empty(self):
		assert FormattedResponse().is_empty()
		assert not simple_response("Done", "").is_empty()

	def test_insert_section(self):
		response = simple_response("Second", "b")
		response.insert_section(0, "First", "a")
		assert [s.title for s in response.sections] == ["First", "Second"]


class TestTruncate:
	def test_fits_returns_same_instance(self):
		response = _long_response(2)
		assert response.truncate(10_000) is response

	def test_truncated_render_within_bound(self):
		response = _long_response()
		truncated = response.truncate(400)
		assert truncated is not response
		assert len(truncated.render()) <= 400
		assert truncated.sections[-1].title == TRUNCATION_TITLE
		assert truncated.sections[-1].content == TRUNCATION_NOTICE
		assert truncated.sections[-1].level == 3
		assert len(response.sections) == 10

	@pytest.mark.parametrize("max_length", [TRUNCATION_RESERVE + 1, 60, 75, 100, 150, 233, 400, 799])
	def test_sections_within_bound_for_any_length(self, max_length):
		truncated = _long_response().truncate(max_length)
		assert len(truncated.render()) <= max_length
		assert truncated.sections[-1].content == TRUNCATION_NOTICE

	@pytest.mark.parametrize("max_length", [TRUNCATION_RESERVE + 1, 64, 120, 500])
	def test_content_within_bound_for_any_length(self, max_length):
		response = FormattedResponse(content="lorem ipsum " * 100)
		truncated = response.truncate(max_length)
		assert len(truncated.render()) <= max_length
		assert truncated.render().endswith(TRUNCATION_NOTICE)

	def test_keeps_sections_in_order(self):
		truncated = _long_response().truncate(400)
		kept = [s.title for s in truncated.sections[:-1]]
		assert kept == [f"Section {i}" for i in range(len(kept))]

	def test_content_override_truncated(self):
		response = FormattedResponse(content="x" * 500)
		truncated = response.truncate(100)
		assert len(truncated.render()) <= 100
		assert truncated.render().endswith(TRUNCATION_NOTICE)

	def test_degraded_flag_kept(self):
		response = _long_response()
		response.degraded = True
		assert response.truncate(400).degraded
