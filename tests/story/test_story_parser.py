"""Tests for parse_story_output: fenced JSON extraction, validation, page numbering."""
import json

import pytest

from storybook.services.story.base import StoryParseError
from storybook.services.story.parser import extract_json_block, parse_story_output


def _story(pages):
    return {"title": "Fox", "cover_image_prompt": "A fox on a hill", "pages": pages}


def _page(n=None, text="Once upon a time", prompt="A fox"):
    page = {"text": text, "image_prompt": prompt}
    if n is not None:
        page["page_number"] = n
    return page


def _fenced(data) -> str:
    return "Sure!\n```json\n" + json.dumps(data) + "\n```\nThe end."


class TestExtract:
    def test_fenced_block(self):
        assert extract_json_block('intro\n```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_json_object(self):
        assert extract_json_block('  {"a": 1}  ') == '{"a": 1}'

    def test_prose_only(self):
        assert extract_json_block("I could not write a story today.") is None
        assert extract_json_block("") is None


class TestParse:
    def test_valid_story(self):
        story = parse_story_output(_fenced(_story([_page(1), _page(2), _page(3)])))

        assert story.title == "Fox"
        assert story.cover_image_prompt == "A fox on a hill"
        assert [p.page_number for p in story.pages] == [1, 2, 3]

    def test_missing_block(self):
        with pytest.raises(StoryParseError, match="Invalid format received from text generation API."):
            parse_story_output("Sorry, no story.")

    def test_malformed_json(self):
        with pytest.raises(StoryParseError, match="Failed to parse story data from text generation API."):
            parse_story_output('```json\n{"title": "Fox", "pages": [\n```')

    def test_json_array_is_not_a_story(self):
        with pytest.raises(StoryParseError, match="Failed to parse story data"):
            parse_story_output("```json\n[1, 2]\n```")

    @pytest.mark.parametrize(
        "data",
        [
            {"cover_image_prompt": "x", "pages": [_page(1)]},
            {"title": "Fox", "pages": [_page(1)]},
            {"title": "Fox", "cover_image_prompt": "x", "pages": []},
            {"title": "Fox", "cover_image_prompt": "x"},
            {"title": "Fox", "cover_image_prompt": "x", "pages": [{"page_number": 1, "text": "hi"}]},
            {"title": "  ", "cover_image_prompt": "x", "pages": [_page(1)]},
        ],
    )
    def test_incomplete_story(self, data):
        with pytest.raises(StoryParseError, match="Incomplete story data received from text generation API."):
            parse_story_output(_fenced(data))


class TestPageNumbers:
    def test_unnumbered_pages_take_their_position(self):
        story = parse_story_output(_fenced(_story([_page(text="a"), _page(text="b")])))
        assert [(p.page_number, p.text) for p in story.pages] == [(1, "a"), (2, "b")]

    def test_out_of_order_pages_are_sorted(self):
        story = parse_story_output(_fenced(_story([_page(2, text="b"), _page(1, text="a")])))
        assert [(p.page_number, p.text) for p in story.pages] == [(1, "a"), (2, "b")]

    def test_gap_is_rejected(self):
        with pytest.raises(StoryParseError, match="without gaps"):
            parse_story_output(_fenced(_story([_page(1), _page(3)])))

    def test_duplicate_is_rejected(self):
        with pytest.raises(StoryParseError):
            parse_story_output(_fenced(_story([_page(1), _page(1)])))

    def test_partially_numbered_is_rejected(self):
        with pytest.raises(StoryParseError, match="partially numbered"):
            parse_story_output(_fenced(_story([_page(1), _page()])))
