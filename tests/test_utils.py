"""Tests for the utility functions."""

import json

import pytest

from autopost.utils import (
    clean_json_text,
    coerce_str_list,
    load_json,
    reading_time,
    slugify,
    trim_to_word_boundary,
    word_count,
)


class TestTrimToWordBoundary:
    """Tests for word-boundary truncation."""

    @pytest.mark.parametrize(
        "text,limit",
        [
            ("How to Use Claude AI to Write Better Emails in Minutes Every Single Day", 60),
            ("Supercalifragilisticexpialidocious words everywhere", 10),
            ("short", 60),
            ("a, b, c, d, e, f, g, h, i, j, k, l, m, n, o, p", 13),
            ("", 20),
        ],
    )
    def test_never_longer_than_limit(self, text, limit):
        """Test that the result never exceeds the limit."""
        assert len(trim_to_word_boundary(text, limit)) <= limit

    def test_backtracks_to_space(self):
        """Test that a cut inside a word backtracks to the previous space."""
        result = trim_to_word_boundary("The quick brown fox jumps over the lazy dog", 22)
        assert result == "The quick brown fox"

    def test_cut_on_space_keeps_full_word(self):
        """Test that a cut landing on a space keeps the last word whole."""
        assert trim_to_word_boundary("alpha beta gamma", 10) == "alpha beta"

    def test_hard_cut_when_no_nearby_space(self):
        """Test that a hard cut is used when the last space is too far back."""
        result = trim_to_word_boundary("ab Supercalifragilistic", 12)
        assert result == "ab Supercali"

    @pytest.mark.parametrize("text", ["Hello world, again", "Hello world- again", "Hello world: again", "Hello world; again"])
    def test_no_dangling_punctuation(self, text):
        """Test that trailing commas, hyphens, colons and semicolons are removed."""
        result = trim_to_word_boundary(text, 12)
        assert result == "Hello world"

    def test_fits_unchanged(self):
        """Test that short text is returned unchanged."""
        assert trim_to_word_boundary("Fits fine", 60) == "Fits fine"

    def test_zero_limit(self):
        """Test that a zero limit yields an empty string."""
        assert trim_to_word_boundary("anything", 0) == ""


class TestSlugify:
    """Tests for slug generation."""

    def test_basic(self):
        """Test basic slugification."""
        assert slugify("How to Use Gemini Inside Google Docs!") == "how-to-use-gemini-inside-google-docs"

    def test_max_length(self):
        """Test that slugs respect the maximum length."""
        slug = slugify("word " * 40, max_length=60)
        assert len(slug) <= 60
        assert not slug.endswith("-")


class TestJsonCleaning:
    """Tests for LLM JSON cleanup."""

    def test_strips_fence_wrapper(self):
        """Test that a ```json wrapper is removed."""
        raw = '```json\n{"a": 1}\n```'
        assert json.loads(clean_json_text(raw)) == {"a": 1}

    def test_extracts_object_from_prose(self):
        """Test extraction of the outermost object."""
        raw = 'Sure! Here it is: {"a": {"b": 2}} Hope that helps.'
        assert load_json(raw) == {"a": {"b": 2}}

    def test_extracts_array(self):
        """Test extraction of an array."""
        assert load_json('Topics:\n[{"title": "x"}]', opening="[") == [{"title": "x"}]

    def test_removes_trailing_commas(self):
        """Test removal of trailing commas."""
        assert load_json('{"a": [1, 2,], "b": 3,}') == {"a": [1, 2], "b": 3}

    def test_tolerates_raw_newlines_in_strings(self):
        """Test that raw newlines inside strings parse."""
        assert load_json('{"body": "line one\nline two"}') == {"body": "line one\nline two"}

    def test_keeps_inner_fences(self):
        """Test that fences inside string values are preserved."""
        data = load_json('```json\n{"body": "```bash\\nnpm install\\n```"}\n```')
        assert data["body"] == "```bash\nnpm install\n```"

    def test_invalid_json_raises(self):
        """Test that unrepairable JSON raises."""
        with pytest.raises(json.JSONDecodeError):
            load_json("{not json at all")


class TestHelpers:
    """Tests for small helpers."""

    def test_word_count(self):
        """Test word counting."""
        assert word_count("one two  three\nfour") == 4

    def test_reading_time(self):
        """Test reading time estimate."""
        assert reading_time("word " * 450) == "3 min read"
        assert reading_time("") == "1 min read"

    def test_coerce_str_list(self):
        """Test list coercion."""
        assert coerce_str_list("a, b ,c") == ["a", "b", "c"]
        assert coerce_str_list(["a", "", None, 3], limit=2) == ["a", "3"]
        assert coerce_str_list(None) == []
