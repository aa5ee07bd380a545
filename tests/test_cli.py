"""Tests for the command-line entrypoint."""

import json
from unittest.mock import patch

import pytest

from autopost.__main__ import build_parser, main
from autopost.persistence import create_post_store


@pytest.fixture
def api_key(monkeypatch):
    """Provide a model credential."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-api-key")
    monkeypatch.delenv("TAVILY_API_KEY", raising=False)


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        """Test default arguments."""
        args = build_parser().parse_args([])
        assert args.topic is None
        assert args.dry_run is False
        assert args.discover_only is False
        assert args.max_attempts is None

    def test_manual_topic(self):
        """Test a positional manual topic."""
        args = build_parser().parse_args(["Gemini in Docs", "--dry-run", "-v"])
        assert args.topic == "Gemini in Docs"
        assert args.dry_run is True
        assert args.verbose is True


class TestMain:
    """Tests for main()."""

    def test_invalid_max_attempts(self, capsys):
        """Test that a non-positive attempt count is rejected."""
        assert main(["--max-attempts", "0"]) == 2
        assert "--max-attempts must be at least 1" in capsys.readouterr().out

    def test_missing_credentials(self, monkeypatch, capsys):
        """Test that a missing API key exits with an error."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert main(["--dry-run"]) == 1
        assert "OPENAI_API_KEY is not set" in capsys.readouterr().out

    def test_dry_run(self, api_key, make_client, make_response, good_body, capsys):
        """Test a dry run with a manual topic."""
        scripted = make_client([make_response(good_body)])
        with patch("autopost.__main__.ChatModelClient", return_value=scripted):
            assert main(["How to Automate Your Weekly Report", "--dry-run"]) == 0

        out = capsys.readouterr().out
        assert "SUCCESS! Draft post generated." in out
        assert "(dry run, not saved)" in out
        assert "Slug: automate-weekly-report-chatgpt" in out

    def test_saves_to_sqlite(self, api_key, make_client, make_response, good_body, tmp_path):
        """Test that a normal run saves a draft to the database."""
        db_path = str(tmp_path / "cli.db")
        scripted = make_client([make_response(good_body)])
        with patch("autopost.__main__.ChatModelClient", return_value=scripted):
            assert main(["How to Automate Your Weekly Report", "--db-path", db_path]) == 0

        store = create_post_store("sqlite", db_path=db_path)
        saved = store.get_by_slug("automate-weekly-report-chatgpt")
        store.close()
        assert saved is not None
        assert saved.status.value == "draft"

    def test_rejected_run(self, api_key, make_client, make_response, capsys):
        """Test that a run rejected by the rubric exits with 1 and a report."""
        scripted = make_client([make_response("Too short to publish.")] * 2)
        with patch("autopost.__main__.ChatModelClient", return_value=scripted):
            assert main(["Some topic", "--dry-run", "--max-attempts", "2"]) == 1

        out = capsys.readouterr().out
        assert "FAILED: no draft was accepted." in out
        assert "Generation failed at stage 'scoring' after 2 attempt(s)" in out

    def test_discover_only(self, api_key, make_client, capsys):
        """Test printing discovered topics."""
        scripted = make_client([json.dumps([{"title": "Gemini in Docs", "angle": "Draft faster"}])])
        with patch("autopost.__main__.ChatModelClient", return_value=scripted):
            assert main(["--discover-only", "--dry-run"]) == 0

        out = capsys.readouterr().out
        topics = json.loads(out[out.index("[") :])
        assert topics[0]["title"] == "Gemini in Docs"
