"""Tests for the model fallback runner."""

import pytest

from autopost.errors import (
    FatalModelError,
    ModelFallbackError,
    QuotaExceededError,
    TransientModelError,
)
from autopost.fallback import ModelFallbackRunner
from autopost.llm import ModelOptions


class TestModelFallbackRunner:
    """Tests for ordered fallback with bounded retries."""

    def test_first_model_success(self, make_runner, make_client):
        """Test that the first successful model is reported."""
        client = make_client(["hello"])
        result = make_runner(client).run("Say hello")

        assert result.text == "hello"
        assert result.model_used == "model-a"
        assert len(client.calls) == 1

    def test_transient_failures_exhaust_every_model(self, make_runner, make_client):
        """Test that M models x R retries are attempted before giving up."""
        client = make_client(handler=lambda call: TransientModelError("503 unavailable"))
        runner = make_runner(client, models=("m1", "m2"), max_retries=2)

        with pytest.raises(ModelFallbackError) as exc_info:
            runner.run("prompt")

        assert len(client.calls) == 4
        assert [c.model for c in client.calls] == ["m1", "m1", "m2", "m2"]
        assert exc_info.value.attempts == 4
        assert isinstance(exc_info.value.last_error, TransientModelError)

    def test_quota_short_circuits_model(self, make_runner, make_client):
        """Test that a quota error abandons the model after one call."""
        client = make_client(handler=lambda call: QuotaExceededError("429 quota exceeded"))
        runner = make_runner(client, models=("m1", "m2", "m3"), max_retries=3)

        with pytest.raises(ModelFallbackError):
            runner.run("prompt")

        assert [c.model for c in client.calls] == ["m1", "m2", "m3"]

    def test_quota_then_next_model_succeeds(self, make_runner, make_client, sleeps):
        """Test that quota exhaustion falls through to the next model without waiting."""
        client = make_client([QuotaExceededError("429"), "from second"])
        result = make_runner(client).run("prompt")

        assert result.model_used == "model-b"
        assert result.text == "from second"
        assert sleeps == []

    def test_fatal_error_skips_model(self, make_runner, make_client):
        """Test that a fatal error moves to the next model immediately."""
        client = make_client([FatalModelError("401 invalid key"), "ok"])
        result = make_runner(client, max_retries=3).run("prompt")

        assert result.model_used == "model-b"
        assert len(client.calls) == 2

    def test_transient_error_retries_same_model(self, make_runner, make_client, sleeps):
        """Test that a transient error retries the same model after a backoff."""
        client = make_client([TransientModelError("timeout"), "recovered"])
        result = make_runner(client).run("prompt")

        assert result.model_used == "model-a"
        assert [c.model for c in client.calls] == ["model-a", "model-a"]
        assert len(sleeps) == 1

    def test_empty_response_is_transient(self, make_runner, make_client):
        """Test that blank text counts as a failed attempt."""
        client = make_client(["   ", "real text"])
        result = make_runner(client).run("prompt")

        assert result.text == "real text"
        assert len(client.calls) == 2

    def test_unclassified_exception_is_retried(self, make_runner, make_client):
        """Test that unknown SDK exceptions get the bounded retry treatment."""
        client = make_client([RuntimeError("something odd"), "fine"])
        result = make_runner(client).run("prompt")

        assert result.model_used == "model-a"

    def test_backoff_grows_exponentially(self, make_client, sleeps):
        """Test exponential backoff between transient retries."""
        client = make_client(handler=lambda call: TransientModelError("503"))
        runner = ModelFallbackRunner(client, ["m1"], max_retries=3, backoff_base_ms=100, sleep=sleeps.append)

        with pytest.raises(ModelFallbackError):
            runner.run("prompt")

        assert sleeps == [pytest.approx(0.2), pytest.approx(0.4)]

    def test_retry_after_overrides_shorter_backoff(self, make_client):
        """Test that a server-suggested delay wins over a shorter backoff."""
        runner = ModelFallbackRunner(make_client(), ["m1"], max_retries=2, backoff_base_ms=100)
        assert runner.backoff_delay(1, retry_after=5.0) == 5.0
        assert runner.backoff_delay(1, retry_after=None) == pytest.approx(0.2)

    def test_search_grounded_uses_search_mode(self, make_runner, make_client):
        """Test that search-grounded options route to search_complete."""
        client = make_client(["grounded"])
        make_runner(client).run("prompt", options=ModelOptions(search_grounded=True))

        assert client.calls[0].mode == "search"

    def test_empty_prompt_rejected(self, make_runner, make_client):
        """Test that an empty prompt is rejected before any call."""
        client = make_client()
        with pytest.raises(ValueError):
            make_runner(client).run("   ")
        assert client.calls == []

    def test_invalid_construction(self, make_client):
        """Test constructor validation."""
        with pytest.raises(ValueError):
            ModelFallbackRunner(make_client(), [])
        with pytest.raises(ValueError):
            ModelFallbackRunner(make_client(), ["m1"], max_retries=0)

    def test_transient_retry_after_sets_the_wait(self, make_runner, make_client, sleeps):
        """Test that a retry-after hint on a transient error drives the backoff."""
        client = make_client([TransientModelError("503 busy", retry_after=3.0), "ok"])
        result = make_runner(client).run("prompt")

        assert result.text == "ok"
        assert sleeps == [3.0]

    def test_retries_stop_at_max_retries_per_model(self, make_client, sleeps):
        """Test that the retry policy sleeps between attempts but not after the last one."""
        client = make_client(handler=lambda call: TransientModelError("503"))
        runner = ModelFallbackRunner(client, ["m1", "m2"], max_retries=3, backoff_base_ms=0, sleep=sleeps.append)

        with pytest.raises(ModelFallbackError) as exc_info:
            runner.run("prompt")

        assert exc_info.value.attempts == 6
        assert len(sleeps) == 4
