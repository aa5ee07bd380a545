"""Shared fixtures and fakes for the autopost test suite."""

import json
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

import pytest

from autopost.config import PipelineConfig
from autopost.fallback import ModelFallbackRunner
from autopost.llm import LanguageModelClient, ModelOptions


@dataclass
class Call:
    """One recorded model call."""

    mode: str
    model: str
    prompt: str
    system_instruction: str
    options: ModelOptions


class ScriptedClient(LanguageModelClient):
    """Fake model client that replays scripted responses.

    Each response is either a string (returned) or an exception (raised).
    A ``handler`` callable, when given, decides the response per call instead.
    """

    def __init__(self, responses: Sequence[Any] = (), handler: Optional[Callable[[Call], Any]] = None):
        self.responses: List[Any] = list(responses)
        self.handler = handler
        self.calls: List[Call] = []

    def _respond(self, call: Call) -> str:
        self.calls.append(call)
        if self.handler is not None:
            result = self.handler(call)
        elif self.responses:
            result = self.responses.pop(0)
        else:
            raise AssertionError("ScriptedClient ran out of responses")
        if isinstance(result, BaseException):
            raise result
        return result

    def complete(self, model, prompt, system_instruction, options):
        return self._respond(Call("complete", model, prompt, system_instruction, options))

    def search_complete(self, model, prompt, system_instruction, options):
        return self._respond(Call("search", model, prompt, system_instruction, options))


def build_body(
    steps: int = 45,
    headers: bool = True,
    links: bool = True,
    intro: str = "Your weekly report eats an hour you never get back. Here is how to win it back.",
) -> str:
    """Markdown body that passes the quality rubric and validation by default."""
    parts = [intro, ""]
    per_section = steps // 3
    for section in range(3):
        if headers:
            parts.append(f"## Part {section + 1}: getting it done")
        for n in range(per_section):
            k = section * per_section + n + 1
            parts.append(
                f"{k}. Open the assistant and ask it to summarize update number {k} for your team in plain words."
            )
        parts.append("")
    if links:
        parts.append("Read the [official guide](https://openai.com/chatgpt) and this [related post](/blog) too.")
        parts.append("")
    if headers:
        parts.append("## Bottom line")
    parts.append("Try it on your next report and share how many minutes you save.")
    return "\n".join(parts)


def generation_json(
    body: str,
    title: str = "How to Automate Your Weekly Report With ChatGPT",
    tags: Sequence[str] = ("ChatGPT", "automation", "reports"),
    meta: str = "Turn a one-hour weekly report into a ten-minute task with a simple assistant workflow.",
    slug: str = "automate-weekly-report-chatgpt",
) -> str:
    """JSON generation response as the model would return it."""
    return json.dumps(
        {
            "seoTitle": title,
            "metaDescription": meta,
            "slug": slug,
            "tags": list(tags),
            "post_body": body,
        }
    )


@pytest.fixture
def context():
    """Shared test context."""
    return {}


@pytest.fixture
def config():
    """Pipeline config with a short model chain and no backoff."""
    return PipelineConfig(models=("model-a", "model-b"), max_retries=2, backoff_base_ms=0)


@pytest.fixture
def sleeps():
    """Recorded backoff delays."""
    return []


@pytest.fixture
def make_runner(sleeps):
    """Factory for a fallback runner that records sleeps instead of sleeping."""

    def _make(client: LanguageModelClient, models=("model-a", "model-b"), max_retries=2, backoff_base_ms=0):
        return ModelFallbackRunner(client, models, max_retries, backoff_base_ms, sleep=sleeps.append)

    return _make


@pytest.fixture
def make_client():
    """Factory for scripted model clients."""
    return ScriptedClient


@pytest.fixture
def make_body():
    """Factory for markdown post bodies."""
    return build_body


@pytest.fixture
def make_response():
    """Factory for JSON generation responses."""
    return generation_json


@pytest.fixture
def good_body():
    """A body that passes quality and validation."""
    return build_body()
