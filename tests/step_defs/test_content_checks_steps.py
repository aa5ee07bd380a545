"""Step definitions for content check BDD tests."""

from pytest_bdd import given, parsers, scenarios, then, when

from autopost.quality import check_content_quality
from autopost.sanitize import sanitize_content
from autopost.validation import validate_post

scenarios("../features/content_checks.feature")


@given(parsers.parse('a body with a "{label}" line inside a bash code block'))
def body_with_copy_label(context, label):
    """Body whose code block carries a copy button label."""
    context["body"] = "\n".join(
        [
            "## Install it",
            "",
            "```bash",
            label,
            "npm install report-bot",
            "```",
            "",
            "Try it this week.",
        ]
    )


@given("a good body with an unclosed code fence appended")
def body_with_open_fence(context, good_body):
    """Passing body followed by a fence that never closes."""
    context["body"] = good_body + "\n\n```python\nprint('left open')"


@given("a good body")
def plain_good_body(context, good_body):
    """Passing body."""
    context["body"] = good_body


@given(parsers.parse("a body with {steps:d} steps and no headers"))
def short_headerless_body(context, make_body, steps):
    """Short body without section headings."""
    context["body"] = make_body(steps=steps, headers=False)


@when("I sanitize the body")
def sanitize(context):
    """Run the sanitizer."""
    context["clean"] = sanitize_content(context["body"])


@when(parsers.parse('I validate the post with title "{title}"'))
def validate(context, title):
    """Run the validator."""
    context["validation"] = validate_post(context["body"], title)


@when("I score the body")
def score(context):
    """Run the quality rubric."""
    context["quality"] = check_content_quality(context["body"])


@then(parsers.parse('the body has no line equal to "{label}"'))
def no_label_line(context, label):
    """Verify the label line was removed."""
    assert label not in [line.strip() for line in context["clean"].split("\n")]


@then(parsers.parse('the code block still contains "{text}"'))
def code_kept(context, text):
    """Verify the code inside the block survived."""
    clean = context["clean"]
    assert "```bash" in clean
    assert text in clean
    assert clean.count("```") == 2


@then(parsers.parse('validation fails with rule "{rule}"'))
def validation_fails(context, rule):
    """Verify the error rule was reported."""
    result = context["validation"]
    assert result.passed is False
    assert rule in [issue.rule for issue in result.errors]


@then("the quality check fails")
def quality_fails(context):
    """Verify the rubric rejected the body."""
    assert context["quality"].passed is False


@then(parsers.parse('the issues mention "{text}"'))
def issues_mention(context, text):
    """Verify an issue mentions the given text."""
    assert any(text in issue for issue in context["quality"].issues)
