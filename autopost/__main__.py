#!/usr/bin/env python3
"""Autopost - CLI entrypoint for one run of the content pipeline."""

import argparse
import logging
import os
import sys

from .config import DEFAULT_DB_PATH, MAX_QUALITY_ATTEMPTS, PipelineConfig
from .discovery import dump_topics
from .errors import ConfigurationMissingError, PipelineRunError
from .llm import ChatModelClient
from .orchestrator import GenerationOrchestrator, save_post
from .persistence import SQLitePostStore, SQLiteSettingsStore, create_post_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Autopost - autonomous blog post generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Discover a trending topic, generate, score, validate and save a draft
  python -m autopost

  # Write about a specific topic (skips discovery)
  python -m autopost "How to Use Gemini Inside Google Docs"

  # Generate without saving
  python -m autopost --dry-run --verbose

  # Only print the topics discovery would choose from
  python -m autopost --discover-only

Requires OPENAI_API_KEY. TAVILY_API_KEY enables search-grounded discovery.
""",
    )
    parser.add_argument(
        "topic",
        nargs="?",
        default=None,
        help="Manual topic; skips discovery and research",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run the pipeline but do not save the draft",
    )
    parser.add_argument(
        "--discover-only",
        action="store_true",
        help="Print discovered candidate topics as JSON and exit",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help=f"Quality-gated generation attempts (default: {MAX_QUALITY_ATTEMPTS})",
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help=f"SQLite database path (default: $AUTOPOST_DB_PATH or {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )
    return parser


def main(argv=None) -> int:
    """Main entry point for the autopost CLI."""
    args = build_parser().parse_args(argv)

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s: %(message)s")

    if args.max_attempts is not None and args.max_attempts < 1:
        print("Error: --max-attempts must be at least 1")
        return 2

    if not os.environ.get("TAVILY_API_KEY"):
        print("Warning: TAVILY_API_KEY not set - discovery and research will not be search-grounded")

    try:
        config = PipelineConfig.from_env(max_attempts=args.max_attempts)
        client = ChatModelClient()
    except ConfigurationMissingError as e:
        print(f"Error: {e}")
        return 1

    store = create_post_store("memory" if args.dry_run else "sqlite", db_path=args.db_path)
    settings_store = SQLiteSettingsStore(store) if isinstance(store, SQLitePostStore) else None
    orchestrator = GenerationOrchestrator.from_client(client, config, post_store=store, settings_store=settings_store)

    try:
        request = orchestrator.build_request(args.topic)

        if args.discover_only:
            topics = orchestrator.discovery.discover(request.focus_areas, exclude=request.exclude)
            print(dump_topics(topics))
            return 0

        print("=" * 60)
        print("AUTOPOST - Generating a draft post")
        print("=" * 60)
        print(f"  Topic: {request.manual_topic or '(autonomous discovery)'}")
        print(f"  Models: {', '.join(config.models)}")
        print(f"  Words: {request.min_words}-{request.max_words}")
        print(f"  Attempts: {config.max_attempts}")

        try:
            post = orchestrator.run(request)
        except PipelineRunError as e:
            print("\n" + "=" * 60)
            print("FAILED: no draft was accepted.")
            print(f"  {e.report.summary()}")
            print("=" * 60)
            return 1

        if args.dry_run:
            post_id = "(dry run, not saved)"
        else:
            post_id, post = save_post(store, post)

        print("\n" + "=" * 60)
        print("SUCCESS! Draft post generated.")
        print(f"  ID: {post_id}")
        print(f"  Title: {post.title}")
        print(f"  Slug: {post.slug}")
        print(f"  Score: {post.quality_score:.1f}/10 after {post.attempts} attempt(s)")
        print(f"  Model: {post.generated_by}")
        print(f"  Scheduled for: {post.scheduled_for.isoformat() if post.scheduled_for else '-'}")
        for warning in post.warnings:
            print(f"  Warning [{warning.rule}]: {warning.message}")
        print("=" * 60)
        if args.verbose:
            print(post.content)
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
