# src/main.py
"""CLI entry point: inspect runs, recompute progress, expire contexts.

Usage:
    storyloom show <run_id>
    storyloom progress <run_id> [--update]
    storyloom cleanup-contexts [--max-age-hours N]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from storyloom.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args.verbose)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="storyloom",
        description=f"storyloom v{__version__}: story generation workflow tools",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- show ---
    p_show = subparsers.add_parser("show", help="Show a run and its steps")
    p_show.add_argument("run_id", help="Run ID")
    p_show.set_defaults(func=_cmd_show)

    # --- progress ---
    p_progress = subparsers.add_parser(
        "progress", help="Estimate a run's completion percentage",
    )
    p_progress.add_argument("run_id", help="Run ID")
    p_progress.add_argument(
        "--update", action="store_true",
        help="Also write the percentage to the story record",
    )
    p_progress.set_defaults(func=_cmd_progress)

    # --- cleanup-contexts ---
    p_cleanup = subparsers.add_parser(
        "cleanup-contexts", help="Delete stale conversation contexts",
    )
    p_cleanup.add_argument(
        "--max-age-hours", type=float, default=None,
        help="Age threshold (default: CONTEXT_MAX_AGE_HOURS)",
    )
    p_cleanup.set_defaults(func=_cmd_cleanup)

    return parser


def _load_settings(verbose: bool):
    from storyloom.config.settings import load_settings
    from storyloom.logging.logger import setup_logging_from_settings

    overrides = {"log_level": "DEBUG", "log_format": "text"} if verbose else {}
    settings = load_settings(**overrides)
    setup_logging_from_settings(settings)
    return settings


def _build_ledger_and_progress(settings):
    from storyloom.ledger.ledger_factory import create_ledger
    from storyloom.progress.chapter_cache import ChapterCountCache
    from storyloom.progress.estimator import ProgressEstimator
    from storyloom.stories.story_factory import create_story_store

    ledger = create_ledger(settings)
    estimator = ProgressEstimator(
        ledger,
        create_story_store(settings),
        cache=ChapterCountCache(ttl_s=settings.progress_cache_ttl_s),
        default_chapter_count=settings.default_chapter_count,
        retry_attempts=settings.progress_retry_attempts,
        retry_delay_s=settings.progress_retry_delay_s,
    )
    return ledger, estimator


async def _cmd_show(args: argparse.Namespace, settings) -> int:
    """Print a run and its step trail."""
    ledger, _ = _build_ledger_and_progress(settings)
    run = await ledger.find_run(args.run_id)
    if run is None:
        logger.error("Run not found: %s", args.run_id)
        return 1
    steps = await ledger.get_run_steps(args.run_id)

    print(f"\nRun {run.run_id} (story {run.story_id}):")
    print(f"  Status:        {run.status.value}")
    print(f"  Current step:  {run.current_step or '-'}")
    if run.error_message:
        print(f"  Error:         {run.error_message}")
    print(f"  Created:       {run.created_at.isoformat()}")
    if run.metadata:
        print(f"  Metadata:      {json.dumps(run.metadata, default=str)}")
    print(f"  Steps ({len(steps)}):")
    for step in steps:
        print(f"    {step.step_name:<28} {step.status.value}")
    return 0


async def _cmd_progress(args: argparse.Namespace, settings) -> int:
    """Print (and optionally persist) a run's progress."""
    from storyloom.progress.estimator import describe

    _, estimator = _build_ledger_and_progress(settings)
    progress = await estimator.calculate_progress(args.run_id)
    print(json.dumps(describe(progress), indent=2))

    if args.update:
        update = await estimator.update_story_progress(args.run_id)
        if update is None:
            print("Story not updated (run failed or update already in progress)")
        else:
            print(
                f"Story {update.story_id} set to {update.completed_percentage}%"
                + (" (published)" if update.published else "")
            )
    return 0


async def _cmd_cleanup(args: argparse.Namespace, settings) -> int:
    """Expire conversation contexts older than the threshold."""
    from storyloom.context.context_factory import create_context_store
    from storyloom.context.manager import ContextManager

    manager = ContextManager(create_context_store(settings))
    hours = args.max_age_hours if args.max_age_hours is not None else settings.context_max_age_hours
    removed = await manager.cleanup_old_contexts(hours)
    stats = await manager.get_stats()
    print(f"Removed {removed} context(s); {stats.total_contexts} remaining")
    return 0


if __name__ == "__main__":
    sys.exit(main())
