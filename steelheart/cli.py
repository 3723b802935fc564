"""CLI entrypoints for steelheart commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from .config import ConfigError
from .llm.runner import LLMError
from .logging import configure_logging
from .models import ChangeSet, FileResult
from .orchestrator import Orchestrator

EXIT_REVIEW_FAILED = 2


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _add_change_options(parser: argparse.ArgumentParser) -> None:
    _add_verbose_option(parser, suppress_default=True)
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    parser.add_argument(
        "--base",
        default=None,
        help="Branch to compare against (defaults to git.base_branch, else main).",
    )
    parser.add_argument(
        "--include-local",
        action="store_true",
        help="Include staged, unstaged and untracked changes.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="steelheart",
        description="Review, document, comment and test branch changes with a hosted language model.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only log errors.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    changes_parser = subparsers.add_parser(
        "changes",
        help="Show the files changed on this branch.",
    )
    _add_change_options(changes_parser)
    changes_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the change set as JSON.",
    )

    review_parser = subparsers.add_parser(
        "review",
        help="Review branch changes and write a report.",
    )
    _add_change_options(review_parser)
    review_parser.add_argument(
        "--output",
        default=None,
        help="Directory for the review reports (defaults to output_dir).",
    )
    review_parser.add_argument(
        "--fail-on-critical",
        action="store_true",
        help=f"Exit with status {EXIT_REVIEW_FAILED} when the review decision is FAIL.",
    )

    docs_parser = subparsers.add_parser(
        "docs",
        help="Write markdown documentation for branch changes.",
    )
    _add_change_options(docs_parser)
    docs_parser.add_argument(
        "--output",
        default=None,
        help="Directory for the documentation file (defaults to output_dir).",
    )

    tests_parser = subparsers.add_parser(
        "tests",
        help="Generate tests for changed source files.",
    )
    _add_change_options(tests_parser)
    tests_parser.add_argument(
        "--output",
        default=None,
        help="Write test files here instead of next to each source file.",
    )

    comment_parser = subparsers.add_parser(
        "comment",
        help="Add comments to newly added lines.",
    )
    _add_change_options(comment_parser)
    comment_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Ask for comments without writing files.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for steelheart commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    load_dotenv(Path.cwd() / ".env")
    configure_logging(
        verbose=bool(args.verbose),
        quiet=bool(args.quiet),
        log_file=args.log_file,
    )

    orchestrator = Orchestrator()
    base = args.base
    include_local = bool(args.include_local)

    try:
        if args.command == "changes":
            change_set = orchestrator.run_changes(args.path, base, include_uncommitted=include_local)
            if change_set is None:
                print("No changes to analyze. Is this a git repository?")
                return
            if args.json:
                print(json.dumps(change_set.to_dict(), indent=2))
            else:
                print(_format_changes(change_set))
        elif args.command == "review":
            outcome = orchestrator.run_review(
                args.path,
                base,
                include_uncommitted=include_local,
                output_dir=args.output,
            )
            if outcome is None:
                print("No changes found to review.")
                return
            print(outcome.decision.summary)
            for path in outcome.report_paths:
                print(f"Report written to {_relativize(path)}")
            if args.fail_on_critical and not outcome.decision.passed:
                parser.exit(EXIT_REVIEW_FAILED)
        elif args.command == "docs":
            docs_path = orchestrator.run_docs(
                args.path,
                base,
                include_uncommitted=include_local,
                output_dir=args.output,
            )
            if docs_path is None:
                print("No changes found to document.")
                return
            print(f"Documentation written to {_relativize(docs_path)}")
        elif args.command == "tests":
            results = orchestrator.run_tests(
                args.path,
                base,
                include_uncommitted=include_local,
                output_dir=args.output,
            )
            _report_results(parser, results, "test file", detail_key="test_file")
        elif args.command == "comment":
            results = orchestrator.run_comments(
                args.path,
                base,
                include_uncommitted=include_local,
                write=not args.dry_run,
            )
            _report_results(parser, results, "commented file", detail_key="comments_added")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")
    except LLMError as exc:
        parser.exit(1, f"Model request failed: {exc}\n")
    except RuntimeError as exc:
        parser.exit(1, f"steelheart {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _format_changes(change_set: ChangeSet) -> str:
    base = change_set.base_ref or "fallback analysis (no comparison reference)"
    lines: List[str] = [
        f"Branch {change_set.current_branch} compared with {base}",
        f"{len(change_set.changed_files)} file(s) changed, "
        f"+{change_set.total_insertions} / -{change_set.total_deletions}",
    ]
    for change in change_set.changed_files:
        marker = "A" if change.is_new else "M"
        counts = "binary" if change.binary else f"+{change.insertions} -{change.deletions}"
        lines.append(f"  {marker} {change.path} ({counts})")
    return "\n".join(lines)


def _report_results(
    parser: argparse.ArgumentParser,
    results: List[FileResult],
    noun: str,
    *,
    detail_key: str,
) -> None:
    if not results:
        print("No changed source files to process.")
        return
    for result in results:
        if result.success:
            print(f"  ok    {result.item}: {result.detail.get(detail_key)}")
        else:
            print(f"  error {result.item}: {result.error}")
    succeeded = sum(1 for result in results if result.success)
    print(f"{succeeded}/{len(results)} {noun}(s) processed.")
    if succeeded == 0:
        parser.exit(1)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
