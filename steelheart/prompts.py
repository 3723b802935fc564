"""Prompt text for the review, docs, tests and comment commands."""

from __future__ import annotations

from typing import Iterable, List, Mapping

from .models import ChangedLine, ChangeSet

MAX_FILE_CHARS = 12000
MAX_DIFF_CHARS = 20000

REVIEW_SYSTEM = (
    "You are a senior code reviewer. Review new files completely and modified files "
    "only where the diff changes them. Report security, correctness, performance and "
    "maintainability problems with their location and a concrete fix."
)

REVIEW_FORMAT = """Respond in markdown using exactly this layout:

REVIEW DECISION: PASS or FAIL

## Critical Issues
- one bullet per issue that must be fixed before merging, or "None"

## Major Issues
- one bullet per issue that should be fixed, or "None"

## Minor Issues
- one bullet per nice-to-have improvement, or "None"

## Summary
A short overall assessment.

Use FAIL whenever there is at least one critical issue."""

TEST_SYSTEM = "You write thorough, runnable unit tests. Reply with a single fenced code block."

COMMENT_SYSTEM = (
    "You add concise comments that explain intent to newly written code. You never "
    "change behaviour and never comment unchanged lines."
)

COMMENT_FORMAT = """Reply with JSON only:
{
  "commentedCode": "the complete file with comments added only to new/changed lines",
  "commentsAdded": number_of_comments_added,
  "summary": "one sentence describing the comments"
}"""

DOCS_SYSTEM = (
    "You are a technical writer documenting a branch for reviewers and future "
    "maintainers. Explain what changed, why it matters and how to use it."
)

DOCS_FORMAT = """Respond in markdown with these sections:

## Summary
## New Features
## Changes to Existing Code
## Technical Details
## Testing Notes

Reference file paths where useful and leave a section out when it has nothing to say."""


def build_review_prompt(change_set: ChangeSet, new_file_contents: Mapping[str, str]) -> str:
    lines = [
        f"Review the changes on branch `{change_set.current_branch}` "
        f"compared with `{change_set.base_ref or 'the repository snapshot'}`.",
        "",
        *_change_overview(change_set, new_file_contents),
        "",
        REVIEW_FORMAT,
    ]
    return "\n".join(lines)


def build_docs_prompt(change_set: ChangeSet, new_file_contents: Mapping[str, str]) -> str:
    scope = "including uncommitted local changes" if change_set.include_uncommitted else "committed changes only"
    lines = [
        f"Document the changes on branch `{change_set.current_branch}` "
        f"compared with `{change_set.base_ref or 'the repository snapshot'}` ({scope}).",
        "",
        *_change_overview(change_set, new_file_contents),
        "",
        DOCS_FORMAT,
    ]
    return "\n".join(lines)


def _change_overview(change_set: ChangeSet, new_file_contents: Mapping[str, str]) -> List[str]:
    lines = [
        f"New files ({len(change_set.new_files)}): {', '.join(change_set.new_files) or 'none'}",
        f"Modified files ({len(change_set.modified_files)}): "
        f"{', '.join(change_set.modified_files) or 'none'}",
        f"Lines changed: +{change_set.total_insertions} / -{change_set.total_deletions}",
    ]
    if change_set.commits:
        lines.extend(["", "Commits:"])
        lines.extend(f"- {commit.sha[:8]} {commit.message}" for commit in change_set.commits)

    for path, content in new_file_contents.items():
        lines.extend(["", f"### New file: {path}", "```", _truncate(content, MAX_FILE_CHARS), "```"])

    if change_set.diff_text and not change_set.fallback:
        lines.extend(["", "### Diff", "```diff", _truncate(change_set.diff_text, MAX_DIFF_CHARS), "```"])
    return lines


def build_test_prompt(path: str, language: str, content: str, diff: str, *, is_new: bool) -> str:
    focus = "all functions, classes and methods" if is_new else "the added or modified code shown in the diff"
    lines = [
        f"Write unit tests in {language} for `{path}`.",
        f"Cover {focus}, including edge cases and failure scenarios. Mock external dependencies.",
        "",
        "File content:",
        f"```{language.lower()}",
        _truncate(content, MAX_FILE_CHARS),
        "```",
    ]
    if diff.strip() and not is_new:
        lines.extend(["", "Diff:", "```diff", _truncate(diff, MAX_DIFF_CHARS), "```"])
    return "\n".join(lines)


def build_comment_prompt(path: str, language: str, content: str, added: Iterable[ChangedLine]) -> str:
    added_block = "\n".join(f"{line.line_number}: {line.content}" for line in added)
    return "\n".join(
        [
            f"Add comments to the newly added lines of this {language} file `{path}`.",
            "",
            "Newly added lines (line number: content):",
            added_block,
            "",
            "Full file:",
            f"```{language.lower()}",
            _truncate(content, MAX_FILE_CHARS),
            "```",
            "",
            COMMENT_FORMAT,
        ]
    )


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "\n... (truncated)"


__all__ = [
    "COMMENT_SYSTEM",
    "DOCS_SYSTEM",
    "REVIEW_SYSTEM",
    "TEST_SYSTEM",
    "build_comment_prompt",
    "build_docs_prompt",
    "build_review_prompt",
    "build_test_prompt",
]
