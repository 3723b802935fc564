"""Tests for review report files."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from steelheart.models import FAIL, ChangeSet, FileChange, ReviewDecision
from steelheart.reporting import JSON_REPORT, MARKDOWN_REPORT, ReportWriter, render_markdown


def _decision() -> ReviewDecision:
    return ReviewDecision(
        decision="PASS",
        critical_issues=["Secrets in repo"],
        minor_issues=["Typo"],
        raw_text="raw",
    )


def _change_set() -> ChangeSet:
    return ChangeSet(
        current_branch="feature",
        base_ref="main",
        changed_files=[FileChange(path="src/app.ts", insertions=4, deletions=1)],
        total_insertions=4,
        total_deletions=1,
    )


def test_write_review_creates_both_reports(tmp_path: Path) -> None:
    writer = ReportWriter(clock=lambda: datetime(2024, 5, 1, tzinfo=timezone.utc))

    json_path, markdown_path = writer.write_review(_decision(), _change_set(), tmp_path / "out")

    assert json_path == tmp_path / "out" / JSON_REPORT
    assert markdown_path == tmp_path / "out" / MARKDOWN_REPORT
    payload = json.loads(json_path.read_text(encoding="utf-8"))
    assert payload["generated_at"] == "2024-05-01T00:00:00+00:00"
    assert payload["review"]["decision"] == FAIL
    assert payload["review"]["critical_issues"] == ["Secrets in repo"]
    assert payload["changes"]["changed_files"][0]["path"] == "src/app.ts"


def test_render_markdown_lists_sections() -> None:
    markdown = render_markdown(_decision(), _change_set())

    assert markdown.startswith("# Code Review Report\n")
    assert "**Decision:** FAIL" in markdown
    assert "- Secrets in repo" in markdown
    assert "## Major Issues\n\nNone." in markdown
    assert "compared with `main`" in markdown


def test_render_markdown_without_change_set() -> None:
    markdown = render_markdown(ReviewDecision(decision="PASS"), None)

    assert "## Changes" not in markdown
    assert "Review PASS: 0 critical, 0 major, 0 minor issue(s) found." in markdown
