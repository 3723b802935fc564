"""Review report files written next to the run output."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .logging import get_logger
from .models import ChangeSet, ReviewDecision

JSON_REPORT = "code-review-report.json"
MARKDOWN_REPORT = "code-review-report.md"


class ReportWriter:
    """Serializes a review decision and its change set to JSON and markdown."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger("reporting")

    def write_review(
        self,
        decision: ReviewDecision,
        change_set: Optional[ChangeSet],
        output_dir: Path,
    ) -> Tuple[Path, Path]:
        output_dir.mkdir(parents=True, exist_ok=True)
        generated_at = self._clock().isoformat()

        payload = {
            "generated_at": generated_at,
            "review": decision.to_dict(),
            "changes": change_set.to_dict() if change_set is not None else None,
        }
        json_path = output_dir / JSON_REPORT
        json_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

        markdown_path = output_dir / MARKDOWN_REPORT
        markdown_path.write_text(render_markdown(decision, change_set, generated_at), encoding="utf-8")

        self.logger.info("Review reports written to %s", output_dir)
        return json_path, markdown_path


def render_markdown(
    decision: ReviewDecision,
    change_set: Optional[ChangeSet],
    generated_at: str = "",
) -> str:
    lines: List[str] = ["# Code Review Report", ""]
    if generated_at:
        lines.extend([f"_Generated {generated_at}_", ""])
    lines.extend([f"**Decision:** {decision.decision}", "", decision.summary, ""])

    if change_set is not None:
        base = change_set.base_ref or "fallback analysis"
        lines.extend(
            [
                "## Changes",
                "",
                f"- Branch: `{change_set.current_branch}` compared with `{base}`",
                f"- Files: {len(change_set.changed_files)} "
                f"({len(change_set.new_files)} new, {len(change_set.modified_files)} modified)",
                f"- Lines: +{change_set.total_insertions} / -{change_set.total_deletions}",
                "",
            ]
        )

    for title, entries in (
        ("Critical Issues", decision.critical_issues),
        ("Major Issues", decision.major_issues),
        ("Minor Issues", decision.minor_issues),
    ):
        lines.extend([f"## {title}", ""])
        if entries:
            lines.extend(f"- {entry}" for entry in entries)
        else:
            lines.append("None.")
        lines.append("")

    return "\n".join(lines).rstrip("\n") + "\n"


__all__ = ["JSON_REPORT", "MARKDOWN_REPORT", "ReportWriter", "render_markdown"]
