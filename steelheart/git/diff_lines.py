"""Reconstruct per-line positions from unified diff text."""

from __future__ import annotations

import re
from typing import Dict, List

from ..models import ADDED, REMOVED, ChangedLine

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,\d+)? \+(\d+)(?:,\d+)? @@")
_FILE_HEADER = re.compile(r"^diff --git a/(.+?) b/(.+)$")
_SKIPPED_PREFIXES = ("+++", "---", "diff --git")
_SECTION_BREAKS = ("diff --git", "--- Staged Changes ---", "--- Working Directory Changes ---")


def changed_lines(diff_text: str) -> List[ChangedLine]:
    """Return added/removed lines in source order with new-file line numbers.

    Removed lines do not exist in the new file: they are reported at the
    number of the preceding line and do not advance the counter. Only lines
    inside a hunk produce events; anything before the first header of a file
    is ignored.
    """
    events: List[ChangedLine] = []
    counter = 0
    in_hunk = False
    for line in diff_text.split("\n"):
        header = _HUNK_HEADER.match(line)
        if header:
            counter = int(header.group(2)) - 1
            in_hunk = True
            continue
        if line.startswith(_SKIPPED_PREFIXES):
            in_hunk = in_hunk and not line.startswith(_SECTION_BREAKS)
            continue
        if not in_hunk or line.startswith("\\"):
            continue

        counter += 1
        if line.startswith("+"):
            events.append(ChangedLine(line_number=counter, content=line[1:], type=ADDED))
        elif line.startswith("-"):
            events.append(ChangedLine(line_number=counter - 1, content=line[1:], type=REMOVED))
            counter -= 1
    return events


def added_lines(diff_text: str) -> List[ChangedLine]:
    return [line for line in changed_lines(diff_text) if line.type == ADDED]


def split_file_diffs(diff_text: str) -> Dict[str, str]:
    """Split a multi-file diff into ``{path: diff}`` keyed by the new path.

    Sections that repeat a path (committed, staged and working tree diffs of
    the same file) are concatenated in order.
    """
    sections: Dict[str, List[str]] = {}
    current: List[str] | None = None
    for line in diff_text.split("\n"):
        match = _FILE_HEADER.match(line)
        if match:
            current = sections.setdefault(match.group(2), [])
            current.append(line)
            continue
        if current is not None:
            if line.startswith("--- Staged Changes ---") or line.startswith("--- Working Directory Changes ---"):
                current = None
                continue
            current.append(line)
    return {path: "\n".join(lines).rstrip("\n") for path, lines in sections.items()}


__all__ = ["added_lines", "changed_lines", "split_file_diffs"]
