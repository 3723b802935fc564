"""Core data models shared across the change-analysis and review pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

PASS = "PASS"
FAIL = "FAIL"

ADDED = "added"
REMOVED = "removed"

FALLBACK_DIFF_TEXT = "Fallback mode: Repository analysis without git diff comparison"


@dataclass(frozen=True)
class ResolvedReference:
    """Outcome of base reference resolution.

    ``ref`` is ``None`` exactly when ``fallback`` is true; callers must then
    switch to enumerating tracked files instead of diffing.
    """

    ref: Optional[str]
    fallback: bool = False
    strategy: Optional[str] = None

    @classmethod
    def fallback_mode(cls) -> "ResolvedReference":
        return cls(ref=None, fallback=True, strategy="fallback")


@dataclass
class FileChange:
    """One file affected by a comparison."""

    path: str
    insertions: int = 0
    deletions: int = 0
    binary: bool = False
    is_new: bool = False
    diff: Optional[str] = None

    def merge(self, other: "FileChange") -> None:
        """Fold ``other`` into this entry, accumulating change volume."""
        if other.path != self.path:
            raise ValueError(f"Cannot merge {other.path} into {self.path}")
        self.insertions += other.insertions
        self.deletions += other.deletions
        self.binary = self.binary or other.binary
        self.is_new = self.is_new or other.is_new
        if other.diff:
            self.diff = f"{self.diff}\n{other.diff}" if self.diff else other.diff


@dataclass(frozen=True)
class CommitInfo:
    sha: str
    author: str
    date: str
    message: str


@dataclass
class ChangeSet:
    """Aggregate result of comparing the current branch with a base reference.

    Construction normalises the file entries: duplicate paths are merged,
    ``new_files`` always wins over ``modified_files``, and every entry's
    ``is_new`` flag agrees with the list it ends up in.
    """

    current_branch: str
    base_ref: Optional[str]
    commits: List[CommitInfo] = field(default_factory=list)
    changed_files: List[FileChange] = field(default_factory=list)
    new_files: List[str] = field(default_factory=list)
    modified_files: List[str] = field(default_factory=list)
    diff_text: str = ""
    total_insertions: int = 0
    total_deletions: int = 0
    total_changes: int = 0
    include_uncommitted: bool = False
    fallback: bool = False

    def __post_init__(self) -> None:
        merged: Dict[str, FileChange] = {}
        for change in self.changed_files:
            existing = merged.get(change.path)
            if existing is None:
                merged[change.path] = change
            else:
                existing.merge(change)

        new_paths = _unique(self.new_files)
        new_set = set(new_paths)
        for path, change in merged.items():
            if change.is_new and path not in new_set:
                new_paths.append(path)
                new_set.add(path)
        for path in new_paths:
            if path not in merged:
                merged[path] = FileChange(path=path, is_new=True)

        modified_paths = [path for path in _unique(self.modified_files) if path not in new_set]
        modified_set = set(modified_paths)
        for path in merged:
            if path not in new_set and path not in modified_set:
                modified_paths.append(path)
                modified_set.add(path)
        for path in modified_paths:
            if path not in merged:
                merged[path] = FileChange(path=path)

        for path, change in merged.items():
            change.is_new = path in new_set

        self.changed_files = list(merged.values())
        self.new_files = new_paths
        self.modified_files = modified_paths
        if not self.total_changes:
            self.total_changes = len(self.changed_files)

    def get(self, path: str) -> Optional[FileChange]:
        for change in self.changed_files:
            if change.path == path:
                return change
        return None

    @property
    def paths(self) -> List[str]:
        return [change.path for change in self.changed_files]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_branch": self.current_branch,
            "base_ref": self.base_ref,
            "commits": [commit.__dict__.copy() for commit in self.commits],
            "changed_files": [
                {
                    "path": change.path,
                    "insertions": change.insertions,
                    "deletions": change.deletions,
                    "binary": change.binary,
                    "is_new": change.is_new,
                }
                for change in self.changed_files
            ],
            "new_files": list(self.new_files),
            "modified_files": list(self.modified_files),
            "total_insertions": self.total_insertions,
            "total_deletions": self.total_deletions,
            "total_changes": self.total_changes,
            "include_uncommitted": self.include_uncommitted,
            "fallback": self.fallback,
        }


@dataclass(frozen=True)
class FileDiff:
    """Diff and content for a single path against the resolved base."""

    path: str
    diff: str
    is_new: bool
    full_content: str = ""

    @property
    def has_changes(self) -> bool:
        return bool(self.diff.strip())


@dataclass(frozen=True)
class ChangedLine:
    """A single added or removed line reconstructed from a diff hunk."""

    line_number: int
    content: str
    type: str


@dataclass(frozen=True)
class ReviewIssue:
    """Issue synthesized by the keyword scan over unstructured review text."""

    severity: str  # critical|warning|info
    description: str
    suggestion: Optional[str] = None
    line: int = 0


@dataclass
class ReviewDecision:
    """Structured outcome of parsing a model's review text."""

    decision: str
    critical_issues: List[str] = field(default_factory=list)
    major_issues: List[str] = field(default_factory=list)
    minor_issues: List[str] = field(default_factory=list)
    raw_text: str = ""
    issues: List[ReviewIssue] = field(default_factory=list)
    structured: bool = False
    summary: str = field(init=False, default="")

    def __post_init__(self) -> None:
        self.critical_issues = _unique(self.critical_issues)
        self.major_issues = _unique(self.major_issues)
        self.minor_issues = _unique(self.minor_issues)
        decision = (self.decision or "").strip().upper()
        if decision not in {PASS, FAIL}:
            decision = PASS
        # The critical count is authoritative over whatever label the text declared.
        if self.critical_issues:
            decision = FAIL
        self.decision = decision
        self.summary = summarize(self)

    @property
    def passed(self) -> bool:
        return self.decision == PASS

    @property
    def total_issues(self) -> int:
        return len(self.critical_issues) + len(self.major_issues) + len(self.minor_issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision,
            "summary": self.summary,
            "critical_issues": list(self.critical_issues),
            "major_issues": list(self.major_issues),
            "minor_issues": list(self.minor_issues),
            "issues": [issue.__dict__.copy() for issue in self.issues],
            "structured": self.structured,
            "raw_text": self.raw_text,
        }


@dataclass
class FileResult:
    """Per-item outcome recorded by sequential batch operations."""

    item: str
    success: bool
    error: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)


def summarize(decision: ReviewDecision) -> str:
    """Templated one-line summary; never copied from the model text."""
    return (
        f"Review {decision.decision}: {len(decision.critical_issues)} critical, "
        f"{len(decision.major_issues)} major, {len(decision.minor_issues)} minor issue(s) found."
    )


def _unique(values: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


__all__ = [
    "ADDED",
    "FAIL",
    "FALLBACK_DIFF_TEXT",
    "PASS",
    "REMOVED",
    "ChangeSet",
    "ChangedLine",
    "CommitInfo",
    "FileChange",
    "FileDiff",
    "FileResult",
    "ResolvedReference",
    "ReviewDecision",
    "ReviewIssue",
    "summarize",
]
