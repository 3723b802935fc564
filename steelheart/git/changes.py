"""Aggregate committed, staged and untracked state into one change set."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from ..logging import get_logger
from ..models import FALLBACK_DIFF_TEXT, ChangeSet, FileChange, FileDiff, ResolvedReference
from .client import GitClient, GitCommandError
from .diff_lines import split_file_diffs
from .refs import ReferenceResolver

STAGED_SEPARATOR = "\n\n--- Staged Changes ---\n"
WORKING_SEPARATOR = "\n\n--- Working Directory Changes ---\n"


class ChangeAggregator:
    """Builds a :class:`ChangeSet` for the current branch against a base.

    Any git failure while aggregating aborts the whole run and yields
    ``None``; callers treat that as "nothing to analyze".
    """

    def __init__(
        self,
        resolver: ReferenceResolver | None = None,
        *,
        runner: Callable[..., str] | None = None,
        fallback_tracked_limit: int = 50,
        fallback_modified_limit: int = 20,
    ) -> None:
        self.resolver = resolver or ReferenceResolver()
        self._runner = runner
        self.fallback_tracked_limit = fallback_tracked_limit
        self.fallback_modified_limit = fallback_modified_limit
        self.logger = get_logger("git.changes")

    def collect(
        self,
        repo_path: str | Path,
        base_branch: str = "main",
        *,
        include_uncommitted: bool = False,
    ) -> Optional[ChangeSet]:
        client = self._client(repo_path)
        resolved = self.resolver.resolve(client, base_branch)
        try:
            if resolved.fallback:
                change_set = self._fallback(client, _branch_or_head(client))
            elif include_uncommitted:
                change_set = self._with_uncommitted(client, client.current_branch(), resolved)
            else:
                change_set = self._committed(client, client.current_branch(), resolved)
        except GitCommandError as exc:
            self.logger.warning("Could not collect branch changes: %s", exc)
            return None

        change_set.include_uncommitted = include_uncommitted
        self.logger.debug(
            "Collected %d changed file(s) (%d new, %d modified) against %s",
            len(change_set.changed_files),
            len(change_set.new_files),
            len(change_set.modified_files),
            change_set.base_ref or "fallback",
        )
        return change_set

    def file_changes(
        self,
        repo_path: str | Path,
        path: str,
        base_branch: str = "main",
        *,
        include_uncommitted: bool = False,
    ) -> Optional[FileDiff]:
        """Diff a single path against the resolved base, reading content for new files.

        With ``include_uncommitted`` the staged and working tree diffs of the
        path follow the committed one.
        """
        client = self._client(repo_path)
        resolved = self.resolver.resolve(client, base_branch)
        if resolved.fallback:
            self.logger.debug("No comparison reference for %s", path)
            return None
        try:
            range_spec = _three_dot(resolved, client.current_branch())
            is_new = bool(client.added_files(range_spec, path=path))
            sections = [client.diff_text(range_spec, path=path)]
            if include_uncommitted:
                sections.append(client.diff_text("--cached", path=path))
                sections.append(client.diff_text(path=path))
                is_new = is_new or path in client.staged_added_files()
        except GitCommandError as exc:
            self.logger.warning("Could not get changes for %s: %s", path, exc)
            return None

        diff = "\n".join(section.rstrip("\n") for section in sections if section.strip())
        content = ""
        if is_new:
            try:
                content = (Path(repo_path) / path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.warning("Could not read file content for %s: %s", path, exc)
        return FileDiff(path=path, diff=diff, is_new=is_new, full_content=content)

    def has_local_changes(self, repo_path: str | Path) -> bool:
        """True when the working tree has staged, unstaged or untracked changes."""
        try:
            return not self._client(repo_path).status().is_clean
        except GitCommandError as exc:
            self.logger.debug("Could not read working tree status: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Modes

    def _committed(self, client: GitClient, current: str, resolved: ResolvedReference) -> ChangeSet:
        range_spec = _three_dot(resolved, current)
        commits = client.log(f"{resolved.ref}..{current}")
        files = client.diff_numstat(range_spec)
        new_files = client.added_files(range_spec)
        diff_text = client.diff_text(range_spec)

        new_set = set(new_files)
        for change in files:
            change.is_new = change.path in new_set
        _attach_diffs(files, diff_text)

        return ChangeSet(
            current_branch=current,
            base_ref=resolved.ref,
            commits=commits,
            changed_files=files,
            new_files=new_files,
            modified_files=[change.path for change in files if change.path not in new_set],
            diff_text=diff_text,
            total_insertions=sum(change.insertions for change in files),
            total_deletions=sum(change.deletions for change in files),
        )

    def _with_uncommitted(
        self, client: GitClient, current: str, resolved: ResolvedReference
    ) -> ChangeSet:
        range_spec = _three_dot(resolved, current)
        commits = client.log(f"{resolved.ref}..{current}")
        status = client.status()
        committed = client.diff_numstat(range_spec)
        staged = client.diff_numstat("--cached")
        working = client.diff_numstat()
        committed_new = client.added_files(range_spec)
        staged_new = client.staged_added_files()
        untracked = client.untracked_files()
        committed_text = client.diff_text(range_spec)
        working_text = client.diff_text()
        staged_text = client.diff_text("--cached")

        total_insertions = sum(change.insertions for change in [*committed, *staged, *working])
        total_deletions = sum(change.deletions for change in [*committed, *staged, *working])
        new_files = _ordered_union(committed_new, staged_new, untracked)
        new_set = set(new_files)

        merged: Dict[str, FileChange] = {}
        for change in [*committed, *staged, *working]:
            change.is_new = change.path in new_set
            existing = merged.get(change.path)
            if existing is None:
                merged[change.path] = change
            else:
                existing.merge(change)
        for path in [*staged_new, *untracked]:
            merged.setdefault(path, FileChange(path=path, is_new=True))

        modified_files = _ordered_union(
            [change.path for change in committed if change.path not in new_set],
            [path for path in status.staged if path not in new_set],
            [change.path for change in staged if change.path not in new_set],
            [path for path in status.modified if path not in new_set],
        )

        diff_text = committed_text + STAGED_SEPARATOR + staged_text + WORKING_SEPARATOR + working_text
        files = list(merged.values())
        _attach_diffs(files, diff_text)

        return ChangeSet(
            current_branch=current,
            base_ref=resolved.ref,
            commits=commits,
            changed_files=files,
            new_files=new_files,
            modified_files=modified_files,
            diff_text=diff_text,
            total_insertions=total_insertions,
            total_deletions=total_deletions,
        )

    def _fallback(self, client: GitClient, current: str) -> ChangeSet:
        tracked = client.tracked_files()[: self.fallback_tracked_limit]
        status = client.status()
        tracked_set = set(tracked)
        modified = [
            path
            for path in _ordered_union(status.modified, status.staged)
            if path not in tracked_set
        ][: self.fallback_modified_limit]

        files = [FileChange(path=path, is_new=True) for path in tracked]
        files.extend(FileChange(path=path) for path in modified)
        return ChangeSet(
            current_branch=current,
            base_ref=None,
            commits=[],
            changed_files=files,
            new_files=tracked,
            modified_files=modified,
            diff_text=FALLBACK_DIFF_TEXT,
            fallback=True,
        )

    def _client(self, repo_path: str | Path) -> GitClient:
        return GitClient(repo_path, runner=self._runner)


def _branch_or_head(client: GitClient) -> str:
    # A repository without commits has no branch tip to name yet.
    try:
        return client.current_branch()
    except GitCommandError:
        return "HEAD"


def _three_dot(resolved: ResolvedReference, current: str) -> str:
    return f"{resolved.ref}...{current}"


def _ordered_union(*groups: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    ordered: List[str] = []
    for group in groups:
        for path in group:
            if path and path not in seen:
                seen.add(path)
                ordered.append(path)
    return ordered


def _attach_diffs(files: Iterable[FileChange], diff_text: str) -> None:
    per_file = split_file_diffs(diff_text)
    for change in files:
        if change.diff is None and change.path in per_file:
            change.diff = per_file[change.path]


__all__ = ["ChangeAggregator", "STAGED_SEPARATOR", "WORKING_SEPARATOR"]
