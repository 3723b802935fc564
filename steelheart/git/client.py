"""Thin subprocess wrapper around the git commands the pipeline needs."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..models import CommitInfo, FileChange

_LOG_SEPARATOR = "\x1f"
_LOG_RECORD_END = "\x1e"


class GitCommandError(RuntimeError):
    """Raised when a git invocation fails or the path is not a repository."""

    def __init__(self, args: Iterable[str], message: str) -> None:
        self.command = list(args)
        super().__init__(f"{' '.join(self.command)}: {message}")


@dataclass
class RepoStatus:
    """Subset of ``git status --porcelain`` the aggregator cares about."""

    modified: List[str] = field(default_factory=list)
    staged: List[str] = field(default_factory=list)
    untracked: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.modified or self.staged or self.untracked)


class GitClient:
    """Runs git against a single repository.

    Every method raises :class:`GitCommandError` on failure; callers decide
    which failures map to fallback behaviour.
    """

    def __init__(self, repo_path: str | Path, runner: Callable[..., str] | None = None) -> None:
        self.repo = Path(repo_path)
        self._runner = runner or self._default_runner

    # ------------------------------------------------------------------
    # References

    def verify_ref(self, ref: str) -> bool:
        try:
            self._git(["rev-parse", "--verify", "--quiet", ref])
        except GitCommandError:
            return False
        return True

    def current_branch(self) -> str:
        return self._git(["rev-parse", "--abbrev-ref", "HEAD"]).strip()

    def commit_count(self, limit: int = 2) -> int:
        output = self._git(["rev-list", "--count", f"--max-count={limit}", "HEAD"])
        try:
            return int(output.strip() or 0)
        except ValueError as exc:
            raise GitCommandError(["rev-list", "--count"], f"unexpected output {output!r}") from exc

    # ------------------------------------------------------------------
    # Diffs

    def diff_numstat(self, *args: str) -> List[FileChange]:
        """Per-file insertion/deletion counts for ``git diff --numstat <args>``."""
        output = self._git(["diff", "--numstat", *args])
        return parse_numstat(output)

    def diff_text(self, *args: str, path: Optional[str] = None) -> str:
        command = ["diff", *args]
        if path:
            command.extend(["--", path])
        return self._git(command)

    def added_files(self, range_spec: str, path: Optional[str] = None) -> List[str]:
        command = ["diff", "--name-only", "--diff-filter=A", range_spec]
        if path:
            command.extend(["--", path])
        return _split_lines(self._git(command))

    def staged_added_files(self) -> List[str]:
        output = self._git(["diff", "--cached", "--name-status"])
        added: List[str] = []
        for line in output.splitlines():
            if not line.startswith("A"):
                continue
            parts = line.split("\t")
            if len(parts) > 1 and parts[1].strip():
                added.append(parts[1].strip())
        return added

    # ------------------------------------------------------------------
    # Working tree

    def untracked_files(self) -> List[str]:
        return _split_lines(self._git(["ls-files", "--others", "--exclude-standard"]))

    def tracked_files(self) -> List[str]:
        return _split_lines(self._git(["ls-files"]))

    def status(self) -> RepoStatus:
        output = self._git(["status", "--porcelain"])
        return parse_porcelain(output)

    def log(self, range_spec: str) -> List[CommitInfo]:
        fmt = _LOG_SEPARATOR.join(["%H", "%an", "%aI", "%s"]) + _LOG_RECORD_END
        output = self._git(["log", f"--format={fmt}", range_spec])
        commits: List[CommitInfo] = []
        for record in output.split(_LOG_RECORD_END):
            record = record.strip("\n")
            if not record.strip():
                continue
            parts = record.split(_LOG_SEPARATOR)
            if len(parts) != 4:
                continue
            sha, author, date, message = parts
            commits.append(CommitInfo(sha=sha, author=author, date=date, message=message))
        return commits

    # ------------------------------------------------------------------
    # Internals

    def _git(self, args: List[str]) -> str:
        command = ["git", *args]
        try:
            return self._runner(command, cwd=self.repo, capture_output=True)
        except GitCommandError:
            raise
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise GitCommandError(command, detail) from exc
        except OSError as exc:
            raise GitCommandError(command, str(exc)) from exc

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


def parse_numstat(output: str) -> List[FileChange]:
    """Parse ``--numstat`` rows; binary files report ``-`` for both counts."""
    changes: List[FileChange] = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3:
            continue
        added, deleted, path = parts[0], parts[1], "\t".join(parts[2:])
        path = _rename_target(path.strip())
        if not path:
            continue
        binary = added == "-" and deleted == "-"
        changes.append(
            FileChange(
                path=path,
                insertions=0 if binary else _as_int(added),
                deletions=0 if binary else _as_int(deleted),
                binary=binary,
            )
        )
    return changes


def parse_porcelain(output: str) -> RepoStatus:
    status = RepoStatus()
    for line in output.splitlines():
        if len(line) < 4:
            continue
        index_state, tree_state, path = line[0], line[1], _rename_target(line[3:].strip())
        if index_state == "?" and tree_state == "?":
            status.untracked.append(path)
            continue
        if index_state not in {" ", "?", "!"}:
            status.staged.append(path)
        if tree_state == "M":
            status.modified.append(path)
    return status


def _rename_target(path: str) -> str:
    # numstat and porcelain render renames as "old => new" / "old -> new".
    for arrow in (" => ", " -> "):
        if arrow in path:
            if "{" in path and "}" in path:
                prefix, rest = path.split("{", 1)
                inner, suffix = rest.split("}", 1)
                target = inner.split(arrow.strip(), 1)[-1].strip()
                return f"{prefix}{target}{suffix}".replace("//", "/")
            return path.split(arrow, 1)[1].strip()
    return path


def _split_lines(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def _as_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


__all__ = ["GitClient", "GitCommandError", "RepoStatus", "parse_numstat", "parse_porcelain"]
