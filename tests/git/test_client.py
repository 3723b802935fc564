"""Tests for the git subprocess client and its output parsers."""

from __future__ import annotations

from pathlib import Path

import pytest

from steelheart.git.client import GitClient, GitCommandError, parse_numstat, parse_porcelain


def test_client_prefixes_git_and_runs_in_repo(tmp_path: Path, fake_git) -> None:
    fake_git.branch("feature/login")
    client = GitClient(tmp_path, runner=fake_git)

    assert client.current_branch() == "feature/login"
    assert fake_git.calls == [["git", "rev-parse", "--abbrev-ref", "HEAD"]]


def test_client_wraps_process_errors(tmp_path: Path, fake_git) -> None:
    fake_git.fail("ls-files", stderr="fatal: not a git repository")
    client = GitClient(tmp_path, runner=fake_git)

    with pytest.raises(GitCommandError) as excinfo:
        client.tracked_files()

    assert "not a git repository" in str(excinfo.value)
    assert excinfo.value.command == ["git", "ls-files"]


def test_client_wraps_missing_git_binary(tmp_path: Path) -> None:
    def runner(args, cwd, capture_output=False):  # type: ignore[no-untyped-def]
        raise FileNotFoundError("git")

    with pytest.raises(GitCommandError):
        GitClient(tmp_path, runner=runner).status()


def test_verify_ref_reports_missing_refs_as_false(tmp_path: Path, fake_git) -> None:
    fake_git.refs("main")
    client = GitClient(tmp_path, runner=fake_git)

    assert client.verify_ref("main") is True
    assert client.verify_ref("origin/main") is False


def test_commit_count_parses_output(tmp_path: Path, fake_git) -> None:
    fake_git.commit_count(7)
    assert GitClient(tmp_path, runner=fake_git).commit_count() == 2


def test_staged_added_files_keeps_only_additions(tmp_path: Path, fake_git) -> None:
    fake_git.on(
        "diff",
        "--cached",
        "--name-status",
        output="A\tsrc/new.ts\nM\tsrc/old.ts\nD\tsrc/gone.ts\nA\tdocs/guide.md\n",
    )

    added = GitClient(tmp_path, runner=fake_git).staged_added_files()

    assert added == ["src/new.ts", "docs/guide.md"]


def test_log_parses_records(tmp_path: Path, fake_git) -> None:
    fake_git.log(
        "main..feature",
        [
            ("a" * 40, "Ada", "2024-05-01T10:00:00+00:00", "Add parser"),
            ("b" * 40, "Lin", "2024-05-02T10:00:00+00:00", "Fix: handle | pipes"),
        ],
    )

    commits = GitClient(tmp_path, runner=fake_git).log("main..feature")

    assert [commit.author for commit in commits] == ["Ada", "Lin"]
    assert commits[1].message == "Fix: handle | pipes"


def test_diff_text_limits_to_path(tmp_path: Path, fake_git) -> None:
    fake_git.on("diff", "main...feature", "--", "src/app.ts", output="diff body")

    text = GitClient(tmp_path, runner=fake_git).diff_text("main...feature", path="src/app.ts")

    assert text == "diff body"


def test_parse_numstat_handles_binary_and_renames() -> None:
    output = "3\t1\tsrc/app.ts\n-\t-\tassets/logo.png\n2\t0\tsrc/{old => new}/util.ts\n0\t0\tlib.py => pkg/lib.py\n"

    changes = parse_numstat(output)

    assert [change.path for change in changes] == [
        "src/app.ts",
        "assets/logo.png",
        "src/new/util.ts",
        "pkg/lib.py",
    ]
    assert changes[0].insertions == 3 and changes[0].deletions == 1
    assert changes[1].binary is True
    assert changes[1].insertions == 0


def test_parse_porcelain_splits_states() -> None:
    status = parse_porcelain(" M src/app.ts\nM  src/staged.ts\nMM src/both.ts\n?? notes.txt\nR  old.ts -> new.ts\n")

    assert status.modified == ["src/app.ts", "src/both.ts"]
    assert status.staged == ["src/staged.ts", "src/both.ts", "new.ts"]
    assert status.untracked == ["notes.txt"]
    assert status.is_clean is False
