"""Tests for change aggregation across committed and local state."""

from __future__ import annotations

from steelheart.git.changes import STAGED_SEPARATOR, WORKING_SEPARATOR, ChangeAggregator
from steelheart.models import FALLBACK_DIFF_TEXT

APP_DIFF = """diff --git a/src/app.ts b/src/app.ts
--- a/src/app.ts
+++ b/src/app.ts
@@ -1,2 +1,4 @@
 import x from "x";
+import y from "y";
+import z from "z";
 run();"""

NEW_DIFF = """diff --git a/src/new.ts b/src/new.ts
new file mode 100644
--- /dev/null
+++ b/src/new.ts
@@ -0,0 +1,2 @@
+export const a = 1;
+export const b = 2;"""


def _assert_partitioned(change_set) -> None:
    new, modified = set(change_set.new_files), set(change_set.modified_files)
    assert new.isdisjoint(modified)
    assert new | modified == set(change_set.paths)
    assert len(change_set.paths) == len(set(change_set.paths))


def test_collect_committed_changes(repo_builder) -> None:
    git = repo_builder.git
    git.branch("feature").refs("main").commit_count(5)
    git.committed(
        "main",
        "feature",
        numstat="2\t0\tsrc/app.ts\n2\t0\tsrc/new.ts\n",
        added="src/new.ts\n",
        diff=APP_DIFF + "\n" + NEW_DIFF,
    )
    git.log("main..feature", [("c" * 40, "Ada", "2024-05-01T10:00:00+00:00", "Add new module")])

    change_set = ChangeAggregator(runner=git).collect(repo_builder.path(), "main")

    assert change_set is not None
    assert change_set.base_ref == "main"
    assert change_set.current_branch == "feature"
    assert change_set.new_files == ["src/new.ts"]
    assert change_set.modified_files == ["src/app.ts"]
    assert change_set.total_insertions == 4
    assert change_set.total_changes == 2
    assert [commit.message for commit in change_set.commits] == ["Add new module"]
    assert change_set.get("src/app.ts").diff.startswith("diff --git a/src/app.ts")
    assert "+export const b = 2;" in change_set.get("src/new.ts").diff
    _assert_partitioned(change_set)


def test_collect_merges_committed_and_working_edits(repo_builder) -> None:
    git = repo_builder.git
    git.branch("feature").refs("main").commit_count(5)
    git.committed(
        "main",
        "feature",
        numstat="3\t1\tsrc/app.ts\n10\t0\tsrc/new.ts\n",
        added="src/new.ts\n",
        diff=APP_DIFF,
    )
    git.working_tree(
        status=" M src/app.ts\nA  src/staged.ts\n?? notes.md\n",
        numstat="2\t0\tsrc/app.ts\n",
        staged_status="A\tsrc/staged.ts\n",
        untracked="notes.md\n",
        diff="working diff",
        staged_diff="staged diff",
    )

    change_set = ChangeAggregator(runner=git).collect(
        repo_builder.path(), "main", include_uncommitted=True
    )

    assert change_set is not None
    assert change_set.include_uncommitted is True
    assert change_set.paths.count("src/app.ts") == 1
    assert change_set.get("src/app.ts").insertions == 5
    assert change_set.get("src/app.ts").deletions == 1
    assert change_set.new_files == ["src/new.ts", "src/staged.ts", "notes.md"]
    assert change_set.modified_files == ["src/app.ts"]
    assert change_set.total_insertions == 15
    assert change_set.total_deletions == 1
    assert change_set.diff_text == (
        APP_DIFF + STAGED_SEPARATOR + "staged diff" + WORKING_SEPARATOR + "working diff"
    )
    _assert_partitioned(change_set)


def test_new_file_with_later_edits_stays_new(repo_builder) -> None:
    git = repo_builder.git
    git.branch("feature").refs("main").commit_count(5)
    git.committed("main", "feature", numstat="4\t0\tsrc/new.ts\n", added="src/new.ts\n")
    git.working_tree(status=" M src/new.ts\n", numstat="1\t1\tsrc/new.ts\n")

    change_set = ChangeAggregator(runner=git).collect(
        repo_builder.path(), "main", include_uncommitted=True
    )

    assert change_set.new_files == ["src/new.ts"]
    assert change_set.modified_files == []
    assert change_set.get("src/new.ts").is_new is True
    assert change_set.get("src/new.ts").insertions == 5


def test_fallback_enumerates_tracked_files(repo_builder) -> None:
    git = repo_builder.git
    git.branch("main").refs("main").commit_count(1)
    git.on("ls-files", output="a.py\nb.py\nc.py\n")
    git.on("status", "--porcelain", output=" M c.py\nM  a.py\n")

    aggregator = ChangeAggregator(runner=git, fallback_tracked_limit=2)
    change_set = aggregator.collect(repo_builder.path(), "main")

    assert change_set is not None
    assert change_set.fallback is True
    assert change_set.base_ref is None
    assert change_set.commits == []
    assert change_set.new_files == ["a.py", "b.py"]
    assert change_set.modified_files == ["c.py"]
    assert change_set.diff_text == FALLBACK_DIFF_TEXT
    _assert_partitioned(change_set)


def test_fallback_caps_modified_files(repo_builder) -> None:
    git = repo_builder.git
    git.branch("main").commit_count(1)
    git.on("ls-files", output="")
    git.on("status", "--porcelain", output="".join(f" M f{index}.py\n" for index in range(30)))

    change_set = ChangeAggregator(runner=git).collect(repo_builder.path(), "main")

    assert len(change_set.modified_files) == 20
    assert change_set.modified_files[0] == "f0.py"


def test_collect_returns_none_when_git_fails(repo_builder) -> None:
    git = repo_builder.git
    git.branch("feature").refs("main").commit_count(5)

    assert ChangeAggregator(runner=git).collect(repo_builder.path(), "main") is None


def test_collect_outside_repository_returns_none(repo_builder) -> None:
    assert ChangeAggregator(runner=repo_builder.git).collect(repo_builder.path(), "main") is None


def test_file_changes_reads_content_of_new_files(repo_builder) -> None:
    repo_builder.write({"src/new.ts": "export const a = 1;\n"})
    git = repo_builder.git
    git.branch("feature").refs("main").commit_count(5)
    git.on("diff", "--name-only", "--diff-filter=A", "main...feature", "--", "src/new.ts", output="src/new.ts\n")
    git.on("diff", "main...feature", "--", "src/new.ts", output=NEW_DIFF)

    file_diff = ChangeAggregator(runner=git).file_changes(repo_builder.path(), "src/new.ts", "main")

    assert file_diff is not None
    assert file_diff.is_new is True
    assert file_diff.full_content == "export const a = 1;\n"
    assert file_diff.has_changes is True


def test_file_changes_in_fallback_mode_is_none(repo_builder) -> None:
    repo_builder.git.branch("main").commit_count(1)

    assert ChangeAggregator(runner=repo_builder.git).file_changes(repo_builder.path(), "a.py") is None


def test_staged_only_edit_is_a_modified_file(repo_builder) -> None:
    git = repo_builder.git
    git.branch("feature").refs("main").commit_count(5)
    git.committed("main", "feature")
    staged_diff = (
        "diff --git a/src/staged_edit.ts b/src/staged_edit.ts\n"
        "--- a/src/staged_edit.ts\n+++ b/src/staged_edit.ts\n"
        "@@ -1 +1,2 @@\n const a = 1;\n+const b = 2;"
    )
    git.working_tree(
        status="M  src/staged_edit.ts\n",
        staged_numstat="1\t0\tsrc/staged_edit.ts\n",
        staged_diff=staged_diff,
    )

    change_set = ChangeAggregator(runner=git).collect(
        repo_builder.path(), "main", include_uncommitted=True
    )

    assert change_set is not None
    assert change_set.modified_files == ["src/staged_edit.ts"]
    assert change_set.new_files == []
    assert change_set.get("src/staged_edit.ts").insertions == 1
    assert change_set.total_insertions == 1
    assert "+const b = 2;" in change_set.get("src/staged_edit.ts").diff
    _assert_partitioned(change_set)


def test_file_changes_appends_local_diffs(repo_builder) -> None:
    repo_builder.write({"src/app.ts": "run();\n"})
    git = repo_builder.git
    git.branch("feature").refs("main").commit_count(5)
    git.file_diff("main", "feature", "src/app.ts", diff=APP_DIFF)
    git.on("diff", "--cached", "--", "src/app.ts", output="")
    git.on("diff", "--", "src/app.ts", output="diff --git a/src/app.ts b/src/app.ts\n@@ -4 +4,2 @@\n run();\n+stop();\n")
    git.on("diff", "--cached", "--name-status", output="")

    file_diff = ChangeAggregator(runner=git).file_changes(
        repo_builder.path(), "src/app.ts", "main", include_uncommitted=True
    )

    assert file_diff.is_new is False
    assert file_diff.full_content == ""
    assert file_diff.diff.startswith(APP_DIFF)
    assert file_diff.diff.endswith("+stop();")


def test_has_local_changes_reads_porcelain_status(repo_builder) -> None:
    git = repo_builder.git
    aggregator = ChangeAggregator(runner=git)

    assert aggregator.has_local_changes(repo_builder.path()) is False

    git.on("status", "--porcelain", output="")
    assert aggregator.has_local_changes(repo_builder.path()) is False

    git.on("status", "--porcelain", output="?? notes.md\n")
    assert aggregator.has_local_changes(repo_builder.path()) is True
