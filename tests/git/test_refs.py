"""Tests for base reference resolution."""

from __future__ import annotations

from pathlib import Path

from steelheart.git.client import GitClient
from steelheart.git.refs import PREVIOUS_COMMIT, RefStrategy, ReferenceResolver


def _resolve(tmp_path: Path, fake_git, base: str = "main"):
    return ReferenceResolver().resolve(GitClient(tmp_path, runner=fake_git), base)


def test_resolver_prefers_requested_branch(tmp_path: Path, fake_git) -> None:
    fake_git.branch("feature").refs("main", "origin/main").commit_count(5)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.ref == "main"
    assert resolved.strategy == "requested"
    assert resolved.fallback is False


def test_resolver_falls_back_to_remote_branch(tmp_path: Path, fake_git) -> None:
    fake_git.branch("feature").refs("origin/main").commit_count(5)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.ref == "origin/main"
    assert resolved.strategy == "remote_requested"


def test_resolver_tries_secondary_branch(tmp_path: Path, fake_git) -> None:
    fake_git.branch("feature").refs("master").commit_count(5)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.ref == "master"
    assert resolved.strategy == "local_secondary"


def test_resolver_uses_previous_commit_when_no_branch_exists(tmp_path: Path, fake_git) -> None:
    fake_git.branch("feature").commit_count(3)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.ref == PREVIOUS_COMMIT
    assert resolved.strategy == "previous_commit"


def test_resolver_on_base_branch_compares_with_previous_commit(tmp_path: Path, fake_git) -> None:
    fake_git.branch("main").refs("main").commit_count(4)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.ref == PREVIOUS_COMMIT
    assert resolved.fallback is False


def test_resolver_on_base_branch_via_remote_name(tmp_path: Path, fake_git) -> None:
    fake_git.branch("main").refs("origin/main").commit_count(4)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.ref == PREVIOUS_COMMIT


def test_single_commit_repository_on_base_branch_uses_fallback(tmp_path: Path, fake_git) -> None:
    fake_git.branch("main").refs("main").commit_count(1)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.fallback is True
    assert resolved.ref is None


def test_single_commit_repository_without_base_uses_fallback(tmp_path: Path, fake_git) -> None:
    fake_git.branch("feature").commit_count(1)

    resolved = _resolve(tmp_path, fake_git)

    assert resolved.fallback is True
    assert PREVIOUS_COMMIT not in {resolved.ref}


def test_resolver_never_raises_without_repository(tmp_path: Path, fake_git) -> None:
    resolved = _resolve(tmp_path, fake_git)

    assert resolved.fallback is True
    assert fake_git.commands() == [("rev-parse", "--abbrev-ref", "HEAD")]


def test_resolver_accepts_custom_strategy_order(tmp_path: Path, fake_git) -> None:
    fake_git.branch("feature").refs("develop", "main")
    resolver = ReferenceResolver(
        strategies=[RefStrategy("develop", lambda client, base: "develop" if client.verify_ref("develop") else None)]
    )

    resolved = resolver.resolve(GitClient(tmp_path, runner=fake_git), "main")

    assert resolved.ref == "develop"
    assert resolved.strategy == "develop"
