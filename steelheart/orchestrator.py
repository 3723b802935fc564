"""Pipeline orchestration for the changes, review, docs, tests and comment commands."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .batch import run_batch
from .config import SteelheartConfig, load_config
from .git.changes import ChangeAggregator
from .git.diff_lines import added_lines
from .git.refs import ReferenceResolver
from .llm.runner import LLMRunner
from .logging import get_logger
from .models import ChangedLine, ChangeSet, FileDiff, FileResult, ReviewDecision
from .prompts import (
    COMMENT_SYSTEM,
    DOCS_SYSTEM,
    REVIEW_SYSTEM,
    TEST_SYSTEM,
    build_comment_prompt,
    build_docs_prompt,
    build_review_prompt,
    build_test_prompt,
)
from .reporting import ReportWriter
from .review.decision import DecisionExtractor, find_json_payload
from .review.extraction import extract_code_block, language_for

MAX_REVIEWED_FILE_CONTENTS = 20

_TEST_FILE = re.compile(r"(?:\.(?:test|spec)\.[^.]+$|^test_[^/]+\.py$|_test\.(?:py|go)$)")
_HASH_COMMENT_SUFFIXES = {".py", ".rb"}


@dataclass
class ReviewOutcome:
    """Result of a review run."""

    decision: ReviewDecision
    change_set: ChangeSet
    report_paths: Tuple[Path, ...] = field(default_factory=tuple)


class Orchestrator:
    """Coordinates git analysis, model calls and file output for each command."""

    def __init__(
        self,
        *,
        llm_runner: LLMRunner | None = None,
        git_runner: Callable[..., str] | None = None,
        extractor: DecisionExtractor | None = None,
        report_writer: ReportWriter | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._llm_runner = llm_runner
        self._git_runner = git_runner
        self.extractor = extractor or DecisionExtractor()
        self.report_writer = report_writer or ReportWriter()
        self._environ = environ
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Commands

    def run_changes(
        self,
        path: str | Path,
        base: str | None = None,
        *,
        include_uncommitted: bool = False,
    ) -> Optional[ChangeSet]:
        repo_path = Path(path).expanduser().resolve()
        config = self._load_config(repo_path)
        return self._collect(repo_path, config, base, include_uncommitted)

    def run_review(
        self,
        path: str | Path,
        base: str | None = None,
        *,
        include_uncommitted: bool = False,
        output_dir: str | Path | None = None,
        write_reports: bool = True,
    ) -> Optional[ReviewOutcome]:
        """Review the branch changes; ``None`` when there is nothing to review."""
        repo_path = Path(path).expanduser().resolve()
        config = self._load_config(repo_path)
        change_set = self._collect(repo_path, config, base, include_uncommitted)
        if change_set is None or not change_set.changed_files:
            self.logger.info("No changes found to review")
            self._hint_local_changes(repo_path, config, include_uncommitted)
            return None

        contents = self._new_file_contents(repo_path, config, change_set)
        prompt = build_review_prompt(change_set, contents)
        runner = self._resolve_llm_runner(config)
        self.logger.info(
            "Reviewing %d file(s) (%d new, %d modified)",
            len(change_set.changed_files),
            len(change_set.new_files),
            len(change_set.modified_files),
        )
        text = runner.generate(prompt, system=REVIEW_SYSTEM)
        decision = self.extractor.extract(text)
        self.logger.info(decision.summary)

        report_paths: Tuple[Path, ...] = ()
        if write_reports:
            target = config.resolve_output_dir(output_dir)
            try:
                report_paths = tuple(self.report_writer.write_review(decision, change_set, target))
            except OSError as exc:
                self.logger.warning("Could not write review reports to %s: %s", target, exc)
        return ReviewOutcome(decision=decision, change_set=change_set, report_paths=report_paths)

    def run_tests(
        self,
        path: str | Path,
        base: str | None = None,
        *,
        include_uncommitted: bool = False,
        output_dir: str | Path | None = None,
    ) -> List[FileResult]:
        """Generate a test file for each changed source file."""
        repo_path = Path(path).expanduser().resolve()
        config = self._load_config(repo_path)
        change_set = self._collect(repo_path, config, base, include_uncommitted)
        if change_set is None:
            return []

        targets = [
            item
            for item in change_set.paths
            if config.is_code_file(item) and not is_test_file(item) and (repo_path / item).is_file()
        ]
        if not targets:
            self.logger.info("No changed source files need tests")
            return []

        runner = self._resolve_llm_runner(config)
        destination = Path(output_dir).expanduser().resolve() if output_dir else None

        def generate(item: str) -> Dict[str, Any]:
            change = change_set.get(item)
            is_new = bool(change and change.is_new)
            diff = (change.diff if change else None) or ""
            source = (repo_path / item).read_text(encoding="utf-8")
            language = language_for(item)

            reply = runner.generate(
                build_test_prompt(item, language, source, diff, is_new=is_new),
                system=TEST_SYSTEM,
            )
            code = extract_code_block(reply, language) or reply.strip()
            if not code:
                raise RuntimeError("model returned no test code")

            test_path = generated_test_path(repo_path, item, destination)
            appended = write_generated_tests(test_path, code, item)
            return {"test_file": str(test_path), "appended": appended, "is_new": is_new}

        return run_batch(targets, generate, label="file")

    def run_docs(
        self,
        path: str | Path,
        base: str | None = None,
        *,
        include_uncommitted: bool = False,
        output_dir: str | Path | None = None,
    ) -> Optional[Path]:
        """Write markdown documentation for the branch; ``None`` when nothing changed."""
        repo_path = Path(path).expanduser().resolve()
        config = self._load_config(repo_path)
        change_set = self._collect(repo_path, config, base, include_uncommitted)
        if change_set is None or not change_set.changed_files:
            self.logger.info("No changes found to document")
            self._hint_local_changes(repo_path, config, include_uncommitted)
            return None

        contents = self._new_file_contents(repo_path, config, change_set)
        runner = self._resolve_llm_runner(config)
        self.logger.info(
            "Documenting %d file(s) on %s", len(change_set.changed_files), change_set.current_branch
        )
        text = runner.generate(build_docs_prompt(change_set, contents), system=DOCS_SYSTEM)
        if not text.strip():
            raise RuntimeError("model returned empty documentation")

        target = config.resolve_output_dir(output_dir)
        target.mkdir(parents=True, exist_ok=True)
        docs_path = target / docs_filename(change_set)
        docs_path.write_text(text.strip() + "\n", encoding="utf-8")
        self.logger.info("Wrote branch documentation to %s", docs_path)
        return docs_path

    def run_comments(
        self,
        path: str | Path,
        base: str | None = None,
        *,
        include_uncommitted: bool = False,
        write: bool = True,
    ) -> List[FileResult]:
        """Ask the model to comment newly added lines in each changed source file."""
        repo_path = Path(path).expanduser().resolve()
        config = self._load_config(repo_path)
        aggregator = self._aggregator(config)
        base_branch = base or config.git.base_branch
        change_set = aggregator.collect(repo_path, base_branch, include_uncommitted=include_uncommitted)
        if change_set is None:
            return []
        if change_set.fallback:
            self.logger.info("No comparison reference; nothing to comment")
            return []

        file_diffs: Dict[str, FileDiff] = {}
        added_by_path: Dict[str, List[ChangedLine]] = {}
        for change in change_set.changed_files:
            if change.binary or not config.is_code_file(change.path):
                continue
            if not (repo_path / change.path).is_file():
                continue
            file_diff = aggregator.file_changes(
                repo_path, change.path, base_branch, include_uncommitted=include_uncommitted
            )
            if file_diff is None or not file_diff.has_changes:
                continue
            added = added_lines(file_diff.diff)
            if added:
                file_diffs[change.path] = file_diff
                added_by_path[change.path] = added
        if not added_by_path:
            self.logger.info("No added lines to comment")
            return []

        runner = self._resolve_llm_runner(config)

        def comment(item: str) -> Dict[str, Any]:
            file_path = repo_path / item
            original = file_diffs[item].full_content or file_path.read_text(encoding="utf-8")
            reply = runner.generate(
                build_comment_prompt(item, language_for(item), original, added_by_path[item]),
                system=COMMENT_SYSTEM,
            )
            payload = find_json_payload(reply)
            if payload is None:
                raise RuntimeError("model reply did not contain a JSON payload")

            commented = payload.get("commentedCode")
            count = _as_count(payload.get("commentsAdded"))
            written = False
            if write and isinstance(commented, str) and count > 0 and commented != original:
                if original.endswith("\n") and not commented.endswith("\n"):
                    commented += "\n"
                file_path.write_text(commented, encoding="utf-8")
                written = True
                self.logger.info("%s: added %d comment(s)", item, count)
            return {
                "comments_added": count,
                "written": written,
                "summary": str(payload.get("summary") or ""),
            }

        return run_batch(list(added_by_path), comment, label="file")

    # ------------------------------------------------------------------
    # Helpers

    def _load_config(self, repo_path: Path) -> SteelheartConfig:
        return load_config(repo_path, environ=self._environ)

    def _aggregator(self, config: SteelheartConfig) -> ChangeAggregator:
        resolver = ReferenceResolver(
            remote=config.git.remote,
            secondary_branch=config.git.secondary_branch,
        )
        return ChangeAggregator(
            resolver,
            runner=self._git_runner,
            fallback_tracked_limit=config.git.fallback_tracked_limit,
            fallback_modified_limit=config.git.fallback_modified_limit,
        )

    def _collect(
        self,
        repo_path: Path,
        config: SteelheartConfig,
        base: str | None,
        include_uncommitted: bool,
    ) -> Optional[ChangeSet]:
        base_branch = base or config.git.base_branch
        self.logger.debug("Collecting changes in %s against %s", repo_path, base_branch)
        return self._aggregator(config).collect(
            repo_path, base_branch, include_uncommitted=include_uncommitted
        )

    def _hint_local_changes(
        self, repo_path: Path, config: SteelheartConfig, include_uncommitted: bool
    ) -> None:
        if include_uncommitted:
            return
        if self._aggregator(config).has_local_changes(repo_path):
            self.logger.info("The working tree has uncommitted changes; use --include-local to include them")

    def _new_file_contents(
        self,
        repo_path: Path,
        config: SteelheartConfig,
        change_set: ChangeSet,
    ) -> Dict[str, str]:
        contents: Dict[str, str] = {}
        for item in change_set.new_files:
            if len(contents) >= MAX_REVIEWED_FILE_CONTENTS:
                break
            change = change_set.get(item)
            if (change and change.binary) or not config.is_code_file(item):
                continue
            try:
                contents[item] = (repo_path / item).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                self.logger.debug("Skipping content of %s: %s", item, exc)
        return contents

    def _resolve_llm_runner(self, config: SteelheartConfig) -> LLMRunner:
        if self._llm_runner is not None:
            return self._llm_runner

        llm_cfg = config.llm
        kwargs: Dict[str, Any] = {
            "base_url": llm_cfg.base_url,
            "api_key": llm_cfg.api_key,
        }
        if llm_cfg.fallback_model:
            kwargs["fallback_model"] = llm_cfg.fallback_model
        if llm_cfg.temperature is not None:
            kwargs["temperature"] = llm_cfg.temperature
        if llm_cfg.max_tokens is not None:
            kwargs["max_tokens"] = llm_cfg.max_tokens
        if llm_cfg.request_timeout is not None:
            kwargs["request_timeout"] = llm_cfg.request_timeout
        if llm_cfg.max_retries is not None:
            kwargs["max_retries"] = llm_cfg.max_retries
        if not llm_cfg.api_key:
            self.logger.warning("No API key configured; set STEELHEART_API_KEY or OPENAI_API_KEY")

        self._llm_runner = LLMRunner(llm_cfg.model, **kwargs)
        return self._llm_runner


def is_test_file(path: str) -> bool:
    pure = PurePath(path)
    return "__tests__" in pure.parts or bool(_TEST_FILE.search(pure.name))


def docs_filename(change_set: ChangeSet) -> str:
    """``branch-<name>-docs-<committed|with-local>.md`` with path separators flattened."""
    branch = re.sub(r"[^\w.-]+", "-", change_set.current_branch).strip("-") or "HEAD"
    suffix = "with-local" if change_set.include_uncommitted else "committed"
    return f"branch-{branch}-docs-{suffix}.md"


def generated_test_path(repo_path: Path, path: str, output_dir: Path | None = None) -> Path:
    """``<name>.test<ext>`` under ``output_dir``, else beside the source (in ``__tests__`` if present)."""
    source = PurePath(path)
    name = f"{source.stem}.test{source.suffix}"
    if output_dir is not None:
        return output_dir / name
    source_dir = repo_path / source.parent
    tests_dir = source_dir / "__tests__"
    if tests_dir.is_dir():
        return tests_dir / name
    return source_dir / name


def write_generated_tests(test_path: Path, code: str, source_path: str) -> bool:
    """Write or append generated tests; returns True when an existing file was extended."""
    test_path.parent.mkdir(parents=True, exist_ok=True)
    if not code.endswith("\n"):
        code += "\n"
    if test_path.exists():
        marker = "#" if test_path.suffix in _HASH_COMMENT_SUFFIXES else "//"
        existing = test_path.read_text(encoding="utf-8")
        separator = f"\n\n{marker} Tests for changes in {source_path}\n"
        test_path.write_text(existing.rstrip("\n") + separator + code, encoding="utf-8")
        return True
    test_path.write_text(code, encoding="utf-8")
    return False


def _as_count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


__all__ = [
    "Orchestrator",
    "ReviewOutcome",
    "docs_filename",
    "generated_test_path",
    "is_test_file",
    "write_generated_tests",
]
