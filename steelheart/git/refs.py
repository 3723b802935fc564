"""Base reference resolution for shallow, detached and CI-truncated clones."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..logging import get_logger
from ..models import ResolvedReference
from .client import GitClient, GitCommandError

PREVIOUS_COMMIT = "HEAD~1"


@dataclass(frozen=True)
class RefStrategy:
    """A named candidate producer; returns a verified ref or ``None``."""

    name: str
    candidate: Callable[[GitClient, str], Optional[str]]


class ReferenceResolver:
    """Finds a comparison point for ``<base>...<current>`` diffs.

    Strategies are tried in order and the first verified reference wins. When
    none applies the resolver reports fallback mode instead of raising.
    """

    def __init__(
        self,
        *,
        remote: str = "origin",
        secondary_branch: str = "master",
        strategies: Sequence[RefStrategy] | None = None,
    ) -> None:
        self.remote = remote
        self.secondary_branch = secondary_branch
        self.strategies = list(strategies) if strategies is not None else self._default_strategies()
        self.logger = get_logger("git.refs")

    def resolve(self, client: GitClient, base_branch: str) -> ResolvedReference:
        try:
            current = client.current_branch()
        except GitCommandError as exc:
            self.logger.debug("Unable to read current branch: %s", exc)
            return ResolvedReference.fallback_mode()

        resolved = self._first_match(client, base_branch)
        if resolved is None:
            self.logger.info("No base reference found for %s; using fallback analysis", base_branch)
            return ResolvedReference.fallback_mode()

        if self._is_current_branch(current, base_branch, resolved.ref or ""):
            self.logger.debug("Base %s is the current branch; comparing with previous commit", resolved.ref)
            previous = self._previous_commit(client, base_branch)
            if previous is None:
                return ResolvedReference.fallback_mode()
            return ResolvedReference(ref=previous, strategy="previous_commit")

        self.logger.debug("Resolved base %s via %s", resolved.ref, resolved.strategy)
        return resolved

    # ------------------------------------------------------------------
    # Strategies

    def _default_strategies(self) -> list[RefStrategy]:
        return [
            RefStrategy("requested", self._requested),
            RefStrategy("remote_requested", self._remote_requested),
            RefStrategy("remote_secondary", self._remote_secondary),
            RefStrategy("local_secondary", self._local_secondary),
            RefStrategy("previous_commit", self._previous_commit),
        ]

    def _first_match(self, client: GitClient, base_branch: str) -> Optional[ResolvedReference]:
        for strategy in self.strategies:
            try:
                ref = strategy.candidate(client, base_branch)
            except GitCommandError as exc:
                self.logger.debug("Strategy %s failed: %s", strategy.name, exc)
                continue
            if ref:
                return ResolvedReference(ref=ref, strategy=strategy.name)
        return None

    @staticmethod
    def _verified(client: GitClient, ref: str) -> Optional[str]:
        return ref if ref and client.verify_ref(ref) else None

    def _requested(self, client: GitClient, base_branch: str) -> Optional[str]:
        return self._verified(client, base_branch)

    def _remote_requested(self, client: GitClient, base_branch: str) -> Optional[str]:
        return self._verified(client, f"{self.remote}/{base_branch}")

    def _remote_secondary(self, client: GitClient, base_branch: str) -> Optional[str]:
        return self._verified(client, f"{self.remote}/{self.secondary_branch}")

    def _local_secondary(self, client: GitClient, base_branch: str) -> Optional[str]:
        return self._verified(client, self.secondary_branch)

    @staticmethod
    def _previous_commit(client: GitClient, base_branch: str) -> Optional[str]:
        try:
            count = client.commit_count(limit=2)
        except GitCommandError:
            return None
        return PREVIOUS_COMMIT if count >= 2 else None

    def _is_current_branch(self, current: str, requested: str, resolved: str) -> bool:
        if not current or current == "HEAD" or resolved == PREVIOUS_COMMIT:
            return False
        remote_prefix = f"{self.remote}/"
        local_name = resolved[len(remote_prefix):] if resolved.startswith(remote_prefix) else resolved
        return current in {requested, local_name}


__all__ = ["PREVIOUS_COMMIT", "RefStrategy", "ReferenceResolver"]
