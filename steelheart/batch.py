"""Sequential per-item execution with failure isolation."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from .logging import get_logger, log_failure
from .models import FileResult

_logger = get_logger("batch")


def run_batch(
    items: Iterable[str],
    action: Callable[[str], Optional[Dict[str, Any]]],
    *,
    label: str = "item",
) -> List[FileResult]:
    """Run ``action`` for each item in order, recording one :class:`FileResult` each.

    ``action`` returns an optional detail mapping on success. An exception
    marks only that item as failed; the remaining items still run.
    """
    results: List[FileResult] = []
    for item in items:
        _logger.info("Processing %s %s", label, item)
        try:
            detail = action(item) or {}
        except Exception as exc:
            log_failure(_logger, f"Failed to process {label} {item}", exc)
            results.append(FileResult(item=item, success=False, error=str(exc) or type(exc).__name__))
            continue
        results.append(FileResult(item=item, success=True, detail=dict(detail)))

    failed = sum(1 for result in results if not result.success)
    if failed:
        _logger.warning("%d of %d %s(s) failed", failed, len(results), label)
    return results


__all__ = ["run_batch"]
