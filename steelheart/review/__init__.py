"""Review text parsing."""

from .decision import DecisionExtractor, extract_decision, scan_for_issues
from .extraction import extract_code_block, language_for

__all__ = [
    "DecisionExtractor",
    "extract_code_block",
    "extract_decision",
    "language_for",
    "scan_for_issues",
]
