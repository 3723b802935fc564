"""Pull generated code out of a model reply."""

from __future__ import annotations

import re
from pathlib import PurePath
from typing import Dict, List, Optional, Tuple

_LANGUAGES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    ".ts": ("TypeScript", ("typescript", "ts")),
    ".tsx": ("TypeScript", ("tsx", "typescript", "ts")),
    ".js": ("JavaScript", ("javascript", "js")),
    ".jsx": ("JavaScript", ("jsx", "javascript", "js")),
    ".mjs": ("JavaScript", ("javascript", "js")),
    ".py": ("Python", ("python", "py")),
    ".java": ("Java", ("java",)),
    ".kt": ("Kotlin", ("kotlin", "kt")),
    ".go": ("Go", ("go", "golang")),
    ".rs": ("Rust", ("rust", "rs")),
    ".php": ("PHP", ("php",)),
    ".rb": ("Ruby", ("ruby", "rb")),
    ".cs": ("C#", ("csharp", "cs")),
    ".swift": ("Swift", ("swift",)),
    ".cpp": ("C++", ("cpp", "c++")),
    ".cc": ("C++", ("cpp", "c++")),
    ".c": ("C++", ("c", "cpp")),
    ".h": ("C++", ("h", "c", "cpp")),
}
DEFAULT_LANGUAGE = "JavaScript"

_FENCE = re.compile(r"```[ \t]*(?P<tag>[^\s`]*)[^\n]*\n(?P<body>.*?)\n?```", re.DOTALL)


def language_for(path: str) -> str:
    """Display name of the language for ``path`` (JavaScript when unknown)."""
    entry = _LANGUAGES.get(PurePath(path).suffix.lower())
    return entry[0] if entry else DEFAULT_LANGUAGE


def aliases_for(language: str) -> List[str]:
    """Fence tags accepted for ``language``, most specific first."""
    wanted = language.strip().lower()
    ordered: List[str] = [wanted] if wanted else []
    for name, tags in _LANGUAGES.values():
        if name.lower() == wanted or wanted in tags:
            ordered.extend(tag for tag in tags if tag not in ordered)
    return ordered


def extract_code_block(text: str, language: str) -> Optional[str]:
    """Return the first fenced block tagged for ``language``, else the first untagged one.

    Blocks tagged for a different language are skipped; ``None`` means the
    reply carried no usable fence.
    """
    blocks = [(match.group("tag").lower(), match.group("body")) for match in _FENCE.finditer(text or "")]
    accepted = aliases_for(language)
    for alias in accepted:
        for tag, body in blocks:
            if tag == alias and body.strip():
                return body.strip()
    for tag, body in blocks:
        if not tag and body.strip():
            return body.strip()
    return None


__all__ = ["DEFAULT_LANGUAGE", "aliases_for", "extract_code_block", "language_for"]
