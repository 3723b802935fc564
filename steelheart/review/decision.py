"""Turn free-form review prose into a structured pass/fail decision.

Model output is unstructured text, so extraction is an ordered set of
best-effort rules:

1. A decision marker line (``REVIEW DECISION: PASS`` or ``FINAL DECISION:
   FAIL``, any markdown decoration) selects the structured path, which reads
   the critical/major/minor sections that follow their headings.
2. Otherwise the first JSON object in the text is read for ``issues`` and an
   optional ``decision`` field.
3. Otherwise :func:`scan_for_issues` synthesizes issues from keyword hits.

Whatever path wins, a non-empty critical list forces ``FAIL`` and the summary
is generated locally. Nothing here raises on malformed input.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..logging import get_logger
from ..models import FAIL, PASS, ReviewDecision, ReviewIssue

CATEGORIES = ("critical", "major", "minor")
ISSUE_KEYWORDS = ("error", "issue", "problem", "bug", "vulnerability", "warning")
MAX_SCANNED_ISSUES = 10

_DECISION_MARKERS = (
    re.compile(r"\bREVIEW\s+DECISION\b[^A-Za-z\n]*\b(PASS|FAIL)\b", re.IGNORECASE),
    re.compile(r"\bFINAL\s+DECISION\b[^A-Za-z\n]*\b(PASS|FAIL)\b", re.IGNORECASE),
)
_MARKDOWN_HEADING = re.compile(r"^\s{0,3}(?P<hashes>#{1,6})\s+(?P<text>.+?)\s*#*\s*$")
_EMPHASIS_HEADING = re.compile(r"^\s*(?:\*\*|__)(?P<text>[^*_].*?)(?:\*\*|__)\s*:?\s*$")
_LABEL_HEADING = re.compile(r"^\s*(?P<text>[^\-*•+\d\s][^:]{0,60}):\s*$")
_CAPS_HEADING = re.compile(r"^[^a-z]*\b(?:CRITICAL|MAJOR|MINOR)\b[^a-z]*$")
_KNOWN_SECTION = re.compile(
    r"\b(?:critical|major|minor|summary|overview|recommendations?|suggestions?|strengths|"
    r"positives?|notes|conclusion|decision|assessment|verdict)\b",
    re.IGNORECASE,
)
_NESTED_SECTION = re.compile(
    r"^(?:\d+[.)]\s*)?(?:(?:critical|major|minor)(?:\s+(?:issues?|problems?|findings?|concerns?))?"
    r"|(?:overall\s+)?(?:summary|overview|recommendations?|suggestions?|strengths|positives?|notes|"
    r"conclusion|assessment|verdict)|(?:review|final)\s+decision\b.*)\s*(?:\(.*\))?\s*:?$",
    re.IGNORECASE,
)
_BULLET = re.compile(r"^(?P<indent>\s*)(?:[-*•+]|\d+[.)])\s+(?P<text>.+)$")
_DECORATION = re.compile(r"\*+|`+|~~|(?<!\w)_+|_+(?!\w)")
_SUB_FIELD = re.compile(
    r"^(?:location|details?|description|impact|fix|suggested fix|suggestion|recommendation|"
    r"file|line|lines|severity|category|evidence|example|code|why)\s*:",
    re.IGNORECASE,
)
_NONE_SENTINEL = re.compile(
    r"^(?:none|nothing|n/?a|no(?:ne)?\s+(?:(?:critical|major|minor|significant)\s+)?"
    r"(?:issues?|problems?|findings?|concerns?)(?:\s+(?:found|identified|detected|noted|to report))?"
    r"|none\s+(?:found|identified|detected|noted)|nothing\s+to\s+report)[\s.!]*$",
    re.IGNORECASE,
)
_BOILERPLATE = re.compile(
    r"^(?:\(.*\)|(?:issues?|problems?|findings?)\s+(?:that|which)\b.*|"
    r"these\s+are\b.*|(?:must|should|nice\s+to)\s+(?:be\s+)?(?:fix|address|have)\w*\b.*"
    r"(?:before|if|when)\b.*)$",
    re.IGNORECASE,
)
_LEADING_SYMBOLS = re.compile(r"^[^\w(]+", re.UNICODE)
_LABEL_ONLY = re.compile(r"^(?:[\w/-]+\s?){1,3}:$")


class DecisionExtractor:
    """Parses review text into a :class:`ReviewDecision`."""

    def __init__(self) -> None:
        self.logger = get_logger("review.decision")

    def extract(self, text: str | None) -> ReviewDecision:
        raw = text or ""
        try:
            return self._extract(raw)
        except Exception as exc:  # pragma: no cover - guard against pathological input
            self.logger.warning("Review text could not be parsed: %s", exc)
            return ReviewDecision(decision=PASS, raw_text=raw)

    def _extract(self, raw: str) -> ReviewDecision:
        marker = find_decision_marker(raw)
        if marker is not None:
            sections = extract_sections(raw)
            self.logger.debug(
                "Structured review: %s with %d/%d/%d issue(s)",
                marker,
                len(sections["critical"]),
                len(sections["major"]),
                len(sections["minor"]),
            )
            return ReviewDecision(
                decision=marker,
                critical_issues=sections["critical"],
                major_issues=sections["major"],
                minor_issues=sections["minor"],
                raw_text=raw,
                structured=True,
            )

        payload = find_json_payload(raw)
        if payload is not None:
            self.logger.debug("Review text carried a JSON payload")
            return _decision_from_payload(payload, raw)

        issues = scan_for_issues(raw)
        self.logger.debug("Unstructured review; keyword scan found %d issue(s)", len(issues))
        buckets = _bucket_issues(issues)
        return ReviewDecision(
            decision=FAIL if buckets["critical"] else PASS,
            critical_issues=buckets["critical"],
            major_issues=buckets["major"],
            minor_issues=buckets["minor"],
            raw_text=raw,
            issues=issues,
        )


def extract_decision(text: str | None) -> ReviewDecision:
    return DecisionExtractor().extract(text)


# ----------------------------------------------------------------------
# Structured path


def find_decision_marker(text: str) -> Optional[str]:
    for line in text.splitlines():
        for pattern in _DECISION_MARKERS:
            match = pattern.search(line)
            if match:
                return match.group(1).upper()
    return None


def extract_sections(text: str) -> Dict[str, List[str]]:
    """Collect issue entries under the critical, major and minor headings.

    A section runs until the next heading that is not nested inside it.
    Deeper markdown headings and bold title lines inside a section are read as
    issue titles rather than as the end of the section.
    """
    bodies: Dict[str, List[str]] = {category: [] for category in CATEGORIES}
    titles: Dict[str, List[str]] = {category: [] for category in CATEGORIES}
    current: Optional[str] = None
    current_level = 0
    for line in text.splitlines():
        heading = _parse_heading(line)
        if heading is None:
            if current is not None:
                bodies[current].append(line)
            continue

        level, title = heading
        cleaned = _clean(title)
        nested = current is not None and (level == 0 or level > current_level)
        # Inside a section only a bare section title switches sections.
        if _NESTED_SECTION.match(cleaned) if nested else _KNOWN_SECTION.search(cleaned):
            current = _category_for(title)
            current_level = level
            continue
        if nested:
            # A bare label ("**Note:**") introduces prose, not an issue.
            if _LABEL_ONLY.match(cleaned):
                bodies[current].append(line)
            else:
                titles[current].append(title)
                bodies[current].append("")
            continue
        current = None

    return {
        category: _section_entries(bodies[category], titles[category]) for category in CATEGORIES
    }


def _parse_heading(line: str) -> Optional[Tuple[int, str]]:
    """Return ``(level, text)`` for heading-like lines; bold and label lines have level 0."""
    if _BULLET.match(line):
        return None
    match = _MARKDOWN_HEADING.match(line)
    if match:
        return len(match.group("hashes")), match.group("text")
    for pattern in (_EMPHASIS_HEADING, _LABEL_HEADING):
        match = pattern.match(line)
        if not match:
            continue
        text = match.group("text")
        if _SUB_FIELD.match(_clean(text).rstrip(":") + ":"):
            return None
        if pattern is _EMPHASIS_HEADING or _KNOWN_SECTION.search(_clean(text)):
            return 0, text
        return None
    if _CAPS_HEADING.match(line):
        return 0, line
    return None


def _category_for(heading: str) -> Optional[str]:
    lowered = _clean(heading).lower()
    for category in CATEGORIES:
        if re.search(rf"\b{category}\b", lowered):
            return category
    return None


def _section_entries(lines: List[str], titles: List[str]) -> List[str]:
    meaningful = [line for line in lines if _clean(line)]
    if meaningful and _NONE_SENTINEL.match(_clean(_strip_bullet(meaningful[0]))):
        return []
    if titles:
        candidates = list(titles)
    else:
        if not meaningful:
            return []
        if _NONE_SENTINEL.match(" ".join(_clean(_strip_bullet(line)) for line in meaningful)):
            return []

        bullets: List[Tuple[int, str]] = []
        for line in meaningful:
            match = _BULLET.match(line)
            if match:
                bullets.append((len(match.group("indent").expandtabs(4)), match.group("text")))

        if bullets:
            top_level = min(indent for indent, _ in bullets)
            candidates = [text for indent, text in bullets if indent == top_level]
        else:
            candidates = _paragraph_first_lines(lines)

    entries: List[str] = []
    for candidate in candidates:
        entry = _clean(candidate)
        if not entry or _is_excluded(entry):
            continue
        entries.append(entry)
    return entries


def _paragraph_first_lines(lines: Iterable[str]) -> List[str]:
    firsts: List[str] = []
    in_paragraph = False
    for line in lines:
        cleaned = _clean(line)
        if not cleaned:
            in_paragraph = False
            continue
        if in_paragraph:
            continue
        if _SUB_FIELD.match(cleaned) or _LABEL_ONLY.match(cleaned):
            # A label's value on the following lines belongs to the label.
            in_paragraph = True
            continue
        if _BOILERPLATE.match(cleaned):
            continue
        firsts.append(line)
        in_paragraph = True
    return firsts


def _is_excluded(entry: str) -> bool:
    return bool(
        _SUB_FIELD.match(entry)
        or _BOILERPLATE.match(entry)
        or _NONE_SENTINEL.match(entry)
    )


def _strip_bullet(line: str) -> str:
    match = _BULLET.match(line)
    return match.group("text") if match else line


def _clean(text: str) -> str:
    cleaned = _DECORATION.sub("", text).strip()
    cleaned = _LEADING_SYMBOLS.sub("", cleaned)
    return " ".join(cleaned.split())


# ----------------------------------------------------------------------
# JSON path


def find_json_payload(text: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object embedded in ``text``, if any."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            value, _ = decoder.raw_decode(text, start)
        except ValueError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None


def _decision_from_payload(payload: Dict[str, Any], raw: str) -> ReviewDecision:
    issues: List[ReviewIssue] = []
    raw_issues = payload.get("issues")
    if isinstance(raw_issues, list):
        for item in raw_issues:
            issue = _issue_from_json(item)
            if issue is not None:
                issues.append(issue)

    buckets = _bucket_issues(issues)
    for category in CATEGORIES:
        extra = payload.get(f"{category}Issues", payload.get(f"{category}_issues"))
        if isinstance(extra, list):
            buckets[category].extend(str(entry).strip() for entry in extra if str(entry).strip())

    declared = payload.get("decision", payload.get("reviewDecision"))
    decision = str(declared).strip().upper() if isinstance(declared, str) else PASS
    return ReviewDecision(
        decision=decision,
        critical_issues=buckets["critical"],
        major_issues=buckets["major"],
        minor_issues=buckets["minor"],
        raw_text=raw,
        issues=issues,
        structured=True,
    )


def _issue_from_json(item: Any) -> Optional[ReviewIssue]:
    if isinstance(item, str):
        return ReviewIssue(severity="info", description=item.strip()) if item.strip() else None
    if not isinstance(item, dict):
        return None
    description = str(item.get("description") or item.get("title") or "").strip()
    if not description:
        return None
    severity = str(item.get("severity") or "info").strip().lower()
    if severity in {"major", "high", "warning"}:
        severity = "warning"
    elif severity != "critical":
        severity = "info"
    location = item.get("file")
    if location:
        line = item.get("line")
        prefix = f"{location}:{line}" if line else str(location)
        description = f"{prefix}: {description}"
    suggestion = item.get("suggestion")
    return ReviewIssue(
        severity=severity,
        description=description,
        suggestion=str(suggestion).strip() if suggestion else None,
    )


# ----------------------------------------------------------------------
# Keyword scan fallback


def scan_for_issues(text: str, *, limit: int = MAX_SCANNED_ISSUES) -> List[ReviewIssue]:
    """Synthesize issues from keyword hits in unstructured text."""
    lines = text.splitlines()
    issues: List[ReviewIssue] = []
    for index, line in enumerate(lines):
        if len(issues) >= limit:
            break
        lowered = line.lower()
        if not any(keyword in lowered for keyword in ISSUE_KEYWORDS):
            continue
        description = line.strip()
        if not description:
            continue
        suggestion = lines[index + 1].strip() if index + 1 < len(lines) else ""
        issues.append(
            ReviewIssue(
                severity=_severity_for(lowered),
                description=description,
                suggestion=suggestion or None,
                line=index + 1,
            )
        )
    return issues


def _severity_for(lowered: str) -> str:
    if "critical" in lowered or "vulnerability" in lowered:
        return "critical"
    if "warning" in lowered or "caution" in lowered:
        return "warning"
    return "info"


def _bucket_issues(issues: Iterable[ReviewIssue]) -> Dict[str, List[str]]:
    buckets: Dict[str, List[str]] = {category: [] for category in CATEGORIES}
    for issue in issues:
        if issue.severity == "critical":
            buckets["critical"].append(issue.description)
        elif issue.severity == "warning":
            buckets["major"].append(issue.description)
        else:
            buckets["minor"].append(issue.description)
    return buckets


__all__ = [
    "DecisionExtractor",
    "ISSUE_KEYWORDS",
    "MAX_SCANNED_ISSUES",
    "extract_decision",
    "extract_sections",
    "find_decision_marker",
    "find_json_payload",
    "scan_for_issues",
]
