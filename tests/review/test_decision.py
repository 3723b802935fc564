"""Tests for turning review prose into a decision."""

from __future__ import annotations

from steelheart.models import FAIL, PASS
from steelheart.review.decision import (
    DecisionExtractor,
    extract_decision,
    extract_sections,
    find_decision_marker,
    find_json_payload,
    scan_for_issues,
)


def test_critical_bullet_overrides_declared_pass() -> None:
    text = """## REVIEW DECISION: PASS

## Critical Issues
- SQL injection in `login()` via string concatenation

## Major Issues
None.

## Minor Issues
None.
"""
    decision = extract_decision(text)

    assert decision.decision == FAIL
    assert decision.critical_issues == ["SQL injection in login() via string concatenation"]
    assert decision.structured is True


def test_none_sections_yield_pass() -> None:
    text = """REVIEW DECISION: PASS

### Critical Issues
None.

### Major Issues
None.

### Minor Issues
None.
"""
    decision = extract_decision(text)

    assert decision.decision == PASS
    assert decision.critical_issues == []
    assert decision.major_issues == []
    assert decision.minor_issues == []
    assert decision.summary == "Review PASS: 0 critical, 0 major, 0 minor issue(s) found."


def test_declared_fail_without_critical_issues_stays_fail() -> None:
    text = "**FINAL DECISION: FAIL**\n\n**Major Issues:**\n- Missing error handling in fetchUser\n"

    decision = extract_decision(text)

    assert decision.decision == FAIL
    assert decision.major_issues == ["Missing error handling in fetchUser"]


def test_nested_bullets_and_sub_fields_are_not_issues() -> None:
    text = """REVIEW DECISION: FAIL

## Critical Issues
1. **Hard-coded credentials in config.ts**
   - Location: src/config.ts:12
   - Fix: read the secret from the environment
2. Unvalidated redirect in auth callback
   Impact: open redirect

## Summary
Two blocking problems.
"""
    sections = extract_sections(text)

    assert sections["critical"] == [
        "Hard-coded credentials in config.ts",
        "Unvalidated redirect in auth callback",
    ]
    assert sections["major"] == []


def test_deeper_headings_are_issue_titles() -> None:
    text = """REVIEW DECISION: FAIL

## 🔴 Critical Issues

### 1. Token leaked to logs
**Location:** src/auth.ts:40
**Fix:** redact before logging

### 2. Race condition in session refresh
Details follow.

## 🟡 Major Issues
- Duplicate retry loops
"""
    decision = extract_decision(text)

    assert decision.critical_issues == ["1. Token leaked to logs", "2. Race condition in session refresh"]
    assert decision.major_issues == ["Duplicate retry loops"]


def test_bold_issue_title_mentioning_a_category_stays_in_section() -> None:
    text = """REVIEW DECISION: PASS

**Major Issues:**

**Minor typo handling in parser causes crash**
Details here.

**Minor Issues:**
- Rename variable
"""
    decision = extract_decision(text)

    assert decision.major_issues == ["Minor typo handling in parser causes crash"]
    assert decision.minor_issues == ["Rename variable"]


def test_paragraph_issues_use_first_line() -> None:
    text = """REVIEW DECISION: PASS

Minor Issues:
Inconsistent naming between getUser and fetch_user.
Consider one convention.

Long function in report builder.
"""
    decision = extract_decision(text)

    assert decision.minor_issues == [
        "Inconsistent naming between getUser and fetch_user.",
        "Long function in report builder.",
    ]


def test_find_decision_marker_ignores_decoration_and_case() -> None:
    assert find_decision_marker("**Review Decision:** ✅ pass") == PASS
    assert find_decision_marker("# FINAL DECISION - FAIL") == FAIL
    assert find_decision_marker("The decision is pending") is None


def test_json_payload_is_used_without_marker() -> None:
    text = """Here is my review:
```json
{"decision": "PASS", "issues": [
  {"severity": "critical", "description": "Secrets committed", "file": "src/env.ts", "line": 3},
  {"severity": "major", "description": "No timeout on fetch"},
  {"severity": "low", "description": "Typo in comment"}
]}
```"""
    decision = extract_decision(text)

    assert decision.decision == FAIL
    assert decision.critical_issues == ["src/env.ts:3: Secrets committed"]
    assert decision.major_issues == ["No timeout on fetch"]
    assert decision.minor_issues == ["Typo in comment"]


def test_find_json_payload_skips_invalid_braces() -> None:
    assert find_json_payload('use {braces} then {"a": 1}') == {"a": 1}
    assert find_json_payload("no json here") is None


def test_keyword_scan_classifies_critical_bug() -> None:
    text = "Overall the change looks fine.\nthere is a critical bug in parseInput\nGuard against empty input."

    issues = scan_for_issues(text)

    assert len(issues) == 1
    assert issues[0].severity == "critical"
    assert issues[0].description == "there is a critical bug in parseInput"
    assert issues[0].suggestion == "Guard against empty input."
    assert issues[0].line == 2


def test_keyword_scan_caps_results() -> None:
    text = "\n".join(f"problem number {index}" for index in range(25))

    issues = scan_for_issues(text)

    assert len(issues) == 10
    assert {issue.severity for issue in issues} == {"info"}


def test_unstructured_text_buckets_scanned_issues() -> None:
    decision = extract_decision("warning: deprecated API used\nsmall issue with spacing\n")

    assert decision.decision == PASS
    assert decision.structured is False
    assert decision.major_issues == ["warning: deprecated API used"]
    assert decision.minor_issues == ["small issue with spacing"]
    assert len(decision.issues) == 2


def test_unstructured_critical_scan_fails_review() -> None:
    decision = extract_decision("there is a critical bug in parseInput")
    assert decision.decision == FAIL


def test_empty_input_never_raises() -> None:
    for text in ("", None, "   \n\n"):
        decision = DecisionExtractor().extract(text)
        assert decision.decision == PASS
        assert decision.total_issues == 0


def test_none_body_wins_over_trailing_bold_lines() -> None:
    text = """REVIEW DECISION: PASS
## Critical Issues
None found.

**Note:**
The code looks fine.
## Major Issues
None
## Minor Issues
None.
**Great job overall!**
"""
    decision = extract_decision(text)

    assert decision.decision == PASS
    assert decision.critical_issues == []
    assert decision.minor_issues == []


def test_bare_label_line_is_not_an_issue_title() -> None:
    text = """REVIEW DECISION: FAIL
## Major Issues
**Note:**
Everything else reads well.
"""

    assert extract_sections(text)["major"] == []


def test_label_value_on_next_line_belongs_to_the_issue() -> None:
    text = "REVIEW DECISION: FAIL\n## Critical Issues\nThe auth token is logged.\n\nLocation:\nsrc/a.ts\n"

    assert extract_sections(text)["critical"] == ["The auth token is logged."]
