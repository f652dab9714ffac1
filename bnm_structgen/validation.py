"""
Advisory checks over generated headers.

Runs a light text scan (no C++ parsing) and reports problems. Nothing here
ever fails a run; findings go to the validation report.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .logging_config import get_logger

logger = get_logger(__name__)

PAIRS = {"}": "{", ")": "(", "]": "["}
OPENERS = set(PAIRS.values())


@dataclass
class ValidationIssue:
    path: str
    message: str
    line: int = 0

    def __str__(self) -> str:
        location = f"{self.path}:{self.line}" if self.line else self.path
        return f"{location}: {self.message}"


@dataclass
class ValidationReport:
    """Result of scanning a set of headers."""

    files_checked: int = 0
    issues: List[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def add(self, path: str, message: str, line: int = 0):
        self.issues.append(ValidationIssue(path, message, line))

    def as_lines(self) -> List[str]:
        lines = [f"Files checked: {self.files_checked}", f"Issues: {len(self.issues)}"]
        if self.issues:
            lines.append("")
            lines.extend(str(issue) for issue in self.issues)
        return lines


def strip_comments_and_literals(source: str) -> str:
    """
    Blank out comments, string literals and char literals.

    Newlines are kept so line numbers in the result match the input.
    """
    out = []
    i = 0
    length = len(source)
    while i < length:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < length else ""
        if ch == "/" and nxt == "/":
            while i < length and source[i] != "\n":
                i += 1
        elif ch == "/" and nxt == "*":
            end = source.find("*/", i + 2)
            end = length if end == -1 else end + 2
            out.append("\n" * source.count("\n", i, end))
            i = end
        elif ch in "\"'":
            quote = ch
            i += 1
            while i < length and source[i] != quote and source[i] != "\n":
                i += 2 if source[i] == "\\" else 1
            i += 1
            out.append(" ")
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def check_balance(source: str) -> List[Tuple[int, str]]:
    """Return bracket balance problems for one header as ``(line, message)`` pairs."""
    problems = []
    stack = []
    for line_no, line in enumerate(strip_comments_and_literals(source).split("\n"), start=1):
        for ch in line:
            if ch in OPENERS:
                stack.append((ch, line_no))
            elif ch in PAIRS:
                if not stack or stack[-1][0] != PAIRS[ch]:
                    problems.append((line_no, f"unmatched '{ch}'"))
                else:
                    stack.pop()
    for ch, line_no in stack:
        problems.append((line_no, f"unclosed '{ch}'"))
    return problems


def validate_header(path: str, source: str, resolve_header: str) -> List[ValidationIssue]:
    """Check one generated header."""
    issues = []
    if not source.strip():
        return [ValidationIssue(path, "file is empty")]

    if "#pragma once" not in source:
        issues.append(ValidationIssue(path, "missing '#pragma once'"))
    if f'#include "{resolve_header}"' not in source:
        issues.append(ValidationIssue(path, f"missing include of {resolve_header}"))

    for line_no, message in check_balance(source):
        issues.append(ValidationIssue(path, message, line_no))
    return issues


def validate_sources(sources: Dict[str, str], resolve_header: str) -> ValidationReport:
    """
    Validate generated headers.

    Args:
        sources: Header text keyed by path relative to the output directory
        resolve_header: Header every generated file must include

    Returns:
        ValidationReport with any issues found
    """
    report = ValidationReport()
    if not sources:
        report.add("<output>", "no headers were generated")
        logger.warning("Validation found no generated headers")
        return report

    for path in sorted(sources):
        report.files_checked += 1
        report.issues.extend(validate_header(path, sources[path], resolve_header))

    if report.ok:
        logger.info("Validation passed for %d header(s)", report.files_checked)
    else:
        logger.warning("Validation found %d issue(s)", len(report.issues))
    return report

