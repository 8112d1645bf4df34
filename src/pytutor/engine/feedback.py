"""Traceback parsing into friendly, line-level feedback."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional


@dataclass
class FeedbackItem:
    line: Optional[int]
    severity: str  # "error", "warning", "info", "success"
    message: str
    suggestion: Optional[str] = None


# Common Python error patterns → friendly messages
ERROR_PATTERNS: list[tuple[str, str, str]] = [
    # (regex, severity, user-friendly message)
    (r"NameError: name '(\w+)' is not defined",
     "error", "'{0}' is not defined. Did you spell it correctly, or forget to create it?"),
    (r"TypeError: (\w+)\(\) missing (\d+) required positional argument",
     "error", "{0}() was called with too few arguments ({1} missing)."),
    (r"TypeError: (\w+)\(\) takes (\d+) positional arguments? but (\d+) (?:were|was) given",
     "error", "{0}() accepts {1} argument(s) but was given {2}. Check the function signature."),
    (r"TypeError: unsupported operand type\(s\) for (\S+): '(\w+)' and '(\w+)'",
     "error", "Cannot use '{0}' between {1} and {2}. Convert one of the values first."),
    (r"TypeError: Object of type (\w+) is not JSON serializable",
     "error", "Your function returned a {0}, which cannot be checked. Return a number, string, list or dict."),
    (r"TypeError: (.+)",
     "error", "Type error: {0}"),
    (r"IndexError: (.+)",
     "error", "Index error: {0}. Check the length before indexing."),
    (r"KeyError: (.+)",
     "error", "Key {0} is missing from the dictionary. Use .get() or check with 'in'."),
    (r"ZeroDivisionError",
     "error", "Division by zero. Guard the divisor before dividing."),
    (r"AttributeError: '(\w+)' object has no attribute '(\w+)'",
     "error", "'{0}' doesn't have attribute '{1}'. Check the spelling or the type."),
    (r"RecursionError",
     "error", "Maximum recursion depth exceeded. Check that your recursion has a base case."),
    (r"IndentationError: (.+)",
     "error", "Indentation error: {0}. Check your whitespace."),
    (r"SyntaxError: (.+)",
     "error", "Syntax error: {0}"),
    (r"TimeoutError: execution timed out",
     "error", "Your code took too long. Look for a loop that never ends."),
]


def parse_stderr(stderr: str) -> list[FeedbackItem]:
    """Parse a traceback into structured feedback items."""
    if not stderr:
        return []

    feedback: list[FeedbackItem] = []

    for pattern, severity, template in ERROR_PATTERNS:
        match = re.search(pattern, stderr)
        if match:
            groups = match.groups()
            message = template.format(*groups) if groups else template
            feedback.append(FeedbackItem(
                line=_extract_line_number(stderr),
                severity=severity,
                message=message,
            ))
            # The first matching pattern is the most specific one
            break

    # If no patterns matched but there's an error, extract the last exception
    if not feedback and ("Error" in stderr or "Exception" in stderr):
        last_error = _extract_last_error(stderr)
        if last_error:
            feedback.append(FeedbackItem(
                line=None, severity="error", message=last_error,
            ))

    return feedback


def _extract_line_number(stderr: str) -> int | None:
    """Line number of the innermost frame in the learner's file."""
    matches = re.findall(r'File "[^"]*pytutor_[^"]*", line (\d+)', stderr)
    if matches:
        return int(matches[-1])
    m = re.search(r"\(line (\d+)\)", stderr)
    if m:
        return int(m.group(1))
    return None


def _extract_last_error(stderr: str) -> str | None:
    """Extract the last meaningful error line from stderr."""
    lines = stderr.strip().split("\n")
    for line in reversed(lines):
        line = line.strip()
        if line and not line.startswith(("File ", "Traceback", "^")):
            # Truncate very long lines
            return line[:200] if len(line) > 200 else line
    return None
