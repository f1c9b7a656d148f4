"""
``@Full Name`` mentions in free text.

Mentions are matched against the names of known employees (longest name
first, case-insensitive) rather than by guessing where a name ends.
"""

import re
from typing import Any, Sequence

_TRAILING = r"(?=$|\s|@|[.,;:!?)])"


def extract_mentions(text: str, employees: Sequence[dict[str, Any]]) -> tuple[list[dict[str, Any]], str]:
    """
    Return the mentioned employees (in order of first appearance) and the
    text with every matched mention removed.
    """
    found: list[tuple[int, dict[str, Any]]] = []
    cleaned = text
    for employee in sorted(employees, key=lambda e: len(e["full_name"]), reverse=True):
        name = employee["full_name"].strip()
        if not name:
            continue
        pattern = re.compile("@" + re.escape(name) + _TRAILING, re.IGNORECASE)
        first = pattern.search(text)
        if first is None or not pattern.search(cleaned):
            continue
        found.append((first.start(), employee))
        cleaned = pattern.sub("", cleaned)

    cleaned = re.sub(r"[ \t]{2,}", " ", cleaned).strip()
    return [employee for _, employee in sorted(found, key=lambda item: item[0])], cleaned


def assignment_suffix(employees: Sequence[dict[str, Any]]) -> str:
    return "[Assigned to: " + ", ".join(e["full_name"] for e in employees) + "]"
