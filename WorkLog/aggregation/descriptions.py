# WorkLog/aggregation/descriptions.py
"""Bullet-line helpers for WIP descriptions."""

import re
from typing import Iterable, List

_BULLET_PREFIX = re.compile(r"^[-•*]\s*")


def split_lines(description: str) -> List[str]:
    return [line.strip() for line in description.splitlines() if line.strip()]


def standardize_line(line: str) -> str:
    stripped = _BULLET_PREFIX.sub("", line.strip())
    return f"- {stripped}" if stripped else ""


def standardize_description(description: str) -> str:
    """Gives every non-empty line exactly one "- " bullet."""
    lines = (standardize_line(line) for line in description.splitlines())
    return "\n".join(line for line in lines if line)


def dedupe_lines(description: str) -> str:
    """Drops exact duplicate lines, keeping first occurrences in order."""
    seen = set()
    kept = []
    for line in split_lines(description):
        if line in seen:
            continue
        seen.add(line)
        kept.append(line)
    return "\n".join(kept)


def union_description_lines(descriptions: Iterable[str]) -> str:
    """Treats each description as a set of bullet lines and unions them.

    Lines are standardized before comparison, so "• Fixed bug" and
    "- Fixed bug" count as the same line. Order of first appearance wins.
    """
    return dedupe_lines("\n".join(standardize_description(d) for d in descriptions))


def longer_description(d1: str, d2: str) -> str:
    # Ties go to d1.
    return d2 if len(d2) > len(d1) else d1
