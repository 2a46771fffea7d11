"""Natural-language to Gmail search query translation.

A best-effort heuristic, not a parser: an ordered list of rules is
evaluated top to bottom and the first rule that produces a query wins.
Keyword checks are case-insensitive. When no rule matches, the input is
passed through unchanged so raw Gmail syntax keeps working.

Example:
    >>> parse_natural_language_query("show me unread mail")
    'is:unread'
    >>> parse_natural_language_query("label:work has:attachment")
    'label:work has:attachment'
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class QueryRule:
    """One translation rule.

    Attributes:
        name: Rule identifier, used in logs and tests.
        apply: Returns the Gmail query for an input, or None to fall through.
    """

    name: str
    apply: Callable[[str], str | None]


def _keywords(result: str, *words: str) -> Callable[[str], str | None]:
    def apply(query: str) -> str | None:
        lowered = query.lower()
        return result if any(w in lowered for w in words) else None

    return apply


def _operator(op: str) -> Callable[[str], str | None]:
    pattern = re.compile(rf"{op}:(\S+)", re.IGNORECASE)

    def apply(query: str) -> str | None:
        match = pattern.search(query)
        return f"{op}:{match.group(1)}" if match else None

    return apply


QUERY_RULES: list[QueryRule] = [
    QueryRule("unread", _keywords("is:unread", "unread", "未讀")),
    QueryRule("important", _keywords("is:important", "important", "重要")),
    QueryRule("starred", _keywords("is:starred", "starred", "星標")),
    QueryRule("from", _operator("from")),
    QueryRule("to", _operator("to")),
    QueryRule("subject", _operator("subject")),
    QueryRule("receipts", _keywords("from:revolut OR subject:receipt", "revolut", "receipt")),
    QueryRule("today", _keywords("newer_than:1d", "today")),
    QueryRule("yesterday", _keywords("newer_than:2d older_than:1d", "yesterday")),
]


def parse_natural_language_query(query: str) -> str:
    """Translate a free-text request into Gmail search syntax."""
    for rule in QUERY_RULES:
        result = rule.apply(query)
        if result is not None:
            return result
    return query


__all__ = ["QUERY_RULES", "QueryRule", "parse_natural_language_query"]
