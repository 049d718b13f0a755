"""
Name similarity for "did you mean" suggestions.

Only used to build suggestions after an exact lookup failed; never used to
pick a target.
"""

from __future__ import annotations

from typing import Iterable

SUGGESTION_THRESHOLD = 0.4


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (ca != cb),
            ))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalised similarity in ``[0, 1]``; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def suggest(target: str, candidates: Iterable[str], k: int = 3) -> list[str]:
    """Return up to *k* candidates scoring above the threshold, best first.

    Comparison is case-insensitive.  Ties keep the candidates' original order.
    """
    needle = target.lower()
    scored = [
        (similarity(needle, cand.lower()), pos, cand)
        for pos, cand in enumerate(candidates)
    ]
    scored = [s for s in scored if s[0] > SUGGESTION_THRESHOLD]
    scored.sort(key=lambda s: (-s[0], s[1]))
    return [cand for _, _, cand in scored[:k]]
