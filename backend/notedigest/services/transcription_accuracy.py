"""
NoteDigest Backend — Transcription Accuracy Scoring
====================================================

What:  Scores a vision transcription against a reference transcription by
       checking which key terms both of them contain.
Why:   Handwriting models drift between versions; a quick key-term score on a
       few known pages shows whether transcription quality regressed.
Who:   Used by `notedigest accuracy` in the CLI.

Scoring:
    A key term is matched when some keyword of the actual text AND some
    keyword of the expected text contain it (substring, case-insensitive).
    It is missing when only the expected text has it.
    score = matched / number of key terms
"""

import re
from dataclasses import dataclass, field
from typing import List, Sequence

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")


@dataclass
class KeywordMatch:
    score: float
    matched: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)


def extract_keywords(text: str) -> List[str]:
    """Lowercased words longer than three characters, punctuation treated as spaces."""
    return [word for word in _NON_ALNUM_RE.sub(" ", text.lower()).split() if len(word) > 3]


def calculate_keyword_match(actual: str, expected: str, key_terms: Sequence[str]) -> KeywordMatch:
    actual_keywords = extract_keywords(actual)
    expected_keywords = extract_keywords(expected)

    result = KeywordMatch(score=0.0)
    for term in key_terms:
        term_lower = term.lower()
        in_actual = any(term_lower in keyword for keyword in actual_keywords)
        in_expected = any(term_lower in keyword for keyword in expected_keywords)
        if in_actual and in_expected:
            result.matched.append(term)
        elif in_expected:
            result.missing.append(term)

    if key_terms:
        result.score = len(result.matched) / len(key_terms)
    return result
