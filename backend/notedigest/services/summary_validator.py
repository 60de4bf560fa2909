"""
NoteDigest Backend — Summary Validator
=======================================

What:  Decides whether a generated summary is fit to show a student, given the
       transcribed source text it was generated from.
Why:   Language models sometimes echo the whole page back, drift off topic, or
       wrap the answer in self-referential chatter ("As an AI...", "In summary...").
       None of that belongs in a sidebar study aid.
How:   Pure, synchronous function of (summary, source_text) → ValidationVerdict.
       No I/O, no hidden state: the same inputs always give the same verdict.
Who:   Called by SummaryPipeline after every generation attempt.

Checks:
    Meta-language  Denylisted AI/meta phrase present (case-insensitive substring)
                   → CONTAINS_META_LANGUAGE, metric = every matched phrase
    Length         summary_words / source_words > max_length_ratio
                   AND summary_words > min_word_floor
                   → TOO_LONG, metric = ratio
    Relevance      |summary tokens ∩ source tokens| / |summary tokens| < min_overlap_ratio
                   → OFF_TOPIC, metric = overlap ratio (0.0 for an empty token set)

    Meta-commentary disqualifies a candidate whatever its other metrics, so it
    is reported first. Length is then checked before relevance.

    Word:   maximal run of non-whitespace characters
    Token:  lowercase ASCII-letter run of length >= 4; digits and punctuation separate tokens
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple, Union

from pydantic import BaseModel, Field


# Exact phrase set, matched as lowercase substrings
META_LANGUAGE_PHRASES: Tuple[str, ...] = (
    "as an ai",
    "i am an ai",
    "i'm an ai",
    "as a language model",
    "i cannot",
    "i'm not able to",
    "i don't have the ability",
    "i'm sorry, but",
    "unfortunately, i",
    "i would need more information",
    "here's a summary",
    "in summary",
    "this text discusses",
    "overall, the passage talks about",
    "the following is a summary",
    "this is a summary",
    "the summary of",
    "to summarize",
    "in conclusion",
)

_TOKEN_RE = re.compile(r"[a-z]+")
_MIN_TOKEN_LENGTH = 4


class RejectionReason(str, Enum):
    TOO_LONG = "too_long"
    OFF_TOPIC = "off_topic"
    CONTAINS_META_LANGUAGE = "contains_meta_language"


Metric = Union[float, List[str]]


@dataclass(frozen=True)
class ValidationVerdict:
    """
    Outcome of validating one candidate.

    Accepted verdicts have reason=None and metric=None. A rejected verdict
    carries exactly one reason and the measured value behind it:
        TOO_LONG               → length ratio (float)
        OFF_TOPIC              → overlap ratio (float)
        CONTAINS_META_LANGUAGE → matched phrases (list of str)
    """

    accepted: bool
    reason: Optional[RejectionReason] = None
    metric: Optional[Metric] = None

    @classmethod
    def accept(cls) -> "ValidationVerdict":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason, metric: Metric) -> "ValidationVerdict":
        return cls(accepted=False, reason=reason, metric=metric)

    @property
    def rejected(self) -> bool:
        return not self.accepted


class ValidatorConfig(BaseModel):
    """
    Thresholds exposed to callers of SummaryValidator.

    max_length_ratio: summary/source word ratio above which a long summary is rejected
    min_word_floor:   summaries at or under this many words never fail the length check
    min_overlap_ratio: minimum share of summary tokens that must appear in the source
    """

    max_length_ratio: float = Field(default=0.6, gt=0.0)
    min_word_floor: int = Field(default=150, ge=0)
    min_overlap_ratio: float = Field(default=0.2, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls) -> "ValidatorConfig":
        from notedigest.config import settings

        return cls(
            max_length_ratio=settings.summary_max_length_ratio,
            min_word_floor=settings.summary_min_word_floor,
            min_overlap_ratio=settings.summary_min_overlap_ratio,
        )


def count_words(text: str) -> int:
    """Number of whitespace-delimited words."""
    return len(text.split())


def significant_tokens(text: str) -> FrozenSet[str]:
    """Lowercase ASCII-letter tokens of length >= 4."""
    return frozenset(
        token for token in _TOKEN_RE.findall(text.lower()) if len(token) >= _MIN_TOKEN_LENGTH
    )


def length_ratio(summary: str, source_text: str) -> float:
    summary_words = count_words(summary)
    source_words = count_words(source_text)
    if source_words == 0:
        return math.inf if summary_words else 0.0
    return summary_words / source_words


def overlap_ratio(summary: str, source_text: str) -> float:
    summary_tokens = significant_tokens(summary)
    if not summary_tokens:
        return 0.0
    return len(summary_tokens & significant_tokens(source_text)) / len(summary_tokens)


def find_meta_phrases(summary: str) -> List[str]:
    """Every denylisted phrase present in the summary, in denylist order."""
    lowered = summary.lower().replace("’", "'")
    return [phrase for phrase in META_LANGUAGE_PHRASES if phrase in lowered]


class SummaryValidator:
    """
    Stateless judge for candidate summaries.

    Usage:
        validator = SummaryValidator()
        verdict = validator.validate(candidate, transcription)
        if verdict.rejected:
            print(verdict.reason, verdict.metric)
    """

    def __init__(self, config: Optional[ValidatorConfig] = None):
        self.config = config or ValidatorConfig()

    def validate(self, summary: str, source_text: str) -> ValidationVerdict:
        matched = find_meta_phrases(summary)
        if matched:
            return ValidationVerdict.reject(RejectionReason.CONTAINS_META_LANGUAGE, matched)

        verdict = self.check_length(summary, source_text)
        if verdict.rejected:
            return verdict

        verdict = self.check_relevance(summary, source_text)
        if verdict.rejected:
            return verdict

        return ValidationVerdict.accept()

    def check_length(self, summary: str, source_text: str) -> ValidationVerdict:
        ratio = length_ratio(summary, source_text)
        if ratio > self.config.max_length_ratio and count_words(summary) > self.config.min_word_floor:
            return ValidationVerdict.reject(RejectionReason.TOO_LONG, ratio)
        return ValidationVerdict.accept()

    def check_relevance(self, summary: str, source_text: str) -> ValidationVerdict:
        overlap = overlap_ratio(summary, source_text)
        if overlap < self.config.min_overlap_ratio:
            return ValidationVerdict.reject(RejectionReason.OFF_TOPIC, overlap)
        return ValidationVerdict.accept()
