"""
Scoring rules for book classification.

Each compute_* / score_* function that produces a suggestion returns a tuple:
(value, confidence, reason)
- value: The suggested age tier or bin code
- confidence: Float 0-1 representing classification confidence
- reason: Human-readable explanation for the suggestion
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .mappings import (
    AGE_TIER_RANGES, DEFAULT_AGE_TIER, FORMAT_AGE_HINTS, SCAN_AGE_KEYWORDS,
    SCAN_DEFAULT_AGE_TIER, SOURCE_MULTIPLIERS, EXACT_PHRASE_BONUS,
    DEFAULT_BIN, DEFAULT_MAX_POSSIBLE_BIN_SCORE
)

_DISALLOWED_CHARS = re.compile(r'[^a-z0-9\s-]')
_WHITESPACE = re.compile(r'\s+')
_RANGE_PATTERN = re.compile(r'(\d{1,2})\s*(?:-|to)\s*(\d{1,2})')
_SINGLE_AGE_PATTERN = re.compile(r'\bages?\s*(\d{1,2})')


@dataclass(frozen=True)
class KeywordRule:
    bin_code: str
    keyword: str
    weight: float = 1.0
    source_priority: str = 'summary'


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, replace anything outside [a-z0-9 whitespace -] with a space, collapse whitespace."""
    if not text:
        return ''
    cleaned = _DISALLOWED_CHARS.sub(' ', str(text).lower())
    return _WHITESPACE.sub(' ', cleaned).strip()


def parse_reading_age(text: Optional[str]) -> Optional[Tuple[int, int]]:
    """Pull an age range out of free text such as 'Ages 7-9', '4 to 8' or 'age 6'."""
    normalized = normalize_text(text)
    if not normalized:
        return None

    match = _RANGE_PATTERN.search(normalized)
    if match:
        low, high = int(match.group(1)), int(match.group(2))
        if low <= high:
            return (low, high)

    single = _SINGLE_AGE_PATTERN.search(normalized)
    if single:
        age = int(single.group(1))
        return (age, age)

    return None


def overlap_ratio(candidate: Tuple[int, int], tier_range: Tuple[int, int]) -> float:
    """Share of the candidate range (inclusive, in whole years) that falls inside the tier."""
    cand_min, cand_max = candidate
    start = max(cand_min, tier_range[0])
    end = min(cand_max, tier_range[1])
    overlap = max(0, end - start + 1)
    length = max(1, cand_max - cand_min + 1)
    return overlap / length


def compute_age_from_range(candidate: Tuple[int, int]) -> Tuple[str, float, str]:
    """Pick the tier with the largest overlap; table order breaks ties."""
    best_tier = None
    best_ratio = -1.0
    for tier, tier_range in AGE_TIER_RANGES.items():
        ratio = overlap_ratio(candidate, tier_range)
        if ratio > best_ratio:
            best_tier, best_ratio = tier, ratio

    confidence = clamp01(0.6 + best_ratio * 0.35)
    return (best_tier, confidence, f"Age range {candidate[0]}-{candidate[1]} maps best to {best_tier}.")


def compute_age_from_format(format_hint: Optional[str]) -> Optional[Tuple[str, float, str]]:
    fmt = normalize_text(format_hint)
    if not fmt:
        return None
    for needle, tier, confidence, reason in FORMAT_AGE_HINTS:
        if needle in fmt:
            return (tier, confidence, reason)
    return None


def score_age_tier(age_min: Optional[int] = None,
                   age_max: Optional[int] = None,
                   reading_age_text: Optional[str] = None,
                   format_hint: Optional[str] = None) -> Tuple[str, float, str]:
    """
    Suggest an age tier from, in order: an explicit numeric range, a free-text
    reading age, a format hint. Falls back to SOAR with low confidence.
    """
    if age_min is not None and age_max is not None:
        try:
            low, high = int(age_min), int(age_max)
        except (TypeError, ValueError):
            low, high = 1, 0
        if low <= high:
            return compute_age_from_range((low, high))

    parsed = parse_reading_age(reading_age_text)
    if parsed:
        return compute_age_from_range(parsed)

    from_format = compute_age_from_format(format_hint)
    if from_format:
        return from_format

    return (DEFAULT_AGE_TIER, 0.45, 'Defaulted due to limited age metadata.')


def suggest_scan_age_tier(title: Optional[str], summary: Optional[str]) -> str:
    """Lightweight keyword heuristic used when an ISBN is scanned into a batch."""
    haystack = f"{title or ''} {summary or ''}".lower()
    for tier, needles in SCAN_AGE_KEYWORDS:
        if any(needle in haystack for needle in needles):
            return tier
    return SCAN_DEFAULT_AGE_TIER


def _is_whole_phrase(source: str, keyword: str) -> bool:
    return f" {keyword} " in f" {source} "


def score_bins(title_text: str, subject_text: str, summary_text: str,
               rules: Iterable[KeywordRule]) -> List[Tuple[str, float]]:
    """
    Score every bin against the keyword rules.

    Texts are expected already normalized. Returns (bin, score) sorted by score,
    highest first; bins keep first-seen order among equal scores.
    """
    sources = {
        'title': title_text,
        'subject': subject_text,
        'summary': summary_text,
    }

    scores = {}
    for rule in rules:
        priority = rule.source_priority if rule.source_priority in SOURCE_MULTIPLIERS else 'summary'
        source = sources[priority]
        keyword = normalize_text(rule.keyword)
        if not source or not keyword:
            continue

        if keyword in source:
            points = float(rule.weight or 1) * SOURCE_MULTIPLIERS[priority]
            if _is_whole_phrase(source, keyword):
                points += EXACT_PHRASE_BONUS
            scores[rule.bin_code] = scores.get(rule.bin_code, 0.0) + points

    return sorted(scores.items(), key=lambda entry: entry[1], reverse=True)


def compute_bin_suggestion(ranked: Sequence[Tuple[str, float]],
                           max_possible_score: float = DEFAULT_MAX_POSSIBLE_BIN_SCORE) -> Tuple[str, float, str]:
    """Turn ranked bin scores into (bin, confidence, reason)."""
    if not ranked or ranked[0][1] <= 0:
        return (DEFAULT_BIN, 0.0, 'No strong bin keyword signals found.')

    top_bin, top_score = ranked[0]
    confidence = clamp01(top_score / max_possible_score) if max_possible_score > 0 else 0.0

    reason = f"Top bin signal: {top_bin} ({_fmt(top_score)}"
    if len(ranked) > 1:
        reason += f", next {ranked[1][0]} {_fmt(ranked[1][1])}"
    reason += ")."
    return (top_bin, confidence, reason)


def _fmt(score: float) -> str:
    return str(int(score)) if float(score).is_integer() else f"{score:.1f}"
