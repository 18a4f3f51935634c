"""
Resolution logic for book classification.

Implements the precedence hierarchy:
1. Classic title override with a forced bin (bypasses scoring entirely)
2. Age override (forces the age tier, bin is still scored)
3. Scored suggestion, gated by combined confidence

Also holds the two review gates. They are separate on purpose: the
classification gate is a single confidence threshold, the topic gate is a set
of independent rules.
"""

import math
from typing import Any, Dict, Iterable, Optional, Tuple

from .mappings import (
    OVERRIDE_FALLBACK_AGE_TIER, TOPIC_MIN_CONFIDENCE, TOPIC_MIN_TOTAL_SCORE,
    TOPIC_MIN_WINNER_SHARE, TOPIC_MIN_GAP_PERCENT
)
from .rules import clamp01, normalize_text

OVERRIDE_CONFIDENCE = 0.9
AGE_WEIGHT = 0.45
BIN_WEIGHT = 0.55
DEFAULT_REVIEW_THRESHOLD = 0.65


def classic_override_matches(override, isbn: Optional[str], title: Optional[str]) -> bool:
    """True when an active classic override applies by exact ISBN or title pattern."""
    if override is None or getattr(override, 'is_active', True) is False:
        return False

    if isbn and override.isbn and override.isbn == isbn:
        return True

    pattern = normalize_text(getattr(override, 'title_pattern', None))
    return bool(pattern) and pattern in normalize_text(title)


def pick_classic_override(overrides: Iterable, isbn: Optional[str], title: Optional[str]):
    """First matching override, with exact-ISBN matches ahead of title patterns."""
    candidates = [o for o in overrides if classic_override_matches(o, isbn, title)]
    if not candidates:
        return None
    for override in candidates:
        if isbn and override.isbn == isbn:
            return override
    return candidates[0]


def resolve_override(age_override, classic_override) -> Optional[Tuple[str, str]]:
    """
    Returns (age_tier, bin) when a classic override forces a bin, otherwise None.

    The age tier comes from the classic override, then the age override, then
    the documented fallback tier.
    """
    if classic_override is None or not getattr(classic_override, 'forced_bin', None):
        return None

    age_tier = (
        getattr(classic_override, 'forced_age_tier', None)
        or get_forced_age_tier(age_override)
        or OVERRIDE_FALLBACK_AGE_TIER
    )
    return (age_tier, classic_override.forced_bin)


def get_forced_age_tier(age_override) -> Optional[str]:
    if age_override is None:
        return None
    if getattr(age_override, 'is_active', True) is False:
        return None
    return getattr(age_override, 'forced_age_tier', None)


def evaluate_classification_confidence(age_confidence: float, bin_confidence: float,
                                       threshold: float = DEFAULT_REVIEW_THRESHOLD) -> Tuple[float, bool]:
    """Blend age and bin confidence; anything under the threshold goes to review."""
    combined = clamp01(age_confidence * AGE_WEIGHT + bin_confidence * BIN_WEIGHT)
    return (combined, combined < threshold)


def should_require_review(result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Review gate for topic suggestions. Any rule that fires forces review.

    Expects the dict produced by topics.assign_primary_topic / rank_topic_scores.
    """
    confidence = result.get('confidence', 0) or 0
    winner_score = result.get('winner_score', 0) or 0
    runner_up_score = result.get('runner_up_score', 0) or 0
    total_score = result.get('total_score', 0) or 0

    reasons = []

    if confidence < TOPIC_MIN_CONFIDENCE:
        reasons.append(f"Low confidence: {confidence}%")

    if total_score < TOPIC_MIN_TOTAL_SCORE:
        reasons.append(f"Weak signal: only {_fmt_points(total_score)} points")

    # Share and gap rules are undefined without any points; the no-match rule covers that case
    if total_score > 0:
        share = winner_score / total_score
        if share < TOPIC_MIN_WINNER_SHARE:
            reasons.append(f"Winner too weak: only {int(math.floor(share * 100 + 0.5))}% of total")

        gap = (winner_score - runner_up_score) / total_score * 100
        if gap < TOPIC_MIN_GAP_PERCENT:
            reasons.append(f"Too close: only {gap:.1f}% gap")

    if total_score == 0:
        reasons.append('No keyword matches found')

    return {
        'needs_review': bool(reasons),
        'reasons': reasons,
        'action': 'REQUIRE_REVIEW' if reasons else 'AUTO_APPROVE',
    }


def _fmt_points(value) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.1f}"
