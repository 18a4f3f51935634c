"""
Book Classification Module

Suggests an age tier and a storage bin for incoming books using explainable
keyword rules, exact-match overrides and a confidence-based review gate. A
separate topic scorer tags books with a primary topic and its own review gate.
Keyword help explains bins and suggests tags from a summary.
"""

from .engine import (
    ClassificationResult, classify, classify_book, assign_topic,
    lookup_keyword_rules, lookup_overrides
)
from .resolver import (
    resolve_override,
    evaluate_classification_confidence,
    should_require_review
)
from .rules import (
    KeywordRule,
    normalize_text,
    score_age_tier,
    score_bins,
    suggest_scan_age_tier
)
from .topics import assign_primary_topic
from .keyword_help import (
    bin_theme_from_code,
    resolve_age_tier,
    describe_bin,
    lookup_top_keywords,
    suggest_tags_and_bins
)

__all__ = [
    'ClassificationResult',
    'classify',
    'classify_book',
    'assign_topic',
    'lookup_keyword_rules',
    'lookup_overrides',
    'resolve_override',
    'evaluate_classification_confidence',
    'should_require_review',
    'KeywordRule',
    'normalize_text',
    'score_age_tier',
    'score_bins',
    'suggest_scan_age_tier',
    'assign_primary_topic',
    'bin_theme_from_code',
    'resolve_age_tier',
    'describe_bin',
    'lookup_top_keywords',
    'suggest_tags_and_bins'
]
