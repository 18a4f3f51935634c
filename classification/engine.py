"""
Classification engine for book intake.

Orchestrates a single classification:
1. Looks up age and classic-title overrides for the ISBN / title
2. Short-circuits when a classic override forces a bin
3. Scores the age tier and the storage bin using rules
4. Blends both confidences and applies the review gate

The engine never persists its result; callers decide what to store.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .mappings import ENGINE_VERSION, DEFAULT_MAX_POSSIBLE_BIN_SCORE
from .rules import (
    KeywordRule, normalize_text, score_age_tier, score_bins, compute_bin_suggestion
)
from .resolver import (
    OVERRIDE_CONFIDENCE, DEFAULT_REVIEW_THRESHOLD, resolve_override,
    get_forced_age_tier, pick_classic_override, evaluate_classification_confidence,
    should_require_review
)
from .topics import assign_primary_topic

logger = logging.getLogger(__name__)

ENGINE_NAME = 'rules'


@dataclass
class ClassificationResult:
    suggested_age_tier: str
    suggested_bin: str
    confidence: float
    reason: str
    needs_review: bool
    engine_version: str = ENGINE_VERSION
    engine: str = ENGINE_NAME

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _subjects_text(subjects) -> str:
    if not subjects:
        return ''
    if isinstance(subjects, str):
        return normalize_text(subjects)
    return ' '.join(normalize_text(s) for s in subjects if s)


def _first_present(book: Dict[str, Any], *keys):
    for key in keys:
        value = book.get(key)
        if value is not None and value != '':
            return value
    return None


def has_classifiable_metadata(book: Dict[str, Any]) -> bool:
    """At least one of title, description/summary or subjects must carry text."""
    return bool(
        normalize_text(book.get('title'))
        or normalize_text(book.get('description') or book.get('summary'))
        or _subjects_text(book.get('subjects'))
    )


def classify_book(book: Dict[str, Any],
                  rules: Iterable[KeywordRule],
                  age_override=None,
                  classic_override=None,
                  max_possible_score: float = DEFAULT_MAX_POSSIBLE_BIN_SCORE,
                  threshold: float = DEFAULT_REVIEW_THRESHOLD) -> ClassificationResult:
    """
    Pure classification of book metadata against an explicit rule set.

    Recognised keys: title, subtitle, subjects, description / summary,
    publisher_age_min / age_min, publisher_age_max / age_max,
    reading_age_text / reading_age, format.
    """
    forced = resolve_override(age_override, classic_override)
    if forced:
        age_tier, bin_code = forced
        return ClassificationResult(
            suggested_age_tier=age_tier,
            suggested_bin=bin_code,
            confidence=OVERRIDE_CONFIDENCE,
            reason='Matched classic override rule.',
            needs_review=False,
        )

    forced_tier = get_forced_age_tier(age_override)
    if forced_tier:
        age_tier, age_conf, age_reason = (
            forced_tier, OVERRIDE_CONFIDENCE, f"Age override forces {forced_tier}."
        )
    else:
        age_tier, age_conf, age_reason = score_age_tier(
            age_min=_first_present(book, 'publisher_age_min', 'age_min'),
            age_max=_first_present(book, 'publisher_age_max', 'age_max'),
            reading_age_text=_first_present(book, 'reading_age_text', 'reading_age'),
            format_hint=book.get('format'),
        )

    title_text = normalize_text(f"{book.get('title') or ''} {book.get('subtitle') or ''}")
    subject_text = _subjects_text(book.get('subjects'))
    summary_text = normalize_text(book.get('description') or book.get('summary'))

    ranked = score_bins(title_text, subject_text, summary_text, rules)
    bin_code, bin_conf, bin_reason = compute_bin_suggestion(ranked, max_possible_score)

    combined, needs_review = evaluate_classification_confidence(age_conf, bin_conf, threshold)

    return ClassificationResult(
        suggested_age_tier=age_tier,
        suggested_bin=bin_code,
        confidence=round(combined, 3),
        reason=f"{age_reason} {bin_reason}",
        needs_review=needs_review,
    )


def lookup_keyword_rules(active_only: bool = True) -> List[KeywordRule]:
    """Load keyword rules from the database in insertion order."""
    from models import ClassificationKeyword

    query = ClassificationKeyword.query
    if active_only:
        query = query.filter(ClassificationKeyword.is_active == True)  # noqa: E712
    return [
        KeywordRule(
            bin_code=row.bin_code,
            keyword=row.keyword,
            weight=row.weight,
            source_priority=row.source_priority,
        )
        for row in query.order_by(ClassificationKeyword.id).all()
    ]


def lookup_overrides(isbn: Optional[str], title: Optional[str]) -> Tuple[Any, Any]:
    """
    Returns (age_override, classic_override) for an ISBN and title.

    The age override is matched on exact ISBN only; the classic override on
    exact ISBN or on its title pattern appearing inside the title.
    """
    from models import AgeOverride, ClassicTitleOverride

    age_override = None
    if isbn:
        age_override = (
            AgeOverride.query
            .filter_by(isbn=isbn, is_active=True)
            .order_by(AgeOverride.id)
            .first()
        )

    if not isbn and not title:
        return age_override, None

    candidates = (
        ClassicTitleOverride.query
        .filter(ClassicTitleOverride.is_active == True)  # noqa: E712
        .order_by(ClassicTitleOverride.id)
        .all()
    )
    return age_override, pick_classic_override(candidates, isbn, title)


def classify(book: Dict[str, Any]) -> ClassificationResult:
    """
    Classify book metadata using the active rules and overrides in the database.

    Store failures are logged and scoring continues without them, which leaves
    the bin at the fallback and routes the result to review.
    """
    from flask import current_app
    from app import db

    isbn = (str(book.get('isbn') or '')).strip() or None
    title = book.get('title')

    try:
        age_override, classic_override = lookup_overrides(isbn, title)
    except SQLAlchemyError as e:
        logger.error(f"Override lookup failed for {isbn}: {e}", exc_info=True)
        db.session.rollback()
        age_override, classic_override = None, None

    try:
        rules = lookup_keyword_rules(active_only=True)
    except SQLAlchemyError as e:
        logger.error(f"Keyword rule lookup failed: {e}", exc_info=True)
        db.session.rollback()
        rules = []

    result = classify_book(
        book,
        rules,
        age_override=age_override,
        classic_override=classic_override,
        max_possible_score=current_app.config.get('BIN_SCORE_NORMALIZER', DEFAULT_MAX_POSSIBLE_BIN_SCORE),
        threshold=current_app.config.get('REVIEW_CONFIDENCE_THRESHOLD', DEFAULT_REVIEW_THRESHOLD),
    )
    logger.debug(f"Classified {isbn or title!r}: {result.suggested_age_tier}/{result.suggested_bin} "
                 f"conf={result.confidence} review={result.needs_review}")
    return result


def assign_topic(book: Dict[str, Any]) -> Dict[str, Any]:
    """Topic suggestion plus the topic review gate verdict."""
    result = assign_primary_topic(book)
    result['review'] = should_require_review(result)
    return result
