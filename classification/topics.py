"""
Topic tagging for books.

Scores a book against the topic taxonomy in mappings.TOPIC_KEYWORDS. This is
separate from bin placement: different keywords, different field weights and
a 0-100 confidence scale.
"""

import math
import re
from functools import lru_cache
from typing import Any, Dict, Iterable, Optional

from .mappings import (
    TOPIC_KEYWORDS, TOPIC_FIELD_WEIGHTS, TOPIC_PRIMARY_POINTS,
    TOPIC_SECONDARY_POINTS, TOPIC_MULTIWORD_BONUS
)
from .rules import normalize_text


@lru_cache(maxsize=1024)
def _keyword_pattern(keyword: str):
    parts = [re.escape(part) for part in keyword.split()]
    return re.compile(r'\b' + r'\s+'.join(parts) + r'\b')


def count_matches(text: str, keyword: str) -> int:
    """Count whole-word occurrences of keyword in text."""
    if not text or not keyword:
        return 0
    return len(_keyword_pattern(keyword.lower()).findall(text))


def _join_subjects(subjects: Optional[Iterable[str]]) -> str:
    if not subjects:
        return ''
    if isinstance(subjects, str):
        return subjects
    return ' '.join(str(s) for s in subjects if s)


def score_topics(book: Dict[str, Any], taxonomy: Optional[Dict[str, Dict[str, list]]] = None) -> Dict[str, int]:
    """Raw points per topic, in taxonomy order."""
    taxonomy = taxonomy or TOPIC_KEYWORDS
    fields = {
        'title': normalize_text(book.get('title')),
        'subtitle': normalize_text(book.get('subtitle')),
        'subjects': normalize_text(_join_subjects(book.get('subjects'))),
        'description': normalize_text(book.get('description') or book.get('summary')),
    }

    scores = {}
    for topic, keywords in taxonomy.items():
        points = 0
        for field_name, text in fields.items():
            if not text:
                continue
            field_weight = TOPIC_FIELD_WEIGHTS[field_name]

            for keyword in keywords.get('primary', []):
                bonus = TOPIC_MULTIWORD_BONUS if ' ' in keyword.strip() else 1
                points += count_matches(text, keyword) * field_weight * TOPIC_PRIMARY_POINTS * bonus

            for keyword in keywords.get('secondary', []):
                points += count_matches(text, keyword) * field_weight * TOPIC_SECONDARY_POINTS

        scores[topic] = points
    return scores


def calculate_topic_confidence(winner_score: float, runner_up_score: float, total_score: float) -> int:
    """0-100 confidence from how far the winner is ahead of the field."""
    if total_score == 0:
        return 0

    how_much_better = winner_score / (runner_up_score + 1)
    percent_of_total = winner_score / total_score
    gap = (winner_score - runner_up_score) / total_score

    raw = how_much_better * 20 + percent_of_total * 40 + gap * 40
    # half-up rounding, matching what operators see in the review screen
    return int(max(0, min(100, math.floor(raw + 0.5))))


def rank_topic_scores(scores: Dict[str, float]) -> Dict[str, Any]:
    """Pick the winning topic out of a topic -> points map."""
    ranked = sorted(scores.items(), key=lambda entry: entry[1], reverse=True)
    if not ranked:
        return {
            'primary_topic': None,
            'confidence': 0,
            'all_scores': {},
            'winner_score': 0,
            'runner_up_score': 0,
            'total_score': 0,
        }

    winner, winner_score = ranked[0]
    runner_up_score = ranked[1][1] if len(ranked) > 1 else 0
    total_score = sum(scores.values())

    return {
        'primary_topic': winner,
        'confidence': calculate_topic_confidence(winner_score, runner_up_score, total_score),
        'all_scores': dict(scores),
        'winner_score': winner_score,
        'runner_up_score': runner_up_score,
        'total_score': total_score,
    }


def assign_primary_topic(book: Dict[str, Any]) -> Dict[str, Any]:
    """Score a book's title/subtitle/subjects/description and return the winning topic."""
    return rank_topic_scores(score_topics(book))
