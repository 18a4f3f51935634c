"""
Keyword help for receiving staff.

Explains which keywords feed a bin and suggests tags and bins from a free-text
summary. Bin codes on shelf labels look like SOAR-ADVENTURE-01: age tier, bin
theme, shelf number.
"""

from typing import Any, Dict, Iterable, List, Optional

from .mappings import AGE_TIER_LABELS, BIN_CODES
from .rules import KeywordRule, normalize_text

MAX_SUGGESTED_BINS = 5
MAX_SUGGESTED_TAGS = 8
BIN_HELP_TAG_LIMIT = 10


def bin_theme_from_code(bin_code: Optional[str]) -> Optional[str]:
    """Theme part of a shelf bin code; a bare theme is accepted too. None when unknown."""
    if not bin_code:
        return None
    parts = bin_code.strip().upper().split('-')
    theme = parts[0] if len(parts) == 1 else parts[1]
    return theme if theme in BIN_CODES else None


def resolve_age_tier(age_group: Optional[str]) -> Optional[str]:
    """Accepts a tier code (SOAR) or its label (Soarers), any case."""
    if not age_group:
        return None
    wanted = age_group.strip().lower()
    for tier, label in AGE_TIER_LABELS.items():
        if wanted in (tier.lower(), label.lower()):
            return tier
    return None


def describe_bin(bin_code: str, theme: str, tags: List[str]) -> Dict[str, Any]:
    return {
        'bin_code': bin_code,
        'display_name': theme.capitalize(),
        'description': f"This bin is best suited for {theme.lower()} books.",
        'tags': tags,
    }


def lookup_top_keywords(theme: str, limit: int = BIN_HELP_TAG_LIMIT) -> List[str]:
    """Active keywords for a bin, heaviest first."""
    from models import ClassificationKeyword

    rows = (
        ClassificationKeyword.query
        .filter(ClassificationKeyword.is_active == True)  # noqa: E712
        .filter(ClassificationKeyword.bin_code == theme)
        .order_by(ClassificationKeyword.weight.desc(), ClassificationKeyword.id)
        .limit(limit)
        .all()
    )
    return [row.keyword for row in rows]


def suggest_tags_and_bins(summary: str,
                          rules: Iterable[KeywordRule],
                          age_tier: Optional[str] = None,
                          max_bins: int = MAX_SUGGESTED_BINS,
                          max_tags: int = MAX_SUGGESTED_TAGS) -> Dict[str, List]:
    """
    Match keyword rules against a summary and rank the bins they point at.

    Every matching rule adds its weight (1 when unset) to its bin, whatever its
    source priority. With an age tier the suggested bin codes are TIER-THEME.
    """
    text = normalize_text(summary)

    themes = {}
    for rule in rules:
        keyword = normalize_text(rule.keyword)
        if not keyword or keyword not in text:
            continue
        entry = themes.setdefault(rule.bin_code, {'score': 0.0, 'keywords': []})
        entry['score'] += float(rule.weight or 1)
        if keyword not in entry['keywords']:
            entry['keywords'].append(keyword)

    ranked = sorted(themes.items(), key=lambda item: item[1]['score'], reverse=True)[:max_bins]

    tags = []
    for _, entry in ranked:
        for keyword in entry['keywords']:
            if keyword not in tags:
                tags.append(keyword)
    tags = tags[:max_tags]

    label = AGE_TIER_LABELS.get(age_tier) if age_tier else None
    bins = []
    for theme, entry in ranked:
        reason = f"keywords [{', '.join(entry['keywords'])}]"
        if label:
            reason = f"age group {label} + {reason}"
        bins.append({
            'bin_code': f"{age_tier}-{theme}" if age_tier else theme,
            'display_name': f"{label} {theme.capitalize()}" if label else theme.capitalize(),
            'age_group': label,
            'tag_names': list(entry['keywords']),
            'score': entry['score'],
            'reason': reason,
        })

    return {'suggested_tags': tags, 'suggested_bins': bins}
