"""
Tests for bin keyword help and tag / bin suggestions from a summary.
"""

import pytest

from classification import (
    KeywordRule, bin_theme_from_code, resolve_age_tier, lookup_top_keywords,
    suggest_tags_and_bins
)

RULES = [
    KeywordRule('ADVENTURE', 'pirate', 3, 'title'),
    KeywordRule('ADVENTURE', 'treasure', 3, 'summary'),
    KeywordRule('NATURE', 'ocean', 3, 'summary'),
    KeywordRule('HUMOR', 'silly', 0, 'summary'),
    KeywordRule('SEASONAL', 'winter', 2, 'summary'),
]


class TestBinCodes:

    @pytest.mark.parametrize('code, theme', [
        ('SOAR-ADVENTURE-01', 'ADVENTURE'),
        ('soar-nature-12', 'NATURE'),
        ('HATCH-LIFE', 'LIFE'),
        ('classics', 'CLASSICS'),
        ('SOAR', None),
        ('SOAR-ATTIC-01', None),
        ('', None),
        (None, None),
    ])
    def test_theme_from_code(self, code, theme):
        assert bin_theme_from_code(code) == theme

    @pytest.mark.parametrize('age_group, tier', [
        ('Soarers', 'SOAR'),
        ('sky readers', 'SKY'),
        ('FLED', 'FLED'),
        ('Teens', None),
        (None, None),
    ])
    def test_resolve_age_tier(self, age_group, tier):
        assert resolve_age_tier(age_group) == tier


class TestSuggestTagsAndBins:

    def test_ranks_bins_by_summed_weight(self):
        result = suggest_tags_and_bins('A silly pirate hunts treasure across the ocean!', RULES)

        assert [b['bin_code'] for b in result['suggested_bins']] == ['ADVENTURE', 'NATURE', 'HUMOR']
        assert [b['score'] for b in result['suggested_bins']] == [6.0, 3.0, 1.0]
        assert result['suggested_tags'] == ['pirate', 'treasure', 'ocean', 'silly']

    def test_source_priority_is_ignored(self):
        result = suggest_tags_and_bins('pirate', RULES)
        assert result['suggested_bins'][0]['tag_names'] == ['pirate']

    def test_age_tier_shapes_bin_codes(self):
        result = suggest_tags_and_bins('pirate treasure', RULES, age_tier='SOAR')

        adventure = result['suggested_bins'][0]
        assert adventure == {
            'bin_code': 'SOAR-ADVENTURE',
            'display_name': 'Soarers Adventure',
            'age_group': 'Soarers',
            'tag_names': ['pirate', 'treasure'],
            'score': 6.0,
            'reason': 'age group Soarers + keywords [pirate, treasure]',
        }

    def test_limits(self):
        rules = [KeywordRule(code, f"word{i}{code.lower()}", 1)
                 for i, code in enumerate(['LIFE', 'NATURE', 'LEARN', 'ADVENTURE',
                                           'HUMOR', 'CLASSICS', 'IDENTITY', 'SEASONAL'])]
        summary = ' '.join(rule.keyword for rule in rules)

        result = suggest_tags_and_bins(summary, rules, max_bins=5, max_tags=3)

        assert len(result['suggested_bins']) == 5
        assert len(result['suggested_tags']) == 3

    def test_no_matches(self):
        assert suggest_tags_and_bins('a quiet story', RULES) == {
            'suggested_tags': [],
            'suggested_bins': [],
        }


class TestTopKeywords:

    def test_heaviest_first_active_only(self, app):
        from app import db
        from models import ClassificationKeyword

        quest = ClassificationKeyword.query.filter_by(keyword='quest').one()
        quest.is_active = False
        db.session.commit()

        assert lookup_top_keywords('ADVENTURE') == ['adventure', 'treasure', 'pirate']
        assert lookup_top_keywords('ADVENTURE', limit=1) == ['adventure']
        assert lookup_top_keywords('CLASSICS') == ['classic', 'anniversary edition']
