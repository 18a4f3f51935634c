"""
Tests for seeding the keyword rule table and importing rules from spreadsheets.
"""

import pandas as pd

from classification import classify
from classification.mappings import DEFAULT_KEYWORD_RULES
from keyword_import import seed_default_keywords, import_keyword_frame, import_keyword_file


def active_rules():
    from models import ClassificationKeyword
    return ClassificationKeyword.query.filter_by(is_active=True).all()


class TestSeeding:

    def test_seed_is_idempotent(self, app):
        from models import ClassificationKeyword

        assert ClassificationKeyword.query.count() == len(DEFAULT_KEYWORD_RULES)
        assert seed_default_keywords() == 0
        assert ClassificationKeyword.query.count() == len(DEFAULT_KEYWORD_RULES)


class TestImportFrame:

    def test_valid_rows_imported(self, app):
        df = pd.DataFrame([
            {'Bin': 'humor', 'Keyword': 'zeppelin', 'Weight': 6, 'Source_Priority': 'title'},
            {'Bin': 'LEARN', 'Keyword': 'abacus', 'Weight': '', 'Source_Priority': ''},
        ])

        result = import_keyword_frame(df)

        assert result == {'success': True, 'imported': 2, 'skipped': 0, 'errors': []}
        by_keyword = {r.keyword: r for r in active_rules()}
        assert by_keyword['zeppelin'].bin_code == 'HUMOR'
        assert by_keyword['zeppelin'].source_priority == 'title'
        assert by_keyword['abacus'].weight == 1.0
        assert by_keyword['abacus'].source_priority == 'summary'

    def test_invalid_rows_skipped_with_reasons(self, app):
        df = pd.DataFrame([
            {'bin': 'ATTIC', 'keyword': 'dust', 'weight': 1},
            {'bin': 'LIFE', 'keyword': '  ', 'weight': 1},
            {'bin': 'LIFE', 'keyword': 'chores', 'weight': -2},
            {'bin': 'LIFE', 'keyword': 'bedtime', 'weight': 'heavy'},
            {'bin': 'LIFE', 'keyword': 'family', 'weight': 2},
        ])

        result = import_keyword_frame(df)

        assert result['success'] is True
        assert result['imported'] == 1
        assert result['skipped'] == 4
        assert result['errors'][0] == "Row 2: unknown bin 'ATTIC'"
        assert result['errors'][1] == 'Row 3: empty keyword'

    def test_inactive_rows_are_stored_disabled(self, app):
        from models import ClassificationKeyword

        df = pd.DataFrame([{'bin': 'LIFE', 'keyword': 'laundry', 'weight': 1, 'active': 'no'}])
        import_keyword_frame(df)

        rule = ClassificationKeyword.query.filter_by(keyword='laundry').one()
        assert rule.is_active is False

    def test_missing_required_column(self, app):
        result = import_keyword_frame(pd.DataFrame([{'bin': 'LIFE', 'weight': 1}]))
        assert result['success'] is False
        assert 'keyword' in result['errors'][0]

    def test_replace_disables_existing_rules(self, app):
        from models import ClassificationKeyword

        df = pd.DataFrame([{'bin': 'NATURE', 'keyword': 'moss', 'weight': 3}])
        result = import_keyword_frame(df, replace=True)

        assert result['imported'] == 1
        assert [r.keyword for r in active_rules()] == ['moss']
        assert ClassificationKeyword.query.count() == len(DEFAULT_KEYWORD_RULES) + 1
        disabled = ClassificationKeyword.query.filter_by(is_active=False).first()
        assert disabled.disabled_reason == 'Replaced by keyword import'

    def test_imported_rule_drives_classification(self, app):
        before = classify({'title': 'Zeppelin'})
        assert before.suggested_bin == 'LIFE'

        import_keyword_frame(pd.DataFrame([
            {'bin': 'HUMOR', 'keyword': 'zeppelin', 'weight': 5, 'source_priority': 'title'},
        ]))

        assert classify({'title': 'Zeppelin'}).suggested_bin == 'HUMOR'


class TestImportFile:

    def test_csv_file(self, app, tmp_path):
        path = tmp_path / 'keywords.csv'
        path.write_text('bin,keyword,weight,source_priority\nSEASONAL,lantern,4,subject\n')

        result = import_keyword_file(str(path))

        assert result['imported'] == 1
        assert 'lantern' in [r.keyword for r in active_rules()]

    def test_unreadable_file(self, app, tmp_path):
        result = import_keyword_file(str(tmp_path / 'missing.csv'))
        assert result['success'] is False
        assert result['errors'][0].startswith('Could not read file')

    def test_cli_command(self, app, tmp_path):
        path = tmp_path / 'keywords.csv'
        path.write_text('bin,keyword\nADVENTURE,kayak\n')

        runner = app.test_cli_runner()
        result = runner.invoke(args=['import-keywords', str(path)])

        assert result.exit_code == 0
        assert 'Imported 1 keyword rules' in result.output

    def test_cli_command_failure_exit_code(self, app, tmp_path):
        path = tmp_path / 'keywords.csv'
        path.write_text('bin,weight\nADVENTURE,2\n')

        result = app.test_cli_runner().invoke(args=['import-keywords', str(path)])

        assert result.exit_code == 1
