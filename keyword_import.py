"""
Keyword rule table seeding and spreadsheet import
"""
import logging
import os

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from app import db
from models import ClassificationKeyword
from classification.mappings import BIN_CODES, DEFAULT_KEYWORD_RULES, SOURCE_MULTIPLIERS

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('bin', 'keyword')
_TRUE_VALUES = ('1', '1.0', 'true', 'yes', 'y', 'active')


def seed_default_keywords():
    """Load the default keyword table when no rules exist yet"""
    if ClassificationKeyword.query.first():
        return 0

    for bin_code, keyword, weight, source_priority in DEFAULT_KEYWORD_RULES:
        db.session.add(ClassificationKeyword(
            bin_code=bin_code,
            keyword=keyword,
            weight=float(weight),
            source_priority=source_priority,
        ))
    db.session.flush()
    logger.info(f"Seeded {len(DEFAULT_KEYWORD_RULES)} default keyword rules")
    return len(DEFAULT_KEYWORD_RULES)


def _read_table(path):
    ext = os.path.splitext(path)[1].lower()
    if ext in ('.xlsx', '.xls'):
        return pd.read_excel(path, engine='openpyxl')
    return pd.read_csv(path)


def _parse_row(row):
    """Returns (rule kwargs, None) or (None, reason)"""
    bin_code = str(row.get('bin', '')).strip().upper()
    keyword = str(row.get('keyword', '')).strip()
    source_priority = str(row.get('source_priority', '') or 'summary').strip().lower() or 'summary'

    if bin_code not in BIN_CODES:
        return None, f"unknown bin {bin_code!r}"
    if not keyword:
        return None, 'empty keyword'
    if source_priority not in SOURCE_MULTIPLIERS:
        return None, f"unknown source_priority {source_priority!r}"

    raw_weight = row.get('weight', 1)
    try:
        weight = float(raw_weight) if raw_weight != '' else 1.0
    except (TypeError, ValueError):
        return None, f"bad weight {raw_weight!r}"
    if weight <= 0:
        return None, f"weight must be positive, got {weight}"

    raw_active = str(row.get('active', '')).strip().lower()
    active = raw_active == '' or raw_active in _TRUE_VALUES

    return {
        'bin_code': bin_code,
        'keyword': keyword,
        'weight': weight,
        'source_priority': source_priority,
        'is_active': active,
    }, None


def import_keyword_frame(df, replace=False):
    """
    Import keyword rules from a DataFrame with columns
    bin, keyword[, weight, source_priority, active].

    With replace=True every existing active rule is disabled first. All
    changes are committed together or not at all.
    """
    df = df.rename(columns={col: str(col).strip().lower() for col in df.columns})
    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        return {'success': False, 'imported': 0, 'skipped': 0, 'errors': [f"Missing required column(s): {', '.join(missing)}"]}

    df = df.fillna('')

    rules = []
    errors = []
    for index, row in df.iterrows():
        parsed, reason = _parse_row(row)
        if parsed is None:
            # +2: header line and 1-based rows
            errors.append(f"Row {index + 2}: {reason}")
            continue
        rules.append(parsed)

    try:
        if replace:
            for existing in ClassificationKeyword.query.filter_by(is_active=True).all():
                existing.disable('Replaced by keyword import')

        for rule in rules:
            db.session.add(ClassificationKeyword(**rule))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Keyword import failed: {str(e)}", exc_info=True)
        return {'success': False, 'imported': 0, 'skipped': len(errors), 'errors': errors + [str(e)]}

    logger.info(f"Imported {len(rules)} keyword rules ({len(errors)} rows skipped, replace={replace})")
    return {'success': True, 'imported': len(rules), 'skipped': len(errors), 'errors': errors}


def import_keyword_file(path, replace=False):
    """Import keyword rules from a CSV or Excel file"""
    try:
        df = _read_table(path)
    except Exception as e:
        logger.error(f"Could not read keyword file {path}: {str(e)}")
        return {'success': False, 'imported': 0, 'skipped': 0, 'errors': [f"Could not read file: {str(e)}"]}

    logger.info(f"Keyword file {path} loaded with {len(df)} rows")
    return import_keyword_frame(df, replace=replace)
