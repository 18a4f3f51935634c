"""
Classification API Blueprint
Suggests age tier / bin for book metadata, tags books with a primary topic
and explains bins and their keywords to receiving staff
"""
from flask import Blueprint, request, jsonify
from classification import (
    classify, assign_topic, bin_theme_from_code, resolve_age_tier, describe_bin,
    lookup_top_keywords, lookup_keyword_rules, suggest_tags_and_bins
)
from classification.engine import has_classifiable_metadata
from db_types import utc_now
import logging

logger = logging.getLogger(__name__)

classification_bp = Blueprint('classification', __name__, url_prefix='/api')


@classification_bp.route('/suggest-classification', methods=['POST'])
def suggest_classification():
    """
    Body: {isbn?, title?, subtitle?, description?/summary?, subjects?,
           reading_age_text?, publisher_age_min?, publisher_age_max?, format?}
    """
    data = request.get_json(silent=True) or {}
    if not has_classifiable_metadata(data):
        return jsonify({'error': 'At least one metadata field is required'}), 400

    try:
        result = classify(data)
        return jsonify(result.to_dict())
    except Exception as e:
        logger.error(f"Error suggesting classification: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


@classification_bp.route('/books/assign-topic', methods=['POST'])
def assign_book_topic():
    data = request.get_json(silent=True) or {}
    try:
        result = assign_topic(data)
        review = result['review']
        return jsonify({
            'isbn': data.get('isbn'),
            'primary_topic': result['primary_topic'],
            'confidence': result['confidence'],
            'action': review['action'],
            'needs_review': review['needs_review'],
            'review_reasons': review['reasons'],
            'all_scores': result['all_scores'],
            'timestamp': utc_now().isoformat(),
        })
    except Exception as e:
        logger.error(f"Error assigning topic: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to assign topic'}), 500


@classification_bp.route('/bin-help', methods=['GET'])
def bin_help():
    """Query: binCode, a shelf code like SOAR-ADVENTURE-01 or a bare theme"""
    bin_code = (request.args.get('binCode') or '').strip()
    if not bin_code:
        return jsonify({'error': 'binCode is required'}), 400

    theme = bin_theme_from_code(bin_code)
    if theme is None:
        return jsonify({'error': 'Invalid bin code format'}), 400

    try:
        return jsonify(describe_bin(bin_code, theme, lookup_top_keywords(theme)))
    except Exception as e:
        logger.error(f"Error loading bin help for {bin_code}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to load keywords'}), 500


@classification_bp.route('/suggest-tags-and-bin', methods=['POST'])
def suggest_tags_and_bin():
    """Body: {summary, ageGroup?}; ageGroup is a tier code or its label"""
    data = request.get_json(silent=True) or {}
    summary = str(data.get('summary') or '')
    if not summary.strip():
        return jsonify({'error': 'Summary is required for suggestions.'}), 400

    age_group = data.get('ageGroup') or None
    age_tier = resolve_age_tier(age_group)
    if age_group and age_tier is None:
        return jsonify({'error': f"Unknown age group: {age_group}"}), 400

    try:
        suggestions = suggest_tags_and_bins(summary, lookup_keyword_rules(), age_tier=age_tier)
        return jsonify({'age_group': age_group, **suggestions})
    except Exception as e:
        logger.error(f"Error suggesting tags and bins: {str(e)}", exc_info=True)
        return jsonify({'error': 'Failed to load keywords'}), 500
