"""
Intake Batch API Blueprint
JSON endpoints for the receiving screen: start, scan, edit, commit and cancel a batch
"""
from flask import Blueprint, request, jsonify
from app import db
from intake_errors import IntakeError, ValidationError
from services_intake_batch import (
    start_or_reuse_batch, get_batch, scan_isbn, edit_item, commit_batch, cancel_batch
)
import logging

logger = logging.getLogger(__name__)

intake_bp = Blueprint('intake_batch', __name__, url_prefix='/api/intake-batch')

EDITABLE_FIELDS = ('final_age_tier', 'final_bin', 'action', 'qty', 'isbn')


def _error_response(error):
    return jsonify(error.to_dict()), error.status_code


@intake_bp.route('/start', methods=['POST'])
def start_batch():
    """Reuse the open batch or open a new one; operator taken from x-operator-id"""
    operator_id = request.headers.get('x-operator-id')
    try:
        batch, reused = start_or_reuse_batch(actor=operator_id)
        return jsonify({'ok': True, 'batch': batch.to_dict(), 'reused': reused})
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error starting intake batch: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


@intake_bp.route('/<int:batch_id>', methods=['GET'])
def show_batch(batch_id):
    try:
        batch, items = get_batch(batch_id)
        return jsonify({
            'ok': True,
            'batch': batch.to_dict(),
            'items': [item.to_dict() for item in items],
        })
    except IntakeError as e:
        return _error_response(e)
    except Exception as e:
        logger.error(f"Error loading intake batch {batch_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


@intake_bp.route('/<int:batch_id>/scan', methods=['POST'])
def scan(batch_id):
    data = request.get_json(silent=True) or {}
    try:
        item = scan_isbn(batch_id, str(data.get('isbn') or ''))
        return jsonify({'ok': True, 'item': item.to_dict()})
    except IntakeError as e:
        db.session.rollback()
        return _error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error scanning into intake batch {batch_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


@intake_bp.route('/<int:batch_id>', methods=['PATCH'])
def update_item(batch_id):
    """Body: {itemId, final_age_tier?, final_bin?, action?, qty?, isbn?}"""
    data = request.get_json(silent=True) or {}
    try:
        item_id = data.get('itemId') or data.get('item_id')
        if not item_id:
            raise ValidationError('itemId is required', field='itemId')
        try:
            item_id = int(item_id)
        except (TypeError, ValueError):
            raise ValidationError('itemId must be an integer', field='itemId')

        patch = {field: data[field] for field in EDITABLE_FIELDS if field in data}
        item = edit_item(batch_id, item_id, patch)
        return jsonify({'ok': True, 'item': item.to_dict()})
    except IntakeError as e:
        db.session.rollback()
        return _error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error editing item in intake batch {batch_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


@intake_bp.route('/<int:batch_id>/commit', methods=['POST'])
def commit(batch_id):
    try:
        summary = commit_batch(batch_id)
        return jsonify({'ok': True, 'summary': summary})
    except IntakeError as e:
        db.session.rollback()
        return _error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error committing intake batch {batch_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


@intake_bp.route('/<int:batch_id>', methods=['DELETE'])
def cancel(batch_id):
    try:
        batch = cancel_batch(batch_id)
        return jsonify({'ok': True, 'batch': batch.to_dict()})
    except IntakeError as e:
        db.session.rollback()
        return _error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error cancelling intake batch {batch_id}: {str(e)}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500
