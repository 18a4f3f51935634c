"""
Intake Batch Service
Lifecycle of a bounded scanning session: open -> (scan/edit)* -> committing -> committed, or open -> cancelled
"""
import json
import logging

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from models import IntakeBatch, IntakeBatchItem
from classification import classify, suggest_scan_age_tier
from classification.mappings import AGE_TIER_RANGES, BIN_CODES
from intake_errors import (
    InvalidIsbnError, DuplicateInBatchError, BatchNotFoundError, ItemNotFoundError,
    BatchNotOpenError, BatchFullError, ValidationError
)
from isbn_metadata import normalize_isbn, is_valid_isbn, fetch_book_metadata, placeholder_metadata
from services_intake_commit import lookup_existing_title, process_batch_commit
from sku_allocator import get_allocator
from timezone_utils import get_local_time
from db_types import utc_now

logger = logging.getLogger(__name__)

ITEM_ACTIONS = ('create', 'increase_qty', 'new_copy', 'skip')
DEFAULT_MAX_ITEMS = 20


def generate_batch_number():
    """
    Generate a unique batch number in the format INTAKE-YYYYMMDD-###

    Returns:
        String: A unique batch number
    """
    today = get_local_time().strftime('%Y%m%d')
    base_format = f"INTAKE-{today}-"

    try:
        result = db.session.query(
            func.max(
                func.cast(
                    func.substr(IntakeBatch.batch_number, len(base_format) + 1, 3),
                    db.Integer
                )
            )
        ).filter(
            IntakeBatch.batch_number.like(f"{base_format}%")
        ).scalar()

        next_seq = 1 if result is None else result + 1
        return f"{base_format}{next_seq:03d}"

    except SQLAlchemyError as e:
        logger.error(f"Error generating batch number: {str(e)}")
        db.session.rollback()
        # Fallback to timestamp-based number
        timestamp = get_local_time().strftime('%Y%m%d-%H%M%S')
        return f"INTAKE-{timestamp}"


def _get_batch_or_404(batch_id):
    batch = db.session.get(IntakeBatch, batch_id)
    if batch is None:
        raise BatchNotFoundError(batch_id=batch_id)
    return batch


def _require_open(batch):
    if not batch.is_open:
        raise BatchNotOpenError(f"Batch is not open (status: {batch.status})",
                                batch_id=batch.id, status=batch.status)


def get_batch(batch_id):
    """Returns (batch, items) with items in scan order"""
    batch = _get_batch_or_404(batch_id)
    return batch, batch.items.all()


def start_or_reuse_batch(actor=None):
    """
    Return the most recently created open batch, or open a new one.

    Returns:
        tuple: (IntakeBatch, reused)
    """
    existing = (
        IntakeBatch.query
        .filter_by(status='open')
        .order_by(IntakeBatch.created_at.desc(), IntakeBatch.id.desc())
        .first()
    )
    if existing:
        logger.debug(f"Reusing open intake batch {existing.batch_number}")
        return existing, True

    batch = IntakeBatch(
        batch_number=generate_batch_number(),
        status='open',
        created_by=actor,
    )
    db.session.add(batch)
    db.session.commit()
    logger.info(f"Opened intake batch {batch.batch_number} (by {actor or 'unknown'})")
    return batch, False


def _safe_fetch_metadata(fetch_metadata, isbn):
    try:
        metadata = fetch_metadata(isbn)
    except Exception as e:
        logger.warning(f"Metadata lookup failed for {isbn}: {e}")
        return placeholder_metadata(isbn)
    return metadata or placeholder_metadata(isbn)


def _reserve_item_slot(batch_id, max_items):
    """
    Count the item against the batch with a conditional update, in the same
    transaction as the insert. Concurrent scans queue on the row, so the cap
    holds and nothing lands in a batch that stopped being open.
    """
    result = db.session.execute(
        update(IntakeBatch)
        .where(IntakeBatch.id == batch_id,
               IntakeBatch.status == 'open',
               IntakeBatch.item_count < max_items)
        .values(item_count=IntakeBatch.item_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        batch = _get_batch_or_404(batch_id)
        _require_open(batch)
        raise BatchFullError(f"Batch is full ({max_items} items)", max_items=max_items)


def scan_isbn(batch_id, raw_isbn, fetch_metadata=None):
    """
    Add a scanned ISBN to an open batch.

    Raises:
        InvalidIsbnError, BatchNotFoundError, BatchNotOpenError,
        BatchFullError, DuplicateInBatchError
    """
    isbn = normalize_isbn(raw_isbn)
    if not is_valid_isbn(isbn):
        raise InvalidIsbnError(isbn=isbn)

    batch = _get_batch_or_404(batch_id)
    _require_open(batch)

    max_items = current_app.config.get('INTAKE_BATCH_MAX_ITEMS', DEFAULT_MAX_ITEMS)
    if batch.item_count >= max_items:
        raise BatchFullError(f"Batch is full ({max_items} items)", max_items=max_items)

    if batch.items.filter_by(isbn=isbn).first():
        raise DuplicateInBatchError(isbn=isbn)

    metadata = _safe_fetch_metadata(fetch_metadata or fetch_book_metadata, isbn)
    title = metadata.get('title')
    summary = metadata.get('summary')

    age_tier = suggest_scan_age_tier(title, summary)
    suggestion = classify({
        'isbn': isbn,
        'title': title,
        'summary': summary,
        'reading_age_text': metadata.get('reading_age'),
    })

    existing_book_id = lookup_existing_title(isbn)

    # Metadata lookup is slow; other scans may have filled the batch meanwhile
    _reserve_item_slot(batch_id, max_items)

    item = IntakeBatchItem(
        batch_id=batch_id,
        isbn=isbn,
        title=title,
        author=metadata.get('author'),
        summary=summary,
        reading_age=metadata.get('reading_age'),
        cover_url=metadata.get('cover_url'),
        suggested_age_tier=age_tier,
        suggested_bin=suggestion.suggested_bin,
        suggestion_confidence=suggestion.confidence,
        needs_review=suggestion.needs_review,
        suggestion_reason=suggestion.reason,
        final_age_tier=age_tier,
        qty=1,
        action='increase_qty' if existing_book_id else 'create',
        existing_book_id=existing_book_id,
    )
    db.session.add(item)
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent scan of the same ISBN won the unique constraint
        db.session.rollback()
        raise DuplicateInBatchError(isbn=isbn)

    batch = db.session.get(IntakeBatch, batch_id)
    logger.info(f"Scanned {isbn} into batch {batch.batch_number} "
                f"(age {age_tier}, bin {suggestion.suggested_bin}, action {item.action})")
    return item


def _validated_patch(batch, item, patch):
    """Validate an edit before anything is written; returns the changes to apply"""
    changes = {}

    if 'final_age_tier' in patch and patch['final_age_tier'] is not None:
        tier = str(patch['final_age_tier']).upper()
        if tier not in AGE_TIER_RANGES:
            raise ValidationError(f"Unknown age tier: {patch['final_age_tier']}", field='final_age_tier')
        changes['final_age_tier'] = tier

    if 'final_bin' in patch and patch['final_bin'] is not None:
        bin_code = str(patch['final_bin']).upper()
        if bin_code not in BIN_CODES:
            raise ValidationError(f"Unknown bin: {patch['final_bin']}", field='final_bin')
        changes['final_bin'] = bin_code

    if 'action' in patch and patch['action'] is not None:
        action = str(patch['action'])
        if action not in ITEM_ACTIONS:
            raise ValidationError(f"Unknown action: {action}", field='action')
        changes['action'] = action

    if 'qty' in patch and patch['qty'] is not None:
        qty = patch['qty']
        if isinstance(qty, bool) or not isinstance(qty, int) or qty < 1:
            raise ValidationError('qty must be a whole number of at least 1', field='qty')
        changes['qty'] = qty

    if 'isbn' in patch and patch['isbn'] is not None:
        isbn = normalize_isbn(patch['isbn'])
        if not is_valid_isbn(isbn):
            raise InvalidIsbnError(isbn=isbn)
        if isbn != item.isbn:
            clash = batch.items.filter(IntakeBatchItem.isbn == isbn, IntakeBatchItem.id != item.id).first()
            if clash:
                raise DuplicateInBatchError(isbn=isbn)
            changes['isbn'] = isbn

    return changes


def edit_item(batch_id, item_id, patch):
    """Apply an operator edit to an item of an open batch"""
    batch = _get_batch_or_404(batch_id)
    _require_open(batch)

    item = batch.items.filter_by(id=item_id).first()
    if item is None:
        raise ItemNotFoundError(item_id=item_id)

    changes = _validated_patch(batch, item, patch or {})

    if 'isbn' in changes and 'action' not in changes and item.action in ('create', 'increase_qty'):
        # Re-derive title linkage for the corrected ISBN
        existing_book_id = lookup_existing_title(changes['isbn'])
        changes['existing_book_id'] = existing_book_id
        changes['action'] = 'increase_qty' if existing_book_id else 'create'

    for field, value in changes.items():
        setattr(item, field, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateInBatchError(isbn=changes.get('isbn'))

    logger.info(f"Edited intake item {item.id} in batch {batch.batch_number}: {sorted(changes)}")
    return item


def _transition_from_open(batch_id, status, **values):
    """
    Move a batch out of 'open' with a conditional update. Only one caller can
    win; everyone else gets BatchNotOpenError even if they saw it open.
    """
    result = db.session.execute(
        update(IntakeBatch)
        .where(IntakeBatch.id == batch_id, IntakeBatch.status == 'open')
        .values(status=status, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        batch = _get_batch_or_404(batch_id)
        raise BatchNotOpenError(f"Batch is not open (status: {batch.status})",
                                batch_id=batch_id, status=batch.status)
    db.session.commit()


def commit_batch(batch_id, allocator=None):
    """
    Commit an open batch into inventory.

    Every non-skip item needs a final age tier and bin; otherwise nothing is
    written. The batch is claimed ('committing') before any item is touched,
    so a concurrent commit or cancel of the same batch is refused. Individual
    item failures are recorded and the batch still moves to committed.
    """
    batch = _get_batch_or_404(batch_id)
    _require_open(batch)

    items = batch.items.all()
    missing = [
        item.id for item in items
        if item.action != 'skip' and (not item.final_age_tier or not item.final_bin)
    ]
    if missing:
        raise ValidationError('Every item needs a final age tier and bin before commit',
                              item_ids=missing)

    _transition_from_open(batch_id, 'committing')

    try:
        summary = process_batch_commit(batch, items, allocator or get_allocator())
    except Exception:
        db.session.rollback()
        # Left in 'committing': some items may already be in inventory
        logger.error(f"Commit of intake batch {batch_id} aborted part way", exc_info=True)
        raise

    batch = db.session.get(IntakeBatch, batch_id)
    batch.status = 'committed'
    batch.committed_at = utc_now()
    batch.commit_summary = json.dumps(summary)
    db.session.commit()

    logger.info(f"Committed intake batch {batch.batch_number}: created={summary['created']} "
                f"updated={summary['updated']} skipped={summary['skipped']} failed={summary['failed']}")
    return summary


def cancel_batch(batch_id):
    """Cancel an open batch; its items stay as a historical record"""
    batch = _get_batch_or_404(batch_id)
    _require_open(batch)

    _transition_from_open(batch_id, 'cancelled', cancelled_at=utc_now())

    batch = db.session.get(IntakeBatch, batch_id)
    logger.info(f"Cancelled intake batch {batch.batch_number}")
    return batch
