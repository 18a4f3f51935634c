"""
Batch Commit Processor
Turns the items of an intake batch into titles, SKU'd copies and pending labels
"""
import json
import logging

from sqlalchemy.exc import SQLAlchemyError

from app import db
from models import BookTitle, BookCopy, LabelQueueEntry, IntakeBatchItem
from intake_errors import IntakeError, ItemCommitError, CounterConflict

logger = logging.getLogger(__name__)


# ===========================
# Inventory collaborators
# ===========================

def lookup_existing_title(isbn):
    """Return the id of the title held for this ISBN, or None"""
    title = BookTitle.query.filter_by(isbn=isbn).first()
    return title.id if title else None


def resolve_or_create_title(isbn, title=None, author=None, summary=None, cover_url=None, age_tier=None):
    """
    Returns (BookTitle, created). Titles are deduped by normalized ISBN; an
    existing title keeps its catalogue data.
    """
    existing = BookTitle.query.filter_by(isbn=isbn).first()
    if existing:
        return existing, False

    book = BookTitle(
        isbn=isbn,
        title=title or 'Unknown Title',
        author=author,
        summary=summary,
        cover_url=cover_url,
        age_tier=age_tier,
    )
    db.session.add(book)
    db.session.flush()
    return book, True


def create_copy(book_title, sku, bin_code, age_tier, intake_batch_id=None):
    """Create an in-house copy and queue its shelf label"""
    copy = BookCopy(
        sku=sku,
        book_title_id=book_title.id,
        isbn=book_title.isbn,
        age_tier=age_tier,
        bin_code=bin_code,
        status='in_house',
        intake_batch_id=intake_batch_id,
    )
    db.session.add(copy)
    db.session.flush()

    db.session.add(LabelQueueEntry(book_copy_id=copy.id, sku=sku, status='pending'))
    return copy


# ===========================
# Commit processing
# ===========================

def _commit_item(batch_id, item, allocator):
    """Apply one item; returns (skus, created_title). Caller owns the transaction."""
    if item.action == 'increase_qty':
        book = None
        if item.existing_book_id:
            book = db.session.get(BookTitle, item.existing_book_id)
        if book is None:
            book = BookTitle.query.filter_by(isbn=item.isbn).first()
        if book is None:
            raise ItemCommitError(f"No existing title for ISBN {item.isbn} to increase")
        created_title = False
    else:
        book, created_title = resolve_or_create_title(
            item.isbn,
            title=item.title,
            author=item.author,
            summary=item.summary,
            cover_url=item.cover_url,
            age_tier=item.final_age_tier,
        )

    skus = []
    for _ in range(max(1, item.qty or 1)):
        try:
            sku = allocator.allocate(item.final_age_tier)
        except CounterConflict as e:
            raise ItemCommitError(f"SKU allocation failed: {e}") from e
        create_copy(book, sku, item.final_bin, item.final_age_tier, intake_batch_id=batch_id)
        skus.append(sku)

    item.existing_book_id = book.id
    item.committed_skus = json.dumps(skus)
    item.error = None
    return skus, created_title


def process_batch_commit(batch, items, allocator):
    """
    Commit every item of a batch in stored order.

    Each item runs in its own transaction: a failing item is rolled back,
    its error recorded on the item, and processing moves on to the next one.

    Returns:
        dict: {batch_id, created, updated, skipped, failed, errors: [{item_id, isbn, error}]}
    """
    batch_id = batch.id
    summary = {
        'batch_id': batch_id,
        'created': 0,
        'updated': 0,
        'skipped': 0,
        'failed': 0,
        'errors': [],
    }

    # Capture ids up front; a rollback expires every loaded instance
    item_ids = [item.id for item in items]

    for item_id in item_ids:
        item = db.session.get(IntakeBatchItem, item_id)

        if item.action == 'skip':
            summary['skipped'] += 1
            continue

        isbn = item.isbn
        try:
            skus, created_title = _commit_item(batch_id, item, allocator)
            db.session.commit()
        except (IntakeError, SQLAlchemyError) as e:
            db.session.rollback()
            message = str(e)
            logger.warning(f"Intake item {item_id} ({isbn}) failed to commit: {message}")

            item = db.session.get(IntakeBatchItem, item_id)
            item.error = message
            db.session.commit()

            summary['failed'] += 1
            summary['errors'].append({'item_id': item_id, 'isbn': isbn, 'error': message})
            continue

        if created_title:
            summary['created'] += 1
        else:
            summary['updated'] += 1
        logger.info(f"Committed intake item {item_id} ({isbn}): {', '.join(skus)}")

    return summary
