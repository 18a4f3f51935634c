import json

from app import db
from mixins import ActivatableMixin
from db_types import utc_column

# All timestamps in the database are stored in UTC


# Settings Table
class Setting(db.Model):
    __tablename__ = 'settings'
    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=False)

    @classmethod
    def get(cls, session, key, default=None):
        """Get a setting value by key with an optional default"""
        setting = session.query(cls).filter_by(key=key).first()
        return setting.value if setting else default

    @classmethod
    def set(cls, session, key, value):
        """Set a setting value by key"""
        setting = session.query(cls).filter_by(key=key).first()
        if setting:
            setting.value = value
        else:
            setting = cls(key=key, value=value)
            session.add(setting)
        session.flush()


# ===========================
# Classification reference data
# ===========================

class ClassificationKeyword(db.Model, ActivatableMixin):
    """Weighted keyword rule that pushes a book towards a storage bin"""
    __tablename__ = 'classification_keywords'

    id = db.Column(db.Integer, primary_key=True)
    bin_code = db.Column(db.String(32), nullable=False, index=True)
    keyword = db.Column(db.String(120), nullable=False)
    weight = db.Column(db.Float, nullable=False, default=1.0)
    # title, subject or summary
    source_priority = db.Column(db.String(20), nullable=False, default='summary')
    created_at = utc_column(default_now=True, nullable=False)

    def __repr__(self):
        return f"<ClassificationKeyword {self.bin_code}:{self.keyword} x{self.weight}>"


class AgeOverride(db.Model, ActivatableMixin):
    """Forces the age tier of a specific ISBN"""
    __tablename__ = 'age_overrides'

    id = db.Column(db.Integer, primary_key=True)
    isbn = db.Column(db.String(13), nullable=False, index=True)
    forced_age_tier = db.Column(db.String(10), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    updated_at = utc_column(default_now=True, on_update=True)

    def __repr__(self):
        return f"<AgeOverride {self.isbn} -> {self.forced_age_tier}>"


class ClassicTitleOverride(db.Model, ActivatableMixin):
    """Curated rule for known special-case titles, matched by ISBN or title pattern"""
    __tablename__ = 'classic_title_overrides'

    id = db.Column(db.Integer, primary_key=True)
    isbn = db.Column(db.String(13), nullable=True, index=True)
    title_pattern = db.Column(db.String(255), nullable=True)
    forced_bin = db.Column(db.String(32), nullable=True)
    forced_age_tier = db.Column(db.String(10), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    updated_at = utc_column(default_now=True, on_update=True)

    def __repr__(self):
        return f"<ClassicTitleOverride {self.isbn or self.title_pattern} -> {self.forced_bin}>"


# ===========================
# Inventory Models
# ===========================

class BookTitle(db.Model):
    """One row per distinct ISBN held in the warehouse"""
    __tablename__ = 'book_titles'

    id = db.Column(db.Integer, primary_key=True)
    isbn = db.Column(db.String(13), nullable=False, unique=True, index=True)
    title = db.Column(db.String(500), nullable=False)
    author = db.Column(db.String(255), nullable=True)
    summary = db.Column(db.Text, nullable=True)
    cover_url = db.Column(db.String(500), nullable=True)
    age_tier = db.Column(db.String(10), nullable=True)
    created_at = utc_column(default_now=True, nullable=False)
    updated_at = utc_column(default_now=True, on_update=True, nullable=False)

    copies = db.relationship('BookCopy', backref='book_title', lazy='dynamic')

    def __repr__(self):
        return f"<BookTitle {self.isbn}: {self.title}>"


class BookCopy(db.Model):
    """A physical copy on a shelf, identified by its SKU"""
    __tablename__ = 'book_copies'

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(32), nullable=False, unique=True, index=True)
    book_title_id = db.Column(db.Integer, db.ForeignKey('book_titles.id', ondelete='CASCADE'), nullable=False)
    isbn = db.Column(db.String(13), nullable=False, index=True)
    age_tier = db.Column(db.String(10), nullable=False, index=True)
    bin_code = db.Column(db.String(32), nullable=False)
    # in_house, picked, shipped, returned
    status = db.Column(db.String(20), nullable=False, default='in_house')
    intake_batch_id = db.Column(db.Integer, db.ForeignKey('intake_batches.id', ondelete='SET NULL'), nullable=True)
    created_at = utc_column(default_now=True, nullable=False)

    def __repr__(self):
        return f"<BookCopy {self.sku} in {self.bin_code}>"


class LabelQueueEntry(db.Model):
    """Copies waiting for a shelf label to be printed"""
    __tablename__ = 'label_queue'

    id = db.Column(db.Integer, primary_key=True)
    book_copy_id = db.Column(db.Integer, db.ForeignKey('book_copies.id', ondelete='CASCADE'), nullable=False, unique=True)
    sku = db.Column(db.String(32), nullable=False)
    # pending, printed
    status = db.Column(db.String(20), nullable=False, default='pending')
    created_at = utc_column(default_now=True, nullable=False)
    printed_at = utc_column()

    book_copy = db.relationship('BookCopy', backref=db.backref('label_entry', uselist=False))

    def __repr__(self):
        return f"<LabelQueueEntry {self.sku} - {self.status}>"


class SkuCounter(db.Model):
    """Next SKU sequence number per age tier; only touched through the allocator"""
    __tablename__ = 'sku_counters'

    age_tier = db.Column(db.String(10), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = utc_column(default_now=True, on_update=True)

    def __repr__(self):
        return f"<SkuCounter {self.age_tier} next={self.next_number}>"


# ===========================
# Intake Batch Models
# ===========================

class IntakeBatch(db.Model):
    """A bounded scanning session whose items are committed to inventory together"""
    __tablename__ = 'intake_batches'

    id = db.Column(db.Integer, primary_key=True)
    batch_number = db.Column(db.String(40), nullable=False, unique=True, index=True)
    # Batch status: open, committing, committed, cancelled
    status = db.Column(db.String(20), nullable=False, default='open', index=True)
    created_by = db.Column(db.String(100), nullable=True)
    created_at = utc_column(default_now=True, nullable=False)
    committed_at = utc_column()
    cancelled_at = utc_column()
    commit_summary = db.Column(db.Text, nullable=True)  # JSON
    # Maintained by scan_isbn through a conditional update; caps the batch size
    item_count = db.Column(db.Integer, nullable=False, default=0, server_default='0')

    items = db.relationship('IntakeBatchItem', backref='batch', lazy='dynamic',
                            order_by='IntakeBatchItem.id')

    @property
    def is_open(self):
        return self.status == 'open'

    def to_dict(self):
        return {
            'id': self.id,
            'batch_number': self.batch_number,
            'status': self.status,
            'created_by': self.created_by,
            'item_count': self.item_count,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'committed_at': self.committed_at.isoformat() if self.committed_at else None,
            'cancelled_at': self.cancelled_at.isoformat() if self.cancelled_at else None,
            'commit_summary': json.loads(self.commit_summary) if self.commit_summary else None,
        }

    def __repr__(self):
        return f"<IntakeBatch {self.batch_number} - {self.status}>"


class IntakeBatchItem(db.Model):
    """One scanned ISBN inside an intake batch"""
    __tablename__ = 'intake_batch_items'
    __table_args__ = (
        db.UniqueConstraint('batch_id', 'isbn', name='uq_intake_batch_items_batch_isbn'),
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('intake_batches.id', ondelete='CASCADE'), nullable=False, index=True)
    isbn = db.Column(db.String(13), nullable=False)

    title = db.Column(db.String(500), nullable=True)
    author = db.Column(db.String(255), nullable=True)
    summary = db.Column(db.Text, nullable=True)
    reading_age = db.Column(db.String(100), nullable=True)
    cover_url = db.Column(db.String(500), nullable=True)

    suggested_age_tier = db.Column(db.String(10), nullable=True)
    suggested_bin = db.Column(db.String(32), nullable=True)
    suggestion_confidence = db.Column(db.Float, nullable=True)
    needs_review = db.Column(db.Boolean, nullable=False, default=False)
    suggestion_reason = db.Column(db.Text, nullable=True)

    final_age_tier = db.Column(db.String(10), nullable=True)
    final_bin = db.Column(db.String(32), nullable=True)
    qty = db.Column(db.Integer, nullable=False, default=1)
    # create, increase_qty, new_copy, skip
    action = db.Column(db.String(20), nullable=False, default='create')
    existing_book_id = db.Column(db.Integer, db.ForeignKey('book_titles.id', ondelete='SET NULL'), nullable=True)

    error = db.Column(db.Text, nullable=True)
    committed_skus = db.Column(db.Text, nullable=True)  # JSON list
    created_at = utc_column(default_now=True, nullable=False)

    @property
    def metadata_dict(self):
        return {
            'title': self.title,
            'author': self.author,
            'summary': self.summary,
            'reading_age': self.reading_age,
            'cover_url': self.cover_url,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'batch_id': self.batch_id,
            'isbn': self.isbn,
            'metadata': self.metadata_dict,
            'suggested_age_tier': self.suggested_age_tier,
            'suggested_bin': self.suggested_bin,
            'suggestion_confidence': self.suggestion_confidence,
            'needs_review': self.needs_review,
            'suggestion_reason': self.suggestion_reason,
            'final_age_tier': self.final_age_tier,
            'final_bin': self.final_bin,
            'qty': self.qty,
            'action': self.action,
            'existing_book_id': self.existing_book_id,
            'error': self.error,
            'committed_skus': json.loads(self.committed_skus) if self.committed_skus else [],
        }

    def __repr__(self):
        return f"<IntakeBatchItem {self.id}: {self.isbn} ({self.action})>"
