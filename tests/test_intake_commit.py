"""
Tests for committing intake batches into inventory: validation, per-item
transactions, SKU allocation and the commit summary.
"""

import json

import pytest

from intake_errors import BatchNotOpenError, CounterConflict, ValidationError
from services_intake_batch import scan_isbn, edit_item, commit_batch, cancel_batch, get_batch
from sku_allocator import SkuAllocator, ConditionalCounterStrategy, format_sku


class FailingOnCallAllocator:
    """Hands out sequential SKUs but loses the counter race on one chosen call."""

    def __init__(self, fail_on_call):
        self.fail_on_call = fail_on_call
        self.calls = 0

    def allocate(self, age_tier):
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise CounterConflict(age_tier=age_tier, attempts=5)
        return format_sku(age_tier, 900 + self.calls)


class ConflictStore:
    def read_next(self, age_tier):
        return 1

    def create(self, age_tier):
        pass

    def compare_and_increment(self, age_tier, expected):
        return False


def ready(batch, item, **patch):
    return edit_item(batch.id, item.id, dict({'final_bin': 'LIFE'}, **patch))


class TestCommitValidation:

    def test_missing_final_bin_blocks_commit(self, open_batch, fake_metadata):
        from models import BookCopy

        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        scan_isbn(open_batch.id, '9780000000019', fetch_metadata=fake_metadata)
        ready(open_batch, item)

        with pytest.raises(ValidationError) as excinfo:
            commit_batch(open_batch.id)

        batch, items = get_batch(open_batch.id)
        assert batch.status == 'open'
        assert excinfo.value.details['item_ids'] == [items[1].id]
        assert all(i.committed_skus is None for i in items)
        assert BookCopy.query.count() == 0

    def test_skipped_items_need_no_final_fields(self, open_batch, fake_metadata):
        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        edit_item(open_batch.id, item.id, {'action': 'skip'})

        summary = commit_batch(open_batch.id)
        assert summary['skipped'] == 1
        assert summary['created'] == 0

    def test_commit_requires_open_batch(self, open_batch):
        cancel_batch(open_batch.id)
        with pytest.raises(BatchNotOpenError):
            commit_batch(open_batch.id)


class TestCommitProcessing:

    def test_end_to_end_scan_edit_commit(self, open_batch, fake_metadata):
        from models import BookTitle, BookCopy, LabelQueueEntry
        from intake_errors import DuplicateInBatchError

        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        assert item.suggested_age_tier == 'HATCH'

        with pytest.raises(DuplicateInBatchError):
            scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)

        edit_item(open_batch.id, item.id, {'final_bin': 'LIFE'})
        summary = commit_batch(open_batch.id)

        assert summary == {
            'batch_id': open_batch.id,
            'created': 1,
            'updated': 0,
            'skipped': 0,
            'failed': 0,
            'errors': [],
        }

        copy = BookCopy.query.one()
        assert copy.sku == 'BN-HATCH-0001'
        assert copy.bin_code == 'LIFE'
        assert copy.age_tier == 'HATCH'
        assert copy.status == 'in_house'
        assert copy.intake_batch_id == open_batch.id

        title = BookTitle.query.filter_by(isbn='9780000000002').one()
        assert title.title == "Baby's First Zoo"
        assert copy.book_title_id == title.id

        label = LabelQueueEntry.query.one()
        assert (label.sku, label.status) == ('BN-HATCH-0001', 'pending')

        batch, items = get_batch(open_batch.id)
        assert batch.status == 'committed'
        assert batch.committed_at is not None
        assert json.loads(batch.commit_summary)['created'] == 1
        assert items[0].to_dict()['committed_skus'] == ['BN-HATCH-0001']

    def test_qty_allocates_one_sku_per_copy(self, open_batch, fake_metadata):
        from models import BookCopy

        item = scan_isbn(open_batch.id, '9780000000019', fetch_metadata=fake_metadata)
        ready(open_batch, item, qty=3)
        commit_batch(open_batch.id)

        skus = sorted(c.sku for c in BookCopy.query.all())
        assert skus == ['BN-SOAR-0001', 'BN-SOAR-0002', 'BN-SOAR-0003']

    def test_tiers_number_independently(self, open_batch, fake_metadata):
        from models import BookCopy

        for isbn in ('9780000000002', '9780000000019', '9780000000026'):
            ready(open_batch, scan_isbn(open_batch.id, isbn, fetch_metadata=fake_metadata))
        commit_batch(open_batch.id)

        assert sorted(c.sku for c in BookCopy.query.all()) == [
            'BN-HATCH-0001', 'BN-SKY-0001', 'BN-SOAR-0001'
        ]

    def test_increase_qty_adds_copy_to_existing_title(self, open_batch, fake_metadata):
        from app import db
        from models import BookTitle, BookCopy

        book = BookTitle(isbn='9780000000002', title='Shelved Already')
        db.session.add(book)
        db.session.commit()

        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        ready(open_batch, item)
        summary = commit_batch(open_batch.id)

        assert (summary['created'], summary['updated']) == (0, 1)
        assert BookTitle.query.count() == 1
        assert BookCopy.query.one().book_title_id == book.id

    def test_new_copy_reuses_title_when_present(self, open_batch, fake_metadata):
        from app import db
        from models import BookTitle

        db.session.add(BookTitle(isbn='9780000000019', title='Science Explorers'))
        db.session.commit()

        item = scan_isbn(open_batch.id, '9780000000019', fetch_metadata=fake_metadata)
        ready(open_batch, item, action='new_copy')
        summary = commit_batch(open_batch.id)

        assert (summary['created'], summary['updated']) == (0, 1)
        assert BookTitle.query.count() == 1

    def test_failed_item_does_not_block_siblings(self, open_batch, fake_metadata):
        from models import BookTitle, BookCopy

        first = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        second = scan_isbn(open_batch.id, '9780000000019', fetch_metadata=fake_metadata)
        # No title exists for this ISBN, so increasing its quantity must fail
        ready(open_batch, first, action='increase_qty')
        ready(open_batch, second)

        summary = commit_batch(open_batch.id)

        assert summary['failed'] == 1
        assert summary['created'] == 1
        assert summary['errors'][0]['item_id'] == first.id
        assert summary['errors'][0]['isbn'] == '9780000000002'
        assert 'No existing title' in summary['errors'][0]['error']

        batch, items = get_batch(open_batch.id)
        assert batch.status == 'committed'
        assert 'No existing title' in items[0].error
        assert items[1].error is None
        assert BookTitle.query.filter_by(isbn='9780000000002').first() is None
        assert BookCopy.query.one().isbn == '9780000000019'

    def test_failed_item_is_rolled_back_completely(self, open_batch, fake_metadata):
        from models import BookTitle, BookCopy, LabelQueueEntry

        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        ready(open_batch, item, qty=2)

        summary = commit_batch(open_batch.id, allocator=FailingOnCallAllocator(fail_on_call=2))

        assert summary['failed'] == 1
        assert 'SKU allocation failed' in summary['errors'][0]['error']
        assert BookTitle.query.count() == 0
        assert BookCopy.query.count() == 0
        assert LabelQueueEntry.query.count() == 0

    def test_counter_conflict_recorded_on_item(self, open_batch, fake_metadata):
        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        ready(open_batch, item)

        allocator = SkuAllocator(ConditionalCounterStrategy(ConflictStore(), max_attempts=2))
        summary = commit_batch(open_batch.id, allocator=allocator)

        assert summary['failed'] == 1
        batch, items = get_batch(open_batch.id)
        assert batch.status == 'committed'
        assert items[0].error.startswith('SKU allocation failed')

    def test_committed_batch_is_frozen(self, open_batch, fake_metadata):
        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        ready(open_batch, item)
        commit_batch(open_batch.id)

        with pytest.raises(BatchNotOpenError):
            commit_batch(open_batch.id)
        with pytest.raises(BatchNotOpenError):
            edit_item(open_batch.id, item.id, {'qty': 2})
        with pytest.raises(BatchNotOpenError):
            scan_isbn(open_batch.id, '9780000000019', fetch_metadata=fake_metadata)


class TestBatchClaim:
    """Only one caller can move a batch out of open, even if several saw it open."""

    @pytest.fixture
    def lose_claim_race(self, monkeypatch):
        """Once armed, another operator claims the batch right after this caller's open check passes."""
        import services_intake_batch

        real_require_open = services_intake_batch._require_open

        def require_open_then_lose_race(batch):
            real_require_open(batch)
            services_intake_batch._transition_from_open(batch.id, 'committing')

        def arm():
            monkeypatch.setattr(services_intake_batch, '_require_open', require_open_then_lose_race)

        return arm

    def test_claim_is_won_once(self, open_batch):
        import services_intake_batch

        services_intake_batch._transition_from_open(open_batch.id, 'committing')
        with pytest.raises(BatchNotOpenError):
            services_intake_batch._transition_from_open(open_batch.id, 'committing')

    def test_second_commit_after_claim_is_refused(self, open_batch, fake_metadata):
        import services_intake_batch
        from models import BookCopy

        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        ready(open_batch, item)
        services_intake_batch._transition_from_open(open_batch.id, 'committing')

        with pytest.raises(BatchNotOpenError):
            commit_batch(open_batch.id)
        assert BookCopy.query.count() == 0

    def test_concurrent_commit_does_not_duplicate_copies(self, open_batch, fake_metadata, lose_claim_race):
        from models import BookCopy, LabelQueueEntry

        item = scan_isbn(open_batch.id, '9780000000002', fetch_metadata=fake_metadata)
        ready(open_batch, item, qty=2)
        lose_claim_race()

        with pytest.raises(BatchNotOpenError) as excinfo:
            commit_batch(open_batch.id)

        assert excinfo.value.details['status'] == 'committing'
        assert BookCopy.query.count() == 0
        assert LabelQueueEntry.query.count() == 0

    def test_cancel_cannot_land_during_commit(self, open_batch, lose_claim_race):
        lose_claim_race()
        with pytest.raises(BatchNotOpenError):
            cancel_batch(open_batch.id)

        batch, _ = get_batch(open_batch.id)
        assert batch.status == 'committing'
        assert batch.cancelled_at is None
