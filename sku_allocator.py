"""
SKU allocation per age tier.

SKUs look like BN-<TIER PREFIX>-0001. The production strategy keeps one counter
row per tier and advances it with a conditional update, so two writers that
read the same value cannot both win; the loser re-reads and retries a bounded
number of times before the conflict is surfaced.
"""
import logging

from sqlalchemy import select, update, func

from app import db
from models import SkuCounter, BookCopy
from classification.mappings import AGE_TIER_RANGES, SKU_PREFIXES
from intake_errors import CounterConflict, ValidationError
from db_types import utc_now

logger = logging.getLogger(__name__)

SKU_NUMBER_WIDTH = 4
DEFAULT_MAX_ATTEMPTS = 5


def format_sku(age_tier, number):
    """BN-<prefix>-<zero padded number>"""
    return f"BN-{SKU_PREFIXES[age_tier]}-{number:0{SKU_NUMBER_WIDTH}d}"


class SqlCounterStore:
    """Counter rows in sku_counters, read and written with Core statements"""

    def __init__(self, session=None):
        self.session = session or db.session

    def read_next(self, age_tier):
        # Core select so a stale identity-map copy of the row is never returned
        return self.session.execute(
            select(SkuCounter.next_number).where(SkuCounter.age_tier == age_tier)
        ).scalar()

    def create(self, age_tier):
        self.session.add(SkuCounter(age_tier=age_tier, next_number=1))
        self.session.flush()

    def compare_and_increment(self, age_tier, expected):
        result = self.session.execute(
            update(SkuCounter)
            .where(SkuCounter.age_tier == age_tier, SkuCounter.next_number == expected)
            .values(next_number=expected + 1, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1


class ConditionalCounterStrategy:
    """Read the tier counter, then advance it only if nobody else did in between"""
    name = 'counter'

    def __init__(self, store=None, max_attempts=DEFAULT_MAX_ATTEMPTS):
        self.store = store or SqlCounterStore()
        self.max_attempts = max(1, int(max_attempts))

    def next_number(self, age_tier):
        for attempt in range(1, self.max_attempts + 1):
            current = self.store.read_next(age_tier)
            if current is None:
                self.store.create(age_tier)
                current = 1

            if self.store.compare_and_increment(age_tier, current):
                return current

            logger.warning(f"SKU counter conflict for {age_tier} at {current} "
                           f"(attempt {attempt}/{self.max_attempts})")

        raise CounterConflict(age_tier=age_tier, attempts=self.max_attempts)


class CopyCountStrategy:
    """
    Next number is the count of existing copies in the tier plus one.

    Not safe under concurrent commits; the unique SKU constraint is the only
    guard. Kept for installs that never had counter rows.
    """
    name = 'copy_count'

    def __init__(self, session=None):
        self.session = session or db.session

    def next_number(self, age_tier):
        existing = self.session.execute(
            select(func.count(BookCopy.id)).where(BookCopy.age_tier == age_tier)
        ).scalar() or 0
        return existing + 1


class SkuAllocator:
    def __init__(self, strategy):
        self.strategy = strategy

    def allocate(self, age_tier):
        if age_tier not in AGE_TIER_RANGES:
            raise ValidationError(f"Unknown age tier: {age_tier}", field='age_tier')
        sku = format_sku(age_tier, self.strategy.next_number(age_tier))
        logger.debug(f"Allocated {sku} via {self.strategy.name}")
        return sku


def get_allocator():
    """Allocator configured from SKU_ALLOCATION_STRATEGY / SKU_ALLOCATOR_MAX_RETRIES"""
    from flask import current_app

    strategy_name = current_app.config.get('SKU_ALLOCATION_STRATEGY', 'counter')
    if strategy_name == 'copy_count':
        return SkuAllocator(CopyCountStrategy())
    if strategy_name != 'counter':
        logger.warning(f"Unknown SKU_ALLOCATION_STRATEGY {strategy_name!r}, using counter")

    max_attempts = current_app.config.get('SKU_ALLOCATOR_MAX_RETRIES', DEFAULT_MAX_ATTEMPTS)
    return SkuAllocator(ConditionalCounterStrategy(max_attempts=max_attempts))


def allocate_sku(age_tier):
    return get_allocator().allocate(age_tier)


def seed_sku_counters():
    """Create a counter row for every tier that does not have one yet"""
    existing = {row.age_tier for row in SkuCounter.query.all()}
    created = 0
    for age_tier in AGE_TIER_RANGES:
        if age_tier not in existing:
            db.session.add(SkuCounter(age_tier=age_tier, next_number=1))
            created += 1
    if created:
        db.session.flush()
        logger.info(f"Seeded {created} SKU counters")
    return created
