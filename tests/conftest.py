"""
Test configuration and fixtures for pytest tests.
Provides isolated test environment with in-memory SQLite database.
"""

import os

import pytest

# The app reads its configuration at import time
os.environ['SESSION_SECRET'] = 'test-secret-key-for-testing'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'

from app import app as flask_app, db, init_database  # noqa: E402


DEFAULT_TEST_CONFIG = {
    'TESTING': True,
    'INTAKE_BATCH_MAX_ITEMS': 20,
    'SKU_ALLOCATOR_MAX_RETRIES': 5,
    'SKU_ALLOCATION_STRATEGY': 'counter',
    'BIN_SCORE_NORMALIZER': 40.0,
    'REVIEW_CONFIDENCE_THRESHOLD': 0.65,
    'METADATA_TIMEOUT': 2.0,
}


@pytest.fixture(scope='function')
def app():
    """Flask app with freshly created tables and seeded reference data."""
    flask_app.config.update(DEFAULT_TEST_CONFIG)

    with flask_app.app_context():
        db.session.remove()
        db.drop_all()
        init_database()

        yield flask_app

        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the Flask app."""
    return app.test_client()


class FakeMetadataFetcher:
    """Stands in for the network metadata lookup; records every ISBN asked for."""

    def __init__(self, catalogue=None):
        self.catalogue = catalogue or {}
        self.calls = []

    def __call__(self, isbn):
        self.calls.append(isbn)
        meta = {
            'isbn': isbn,
            'title': 'Unknown Title',
            'author': 'Unknown Author',
            'summary': None,
            'reading_age': None,
            'cover_url': None,
        }
        meta.update(self.catalogue.get(isbn, {}))
        return meta


@pytest.fixture
def fake_metadata():
    return FakeMetadataFetcher({
        '9780000000002': {
            'title': "Baby's First Zoo",
            'author': 'Ada Example',
            'summary': 'board book for toddlers',
        },
        '9780000000019': {
            'title': 'Science Explorers',
            'author': 'Ben Example',
            'summary': 'Learn how plants grow',
        },
        '9780000000026': {
            'title': 'The Long Chapter',
            'author': 'Cy Example',
            'summary': 'A middle grade mystery',
        },
    })


@pytest.fixture
def open_batch(app):
    from services_intake_batch import start_or_reuse_batch
    batch, _ = start_or_reuse_batch(actor='tester')
    return batch
