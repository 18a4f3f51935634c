"""
ISBN helpers and the book metadata lookup used when scanning into a batch.

Open Library is tried first, then Google Books. Lookups never raise: any
network or payload problem is logged and the scan continues with placeholder
metadata.
"""
import logging
import re
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

OPENLIB_ISBN_JSON = "https://openlibrary.org/isbn/{isbn}.json"
OPENLIB_AUTHOR_JSON = "https://openlibrary.org{author_key}.json"
OPENLIB_COVER_BY_ID = "https://covers.openlibrary.org/b/id/{cover_id}-L.jpg"
GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"

UNKNOWN_TITLE = 'Unknown Title'
UNKNOWN_AUTHOR = 'Unknown Author'

DEFAULT_TIMEOUT = 8
# Scans wait on these lookups, so keep retries short
METADATA_MAX_RETRIES = 2
METADATA_BACKOFF_FACTOR = 0.3
_DEFAULT_HEADERS = {
    "User-Agent": "BookIntake/1.0",
    "Accept": "application/json",
}
_ISBN_PATTERN = re.compile(r'^\d{10}(\d{3})?$')
_STRIP_PATTERN = re.compile(r'[-\s]')


def normalize_isbn(raw) -> str:
    """Strip hyphens and whitespace."""
    if raw is None:
        return ''
    return _STRIP_PATTERN.sub('', str(raw)).strip()


def is_valid_isbn(raw) -> bool:
    """10 or 13 digits after normalization; check digits are not verified."""
    return bool(_ISBN_PATTERN.match(normalize_isbn(raw)))


def placeholder_metadata(isbn: str) -> Dict[str, Any]:
    return {
        'isbn': isbn,
        'title': UNKNOWN_TITLE,
        'author': UNKNOWN_AUTHOR,
        'summary': None,
        'reading_age': None,
        'cover_url': None,
    }


def create_http_session() -> requests.Session:
    """Session with browser-ish JSON headers and retries on transient upstream errors."""
    session = requests.Session()
    session.headers.update(_DEFAULT_HEADERS)
    retry_strategy = Retry(
        total=METADATA_MAX_RETRIES,
        connect=METADATA_MAX_RETRIES,
        read=METADATA_MAX_RETRIES,
        backoff_factor=METADATA_BACKOFF_FACTOR,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _get_json(sess, url: str, timeout: float, params: Optional[Dict[str, str]] = None):
    try:
        response = sess.get(url, params=params, timeout=timeout)
    except requests.RequestException as e:
        logger.warning(f"Metadata request failed for {url}: {e}")
        return None
    if response.status_code != 200:
        logger.debug(f"Metadata request to {url} returned {response.status_code}")
        return None
    try:
        return response.json() or {}
    except ValueError:
        logger.warning(f"Metadata response from {url} was not JSON")
        return None


def _description_text(value) -> Optional[str]:
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get('value') or None
    return None


def fetch_open_library(isbn: str, sess, timeout: float = DEFAULT_TIMEOUT) -> Optional[Dict[str, Any]]:
    payload = _get_json(sess, OPENLIB_ISBN_JSON.format(isbn=isbn), timeout)
    if not isinstance(payload, dict) or not payload:
        return None

    author = UNKNOWN_AUTHOR
    authors = payload.get('authors') or []
    if authors and isinstance(authors[0], dict) and authors[0].get('key'):
        author_payload = _get_json(sess, OPENLIB_AUTHOR_JSON.format(author_key=authors[0]['key']), timeout)
        if isinstance(author_payload, dict) and author_payload.get('name'):
            author = author_payload['name']

    covers = payload.get('covers') or []
    cover_url = OPENLIB_COVER_BY_ID.format(cover_id=covers[0]) if covers and covers[0] else None

    return {
        'isbn': isbn,
        'title': payload.get('title') or UNKNOWN_TITLE,
        'author': author,
        'summary': _description_text(payload.get('description')),
        'reading_age': payload.get('reading_level') or None,
        'cover_url': cover_url,
    }


def fetch_google_books(isbn: str, sess, timeout: float = DEFAULT_TIMEOUT) -> Optional[Dict[str, Any]]:
    payload = _get_json(sess, GOOGLE_BOOKS_URL, timeout, params={'q': f'isbn:{isbn}'})
    if not isinstance(payload, dict):
        return None

    items = payload.get('items') or []
    info = items[0].get('volumeInfo') if items and isinstance(items[0], dict) else None
    if not isinstance(info, dict):
        return None

    image_links = info.get('imageLinks') or {}
    cover_url = None
    for size in ('extraLarge', 'large', 'medium', 'small', 'thumbnail'):
        if image_links.get(size):
            cover_url = image_links[size]
            break

    authors = info.get('authors') or []
    return {
        'isbn': isbn,
        'title': info.get('title') or UNKNOWN_TITLE,
        'author': authors[0] if authors else UNKNOWN_AUTHOR,
        'summary': info.get('description') or None,
        'reading_age': info.get('maturityRating') or None,
        'cover_url': cover_url,
    }


def fetch_book_metadata(raw_isbn, session=None, timeout: Optional[float] = None) -> Dict[str, Any]:
    """
    Look up title, author, summary, reading age and cover for an ISBN.

    Always returns a metadata dict; unknown books get placeholder title/author.
    """
    isbn = normalize_isbn(raw_isbn)
    if timeout is None:
        timeout = _configured_timeout()

    sess = session
    created_session = False
    if sess is None:
        sess = create_http_session()
        created_session = True

    try:
        for source_name, fetcher in (('open_library', fetch_open_library), ('google_books', fetch_google_books)):
            try:
                metadata = fetcher(isbn, sess, timeout)
            except (KeyError, IndexError, TypeError, AttributeError) as e:
                logger.warning(f"Unexpected {source_name} payload for {isbn}: {e}")
                metadata = None
            if metadata:
                logger.info(f"Metadata for {isbn} found via {source_name}")
                return metadata
    finally:
        if created_session:
            sess.close()

    logger.info(f"No metadata found for {isbn}, using placeholders")
    return placeholder_metadata(isbn)


def _configured_timeout() -> float:
    from flask import current_app, has_app_context
    if has_app_context():
        return float(current_app.config.get('METADATA_TIMEOUT', DEFAULT_TIMEOUT))
    return DEFAULT_TIMEOUT
