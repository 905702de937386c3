from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor

from padelbook.core.config import Settings
from padelbook.core.errors import PersistenceError


def get_connection(settings: Settings):
    conn = psycopg2.connect(
        host=settings.db_host,
        port=settings.db_port,
        dbname=settings.db_name,
        user=settings.db_user,
        password=settings.db_password,
        cursor_factory=RealDictCursor,
        options="-c timezone=utc",
    )
    conn.autocommit = True  # each statement is its own unit of work
    return conn


@contextmanager
def cursor(settings: Settings):
    """Yield a dict cursor on a fresh connection; database failures surface as PersistenceError."""
    try:
        conn = get_connection(settings)
    except psycopg2.Error as exc:
        raise PersistenceError(f"Database unavailable: {exc}") from exc
    try:
        with conn.cursor() as cur:
            yield cur
    except psycopg2.Error as exc:
        raise PersistenceError(str(exc).strip()) from exc
    finally:
        conn.close()
