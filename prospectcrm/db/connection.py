"""
PostgreSQL access for the engine.

One short-lived connection per unit of work, tagged 'prospectcrm' in
pg_stat_activity. Engine modules normally go through prospectcrm.db.store;
the raw cursor is for joined reads (establishment lists, reporting series).
"""

import logging
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor

from prospectcrm.config import config

logger = logging.getLogger(__name__)


@contextmanager
def get_db_connection():
    """
    One transaction: committed when the block exits cleanly, rolled back and
    re-raised otherwise. The connection is closed either way.

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("UPDATE establishments SET actif = false WHERE id = %s", (est_id,))
    """
    conn = None
    try:
        conn = psycopg2.connect(config.DATABASE_URL, application_name='prospectcrm')
        logger.debug("Database connection established")
        yield conn
        conn.commit()
        logger.debug("Transaction committed")
    except Exception as e:
        if conn:
            conn.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
        raise
    finally:
        if conn:
            conn.close()
            logger.debug("Database connection closed")


@contextmanager
def get_db_cursor(dict_cursor=True):
    """
    Cursor inside its own transaction. Rows come back as dicts keyed by column
    name unless dict_cursor=False.

        with get_db_cursor() as cur:
            cur.execute("SELECT statut, count(*) AS n FROM establishments GROUP BY statut")
            counts = {row["statut"]: row["n"] for row in cur.fetchall()}
    """
    with get_db_connection() as conn:
        cursor_factory = RealDictCursor if dict_cursor else None
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
        finally:
            cur.close()
