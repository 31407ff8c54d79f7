"""
Unit tests for prospectcrm/db/schema.py and prospectcrm/db/connection.py.
The DDL is inspected as text; psycopg2.connect is mocked.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from prospectcrm.db import connection
from prospectcrm.db.schema import ENUMS, TABLE_COLUMNS, schema_sql, init_schema
from prospectcrm.models import (
    Action, CompetitorEntry, Contact, Establishment, Profile, ReferenceEntry, Suggestion,
)


# ---------------------------------------------------------------------------
# DDL
# ---------------------------------------------------------------------------

def test_enums_created_before_tables():
    sql = schema_sql()
    assert sql.index('CREATE TYPE establishment_status') < sql.index('CREATE TABLE IF NOT EXISTS establishments')


def test_enum_ddl_tolerates_existing_type():
    assert 'duplicate_object' in schema_sql()


def test_every_enum_value_in_ddl():
    sql = schema_sql()
    for values in ENUMS.values():
        for value in values:
            assert f"'{value}'" in sql


def test_every_table_created():
    sql = schema_sql()
    for name in TABLE_COLUMNS:
        assert f"CREATE TABLE IF NOT EXISTS {name} (" in sql


@pytest.mark.parametrize('table_name, model', [
    ('establishments', Establishment),
    ('contacts', Contact),
    ('actions', Action),
    ('competitors_history', CompetitorEntry),
    ('parametrages', ReferenceEntry),
    ('suggestions', Suggestion),
    ('profiles', Profile),
])
def test_allowlist_matches_model_fields(table_name, model):
    # Rows are unpacked straight into the dataclasses
    assert TABLE_COLUMNS[table_name] == set(model.__dataclass_fields__)


def test_init_schema_runs_extension_then_ddl():
    cur = MagicMock()

    @contextmanager
    def _mock_ctx(dict_cursor=True):
        yield cur

    with patch('prospectcrm.db.schema.get_db_cursor', _mock_ctx):
        init_schema()

    statements = [c[0][0] for c in cur.execute.call_args_list]
    assert statements[0] == 'CREATE EXTENSION IF NOT EXISTS pgcrypto'
    assert statements[1] == schema_sql()


# ---------------------------------------------------------------------------
# Connection context managers
# ---------------------------------------------------------------------------

def test_connection_commits_and_closes_on_success():
    conn = MagicMock()
    with patch('prospectcrm.db.connection.psycopg2.connect', return_value=conn):
        with connection.get_db_connection():
            pass
    conn.commit.assert_called_once()
    conn.rollback.assert_not_called()
    conn.close.assert_called_once()


def test_connection_rolls_back_and_reraises_on_error():
    conn = MagicMock()
    with patch('prospectcrm.db.connection.psycopg2.connect', return_value=conn):
        with pytest.raises(RuntimeError):
            with connection.get_db_connection():
                raise RuntimeError("boom")
    conn.rollback.assert_called_once()
    conn.commit.assert_not_called()
    conn.close.assert_called_once()


def test_cursor_uses_real_dict_cursor_and_closes():
    conn = MagicMock()
    with patch('prospectcrm.db.connection.psycopg2.connect', return_value=conn):
        with connection.get_db_cursor() as cur:
            assert cur is conn.cursor.return_value
    conn.cursor.assert_called_once_with(cursor_factory=connection.RealDictCursor)
    cur.close.assert_called_once()


def test_plain_cursor_when_requested():
    conn = MagicMock()
    with patch('prospectcrm.db.connection.psycopg2.connect', return_value=conn):
        with connection.get_db_cursor(dict_cursor=False):
            pass
    conn.cursor.assert_called_once_with(cursor_factory=None)
