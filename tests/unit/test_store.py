"""
Unit tests for the table-scoped store (prospectcrm/db/store.py).

Strategy: patch prospectcrm.db.store.get_db_cursor with a contextmanager that
yields a MagicMock cursor, then inspect the SQL and parameters it received.
"""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

from prospectcrm.db.store import Table, table, _validate_columns


def make_cursor(fetchone=None, fetchall=None, rowcount=1):
    cur = MagicMock()
    cur.fetchone.return_value = fetchone
    cur.fetchall.return_value = fetchall if fetchall is not None else []
    cur.rowcount = rowcount
    return cur


def cursor_patch(cur):
    @contextmanager
    def _mock_ctx():
        yield cur

    return patch('prospectcrm.db.store.get_db_cursor', _mock_ctx)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def test_validate_columns_valid_passes():
    _validate_columns({'nom', 'ville'}, {'nom', 'ville', 'statut'}, 'establishment')


def test_validate_columns_invalid_raises():
    with pytest.raises(ValueError, match='establishment'):
        _validate_columns({'nom', 'DROP TABLE'}, {'nom'}, 'establishment')


def test_unknown_table_raises():
    with pytest.raises(ValueError, match='Unknown table'):
        Table('users; DROP TABLE actions')


def test_table_shorthand():
    assert table('actions').name == 'actions'


# ---------------------------------------------------------------------------
# select
# ---------------------------------------------------------------------------

def test_select_builds_equality_filters():
    cur = make_cursor(fetchall=[{'id': 'c1'}])
    with cursor_patch(cur):
        rows = table('contacts').select({'etablissement_id': 'e1', 'actif': True})
    sql, params = cur.execute.call_args[0]
    assert 'FROM contacts' in sql
    assert 'etablissement_id = %(w_etablissement_id)s' in sql
    assert 'actif = %(w_actif)s' in sql
    assert params == {'w_etablissement_id': 'e1', 'w_actif': True}
    assert rows == [{'id': 'c1'}]


def test_select_none_filter_is_null():
    cur = make_cursor()
    with cursor_patch(cur):
        table('suggestions').select({'etablissement_id': None})
    sql, params = cur.execute.call_args[0]
    assert 'etablissement_id IS NULL' in sql
    assert params == {}


def test_select_order_and_limit():
    cur = make_cursor()
    with cursor_patch(cur):
        table('suggestions').select(order_by='created_at', descending=True, limit=50)
    sql, params = cur.execute.call_args[0]
    assert 'ORDER BY created_at DESC' in sql
    assert 'LIMIT %(limit)s' in sql
    assert params['limit'] == 50


def test_select_columns():
    cur = make_cursor()
    with cursor_patch(cur):
        table('establishments').select(columns=['id', 'statut'])
    assert cur.execute.call_args[0][0].startswith('SELECT id, statut FROM establishments')


def test_select_rejects_unknown_filter_column():
    with pytest.raises(ValueError):
        table('contacts').select({'password': 'x'})


def test_select_rejects_unknown_order_column():
    with pytest.raises(ValueError):
        table('contacts').select(order_by='nom; DROP TABLE contacts')


def test_select_one_returns_first_or_none():
    cur = make_cursor(fetchall=[{'id': 'p1'}])
    with cursor_patch(cur):
        assert table('profiles').select_one({'id': 'p1'}) == {'id': 'p1'}
    cur = make_cursor(fetchall=[])
    with cursor_patch(cur):
        assert table('profiles').select_one({'id': 'missing'}) is None


# ---------------------------------------------------------------------------
# insert
# ---------------------------------------------------------------------------

def test_insert_single_row_returns_ids():
    cur = make_cursor(fetchone={'id': 'a1'})
    with cursor_patch(cur):
        ids = table('actions').insert({'type': 'phoning', 'etablissement_id': 'e1'})
    assert ids == ['a1']
    sql, params = cur.execute.call_args[0]
    assert sql.startswith('INSERT INTO actions (type, etablissement_id)')
    assert 'RETURNING id' in sql
    assert params == {'type': 'phoning', 'etablissement_id': 'e1'}


def test_insert_many_rows_in_one_cursor():
    cur = make_cursor()
    cur.fetchone.side_effect = [{'id': 'x'}, {'id': 'y'}]
    with cursor_patch(cur):
        ids = table('parametrages').insert([
            {'categorie': 'groupe', 'valeur': 'Accor'},
            {'categorie': 'groupe', 'valeur': 'Marriott'},
        ])
    assert ids == ['x', 'y']
    assert cur.execute.call_count == 2


def test_insert_empty_list_is_noop():
    cur = make_cursor()
    with cursor_patch(cur):
        assert table('actions').insert([]) == []
    cur.execute.assert_not_called()


def test_insert_rejects_unknown_column():
    cur = make_cursor(fetchone={'id': 'x'})
    with cursor_patch(cur), pytest.raises(ValueError):
        table('actions').insert({'type': 'phoning', 'evil': 1})


# ---------------------------------------------------------------------------
# update / delete
# ---------------------------------------------------------------------------

def test_update_bumps_updated_at_when_table_has_it():
    cur = make_cursor(rowcount=1)
    with cursor_patch(cur):
        count = table('establishments').update({'nom': 'Hôtel Bellecour'}, {'id': 'e1'})
    assert count == 1
    sql, params = cur.execute.call_args[0]
    assert 'nom = %(v_nom)s' in sql
    assert 'updated_at = NOW()' in sql
    assert 'WHERE id = %(w_id)s' in sql
    assert params == {'v_nom': 'Hôtel Bellecour', 'w_id': 'e1'}


def test_update_without_updated_at_column():
    cur = make_cursor(rowcount=1)
    with cursor_patch(cur):
        table('contacts').update({'actif': False}, {'id': 'c1'})
    assert 'updated_at' not in cur.execute.call_args[0][0]


def test_update_empty_values_is_noop():
    cur = make_cursor()
    with cursor_patch(cur):
        assert table('contacts').update({}, {'id': 'c1'}) == 0
    cur.execute.assert_not_called()


def test_update_without_filter_refused():
    with pytest.raises(ValueError, match='without a filter'):
        table('contacts').update({'actif': False}, {})


def test_delete_returns_rowcount():
    cur = make_cursor(rowcount=0)
    with cursor_patch(cur):
        assert table('actions').delete({'id': 'a1', 'etablissement_id': 'e1'}) == 0
    assert cur.execute.call_args[0][0].startswith('DELETE FROM actions WHERE')


def test_delete_without_filter_refused():
    with pytest.raises(ValueError, match='without a filter'):
        table('actions').delete({})
