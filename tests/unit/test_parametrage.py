"""
Unit tests for prospectcrm/engine/parametrage.py.
"""

from unittest.mock import MagicMock, patch

import pytest

from prospectcrm.engine.parametrage import (
    list_entries, grouped_entries, label_of, add_entry, rename_entry, delete_entry,
)
from prospectcrm.models import ReferenceEntry
from prospectcrm.bus.events import EVENT_PARAMETRAGE_CHANGED


def store_patch(store):
    return patch('prospectcrm.engine.parametrage.table', return_value=store)


def test_list_entries_by_category():
    store = MagicMock()
    store.select.return_value = [{'id': 'p1', 'categorie': 'secteur', 'valeur': 'Santé'}]
    with store_patch(store):
        entries = list_entries('secteur')
    store.select.assert_called_once_with({'categorie': 'secteur'}, order_by='valeur')
    assert entries[0].valeur == 'Santé'


def test_list_entries_invalid_category():
    with pytest.raises(ValueError, match='Invalid category'):
        list_entries('pays')


def test_grouped_entries_has_every_category():
    store = MagicMock()
    store.select.return_value = [
        {'id': 'p1', 'categorie': 'groupe', 'valeur': 'Accor'},
        {'id': 'p2', 'categorie': 'concurrent', 'valeur': 'Adecco'},
        {'id': 'p3', 'categorie': 'concurrent', 'valeur': 'Randstad'},
    ]
    with store_patch(store):
        grouped = grouped_entries()
    assert set(grouped) == {'groupe', 'secteur', 'activite', 'concurrent'}
    assert [e.valeur for e in grouped['concurrent']] == ['Adecco', 'Randstad']
    assert grouped['secteur'] == []


def test_label_of():
    entries = [ReferenceEntry(id='p1', categorie='concurrent', valeur='Adecco')]
    assert label_of(entries, 'p1') == 'Adecco'
    assert label_of(entries, 'p9') is None
    assert label_of(entries, None) is None


def test_add_entry_trims_and_emits():
    store = MagicMock()
    store.insert.return_value = ['p4']
    with store_patch(store), patch('prospectcrm.engine.parametrage.bus.emit') as mock_emit:
        assert add_entry('activite', ' Restauration ') == 'p4'
    store.insert.assert_called_once_with({'categorie': 'activite', 'valeur': 'Restauration'})
    mock_emit.assert_called_once_with(EVENT_PARAMETRAGE_CHANGED, {'entry_id': 'p4', 'categorie': 'activite'})


def test_add_entry_rejects_blank_value():
    with pytest.raises(ValueError, match='empty'):
        add_entry('groupe', '  ')


def test_rename_entry():
    store = MagicMock()
    store.update.return_value = 1
    with store_patch(store), patch('prospectcrm.engine.parametrage.bus.emit'):
        assert rename_entry('p1', 'Accor Hotels') is True
    store.update.assert_called_once_with({'valeur': 'Accor Hotels'}, {'id': 'p1'})


def test_delete_entry_not_found():
    store = MagicMock()
    store.delete.return_value = 0
    with store_patch(store), patch('prospectcrm.engine.parametrage.bus.emit') as mock_emit:
        assert delete_entry('p9') is False
    mock_emit.assert_not_called()


def test_delete_entry_in_use_propagates():
    store = MagicMock()
    store.delete.side_effect = RuntimeError('violates foreign key constraint')
    with store_patch(store), pytest.raises(RuntimeError):
        delete_entry('p1')
