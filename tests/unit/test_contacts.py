"""
Unit tests for prospectcrm/engine/contacts.py.
"""

from unittest.mock import MagicMock, patch

import pytest

from prospectcrm.engine.contacts import list_contacts, add_contact, deactivate_contact
from prospectcrm.models import Contact
from prospectcrm.bus.events import EVENT_CONTACT_ADDED, EVENT_CONTACT_DEACTIVATED


def store_patch(store):
    return patch('prospectcrm.engine.contacts.table', return_value=store)


def test_list_contacts_active_only_by_default():
    store = MagicMock()
    store.select.return_value = [{'id': 'c1', 'etablissement_id': 'e1', 'nom': 'Martin', 'prenom': 'Léa'}]
    with store_patch(store):
        result = list_contacts('e1')
    store.select.assert_called_once_with(
        {'etablissement_id': 'e1', 'actif': True}, order_by='created_at', descending=True,
    )
    assert result[0].full_name == 'Léa Martin'


def test_list_contacts_including_inactive():
    store = MagicMock()
    store.select.return_value = []
    with store_patch(store):
        list_contacts('e1', include_inactive=True)
    assert store.select.call_args[0][0] == {'etablissement_id': 'e1'}


def test_add_contact_trims_and_blanks_to_null():
    store = MagicMock()
    store.insert.return_value = ['c7']
    with store_patch(store), patch('prospectcrm.engine.contacts.bus.emit') as mock_emit:
        contact_id = add_contact(Contact(
            etablissement_id='e1', nom=' Martin ', prenom='Léa', fonction='Directrice', telephone='  ',
        ))
    assert contact_id == 'c7'
    assert store.insert.call_args[0][0] == {
        'etablissement_id': 'e1', 'nom': 'Martin', 'prenom': 'Léa',
        'fonction': 'Directrice', 'telephone': None, 'email': None,
    }
    mock_emit.assert_called_once_with(EVENT_CONTACT_ADDED, {'contact_id': 'c7', 'etablissement_id': 'e1'})


@pytest.mark.parametrize('nom,prenom', [('', 'Léa'), ('Martin', '   '), (None, None)])
def test_add_contact_requires_both_names(nom, prenom):
    store = MagicMock()
    with store_patch(store), pytest.raises(ValueError, match='name'):
        add_contact(Contact(etablissement_id='e1', nom=nom, prenom=prenom))
    store.insert.assert_not_called()


def test_add_contact_requires_establishment():
    with pytest.raises(ValueError, match='establishment'):
        add_contact(Contact(nom='Martin', prenom='Léa'))


def test_deactivate_contact_is_soft():
    store = MagicMock()
    store.update.return_value = 1
    with store_patch(store), patch('prospectcrm.engine.contacts.bus.emit') as mock_emit:
        assert deactivate_contact('c1') is True
    store.update.assert_called_once_with({'actif': False}, {'id': 'c1', 'actif': True})
    store.delete.assert_not_called()
    mock_emit.assert_called_once_with(EVENT_CONTACT_DEACTIVATED, {'contact_id': 'c1'})


def test_deactivate_contact_already_inactive():
    store = MagicMock()
    store.update.return_value = 0
    with store_patch(store), patch('prospectcrm.engine.contacts.bus.emit') as mock_emit:
        assert deactivate_contact('c1') is False
    mock_emit.assert_not_called()
