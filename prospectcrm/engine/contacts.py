"""
Contacts of an establishment.
Removing a contact only clears its `actif` flag; the row stays.
"""

import logging
from typing import List

from prospectcrm.db.store import table
from prospectcrm.models import Contact
from prospectcrm.bus.events import bus, EVENT_CONTACT_ADDED, EVENT_CONTACT_DEACTIVATED

logger = logging.getLogger(__name__)


def list_contacts(etablissement_id: str, include_inactive: bool = False) -> List[Contact]:
    """Contacts of one establishment, newest first."""
    filters = {'etablissement_id': etablissement_id}
    if not include_inactive:
        filters['actif'] = True
    rows = table('contacts').select(filters, order_by='created_at', descending=True)
    return [Contact(**row) for row in rows]


def add_contact(contact: Contact) -> str:
    """
    Add a contact to an establishment.
    Returns: contact id
    """
    if not contact.etablissement_id:
        raise ValueError("A contact needs an establishment")
    nom = (contact.nom or '').strip()
    prenom = (contact.prenom or '').strip()
    if not nom or not prenom:
        raise ValueError("Contact first and last name are required")

    contact_id = table('contacts').insert({
        'etablissement_id': contact.etablissement_id,
        'nom': nom,
        'prenom': prenom,
        'fonction': (contact.fonction or '').strip() or None,
        'telephone': (contact.telephone or '').strip() or None,
        'email': (contact.email or '').strip() or None,
    })[0]
    logger.info(f"Added contact ID {contact_id}: {prenom} {nom}")

    bus.emit(EVENT_CONTACT_ADDED, {'contact_id': contact_id, 'etablissement_id': contact.etablissement_id})
    return contact_id


def deactivate_contact(contact_id: str) -> bool:
    """
    Soft-remove a contact.
    Returns: True if an active contact was deactivated
    """
    if table('contacts').update({'actif': False}, {'id': contact_id, 'actif': True}) > 0:
        logger.info(f"Deactivated contact ID {contact_id}")
        bus.emit(EVENT_CONTACT_DEACTIVATED, {'contact_id': contact_id})
        return True
    return False
