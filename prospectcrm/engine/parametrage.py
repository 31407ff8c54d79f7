"""
Reference lists ("parametrage"): the closed vocabularies for groups, sectors,
activities and competitor names that establishments point to by id.
"""

import logging
from typing import Dict, List, Optional

from prospectcrm.db.store import table
from prospectcrm.models import ReferenceEntry, PARAMETRAGE_CATEGORIES
from prospectcrm.bus.events import bus, EVENT_PARAMETRAGE_CHANGED

logger = logging.getLogger(__name__)


def _check_category(categorie: str) -> None:
    if categorie not in PARAMETRAGE_CATEGORIES:
        raise ValueError(f"Invalid category: {categorie!r}. Expected one of {', '.join(PARAMETRAGE_CATEGORIES)}")


def list_entries(categorie: Optional[str] = None) -> List[ReferenceEntry]:
    """Entries ordered by value, optionally limited to one category."""
    filters = None
    if categorie:
        _check_category(categorie)
        filters = {'categorie': categorie}
    rows = table('parametrages').select(filters, order_by='valeur')
    return [ReferenceEntry(**row) for row in rows]


def grouped_entries() -> Dict[str, List[ReferenceEntry]]:
    """All entries split per category, each list ordered by value."""
    grouped = {categorie: [] for categorie in PARAMETRAGE_CATEGORIES}
    for entry in list_entries():
        grouped.setdefault(entry.categorie, []).append(entry)
    return grouped


def label_of(entries: List[ReferenceEntry], entry_id: Optional[str]) -> Optional[str]:
    """Value of the entry with this id, or None."""
    for entry in entries:
        if entry.id == entry_id:
            return entry.valeur
    return None


def add_entry(categorie: str, valeur: str) -> str:
    """Returns: new entry id"""
    _check_category(categorie)
    valeur = (valeur or '').strip()
    if not valeur:
        raise ValueError("A reference value cannot be empty")

    entry_id = table('parametrages').insert({'categorie': categorie, 'valeur': valeur})[0]
    logger.info(f"Added {categorie} '{valeur}' (ID {entry_id})")
    bus.emit(EVENT_PARAMETRAGE_CHANGED, {'entry_id': entry_id, 'categorie': categorie})
    return entry_id


def rename_entry(entry_id: str, valeur: str) -> bool:
    valeur = (valeur or '').strip()
    if not valeur:
        raise ValueError("A reference value cannot be empty")

    if table('parametrages').update({'valeur': valeur}, {'id': entry_id}) > 0:
        logger.info(f"Renamed reference entry {entry_id} to '{valeur}'")
        bus.emit(EVENT_PARAMETRAGE_CHANGED, {'entry_id': entry_id})
        return True
    return False


def delete_entry(entry_id: str) -> bool:
    """
    Delete a reference entry. The database refuses it while an establishment
    still points to the entry; that error propagates to the caller.
    """
    if table('parametrages').delete({'id': entry_id}) > 0:
        logger.info(f"Deleted reference entry {entry_id}")
        bus.emit(EVENT_PARAMETRAGE_CHANGED, {'entry_id': entry_id})
        return True
    return False
