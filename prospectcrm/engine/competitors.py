"""
Competitor intelligence history.
Entries are appended and deleted, never edited in place.
"""

import logging
import math
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional

from prospectcrm.db.store import table
from prospectcrm.models import CompetitorEntry
from prospectcrm.bus.events import bus, EVENT_COMPETITOR_RECORDED, EVENT_COMPETITOR_DELETED

logger = logging.getLogger(__name__)

# Used when a coefficient is recorded for an establishment with no competitor set
UNKNOWN_COMPETITOR = 'Non renseigné'


def parse_coefficient(value: Any) -> Optional[float]:
    """
    Parse a user-typed decimal. Comma or dot separator; empty, unparseable or
    non-finite input gives None. Never raises.

        parse_coefficient("1,5") -> 1.5
        parse_coefficient("")    -> None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        text = str(value).strip().replace(' ', '').replace(',', '.')
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            logger.debug(f"parse_coefficient: rejected {value!r}")
            return None
    return number if math.isfinite(number) else None


def _entry_from_row(row: dict) -> CompetitorEntry:
    entry = CompetitorEntry(**row)
    # NUMERIC columns come back as Decimal
    if entry.coefficient is not None:
        entry.coefficient = float(entry.coefficient)
    if entry.taux_horaire is not None:
        entry.taux_horaire = float(entry.taux_horaire)
    return entry


def list_history(etablissement_id: str) -> List[CompetitorEntry]:
    """Competitor history of one establishment, most recent information first."""
    rows = table('competitors_history').select(
        {'etablissement_id': etablissement_id}, order_by='date_info', descending=True,
    )
    return [_entry_from_row(r) for r in rows]


def add_entry(entry: CompetitorEntry) -> str:
    """
    Append a competitor history entry.
    Returns: entry id
    """
    if not entry.etablissement_id:
        raise ValueError("A competitor entry needs an establishment")
    name = (entry.concurrent_nom or '').strip()
    if not name:
        raise ValueError("Competitor name is required")

    row = {
        'etablissement_id': entry.etablissement_id,
        'concurrent_nom': name,
        'coefficient': parse_coefficient(entry.coefficient),
        'taux_horaire': parse_coefficient(entry.taux_horaire),
        'date_info': entry.date_info or date.today(),
        'commentaire': (entry.commentaire or '').strip() or None,
        'created_by': entry.created_by,
    }
    entry_id = table('competitors_history').insert(row)[0]
    logger.info(f"Recorded competitor '{name}' for establishment {entry.etablissement_id}")

    bus.emit(EVENT_COMPETITOR_RECORDED, {
        'entry_id': entry_id,
        'etablissement_id': entry.etablissement_id,
    })
    return entry_id


def delete_entry(entry_id: str) -> bool:
    """Delete one history entry. Returns: True if a row was removed."""
    deleted = table('competitors_history').delete({'id': entry_id}) > 0
    if deleted:
        bus.emit(EVENT_COMPETITOR_DELETED, {'entry_id': entry_id})
    return deleted
