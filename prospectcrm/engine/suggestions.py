"""
Suggestions - free-form leads and ideas collected by the sales team.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from prospectcrm.db.store import table
from prospectcrm.models import Suggestion, SUGGESTION_TYPES, SUGGESTION_STATUSES, SUGGESTION_PRIORITIES
from prospectcrm.bus.events import bus, EVENT_SUGGESTION_CREATED, EVENT_SUGGESTION_UPDATED, EVENT_SUGGESTION_DELETED

logger = logging.getLogger(__name__)


def compose_description(description: Optional[str], ville: Optional[str]) -> Optional[str]:
    """
    The city has no column of its own: it is kept as a "[Ville] " prefix.
    Returns None when both parts are blank.
    """
    prefix = f"[{ville.strip()}] " if ville and ville.strip() else ''
    text = (prefix + (description or '')).strip()
    return text or None


def create_suggestion(
    titre: str,
    type: str = 'suggestion',
    priorite: str = 'normale',
    description: Optional[str] = None,
    ville: Optional[str] = None,
    created_by: Optional[str] = None,
) -> str:
    """Returns: suggestion id"""
    titre = (titre or '').strip()
    if not titre:
        raise ValueError("Suggestion title is required")
    if type not in SUGGESTION_TYPES:
        raise ValueError(f"Invalid suggestion type: {type!r}")
    if priorite not in SUGGESTION_PRIORITIES:
        raise ValueError(f"Invalid priority: {priorite!r}")

    suggestion_id = table('suggestions').insert({
        'titre': titre,
        'description': compose_description(description, ville),
        'type': type,
        'priorite': priorite,
        'created_by': created_by,
    })[0]
    logger.info(f"Created suggestion ID {suggestion_id}: {titre}")

    bus.emit(EVENT_SUGGESTION_CREATED, {'suggestion_id': suggestion_id})
    return suggestion_id


def list_suggestions(created_by: Optional[str] = None, limit: int = 100) -> List[Suggestion]:
    """Newest first. created_by=None is the global view."""
    filters = {'created_by': created_by} if created_by else None
    rows = table('suggestions').select(filters, order_by='created_at', descending=True, limit=limit)
    return [Suggestion(**row) for row in rows]


def active_count(items: Iterable[Suggestion]) -> int:
    """Suggestions not yet handled."""
    return sum(1 for s in items if s.statut != 'traite')


def _update(suggestion_id: str, values: dict) -> bool:
    if table('suggestions').update(values, {'id': suggestion_id}) > 0:
        bus.emit(EVENT_SUGGESTION_UPDATED, {'suggestion_id': suggestion_id, 'updates': values})
        return True
    return False


def mark_done(suggestion_id: str, user_id: Optional[str]) -> bool:
    """Mark as handled, recording when and by whom."""
    done = _update(suggestion_id, {
        'statut': 'traite',
        'traite_at': datetime.now(timezone.utc),
        'traite_by': user_id,
    })
    if done:
        logger.info(f"Suggestion ID {suggestion_id} marked as done")
    return done


def set_status(suggestion_id: str, statut: str) -> bool:
    if statut not in SUGGESTION_STATUSES:
        raise ValueError(f"Invalid suggestion status: {statut!r}")
    return _update(suggestion_id, {'statut': statut})


def link_establishment(suggestion_id: str, etablissement_id: str) -> bool:
    """Record the prospect a suggestion was converted into."""
    return _update(suggestion_id, {'etablissement_id': etablissement_id})


def delete_suggestion(suggestion_id: str) -> bool:
    if table('suggestions').delete({'id': suggestion_id}) > 0:
        logger.info(f"Deleted suggestion ID {suggestion_id}")
        bus.emit(EVENT_SUGGESTION_DELETED, {'suggestion_id': suggestion_id})
        return True
    return False
