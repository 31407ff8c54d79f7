"""
Actions - dated sales activity (phoning, mailing, visite, rdv).

Single-row writes go through the table store; the timeline, agenda and
reminder reads join the author or the establishment explicitly.
Edits and deletes are scoped by both the action id and its establishment id.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from prospectcrm.db.connection import get_db_cursor
from prospectcrm.db.store import table, _validate_columns
from prospectcrm.models import Action, ActionEntry, AgendaItem, ACTION_TYPES, ACTION_STATUSES
from prospectcrm.bus.events import bus, EVENT_ACTION_CREATED, EVENT_ACTION_UPDATED, EVENT_ACTION_DELETED

logger = logging.getLogger(__name__)

# Fields the timeline editor may change in place
EDITABLE_COLUMNS = {'type', 'date_action', 'statut_action', 'commentaire', 'relance_date'}

_AGENDA_SELECT = """
    SELECT a.id, a.type, a.date_action, a.statut_action, a.etablissement_id,
           e.nom AS etablissement_nom, a.commentaire, a.relance_date, a.user_id
    FROM actions a
    LEFT JOIN establishments e ON e.id = a.etablissement_id
"""


def _check_values(values: Dict[str, Any]) -> None:
    if 'type' in values and values['type'] not in ACTION_TYPES:
        raise ValueError(f"Invalid action type: {values['type']!r}")
    if 'statut_action' in values and values['statut_action'] not in ACTION_STATUSES:
        raise ValueError(f"Invalid action status: {values['statut_action']!r}")
    if 'date_action' in values and values['date_action'] is None:
        raise ValueError("Action date is required")


# =============================================================================
# WRITES
# =============================================================================

def create_action(action: Action) -> str:
    """
    Insert an action.
    Returns: action id
    """
    if not action.etablissement_id:
        raise ValueError("An action needs an establishment")
    if not action.user_id:
        raise ValueError("An action needs a user")

    row = {
        'etablissement_id': action.etablissement_id,
        'user_id': action.user_id,
        'type': action.type,
        'date_action': action.date_action or date.today(),
        'statut_action': action.statut_action or 'a_venir',
        'commentaire': (action.commentaire or '').strip() or None,
        'relance_date': action.relance_date or None,
    }
    _check_values(row)

    action_id = table('actions').insert(row)[0]
    logger.info(f"Created {row['type']} action ID {action_id} for establishment {action.etablissement_id}")

    bus.emit(EVENT_ACTION_CREATED, {
        'action_id': action_id,
        'etablissement_id': action.etablissement_id,
        'type': row['type'],
    })
    return action_id


def quick_action(etablissement_id: str, action_type: str, user_id: str) -> str:
    """
    One-click shortcut: an upcoming action of the given type, dated today,
    with no comment.
    Returns: action id
    """
    return create_action(Action(
        etablissement_id=etablissement_id,
        user_id=user_id,
        type=action_type,
        date_action=date.today(),
        statut_action='a_venir',
        commentaire=None,
    ))


def update_action(action_id: str, etablissement_id: str, updates: Dict[str, Any]) -> bool:
    """
    Update an action in place, scoped by both its id and its establishment.
    Returns: True if updated, False if not found
    """
    if not updates:
        return False
    _validate_columns(updates.keys(), EDITABLE_COLUMNS, 'action')
    _check_values(updates)

    clean = dict(updates)
    if 'commentaire' in clean:
        clean['commentaire'] = (clean['commentaire'] or '').strip() or None
    if 'relance_date' in clean and not clean['relance_date']:
        clean['relance_date'] = None

    count = table('actions').update(clean, {'id': action_id, 'etablissement_id': etablissement_id})
    if count > 0:
        logger.info(f"Updated action ID {action_id}: {sorted(clean.keys())}")
        bus.emit(EVENT_ACTION_UPDATED, {
            'action_id': action_id, 'etablissement_id': etablissement_id, 'updates': clean,
        })
        return True
    return False


def delete_action(action_id: str, etablissement_id: str) -> bool:
    """Hard-delete an action, scoped by both its id and its establishment."""
    count = table('actions').delete({'id': action_id, 'etablissement_id': etablissement_id})
    if count > 0:
        logger.info(f"Deleted action ID {action_id}")
        bus.emit(EVENT_ACTION_DELETED, {'action_id': action_id, 'etablissement_id': etablissement_id})
        return True
    return False


# =============================================================================
# READS
# =============================================================================

def list_actions(etablissement_id: str) -> List[ActionEntry]:
    """Timeline of one establishment, most recent first, with the author's name."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT a.*, p.prenom AS user_prenom, p.nom AS user_nom
            FROM actions a
            LEFT JOIN profiles p ON p.id = a.user_id
            WHERE a.etablissement_id = %s
            ORDER BY a.date_action DESC, a.created_at DESC
        """, (etablissement_id,))
        rows = cur.fetchall()

    entries = []
    for row in rows:
        row = dict(row)
        prenom = row.pop('user_prenom')
        nom = row.pop('user_nom')
        entries.append(ActionEntry(action=Action(**row), user_prenom=prenom, user_nom=nom))

    logger.debug(f"list_actions: etablissement_id={etablissement_id} → {len(entries)} actions")
    return entries


def agenda(
    start: date,
    end: date,
    user_id: Optional[str] = None,
    statut: Optional[str] = None,
    types: Optional[Iterable[str]] = None,
) -> List[AgendaItem]:
    """
    Actions dated between start and end (inclusive), oldest first.
    user_id=None is the global view.
    """
    conditions = ["a.date_action >= %(start)s", "a.date_action <= %(end)s"]
    params: Dict[str, Any] = {'start': start, 'end': end}

    if user_id:
        conditions.append("a.user_id = %(user_id)s")
        params['user_id'] = user_id
    if statut:
        _check_values({'statut_action': statut})
        conditions.append("a.statut_action = %(statut)s")
        params['statut'] = statut
    if types is not None:
        types = list(types)
        for t in types:
            _check_values({'type': t})
        if not types:
            return []
        conditions.append("a.type = ANY(%(types)s)")
        params['types'] = types

    with get_db_cursor() as cur:
        cur.execute(f"""
            {_AGENDA_SELECT}
            WHERE {' AND '.join(conditions)}
            ORDER BY a.date_action ASC
        """, params)
        rows = cur.fetchall()

    logger.debug(f"agenda: {start} → {end} user={user_id}: {len(rows)} actions")
    return [AgendaItem(**row) for row in rows]


def reminders(
    user_id: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[AgendaItem]:
    """Actions waiting for a follow-up, ordered by follow-up date."""
    conditions = ["a.statut_action = 'a_relancer'"]
    params: Dict[str, Any] = {}

    if user_id:
        conditions.append("a.user_id = %(user_id)s")
        params['user_id'] = user_id
    if start:
        conditions.append("a.relance_date >= %(start)s")
        params['start'] = start
    if end:
        conditions.append("a.relance_date <= %(end)s")
        params['end'] = end

    with get_db_cursor() as cur:
        cur.execute(f"""
            {_AGENDA_SELECT}
            WHERE {' AND '.join(conditions)}
            ORDER BY a.relance_date ASC NULLS LAST
        """, params)
        rows = cur.fetchall()

    logger.debug(f"reminders: user={user_id}: {len(rows)} follow-ups")
    return [AgendaItem(**row) for row in rows]
