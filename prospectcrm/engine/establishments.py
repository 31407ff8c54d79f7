"""
Establishments - prospects, clients and former clients.

Establishments are never hard-deleted: archiving clears the `actif` flag (and
turns a client into a former client), reactivating sets it back.
"""

import logging
from typing import Any, Dict, List, Optional

from prospectcrm.db.connection import get_db_cursor
from prospectcrm.db.store import table, _validate_columns
from prospectcrm.engine import actions
from prospectcrm.models import (
    Establishment, EstablishmentRow, EstablishmentDetail, Action,
    ESTABLISHMENT_STATUSES,
)
from prospectcrm.bus.events import (
    bus, EVENT_ESTABLISHMENT_CREATED, EVENT_ESTABLISHMENT_UPDATED,
    EVENT_ESTABLISHMENT_ARCHIVED, EVENT_ESTABLISHMENT_REACTIVATED,
)

logger = logging.getLogger(__name__)

# Columns the editor may change; identity and timestamps are not editable
EDITABLE_COLUMNS = {
    'nom', 'statut', 'adresse', 'code_postal', 'ville', 'commentaire',
    'info_concurrent', 'groupe_id', 'secteur_id', 'activite_id', 'concurrent_id',
    'commercial_id',
}

# Reference columns: an empty selection is stored as NULL
_REFERENCE_COLUMNS = ('groupe_id', 'secteur_id', 'activite_id', 'concurrent_id', 'commercial_id')

ARCHIVED = 'archived'
ALL = 'all'


def _check_status(statut: str) -> None:
    if statut not in ESTABLISHMENT_STATUSES:
        raise ValueError(f"Invalid establishment status: {statut!r}")


def normalise_fields(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check and clean a field patch before it reaches the draft or the database.
    Blank references become NULL, the name is trimmed.
    Raises ValueError on a blank name or an unknown status.
    """
    clean = dict(updates)
    for key in _REFERENCE_COLUMNS:
        if key in clean and not clean[key]:
            clean[key] = None
    if 'nom' in clean:
        clean['nom'] = (clean['nom'] or '').strip()
        if not clean['nom']:
            raise ValueError("Establishment name is required")
    if 'statut' in clean:
        _check_status(clean['statut'])
    return clean


# =============================================================================
# READS
# =============================================================================

def list_establishments(
    statut: str = ALL,
    search: Optional[str] = None,
    groupe: Optional[str] = None,
    secteur: Optional[str] = None,
    activite: Optional[str] = None,
    ville: Optional[str] = None,
) -> List[EstablishmentRow]:
    """
    Establishments list, ordered by name.

    statut: 'all' (active rows), 'archived' (inactive rows) or one status
    search: case-insensitive match on name, city, group, sector or activity
    groupe/secteur/activite/ville: exact label filters
    """
    conditions = []
    params: Dict[str, Any] = {}

    if statut == ARCHIVED:
        conditions.append("e.actif = FALSE")
    else:
        conditions.append("e.actif = TRUE")
        if statut != ALL:
            _check_status(statut)
            conditions.append("e.statut = %(statut)s")
            params['statut'] = statut

    if search:
        conditions.append("""(
            e.nom ILIKE %(search)s OR e.ville ILIKE %(search)s
            OR g.valeur ILIKE %(search)s OR s.valeur ILIKE %(search)s
            OR a.valeur ILIKE %(search)s
        )""")
        params['search'] = f"%{search.strip()}%"

    for label, alias, value in (('groupe', 'g.valeur', groupe),
                                ('secteur', 's.valeur', secteur),
                                ('activite', 'a.valeur', activite),
                                ('ville', 'e.ville', ville)):
        if value:
            conditions.append(f"{alias} = %({label})s")
            params[label] = value

    where_clause = " AND ".join(conditions)

    with get_db_cursor() as cur:
        cur.execute(f"""
            SELECT e.id, e.nom, e.statut, e.ville, e.code_postal, e.actif,
                   g.valeur AS groupe, s.valeur AS secteur, a.valeur AS activite
            FROM establishments e
            LEFT JOIN parametrages g ON g.id = e.groupe_id
            LEFT JOIN parametrages s ON s.id = e.secteur_id
            LEFT JOIN parametrages a ON a.id = e.activite_id
            WHERE {where_clause}
            ORDER BY e.nom ASC
        """, params)
        rows = cur.fetchall()

    logger.debug(f"list_establishments: {len(rows)} rows (statut={statut}, search={search})")
    return [EstablishmentRow(**row) for row in rows]


def facet_values(rows: List[EstablishmentRow]) -> Dict[str, List[str]]:
    """Sorted distinct groups, sectors, activities and cities among active rows."""
    facets = {'groupes': set(), 'secteurs': set(), 'activites': set(), 'villes': set()}
    for row in rows:
        if not row.actif:
            continue
        if row.groupe:
            facets['groupes'].add(row.groupe)
        if row.secteur:
            facets['secteurs'].add(row.secteur)
        if row.activite:
            facets['activites'].add(row.activite)
        if row.ville:
            facets['villes'].add(row.ville)
    return {key: sorted(values) for key, values in facets.items()}


def get_establishment(establishment_id: str) -> Optional[EstablishmentDetail]:
    """One establishment with the labels of its group, sector, activity and competitor."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT e.*,
                   g.valeur AS groupe_label, s.valeur AS secteur_label,
                   a.valeur AS activite_label, c.valeur AS concurrent_label
            FROM establishments e
            LEFT JOIN parametrages g ON g.id = e.groupe_id
            LEFT JOIN parametrages s ON s.id = e.secteur_id
            LEFT JOIN parametrages a ON a.id = e.activite_id
            LEFT JOIN parametrages c ON c.id = e.concurrent_id
            WHERE e.id = %s
        """, (establishment_id,))
        row = cur.fetchone()

    if not row:
        logger.debug(f"get_establishment: id={establishment_id} not found")
        return None

    row = dict(row)
    labels = {key: row.pop(f"{key}_label") for key in ('groupe', 'secteur', 'activite', 'concurrent')}
    return EstablishmentDetail(establishment=Establishment(**row), **labels)


def is_duplicate(nom: str, ville: Optional[str]) -> bool:
    """True if an active establishment has the same name and city (case-insensitive)."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT COUNT(*) AS n FROM establishments
            WHERE actif = TRUE
              AND LOWER(nom) = LOWER(%s)
              AND LOWER(COALESCE(ville, '')) = LOWER(%s)
        """, ((nom or '').strip(), (ville or '').strip()))
        return cur.fetchone()['n'] > 0


def status_counts() -> Dict[str, int]:
    """Number of establishments per status."""
    rows = table('establishments').select(columns=['statut'])
    counts = {statut: 0 for statut in ESTABLISHMENT_STATUSES}
    for row in rows:
        if row['statut'] in counts:
            counts[row['statut']] += 1
    return counts


# =============================================================================
# WRITES
# =============================================================================

def create_establishment(est: Establishment, owner_id: Optional[str] = None) -> str:
    """
    Create an establishment owned by owner_id (defaults to est.commercial_id).
    Returns: establishment id
    """
    fields = normalise_fields({
        'nom': est.nom,
        'statut': est.statut or 'prospect',
        'adresse': est.adresse or None,
        'code_postal': est.code_postal or None,
        'ville': (est.ville or '').strip() or None,
        'commentaire': est.commentaire or None,
        'info_concurrent': est.info_concurrent or None,
        'groupe_id': est.groupe_id,
        'secteur_id': est.secteur_id,
        'activite_id': est.activite_id,
        'concurrent_id': est.concurrent_id,
        'commercial_id': owner_id or est.commercial_id,
    })

    if is_duplicate(fields['nom'], fields['ville']):
        raise ValueError(
            f"An active establishment named '{fields['nom']}' already exists in {fields['ville'] or 'that city'}"
        )

    fields['actif'] = True
    establishment_id = table('establishments').insert(fields)[0]
    logger.info(f"Created establishment ID {establishment_id}: {fields['nom']}")

    bus.emit(EVENT_ESTABLISHMENT_CREATED, {'establishment_id': establishment_id, 'nom': fields['nom']})
    return establishment_id


def quick_create(
    nom: str,
    owner_id: Optional[str],
    statut: str = 'prospect',
    ville: Optional[str] = None,
    code_postal: Optional[str] = None,
    groupe_id: Optional[str] = None,
    secteur_id: Optional[str] = None,
    activite_id: Optional[str] = None,
    first_action: Optional[Action] = None,
) -> str:
    """
    Create an establishment from the short form, optionally with a first action.
    A failing first action is logged and does not undo the creation.
    Returns: establishment id
    """
    establishment_id = create_establishment(Establishment(
        nom=nom, statut=statut, ville=ville, code_postal=code_postal,
        groupe_id=groupe_id, secteur_id=secteur_id, activite_id=activite_id,
    ), owner_id=owner_id)

    if first_action is not None and owner_id:
        first_action.etablissement_id = establishment_id
        first_action.user_id = owner_id
        try:
            actions.create_action(first_action)
        except Exception as e:
            logger.warning(f"quick_create: first action for {establishment_id} failed: {e}")

    return establishment_id


def update_establishment(establishment_id: str, updates: Dict[str, Any]) -> bool:
    """
    Update establishment fields.
    Returns: True if updated, False if not found or nothing to update
    """
    if not updates:
        return False

    _validate_columns(updates.keys(), EDITABLE_COLUMNS, 'establishment')
    clean = normalise_fields(updates)

    if table('establishments').update(clean, {'id': establishment_id}) > 0:
        logger.info(f"Updated establishment ID {establishment_id}: {sorted(clean.keys())}")
        bus.emit(EVENT_ESTABLISHMENT_UPDATED, {'establishment_id': establishment_id, 'updates': clean})
        return True
    return False


def archive_establishment(establishment_id: str) -> bool:
    """Deactivate an establishment; a client becomes a former client."""
    row = table('establishments').select_one({'id': establishment_id}, columns=['statut', 'actif'])
    if not row:
        return False

    values = {'actif': False}
    if row['statut'] == 'client':
        values['statut'] = 'ancien_client'

    if table('establishments').update(values, {'id': establishment_id}) > 0:
        logger.info(f"Archived establishment ID {establishment_id}")
        bus.emit(EVENT_ESTABLISHMENT_ARCHIVED, {'establishment_id': establishment_id})
        return True
    return False


def reactivate_establishment(establishment_id: str) -> bool:
    """Set an archived establishment back to active. Active rows are left alone."""
    if table('establishments').update({'actif': True}, {'id': establishment_id, 'actif': False}) > 0:
        logger.info(f"Reactivated establishment ID {establishment_id}")
        bus.emit(EVENT_ESTABLISHMENT_REACTIVATED, {'establishment_id': establishment_id})
        return True
    return False