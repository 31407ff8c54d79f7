"""
Reporting - portfolio counters and action series for the dashboard and the
reporting view. Produces data only; rendering is left to the caller.

Weeks start on Monday. Offsets on the series go back in time (offset 1 is the
previous block of 4 weeks / 12 months); offsets on the dashboard period go
forward or back from the current week or month.
"""

import logging
from collections import Counter
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from prospectcrm.config import config
from prospectcrm.db.connection import get_db_cursor
from prospectcrm.db.store import table
from prospectcrm.models import ACTION_TYPES, ESTABLISHMENT_STATUSES, PortfolioStats, SeriesPoint

logger = logging.getLogger(__name__)

UNDEFINED_LABEL = 'Non défini'

WEEK = 'week'
MONTH = 'month'


# =============================================================================
# DATE HELPERS
# =============================================================================

def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


def add_months(day: date, months: int) -> date:
    """First day of the month `months` away from day's month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_end(day: date) -> date:
    return add_months(day, 1) - timedelta(days=1)


def period_range(today: date, mode: str = WEEK, offset: int = 0) -> Tuple[date, date]:
    """(start, end) of the week or calendar month `offset` periods from today's."""
    if mode == WEEK:
        start = week_start(today) + timedelta(weeks=offset)
        return start, start + timedelta(days=6)
    if mode == MONTH:
        start = add_months(today, offset)
        return start, month_end(start)
    raise ValueError(f"Invalid period mode: {mode!r}")


def period_label(today: date, mode: str = WEEK, offset: int = 0) -> str:
    start, end = period_range(today, mode, offset)
    if mode == WEEK:
        if offset == 0:
            return 'Semaine en cours'
        if offset == -1:
            return 'Semaine dernière'
        if offset == 1:
            return 'Semaine prochaine'
        return f"Semaine du {start:%d/%m} au {end:%d/%m}"
    if offset == 0:
        return 'Mois en cours'
    return f"{start:%m/%Y}"


def week_buckets(items: Iterable, today: date) -> Dict[int, list]:
    """
    Split dated items (anything with a `date_action`) into last week (-1),
    this week (0) and next week (1). Items outside are put in the nearest bucket.
    """
    this_monday = week_start(today)
    buckets = {-1: [], 0: [], 1: []}
    for item in items:
        diff = (item.date_action - this_monday).days
        key = -1 if diff < 0 else 1 if diff > 6 else 0
        buckets[key].append(item)
    return buckets


# =============================================================================
# PORTFOLIO
# =============================================================================

def portfolio_stats(today: Optional[date] = None, user_id: Optional[str] = None) -> PortfolioStats:
    """
    Counters for the reporting header.
    A prospect is inactive when it has no action dated within INACTIVE_PROSPECT_DAYS.
    """
    today = today or date.today()
    since = today - timedelta(days=config.INACTIVE_PROSPECT_DAYS)

    filters = {'commercial_id': user_id} if user_id else None
    establishments = table('establishments').select(filters, columns=['id', 'statut'])

    with get_db_cursor() as cur:
        cur.execute(
            "SELECT DISTINCT etablissement_id FROM actions WHERE date_action >= %s",
            (since,),
        )
        recently_active = {row['etablissement_id'] for row in cur.fetchall()}

    by_status = {statut: 0 for statut in ESTABLISHMENT_STATUSES}
    inactive = 0
    for row in establishments:
        by_status[row['statut']] = by_status.get(row['statut'], 0) + 1
        if row['statut'] == 'prospect' and row['id'] not in recently_active:
            inactive += 1

    stats = PortfolioStats(
        total_prospects=by_status['prospect'],
        inactive_prospects=inactive,
        anciens_clients=by_status['ancien_client'],
        # No tracking exists yet for clients won back
        triggered_clients=0,
        by_status=by_status,
    )
    logger.debug(f"portfolio_stats: {stats}")
    return stats


# =============================================================================
# ACTION SERIES
# =============================================================================

def _action_dates(start: date, end: date, user_id: Optional[str]) -> List[dict]:
    sql = "SELECT type, date_action FROM actions WHERE date_action >= %(start)s AND date_action <= %(end)s"
    params = {'start': start, 'end': end}
    if user_id:
        sql += " AND user_id = %(user_id)s"
        params['user_id'] = user_id
    with get_db_cursor() as cur:
        cur.execute(sql, params)
        return cur.fetchall()


def weekly_series(today: Optional[date] = None, offset: int = 0, user_id: Optional[str] = None) -> List[SeriesPoint]:
    """Four consecutive weeks, oldest first, ending 4*offset weeks before this one."""
    today = today or date.today()
    newest = week_start(today) - timedelta(weeks=offset * 4)
    mondays = [newest - timedelta(weeks=i) for i in range(3, -1, -1)]

    points = {monday: SeriesPoint(name=f"S{monday.isocalendar()[1]}") for monday in mondays}
    for row in _action_dates(mondays[0], mondays[-1] + timedelta(days=6), user_id):
        point = points.get(week_start(row['date_action']))
        if point is not None and row['type'] in ACTION_TYPES:
            setattr(point, row['type'], point.count(row['type']) + 1)

    return [points[monday] for monday in mondays]


def monthly_series(today: Optional[date] = None, offset: int = 0, user_id: Optional[str] = None) -> List[SeriesPoint]:
    """Twelve consecutive months, oldest first, ending 12*offset months before this one."""
    today = today or date.today()
    last = add_months(today, -offset * 12)
    firsts = [add_months(last, -i) for i in range(11, -1, -1)]

    points = {(d.year, d.month): SeriesPoint(name=f"{d:%m/%y}") for d in firsts}
    for row in _action_dates(firsts[0], month_end(last), user_id):
        d = row['date_action']
        point = points.get((d.year, d.month))
        if point is not None and row['type'] in ACTION_TYPES:
            setattr(point, row['type'], point.count(row['type']) + 1)

    return [points[(d.year, d.month)] for d in firsts]


# =============================================================================
# PORTFOLIO BREAKDOWNS
# =============================================================================

def by_sector() -> List[Tuple[str, int]]:
    """(sector label, count) for every establishment, missing sectors grouped as 'Non défini'."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT s.valeur AS secteur
            FROM establishments e
            LEFT JOIN parametrages s ON s.id = e.secteur_id
        """)
        rows = cur.fetchall()
    counts = Counter(row['secteur'] or UNDEFINED_LABEL for row in rows)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def by_city(limit: int = 6) -> List[Tuple[str, int]]:
    """The `limit` cities with the most establishments."""
    rows = table('establishments').select(columns=['ville'])
    counts = Counter(row['ville'] or UNDEFINED_LABEL for row in rows)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:limit]
