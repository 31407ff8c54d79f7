"""
Unit tests for prospectcrm/engine/reporting.py.

2026-10-19 is a Monday (ISO week 43); most cases are pinned to that week.
"""

from contextlib import contextmanager
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from prospectcrm.engine.reporting import (
    week_start, add_months, month_end, period_range, period_label, week_buckets,
    portfolio_stats, weekly_series, monthly_series, by_sector, by_city,
    UNDEFINED_LABEL, WEEK, MONTH,
)
from prospectcrm.models import AgendaItem

WEDNESDAY = date(2026, 10, 21)


def make_cursor(fetchall=None):
    cur = MagicMock()
    cur.fetchall.return_value = fetchall if fetchall is not None else []
    return cur


def cursor_patch(cur):
    @contextmanager
    def _mock_ctx():
        yield cur

    return patch('prospectcrm.engine.reporting.get_db_cursor', _mock_ctx)


def store_patch(store):
    return patch('prospectcrm.engine.reporting.table', return_value=store)


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------

def test_week_start_is_monday():
    assert week_start(WEDNESDAY) == date(2026, 10, 19)
    assert week_start(date(2026, 10, 25)) == date(2026, 10, 19)
    assert week_start(date(2026, 10, 19)) == date(2026, 10, 19)


def test_add_months_crosses_years():
    assert add_months(date(2026, 1, 31), -1) == date(2025, 12, 1)
    assert add_months(date(2026, 11, 15), 2) == date(2027, 1, 1)


def test_month_end():
    assert month_end(date(2028, 2, 10)) == date(2028, 2, 29)
    assert month_end(date(2026, 12, 1)) == date(2026, 12, 31)


def test_period_range_week_and_month():
    assert period_range(WEDNESDAY, WEEK, 0) == (date(2026, 10, 19), date(2026, 10, 25))
    assert period_range(WEDNESDAY, WEEK, -1) == (date(2026, 10, 12), date(2026, 10, 18))
    assert period_range(WEDNESDAY, MONTH, 1) == (date(2026, 11, 1), date(2026, 11, 30))


def test_period_range_invalid_mode():
    with pytest.raises(ValueError):
        period_range(WEDNESDAY, 'year')


@pytest.mark.parametrize('mode,offset,expected', [
    (WEEK, 0, 'Semaine en cours'),
    (WEEK, -1, 'Semaine dernière'),
    (WEEK, 1, 'Semaine prochaine'),
    (WEEK, 2, 'Semaine du 02/11 au 08/11'),
    (MONTH, 0, 'Mois en cours'),
    (MONTH, -2, '08/2026'),
])
def test_period_label(mode, offset, expected):
    assert period_label(WEDNESDAY, mode, offset) == expected


def test_week_buckets():
    items = [
        AgendaItem(id='a', type='rdv', date_action=date(2026, 10, 14), statut_action='effectue'),
        AgendaItem(id='b', type='rdv', date_action=date(2026, 10, 25), statut_action='a_venir'),
        AgendaItem(id='c', type='rdv', date_action=date(2026, 10, 26), statut_action='a_venir'),
    ]
    buckets = week_buckets(items, WEDNESDAY)
    assert [i.id for i in buckets[-1]] == ['a']
    assert [i.id for i in buckets[0]] == ['b']
    assert [i.id for i in buckets[1]] == ['c']


# ---------------------------------------------------------------------------
# Portfolio
# ---------------------------------------------------------------------------

def test_portfolio_stats_counts_inactive_prospects():
    store = MagicMock()
    store.select.return_value = [
        {'id': 'e1', 'statut': 'prospect'},
        {'id': 'e2', 'statut': 'prospect'},
        {'id': 'e3', 'statut': 'client'},
        {'id': 'e4', 'statut': 'ancien_client'},
    ]
    cur = make_cursor(fetchall=[{'etablissement_id': 'e1'}])
    with store_patch(store), cursor_patch(cur):
        stats = portfolio_stats(WEDNESDAY)

    assert stats.total_prospects == 2
    assert stats.inactive_prospects == 1
    assert stats.anciens_clients == 1
    assert stats.triggered_clients == 0
    assert stats.by_status == {'prospect': 2, 'client': 1, 'ancien_client': 1}
    assert store.select.call_args[0][0] is None


def test_portfolio_stats_per_owner():
    store = MagicMock()
    store.select.return_value = []
    with store_patch(store), cursor_patch(make_cursor()):
        portfolio_stats(WEDNESDAY, user_id='u1')
    assert store.select.call_args[0][0] == {'commercial_id': 'u1'}


# ---------------------------------------------------------------------------
# Series
# ---------------------------------------------------------------------------

def test_weekly_series_four_weeks_oldest_first():
    cur = make_cursor(fetchall=[
        {'type': 'phoning', 'date_action': date(2026, 10, 20)},
        {'type': 'phoning', 'date_action': date(2026, 10, 22)},
        {'type': 'rdv', 'date_action': date(2026, 9, 28)},
    ])
    with cursor_patch(cur):
        series = weekly_series(WEDNESDAY)

    assert [p.name for p in series] == ['S40', 'S41', 'S42', 'S43']
    assert series[-1].phoning == 2
    assert series[0].rdv == 1
    params = cur.execute.call_args[0][1]
    assert params['start'] == date(2026, 9, 28)
    assert params['end'] == date(2026, 10, 25)
    assert 'user_id' not in params


def test_weekly_series_offset_goes_back_four_weeks():
    cur = make_cursor()
    with cursor_patch(cur):
        series = weekly_series(WEDNESDAY, offset=1, user_id='u1')
    assert [p.name for p in series] == ['S36', 'S37', 'S38', 'S39']
    assert cur.execute.call_args[0][1]['user_id'] == 'u1'


def test_monthly_series_twelve_months():
    cur = make_cursor(fetchall=[{'type': 'visite', 'date_action': date(2025, 11, 3)}])
    with cursor_patch(cur):
        series = monthly_series(WEDNESDAY)
    assert len(series) == 12
    assert series[0].name == '11/25'
    assert series[-1].name == '10/26'
    assert series[0].visite == 1
    assert cur.execute.call_args[0][1]['end'] == date(2026, 10, 31)


def test_by_sector_groups_missing_as_undefined():
    cur = make_cursor(fetchall=[
        {'secteur': 'Santé'}, {'secteur': None}, {'secteur': 'Hôtellerie'}, {'secteur': 'Santé'},
    ])
    with cursor_patch(cur):
        result = by_sector()
    assert result == [('Santé', 2), ('Hôtellerie', 1), (UNDEFINED_LABEL, 1)]


def test_by_city_top_n():
    store = MagicMock()
    store.select.return_value = [{'ville': 'Lyon'}, {'ville': 'Lyon'}, {'ville': 'Annecy'}, {'ville': 'Paris'}]
    with store_patch(store):
        assert by_city(limit=2) == [('Lyon', 2), ('Annecy', 1)]
