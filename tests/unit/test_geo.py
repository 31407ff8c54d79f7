"""
Unit tests for prospectcrm/engine/geo.py. requests.get is patched; no network.
"""

from unittest.mock import MagicMock, patch

import requests

from prospectcrm.engine.geo import search_city_suggestions, geocode_address


def make_response(payload=None, status_error=None, json_error=None):
    response = MagicMock()
    if status_error:
        response.raise_for_status.side_effect = status_error
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def get_patch(**kwargs):
    return patch('prospectcrm.engine.geo.requests.get', **kwargs)


# ---------------------------------------------------------------------------
# search_city_suggestions
# ---------------------------------------------------------------------------

def test_city_search_by_name():
    payload = [
        {'nom': 'Lyon', 'codesPostaux': ['69001', '69002']},
        {'nom': 'Lyons-la-Forêt', 'codesPostaux': ['27480']},
    ]
    with get_patch(return_value=make_response(payload)) as mock_get:
        result = search_city_suggestions(' Lyo ')
    params = mock_get.call_args[1]['params']
    assert params['nom'] == 'Lyo'
    assert params['limit'] == 5
    assert [(c.nom, c.code_postal) for c in result] == [('Lyon', '69001'), ('Lyons-la-Forêt', '27480')]


def test_city_search_by_postal_code():
    with get_patch(return_value=make_response([])) as mock_get:
        search_city_suggestions('74')
    params = mock_get.call_args[1]['params']
    assert params['codePostal'] == '74'
    assert 'nom' not in params


def test_single_digit_is_searched_as_name():
    with get_patch(return_value=make_response([])) as mock_get:
        search_city_suggestions('7')
    assert mock_get.call_args[1]['params']['nom'] == '7'


def test_city_search_skips_communes_without_postal_code():
    payload = [{'nom': 'Nulle-part', 'codesPostaux': []}, {'nom': 'Annecy', 'codesPostaux': ['74000']}]
    with get_patch(return_value=make_response(payload)):
        result = search_city_suggestions('ann')
    assert [c.nom for c in result] == ['Annecy']


def test_city_search_blank_query_makes_no_request():
    with get_patch() as mock_get:
        assert search_city_suggestions('  ') == []
    mock_get.assert_not_called()


def test_city_search_network_error_gives_nothing():
    with get_patch(side_effect=requests.exceptions.ConnectionError('offline')):
        assert search_city_suggestions('Lyon') == []


def test_city_search_http_error_gives_nothing():
    response = make_response(status_error=requests.exceptions.HTTPError('503'))
    with get_patch(return_value=response):
        assert search_city_suggestions('Lyon') == []


def test_city_search_invalid_json_gives_nothing():
    with get_patch(return_value=make_response(json_error=ValueError('not json'))):
        assert search_city_suggestions('Lyon') == []


# ---------------------------------------------------------------------------
# geocode_address
# ---------------------------------------------------------------------------

def test_geocode_returns_coordinates():
    payload = [{'lat': '45.7578', 'lon': '4.8320'}]
    with get_patch(return_value=make_response(payload)) as mock_get:
        result = geocode_address('3 place Bellecour', '69002', 'Lyon')
    assert result == (45.7578, 4.832)
    kwargs = mock_get.call_args[1]
    assert kwargs['params']['q'] == '3 place Bellecour, 69002, Lyon'
    assert 'User-Agent' in kwargs['headers']


def test_geocode_skips_blank_parts():
    with get_patch(return_value=make_response([])) as mock_get:
        geocode_address(None, ' ', 'Annecy')
    assert mock_get.call_args[1]['params']['q'] == 'Annecy'


def test_geocode_no_address_makes_no_request():
    with get_patch() as mock_get:
        assert geocode_address(None, None, '') is None
    mock_get.assert_not_called()


def test_geocode_no_match():
    with get_patch(return_value=make_response([])):
        assert geocode_address('rue inconnue', None, 'Lyon') is None


def test_geocode_unparseable_coordinates():
    with get_patch(return_value=make_response([{'lat': 'abc', 'lon': '4.8'}])):
        assert geocode_address('x', None, 'Lyon') is None
    with get_patch(return_value=make_response([{'lat': 'nan', 'lon': '4.8'}])):
        assert geocode_address('x', None, 'Lyon') is None
    with get_patch(return_value=make_response([{'display_name': 'Lyon'}])):
        assert geocode_address('x', None, 'Lyon') is None


def test_geocode_network_error():
    with get_patch(side_effect=requests.exceptions.Timeout('slow')):
        assert geocode_address('x', None, 'Lyon') is None
