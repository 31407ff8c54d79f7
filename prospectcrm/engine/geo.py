"""
Geocoding helpers over two public, read-only services:
  - geo.api.gouv.fr communes (city / postal code autocomplete)
  - Nominatim (address -> latitude / longitude)

Network and parse failures never raise: they are logged and give no result.
"""

import logging
import math
from typing import List, Optional, Tuple

import requests

from prospectcrm.config import config
from prospectcrm.models import CitySuggestion

logger = logging.getLogger(__name__)

MAX_CITY_SUGGESTIONS = 5


def _is_postal_code(query: str) -> bool:
    return len(query) >= 2 and query.isdigit()


def search_city_suggestions(query: str) -> List[CitySuggestion]:
    """
    Cities matching a partial name, or a partial postal code when the query is
    two or more digits. Communes without a postal code are skipped.
    """
    query = (query or '').strip()
    if not query:
        return []

    params = {
        'codePostal' if _is_postal_code(query) else 'nom': query,
        'fields': 'nom,codesPostaux',
        'format': 'json',
        'limit': MAX_CITY_SUGGESTIONS,
    }

    try:
        response = requests.get(config.GEO_COMMUNES_URL, params=params, timeout=config.HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"City lookup failed for '{query}': {e}")
        return []
    except ValueError as e:
        logger.error(f"City lookup returned invalid JSON for '{query}': {e}")
        return []

    if not isinstance(data, list):
        return []

    suggestions = []
    for item in data:
        codes = item.get('codesPostaux') if isinstance(item, dict) else None
        if not isinstance(codes, list) or not codes or not codes[0]:
            continue
        suggestions.append(CitySuggestion(code_postal=codes[0], nom=item.get('nom', '')))

    logger.debug(f"City lookup '{query}': {len(suggestions)} suggestions")
    return suggestions[:MAX_CITY_SUGGESTIONS]


def geocode_address(
    adresse: Optional[str],
    code_postal: Optional[str],
    ville: Optional[str],
) -> Optional[Tuple[float, float]]:
    """
    (latitude, longitude) of the first match for the address, or None.
    """
    query = ', '.join(part.strip() for part in (adresse, code_postal, ville) if part and part.strip())
    if not query:
        return None

    params = {'q': query, 'format': 'json', 'limit': 1, 'addressdetails': 0}
    # Nominatim usage policy requires an identifying User-Agent
    headers = {'User-Agent': config.GEOCODER_USER_AGENT}

    try:
        response = requests.get(
            config.GEOCODER_URL, params=params, headers=headers, timeout=config.HTTP_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        data = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Geocoding failed for '{query}': {e}")
        return None
    except ValueError as e:
        logger.error(f"Geocoder returned invalid JSON for '{query}': {e}")
        return None

    if not isinstance(data, list) or not data:
        logger.info(f"Geocoding: no match for '{query}'")
        return None

    try:
        lat, lon = float(data[0]['lat']), float(data[0]['lon'])
    except (KeyError, TypeError, ValueError):
        lat = lon = math.nan

    if math.isnan(lat) or math.isnan(lon):
        logger.warning(f"Geocoding: unparseable coordinates for '{query}': {data[0]}")
        return None
    return lat, lon
