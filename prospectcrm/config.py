"""
Prospect CRM Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)


class Config:
    """Application configuration."""

    # Database: must be set in .env
    DATABASE_URL = os.getenv('DATABASE_URL')
    if not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set, cannot start. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")

    # Timezone
    TIMEZONE = os.getenv('TIMEZONE', 'Europe/Paris')

    # Establishment editor: delay before coalesced edits are written (milliseconds)
    AUTOSAVE_DELAY_MS = int(os.getenv('AUTOSAVE_DELAY_MS', '600'))

    # Reporting: a prospect with no action in this many days is inactive
    INACTIVE_PROSPECT_DAYS = int(os.getenv('INACTIVE_PROSPECT_DAYS', '90'))

    # Public geocoding endpoints (read-only)
    GEO_COMMUNES_URL = os.getenv('GEO_COMMUNES_URL', 'https://geo.api.gouv.fr/communes')
    GEOCODER_URL = os.getenv('GEOCODER_URL', 'https://nominatim.openstreetmap.org/search')
    # Nominatim rejects requests without an explicit User-Agent
    GEOCODER_USER_AGENT = os.getenv('GEOCODER_USER_AGENT', 'ProspectCRM/1.0')
    HTTP_TIMEOUT_SECONDS = float(os.getenv('HTTP_TIMEOUT_SECONDS', '10'))

    # CLI session persistence
    SESSION_FILE = Path(os.getenv('SESSION_FILE', str(Path.home() / '.prospectcrm' / 'session.json'))).expanduser()
    SESSION_TTL_HOURS = int(os.getenv('SESSION_TTL_HOURS', '168'))


# Singleton instance
config = Config()
