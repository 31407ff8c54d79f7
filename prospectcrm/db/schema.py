"""
Database schema: enum types, tables, and the column allowlists used by the
table-scoped store. init_schema() is idempotent and safe to re-run.
"""

import logging

from prospectcrm.db.connection import get_db_cursor
from prospectcrm.models import (
    ESTABLISHMENT_STATUSES, ACTION_TYPES, ACTION_STATUSES,
    PARAMETRAGE_CATEGORIES, USER_ROLES,
)

logger = logging.getLogger(__name__)

ENUMS = {
    'establishment_status': ESTABLISHMENT_STATUSES,
    'action_type': ACTION_TYPES,
    'action_status': ACTION_STATUSES,
    'parametrage_category': PARAMETRAGE_CATEGORIES,
    'user_role': USER_ROLES,
}

# Every column the application may read, filter on, or write, per table
TABLE_COLUMNS = {
    'auth_users': {'id', 'email', 'password_hash', 'created_at'},
    'auth_sessions': {'token', 'user_id', 'created_at', 'expires_at'},
    'profiles': {'id', 'nom', 'prenom', 'role', 'actif', 'created_at', 'updated_at'},
    'parametrages': {'id', 'categorie', 'valeur', 'created_at'},
    'establishments': {
        'id', 'nom', 'statut', 'adresse', 'code_postal', 'ville', 'commentaire',
        'info_concurrent', 'groupe_id', 'secteur_id', 'activite_id', 'concurrent_id',
        'commercial_id', 'actif', 'created_at', 'updated_at',
    },
    'contacts': {
        'id', 'etablissement_id', 'nom', 'prenom', 'fonction', 'telephone', 'email',
        'actif', 'created_at',
    },
    'actions': {
        'id', 'etablissement_id', 'user_id', 'type', 'date_action', 'statut_action',
        'commentaire', 'relance_date', 'created_at',
    },
    'competitors_history': {
        'id', 'etablissement_id', 'concurrent_nom', 'coefficient', 'taux_horaire',
        'date_info', 'commentaire', 'created_by', 'created_at', 'updated_at',
    },
    'suggestions': {
        'id', 'titre', 'description', 'type', 'statut', 'priorite', 'etablissement_id',
        'created_by', 'traite_at', 'traite_by', 'created_at', 'updated_at',
    },
}

_TABLES_DDL = """
CREATE TABLE IF NOT EXISTS auth_users (
    id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email         TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS auth_sessions (
    token      TEXT PRIMARY KEY,
    user_id    UUID NOT NULL REFERENCES auth_users(id) ON DELETE CASCADE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS profiles (
    id         UUID PRIMARY KEY REFERENCES auth_users(id) ON DELETE CASCADE,
    nom        TEXT NOT NULL,
    prenom     TEXT NOT NULL,
    role       user_role NOT NULL DEFAULT 'commercial',
    actif      BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS parametrages (
    id         UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    categorie  parametrage_category NOT NULL,
    valeur     TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS establishments (
    id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    nom             TEXT NOT NULL,
    statut          establishment_status NOT NULL DEFAULT 'prospect',
    adresse         TEXT,
    code_postal     TEXT,
    ville           TEXT,
    commentaire     TEXT,
    info_concurrent TEXT,
    groupe_id       UUID REFERENCES parametrages(id),
    secteur_id      UUID REFERENCES parametrages(id),
    activite_id     UUID REFERENCES parametrages(id),
    concurrent_id   UUID REFERENCES parametrages(id),
    commercial_id   UUID REFERENCES profiles(id),
    actif           BOOLEAN NOT NULL DEFAULT TRUE,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS contacts (
    id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    etablissement_id UUID NOT NULL REFERENCES establishments(id),
    nom              TEXT NOT NULL,
    prenom           TEXT NOT NULL,
    fonction         TEXT,
    telephone        TEXT,
    email            TEXT,
    actif            BOOLEAN NOT NULL DEFAULT TRUE,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS actions (
    id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    etablissement_id UUID NOT NULL REFERENCES establishments(id),
    user_id          UUID NOT NULL REFERENCES profiles(id),
    type             action_type NOT NULL,
    date_action      DATE NOT NULL,
    statut_action    action_status NOT NULL DEFAULT 'a_venir',
    commentaire      TEXT,
    relance_date     DATE,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS competitors_history (
    id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    etablissement_id UUID NOT NULL REFERENCES establishments(id),
    concurrent_nom   TEXT NOT NULL,
    coefficient      NUMERIC,
    taux_horaire     NUMERIC,
    date_info        DATE NOT NULL DEFAULT CURRENT_DATE,
    commentaire      TEXT,
    created_by       UUID REFERENCES profiles(id),
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS suggestions (
    id               UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    titre            TEXT NOT NULL,
    description      TEXT,
    type             TEXT NOT NULL,
    statut           TEXT NOT NULL DEFAULT 'a_traiter',
    priorite         TEXT NOT NULL DEFAULT 'normale',
    etablissement_id UUID REFERENCES establishments(id),
    created_by       UUID REFERENCES profiles(id),
    traite_at        TIMESTAMPTZ,
    traite_by        UUID REFERENCES profiles(id),
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_actions_etablissement ON actions(etablissement_id);
CREATE INDEX IF NOT EXISTS idx_actions_date ON actions(date_action);
CREATE INDEX IF NOT EXISTS idx_contacts_etablissement ON contacts(etablissement_id);
CREATE INDEX IF NOT EXISTS idx_competitors_etablissement ON competitors_history(etablissement_id);
"""


def _enum_ddl(name: str, values: tuple) -> str:
    labels = ', '.join(f"'{v}'" for v in values)
    return f"""
DO $$ BEGIN
    CREATE TYPE {name} AS ENUM ({labels});
EXCEPTION WHEN duplicate_object THEN NULL;
END $$;
"""


def schema_sql() -> str:
    """Full DDL script: enum types first, then tables and indexes."""
    enums = ''.join(_enum_ddl(name, values) for name, values in ENUMS.items())
    return enums + _TABLES_DDL


def init_schema() -> None:
    """Create every enum, table and index that does not exist yet."""
    with get_db_cursor(dict_cursor=False) as cur:
        cur.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")
        cur.execute(schema_sql())
    logger.info(f"Schema initialised ({len(TABLE_COLUMNS)} tables)")
