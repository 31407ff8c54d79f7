"""
Data Models
Dataclasses for all entities and for the joined rows the views read.
Pure Python objects, no database logic.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

# Closed vocabularies, mirrored by the PostgreSQL enum types in db/schema.py
ESTABLISHMENT_STATUSES = ('prospect', 'client', 'ancien_client')
ACTION_TYPES = ('phoning', 'mailing', 'visite', 'rdv')
ACTION_STATUSES = ('effectue', 'a_venir', 'a_relancer')
PARAMETRAGE_CATEGORIES = ('groupe', 'secteur', 'activite', 'concurrent')
USER_ROLES = ('admin', 'commercial')

SUGGESTION_TYPES = ('suggestion', 'idee', 'prospect_a_verifier', 'info_commerciale')
SUGGESTION_STATUSES = ('a_traiter', 'en_cours', 'traite')
SUGGESTION_PRIORITIES = ('basse', 'normale', 'haute')

ACTION_TYPE_LABELS = {
    'phoning': 'Appel téléphonique',
    'mailing': 'Email',
    'visite': 'Visite terrain',
    'rdv': 'Rendez-vous',
}
ACTION_STATUS_LABELS = {
    'effectue': 'Effectuée',
    'a_venir': 'À venir',
    'a_relancer': 'À relancer',
}
ESTABLISHMENT_STATUS_LABELS = {
    'prospect': 'Prospect',
    'client': 'Client',
    'ancien_client': 'Ancien client',
}


@dataclass
class Establishment:
    """Prospect, client or former client organisation"""
    id: Optional[str] = None
    nom: str = ''
    statut: str = 'prospect'
    adresse: Optional[str] = None
    code_postal: Optional[str] = None
    ville: Optional[str] = None
    commentaire: Optional[str] = None
    info_concurrent: Optional[str] = None
    groupe_id: Optional[str] = None
    secteur_id: Optional[str] = None
    activite_id: Optional[str] = None
    concurrent_id: Optional[str] = None
    commercial_id: Optional[str] = None
    actif: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Contact:
    """Person working at an establishment. Removal is deactivation."""
    id: Optional[str] = None
    etablissement_id: Optional[str] = None
    nom: str = ''
    prenom: str = ''
    fonction: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[str] = None
    actif: bool = True
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.prenom} {self.nom}".strip()


@dataclass
class Action:
    """Dated sales activity tied to an establishment"""
    id: Optional[str] = None
    etablissement_id: Optional[str] = None
    user_id: Optional[str] = None
    type: str = 'phoning'
    date_action: Optional[date] = None
    statut_action: str = 'a_venir'
    commentaire: Optional[str] = None
    relance_date: Optional[date] = None
    created_at: Optional[datetime] = None


@dataclass
class CompetitorEntry:
    """Competitor intelligence snapshot (append-only)"""
    id: Optional[str] = None
    etablissement_id: Optional[str] = None
    concurrent_nom: str = ''
    coefficient: Optional[float] = None
    taux_horaire: Optional[float] = None
    date_info: Optional[date] = None
    commentaire: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ReferenceEntry:
    """Admin-managed vocabulary entry (groupe, secteur, activite, concurrent)"""
    id: Optional[str] = None
    categorie: str = 'groupe'
    valeur: str = ''
    created_at: Optional[datetime] = None


@dataclass
class Suggestion:
    """Free-form lead or idea, optionally converted into a prospect"""
    id: Optional[str] = None
    titre: str = ''
    description: Optional[str] = None
    type: str = 'suggestion'
    statut: str = 'a_traiter'
    priorite: str = 'normale'
    etablissement_id: Optional[str] = None
    created_by: Optional[str] = None
    traite_at: Optional[datetime] = None
    traite_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Profile:
    """One row per authenticated user"""
    id: Optional[str] = None
    nom: str = ''
    prenom: str = ''
    role: str = 'commercial'
    actif: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def label(self) -> str:
        return f"{self.prenom or ''} {self.nom or ''}".strip() or 'Utilisateur'


# =============================================================================
# QUERY SHAPES (joined rows)
# =============================================================================

@dataclass
class EstablishmentRow:
    """Establishments list row with its reference labels"""
    id: str
    nom: str
    statut: str
    ville: Optional[str] = None
    code_postal: Optional[str] = None
    actif: bool = True
    groupe: Optional[str] = None
    secteur: Optional[str] = None
    activite: Optional[str] = None


@dataclass
class EstablishmentDetail:
    """One establishment plus the labels of the four references it points to"""
    establishment: Establishment
    groupe: Optional[str] = None
    secteur: Optional[str] = None
    activite: Optional[str] = None
    concurrent: Optional[str] = None


@dataclass
class ActionEntry:
    """Timeline row: an action and the name of the salesperson who logged it"""
    action: Action
    user_prenom: Optional[str] = None
    user_nom: Optional[str] = None

    @property
    def user_label(self) -> str:
        return f"{self.user_prenom or ''} {self.user_nom or ''}".strip()


@dataclass
class AgendaItem:
    """Calendar / reminder row: an action and its establishment name"""
    id: str
    type: str
    date_action: date
    statut_action: str
    etablissement_id: Optional[str] = None
    etablissement_nom: Optional[str] = None
    commentaire: Optional[str] = None
    relance_date: Optional[date] = None
    user_id: Optional[str] = None


@dataclass
class AuthUser:
    """Authenticated identity (credentials live in auth_users)"""
    id: str
    email: str


@dataclass
class Session:
    """Signed-in session; the token is what the CLI keeps on disk"""
    token: str
    user: AuthUser
    expires_at: Optional[datetime] = None


@dataclass
class CitySuggestion:
    code_postal: str
    nom: str


@dataclass
class UserOption:
    id: str
    label: str


@dataclass
class SeriesPoint:
    """One bar of a reporting chart: counts per action type"""
    name: str
    phoning: int = 0
    mailing: int = 0
    visite: int = 0
    rdv: int = 0

    def count(self, action_type: str) -> int:
        return getattr(self, action_type)


@dataclass
class PortfolioStats:
    total_prospects: int = 0
    inactive_prospects: int = 0
    anciens_clients: int = 0
    triggered_clients: int = 0
    by_status: dict = field(default_factory=dict)
