"""
Establishment editor: the state behind the establishment detail view.

Field edits go through the autosave coordinator. Contacts, competitor entries
and quick actions are written immediately, each followed by a re-fetch of that
sub-resource only. Remote failures are logged and the editor keeps its last
state.
"""

import logging
from typing import Any, Dict, List, Optional

from prospectcrm.engine import actions, competitors, contacts, establishments, parametrage
from prospectcrm.engine.autosave import AutosaveCoordinator, COEFFICIENT_FIELD
from prospectcrm.engine.session import UserViewContext
from prospectcrm.engine.timeline import TimelineEditor
from prospectcrm.models import (
    ActionEntry, CompetitorEntry, Contact, Establishment, EstablishmentDetail,
    ReferenceEntry,
)

logger = logging.getLogger(__name__)


class EstablishmentEditor:

    def __init__(self, ctx: UserViewContext, timer_factory=None):
        self.ctx = ctx
        self.detail: Optional[EstablishmentDetail] = None
        self.contacts: List[Contact] = []
        self.actions: List[ActionEntry] = []
        self.competitor_history: List[CompetitorEntry] = []
        self.references: Dict[str, List[ReferenceEntry]] = {}
        self.timeline: Optional[TimelineEditor] = None
        self._timer_factory = timer_factory
        self.autosave = self._coordinator({}, None)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @classmethod
    def open(cls, establishment_id: str, ctx: UserViewContext, timer_factory=None) -> 'EstablishmentEditor':
        editor = cls(ctx, timer_factory=timer_factory)
        editor.refresh_references()
        editor.load(establishment_id)
        return editor

    @classmethod
    def new(cls, ctx: UserViewContext, timer_factory=None, **fields) -> 'EstablishmentEditor':
        """Create mode: edits stay in memory until create()."""
        editor = cls(ctx, timer_factory=timer_factory)
        editor.refresh_references()
        draft = {'nom': '', 'statut': 'prospect'}
        draft.update(fields)
        editor.autosave = editor._coordinator(draft, None)
        return editor

    @property
    def record_id(self) -> Optional[str]:
        return self.autosave.record_id

    @property
    def is_create_mode(self) -> bool:
        return self.record_id is None

    @property
    def draft(self) -> Dict[str, Any]:
        return self.autosave.draft

    def load(self, establishment_id: str) -> bool:
        """Fetch the detail and every sub-resource. Returns False if not found."""
        try:
            detail = establishments.get_establishment(establishment_id)
        except Exception as e:
            logger.error(f"Loading establishment {establishment_id} failed: {e}")
            return False
        if detail is None:
            logger.warning(f"Establishment {establishment_id} not found")
            return False

        # Edits still waiting on the previous coordinator go out before it is replaced
        self.autosave.flush_now()
        self.detail = detail
        draft = {k: v for k, v in vars(detail.establishment).items()
                 if k in establishments.EDITABLE_COLUMNS}
        self.autosave = self._coordinator(draft, establishment_id)
        self.timeline = TimelineEditor(establishment_id)

        self.refresh_contacts()
        self.refresh_actions()
        self.refresh_competitors()
        return True

    def close(self) -> None:
        """Send any pending edit before the view goes away."""
        self.autosave.flush_now()

    def _coordinator(self, draft: Dict[str, Any], record_id: Optional[str]) -> AutosaveCoordinator:
        kwargs = {}
        if self._timer_factory is not None:
            kwargs['timer_factory'] = self._timer_factory
        return AutosaveCoordinator(
            draft=draft,
            record_id=record_id,
            on_saved=self._on_saved,
            competitor_label=self._competitor_label,
            user_id=self.ctx.current_user_id,
            **kwargs,
        )

    def _on_saved(self, batch: Dict[str, Any]) -> None:
        if COEFFICIENT_FIELD in batch:
            self.refresh_competitors()

    def _competitor_label(self, concurrent_id: Optional[str]) -> Optional[str]:
        return parametrage.label_of(self.references.get('concurrent', []), concurrent_id)

    # -------------------------------------------------------------------------
    # Targeted re-fetches
    # -------------------------------------------------------------------------

    def refresh_references(self) -> None:
        try:
            self.references = parametrage.grouped_entries()
        except Exception as e:
            logger.error(f"Loading reference lists failed: {e}")

    def refresh_contacts(self) -> None:
        if self.is_create_mode:
            return
        try:
            self.contacts = contacts.list_contacts(self.record_id)
        except Exception as e:
            logger.error(f"Loading contacts of {self.record_id} failed: {e}")

    def refresh_actions(self) -> None:
        if self.is_create_mode:
            return
        try:
            self.actions = actions.list_actions(self.record_id)
        except Exception as e:
            logger.error(f"Loading actions of {self.record_id} failed: {e}")
            return
        if self.timeline is not None:
            self.timeline.sync(self.actions)

    def refresh_competitors(self) -> None:
        if self.is_create_mode:
            return
        try:
            self.competitor_history = competitors.list_history(self.record_id)
        except Exception as e:
            logger.error(f"Loading competitor history of {self.record_id} failed: {e}")

    # -------------------------------------------------------------------------
    # Edits
    # -------------------------------------------------------------------------

    def change(self, **fields) -> None:
        """
        Field edit: merged into the draft now, written after the debounce delay.
        An invalid patch (blank name, unknown status) raises ValueError and
        leaves the draft and the pending batch untouched.
        """
        self.autosave.apply_change(establishments.normalise_fields(fields))

    def create(self) -> Optional[str]:
        """
        Insert the draft (create mode only) and switch to edit mode.
        Returns: new establishment id, or None on failure.
        """
        if not self.is_create_mode:
            raise ValueError("This establishment already exists")

        values = {k: v for k, v in self.draft.items() if k in establishments.EDITABLE_COLUMNS}
        coefficient = self.draft.get(COEFFICIENT_FIELD)
        try:
            establishment_id = establishments.create_establishment(
                Establishment(**values), owner_id=self.ctx.current_user_id,
            )
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Creating establishment '{values.get('nom')}' failed: {e}")
            return None

        self.autosave.mark_created(establishment_id)
        self.load(establishment_id)
        # A coefficient is not a column: it becomes the first competitor history row
        if coefficient not in (None, ''):
            self.autosave.apply_change({COEFFICIENT_FIELD: coefficient})
            self.autosave.flush_now()
        return establishment_id

    def add_contact(self, nom: str, prenom: str, fonction: str = None,
                    telephone: str = None, email: str = None) -> Optional[str]:
        if self.is_create_mode:
            raise ValueError("Create the establishment before adding contacts")
        try:
            contact_id = contacts.add_contact(Contact(
                etablissement_id=self.record_id, nom=nom, prenom=prenom,
                fonction=fonction, telephone=telephone, email=email,
            ))
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Adding contact to {self.record_id} failed: {e}")
            return None
        self.refresh_contacts()
        return contact_id

    def deactivate_contact(self, contact_id: str) -> bool:
        try:
            done = contacts.deactivate_contact(contact_id)
        except Exception as e:
            logger.error(f"Deactivating contact {contact_id} failed: {e}")
            return False
        self.refresh_contacts()
        return done

    def add_competitor(self, concurrent_nom: str, coefficient: Any = None, taux_horaire: Any = None,
                       date_info=None, commentaire: str = None) -> Optional[str]:
        if self.is_create_mode:
            raise ValueError("Create the establishment before recording competitors")
        try:
            entry_id = competitors.add_entry(CompetitorEntry(
                etablissement_id=self.record_id, concurrent_nom=concurrent_nom,
                coefficient=coefficient, taux_horaire=taux_horaire,
                date_info=date_info, commentaire=commentaire,
                created_by=self.ctx.current_user_id,
            ))
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Recording competitor for {self.record_id} failed: {e}")
            return None
        self.refresh_competitors()
        return entry_id

    def delete_competitor(self, entry_id: str) -> bool:
        try:
            done = competitors.delete_entry(entry_id)
        except Exception as e:
            logger.error(f"Deleting competitor entry {entry_id} failed: {e}")
            return False
        self.refresh_competitors()
        return done

    def quick_action(self, action_type: str) -> Optional[str]:
        """
        Insert today's upcoming action of this type and open it in the timeline.
        The timeline is re-fetched whether or not the insert worked.
        """
        if self.is_create_mode:
            raise ValueError("Create the establishment before logging actions")
        action_id = None
        try:
            action_id = actions.quick_action(self.record_id, action_type, self.ctx.current_user_id)
            self.timeline.request_open(action_id)
        except ValueError:
            raise
        except Exception as e:
            logger.error(f"Quick {action_type} for {self.record_id} failed: {e}")
        finally:
            self.refresh_actions()
        return action_id
