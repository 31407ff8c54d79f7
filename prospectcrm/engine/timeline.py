"""
Inline editor for the action timeline of one establishment.

At most one row is in edit mode. Saves and deletes are immediate (not
debounced) and scoped by both the action id and the establishment id.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from prospectcrm.engine import actions
from prospectcrm.models import Action

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('commentaire', 'statut_action', 'date_action', 'relance_date')


class TimelineEditor:

    def __init__(self, etablissement_id: str):
        self.etablissement_id = etablissement_id
        self.editing_id: Optional[str] = None
        self.draft: Dict[str, Any] = {}
        self._open_request: Optional[str] = None

    @property
    def is_editing(self) -> bool:
        return self.editing_id is not None

    def begin_edit(self, action: Action) -> None:
        """Put one row in edit mode. Any other row's unsaved draft is discarded."""
        self.editing_id = action.id
        self.draft = {name: getattr(action, name) for name in EDITABLE_FIELDS}

    def set_field(self, name: str, value: Any) -> None:
        if not self.is_editing:
            raise ValueError("No action is being edited")
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Field not editable inline: {name}")
        self.draft[name] = value

    def cancel(self) -> None:
        self.editing_id = None
        self.draft = {}

    def save(self) -> bool:
        """
        Write the draft now. Leaves edit mode on success; on failure the row
        stays in edit mode with its draft.
        """
        if not self.is_editing:
            return False
        try:
            saved = actions.update_action(self.editing_id, self.etablissement_id, dict(self.draft))
        except Exception as e:
            logger.error(f"Saving action {self.editing_id} failed: {e}")
            return False
        if saved:
            self.cancel()
        return saved

    def delete(self, action_id: str) -> bool:
        try:
            deleted = actions.delete_action(action_id, self.etablissement_id)
        except Exception as e:
            logger.error(f"Deleting action {action_id} failed: {e}")
            return False
        if deleted and self.editing_id == action_id:
            self.cancel()
        return deleted

    def request_open(self, action_id: str) -> None:
        """Ask for a row to be opened in edit mode on the next sync()."""
        self._open_request = action_id

    def sync(self, entries: Iterable) -> None:
        """
        Apply a pending open request against the current rows (Action or
        ActionEntry). The request is consumed whether or not the row is found.
        """
        request, self._open_request = self._open_request, None
        if request is None:
            return
        for entry in entries:
            action = getattr(entry, 'action', entry)
            if action.id == request:
                self.begin_edit(action)
                return
        logger.debug(f"Timeline: requested action {request} not in the list")
