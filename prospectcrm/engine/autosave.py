"""
Debounced autosave for the establishment editor.

Every field change is merged into the local draft at once. In edit mode it is
also merged into a pending batch and a timer is (re)armed; when the timer fires
the whole batch is written in one go. Several edits inside one window therefore
produce a single write carrying the last value of each field.

Writes for one record are serialized: a flush that fires while another is
still writing waits for it, then sends everything edited since. The database
therefore sees the edits in the order they were made.

The competitor coefficient is never stored on the establishment: a batch that
contains it appends a competitor history row instead.
"""

import logging
import threading
from datetime import date
from typing import Any, Callable, Dict, Optional

from prospectcrm.config import config
from prospectcrm.engine import competitors, establishments
from prospectcrm.models import CompetitorEntry
from prospectcrm.bus.events import bus, EVENT_ESTABLISHMENT_AUTOSAVED

logger = logging.getLogger(__name__)

COEFFICIENT_FIELD = 'coefficient_concurrent'


class AutosaveCoordinator:
    """
    Owns the draft, the pending batch, the timer handle and the `saving` flag
    for one open establishment.

    record_id=None is create mode: changes only touch the draft until
    mark_created() is called.

    competitor_label: maps a concurrent_id to its reference label, used to name
    the competitor history row written for a coefficient.
    timer_factory: threading.Timer by default; tests inject a manual timer.
    """

    def __init__(
        self,
        draft: Optional[Dict[str, Any]] = None,
        record_id: Optional[str] = None,
        delay_ms: Optional[int] = None,
        on_saved: Optional[Callable[[Dict[str, Any]], None]] = None,
        competitor_label: Optional[Callable[[Optional[str]], Optional[str]]] = None,
        user_id: Optional[str] = None,
        timer_factory: Callable = threading.Timer,
    ):
        self.draft: Dict[str, Any] = dict(draft or {})
        self.record_id = record_id
        self.delay = (config.AUTOSAVE_DELAY_MS if delay_ms is None else delay_ms) / 1000.0
        self.on_saved = on_saved
        self.competitor_label = competitor_label
        self.user_id = user_id
        self.saving = False

        self._timer_factory = timer_factory
        self._pending: Dict[str, Any] = {}
        self._timer = None
        self._lock = threading.RLock()
        self._flush_lock = threading.Lock()

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def apply_change(self, patch: Dict[str, Any]) -> None:
        """Merge a field patch into the draft and, in edit mode, schedule a write."""
        if not patch:
            return
        with self._lock:
            self.draft.update(patch)
            if self.record_id is None:
                return
            self._pending.update(patch)
            self._cancel_timer()
            self._timer = self._timer_factory(self.delay, self.flush)
            self._timer.daemon = True
            self._timer.start()

    def mark_created(self, record_id: str) -> None:
        """Switch from create mode to edit mode once the row exists."""
        with self._lock:
            self.record_id = record_id
            self._pending.clear()

    def cancel(self) -> None:
        """Drop the pending batch and disarm the timer."""
        with self._lock:
            self._cancel_timer()
            self._pending.clear()

    def flush_now(self) -> bool:
        """Disarm the timer and write the pending batch on the caller's thread."""
        with self._lock:
            self._cancel_timer()
        return self.flush()

    def flush(self) -> bool:
        """
        Write the whole pending batch. Timer callback.
        Returns: True if a batch was sent (whether or not the write succeeded).
        """
        with self._flush_lock:
            with self._lock:
                batch, self._pending = self._pending, {}
                record_id = self.record_id
                if not batch or record_id is None:
                    return False
                self.saving = True
                info_concurrent = self.draft.get('info_concurrent')
                concurrent_id = self.draft.get('concurrent_id')

            try:
                self._write(record_id, batch, info_concurrent, concurrent_id)
            finally:
                with self._lock:
                    self.saving = False

        bus.emit(EVENT_ESTABLISHMENT_AUTOSAVED, {'establishment_id': record_id, 'fields': sorted(batch)})
        if self.on_saved is not None:
            try:
                self.on_saved(batch)
            except Exception as e:
                logger.error(f"Autosave callback failed for {record_id}: {e}")
        return True

    def _write(self, record_id: str, batch: Dict[str, Any], info_concurrent, concurrent_id) -> None:
        fields = dict(batch)

        if COEFFICIENT_FIELD in fields:
            raw = fields.pop(COEFFICIENT_FIELD)
            name = (self.competitor_label(concurrent_id) if self.competitor_label else None)
            try:
                competitors.add_entry(CompetitorEntry(
                    etablissement_id=record_id,
                    concurrent_nom=name or competitors.UNKNOWN_COMPETITOR,
                    coefficient=competitors.parse_coefficient(raw),
                    date_info=date.today(),
                    commentaire=info_concurrent,
                    created_by=self.user_id,
                ))
            except Exception as e:
                logger.error(f"Autosave: competitor history for {record_id} failed: {e}")

        if fields:
            try:
                establishments.update_establishment(record_id, fields)
                logger.info(f"Autosaved establishment {record_id}: {sorted(fields)}")
            except Exception as e:
                logger.error(f"Autosave of establishment {record_id} failed: {e}")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
