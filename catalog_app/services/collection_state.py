"""
Optimistic view of one ordered collection.

A gesture publishes its computed ordering as PENDING before the write
settles. On success the rows are replaced by a fresh read and tagged
CONFIRMED; on failure the pending rows are thrown away, replaced by a fresh
read, and the error is re-raised.
"""

import logging

from catalog_app.services.sequencer import Sequencer, plan_reorder, plan_shift_insert

logger = logging.getLogger(__name__)

CONFIRMED = "confirmed"
PENDING = "pending"


class TrackedCollection:
    def __init__(self, store, on_pending=None):
        self.store = store
        self.sequencer = Sequencer(store)
        self.on_pending = on_pending
        self.rows = store.fetch_all()
        self.state = CONFIRMED

    def snapshot(self):
        return {
            "collection": self.store.label,
            "state": self.state,
            "items": [row.to_dict() for row in self.rows],
        }

    def refresh(self):
        self.rows = self.store.fetch_all()
        self.state = CONFIRMED
        return self.rows

    def _apply(self, planned, persist):
        self.rows = planned
        self.state = PENDING
        if self.on_pending is not None:
            self.on_pending(self.snapshot())
        try:
            persist()
        except Exception:
            logger.warning("discarding pending order for %s, re-reading", self.store.label)
            self.refresh()
            raise
        return self.refresh()

    def apply_reorder(self, new_id_order):
        ids = [self.store.normalize_id(value) for value in new_id_order]
        # plan against the stored rows, not the last snapshot
        planned = plan_reorder(self.refresh(), ids)
        return self._apply(planned, lambda: self.sequencer.reorder(ids))

    def apply_shift_insert(self, target_rank, moving_id):
        moving_id = self.store.normalize_id(moving_id)
        planned = plan_shift_insert(self.refresh(), target_rank, moving_id)
        return self._apply(planned, lambda: self.sequencer.shift_insert(target_rank, moving_id))
