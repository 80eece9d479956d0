"""
Dense integer ordering for flat collections (menu items, categories,
payment methods). Ranks always settle to 1..N with no gaps or duplicates.
"""

import logging

from catalog_app.exceptions import InvalidOrderError
from catalog_app.services.rank_store import RankedRow

logger = logging.getLogger(__name__)


def normalize_rows(rows: list[RankedRow]) -> list[RankedRow]:
    """Renumber rows 1..N by (rank, current position)."""
    ordered = sorted(enumerate(rows), key=lambda pair: (pair[1].rank, pair[0]))
    return [RankedRow(row.id, pos) for pos, (_, row) in enumerate(ordered, start=1)]


def plan_shift_insert(rows: list[RankedRow], target_rank: int, moving_id: str) -> list[RankedRow]:
    """
    Place moving_id at target_rank: every other row ranked >= target moves
    down by one, then the collection is normalized. Returns the new ordering.
    """
    if isinstance(target_rank, bool) or not isinstance(target_rank, int) or target_rank < 1:
        raise InvalidOrderError(f"Target rank must be a positive integer, got {target_rank!r}.")
    if moving_id not in {row.id for row in rows}:
        raise InvalidOrderError(f"Unknown id: {moving_id!r}")

    shifted = []
    for row in rows:
        if row.id == moving_id:
            shifted.append(RankedRow(row.id, target_rank))
        elif row.rank >= target_rank:
            shifted.append(RankedRow(row.id, row.rank + 1))
        else:
            shifted.append(row)
    return normalize_rows(shifted)


def plan_reorder(rows: list[RankedRow], new_id_order) -> list[RankedRow]:
    """Assign rank i+1 to the id at position i; new_id_order must be a full permutation."""
    new_id_order = list(new_id_order)
    current = [row.id for row in rows]
    if len(set(new_id_order)) != len(new_id_order):
        raise InvalidOrderError("Order contains duplicate ids.")
    if set(new_id_order) != set(current):
        missing = set(current) - set(new_id_order)
        unknown = set(new_id_order) - set(current)
        raise InvalidOrderError(
            f"Order must list every id exactly once (missing={len(missing)}, unknown={len(unknown)})."
        )
    return [RankedRow(row_id, pos) for pos, row_id in enumerate(new_id_order, start=1)]


def changed_ranks(before: list[RankedRow], after: list[RankedRow]) -> list[tuple[str, int]]:
    """(id, rank) pairs whose rank differs between two orderings, in new order."""
    old = {row.id: row.rank for row in before}
    return [(row.id, row.rank) for row in after if old.get(row.id) != row.rank]


class Sequencer:
    """Applies shift-insert, reorder and normalization to one RankStore."""

    def __init__(self, store):
        self.store = store

    def _commit(self, before, after, op):
        pairs = changed_ranks(before, after)
        logger.debug("%s %s plan=%s", op, self.store.label, pairs)
        self.store.write_ranks(pairs)
        logger.info("%s %s rows=%d changed=%d", op, self.store.label, len(after), len(pairs))
        return after

    def shift_insert(self, target_rank: int, moving_id) -> list[RankedRow]:
        moving_id = self.store.normalize_id(moving_id)
        rows = self.store.fetch_all()
        return self._commit(rows, plan_shift_insert(rows, target_rank, moving_id), "shift_insert")

    def reorder(self, new_id_order) -> list[RankedRow]:
        if not isinstance(new_id_order, (list, tuple)):
            raise InvalidOrderError("Order must be a list of ids.")
        ids = [self.store.normalize_id(value) for value in new_id_order]
        rows = self.store.fetch_all()
        return self._commit(rows, plan_reorder(rows, ids), "reorder")

    def normalize(self) -> list[RankedRow]:
        rows = self.store.fetch_all()
        return self._commit(rows, normalize_rows(rows), "normalize")
