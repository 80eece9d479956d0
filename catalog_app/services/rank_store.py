"""
Persistence for ordered collections: read all ranks, write one rank,
write a batch of ranks atomically.
"""

import logging
from dataclasses import dataclass

from django.db import DatabaseError, models, transaction

from catalog_app.exceptions import InvalidOrderError, PersistenceError
from catalog_app.utils import parse_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedRow:
    id: str
    rank: int

    def to_dict(self):
        return {"id": self.id, "rank": self.rank}


class RankStore:
    """
    One ordered collection backed by a queryset and an integer rank column.
    The queryset fixes the scope (whole table, or one admin group's rows).
    """

    def __init__(self, queryset, rank_field: str = "sort_order"):
        self.queryset = queryset
        self.rank_field = rank_field
        self.label = queryset.model._meta.label_lower

    def normalize_id(self, value) -> str:
        """Canonical string form of a primary key; raises InvalidOrderError if malformed."""
        if value is None or str(value).strip() == "":
            raise InvalidOrderError("Missing id.")
        if isinstance(self.queryset.model._meta.pk, models.UUIDField):
            uid = parse_uuid(value)
            if uid is None:
                raise InvalidOrderError(f"Malformed id: {value!r}")
            return str(uid)
        return str(value)

    def fetch_all(self) -> list[RankedRow]:
        """Rows sorted by rank ascending, ties by primary key."""
        try:
            rows = self.queryset.order_by(self.rank_field, "pk").values_list("pk", self.rank_field)
            return [RankedRow(str(pk), rank or 0) for pk, rank in rows]
        except DatabaseError as e:
            logger.warning("fetch_all failed for %s: %s", self.label, e)
            raise PersistenceError(f"Could not read {self.label}.") from e

    def set_rank(self, row_id: str, rank: int) -> None:
        try:
            updated = self.queryset.filter(pk=row_id).update(**{self.rank_field: rank})
        except DatabaseError as e:
            logger.warning("set_rank failed %s id=%s rank=%d: %s", self.label, row_id, rank, e)
            raise PersistenceError(f"Could not update {self.label} {row_id}.") from e
        if updated != 1:
            logger.warning("set_rank matched no row %s id=%s", self.label, row_id)
            raise PersistenceError(f"{self.label} {row_id} no longer exists.")

    def write_ranks(self, pairs) -> None:
        """
        Apply every (id, rank) pair in one transaction. Either all rows take
        their new rank or none do.
        """
        pairs = list(pairs)
        if not pairs:
            return
        try:
            with transaction.atomic():
                for row_id, rank in pairs:
                    self.set_rank(row_id, rank)
        except DatabaseError as e:
            logger.warning("write_ranks rolled back %s: %s", self.label, e)
            raise PersistenceError(f"Could not reorder {self.label}.") from e
        logger.info("write_ranks %s rows=%d", self.label, len(pairs))
