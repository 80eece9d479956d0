"""
Variation group operations for one menu item: load the variations, apply a
grouping change, save the changed rows in one transaction.
"""

import logging

from django.db import DatabaseError, transaction

from catalog_app.exceptions import ConfirmationRequired, PersistenceError
from catalog_app.models import Variation
from catalog_app.serializers import validate_price, validate_variation_name
from catalog_app.services import grouping

logger = logging.getLogger(__name__)

GROUP_FIELDS = ["category", "sort", "sort_order"]


class VariationGroups:
    def __init__(self, menu_item):
        self.menu_item = menu_item

    def load(self) -> list[Variation]:
        # (sort_order, id) keeps first-seen group order stable across reads
        return list(self.menu_item.variations.order_by("sort_order", "id"))

    def groups(self) -> list[grouping.Group]:
        return grouping.group_by(self.load())

    def _save(self, op, subs, changed, created=()):
        try:
            with transaction.atomic():
                for variation in created:
                    variation.save()
                updated = [v for v in changed if v not in created]
                if updated:
                    Variation.objects.bulk_update(updated, GROUP_FIELDS)
        except DatabaseError as e:
            logger.warning("%s failed menu_item_id=%s: %s", op, self.menu_item.pk, e)
            raise PersistenceError(f"Could not save variation groups ({op}).") from e
        logger.info(
            "%s menu_item_id=%s changed=%d created=%d",
            op,
            self.menu_item.pk,
            len(changed),
            len(created),
        )
        return grouping.group_by(subs)

    def _new_variation(self, name="", price=0, description=""):
        return Variation(
            menu_item=self.menu_item,
            name=validate_variation_name(name),
            price=validate_price(price),
            description=(description or "").strip(),
        )

    def update(self, key, name=grouping.KEEP, rank=grouping.KEEP):
        """Rank change and rename in one save; nothing is written if either is invalid."""
        subs = self.load()
        return self._save("update_group", subs, grouping.update_group(subs, key, name=name, rank=rank))

    def add_member(self, key, **fields):
        subs = self.load()
        variation = self._new_variation(**fields)
        created = grouping.add_member(subs, key, variation)
        return self._save("add_group_member", subs, created, created=created)

    def create_group(self, group_name=None, **fields):
        subs = self.load()
        variation = self._new_variation(**fields)
        created = grouping.create_group(subs, variation, name=group_name)
        return self._save("create_group", subs, created, created=created)

    def delete_group(self, key, confirmed=False):
        """Strip the group from its members. Refuses to run unless confirmed."""
        if not confirmed:
            raise ConfirmationRequired(
                "Deleting a group moves its packages to the unnamed group; confirm to proceed."
            )
        subs = self.load()
        return self._save("delete_group", subs, grouping.delete_group(subs, key))

    def reorder_groups(self, key_order):
        subs = self.load()
        return self._save("reorder_groups", subs, grouping.reorder_groups(subs, key_order))

    def reorder_members(self, key, id_order):
        subs = self.load()
        return self._save("reorder_group_members", subs, grouping.reorder_members(subs, key, id_order))

    def sort_by_price(self):
        subs = self.load()
        return self._save("sort_by_price", subs, grouping.sort_by_price(subs))
