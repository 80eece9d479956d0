"""
Tests for catalog_app: sequencer, variation grouping, optimistic state, API, WebSocket.
"""

import json
from decimal import Decimal
from unittest.mock import patch
from urllib.parse import quote

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.test import Client, SimpleTestCase, TestCase, TransactionTestCase

from catalog_app.exceptions import (
    ConfirmationRequired,
    InvalidOrderError,
    PersistenceError,
    UnknownGroupError,
)
from catalog_app.models import Category, MenuItem, PaymentMethod, Variation
from catalog_app.routing import websocket_urlpatterns
from catalog_app.services import grouping
from catalog_app.services.collection_state import CONFIRMED, PENDING, TrackedCollection
from catalog_app.services.collections import get_store
from catalog_app.services.rank_store import RankedRow, RankStore
from catalog_app.services.sequencer import (
    Sequencer,
    changed_ranks,
    normalize_rows,
    plan_reorder,
    plan_shift_insert,
)
from catalog_app.services.variation_groups import VariationGroups
from catalog_app.utils import parse_rank


def _rows(**ranks):
    return [RankedRow(row_id, rank) for row_id, rank in ranks.items()]


def _as_dict(rows):
    return {row.id: row.rank for row in rows}


def _variation(name, category=None, sort=None, sort_order=0, price="0"):
    return Variation(
        name=name, category=category, sort=sort, sort_order=sort_order, price=Decimal(price)
    )


def _menu_items(*names):
    return [
        MenuItem.objects.create(name=name, sort_order=pos)
        for pos, name in enumerate(names, start=1)
    ]


def _ranks(model=MenuItem):
    return {str(obj.pk): obj.sort_order for obj in model.objects.all()}


class SequencerPlanTest(SimpleTestCase):
    def test_reorder_assigns_positions(self):
        rows = _rows(a=1, b=2, c=3)
        self.assertEqual(_as_dict(plan_reorder(rows, ["b", "a", "c"])), {"b": 1, "a": 2, "c": 3})

    def test_reorder_identity_changes_nothing(self):
        rows = _rows(a=1, b=2, c=3)
        self.assertEqual(changed_ranks(rows, plan_reorder(rows, ["a", "b", "c"])), [])

    def test_reorder_rejects_bad_permutations(self):
        rows = _rows(a=1, b=2, c=3)
        for order in (["a", "b"], ["a", "b", "b"], ["a", "b", "c", "d"], ["a", "b", "x"]):
            with self.assertRaises(InvalidOrderError):
                plan_reorder(rows, order)

    def test_reorder_empty_and_single(self):
        self.assertEqual(plan_reorder([], []), [])
        self.assertEqual(plan_reorder(_rows(a=1), ["a"]), _rows(a=1))

    def test_shift_insert_moves_up(self):
        rows = _rows(a=1, b=2, c=3, d=4)
        result = plan_shift_insert(rows, 2, "d")
        self.assertEqual([r.id for r in result], ["a", "d", "b", "c"])
        self.assertEqual(_as_dict(result), {"a": 1, "d": 2, "b": 3, "c": 4})

    def test_shift_insert_past_end_appends(self):
        result = plan_shift_insert(_rows(a=1, b=2, c=3), 10, "a")
        self.assertEqual(_as_dict(result), {"b": 1, "c": 2, "a": 3})

    def test_shift_insert_closes_gaps(self):
        result = plan_shift_insert(_rows(a=2, b=5, c=9), 1, "c")
        self.assertEqual(_as_dict(result), {"c": 1, "a": 2, "b": 3})

    def test_shift_insert_rejects_bad_input(self):
        rows = _rows(a=1, b=2)
        with self.assertRaises(InvalidOrderError):
            plan_shift_insert(rows, 0, "a")
        with self.assertRaises(InvalidOrderError):
            plan_shift_insert(rows, 1, "zzz")
        with self.assertRaises(InvalidOrderError):
            plan_shift_insert(rows, "2", "a")

    def test_normalize_keeps_position_for_ties(self):
        result = normalize_rows(_rows(a=3, b=3, c=1))
        self.assertEqual([r.id for r in result], ["c", "a", "b"])
        self.assertEqual([r.rank for r in result], [1, 2, 3])


class SequencerStoreTest(TestCase):
    def setUp(self):
        self.store = get_store("menu-items")

    def test_reorder_persists(self):
        a, b, c = _menu_items("A", "B", "C")
        Sequencer(self.store).reorder([str(b.id), str(a.id), str(c.id)])
        self.assertEqual(_ranks(), {str(b.id): 1, str(a.id): 2, str(c.id): 3})

    def test_drag_to_top(self):
        x, y, z = _menu_items("X", "Y", "Z")
        Sequencer(self.store).reorder([str(z.id), str(x.id), str(y.id)])
        self.assertEqual(list(MenuItem.objects.values_list("name", flat=True)), ["Z", "X", "Y"])

    def test_shift_insert_persists(self):
        a, b, c, d = _menu_items("A", "B", "C", "D")
        Sequencer(self.store).shift_insert(2, str(d.id))
        self.assertEqual(list(MenuItem.objects.values_list("name", "sort_order")), [
            ("A", 1), ("D", 2), ("B", 3), ("C", 4),
        ])

    def test_ranks_stay_dense(self):
        items = [MenuItem.objects.create(name=n, sort_order=r) for n, r in
                 [("A", 3), ("B", 3), ("C", 7), ("D", 0), ("E", 12)]]
        seq = Sequencer(self.store)
        seq.shift_insert(2, str(items[4].id))
        self.assertEqual(sorted(_ranks().values()), [1, 2, 3, 4, 5])
        seq.reorder([str(i.id) for i in reversed(items)])
        self.assertEqual(sorted(_ranks().values()), [1, 2, 3, 4, 5])
        seq.shift_insert(99, str(items[0].id))
        self.assertEqual(sorted(_ranks().values()), [1, 2, 3, 4, 5])
        self.assertEqual(MenuItem.objects.get(pk=items[0].pk).sort_order, 5)

    def test_identity_reorder_writes_nothing(self):
        items = _menu_items("A", "B", "C")
        with self.assertNumQueries(1):
            Sequencer(self.store).reorder([str(i.id) for i in items])

    def test_invalid_reorder_writes_nothing(self):
        a, b, c = _menu_items("A", "B", "C")
        before = _ranks()
        with self.assertRaises(InvalidOrderError):
            Sequencer(self.store).reorder([str(c.id), str(a.id)])
        with self.assertRaises(InvalidOrderError):
            Sequencer(self.store).reorder(["not-a-uuid", str(a.id), str(b.id)])
        self.assertEqual(_ranks(), before)

    def test_failed_batch_rolls_back(self):
        a, b, c = _menu_items("A", "B", "C")
        before = _ranks()
        real_set_rank = RankStore.set_rank
        calls = []

        def flaky(store, row_id, rank):
            calls.append(row_id)
            if len(calls) == 2:
                raise PersistenceError("backend unavailable")
            return real_set_rank(store, row_id, rank)

        with patch.object(RankStore, "set_rank", autospec=True, side_effect=flaky):
            with self.assertRaises(PersistenceError):
                Sequencer(self.store).reorder([str(c.id), str(b.id), str(a.id)])
        self.assertEqual(len(calls), 2)
        self.assertEqual(_ranks(), before)

    def test_set_rank_on_missing_row_fails(self):
        with self.assertRaises(PersistenceError):
            self.store.set_rank("00000000-0000-0000-0000-000000000000", 1)

    def test_payment_methods_scoped_by_admin_group(self):
        ana = [PaymentMethod.objects.create(code=f"a{i}", name=f"A{i}", admin_name="Ana", sort_order=i)
               for i in (1, 2)]
        ben = PaymentMethod.objects.create(code="b1", name="B1", admin_name="Ben", sort_order=7)
        store = get_store("payment-methods", admin_name="Ana")
        Sequencer(store).reorder([str(ana[1].uuid_id), str(ana[0].uuid_id)])
        ranks = _ranks(PaymentMethod)
        self.assertEqual(ranks[str(ana[1].uuid_id)], 1)
        self.assertEqual(ranks[str(ana[0].uuid_id)], 2)
        self.assertEqual(ranks[str(ben.uuid_id)], 7)

    def test_seeded_categories_shift(self):
        store = get_store("categories")
        self.assertEqual([r.id for r in store.fetch_all()], ["mobile-games", "pc-games", "gift-cards"])
        Sequencer(store).shift_insert(1, "gift-cards")
        self.assertEqual(
            list(Category.objects.values_list("id", flat=True)),
            ["gift-cards", "mobile-games", "pc-games"],
        )

    def test_normalize_closes_gaps(self):
        MenuItem.objects.create(name="A", sort_order=4)
        MenuItem.objects.create(name="B", sort_order=9)
        Sequencer(self.store).normalize()
        self.assertEqual(list(MenuItem.objects.values_list("name", "sort_order")), [("A", 1), ("B", 2)])


class GroupingTest(SimpleTestCase):
    def test_group_by_orders_by_rank_then_first_seen(self):
        subs = [
            _variation("u1"),
            _variation("g1", "Gems", sort=2),
            _variation("d1", "Diamonds", sort=1),
            _variation("s1", "Skins"),
            _variation("g2", "Gems", sort=5),
        ]
        groups = grouping.group_by(subs)
        self.assertEqual(
            [g.key for g in groups],
            ["Diamonds", "Gems", grouping.ANONYMOUS_KEY, "Skins"],
        )
        self.assertEqual(groups[1].rank, 2)
        self.assertIsNone(groups[2].rank)

    def test_unset_groups_stable_across_calls(self):
        subs = [_variation("a", "X"), _variation("b", "Y"), _variation("c", "X", sort=999)]
        first = [g.key for g in grouping.group_by(subs)]
        for _ in range(5):
            self.assertEqual([g.key for g in grouping.group_by(subs)], first)
        self.assertEqual(first, ["X", "Y"])

    def test_members_follow_sort_order(self):
        subs = [_variation("b", "X", sort_order=2), _variation("a", "X", sort_order=1)]
        self.assertEqual([m.name for m in grouping.group_by(subs)[0].members], ["a", "b"])

    def test_blank_category_is_anonymous(self):
        groups = grouping.group_by([_variation("a", "   "), _variation("b")])
        self.assertEqual(len(groups), 1)
        self.assertTrue(groups[0].is_anonymous)
        self.assertEqual(groups[0].name, "")

    def test_rename_through_empty_keeps_members_together(self):
        d1, d2 = _variation("d1", "Diamonds", sort=1), _variation("d2", "Diamonds", sort=1)
        other = _variation("loose")
        subs = [d1, d2, other]

        grouping.rename(subs, "Diamonds", "")
        groups = grouping.group_by(subs)
        self.assertEqual(len(groups), 2)
        placeholder = groups[0]
        self.assertTrue(placeholder.is_placeholder)
        self.assertEqual(placeholder.name, "")
        self.assertEqual(placeholder.key, grouping.placeholder_key(d1.id))
        self.assertEqual({m.name for m in placeholder.members}, {"d1", "d2"})

        grouping.rename(subs, placeholder.key, "Gems")
        groups = grouping.group_by(subs)
        self.assertEqual([g.key for g in groups], ["Gems", grouping.ANONYMOUS_KEY])
        self.assertEqual({m.name for m in groups[0].members}, {"d1", "d2"})
        self.assertEqual([m.name for m in groups[1].members], ["loose"])

    def test_single_member_placeholder_round_trip(self):
        only = _variation("only", "Bundles", sort=3)
        subs = [only]
        grouping.rename(subs, "Bundles", "  ")
        key = grouping.group_by(subs)[0].key
        grouping.rename(subs, key, "")
        self.assertEqual(grouping.group_by(subs)[0].key, key)
        grouping.rename(subs, key, "Bundles")
        self.assertEqual(only.category, "Bundles")
        self.assertEqual(only.sort, 3)

    def test_rename_keeps_whitespace(self):
        subs = [_variation("a", "X")]
        grouping.rename(subs, "X", "  Weekly Pass ")
        self.assertEqual(subs[0].category, "  Weekly Pass ")

    def test_rename_anonymous_to_empty_is_noop(self):
        subs = [_variation("a")]
        self.assertEqual(grouping.rename(subs, grouping.ANONYMOUS_KEY, ""), [])
        self.assertIsNone(subs[0].category)

    def test_rename_rejects_reserved_names(self):
        subs = [_variation("a", "X")]
        with self.assertRaises(InvalidOrderError):
            grouping.rename(subs, "X", grouping.ANONYMOUS_KEY)
        with self.assertRaises(InvalidOrderError):
            grouping.rename(subs, "X", grouping.placeholder_key("abc"))

    def test_unknown_group(self):
        with self.assertRaises(UnknownGroupError):
            grouping.rename([_variation("a", "X")], "Y", "Z")

    def test_update_group_applies_rank_and_name(self):
        subs = [_variation("a", "X", sort=1), _variation("b", "X", sort=1)]
        changed = grouping.update_group(subs, "X", name="Y", rank=3)
        self.assertEqual(len(changed), 2)
        self.assertEqual([(s.category, s.sort) for s in subs], [("Y", 3), ("Y", 3)])

    def test_update_group_checks_both_values_first(self):
        subs = [_variation("a", "X", sort=1)]
        with self.assertRaises(InvalidOrderError):
            grouping.update_group(subs, "X", name=grouping.ANONYMOUS_KEY, rank=5)
        with self.assertRaises(InvalidOrderError):
            grouping.update_group(subs, "X", name="Y", rank=0)
        self.assertEqual((subs[0].category, subs[0].sort), ("X", 1))

    def test_set_rank_and_unset(self):
        subs = [_variation("a", "X", sort=1), _variation("b", "X", sort=1), _variation("c", "Y", sort=2)]
        changed = grouping.set_rank(subs, "X", 5)
        self.assertEqual(len(changed), 2)
        self.assertEqual([g.key for g in grouping.group_by(subs)], ["Y", "X"])
        grouping.set_rank(subs, "X", grouping.UNSET_RANK)
        self.assertEqual([s.sort for s in subs], [None, None, 2])
        with self.assertRaises(InvalidOrderError):
            grouping.set_rank(subs, "X", -1)

    def test_delete_group_moves_members_to_anonymous(self):
        subs = [_variation(f"d{i}", "Diamonds", sort=1) for i in range(3)]
        subs.append(_variation("g", "Gems", sort=2))
        changed = grouping.delete_group(subs, "Diamonds")
        self.assertEqual(len(changed), 3)
        for sub in subs[:3]:
            self.assertIsNone(sub.category)
            self.assertIsNone(sub.sort)
        groups = grouping.group_by(subs)
        self.assertEqual([g.key for g in groups], ["Gems", grouping.ANONYMOUS_KEY])
        self.assertEqual(len(groups[1].members), 3)

    def test_add_member_joins_group(self):
        subs = [_variation("a", "X", sort=2, sort_order=0), _variation("b", "X", sort=2, sort_order=4),
                _variation("c", "Y", sort=1)]
        new = _variation("new")
        grouping.add_member(subs, "X", new)
        self.assertEqual((new.category, new.sort, new.sort_order), ("X", 2, 5))
        self.assertEqual([(g.key, g.rank) for g in grouping.group_by(subs)], [("Y", 1), ("X", 2)])

    def test_add_member_to_placeholder_and_empty_anonymous(self):
        subs = [_variation("a", "X")]
        grouping.rename(subs, "X", "")
        key = grouping.group_by(subs)[0].key
        new = _variation("b")
        grouping.add_member(subs, key, new)
        self.assertEqual(new.category, key)
        loose = _variation("c", "Temp")
        grouping.add_member(subs, grouping.ANONYMOUS_KEY, loose)
        self.assertIsNone(loose.category)
        with self.assertRaises(UnknownGroupError):
            grouping.add_member(subs, "Missing", _variation("d"))

    def test_create_group_defaults(self):
        subs = [_variation("a", "X", sort=4), _variation("b")]
        new = _variation("n")
        grouping.create_group(subs, new)
        self.assertEqual((new.category, new.sort), ("Category 3", 5))
        with self.assertRaises(InvalidOrderError):
            grouping.create_group(subs, _variation("m"), name="X")

    def test_reorder_groups(self):
        subs = [_variation("a", "X", sort=1), _variation("b", "Y", sort=2), _variation("c")]
        grouping.reorder_groups(subs, [grouping.ANONYMOUS_KEY, "Y", "X"])
        self.assertEqual([s.sort for s in subs], [3, 2, 1])
        self.assertEqual([g.key for g in grouping.group_by(subs)], [grouping.ANONYMOUS_KEY, "Y", "X"])
        self.assertIsNone(subs[2].category)
        with self.assertRaises(InvalidOrderError):
            grouping.reorder_groups(subs, ["X", "Y"])
        with self.assertRaises(InvalidOrderError):
            grouping.reorder_groups(subs, ["X", "X", "Y"])

    def test_reorder_members(self):
        a, b, c = _variation("a", "X"), _variation("b", "X", sort_order=1), _variation("c", "X", sort_order=2)
        grouping.reorder_members([a, b, c], "X", [str(c.id), str(a.id), str(b.id)])
        self.assertEqual([c.sort_order, a.sort_order, b.sort_order], [0, 1, 2])
        with self.assertRaises(InvalidOrderError):
            grouping.reorder_members([a, b, c], "X", [str(a.id)])

    def test_sort_by_price(self):
        subs = [_variation("big", price="500"), _variation("small", price="10", sort_order=3),
                _variation("mid", price="99.50", sort_order=1)]
        grouping.sort_by_price(subs)
        self.assertEqual([s.sort_order for s in subs], [2, 0, 1])


class VariationGroupsTest(TestCase):
    def setUp(self):
        self.item = MenuItem.objects.create(name="Mobile Legends")
        self.diamonds = [
            Variation.objects.create(menu_item=self.item, name=f"{n} Diamonds", price=n,
                                     category="Diamonds", sort=1, sort_order=i)
            for i, n in enumerate((11, 56, 112))
        ]
        self.loose = Variation.objects.create(menu_item=self.item, name="Starlight", price=300)
        self.service = VariationGroups(self.item)

    def test_groups(self):
        groups = self.service.groups()
        self.assertEqual([g.key for g in groups], ["Diamonds", grouping.ANONYMOUS_KEY])
        self.assertEqual([m.name for m in groups[0].members], ["11 Diamonds", "56 Diamonds", "112 Diamonds"])

    def test_rename_round_trip_persists(self):
        self.service.update("Diamonds", name="")
        key = grouping.placeholder_key(self.diamonds[0].id)
        self.assertEqual(Variation.objects.filter(category=key).count(), 3)
        groups = self.service.update(key, name="Gems")
        self.assertEqual(groups[0].name, "Gems")
        self.assertEqual(Variation.objects.filter(category="Gems").count(), 3)
        self.assertIsNone(Variation.objects.get(pk=self.loose.pk).category)

    def test_delete_requires_confirmation(self):
        with self.assertRaises(ConfirmationRequired):
            self.service.delete_group("Diamonds")
        self.assertEqual(Variation.objects.filter(category="Diamonds").count(), 3)
        self.service.delete_group("Diamonds", confirmed=True)
        self.assertEqual(Variation.objects.filter(category__isnull=True, sort__isnull=True).count(), 4)
        self.assertEqual(len(self.service.groups()), 1)

    def test_add_member_and_create_group(self):
        self.service.add_member("Diamonds", name="224 Diamonds", price="350")
        added = Variation.objects.get(name="224 Diamonds")
        self.assertEqual((added.category, added.sort, added.sort_order), ("Diamonds", 1, 3))
        groups = self.service.create_group(group_name="Passes", name="Weekly Pass", price="149")
        self.assertEqual([g.key for g in groups], ["Diamonds", "Passes", grouping.ANONYMOUS_KEY])
        self.assertEqual(Variation.objects.get(category="Passes").sort, 2)

    def test_reorder_groups_persists(self):
        self.service.reorder_groups([grouping.ANONYMOUS_KEY, "Diamonds"])
        self.assertEqual(Variation.objects.get(pk=self.loose.pk).sort, 1)
        self.assertEqual(set(Variation.objects.filter(category="Diamonds").values_list("sort", flat=True)), {2})

    def test_sort_by_price_persists(self):
        self.service.sort_by_price()
        names = list(
            Variation.objects.filter(menu_item=self.item).order_by("sort_order").values_list("name", flat=True)
        )
        self.assertEqual(names, ["11 Diamonds", "56 Diamonds", "112 Diamonds", "Starlight"])


class TrackedCollectionTest(TestCase):
    def setUp(self):
        self.items = _menu_items("A", "B", "C")
        self.snapshots = []
        self.tracked = TrackedCollection(get_store("menu-items"), on_pending=self.snapshots.append)

    def test_apply_reorder_confirms(self):
        ids = [str(i.id) for i in reversed(self.items)]
        rows = self.tracked.apply_reorder(ids)
        self.assertEqual([r.id for r in rows], ids)
        self.assertEqual(self.tracked.state, CONFIRMED)
        self.assertEqual(len(self.snapshots), 1)
        self.assertEqual(self.snapshots[0]["state"], PENDING)
        self.assertEqual([i["id"] for i in self.snapshots[0]["items"]], ids)

    def test_failure_discards_pending(self):
        before = self.tracked.rows
        with patch.object(RankStore, "write_ranks", side_effect=PersistenceError("down")):
            with self.assertRaises(PersistenceError):
                self.tracked.apply_shift_insert(1, str(self.items[2].id))
        self.assertEqual(len(self.snapshots), 1)
        self.assertEqual(self.tracked.state, CONFIRMED)
        self.assertEqual(self.tracked.rows, before)

    def test_invalid_input_publishes_nothing(self):
        with self.assertRaises(InvalidOrderError):
            self.tracked.apply_reorder([str(self.items[0].id)])
        self.assertEqual(self.snapshots, [])

    def test_plans_against_rows_added_since_load(self):
        added = MenuItem.objects.create(name="D", sort_order=4)
        ids = [str(added.id)] + [str(i.id) for i in self.items]
        rows = self.tracked.apply_reorder(ids)
        self.assertEqual([r.id for r in rows], ids)
        self.assertEqual(MenuItem.objects.get(pk=added.pk).sort_order, 1)


class ParseRankTest(SimpleTestCase):
    def test_accepts_positive_integers(self):
        self.assertEqual(parse_rank(3), 3)
        self.assertEqual(parse_rank("2"), 2)
        self.assertEqual(parse_rank(4.0), 4)

    def test_rejects_everything_else(self):
        for value in (2.7, "2.7", 0, -1, True, None, "x", [1], float("inf")):
            self.assertIsNone(parse_rank(value), value)


class ApiOrderTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.items = _menu_items("X", "Y", "Z")

    def _patch(self, url, body):
        return self.client.patch(url, data=json.dumps(body), content_type="application/json")

    def test_reorder(self):
        x, y, z = self.items
        response = self._patch("/api/order/menu-items/reorder/", {"ids": [str(z.id), str(x.id), str(y.id)]})
        self.assertEqual(response.status_code, 200)
        data = json.loads(response.content)
        self.assertEqual(data["items"][0], {"id": str(z.id), "rank": 1})
        listing = json.loads(self.client.get("/api/menu-items/").content)
        self.assertEqual([m["name"] for m in listing], ["Z", "X", "Y"])

    def test_reorder_invalid_permutation(self):
        response = self._patch("/api/order/menu-items/reorder/", {"ids": [str(self.items[0].id)]})
        self.assertEqual(response.status_code, 400)

    def test_unknown_collection(self):
        response = self._patch("/api/order/orders/reorder/", {"ids": []})
        self.assertEqual(response.status_code, 404)

    def test_shift(self):
        response = self._patch("/api/order/menu-items/shift/", {"id": str(self.items[2].id), "rank": 1})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(list(MenuItem.objects.values_list("name", flat=True)), ["Z", "X", "Y"])

    def test_shift_bad_rank(self):
        for rank in (0, 2.7):
            response = self._patch("/api/order/menu-items/shift/", {"id": str(self.items[2].id), "rank": rank})
            self.assertEqual(response.status_code, 400)
        self.assertEqual(list(MenuItem.objects.values_list("name", flat=True)), ["X", "Y", "Z"])

    def test_persistence_failure_is_503(self):
        with patch.object(RankStore, "write_ranks", side_effect=PersistenceError("down")):
            response = self._patch(
                "/api/order/menu-items/reorder/",
                {"ids": [str(i.id) for i in reversed(self.items)]},
            )
        self.assertEqual(response.status_code, 503)
        self.assertEqual(json.loads(response.content)["error"], "persistence_failed")

    def test_invalid_json(self):
        response = self.client.patch(
            "/api/order/menu-items/reorder/", data="{nope", content_type="application/json"
        )
        self.assertEqual(response.status_code, 400)


class ApiGroupsTest(TestCase):
    def setUp(self):
        self.client = Client()
        self.item = MenuItem.objects.create(name="Genshin Impact")
        for i, n in enumerate((60, 300)):
            Variation.objects.create(menu_item=self.item, name=f"{n} Crystals", price=n,
                                     category="Genesis Crystals", sort=1, sort_order=i)
        self.base = f"/api/menu-items/{self.item.id}"

    def _group_url(self, key, suffix=""):
        return f"{self.base}/groups/{quote(key)}/{suffix}"

    def test_list_groups(self):
        response = self.client.get(f"{self.base}/groups/")
        self.assertEqual(response.status_code, 200)
        groups = json.loads(response.content)["groups"]
        self.assertEqual(groups[0]["name"], "Genesis Crystals")
        self.assertEqual(len(groups[0]["members"]), 2)

    def test_unknown_menu_item(self):
        response = self.client.get("/api/menu-items/00000000-0000-0000-0000-000000000000/groups/")
        self.assertEqual(response.status_code, 404)

    def test_rename_to_empty_and_back(self):
        response = self.client.patch(
            self._group_url("Genesis Crystals"), data=json.dumps({"name": ""}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        group = json.loads(response.content)["groups"][0]
        self.assertEqual(group["name"], "")
        self.assertFalse(group["anonymous"])
        response = self.client.patch(
            self._group_url(group["key"]), data=json.dumps({"name": "Crystals", "rank": 2}),
            content_type="application/json",
        )
        group = json.loads(response.content)["groups"][0]
        self.assertEqual((group["name"], group["rank"], len(group["members"])), ("Crystals", 2, 2))

    def test_delete_needs_confirm(self):
        response = self.client.delete(self._group_url("Genesis Crystals"))
        self.assertEqual(response.status_code, 409)
        response = self.client.delete(self._group_url("Genesis Crystals") + "?confirm=1")
        self.assertEqual(response.status_code, 200)
        groups = json.loads(response.content)["groups"]
        self.assertTrue(groups[0]["anonymous"])

    def test_rank_and_bad_name_write_nothing(self):
        response = self.client.patch(
            self._group_url("Genesis Crystals"),
            data=json.dumps({"rank": 5, "name": grouping.ANONYMOUS_KEY}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(set(Variation.objects.values_list("sort", flat=True)), {1})
        response = self.client.patch(
            self._group_url("Genesis Crystals"),
            data=json.dumps({"rank": "high", "name": "Crystals"}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(set(Variation.objects.values_list("category", flat=True)), {"Genesis Crystals"})

    def test_unknown_group_is_404(self):
        response = self.client.patch(
            self._group_url("Nope"), data=json.dumps({"rank": 1}), content_type="application/json"
        )
        self.assertEqual(response.status_code, 404)

    def test_add_member_and_create_group(self):
        response = self.client.post(
            self._group_url("Genesis Crystals", "members/"),
            data=json.dumps({"package": {"name": "980 Crystals", "price": "980"}}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Variation.objects.filter(category="Genesis Crystals").count(), 3)
        response = self.client.post(
            f"{self.base}/groups/", data=json.dumps({"package": {"price": "-1"}}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.post(f"{self.base}/groups/", data="{}", content_type="application/json")
        self.assertEqual(response.status_code, 201)
        keys = [g["key"] for g in json.loads(response.content)["groups"]]
        self.assertEqual(keys, ["Genesis Crystals", "Category 2"])

    def test_sort_by_price(self):
        Variation.objects.create(menu_item=self.item, name="Cheap", price="0.99", sort_order=5)
        response = self.client.post(f"{self.base}/sort-by-price/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Variation.objects.get(name="Cheap").sort_order, 0)

    def test_reorder_groups_and_members(self):
        Variation.objects.create(menu_item=self.item, name="Welkin", price=250)
        response = self.client.patch(
            f"{self.base}/group-order/",
            data=json.dumps({"keys": [grouping.ANONYMOUS_KEY, "Genesis Crystals"]}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        groups = json.loads(response.content)["groups"]
        self.assertEqual([g["rank"] for g in groups], [1, 2])
        ids = [m["id"] for m in groups[1]["members"]]
        response = self.client.patch(
            self._group_url("Genesis Crystals", "members/"),
            data=json.dumps({"ids": list(reversed(ids))}),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        members = json.loads(response.content)["groups"][1]["members"]
        self.assertEqual([m["id"] for m in members], list(reversed(ids)))


class WebSocketTest(TransactionTestCase):
    serialized_rollback = True

    def _run(self, path, messages):
        async def run():
            communicator = WebsocketCommunicator(URLRouter(websocket_urlpatterns), path)
            connected, _ = await communicator.connect()
            received = []
            if connected:
                received.append(await communicator.receive_json_from(timeout=5))
                for message, replies in messages:
                    await communicator.send_json_to(message)
                    for _ in range(replies):
                        received.append(await communicator.receive_json_from(timeout=5))
                await communicator.disconnect()
            return connected, received

        return async_to_sync(run)()

    def test_reorder_pending_then_confirmed(self):
        x, y, z = _menu_items("X", "Y", "Z")
        ids = [str(z.id), str(x.id), str(y.id)]
        connected, received = self._run("/ws/catalog/menu-items/", [({"action": "reorder", "ids": ids}, 2)])
        self.assertTrue(connected)
        initial, pending, confirmed = received
        self.assertEqual(initial["action"], "initial")
        self.assertEqual(pending["action"], "pending")
        self.assertEqual(pending["state"], PENDING)
        self.assertEqual(confirmed["action"], "confirmed")
        self.assertEqual([i["id"] for i in confirmed["items"]], ids)
        self.assertEqual(list(MenuItem.objects.values_list("name", flat=True)), ["Z", "X", "Y"])

    def test_invalid_gesture_reports_error(self):
        x, y = _menu_items("X", "Y")
        connected, received = self._run(
            "/ws/catalog/menu-items/", [({"action": "shift", "id": str(x.id), "rank": 0}, 1)]
        )
        self.assertTrue(connected)
        self.assertEqual(received[1]["action"], "error")

    def test_malformed_messages_get_error_and_socket_stays_open(self):
        x, y = _menu_items("X", "Y")
        ids = [str(y.id), str(x.id)]
        connected, received = self._run(
            "/ws/catalog/menu-items/",
            [
                ({"action": "reorder", "ids": 5}, 1),
                (["reorder"], 1),
                ({"action": "shift", "id": str(x.id), "rank": 2.5}, 1),
                ({"action": "reorder", "ids": ids}, 2),
            ],
        )
        self.assertTrue(connected)
        self.assertEqual([m["action"] for m in received], ["initial", "error", "error", "error", "pending", "confirmed"])
        self.assertEqual([i["id"] for i in received[-1]["items"]], ids)

    def test_shift_accepts_numeric_string_rank(self):
        x, y = _menu_items("X", "Y")
        connected, received = self._run(
            "/ws/catalog/menu-items/", [({"action": "shift", "id": str(y.id), "rank": "1"}, 2)]
        )
        self.assertEqual([m["action"] for m in received], ["initial", "pending", "confirmed"])
        self.assertEqual(list(MenuItem.objects.values_list("name", flat=True)), ["Y", "X"])

    def test_failed_write_sends_resync(self):
        x, y, z = _menu_items("X", "Y", "Z")
        with patch.object(RankStore, "write_ranks", side_effect=PersistenceError("down")):
            connected, received = self._run(
                "/ws/catalog/menu-items/",
                [({"action": "reorder", "ids": [str(z.id), str(x.id), str(y.id)]}, 2)],
            )
        self.assertTrue(connected)
        initial, pending, resync = received
        self.assertEqual(
            [initial["action"], pending["action"], resync["action"]], ["initial", "pending", "resync"]
        )
        self.assertEqual(resync["state"], CONFIRMED)
        stored = [str(pk) for pk in MenuItem.objects.values_list("pk", flat=True)]
        self.assertEqual([i["id"] for i in resync["items"]], stored)
        self.assertEqual(stored, [str(x.id), str(y.id), str(z.id)])

    def test_gesture_sees_rows_added_after_connect(self):
        x, y = _menu_items("X", "Y")

        async def run():
            communicator = WebsocketCommunicator(URLRouter(websocket_urlpatterns), "/ws/catalog/menu-items/")
            await communicator.connect()
            initial = await communicator.receive_json_from(timeout=5)
            w = await database_sync_to_async(MenuItem.objects.create)(name="W", sort_order=3)
            ids = [str(w.id), str(x.id), str(y.id)]
            await communicator.send_json_to({"action": "reorder", "ids": ids})
            replies = [await communicator.receive_json_from(timeout=5) for _ in range(2)]
            await communicator.disconnect()
            return initial, ids, replies

        initial, ids, replies = async_to_sync(run)()
        self.assertEqual(len(initial["items"]), 2)
        self.assertEqual([m["action"] for m in replies], ["pending", "confirmed"])
        self.assertEqual([i["id"] for i in replies[1]["items"]], ids)

    def test_unknown_collection_rejected(self):
        connected, _ = self._run("/ws/catalog/orders/", [])
        self.assertFalse(connected)
