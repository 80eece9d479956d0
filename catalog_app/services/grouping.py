"""
Category groups over a menu item's variations.

Groups are never stored. They are derived from each variation's `category`
(the group key) and `sort` (the group rank) every time they are read. A
group whose name is edited down to nothing keeps its identity through a
placeholder key built from one member's id, so it never falls into the
anonymous bucket, which only holds variations that never had a category.

Every mutating function works in place on the given variations and
returns the ones it changed; persisting them is the caller's job.
"""

from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings

from catalog_app.exceptions import InvalidOrderError, UnknownGroupError

ANONYMOUS_KEY = "__unnamed_category__"
PLACEHOLDER_PREFIX = "__temp_empty_"
PLACEHOLDER_SUFFIX = "__"
UNSET_RANK = getattr(settings, "CATALOG_UNSET_RANK", 999)
DEFAULT_GROUP_NAME = "Category {n}"

# marks an update_group field that was not supplied
KEEP = object()


def placeholder_key(anchor_id) -> str:
    return f"{PLACEHOLDER_PREFIX}{anchor_id}{PLACEHOLDER_SUFFIX}"


def is_placeholder_key(key) -> bool:
    return isinstance(key, str) and key.startswith(PLACEHOLDER_PREFIX)


def resolve_group_key(category) -> str:
    """Group key for a variation's category value."""
    if category is None or category.strip() == "":
        return ANONYMOUS_KEY
    return category


def is_rank_set(sort) -> bool:
    return sort is not None and sort != UNSET_RANK


@dataclass
class Group:
    key: str
    rank: Optional[int] = None
    members: list = field(default_factory=list)

    @property
    def is_anonymous(self) -> bool:
        return self.key == ANONYMOUS_KEY

    @property
    def is_placeholder(self) -> bool:
        return is_placeholder_key(self.key)

    @property
    def name(self) -> str:
        """Label from the first member's current category; empty while unnamed."""
        if not self.members:
            return ""
        category = self.members[0].category
        if category is None or not category.strip() or is_placeholder_key(category):
            return ""
        return category

    @property
    def rank_is_set(self) -> bool:
        return self.rank is not None


def _sort_order(sub) -> int:
    return sub.sort_order or 0


def group_by(subs) -> list[Group]:
    """
    Partition variations by group key. Groups come back by ascending rank,
    unset ranks last, ties in the order their key was first met in `subs`.
    Members are ordered by sort_order, ties in input order.
    """
    groups = {}
    for sub in subs:
        key = resolve_group_key(sub.category)
        group = groups.get(key)
        if group is None:
            group = groups[key] = Group(key)
        group.members.append(sub)
        if is_rank_set(sub.sort) and (group.rank is None or sub.sort < group.rank):
            group.rank = sub.sort
    for group in groups.values():
        group.members.sort(key=_sort_order)
    # dicts keep insertion order and sorted() is stable
    return sorted(groups.values(), key=lambda g: (g.rank is None, g.rank or 0))


def find_group(subs, key) -> Group:
    for group in group_by(subs):
        if group.key == key:
            return group
    raise UnknownGroupError(key)


def _check_name(name) -> None:
    if not isinstance(name, str):
        raise InvalidOrderError("Group name must be a string.")
    if name == ANONYMOUS_KEY or is_placeholder_key(name):
        raise InvalidOrderError(f"Group name {name!r} is reserved.")


def _assign(members, **values) -> list:
    changed = []
    for sub in members:
        if any(getattr(sub, attr) != value for attr, value in values.items()):
            for attr, value in values.items():
                setattr(sub, attr, value)
            changed.append(sub)
    return changed


def rename(subs, key, new_name: str) -> list:
    """
    Set every member's category to new_name, verbatim. A name that is blank
    after trimming gives the group a placeholder key instead of clearing it.
    """
    _check_name(new_name)
    group = find_group(subs, key)
    if new_name.strip():
        return _assign(group.members, category=new_name)
    if group.is_anonymous:
        return []
    if group.is_placeholder:
        return _assign(group.members, category=group.key)
    return _assign(group.members, category=placeholder_key(group.members[0].id))


def parse_group_rank(rank):
    """None for the unset sentinel, else a positive int; raises on anything else."""
    if rank is None or rank == UNSET_RANK:
        return None
    if isinstance(rank, bool) or not isinstance(rank, int) or rank < 1:
        raise InvalidOrderError(f"Group rank must be a positive integer, got {rank!r}.")
    return rank


def set_rank(subs, key, rank) -> list:
    rank = parse_group_rank(rank)
    return _assign(find_group(subs, key).members, sort=rank)


def update_group(subs, key, name=KEEP, rank=KEEP) -> list:
    """
    Apply a rank change and a rename to one group. Both values are checked
    before any member is touched, so bad input leaves subs unchanged.
    """
    if rank is not KEEP:
        rank = parse_group_rank(rank)
    if name is not KEEP:
        _check_name(name)
    group = find_group(subs, key)
    changed = []
    if rank is not KEEP:
        changed.extend(_assign(group.members, sort=rank))
    if name is not KEEP:
        renamed = rename(subs, key, name)
        changed.extend(sub for sub in renamed if sub not in changed)
    return changed


def add_member(subs, key, new_sub) -> list:
    """Attach new_sub to the group with the group's rank, after its last member."""
    try:
        group = find_group(subs, key)
    except UnknownGroupError:
        if key != ANONYMOUS_KEY:
            raise
        group = Group(ANONYMOUS_KEY)
    new_sub.category = None if group.is_anonymous else group.key
    new_sub.sort = group.rank
    new_sub.sort_order = max((_sort_order(m) for m in group.members), default=-1) + 1
    subs.append(new_sub)
    return [new_sub]


def create_group(subs, new_sub, name=None) -> list:
    """Start a new group holding new_sub, ranked after every ranked group."""
    keys = {g.key for g in group_by(subs)}
    if name is None:
        n = len(keys) + 1
        while DEFAULT_GROUP_NAME.format(n=n) in keys:
            n += 1
        name = DEFAULT_GROUP_NAME.format(n=n)
    _check_name(name)
    if name.strip() and name in keys:
        raise InvalidOrderError(f"Group {name!r} already exists.")
    ranks = [s.sort for s in subs if is_rank_set(s.sort)]
    new_sub.category = name if name.strip() else placeholder_key(new_sub.id)
    new_sub.sort = max(ranks, default=0) + 1
    new_sub.sort_order = 0
    subs.append(new_sub)
    return [new_sub]


def delete_group(subs, key) -> list:
    """Move every member to the anonymous bucket with an unset rank."""
    return _assign(find_group(subs, key).members, category=None, sort=None)


def _check_permutation(wanted, present, what) -> None:
    if len(set(wanted)) != len(wanted):
        raise InvalidOrderError(f"{what} order contains duplicates.")
    if set(wanted) != set(present):
        raise InvalidOrderError(f"{what} order must list every {what.lower()} exactly once.")


def reorder_groups(subs, key_order) -> list:
    """Give the group at position i rank i+1, written to all its members."""
    key_order = list(key_order)
    groups = {g.key: g for g in group_by(subs)}
    _check_permutation(key_order, list(groups), "Group")
    changed = []
    for pos, key in enumerate(key_order, start=1):
        changed.extend(_assign(groups[key].members, sort=pos))
    return changed


def reorder_members(subs, key, id_order) -> list:
    """Set sort_order 0..k-1 inside one group, following id_order."""
    id_order = [str(i) for i in id_order]
    members = {str(m.id): m for m in find_group(subs, key).members}
    _check_permutation(id_order, list(members), "Member")
    changed = []
    for pos, member_id in enumerate(id_order):
        changed.extend(_assign([members[member_id]], sort_order=pos))
    return changed


def sort_by_price(subs) -> list:
    """Renumber sort_order by ascending price across all variations."""
    changed = []
    for pos, sub in enumerate(sorted(subs, key=lambda s: s.price)):
        changed.extend(_assign([sub], sort_order=pos))
    return changed
