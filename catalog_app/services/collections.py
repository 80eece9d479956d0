"""
Named ordered collections exposed to the admin console.
"""

from catalog_app.models import Category, MenuItem, PaymentMethod
from catalog_app.services.rank_store import RankStore

COLLECTIONS = {
    "categories": Category,
    "menu-items": MenuItem,
    "payment-methods": PaymentMethod,
}


def get_store(name, admin_name=None):
    """
    RankStore for a collection name, or None if unknown. Payment methods can
    be scoped to one admin group; the whole table is one collection otherwise.
    """
    model = COLLECTIONS.get(name)
    if model is None:
        return None
    queryset = model.objects.all()
    if model is PaymentMethod and admin_name is not None:
        queryset = queryset.filter(admin_name=admin_name)
    return RankStore(queryset)
