from django.contrib import admin, messages

from .exceptions import OrderingError
from .models import AdminPaymentGroup, Category, MenuItem, PaymentMethod, Variation
from .services.collections import get_store
from .services.sequencer import Sequencer


@admin.action(description="Renumber sort order 1..N (close gaps)")
def normalize_sort_order(modeladmin, request, queryset):
    """Normalizes the model's whole collection, whatever rows are selected."""
    name = modeladmin.collection_name
    try:
        rows = Sequencer(get_store(name)).normalize()
    except OrderingError as e:
        modeladmin.message_user(request, f"Could not renumber {name}: {e}", messages.ERROR)
        return
    modeladmin.message_user(request, f"Renumbered {len(rows)} {name}.")


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    """
    Admin interface for the Category model.
    """
    collection_name = "categories"
    list_display = ("id", "name", "sort_order", "active")
    actions = [normalize_sort_order]


class VariationInline(admin.TabularInline):
    model = Variation
    extra = 0
    fields = ("name", "price", "category", "sort", "sort_order")
    ordering = ("sort_order",)


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    """
    Admin interface for the MenuItem model.
    """
    collection_name = "menu-items"
    list_display = ("name", "category", "sort_order", "available", "popular")
    list_filter = ("category", "available")
    inlines = [VariationInline]
    actions = [normalize_sort_order]


@admin.register(AdminPaymentGroup)
class AdminPaymentGroupAdmin(admin.ModelAdmin):
    list_display = ("admin_name", "is_active")


@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    """
    Admin interface for the PaymentMethod model.
    """
    collection_name = "payment-methods"
    list_display = ("name", "code", "admin_name", "sort_order", "active")
    list_filter = ("admin_name", "active")
    actions = [normalize_sort_order]
