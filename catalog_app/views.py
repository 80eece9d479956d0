"""
Read-only listing endpoints. Rows come back sorted by rank; the admin
console re-reads these after any failed reorder.
"""

from django.db.models import Prefetch
from rest_framework import viewsets

from .models import AdminPaymentGroup, Category, MenuItem, PaymentMethod, Variation
from .serializers import (
    AdminPaymentGroupSerializer,
    CategorySerializer,
    MenuItemSerializer,
    PaymentMethodSerializer,
)


class CategoryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Category.objects.order_by("sort_order", "id")
    serializer_class = CategorySerializer


class MenuItemViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = MenuItem.objects.order_by("sort_order", "id").prefetch_related(
        Prefetch("variations", queryset=Variation.objects.order_by("sort_order", "id"))
    )
    serializer_class = MenuItemSerializer


class AdminPaymentGroupViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AdminPaymentGroup.objects.order_by("admin_name")
    serializer_class = AdminPaymentGroupSerializer


class PaymentMethodViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = PaymentMethod.objects.order_by("sort_order", "uuid_id")
    serializer_class = PaymentMethodSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        admin_name = self.request.query_params.get("admin_name")
        if admin_name is not None:
            qs = qs.filter(admin_name=admin_name)
        return qs
