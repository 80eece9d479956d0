from django.urls import include, path
from rest_framework import routers

from . import api_views
from .views import AdminPaymentGroupViewSet, CategoryViewSet, MenuItemViewSet, PaymentMethodViewSet

router = routers.DefaultRouter()
router.register(r"categories", CategoryViewSet)
router.register(r"menu-items", MenuItemViewSet)
router.register(r"admin-groups", AdminPaymentGroupViewSet)
router.register(r"payment-methods", PaymentMethodViewSet)

urlpatterns = [
    path("order/<str:collection>/reorder/", api_views.api_reorder),
    path("order/<str:collection>/shift/", api_views.api_shift_insert),
    path("menu-items/<uuid:item_id>/groups/", api_views.api_groups),
    path("menu-items/<uuid:item_id>/group-order/", api_views.api_reorder_groups),
    path("menu-items/<uuid:item_id>/sort-by-price/", api_views.api_sort_by_price),
    path("menu-items/<uuid:item_id>/groups/<path:key>/members/", api_views.api_group_members),
    path("menu-items/<uuid:item_id>/groups/<path:key>/", api_views.api_group_detail),
    path("", include(router.urls)),
]
