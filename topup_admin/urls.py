"""
URL configuration for topup_admin.
Catalog API under /api/; Django admin under /admin/.
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/", include("catalog_app.urls")),
]
