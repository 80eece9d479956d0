# Initial schema: catalog categories, menu items, variations, payment methods.

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.SlugField(max_length=100, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=100)),
                ("icon", models.CharField(default="☕", max_length=20)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("active", models.BooleanField(default=True)),
            ],
            options={
                "ordering": ["sort_order", "id"],
                "verbose_name_plural": "categories",
            },
        ),
        migrations.CreateModel(
            name="AdminPaymentGroup",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("admin_name", models.CharField(max_length=100, unique=True)),
                ("is_active", models.BooleanField(default=False)),
            ],
            options={
                "ordering": ["admin_name"],
            },
        ),
        migrations.CreateModel(
            name="PaymentMethod",
            fields=[
                ("uuid_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("code", models.SlugField(max_length=100)),
                ("name", models.CharField(max_length=100)),
                ("account_number", models.CharField(blank=True, default="", max_length=100)),
                ("account_name", models.CharField(blank=True, default="", max_length=100)),
                ("admin_name", models.CharField(blank=True, max_length=100, null=True)),
                ("active", models.BooleanField(default=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
            ],
            options={
                "ordering": ["sort_order", "uuid_id"],
            },
        ),
        migrations.CreateModel(
            name="MenuItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("subtitle", models.CharField(blank=True, default="", max_length=200)),
                ("available", models.BooleanField(default=True)),
                ("popular", models.BooleanField(default=False)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "category",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="menu_items",
                        to="catalog_app.category",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "id"],
                "indexes": [models.Index(fields=["category", "sort_order"], name="menuitem_category_sort_idx")],
            },
        ),
        migrations.CreateModel(
            name="Variation",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(blank=True, default="", max_length=200)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                ("description", models.TextField(blank=True, default="")),
                ("sort_order", models.IntegerField(default=0)),
                ("category", models.CharField(blank=True, max_length=200, null=True)),
                ("sort", models.IntegerField(blank=True, null=True)),
                (
                    "menu_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="variations",
                        to="catalog_app.menuitem",
                    ),
                ),
            ],
            options={
                "ordering": ["sort_order", "id"],
                "indexes": [models.Index(fields=["menu_item", "sort_order"], name="variation_item_sort_idx")],
            },
        ),
    ]
