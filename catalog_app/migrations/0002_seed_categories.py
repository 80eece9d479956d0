# Data migration: seed default storefront categories

from django.db import migrations


def seed_categories(apps, schema_editor):
    Category = apps.get_model("catalog_app", "Category")
    categories = [
        (1, "mobile-games", "Mobile Games", "📱"),
        (2, "pc-games", "PC Games", "🖥️"),
        (3, "gift-cards", "Gift Cards", "🎁"),
    ]
    for position, slug, name, icon in categories:
        Category.objects.get_or_create(
            id=slug,
            defaults={"name": name, "icon": icon, "sort_order": position},
        )


def noop(apps, schema_editor):
    pass


class Migration(migrations.Migration):
    dependencies = [
        ("catalog_app", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_categories, noop),
    ]
