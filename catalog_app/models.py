import uuid

from django.db import models


class Category(models.Model):
    id = models.SlugField(max_length=100, primary_key=True)
    name = models.CharField(max_length=100)
    icon = models.CharField(max_length=20, default="☕")
    sort_order = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True)

    class Meta:
        ordering = ["sort_order", "id"]
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name


class MenuItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    subtitle = models.CharField(max_length=200, blank=True, default="")
    category = models.ForeignKey(
        Category, related_name="menu_items", null=True, blank=True, on_delete=models.SET_NULL
    )
    available = models.BooleanField(default=True)
    popular = models.BooleanField(default=False)
    sort_order = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "id"]
        indexes = [models.Index(fields=["category", "sort_order"], name="menuitem_category_sort_idx")]

    def __str__(self):
        return self.name


class Variation(models.Model):
    """
    One top-up package of a menu item. `category` holds the group key
    (a name, or a placeholder while the group's name is empty), `sort` the
    group rank shared by all members, and `sort_order` the position inside
    the group.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    menu_item = models.ForeignKey(MenuItem, related_name="variations", on_delete=models.CASCADE)
    name = models.CharField(max_length=200, blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    description = models.TextField(blank=True, default="")
    sort_order = models.IntegerField(default=0)
    category = models.CharField(max_length=200, null=True, blank=True)
    sort = models.IntegerField(null=True, blank=True)

    class Meta:
        ordering = ["sort_order", "id"]
        indexes = [models.Index(fields=["menu_item", "sort_order"], name="variation_item_sort_idx")]

    def __str__(self):
        return self.name or str(self.id)


class AdminPaymentGroup(models.Model):
    admin_name = models.CharField(max_length=100, unique=True)
    is_active = models.BooleanField(default=False)

    class Meta:
        ordering = ["admin_name"]

    def __str__(self):
        return self.admin_name


class PaymentMethod(models.Model):
    uuid_id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    code = models.SlugField(max_length=100)
    name = models.CharField(max_length=100)
    account_number = models.CharField(max_length=100, blank=True, default="")
    account_name = models.CharField(max_length=100, blank=True, default="")
    admin_name = models.CharField(max_length=100, null=True, blank=True)
    active = models.BooleanField(default=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["sort_order", "uuid_id"]

    def __str__(self):
        return f"{self.name} ({self.admin_name or 'Unassigned'})"
