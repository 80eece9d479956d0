"""
Serialization and input validation for the catalog API.
"""

from decimal import Decimal, InvalidOperation

from django.forms import ValidationError
from rest_framework import serializers

from .models import AdminPaymentGroup, Category, MenuItem, PaymentMethod, Variation

VARIATION_NAME_MAX_LENGTH = 200


def validate_variation_name(value):
    """Packages may be created unnamed; only the length is checked."""
    name = "" if value is None else str(value).strip()
    if len(name) > VARIATION_NAME_MAX_LENGTH:
        raise ValidationError("Package name is too long.")
    return name


def validate_price(value):
    if value is None or value == "":
        return Decimal("0")
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Price must be a number.")
    if not price.is_finite() or price < 0:
        raise ValidationError("Price must be zero or more.")
    return price.quantize(Decimal("0.01"))


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ["id", "name", "icon", "sort_order", "active"]


class VariationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Variation
        fields = ["id", "name", "price", "description", "sort_order", "category", "sort"]


class MenuItemSerializer(serializers.ModelSerializer):
    variations = VariationSerializer(many=True, read_only=True)

    class Meta:
        model = MenuItem
        fields = [
            "id",
            "name",
            "description",
            "subtitle",
            "category",
            "available",
            "popular",
            "sort_order",
            "variations",
        ]


class AdminPaymentGroupSerializer(serializers.ModelSerializer):
    class Meta:
        model = AdminPaymentGroup
        fields = ["id", "admin_name", "is_active"]


class PaymentMethodSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentMethod
        fields = [
            "uuid_id",
            "code",
            "name",
            "account_number",
            "account_name",
            "admin_name",
            "active",
            "sort_order",
        ]


def group_to_dict(group):
    return {
        "key": group.key,
        "name": group.name,
        "rank": group.rank,
        "anonymous": group.is_anonymous,
        "members": VariationSerializer(group.members, many=True).data,
    }


def groups_to_dict(groups):
    return {"groups": [group_to_dict(g) for g in groups]}


def rows_to_dict(rows):
    return {"items": [row.to_dict() for row in rows]}
