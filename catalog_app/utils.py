"""
Shared utilities for catalog_app (UUID parsing, request JSON).
"""

import json
import logging
import uuid

from django.http import JsonResponse

logger = logging.getLogger(__name__)


def parse_uuid(value):
    """Return uuid.UUID or None. Accepts None, uuid.UUID, or str."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        return None


def parse_rank(value):
    """Return a positive int, or None if value is not one. Fractional numbers are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    try:
        rank = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return rank if rank >= 1 else None


def get_request_json(request, default=None):
    """
    Parse request body as JSON. Returns (body_dict, error_response).
    On success: (body, None). On decode error: (default or {}, JsonResponse 400).
    """
    try:
        raw = request.body.decode("utf-8") or "{}"
        body = json.loads(raw)
        if not isinstance(body, dict):
            body = default if default is not None else {}
        return (body, None)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("get_request_json invalid body: %s", e)
        return (
            default if default is not None else {},
            JsonResponse({"error": "Invalid JSON"}, status=400),
        )
