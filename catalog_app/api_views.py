"""
JSON endpoints for reordering collections and editing variation groups.
Every failure is reported as one error response; after a 503 the client
re-reads the collection instead of trusting its local order.
"""

import logging

from django.forms import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from catalog_app.exceptions import (
    ConfirmationRequired,
    InvalidOrderError,
    PersistenceError,
    UnknownGroupError,
)
from catalog_app.models import MenuItem
from catalog_app.serializers import groups_to_dict, rows_to_dict
from catalog_app.services.collections import get_store
from catalog_app.services.sequencer import Sequencer
from catalog_app.services.variation_groups import VariationGroups
from catalog_app.utils import get_request_json, parse_rank

logger = logging.getLogger(__name__)


def _json_400(message: str, errors: dict | None = None):
    return JsonResponse({"error": message, "errors": errors or {}}, status=400)


def _json_404(message: str = "Not found"):
    return JsonResponse({"error": message}, status=404)


def _ordering_error(e):
    """Map an engine error to its response."""
    if isinstance(e, UnknownGroupError):
        return _json_404(str(e))
    if isinstance(e, InvalidOrderError):
        return _json_400(str(e))
    if isinstance(e, ConfirmationRequired):
        return JsonResponse({"error": "confirmation_required", "message": str(e)}, status=409)
    return JsonResponse({"error": "persistence_failed", "message": str(e)}, status=503)


def _validation_message(e):
    msg = getattr(e, "messages", None) or [str(e)]
    return msg[0]


# ---------- Flat collections ----------


def _store_or_404(collection, body):
    store = get_store(collection, admin_name=body.get("admin_name"))
    if store is None:
        logger.debug("api order 404 collection=%r", collection)
        return None, _json_404("Unknown collection.")
    return store, None


@require_http_methods(["PATCH", "PUT"])
@csrf_exempt
def api_reorder(request, collection):
    """PATCH /api/order/<collection>/reorder/ - body { "ids": [...] }, full permutation."""
    body, err = get_request_json(request)
    if err is not None:
        return err
    store, err = _store_or_404(collection, body)
    if err is not None:
        return err
    try:
        rows = Sequencer(store).reorder(body.get("ids"))
    except (InvalidOrderError, PersistenceError) as e:
        logger.warning("api reorder %s failed: %s", collection, e)
        return _ordering_error(e)
    logger.info("api reorder %s count=%d", collection, len(rows))
    return JsonResponse(rows_to_dict(rows))


@require_http_methods(["PATCH", "PUT"])
@csrf_exempt
def api_shift_insert(request, collection):
    """PATCH /api/order/<collection>/shift/ - body { "id": ..., "rank": n }."""
    body, err = get_request_json(request)
    if err is not None:
        return err
    store, err = _store_or_404(collection, body)
    if err is not None:
        return err
    rank = parse_rank(body.get("rank"))
    if rank is None:
        return _json_400("rank must be a positive integer.")
    try:
        rows = Sequencer(store).shift_insert(rank, body.get("id"))
    except (InvalidOrderError, PersistenceError) as e:
        logger.warning("api shift %s failed: %s", collection, e)
        return _ordering_error(e)
    logger.info("api shift %s id=%s rank=%d", collection, body.get("id"), rank)
    return JsonResponse(rows_to_dict(rows))


# ---------- Variation groups ----------


def _groups_or_404(item_id):
    try:
        return VariationGroups(MenuItem.objects.get(pk=item_id)), None
    except MenuItem.DoesNotExist:
        logger.debug("api groups 404 item_id=%s", item_id)
        return None, _json_404("Menu item not found.")


def _package_fields(body):
    package = body.get("package") or {}
    if not isinstance(package, dict):
        package = {}
    return {
        "name": package.get("name", ""),
        "price": package.get("price", 0),
        "description": package.get("description", ""),
    }


def _get_groups(request, item_id):
    """GET /api/menu-items/<uuid>/groups/ - derived groups in display order."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    return JsonResponse(groups_to_dict(service.groups()))


def _create_group(request, item_id):
    """POST /api/menu-items/<uuid>/groups/ - body { "name"?: str, "package"?: {...} }."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    body, err = get_request_json(request)
    if err is not None:
        return err
    try:
        groups = service.create_group(group_name=body.get("name"), **_package_fields(body))
    except ValidationError as e:
        logger.warning("api create_group validation error item_id=%s", item_id)
        return _json_400(_validation_message(e))
    except (InvalidOrderError, PersistenceError) as e:
        logger.warning("api create_group failed item_id=%s: %s", item_id, e)
        return _ordering_error(e)
    logger.info("api create_group item_id=%s", item_id)
    return JsonResponse(groups_to_dict(groups), status=201)


@csrf_exempt
def api_groups(request, item_id):
    """GET or POST /api/menu-items/<id>/groups/."""
    if request.method == "GET":
        return _get_groups(request, item_id)
    if request.method == "POST":
        return _create_group(request, item_id)
    logger.warning("api_groups method not allowed: %s", request.method)
    return JsonResponse({"error": "Method not allowed"}, status=405)


@require_http_methods(["PATCH", "PUT"])
@csrf_exempt
def api_reorder_groups(request, item_id):
    """PATCH /api/menu-items/<uuid>/group-order/ - body { "keys": [...] }."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    body, err = get_request_json(request)
    if err is not None:
        return err
    keys = body.get("keys")
    if not isinstance(keys, list):
        return _json_400("keys must be a list of group keys.")
    try:
        groups = service.reorder_groups(keys)
    except (InvalidOrderError, PersistenceError) as e:
        logger.warning("api reorder_groups failed item_id=%s: %s", item_id, e)
        return _ordering_error(e)
    logger.info("api reorder_groups item_id=%s count=%d", item_id, len(keys))
    return JsonResponse(groups_to_dict(groups))


def _patch_group(request, item_id, key):
    """PATCH /api/menu-items/<uuid>/groups/<key>/ - body { "name"?: str, "rank"?: int|null }."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    body, err = get_request_json(request)
    if err is not None:
        return err
    if "name" not in body and "rank" not in body:
        return _json_400("Nothing to update.")
    fields = {field: body[field] for field in ("name", "rank") if field in body}
    try:
        groups = service.update(key, **fields)
    except (InvalidOrderError, PersistenceError) as e:
        logger.warning("api patch_group failed item_id=%s key=%r: %s", item_id, key, e)
        return _ordering_error(e)
    logger.info("api patch_group item_id=%s key=%r", item_id, key)
    return JsonResponse(groups_to_dict(groups))


def _delete_group(request, item_id, key):
    """DELETE /api/menu-items/<uuid>/groups/<key>/?confirm=1 - members go to the unnamed group."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    confirmed = request.GET.get("confirm", "").lower() in ("1", "true", "yes")
    try:
        groups = service.delete_group(key, confirmed=confirmed)
    except (InvalidOrderError, ConfirmationRequired, PersistenceError) as e:
        logger.warning("api delete_group refused item_id=%s key=%r: %s", item_id, key, e)
        return _ordering_error(e)
    logger.info("api delete_group item_id=%s key=%r", item_id, key)
    return JsonResponse(groups_to_dict(groups))


@csrf_exempt
def api_group_detail(request, item_id, key):
    """PATCH or DELETE /api/menu-items/<id>/groups/<key>/."""
    if request.method in ("PATCH", "PUT"):
        return _patch_group(request, item_id, key)
    if request.method == "DELETE":
        return _delete_group(request, item_id, key)
    logger.warning("api_group_detail method not allowed: %s", request.method)
    return JsonResponse({"error": "Method not allowed"}, status=405)


def _add_member(request, item_id, key):
    """POST /api/menu-items/<uuid>/groups/<key>/members/ - body { "package": {...} }."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    body, err = get_request_json(request)
    if err is not None:
        return err
    try:
        groups = service.add_member(key, **_package_fields(body))
    except ValidationError as e:
        logger.warning("api add_member validation error item_id=%s", item_id)
        return _json_400(_validation_message(e))
    except (InvalidOrderError, PersistenceError) as e:
        logger.warning("api add_member failed item_id=%s key=%r: %s", item_id, key, e)
        return _ordering_error(e)
    logger.info("api add_member item_id=%s key=%r", item_id, key)
    return JsonResponse(groups_to_dict(groups), status=201)


def _reorder_members(request, item_id, key):
    """PATCH /api/menu-items/<uuid>/groups/<key>/members/ - body { "ids": [...] }."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    body, err = get_request_json(request)
    if err is not None:
        return err
    ids = body.get("ids")
    if not isinstance(ids, list):
        return _json_400("ids must be a list of package ids.")
    try:
        groups = service.reorder_members(key, ids)
    except (InvalidOrderError, PersistenceError) as e:
        logger.warning("api reorder_members failed item_id=%s key=%r: %s", item_id, key, e)
        return _ordering_error(e)
    logger.info("api reorder_members item_id=%s key=%r", item_id, key)
    return JsonResponse(groups_to_dict(groups))


@csrf_exempt
def api_group_members(request, item_id, key):
    """POST or PATCH /api/menu-items/<id>/groups/<key>/members/."""
    if request.method == "POST":
        return _add_member(request, item_id, key)
    if request.method in ("PATCH", "PUT"):
        return _reorder_members(request, item_id, key)
    logger.warning("api_group_members method not allowed: %s", request.method)
    return JsonResponse({"error": "Method not allowed"}, status=405)


@require_http_methods(["POST"])
@csrf_exempt
def api_sort_by_price(request, item_id):
    """POST /api/menu-items/<uuid>/sort-by-price/ - packages renumbered by ascending price."""
    service, err = _groups_or_404(item_id)
    if err is not None:
        return err
    try:
        groups = service.sort_by_price()
    except PersistenceError as e:
        return _ordering_error(e)
    logger.info("api sort_by_price item_id=%s", item_id)
    return JsonResponse(groups_to_dict(groups))
