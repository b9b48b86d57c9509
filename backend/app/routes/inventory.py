# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/app/routes/inventory.py
"""
Inventory catalog routes.

SECURITY:
- Listing is public (customers browse the catalog before checkout)
- Create and update require the admin role
"""
from flask import Blueprint, request

from ..models import InventoryItem
from ..services import inventory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_inventory_item,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN

INVENTORY_POLICY = ModelValidationPolicy(
    writable_fields=set(inventory_service.INVENTORY_MUTABLE_FIELDS),
    required_on_create={"product_name", "unit_price_cents"},
)

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
def list_inventory_route():
    """
    Query params:
    - q: search product name / SKU
    - category: exact category
    - page, per_page: optional pagination
    """
    return inventory_service.list_inventory(
        search=request.args.get("q"),
        category=request.args.get("category"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@inventory_bp.get("/<int:item_id>")
def get_inventory_route(item_id: int):
    try:
        return inventory_service.get_inventory_item(item_id).to_dict()
    except NotFoundError as e:
        return {"error": str(e)}, 404


@inventory_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_inventory_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_POLICY, partial=False)
        enforce_rules_inventory_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.create_inventory_item(patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return item.to_dict(), 201


@inventory_bp.patch("/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_inventory_route(item_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_POLICY, partial=True)
        enforce_rules_inventory_item(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        item = inventory_service.update_inventory_item(item_id, patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return item.to_dict()
