# backend/app/services/inventory_service.py
"""
Inventory Service

Catalog items customers order from. Stock is only decremented by order
completion (order_service.complete_order); this module handles catalog
maintenance.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import InventoryItem
from ..validation import ConflictError, NotFoundError

INVENTORY_MUTABLE_FIELDS = {
    "sku",
    "product_name",
    "category",
    "unit",
    "unit_price_cents",
    "cost_price_cents",
    "quantity",
}


def apply_inventory_patch(item: InventoryItem, patch: dict) -> None:
    for k, v in patch.items():
        if k not in INVENTORY_MUTABLE_FIELDS:
            continue
        setattr(item, k, v)


def _ensure_sku_free(sku: str | None, exclude_id: int | None = None) -> None:
    if not sku:
        return
    query = db.session.query(InventoryItem.id).filter(InventoryItem.sku == sku)
    if exclude_id is not None:
        query = query.filter(InventoryItem.id != exclude_id)
    if query.first():
        raise ConflictError(f"SKU already exists: {sku}")


def list_inventory(
    search: str | None = None,
    category: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Catalog listing with optional search and pagination.

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    query = db.session.query(InventoryItem)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(InventoryItem.product_name.ilike(pattern), InventoryItem.sku.ilike(pattern))
        )
    if category:
        query = query.filter(InventoryItem.category == category)
    query = query.order_by(InventoryItem.product_name.asc(), InventoryItem.id.asc())

    if page is None:
        items = query.all()
        return {"items": [i.to_dict() for i in items], "count": len(items)}

    page = max(page, 1)
    per_page = min(max(per_page or 20, 1), 100)
    total = query.count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [i.to_dict() for i in items],
        "count": len(items),
        "page": page,
        "per_page": per_page,
        "total": total,
        "pages": (total + per_page - 1) // per_page,
    }


def get_inventory_item(item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if not item:
        raise NotFoundError(f"Inventory item {item_id} not found")
    return item


def create_inventory_item(patch: dict) -> InventoryItem:
    _ensure_sku_free(patch.get("sku"))
    item = InventoryItem()
    apply_inventory_patch(item, patch)
    db.session.add(item)
    db.session.commit()
    current_app.logger.info("Inventory item %s created: %s", item.id, item.product_name)
    return item


def update_inventory_item(item_id: int, patch: dict) -> InventoryItem:
    item = get_inventory_item(item_id)
    if "sku" in patch:
        _ensure_sku_free(patch["sku"], exclude_id=item.id)
    apply_inventory_patch(item, patch)
    db.session.commit()
    return item
