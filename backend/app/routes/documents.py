# Overview: Flask API routes for order documents; invoice and delivery receipt data.

# backend/app/routes/documents.py
"""
Document data for printing. Rendering (PDF) happens client-side.
"""

from flask import Blueprint, jsonify, g

from ..models.auth import ROLE_ADMIN
from ..services import invoice_service, order_service
from ..services.order_service import OrderError
from ..decorators import require_auth


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


def _visible(order_id: int) -> bool:
    if g.current_user.role == ROLE_ADMIN:
        return True
    order = order_service.get_order(order_id)
    return order.customer is not None and order.customer.user_id == g.current_user.id


@documents_bp.get("/orders/<int:order_id>/invoice")
@require_auth
def invoice_route(order_id: int):
    try:
        if not _visible(order_id):
            return jsonify({"error": "Order not found"}), 404
        return jsonify(invoice_service.build_invoice(order_id)), 200
    except OrderError:
        return jsonify({"error": "Order not found"}), 404


@documents_bp.get("/orders/<int:order_id>/delivery-receipt")
@require_auth
def delivery_receipt_route(order_id: int):
    """Delivery receipt; out-of-stock lines are left off."""
    try:
        if not _visible(order_id):
            return jsonify({"error": "Order not found"}), 404
        return jsonify(invoice_service.build_delivery_receipt(order_id)), 200
    except OrderError:
        return jsonify({"error": "Order not found"}), 404
