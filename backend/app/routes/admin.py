# Overview: Flask API routes for admin views; customers and the activity log.

# backend/app/routes/admin.py
"""
Admin API routes.

SECURITY: All routes require the admin role.
"""

from flask import Blueprint, request, jsonify

from ..extensions import db
from ..models import Customer
from ..models.auth import ROLE_ADMIN
from ..services import activity_service, customer_service
from ..decorators import require_auth, require_role


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/customers")
@require_auth
@require_role(ROLE_ADMIN)
def list_customers_route():
    """
    Query params:
    - q: search name, code or email
    - payment_type: Cash | Credit
    """
    query = db.session.query(Customer)
    search = request.args.get("q")
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Customer.name.ilike(pattern),
            Customer.code.ilike(pattern),
            Customer.email.ilike(pattern),
        ))
    payment_type = request.args.get("payment_type")
    if payment_type:
        query = query.filter(Customer.payment_type == payment_type)

    customers = query.order_by(Customer.name.asc()).limit(500).all()
    return jsonify({
        "customers": [c.to_dict() for c in customers],
        "count": len(customers),
    }), 200


@admin_bp.get("/customers/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_customer_route(customer_id: int):
    customer = customer_service.get_customer(customer_id)
    if not customer:
        return jsonify({"error": "Customer not found"}), 404
    return jsonify(customer.to_dict()), 200


@admin_bp.get("/activity")
@require_auth
@require_role(ROLE_ADMIN)
def list_activity_route():
    """
    Query params:
    - action: exact action name (e.g. "Complete Sales Order")
    - limit: default 100, max 500
    """
    limit = min(request.args.get("limit", 100, type=int), 500)
    entries = activity_service.list_activity(action=request.args.get("action"), limit=limit)
    return jsonify({
        "activity": [e.to_dict() for e in entries],
        "count": len(entries),
    }), 200
