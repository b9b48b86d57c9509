# Overview: Flask API routes for sales orders; checkout, admin review, completion and delivery scheduling.

# backend/app/routes/orders.py
"""
Sales Order API Routes

DESIGN:
- Checkout is open to guests and signed-in customers
- Customers only see orders of their own customer records
- Accept / reject / edit / complete require the admin role
- Completion fixes the pricing snapshot and the installment schedule

SECURITY:
- Customers cannot choose an interest rate; it comes from the term table
- Admin actions are recorded in activity_logs with the admin's email
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import Order
from ..models.auth import ROLE_ADMIN
from ..services import order_service, customer_service
from ..services.order_service import (
    OrderError,
    OrderNotFoundError,
    OrderStateError,
    Processor,
)
from ..services.customer_service import CustomerInfo
from ..services.pricing_service import PricingError
from ..validation import (
    ValidationError,
    ConflictError,
    coerce_int,
    optional_int,
    optional_decimal,
    optional_text,
)
from app.time_utils import parse_iso_date
from ..decorators import require_auth, require_role, optional_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_error(e: OrderError):
    if isinstance(e, OrderNotFoundError):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, OrderStateError):
        return jsonify({"error": str(e)}), 409
    body = {"error": str(e)}
    if e.details:
        body["details"] = e.details
    return jsonify(body), 400


def _processor() -> Processor:
    user = g.current_user
    return Processor(email=user.email, name=user.name, role=user.role)


def _can_view(order: Order) -> bool:
    user = g.current_user
    if user.role == ROLE_ADMIN:
        return True
    return order.customer is not None and order.customer.user_id == user.id


def serialize_order(order: Order, *, with_totals: bool = False) -> dict:
    data = order.to_dict()
    data["txn_code"] = order_service.order_txn_code(order)
    data["customer"] = order.customer.to_dict() if order.customer else None
    data["items"] = [item.to_dict() for item in order.items]
    if with_totals:
        data["totals"] = order_service.saved_totals(order)
        data["installments"] = [t.to_dict() for t in order.installments]
    return data


# =============================================================================
# CHECKOUT
# =============================================================================

@orders_bp.post("")
@optional_auth
def place_order_route():
    """
    Place an order (checkout).

    Request body:
    {
        "customer": {name, email, phone, contact_person, customer_type,
                     payment_type, house_street, landmark, area,
                     region_code, province_code, city_code, barangay_code, ...},
        "items": [{"inventory_id": 1, "quantity": 10}, ...],
        "terms_months": 3,           (credit orders)
        "accepted_terms": true       (credit orders)
    }

    Returns:
        201: Order created (pending)
        400: Missing fields, bad quantities or unsupported terms
    """
    try:
        data = request.get_json(silent=True) or {}
        info = CustomerInfo.from_dict(data.get("customer") or {})

        cart = []
        for line in data.get("items") or []:
            cart.append({
                "inventory_id": coerce_int("inventory_id", line.get("inventory_id")),
                "quantity": coerce_int("quantity", line.get("quantity")),
            })

        user = g.current_user
        order = order_service.place_order(
            info,
            cart,
            terms_months=optional_int(data, "terms_months"),
            accepted_terms=bool(data.get("accepted_terms")),
            user_id=user.id if user is not None else None,
        )
        return jsonify(serialize_order(order, with_totals=True)), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError as e:
        return _order_error(e)
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@orders_bp.get("")
@require_auth
def list_orders_route():
    """
    Query params:
    - status: pending | accepted | rejected | completed
    - limit: default 100
    """
    status = request.args.get("status")
    limit = min(request.args.get("limit", 100, type=int), 500)

    customer_ids = None
    if g.current_user.role != ROLE_ADMIN:
        customer_ids = [c.id for c in customer_service.customers_for_user(g.current_user.id)]

    orders = order_service.list_orders(status=status, customer_ids=customer_ids, limit=limit)
    return jsonify({
        "orders": [serialize_order(o) for o in orders],
        "count": len(orders),
    }), 200


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        if not _can_view(order):
            return jsonify({"error": "Order not found"}), 404
        return jsonify(serialize_order(order, with_totals=True)), 200
    except OrderError as e:
        return _order_error(e)


@orders_bp.get("/<int:order_id>/totals")
@require_auth
def get_order_totals_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        if not _can_view(order):
            return jsonify({"error": "Order not found"}), 404
        return jsonify(order_service.get_order_totals(order_id)), 200
    except OrderError as e:
        return _order_error(e)
    except PricingError as e:
        return jsonify({"error": str(e)}), 400


# =============================================================================
# ADMIN REVIEW
# =============================================================================

@orders_bp.post("/<int:order_id>/accept")
@require_auth
@require_role(ROLE_ADMIN)
def accept_order_route(order_id: int):
    try:
        order = order_service.accept_order(order_id, _processor())
        return jsonify(serialize_order(order)), 200
    except OrderError as e:
        return _order_error(e)
    except Exception:
        current_app.logger.exception("Failed to accept order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/reject")
@require_auth
@require_role(ROLE_ADMIN)
def reject_order_route(order_id: int):
    try:
        order = order_service.reject_order(order_id, _processor())
        return jsonify(serialize_order(order)), 200
    except OrderError as e:
        return _order_error(e)
    except Exception:
        current_app.logger.exception("Failed to reject order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/items/<int:item_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_order_item_route(order_id: int, item_id: int):
    """
    Request body (all optional):
    {
        "discount_percent": "5",       (clamped to 0..50)
        "fulfilled_quantity": 8,
        "remarks": "short 2 pcs"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        item = order_service.update_order_item(
            order_id,
            item_id,
            discount_percent=optional_decimal(data, "discount_percent"),
            fulfilled_quantity=optional_int(data, "fulfilled_quantity"),
            remarks=optional_text(data, "remarks"),
        )
        return jsonify(item.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError as e:
        return _order_error(e)
    except Exception:
        current_app.logger.exception("Failed to update order item")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/quote")
@require_auth
@require_role(ROLE_ADMIN)
def quote_order_route(order_id: int):
    """
    Preview the totals completion would lock in. No writes.

    Request body: {"tax_enabled": true, "terms_months": 3, "interest_percent": "6"}
    """
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.get_order(order_id)
        totals = order_service.quote_order(
            order,
            tax_enabled=bool(data.get("tax_enabled", True)),
            terms_months=optional_int(data, "terms_months"),
            interest_override=optional_decimal(data, "interest_percent"),
        )
        return jsonify(totals.to_dict()), 200
    except (ValidationError, PricingError) as e:
        return jsonify({"error": str(e)}), 400
    except OrderError as e:
        return _order_error(e)


@orders_bp.post("/<int:order_id>/complete")
@require_auth
@require_role(ROLE_ADMIN)
def complete_order_route(order_id: int):
    """
    Complete an accepted order.

    Request body:
    {
        "po_number": "PO-1001",        (required, unique)
        "salesman": "Juan",            (required)
        "forwarder": "LBC",
        "tax_enabled": true,
        "terms_months": 3,             (credit orders; defaults to the order's terms)
        "interest_percent": "6",       (credit orders; defaults to the term table)
        "first_due_date": "2026-11-16" (defaults to one month from today)
    }

    Returns:
        200: Completed order with totals and installments
        400: Missing fields or insufficient stock
        409: Order not accepted, or PO number already used
    """
    try:
        data = request.get_json(silent=True) or {}
        first_due = data.get("first_due_date")
        try:
            first_due_date = parse_iso_date(first_due) if first_due else None
        except ValueError:
            raise ValidationError("first_due_date must be a YYYY-MM-DD date")

        order = order_service.complete_order(
            order_id,
            _processor(),
            po_number=data.get("po_number") or "",
            salesman=data.get("salesman") or "",
            forwarder=optional_text(data, "forwarder"),
            tax_enabled=bool(data.get("tax_enabled", True)),
            terms_months=optional_int(data, "terms_months"),
            interest_override=optional_decimal(data, "interest_percent"),
            first_due_date=first_due_date,
        )
        return jsonify(serialize_order(order, with_totals=True)), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except OrderError as e:
        return _order_error(e)
    except Exception:
        current_app.logger.exception("Failed to complete order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/deliveries")
@require_auth
@require_role(ROLE_ADMIN)
def schedule_delivery_route():
    """
    Request body:
    {
        "order_ids": [1, 2],
        "shipping_fee_cents": 50000,
        "destination": "Batangas",
        "plate_number": "ABC 1234",
        "schedule_date": "2026-10-20"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        order_ids = [coerce_int("order_ids", v) for v in data.get("order_ids") or []]
        raw_date = data.get("schedule_date")
        try:
            schedule_date = parse_iso_date(raw_date) if raw_date else None
        except ValueError:
            raise ValidationError("schedule_date must be a YYYY-MM-DD date")

        delivery = order_service.schedule_delivery(
            order_ids,
            shipping_fee_cents=optional_int(data, "shipping_fee_cents") or 0,
            destination=optional_text(data, "destination"),
            plate_number=optional_text(data, "plate_number"),
            schedule_date=schedule_date,
        )
        return jsonify(delivery.to_dict()), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError as e:
        return _order_error(e)
    except Exception:
        current_app.logger.exception("Failed to schedule delivery")
        return jsonify({"error": "Internal server error"}), 500
