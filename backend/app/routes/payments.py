# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/app/routes/payments.py
"""
Payment API Routes

WHY: Customers pay completed orders by cash or cheque; admins receive or
reject each submission.

DESIGN:
- /check validates an amount without writing anything
- Submissions start "pending"; receive applies them to installments
- Receive and reject succeed at most once per payment (409 afterwards)

SECURITY:
- Customers may only pay and view their own orders
- Receive and reject require the admin role
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.auth import ROLE_ADMIN
from ..services import payment_service, customer_service, order_service
from ..services.payment_service import (
    PaymentError,
    PaymentNotFoundError,
    PaymentAlreadyProcessedError,
)
from ..services.order_service import OrderError
from ..validation import ValidationError, coerce_int, optional_text
from app.time_utils import parse_iso_date
from ..decorators import require_auth, require_role


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _owns_order(order_id: int) -> bool:
    user = g.current_user
    if user.role == ROLE_ADMIN:
        return True
    order = order_service.get_order(order_id)
    return order.customer is not None and order.customer.user_id == user.id


# =============================================================================
# CUSTOMER SUBMISSION
# =============================================================================

@payments_bp.post("/check")
@require_auth
def check_payment_route():
    """
    Validate an amount before submitting.

    Request body: {"order_id": 1, "amount_cents": 395733, "method": "Cheque"}

    Returns the check result (ok, amount_cents, message, clamped, notices).
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = coerce_int("order_id", data.get("order_id"))
        amount_cents = coerce_int("amount_cents", data.get("amount_cents"))
        if not _owns_order(order_id):
            return jsonify({"error": "Order not found"}), 404

        check = payment_service.check_payment_amount(order_id, amount_cents, data.get("method"))
        return jsonify(check.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError:
        return jsonify({"error": "Order not found"}), 404
    except PaymentError as e:
        return jsonify({"error": str(e)}), 400


@payments_bp.post("")
@require_auth
def submit_payment_route():
    """
    Submit a payment for a completed order.

    Request body:
    {
        "order_id": 1,
        "amount_cents": 395733,
        "method": "Cheque",                (defaults from the order's payment type)
        "cheque_number": "000123",         (cheques)
        "bank_name": "BDO",                (cheques)
        "cheque_date": "2026-10-20",       (cheques; not in the past)
        "image_url": "https://..."         (optional proof of payment)
    }

    Returns:
        201: Payment recorded as pending (amount may be clamped; see notices)
        400: Invalid amount or missing cheque details
        404: Order not found
    """
    try:
        data = request.get_json(silent=True) or {}
        order_id = coerce_int("order_id", data.get("order_id"))
        amount_cents = coerce_int("amount_cents", data.get("amount_cents"))
        if not _owns_order(order_id):
            return jsonify({"error": "Order not found"}), 404

        raw_date = data.get("cheque_date")
        try:
            cheque_date = parse_iso_date(raw_date) if raw_date else None
        except ValueError:
            raise ValidationError("cheque_date must be a YYYY-MM-DD date")

        payment, check = payment_service.submit_payment(
            order_id,
            amount_cents,
            method=data.get("method"),
            cheque_number=optional_text(data, "cheque_number"),
            bank_name=optional_text(data, "bank_name"),
            cheque_date=cheque_date,
            image_url=optional_text(data, "image_url"),
            submitted_by=g.current_user.email,
        )

        return jsonify({
            "payment": payment.to_dict(),
            "notices": check.notices,
            "summary": payment_service.get_payment_summary(order_id),
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except OrderError:
        return jsonify({"error": "Order not found"}), 404
    except PaymentError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to submit payment")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_auth
def list_payments_route():
    """
    Query params:
    - status: pending | received | rejected
    - order_id: restrict to one order
    """
    status = request.args.get("status")
    order_id = request.args.get("order_id", type=int)

    customer_ids = None
    if g.current_user.role != ROLE_ADMIN:
        customer_ids = [c.id for c in customer_service.customers_for_user(g.current_user.id)]

    payments = payment_service.list_payments(status=status, order_id=order_id, customer_ids=customer_ids)
    return jsonify({
        "payments": [p.to_dict() for p in payments],
        "count": len(payments),
    }), 200


@payments_bp.get("/orders/<int:order_id>")
@require_auth
def order_payment_summary_route(order_id: int):
    """
    Balance summary for an order:
    - Grand total (with interest and shipping)
    - Received, pending cash and pending cheque amounts
    - Remaining balance and current term amount
    - Installment schedule
    """
    try:
        if not _owns_order(order_id):
            return jsonify({"error": "Order not found"}), 404
        summary = payment_service.get_payment_summary(order_id)
        summary["payments"] = [p.to_dict() for p in payment_service.list_payments(order_id=order_id)]
        return jsonify(summary), 200
    except (OrderError, PaymentError):
        return jsonify({"error": "Order not found"}), 404


# =============================================================================
# ADMIN DECISIONS
# =============================================================================

@payments_bp.post("/<int:payment_id>/receive")
@require_auth
@require_role(ROLE_ADMIN)
def receive_payment_route(payment_id: int):
    """
    Mark a pending payment received and apply it to the installments.

    Returns:
        200: Payment received
        404: Payment not found
        409: Payment already received or rejected
    """
    try:
        payment = payment_service.receive_payment_and_apply(payment_id, g.current_user.email)
        return jsonify({
            "payment": payment.to_dict(),
            "summary": payment_service.get_payment_summary(payment.order_id),
        }), 200

    except PaymentNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PaymentAlreadyProcessedError as e:
        return jsonify({"error": str(e)}), 409
    except PaymentError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to receive payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<int:payment_id>/reject")
@require_auth
@require_role(ROLE_ADMIN)
def reject_payment_route(payment_id: int):
    try:
        payment = payment_service.reject_payment(payment_id, g.current_user.email)
        return jsonify({"payment": payment.to_dict()}), 200

    except PaymentNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PaymentAlreadyProcessedError as e:
        return jsonify({"error": str(e)}), 409
    except PaymentError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reject payment")
        return jsonify({"error": "Internal server error"}), 500
