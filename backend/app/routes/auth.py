# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

- Customers sign up with their checkout details plus a password
- Admin accounts are created from the CLI only (flask system init)
- Session management with token-based auth
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services import customer_service
from ..services.auth_service import PasswordValidationError, AuthError
from ..services.customer_service import CustomerError, CustomerInfo
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/signup")
def signup_route():
    """
    Create a customer account.

    Request body: checkout customer fields (name, email, phone, contact_person,
    payment_type, address codes) plus "password".

    Returns:
        201: Account created, with session token
        400: Invalid input or weak password
        409: Email already registered
    """
    try:
        data = request.get_json() or {}
        password = data.get("password")
        if not data.get("email") or not password:
            return jsonify({"error": "email and password required"}), 400

        info = CustomerInfo.from_dict(data)
        customer = customer_service.create_customer_account(info, password)
        _, token = session_service.create_session(customer.user_id)

        return jsonify({
            "customer": customer.to_dict(),
            "token": token,
            "message": "Account created"
        }), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthError as e:
        return jsonify({"error": str(e)}), 409
    except CustomerError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to sign up customer")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json() or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
            return jsonify({"error": "Invalid credentials"}), 401

        _, token = session_service.create_session(user.id)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """
    Revoke session token (logout).

    WHY: Explicit logout prevents token reuse.
    """
    try:
        session_service.revoke_session(g.token)
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user plus the customer records linked to it."""
    user = g.current_user
    customers = customer_service.customers_for_user(user.id)
    return jsonify({
        "user": user.to_dict(),
        "customers": [c.to_dict() for c in customers],
    }), 200
