# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/optimaster/routes/auth.py
"""
Authentication API routes

- POST /api/auth/login   -> bearer token for subsequent requests
- POST /api/auth/logout  -> revoke the presented token
- GET  /api/auth/me      -> current user for a valid token

Invalid credentials are a 401 with a stable message, never a 5xx, so the
client can prompt for re-entry.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import AuthenticationError
from ..decorators import bearer_token, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Request body: {"email": "...", "password": "..."}
    Returns user info and session token on success.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "email and password required"}), 400

    try:
        user = auth_service.authenticate(email, password)
    except AuthenticationError as e:
        current_app.logger.info("Failed login for %s from %s", email, request.remote_addr)
        return jsonify({"error": str(e)}), 401

    try:
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )
    except Exception:
        current_app.logger.exception("Failed to create session")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "message": "Login successful"
    }), 200


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    token = bearer_token()
    if not token:
        return jsonify({"error": "Authorization header required"}), 401

    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Return the authenticated user and session expiry."""
    context = g.session_context
    return jsonify({
        "user": g.current_user.to_dict(),
        "session": context.session.to_dict(),
    }), 200
