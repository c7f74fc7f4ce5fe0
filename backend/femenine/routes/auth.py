# Overview: Flask API routes for authentication and user management.

# backend/femenine/routes/auth.py
"""
Authentication API routes

- Login/logout with opaque session tokens
- Profile and permission lookup for the signed-in user
- User administration (MANAGE_USERS / VIEW_USERS)

Public self-registration is not offered: accounts are created by an
administrator through /register or the `flask users create` command.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import ActivityAction
from ..services import activity_service, auth_service, permission_service, session_service
from ..validation import ValidationError, NotFoundError, ConflictError, require_json_object
from ..decorators import require_auth, require_permission, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Body: {email, password}
    Returns {token, user, permissions}. The token goes in the
    Authorization: Bearer header of every protected request.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        activity_service.log_activity(
            ActivityAction.LOGIN,
            user_id=user.id,
            details=f"Login from {request.remote_addr or 'unknown'}",
        )

        return jsonify({
            "token": token,
            "expiresAt": session.to_dict()["expiresAt"],
            "user": user.to_dict(),
            "permissions": sorted(permission_service.get_user_permissions(user)),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the current session token."""
    user_id = g.current_user.id
    session_service.revoke_session(bearer_token())
    activity_service.log_activity(ActivityAction.LOGOUT, user_id=user_id, details="Logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/profile")
@require_auth
def profile_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.get("/permissions")
@require_auth
def permissions_route():
    """Role and permission codes of the caller, for UI gating."""
    user = g.current_user
    return jsonify({
        "role": user.role.value,
        "permissions": sorted(permission_service.get_user_permissions(user)),
        "definitions": permission_service.describe_permissions(user),
    }), 200


@auth_bp.post("/register")
@require_auth
@require_permission("MANAGE_USERS")
def register_route():
    """
    Create a user account.

    Body: {email, password, name, role?} (role defaults to EMPLOYEE)
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        user = auth_service.create_user(
            email=data.get("email"),
            password=data.get("password"),
            name=data.get("name"),
            role=data.get("role"),
        )
        activity_service.log_activity(
            ActivityAction.CREATE_USER,
            user_id=g.current_user.id,
            details=f"Created user {user.email} ({user.role.value})",
        )
        return jsonify({"user": user.to_dict()}), 201

    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@auth_bp.put("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user_route(user_id: int):
    """Body: any of {role, name, email, isActive, password}."""
    try:
        data = require_json_object(request.get_json(silent=True))
        if user_id == g.current_user.id and data.get("isActive") is False:
            return jsonify({"error": "You cannot deactivate your own account"}), 400

        user = auth_service.update_user(user_id, data)
        activity_service.log_activity(
            ActivityAction.UPDATE_USER,
            user_id=g.current_user.id,
            details=f"Updated user {user.email}: {', '.join(sorted(data.keys())) or 'no fields'}",
        )
        return jsonify({"user": user.to_dict()}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user_route(user_id: int):
    """Delete a user, or deactivate it if it has registered sales."""
    try:
        result = auth_service.delete_user(user_id, acting_user_id=g.current_user.id)
        activity_service.log_activity(
            ActivityAction.DELETE_USER,
            user_id=g.current_user.id,
            details=f"{result['type'].capitalize()} user {result['user']['email']}",
        )
        message = "User deleted" if result["type"] == "deleted" else "User deactivated (has sales history)"
        return jsonify({"message": message, **result}), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500
