# Overview: Service-layer operations for user accounts and credentials.

"""
Authentication and user management

Every sale and audit entry must be attributable to a user. Uses bcrypt for
password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (BCRYPT_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
from flask import current_app
import re
from ..extensions import db
from ..models import User, Sale, StockMovement, Purchase
from ..permissions import Role
from ..validation import ValidationError, NotFoundError, ConflictError, clean_str, parse_bool
from femenine.time_utils import utcnow
from . import session_service

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password is required")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt (cost factor from BCRYPT_ROUNDS).

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    bcrypt.checkpw() is timing-safe.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def _normalize_email(email) -> str:
    value = clean_str(email, "email", max_length=255, required=True).lower()
    if not EMAIL_RE.match(value):
        raise ValidationError("email is not a valid address")
    return value


def _parse_role(value) -> Role:
    try:
        return Role.parse(value)
    except ValueError as e:
        raise ValidationError(str(e))


def create_user(email: str, password: str, name: str, role=Role.EMPLOYEE) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValidationError: missing fields, bad email or unknown role
        PasswordValidationError: password doesn't meet requirements
        ConflictError: email already registered
    """
    email = _normalize_email(email)
    name = clean_str(name, "name", max_length=120, required=True)
    role = _parse_role(role if role is not None else Role.EMPLOYEE)

    existing = db.session.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("A user with that email already exists")

    password_hash = hash_password(password)

    user = User(
        email=email,
        name=name,
        password_hash=password_hash,
        role=role,
        is_active=True,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid and the account is active, None
    otherwise. Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == str(email).strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def update_user(user_id: int, payload: dict) -> User:
    """
    Partial update of a user account.

    Accepted keys: role, name, email, isActive, password. Deactivating a
    user or changing the password revokes all of the user's sessions.
    """
    user = get_user(user_id)
    revoke_reason = None

    if "email" in payload:
        email = _normalize_email(payload.get("email"))
        clash = db.session.query(User).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ConflictError("A user with that email already exists")
        user.email = email

    if "name" in payload:
        user.name = clean_str(payload.get("name"), "name", max_length=120, required=True)

    if "role" in payload:
        user.role = _parse_role(payload.get("role"))

    if "isActive" in payload:
        is_active = parse_bool(payload.get("isActive"), "isActive")
        if user.is_active and not is_active:
            revoke_reason = "User deactivated"
        user.is_active = is_active

    if payload.get("password"):
        user.password_hash = hash_password(payload["password"])
        revoke_reason = revoke_reason or "Password changed"

    if revoke_reason:
        session_service.revoke_all_user_sessions(user.id, reason=revoke_reason, commit=False)

    db.session.commit()
    return user


def _has_history(user_id: int) -> bool:
    for column in (Sale.user_id, StockMovement.user_id, Purchase.user_id):
        if db.session.query(column).filter(column == user_id).first() is not None:
            return True
    return False


def delete_user(user_id: int, acting_user_id: int) -> dict:
    """
    Delete a user, or deactivate it when sales, stock movements or purchases
    are attributed to it.

    Returns {"type": "deleted" | "deactivated", "user": {...}}.
    """
    if user_id == acting_user_id:
        raise ValidationError("You cannot delete your own account")

    user = get_user(user_id)
    summary = user.to_dict()

    if _has_history(user.id):
        user.is_active = False
        session_service.revoke_all_user_sessions(user.id, reason="User deactivated", commit=False)
        db.session.commit()
        return {"type": "deactivated", "user": user.to_dict()}

    db.session.delete(user)
    db.session.commit()
    return {"type": "deleted", "user": summary}
