# Overview: Service-layer operations for accounts; registration, login, profile and admin management.

"""
Account Service

Passwords are hashed with bcrypt. Every account starts with role "user";
admins are promoted through the CLI or by another admin.

SECURITY NOTES:
- Minimum 8 characters, at least one letter and one digit
- Login failures never reveal whether the email exists
- Changing the password stamps password_changed_at, which invalidates
  every token issued before that instant
"""

import bcrypt
import re

from ..errors import AuthenticationError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User, ROLES
from ..validation import normalize_email
from .pagination import paginate
from storefront.time_utils import utcnow

BCRYPT_ROUNDS = 12


def validate_password_strength(password) -> None:
    """
    Validate password meets strength requirements.

    Raises ValidationError(code=WEAK_PASSWORD) if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long", code="WEAK_PASSWORD")

    if not re.search(r'[A-Za-z]', password):
        raise ValidationError("Password must contain at least one letter", code="WEAK_PASSWORD")

    if not re.search(r'\d', password):
        raise ValidationError("Password must contain at least one digit", code="WEAK_PASSWORD")


def hash_password(password: str) -> str:
    """Hash password using bcrypt. Password is validated for strength before hashing."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _clean_name(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    value = value.strip()
    if len(value) > 50:
        raise ValidationError(f"{field} exceeds max length 50")
    return value


def register_user(
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    phone: str | None = None,
    role: str = "user",
) -> User:
    """
    Create a new account.

    Raises:
        ValidationError: invalid input (WEAK_PASSWORD, INVALID_EMAIL, ...)
        ValidationError(code=USER_EXISTS): email already registered
    """
    email = normalize_email(email)
    first_name = _clean_name(first_name, "first_name")
    last_name = _clean_name(last_name, "last_name")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}", code="INVALID_ROLE")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ValidationError("User already exists with this email", code="USER_EXISTS")

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=(phone or "").strip() or None,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email, password) -> User:
    """
    Verify credentials and stamp last_login_at.

    Raises:
        ValidationError(MISSING_CREDENTIALS)
        AuthenticationError(INVALID_CREDENTIALS | ACCOUNT_DEACTIVATED)
    """
    if not email or not password:
        raise ValidationError("Please provide email and password", code="MISSING_CREDENTIALS")

    user = db.session.query(User).filter_by(email=str(email).strip().lower()).first()
    if not user or not verify_password(str(password), user.password_hash):
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    if not user.is_active:
        raise AuthenticationError("Account has been deactivated.", code="ACCOUNT_DEACTIVATED")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def update_profile(user: User, data: dict) -> User:
    """Update first_name / last_name / phone; other keys are ignored."""
    if "first_name" in data:
        user.first_name = _clean_name(data["first_name"], "first_name")
    if "last_name" in data:
        user.last_name = _clean_name(data["last_name"], "last_name")
    if "phone" in data:
        phone = data["phone"]
        if phone is None:
            user.phone = None
        else:
            user.phone = str(phone).strip() or None

    db.session.commit()
    return user


def change_password(user: User, current_password, new_password) -> User:
    """
    Replace the password after checking the current one.

    Tokens issued in an earlier epoch second than password_changed_at stop
    resolving; a token issued right after the change stays valid.
    """
    if not current_password or not new_password:
        raise ValidationError("current_password and new_password required", code="MISSING_CREDENTIALS")

    if not verify_password(str(current_password), user.password_hash):
        raise AuthenticationError("Current password is incorrect", code="INVALID_CREDENTIALS")

    user.password_hash = hash_password(new_password)
    user.password_changed_at = utcnow()
    db.session.commit()
    return user


# =============================================================================
# ADMIN ACCOUNT MANAGEMENT
# =============================================================================


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user


def list_users(*, role: str | None = None, is_active: bool | None = None, page: int = 1, limit: int = 20) -> dict:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))

    users, meta = paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)
    return {"users": [u.to_dict() for u in users], "pagination": meta}


def update_account(user_id: int, *, role: str | None = None, is_active: bool | None = None,
                   actor: User | None = None) -> User:
    """Admin change of role and/or active flag. Admins cannot demote or deactivate themselves."""
    user = get_user(user_id)

    if role is not None:
        if role not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}", code="INVALID_ROLE")
        if actor is not None and actor.id == user.id and role != user.role:
            raise ValidationError("Admins cannot change their own role", code="SELF_MODIFICATION")
        user.role = role

    if is_active is not None:
        if not isinstance(is_active, bool):
            raise ValidationError("is_active must be true or false")
        if actor is not None and actor.id == user.id and not is_active:
            raise ValidationError("Admins cannot deactivate themselves", code="SELF_MODIFICATION")
        user.is_active = is_active

    db.session.commit()
    return user

