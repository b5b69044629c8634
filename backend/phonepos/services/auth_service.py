# Overview: Staff accounts: password hashing, phone login, user management and the last-admin guard.

"""
Authentication and user administration.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 6 characters, Myanmar script characters rejected
- Phone numbers normalized to the local 09... form before lookup or storage
- Session tokens managed separately (see session_service.py)
- Demotion/deactivation needs another ACTIVE ADMIN; deletion needs any other ADMIN
"""

import re

import bcrypt
from sqlalchemy import or_

from ..extensions import db
from ..models import Purchase, Role, Sale, SessionToken, User, UserStatus
from ..validation import (
    ConflictError,
    GuardError,
    NotFoundError,
    ValidationError,
    normalize_phone,
    require_enum,
    require_phone,
    require_text,
)
from phonepos.time_utils import utcnow
from . import audit_service
from .concurrency import atomic
from .pagination import paginate


MIN_PASSWORD_LENGTH = 6
BCRYPT_ROUNDS = 12
MYANMAR_SCRIPT = re.compile(r"[\u1000-\u109F]")

LAST_ADMIN_MESSAGE = "Cannot delete the last admin user."


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 6 characters
    - No Myanmar script characters (keyboard-layout mistakes lock people out)
    """
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if MYANMAR_SCRIPT.search(password):
        raise PasswordValidationError("Password cannot contain Myanmar characters")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def authenticate(phone: str, password: str) -> User | None:
    """
    Return the ACTIVE user matching phone + password, else None.

    The same None covers unknown phone, wrong password and inactive
    accounts so callers cannot tell them apart.
    """
    if not phone or not password:
        return None
    user = db.session.query(User).filter_by(phone=normalize_phone(phone)).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(*, q: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(User)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(or_(User.name.ilike(like), User.phone.ilike(like)))
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page=page, per_page=per_page)


def _phone_taken(phone: str, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(User.phone == phone)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def create_user(
    *,
    name: str,
    phone: str,
    password: str,
    role: str | Role = Role.SELLER,
    status: str | UserStatus = UserStatus.ACTIVE,
) -> User:
    """
    Create a staff account.

    Raises ValidationError on bad input and ConflictError if the normalized
    phone already belongs to someone.
    """
    name = require_text("name", name, max_length=128)
    if len(name) < 2:
        raise ValidationError("name must be at least 2 characters")
    phone = require_phone("phone", phone)
    role = require_enum(Role, "role", role)
    status = require_enum(UserStatus, "status", status)
    password_hash = hash_password(password)

    with atomic():
        if _phone_taken(phone):
            raise ConflictError("User with this phone already exists")
        user = User(name=name, phone=phone, password_hash=password_hash, role=role, status=status)
        db.session.add(user)
        db.session.flush()
        audit_service.record(action="user.created", entity="user", entity_id=user.id, new_data=user.to_dict())
    return user


def _other_admins(user_id: int, *, active_only: bool = True) -> int:
    query = db.session.query(User).filter(User.role == Role.ADMIN, User.id != user_id)
    if active_only:
        query = query.filter(User.status == UserStatus.ACTIVE)
    return query.count()


def update_user(user_id: int, payload: dict) -> User:
    """
    Patch name/phone/password/role/status.

    Demoting or deactivating the only active ADMIN is refused.
    """
    allowed = {"name", "phone", "password", "role", "status"}
    unknown = set(payload) - allowed
    if unknown:
        raise ValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    with atomic():
        user = get_user(user_id)
        before = user.to_dict()

        if "name" in payload:
            name = require_text("name", payload["name"], max_length=128)
            if len(name) < 2:
                raise ValidationError("name must be at least 2 characters")
            user.name = name
        if payload.get("phone"):
            phone = require_phone("phone", payload["phone"])
            if _phone_taken(phone, exclude_user_id=user.id):
                raise ConflictError("Phone number already in use")
            user.phone = phone
        if payload.get("password"):
            user.password_hash = hash_password(payload["password"])

        new_role = require_enum(Role, "role", payload["role"]) if payload.get("role") else user.role
        new_status = require_enum(UserStatus, "status", payload["status"]) if payload.get("status") else user.status
        loses_admin = user.is_admin and user.is_active and (
            new_role != Role.ADMIN or new_status != UserStatus.ACTIVE
        )
        if loses_admin and _other_admins(user.id) == 0:
            raise GuardError("Cannot remove admin access from the last admin user.")
        user.role = new_role
        user.status = new_status

        if new_status != UserStatus.ACTIVE:
            _revoke_sessions(user.id, "User account deactivated")

        audit_service.record(
            action="user.updated", entity="user", entity_id=user.id, old_data=before, new_data=user.to_dict()
        )
    return user


def _revoke_sessions(user_id: int, reason: str) -> None:
    now = utcnow()
    for session in db.session.query(SessionToken).filter_by(user_id=user_id, is_revoked=False):
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason


def delete_user(user_id: int, *, acting_user_id: int | None = None) -> None:
    """
    Hard-delete a user.

    Refused (before any mutation) when no other ADMIN account exists, when it
    is the caller's own account, or when sales/purchases are attributed to it.
    """
    with atomic():
        user = get_user(user_id)
        if user.is_admin and _other_admins(user.id, active_only=False) == 0:
            raise GuardError(LAST_ADMIN_MESSAGE)
        if acting_user_id is not None and acting_user_id == user.id:
            raise GuardError("You cannot delete your own account.")

        has_sales = db.session.query(Sale.id).filter(Sale.user_id == user.id).first() is not None
        has_purchases = (
            db.session.query(Purchase.id).filter(Purchase.created_by_user_id == user.id).first() is not None
        )
        if has_sales or has_purchases:
            raise ConflictError("User has recorded transactions; set status to INACTIVE instead")

        db.session.query(SessionToken).filter_by(user_id=user.id).delete()
        audit_service.record(action="user.deleted", entity="user", entity_id=user.id, old_data=user.to_dict())
        db.session.delete(user)


def ensure_admin(*, name: str, phone: str, password: str) -> tuple[User, bool]:
    """Idempotent bootstrap used by `flask system init`. Returns (user, created)."""
    existing = db.session.query(User).filter_by(phone=normalize_phone(phone)).first()
    if existing:
        return existing, False
    return create_user(name=name, phone=phone, password=password, role=Role.ADMIN), True

