from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Dict, Optional
from mfg_inventory.common.exceptions import ConflictError, InvalidInputError
from mfg_inventory.models.user import User, UserRole, UserStatus, default_permissions
from mfg_inventory.core.security import get_password_hash, verify_password
from mfg_inventory.logger_config import logger


def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    """Get user by database ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get user by email."""
    return db.query(User).filter(User.email == email).first()


def create_user(
    db: Session,
    email: str,
    password: str,
    name: str,
    role: UserRole = UserRole.user,
    unit_id: Optional[int] = None,
    permissions: Optional[Dict[str, bool]] = None,
) -> User:
    """Create a user. Unit-scoped users must belong to a unit; admins never do."""
    if get_user_by_email(db, email):
        raise ConflictError("User with this email already exists", constraint="uq_users_email")
    if role == UserRole.user and unit_id is None:
        raise InvalidInputError("Unit ID is required for unit users")

    user = User(
        email=email,
        password_hash=get_password_hash(password),
        name=name,
        role=role,
        status=UserStatus.active,
        unit_id=unit_id if role == UserRole.user else None,
        permissions={**default_permissions(), **(permissions or {})},
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error creating user {email}: {e}")
        raise ConflictError("User with this email already exists", constraint="uq_users_email")

    db.refresh(user)
    logger.info(f"User created: {user.email} ({user.role.value})")
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Authenticate a user by email and password."""
    user = get_user_by_email(db, email)
    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user
