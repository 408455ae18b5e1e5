"""
User repository for the local identity provider.
"""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from loginguard.db.models import User


def get_user_by_id(db: Session, user_id: str) -> User | None:
    """Get user by ID."""
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get user by email (case-insensitive)."""
    if not email:
        return None
    stmt = select(User).where(User.email.ilike(email))
    return db.execute(stmt).scalar_one_or_none()


def create_user(db: Session, email: str, password_hash: str, disabled: bool = False) -> User:
    """
    Create a new user.

    Args:
        db: Database session.
        email: Unique email address.
        password_hash: Argon2id password hash.
        disabled: Create the account disabled.

    Returns:
        Created User object.
    """
    user = User(email=email.lower(), password_hash=password_hash, disabled=disabled)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_user_disabled(db: Session, user_id: str, disabled: bool) -> User | None:
    user = db.get(User, user_id)
    if user is None:
        return None
    user.disabled = disabled
    db.commit()
    db.refresh(user)
    return user


def update_password_hash(db: Session, user_id: str, password_hash: str) -> None:
    stmt = update(User).where(User.id == user_id).values(password_hash=password_hash)
    db.execute(stmt)
    db.commit()


def update_last_login(db: Session, user_id: str, when: datetime) -> None:
    """Update user's last login timestamp."""
    stmt = update(User).where(User.id == user_id).values(last_login=when)
    db.execute(stmt)
    db.commit()
