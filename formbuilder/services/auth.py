import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from formbuilder.core.config import settings
from formbuilder.models.password_reset_token import PasswordResetToken
from formbuilder.models.user import User

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

MIN_RESET_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """Base exception for authentication operations."""


class PasswordResetError(AuthError):
    """Raised when a password reset cannot be completed."""


# ---------------------------------------------------------------------------
# Password utilities
# ---------------------------------------------------------------------------


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(
        plain_password.encode("utf-8"), hashed_password.encode("utf-8")
    )


# ---------------------------------------------------------------------------
# JWT utilities
# ---------------------------------------------------------------------------


def _encode(user: User, token_type: str, expires_in: timedelta, secret: str) -> str:
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "type": token_type,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user: User) -> str:
    return _encode(
        user,
        "access",
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        settings.JWT_ACCESS_TOKEN_SECRET,
    )


def create_refresh_token(user: User) -> str:
    return _encode(
        user,
        "refresh",
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        settings.JWT_REFRESH_TOKEN_SECRET,
    )


def decode_access_token(token: str) -> dict:
    """Decode and validate an access token. Raises jwt.PyJWTError on failure."""
    return jwt.decode(
        token, settings.JWT_ACCESS_TOKEN_SECRET, algorithms=[settings.JWT_ALGORITHM]
    )


def decode_refresh_token(token: str) -> dict:
    """Decode and validate a refresh token. Raises jwt.PyJWTError on failure."""
    return jwt.decode(
        token, settings.JWT_REFRESH_TOKEN_SECRET, algorithms=[settings.JWT_ALGORITHM]
    )


# ---------------------------------------------------------------------------
# User CRUD helpers
# ---------------------------------------------------------------------------


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.email == email.lower())).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: uuid.UUID) -> User | None:
    return db.get(User, user_id)


def create_user(db: Session, *, email: str, password: str, name: str | None = None) -> User:
    user = User(
        email=email.lower(),
        name=name,
        password_hash=hash_password(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user_created id=%s", user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def create_password_reset_token(db: Session, user: User) -> PasswordResetToken:
    """Issue a single-use reset token, retiring any pending ones for the user."""
    now = datetime.now(timezone.utc)
    db.execute(
        update(PasswordResetToken)
        .where(
            PasswordResetToken.user_id == user.id,
            PasswordResetToken.used_at.is_(None),
        )
        .values(used_at=now)
    )
    reset_token = PasswordResetToken(
        user_id=user.id,
        token=secrets.token_hex(32),
        expires_at=now + timedelta(minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES),
    )
    db.add(reset_token)
    db.commit()
    db.refresh(reset_token)
    logger.info("password_reset_requested user=%s", user.id)
    return reset_token


def reset_password(db: Session, token: str, new_password: str) -> User:
    """Set a new password using a reset token.

    The password hash and the token's ``used_at`` are written in a single
    commit. Raises PasswordResetError with a user-facing message otherwise.
    """
    if not token or not new_password:
        raise PasswordResetError("Token e senha são obrigatórios")
    if len(new_password) < MIN_RESET_PASSWORD_LENGTH:
        raise PasswordResetError("A senha deve ter pelo menos 6 caracteres")

    reset_token = db.execute(
        select(PasswordResetToken).where(PasswordResetToken.token == token)
    ).scalar_one_or_none()
    if reset_token is None:
        raise PasswordResetError("Token inválido")
    if _as_utc(reset_token.expires_at) < datetime.now(timezone.utc):
        raise PasswordResetError("Token expirado. Solicite um novo link de recuperação")
    if reset_token.used_at is not None:
        raise PasswordResetError("Token já foi utilizado")

    user = reset_token.user
    try:
        user.password_hash = hash_password(new_password)
        reset_token.used_at = datetime.now(timezone.utc)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("password_reset_completed user=%s", user.id)
    return user
