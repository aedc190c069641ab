"""Identity service: password hashing, JWT tokens and server-side sessions."""
import uuid
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session as DbSession

from learnhub.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
    SECRET_KEY,
    SESSION_EXTEND_MINUTES,
)
from learnhub.models.db.user import Session, User


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))


def decode_token(token: str) -> dict | None:
    """Claims of a valid JWT, or None when it is malformed, forged or expired."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def get_user(db: DbSession, user_id: int) -> User | None:
    return db.get(User, user_id)


def find_registration_conflict(db: DbSession, username: str, email: str) -> str | None:
    """Name of the field ("username" or "email") already taken by another user."""
    existing = db.execute(
        select(User).where(or_(User.username == username, User.email == email))
    ).scalars().first()
    if existing is None:
        return None
    return "username" if existing.username == username else "email"


def authenticate_user(db: DbSession, login: str, password: str) -> User | None:
    """Active user whose username or email is `login` and whose password matches."""
    user = db.execute(
        select(User).where(or_(User.username == login, User.email == login))
    ).scalars().first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_user(
    db: DbSession,
    username: str,
    email: str,
    password: str,
    display_name: str | None = None,
) -> User:
    user = User(
        username=username,
        email=email,
        hashed_password=hash_password(password),
        display_name=display_name,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def issue_access_token(db: DbSession, user_id: int) -> str:
    """
    Sign a JWT for the user and open the server-side session it refers to.
    The token's `jti` claim is the session key.
    """
    jti = str(uuid.uuid4())
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    token = jwt.encode(
        {"sub": str(user_id), "exp": expires_at, "jti": jti}, SECRET_KEY, algorithm=ALGORITHM
    )
    db.add(Session(user_id=user_id, token_jti=jti, expires_at=expires_at))
    db.commit()
    return token


def touch_session(db: DbSession, token_jti: str) -> Session | None:
    """Active, unexpired session for the token; its expiry slides forward on each use."""
    now = datetime.now(timezone.utc)
    session = db.execute(
        select(Session).where(
            Session.token_jti == token_jti,
            Session.is_active == True,  # noqa: E712
            Session.expires_at > now,
        )
    ).scalar_one_or_none()
    if session is None:
        return None
    session.last_activity = now
    session.expires_at = now + timedelta(minutes=SESSION_EXTEND_MINUTES)
    db.commit()
    return session


def end_session(db: DbSession, token_jti: str) -> None:
    db.execute(update(Session).where(Session.token_jti == token_jti).values(is_active=False))
    db.commit()


def purge_expired_sessions(db: DbSession) -> int:
    """Delete expired sessions. Returns how many were removed."""
    result = db.execute(
        delete(Session).where(Session.expires_at < datetime.now(timezone.utc))
    )
    db.commit()
    return result.rowcount
