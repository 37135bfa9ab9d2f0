from datetime import datetime, timedelta, timezone

from jose import jwt

from fanledger.core.config import settings

ROLES = ("fan", "creator")


def create_token(data: dict, secret: str, expires_delta: timedelta):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(subject: str, role: str, expires_delta: timedelta = timedelta(hours=12)) -> str:
    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}")
    return create_token({"sub": subject, "role": role}, settings.SECRET_KEY, expires_delta)
