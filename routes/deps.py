from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from database import users_collection, push_subscriptions_collection
from models.user import UserModel
from notifications.repository import NotificationRepository
from notifications.sources import UserDirectory
from logging_config import get_logger
from config import config

logger = get_logger("auth")

SECRET_KEY = config.SECRET_KEY
ALGORITHM = config.ALGORITHM

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")


class CredentialsError(Exception):
    pass


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_user_directory() -> UserDirectory:
    return UserDirectory(users_collection)


async def resolve_user(token: str, users: UserDirectory) -> UserModel:
    """Decode a bearer token and load its user. Raises CredentialsError."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        raise CredentialsError("invalid token")

    user_id = payload.get("sub")
    if user_id is None:
        logger.warning("Token decoded but missing 'sub' claim")
        raise CredentialsError("missing subject")

    user = await users.get_user(user_id)
    if user is None:
        logger.warning(f"Token valid but user not found in DB", extra={"data": {"user_id": user_id}})
        raise CredentialsError("unknown user")
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    users: UserDirectory = Depends(get_user_directory),
) -> UserModel:
    try:
        return await resolve_user(token, users)
    except CredentialsError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_notification_repository(request: Request) -> NotificationRepository:
    return request.app.state.notifications.repository


def get_push_subscriptions():
    return push_subscriptions_collection
