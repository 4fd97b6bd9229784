import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr

from errors import AuthenticationError, AuthorizationError
from repository import get_repository
from schemas import Identity, User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret_change_me")
JWT_EXP_MIN = int(os.getenv("JWT_EXP_MIN", "60"))


class TokenData(BaseModel):
    user_id: str
    email: EmailStr
    role: str


class CurrentUser(BaseModel):
    id: str
    user: User

    @property
    def identity(self) -> Identity:
        return Identity(user_id=self.id, is_admin=self.user.role == "admin")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_token(user_id: str, user: User) -> str:
    payload = {
        "sub": user_id,
        "email": user.email,
        "role": user.role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=JWT_EXP_MIN),
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> TokenData:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
        return TokenData(user_id=payload["sub"], email=payload["email"], role=payload.get("role", "client"))
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except (jwt.InvalidTokenError, KeyError):
        raise AuthenticationError("Invalid token")


def get_optional_user(authorization: Optional[str] = Header(default=None),
                      repository=Depends(get_repository)) -> Optional[CurrentUser]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthenticationError("Invalid authorization header")
    token_data = decode_token(token)
    user = repository.get_user(token_data.user_id)
    if not user:
        raise AuthenticationError("User not found")
    return CurrentUser(id=token_data.user_id, user=user)


def get_current_user(current: Optional[CurrentUser] = Depends(get_optional_user)) -> CurrentUser:
    if current is None:
        raise AuthenticationError()
    return current


def require_admin_user(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if current.user.role != "admin":
        raise AuthorizationError()
    return current
