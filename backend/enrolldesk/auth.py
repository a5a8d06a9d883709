"""
Requester identity for every authenticated route.

Tokens are issued by the login service; this module only verifies them
(HS256, shared JWT_SECRET, `id` claim) and loads the staff account they
point at. Credential fields never leave this module.
"""

import os
from typing import Optional

import jwt
from fastapi import Depends, Header
from pydantic import BaseModel, ConfigDict, Field

from enrolldesk.database import get_store
from enrolldesk.errors import AuthenticationError
from enrolldesk.logging_config import get_logger, log_with_context
from enrolldesk.store.base import DocumentStore

logger = get_logger("auth")

JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me")
JWT_ALGORITHM = "HS256"


class Identity(BaseModel):
    """The verified requester."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    role_id: Optional[str] = Field(None, alias="roleId")
    is_active: Optional[bool] = Field(None, alias="isActive")
    is_password_set: Optional[bool] = Field(None, alias="isPasswordSet")


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        log_with_context(logger, "WARNING", "Rejected token: {}".format(e))
        raise AuthenticationError("Invalid token") from e
    if not payload or not payload.get("id"):
        raise AuthenticationError("Invalid token payload")
    return payload


def get_current_identity(
    authorization: Optional[str] = Header(None),
    store: DocumentStore = Depends(get_store),
) -> Identity:
    """FastAPI dependency resolving the bearer token to a staff identity."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing Authorization header")

    payload = decode_token(authorization[len("Bearer "):])
    user = store.get("users", str(payload["id"]))
    if user is None:
        log_with_context(logger, "WARNING", "Token refers to an unknown user",
                         context={"user_id": payload["id"]})
        raise AuthenticationError("User not found")

    return Identity(
        id=user["id"],
        email=user.get("email"),
        name=user.get("name"),
        role=user.get("role"),
        role_id=user.get("role_id"),
        is_active=user.get("is_active"),
        is_password_set=user.get("is_password_set"),
    )
