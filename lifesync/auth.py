"""
auth.py - Authentication for the LifeSync coaching API

This module provides:
1. User signup: stores the account in the Firestore `users` collection with a
   bcrypt hash (via Passlib). The document id is the user's email, and the
   user's own records live in subcollections under that document.
2. User login: verifies the password and issues a signed JWT access token.
3. The AuthGate dependencies used by every handler:
   - get_current_user: resolves the caller from `Authorization: Bearer ...`;
     any failure is a terminal 401 {"error": "Unauthorized"}.
   - require_admin: additionally requires role == "admin" (403 otherwise).

Tokens carry the user id, display name and role, so handlers can authorize
the caller without another database read.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import APIRouter, Depends, Form
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from .errors import AuthenticationError, AuthorizationError, LifeSyncError, UpstreamError, ValidationError
from .gcp_clients import get_firestore_client
from .utils import now_iso

# Suppress harmless bcrypt warnings from Passlib
logging.getLogger("passlib.handlers.bcrypt").setLevel(logging.ERROR)

_logger = logging.getLogger(__name__)

router = APIRouter()

FIRESTORE_USERS_COLLECTION = "users"

JWT_SECRET = os.environ.get("JWT_SECRET", "lifesync-development-secret-change-me")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
JWT_EXPIRATION_MINUTES = int(os.environ.get("JWT_EXPIRATION_MINUTES", "1440"))

if "JWT_SECRET" not in os.environ:
    _logger.warning("JWT_SECRET is not set; using the development secret.")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    email: str
    full_name: str = ""
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def hash_password(password):
    return pwd_context.hash(password)


def create_access_token(user: CurrentUser, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a JWT for `user` valid for JWT_EXPIRATION_MINUTES unless overridden."""
    issued = datetime.now(timezone.utc)
    expire = issued + (expires_delta or timedelta(minutes=JWT_EXPIRATION_MINUTES))
    payload = {
        "sub": user.user_id,
        "email": user.email,
        "name": user.full_name,
        "role": user.role,
        "iat": issued,
        "exp": expire,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[CurrentUser]:
    """Return the CurrentUser encoded in `token`, or None if it is invalid or expired."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        _logger.warning("Token has expired")
        return None
    except jwt.InvalidTokenError as e:
        _logger.warning("Invalid token: %s", e)
        return None

    if not payload.get("sub"):
        _logger.warning("Token missing subject")
        return None

    return CurrentUser(
        user_id=payload["sub"],
        email=payload.get("email") or payload["sub"],
        full_name=payload.get("name") or "",
        role=payload.get("role") or "user",
    )


# -------------------------
# AuthGate dependencies
# -------------------------
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    if credentials is None:
        raise AuthenticationError()

    user = decode_access_token(credentials.credentials)
    if user is None:
        raise AuthenticationError()
    return user


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        _logger.warning("Admin-only call rejected for user %s", user.user_id)
        raise AuthorizationError()
    return user


# -------------------------
# Account endpoints
# -------------------------
@router.post("/signup")
async def signup(
    email: str = Form(...),
    password: str = Form(...),
    confirm_password: str = Form(...),
    full_name: str = Form("")
):
    """
    Create a new account.
    1. Validate that passwords match and meet the length requirement.
    2. Reject an email that is already registered.
    3. Store the bcrypt hash with the default "user" role.
    """
    email = email.strip().lower()

    if password != confirm_password:
        _logger.warning("Signup failed for '%s': Passwords do not match.", email)
        raise ValidationError("Passwords do not match.")

    if len(password) < 6:
        _logger.warning("Signup failed for '%s': Password too short.", email)
        raise ValidationError("Password must be at least 6 characters long.")

    client = get_firestore_client()
    if not client:
        _logger.error("Signup failed: Could not connect to Firestore.")
        raise UpstreamError("Could not connect to database.")

    try:
        user_ref = client.collection(FIRESTORE_USERS_COLLECTION).document(email)
        if user_ref.get().exists:
            _logger.warning("Signup failed: '%s' already exists.", email)
            raise ValidationError("An account with this email already exists.")

        user_ref.set({
            "email": email,
            "full_name": full_name,
            "role": "user",
            "hashed_password": hash_password(password),
            "created_at": now_iso(),
        })
        _logger.info("New user created successfully: %s", email)
        return {"success": True, "message": "Account created successfully."}

    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("An unexpected error occurred during signup for '%s': %s", email, e)
        raise UpstreamError("An internal error occurred during signup.")


@router.post("/login")
async def login(email: str = Form(...), password: str = Form(...)):
    """Verify credentials and return a bearer token."""
    email = email.strip().lower()

    client = get_firestore_client()
    if not client:
        _logger.error("Login failed: Could not connect to Firestore.")
        raise UpstreamError("Could not connect to database.")

    try:
        user_doc = client.collection(FIRESTORE_USERS_COLLECTION).document(email).get()
        user_data = user_doc.to_dict() if user_doc.exists else None
        hashed_pwd = (user_data or {}).get("hashed_password")

        if not hashed_pwd or not verify_password(password, hashed_pwd):
            _logger.warning("Login failed for '%s'.", email)
            raise AuthenticationError("Invalid email or password.")

        user = CurrentUser(
            user_id=user_doc.id,
            email=user_data.get("email", email),
            full_name=user_data.get("full_name", ""),
            role=user_data.get("role", "user"),
        )
        _logger.info("User logged in successfully: %s", email)
        return {"success": True, "access_token": create_access_token(user), "token_type": "bearer"}

    except LifeSyncError:
        raise
    except Exception as e:
        _logger.exception("An unexpected error occurred during login for '%s': %s", email, e)
        raise UpstreamError("An internal error occurred during login.")
