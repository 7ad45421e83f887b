# auth.py — Session identity for the board
# Features:
# - Demo accounts (alice / bob) with bcrypt-hashed passwords
# - Signup into an in-process user directory
# - One-click demo login (guest account)
# - JWT access tokens with JTI for logout revocation

import os
import uuid
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Set

import bcrypt
from jose import jwt, JWTError, ExpiredSignatureError
from fastapi import HTTPException, Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, EmailStr, Field, field_validator

from models import UserRole, utcnow
from schemas import BoardUser

logger = logging.getLogger("mons.auth")

# ============================================================
# CONFIGURATION
# ============================================================

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
if not SECRET_KEY or SECRET_KEY == "change-this-to-a-secure-random-key-in-production":
    SECRET_KEY = secrets.token_urlsafe(64)
    logger.warning(
        "⚠️  JWT_SECRET_KEY not set or insecure. Generated ephemeral key. "
        "Set JWT_SECRET_KEY in production!"
    )

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
MIN_PASSWORD_LENGTH = 8

DEMO_PASSWORD = "password123"

DEMO_ACCOUNTS = [
    {"id": 1, "name": "Alice Johnson", "email": "alice@example.com", "role": UserRole.ADMIN},
    {"id": 2, "name": "Bob Smith", "email": "bob@example.com", "role": UserRole.MEMBER},
]

GUEST_ACCOUNT = {"name": "Demo User", "email": "user@gmail.com", "role": UserRole.MEMBER}

security = HTTPBearer()


# ============================================================
# PYDANTIC SCHEMAS
# ============================================================

class UserSignup(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., max_length=72)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name must not be blank")
        return v.strip()


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=72)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Dict[str, Any]


class CurrentUser(BaseModel):
    id: int
    name: str
    email: str
    role: str
    avatar_url: Optional[str] = None
    token_jti: Optional[str] = None
    token_expires_at: Optional[datetime] = None

    def to_board_user(self) -> BoardUser:
        return BoardUser(
            id=self.id,
            name=self.name,
            email=self.email,
            avatar_url=self.avatar_url,
            role=UserRole(self.role),
        )


# ============================================================
# AUTH SERVICE
# ============================================================

class AuthService:
    """Token and password primitives"""

    @staticmethod
    def hash_password(password: str) -> str:
        salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        to_encode.update({
            "exp": now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)),
            "iat": now,
            "type": "access",
            "jti": str(uuid.uuid4()),
        })
        return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        except ExpiredSignatureError:
            raise HTTPException(status_code=401, detail="Token expired")
        except JWTError:
            raise HTTPException(status_code=401, detail="Invalid token")

    @staticmethod
    def token_for(user: BoardUser) -> str:
        return AuthService.create_access_token({
            "sub": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
        })


# ============================================================
# USER DIRECTORY
# ============================================================

class UserDirectory:
    """In-process accounts plus revoked token ids.

    Demo accounts are hashed lazily so importing the module stays cheap.
    """

    def __init__(self):
        self._users: Dict[str, BoardUser] = {}
        # guest accounts share an email, so they are keyed by id
        self._guests: Dict[int, BoardUser] = {}
        self._password_hashes: Dict[str, str] = {}
        self._revoked: Set[str] = set()
        self._last_id = 0
        self._demo_loaded = False

    def _load_demo_accounts(self) -> None:
        if self._demo_loaded:
            return
        demo_hash = AuthService.hash_password(DEMO_PASSWORD)
        for account in DEMO_ACCOUNTS:
            user = BoardUser(created_at=utcnow(), **account)
            self._users[user.email] = user
            self._password_hashes[user.email] = demo_hash
        self._demo_loaded = True

    def _next_id(self) -> int:
        # Clock-based ids, strictly increasing
        candidate = int(utcnow().timestamp() * 1000)
        self._last_id = max(candidate, self._last_id + 1)
        return self._last_id

    def get(self, user_id: int) -> Optional[BoardUser]:
        self._load_demo_accounts()
        if user_id in self._guests:
            return self._guests[user_id]
        for user in self._users.values():
            if user.id == user_id:
                return user
        return None

    def get_by_email(self, email: str) -> Optional[BoardUser]:
        self._load_demo_accounts()
        return self._users.get(email.lower())

    def authenticate(self, email: str, password: str) -> Optional[BoardUser]:
        self._load_demo_accounts()
        email = email.lower()
        password_hash = self._password_hashes.get(email)
        if password_hash is None or not AuthService.verify_password(password, password_hash):
            logger.info(f"Failed login for {email}")
            return None
        return self._users[email]

    def register(self, data: UserSignup) -> BoardUser:
        self._load_demo_accounts()
        email = data.email.lower()
        if email in self._users:
            raise HTTPException(status_code=409, detail="Email already exists")
        user = BoardUser(
            id=self._next_id(),
            name=data.name,
            email=email,
            role=UserRole.MEMBER,
            created_at=utcnow(),
        )
        self._users[email] = user
        self._password_hashes[email] = AuthService.hash_password(data.password)
        logger.info(f"Registered {email} as #{user.id}")
        return user

    def guest(self) -> BoardUser:
        """Fresh passwordless account for one demo login."""
        user = BoardUser(id=self._next_id(), created_at=utcnow(), **GUEST_ACCOUNT)
        self._guests[user.id] = user
        logger.info(f"Started demo session #{user.id}")
        return user

    def revoke(self, jti: str) -> None:
        self._revoked.add(jti)

    def is_revoked(self, jti: str) -> bool:
        return jti in self._revoked


# ============================================================
# FASTAPI DEPENDENCIES
# ============================================================

def get_directory(request: Request) -> UserDirectory:
    return request.app.state.directory


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    directory: UserDirectory = Depends(get_directory),
) -> CurrentUser:
    payload = AuthService.verify_token(credentials.credentials)

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")

    jti = payload.get("jti")
    if jti and directory.is_revoked(jti):
        raise HTTPException(status_code=401, detail="Token has been revoked")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")

    user = directory.get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    exp = payload.get("exp")
    return CurrentUser(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role.value,
        avatar_url=user.avatar_url,
        token_jti=jti,
        token_expires_at=datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
    )
