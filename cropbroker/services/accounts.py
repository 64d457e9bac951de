"""User registration, login and access tokens."""

import logging
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import JWTError, jwt

from cropbroker.config import Settings
from cropbroker.models import User
from cropbroker.repositories import Repositories
from cropbroker.schemas.auth import LoginRequest, RegisterRequest
from cropbroker.services.errors import AuthenticationError, ConflictError
from cropbroker.utils import new_id, normalize_phone

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


def create_access_token(settings: Settings, user: User) -> str:
    """Signed token carrying the user's id and role."""
    expire = datetime.now(UTC) + timedelta(hours=settings.token_expire_hours)
    payload = {"id": user.id, "role": user.role.value, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> dict:
    """Verify a token and return its claims.

    Raises:
        AuthenticationError: Bad signature, malformed or expired token
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e
    if not payload.get("id"):
        raise AuthenticationError("Invalid token payload")
    return payload


async def register(
    repos: Repositories, settings: Settings, data: RegisterRequest
) -> tuple[User, str]:
    """Create a user who can log in.

    Returns:
        Tuple of (user, access token)
    """
    email = data.email.strip().lower()
    if await repos.users.get_by_email(email) is not None:
        raise ConflictError("Email already registered")

    user = User(
        id=new_id(),
        email=email,
        password_hash=hash_password(data.password),
        role=data.role,
        firm_name=data.firm_name,
        phone=normalize_phone(data.phone),
        address=data.address,
        pan_number=data.pan_number,
        aadhar_number=data.aadhar_number,
        upi_id=data.upi_id,
        bank_info=data.bank_info,
    )
    repos.users.add(user)
    await repos.commit()
    logger.info("User registered", extra={"user_id": user.id, "role": user.role.value})
    return user, create_access_token(settings, user)


async def login(
    repos: Repositories, settings: Settings, data: LoginRequest
) -> tuple[User, str]:
    user = await repos.users.get_by_email(data.email.strip().lower())
    if user is None or not user.password_hash:
        raise AuthenticationError("Invalid credentials")
    if not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")
    return user, create_access_token(settings, user)
