from dataclasses import dataclass
from typing import Optional
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel
from pydantic import ValidationError as PayloadError
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from email_validator import validate_email, EmailNotValidError
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
import logging

from .categories import hostel_for_registration, normalize_registration_number
from .config import get_settings
from .database import get_session
from .errors import AccessDenied, ConflictError, Unauthorized, ValidationError
from .models import Profile

logger = logging.getLogger("quirii.auth")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)

settings = get_settings()

SECRET_KEY = settings.jwt_secret
if not SECRET_KEY:
    # Fail at import rather than signing tokens with a guessable default.
    raise ValueError("JWT_SECRET not found in environment or .env file.")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = settings.jwt_access_minutes

# pbkdf2_sha256 avoids depending on the bcrypt C-extension.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# auto_error=False so a missing header reaches our own 401 (or the optional-actor path).
security = HTTPBearer(auto_error=False)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    id: str
    role: str


class TokenPayload(BaseModel):
    sub: str
    role: Optional[str] = None
    exp: Optional[int] = None


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, passed explicitly into every service function."""

    user_id: str
    name: str
    hostel: Optional[str] = None
    is_admin: bool = False

    @classmethod
    def from_profile(cls, profile: Profile) -> "Actor":
        return cls(
            user_id=profile.id,
            name=profile.name,
            hostel=profile.hostel,
            is_admin=profile.is_admin,
        )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(subject: str, role: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = {"sub": str(subject)}
    if role:
        to_encode["role"] = role
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": int(expire.timestamp())})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise Unauthorized("Invalid authentication credentials") from exc
    try:
        return TokenPayload(**payload)
    except PayloadError as exc:
        # Signed by us but missing a usable subject.
        raise Unauthorized("Invalid authentication credentials") from exc


async def authenticate(email: str, password: str, session) -> Optional[Profile]:
    statement = select(Profile).where(Profile.email == email.strip().lower())
    result = await session.exec(statement)
    profile = result.first()
    if not profile or not profile.password_hash:
        return None
    if not verify_password(password, profile.password_hash):
        return None
    return profile


async def register_profile(
    session,
    name: str,
    registration_number: str,
    email: str,
    password: str,
    role: Optional[str] = None,
) -> Profile:
    """Create a profile, deriving the hostel from the registration number.

    Emails listed in AUTO_ADMIN_EMAILS get the admin role unless `role` is given.
    """
    name = (name or "").strip()
    reg_number = normalize_registration_number(registration_number or "")
    email = (email or "").strip().lower()
    if not name:
        raise ValidationError("Name is required")
    if not reg_number:
        raise ValidationError("Registration number is required")
    try:
        email = validate_email(email, check_deliverability=False).normalized.lower()
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email address: {exc}") from exc
    if len(password or "") < 6:
        raise ValidationError("Password must be at least 6 characters")

    existing = await session.exec(
        select(Profile).where(
            (Profile.email == email) | (Profile.registration_number == reg_number)
        )
    )
    if existing.first():
        raise ConflictError("An account with this email or registration number already exists")

    if role is None:
        role = "admin" if email in settings.auto_admin_emails else "student"

    profile = Profile(
        name=name,
        registration_number=reg_number,
        hostel=hostel_for_registration(reg_number),
        email=email,
        password_hash=get_password_hash(password),
        role=role,
    )
    session.add(profile)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("An account with this email or registration number already exists") from exc
    await session.refresh(profile)

    if profile.hostel is None and role != "admin":
        logger.info("Registration number %s has no hostel assignment", reg_number)
    return profile


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session=Depends(get_session),
) -> Optional[Actor]:
    """Resolve the bearer token to an Actor; None when no token was sent.

    A token that is present but invalid is still rejected with 401.
    """
    if not credentials or not getattr(credentials, "credentials", None):
        return None

    payload = decode_access_token(credentials.credentials)
    profile = await session.get(Profile, payload.sub)
    if not profile:
        logger.info("Token subject %r does not match a profile", payload.sub)
        raise Unauthorized("Invalid authentication credentials")
    return Actor.from_profile(profile)


async def get_current_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise Unauthorized("Not authenticated")
    return actor


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise AccessDenied("Insufficient privileges")
    return actor


__all__ = [
    "Actor",
    "Token",
    "TokenPayload",
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "decode_access_token",
    "authenticate",
    "register_profile",
    "get_optional_actor",
    "get_current_actor",
    "require_admin",
]
