import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import settings
from database import get_db
from errors import conflict, forbidden, not_found, unauthorized
from schemas import LoginRequest, RegisterRequest, User
from stores import UserStore
from utils import is_valid_object_id

logger = logging.getLogger(__name__)

ADMIN = "admin"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)
# auto_error=False so a missing header is reported through our own 401 envelope
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


# Utilities

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, password_hash: str) -> bool:
    return pwd_context.verify(plain, password_hash)


def create_access_token(user_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    issued = datetime.now(timezone.utc)
    expire = issued + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {"id": user_id, "role": role, "iat": issued, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def authenticate(token: Optional[str]) -> Identity:
    if not token:
        raise unauthorized("Authentication required")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except ExpiredSignatureError:
        raise unauthorized("Token expired")
    except JWTError:
        raise unauthorized("Invalid token")
    user_id = payload.get("id")
    role = payload.get("role")
    if not user_id or not role:
        raise unauthorized("Invalid token")
    return Identity(user_id=user_id, role=role)


def authorize(identity: Identity, owner_id: Optional[str] = None, required_role: Optional[str] = None) -> None:
    """
    Admins pass every check. Anyone else needs the required role (if any) and,
    when an owner is given, must be that owner.
    """
    if identity.is_admin:
        return
    if required_role is not None and identity.role != required_role:
        raise forbidden()
    if owner_id is not None and identity.user_id != owner_id:
        raise forbidden()


def get_identity(token: Optional[str] = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> Identity:
    """
    A valid token whose account has since been deactivated is refused. A user
    that no longer exists passes through; the handlers report it as 404.
    """
    identity = authenticate(token)
    if is_valid_object_id(identity.user_id):
        creds = UserStore(db).find_credentials(id=identity.user_id)
        if creds is not None and not creds.get("isActive", True):
            logger.warning("Rejected token for deactivated user %s", identity.user_id)
            raise unauthorized("Account deactivated")
    return identity


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    authorize(identity, required_role=ADMIN)
    return identity


class AuthService:
    def __init__(self, db: Database):
        self.users = UserStore(db)

    def register(self, body: RegisterRequest) -> Tuple[dict, str]:
        if self.users.find_by_email(body.email) is not None:
            raise conflict("Email already in use")
        record = User(name=body.name, email=body.email, password=get_password_hash(body.password))
        user = self.users.create(record.to_document())
        logger.info("Registered user %s", user["id"])
        return user, create_access_token(user["id"], user["role"])

    def login(self, body: LoginRequest) -> Tuple[dict, str]:
        # one message for unknown email, inactive account and wrong password
        creds = self.users.find_credentials(email=body.email)
        if (
            creds is None
            or not creds.get("isActive", True)
            or not verify_password(body.password, creds.get("password", ""))
        ):
            logger.warning("Rejected login for %s", body.email)
            raise unauthorized("Invalid credentials")
        user = self.users.find_by_id(str(creds["_id"]))
        return user, create_access_token(user["id"], user["role"])

    def current_user(self, identity: Identity) -> dict:
        user = self.users.find_by_id(identity.user_id)
        if user is None:
            raise not_found("User not found")
        return user

    def bootstrap_admin(self, email: str, password: str) -> dict:
        existing = self.users.find_by_email(email)
        if existing is not None:
            if existing["role"] != ADMIN:
                existing = self.users.update(existing["id"], {"role": ADMIN})
                logger.info("Promoted %s to admin", email)
            return existing
        record = User(name="Administrator", email=email, password=get_password_hash(password), role=ADMIN)
        admin = self.users.create(record.to_document())
        logger.info("Created admin account %s", email)
        return admin
