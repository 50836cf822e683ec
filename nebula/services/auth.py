from datetime import timedelta
from typing import Optional, Tuple
import enum
import logging
import uuid

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nebula.config import get_settings
from nebula.database import get_db, utcnow
from nebula.errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError, ValidationError
from nebula.models.refresh_token import RefreshToken
from nebula.models.user import User, UserRole
from nebula.schemas.user import UserCreate, UserUpdate

settings = get_settings()
logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)

BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 6


class Capability(str, enum.Enum):
    VIEW_TICKETS = "view_tickets"
    ISSUE_TICKETS = "issue_tickets"
    CANCEL_TICKETS = "cancel_tickets"
    SCAN_TICKETS = "scan_tickets"
    MANAGE_USERS = "manage_users"


ROLE_CAPABILITIES = {
    UserRole.ADMIN: frozenset(Capability),
    UserRole.SALES: frozenset({
        Capability.VIEW_TICKETS,
        Capability.ISSUE_TICKETS,
        Capability.CANCEL_TICKETS,
    }),
    UserRole.SCANNER: frozenset({
        Capability.VIEW_TICKETS,
        Capability.SCAN_TICKETS,
    }),
}


def has_capability(role: UserRole, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


class AuthService:
    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return bcrypt.checkpw(
            plain_password.encode('utf-8'),
            hashed_password.encode('utf-8')
        )

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(
            password.encode('utf-8'),
            bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
        ).decode('utf-8')

    @staticmethod
    def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
        expire = utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
        to_encode = {"sub": str(user.id), "type": "access", "exp": expire}
        return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)

    @staticmethod
    def create_refresh_token(db: Session, user: User) -> str:
        expires_at = utcnow() + timedelta(days=settings.refresh_token_expire_days)
        to_encode = {
            "sub": str(user.id),
            "type": "refresh",
            "jti": uuid.uuid4().hex,
            "exp": expires_at
        }
        token = jwt.encode(to_encode, settings.refresh_secret_key, algorithm=settings.algorithm)

        db.add(RefreshToken(user_id=user.id, token=token, expires_at=expires_at))
        db.commit()
        return token

    @staticmethod
    def decode_access_token(token: str) -> int:
        """Return the user id carried by an access token."""
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        except ExpiredSignatureError:
            raise UnauthorizedError("Token expired", code="TOKEN_EXPIRED")
        except JWTError:
            raise UnauthorizedError("Invalid token", code="INVALID_TOKEN")

        if payload.get("type") != "access" or not str(payload.get("sub", "")).isdigit():
            raise UnauthorizedError("Invalid token", code="INVALID_TOKEN")
        return int(payload["sub"])

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.lower()).first()

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> User:
        user = AuthService.get_user_by_email(db, email)
        if not user or not AuthService.verify_password(password, user.password_hash):
            logger.info(f"Failed login attempt for {email}")
            raise UnauthorizedError("Invalid email or password", code="INVALID_CREDENTIALS")
        if not user.is_active:
            raise UnauthorizedError("Account is disabled", code="ACCOUNT_DISABLED")

        AuthService.purge_expired_refresh_tokens(db, user_id=user.id)
        return user

    @staticmethod
    def login(db: Session, email: str, password: str) -> Tuple[User, str, str]:
        user = AuthService.authenticate(db, email, password)
        access_token = AuthService.create_access_token(user)
        refresh_token = AuthService.create_refresh_token(db, user)
        logger.info(f"User {user.id} logged in")
        return user, access_token, refresh_token

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> str:
        try:
            payload = jwt.decode(refresh_token, settings.refresh_secret_key, algorithms=[settings.algorithm])
        except JWTError:
            raise UnauthorizedError("Invalid refresh token", code="INVALID_REFRESH_TOKEN")

        if payload.get("type") != "refresh":
            raise UnauthorizedError("Invalid refresh token", code="INVALID_REFRESH_TOKEN")

        stored = db.query(RefreshToken).filter(
            RefreshToken.token == refresh_token,
            RefreshToken.expires_at > utcnow()
        ).first()
        if not stored:
            raise UnauthorizedError("Invalid refresh token", code="INVALID_REFRESH_TOKEN")

        user = AuthService.get_user_by_id(db, stored.user_id)
        if not user or not user.is_active:
            raise UnauthorizedError("User not found or inactive", code="INVALID_USER")

        return AuthService.create_access_token(user)

    @staticmethod
    def logout(db: Session, refresh_token: Optional[str]) -> None:
        if not refresh_token:
            return
        db.query(RefreshToken).filter(RefreshToken.token == refresh_token).delete(synchronize_session=False)
        db.commit()

    @staticmethod
    def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
        if not AuthService.verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect", code="INVALID_CURRENT_PASSWORD")
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"New password must be at least {MIN_PASSWORD_LENGTH} characters long",
                code="WEAK_PASSWORD"
            )

        user.password_hash = AuthService.hash_password(new_password)
        db.query(RefreshToken).filter(RefreshToken.user_id == user.id).delete(synchronize_session=False)
        db.commit()
        logger.info(f"User {user.id} changed password, all sessions revoked")

    @staticmethod
    def purge_expired_refresh_tokens(db: Session, user_id: Optional[int] = None) -> int:
        query = db.query(RefreshToken).filter(RefreshToken.expires_at <= utcnow())
        if user_id is not None:
            query = query.filter(RefreshToken.user_id == user_id)
        removed = query.delete(synchronize_session=False)
        db.commit()
        return removed

    @staticmethod
    def create_user(db: Session, user_data: UserCreate) -> User:
        if AuthService.get_user_by_email(db, user_data.email):
            raise ConflictError("Email already exists", code="EMAIL_EXISTS")

        db_user = User(
            email=user_data.email,
            name=user_data.name,
            password_hash=AuthService.hash_password(user_data.password),
            role=user_data.role,
            is_active=True
        )
        db.add(db_user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("Email already exists", code="EMAIL_EXISTS")
        db.refresh(db_user)
        logger.info(f"Created {db_user.role.value} user {db_user.id}")
        return db_user

    @staticmethod
    def update_user(db: Session, user_id: int, changes: UserUpdate, acting_user: User) -> User:
        updates = changes.model_dump(exclude_unset=True, exclude_none=True)
        if not updates:
            raise ValidationError("No updates provided", code="NO_UPDATES")

        if user_id == acting_user.id:
            if updates.get("is_active") is False:
                raise ValidationError("Cannot delete your own account", code="CANNOT_DELETE_SELF")
            if "role" in updates and updates["role"] != acting_user.role:
                raise ValidationError("Cannot change your own role", code="CANNOT_CHANGE_OWN_ROLE")

        user = AuthService.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")

        if "email" in updates and updates["email"] != user.email:
            if AuthService.get_user_by_email(db, updates["email"]):
                raise ConflictError("Email already exists", code="EMAIL_EXISTS")

        for field, value in updates.items():
            setattr(user, field, value)
        if updates.get("is_active") is False:
            db.query(RefreshToken).filter(RefreshToken.user_id == user.id).delete(synchronize_session=False)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def deactivate_user(db: Session, user_id: int, acting_user: User) -> User:
        if user_id == acting_user.id:
            raise ValidationError("Cannot delete your own account", code="CANNOT_DELETE_SELF")

        user = AuthService.get_user_by_id(db, user_id)
        if not user:
            raise NotFoundError("User not found", code="USER_NOT_FOUND")

        user.is_active = False
        db.query(RefreshToken).filter(RefreshToken.user_id == user.id).delete(synchronize_session=False)
        db.commit()
        db.refresh(user)
        logger.info(f"User {user.id} deactivated by {acting_user.id}")
        return user

    @staticmethod
    def ensure_initial_admin(db: Session, email: str, password: str, name: str) -> Optional[User]:
        """Create the first admin account when none exists yet."""
        if not email or not password:
            return None
        if db.query(User).filter(User.role == UserRole.ADMIN).first():
            return None
        if AuthService.get_user_by_email(db, email):
            logger.warning(f"Cannot bootstrap admin: {email} already belongs to a non-admin user")
            return None

        admin = AuthService.create_user(db, UserCreate(
            email=email,
            name=name,
            password=password,
            role=UserRole.ADMIN
        ))
        logger.info(f"Bootstrapped initial admin {admin.email}")
        return admin


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Access token required", code="NO_TOKEN")

    user_id = AuthService.decode_access_token(credentials.credentials)
    user = AuthService.get_user_by_id(db, user_id)
    if not user or not user.is_active:
        raise UnauthorizedError("User not found or inactive", code="INVALID_USER")
    return user


def require_capability(capability: Capability):
    """Dependency factory: the current user must hold `capability`."""

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not has_capability(current_user.role, capability):
            raise ForbiddenError("Insufficient permissions")
        return current_user

    return dependency
