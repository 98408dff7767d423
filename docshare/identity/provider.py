"""
Identity Provider
Issues and validates bearer tokens and owns the credential store.

The services only depend on the IdentityProvider interface; the bundled
LocalIdentityProvider keeps credentials in its own table and signs JWTs.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from docshare.core.exceptions import (
    AuthenticationException,
    BackingStoreException,
    ConflictException,
)
from docshare.core.logging import get_logger
from docshare.core.security import SecurityContext
from docshare.db.models import Identity
from docshare.db.session import Database

logger = get_logger(__name__)


@dataclass(frozen=True)
class IdentityUser:
    id: uuid.UUID
    email: str
    full_name: str


@dataclass(frozen=True)
class IdentitySession:
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class IdentityProvider(ABC):
    """Interface to the external identity platform"""

    @abstractmethod
    async def sign_up(self, email: str, password: str, full_name: str) -> IdentityUser:
        """Create credentials; raises ConflictException for a taken email"""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> tuple[IdentityUser, IdentitySession]:
        """Exchange credentials for a session; raises AuthenticationException"""

    @abstractmethod
    async def get_user(self, access_token: str) -> IdentityUser:
        """Resolve a bearer token; raises AuthenticationException"""

    @abstractmethod
    async def refresh(self, refresh_token: str) -> tuple[IdentityUser, IdentitySession]:
        """Issue a new session from a refresh token"""


class LocalIdentityProvider(IdentityProvider):
    """JWT + bcrypt identity provider backed by the identities table"""

    def __init__(self, db: Database, security: SecurityContext):
        self._db = db
        self._security = security

    def _issue(self, identity: IdentityUser) -> IdentitySession:
        token_data = {"sub": str(identity.id), "email": identity.email}
        return IdentitySession(
            access_token=self._security.create_access_token(token_data),
            refresh_token=self._security.create_refresh_token(token_data),
            expires_in=self._security.access_token_expires_in,
        )

    async def _find(self, **criteria) -> Identity | None:
        try:
            async with self._db.session() as session:
                query = select(Identity)
                if "email" in criteria:
                    query = query.where(func.lower(Identity.email) == criteria["email"].strip().lower())
                if "id" in criteria:
                    query = query.where(Identity.id == criteria["id"])
                result = await session.execute(query)
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise BackingStoreException(
                message=f"Identity provider error: {e.__class__.__name__}",
                store="identity",
                details={"error": str(e)},
            ) from e

    async def sign_up(self, email: str, password: str, full_name: str) -> IdentityUser:
        identity = Identity(
            id=uuid.uuid4(),
            email=email.strip().lower(),
            hashed_password=self._security.get_password_hash(password),
            full_name=full_name,
        )
        try:
            async with self._db.session() as session:
                session.add(identity)
                await session.flush()
        except IntegrityError as e:
            raise ConflictException(
                message="Email already registered",
                details={"email": email},
            ) from e
        except SQLAlchemyError as e:
            raise BackingStoreException(
                message=f"Identity provider error: {e.__class__.__name__}",
                store="identity",
                details={"error": str(e)},
            ) from e

        logger.info(f"Identity created: {identity.email}")
        return IdentityUser(id=identity.id, email=identity.email, full_name=identity.full_name)

    async def sign_in(self, email: str, password: str) -> tuple[IdentityUser, IdentitySession]:
        identity = await self._find(email=email)
        if identity is None or not self._security.verify_password(password, identity.hashed_password):
            logger.warning(f"Failed login attempt for email: {email}")
            raise AuthenticationException(message="Invalid email or password")

        user = IdentityUser(id=identity.id, email=identity.email, full_name=identity.full_name)
        return user, self._issue(user)

    async def get_user(self, access_token: str) -> IdentityUser:
        payload = self._security.verify_access_token(access_token)
        return await self._user_from_payload(payload)

    async def refresh(self, refresh_token: str) -> tuple[IdentityUser, IdentitySession]:
        payload = self._security.verify_refresh_token(refresh_token)
        user = await self._user_from_payload(payload)
        return user, self._issue(user)

    async def _user_from_payload(self, payload: dict) -> IdentityUser:
        try:
            identity_id = uuid.UUID(str(payload.get("sub")))
        except ValueError:
            raise AuthenticationException(message="Invalid token subject")

        identity = await self._find(id=identity_id)
        if identity is None:
            raise AuthenticationException(message="Invalid token or user not found")
        return IdentityUser(id=identity.id, email=identity.email, full_name=identity.full_name)
