"""
Account Service
Registration, login and profile management on top of the identity provider
"""

import uuid

from docshare.core.exceptions import ConflictException, NotFoundException, ValidationException
from docshare.core.logging import get_logger
from docshare.db.models import User
from docshare.db.store import RelationalStore
from docshare.identity.provider import IdentityProvider, IdentitySession, IdentityUser

logger = get_logger(__name__)


class AccountService:
    def __init__(self, identity: IdentityProvider, store: RelationalStore):
        self._identity = identity
        self._store = store

    async def register(self, email: str, password: str, full_name: str) -> uuid.UUID:
        """Create credentials with the identity provider and mirror the profile row"""
        full_name = full_name.strip()
        if not full_name:
            raise ValidationException(message="Full name cannot be blank", details={"field": "fullName"})

        identity = await self._identity.sign_up(email, password, full_name)
        await self._store.admin.insert_user(identity.id, identity.email, full_name)
        logger.info(f"New user registered: {identity.email}")
        return identity.id

    async def login(self, email: str, password: str) -> tuple[User, IdentitySession]:
        identity, session = await self._identity.sign_in(email, password)
        user = await self._ensure_profile(identity)
        logger.info(f"User logged in: {user.email}")
        return user, session

    async def refresh(self, refresh_token: str) -> tuple[User, IdentitySession]:
        identity, session = await self._identity.refresh(refresh_token)
        user = await self._ensure_profile(identity)
        return user, session

    async def authenticate(self, access_token: str) -> User:
        """Resolve a bearer token to the caller's profile row"""
        identity = await self._identity.get_user(access_token)
        return await self._ensure_profile(identity)

    async def _ensure_profile(self, identity: IdentityUser) -> User:
        user = await self._store.admin.get_user(identity.id)
        if user is not None:
            return user

        # Identity exists without a mirrored row (e.g. registration interrupted)
        logger.warning(f"Creating missing user profile for {identity.id}")
        try:
            return await self._store.admin.insert_user(
                identity.id, identity.email, identity.full_name or "User"
            )
        except ConflictException:
            user = await self._store.admin.get_user(identity.id)
            if user is None:
                raise
            return user

    async def get_profile(self, user_id: uuid.UUID) -> User:
        user = await self._store.as_user(user_id).get_profile()
        if user is None:
            raise NotFoundException("User")
        return user

    async def update_profile(self, user_id: uuid.UUID, full_name: str) -> User:
        full_name = full_name.strip()
        if not full_name:
            raise ValidationException(message="Full name cannot be blank", details={"field": "fullName"})

        user = await self._store.as_user(user_id).update_profile(full_name)
        if user is None:
            raise NotFoundException("User")
        logger.info(f"User profile updated: {user.email}")
        return user
