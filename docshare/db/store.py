"""
Relational Store
Capability-scoped access to users, documents and access grants.

AdminStore is unrestricted and is only ever held by the services.
UserScopedStore is bound to a single user id and can only touch that
user's own profile row.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docshare.core.exceptions import BackingStoreException, ConflictException
from docshare.core.logging import get_logger
from docshare.db.models import AccessGrant, Document, User
from docshare.db.session import Database

logger = get_logger(__name__)


@asynccontextmanager
async def _guarded_session(db: Database) -> AsyncIterator[AsyncSession]:
    """Session whose driver errors surface as BackingStoreException"""
    try:
        async with db.session() as session:
            yield session
    except SQLAlchemyError as e:
        logger.error(f"Relational store error: {e}")
        raise BackingStoreException(
            message=f"Database error: {e.__class__.__name__}",
            store="relational",
            details={"error": str(e)},
        ) from e


class AdminStore:
    """Unrestricted store access"""

    def __init__(self, db: Database):
        self._db = db

    # Users

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        async with _guarded_session(self._db) as session:
            return await session.get(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                select(User).where(func.lower(User.email) == email.strip().lower())
            )
            return result.scalar_one_or_none()

    async def get_users(self, user_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        async with _guarded_session(self._db) as session:
            result = await session.execute(select(User).where(User.id.in_(ids)))
            return {user.id: user for user in result.scalars().all()}

    async def insert_user(self, user_id: uuid.UUID, email: str, full_name: str) -> User:
        async with _guarded_session(self._db) as session:
            user = User(id=user_id, email=email.strip().lower(), full_name=full_name)
            session.add(user)
            try:
                await session.flush()
            except IntegrityError:
                raise ConflictException(
                    message="User profile already exists",
                    details={"email": email},
                )
            return user

    # Documents

    async def get_document(self, document_id: uuid.UUID) -> Optional[Document]:
        async with _guarded_session(self._db) as session:
            return await session.get(Document, document_id)

    async def insert_document(
        self,
        owner_id: uuid.UUID,
        title: str,
        description: Optional[str],
        file_url: str,
        original_filename: Optional[str],
        content_type: Optional[str],
        file_size_bytes: int,
    ) -> Document:
        async with _guarded_session(self._db) as session:
            document = Document(
                id=uuid.uuid4(),
                owner_id=owner_id,
                title=title,
                description=description,
                file_url=file_url,
                original_filename=original_filename,
                content_type=content_type,
                file_size_bytes=file_size_bytes,
            )
            session.add(document)
            await session.flush()
            return document

    async def update_document(
        self,
        document_id: uuid.UUID,
        changes: Dict[str, Optional[str]],
    ) -> Optional[Document]:
        """Update presentation fields only; owner and storage key are fixed"""
        async with _guarded_session(self._db) as session:
            document = await session.get(Document, document_id)
            if document is None:
                return None
            if "title" in changes:
                document.title = changes["title"]
            if "description" in changes:
                document.description = changes["description"]
            await session.flush()
            await session.refresh(document)
            return document

    async def delete_document(self, document_id: uuid.UUID) -> bool:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                delete(Document).where(Document.id == document_id)
            )
            return result.rowcount > 0

    async def list_owned_documents(self, owner_id: uuid.UUID) -> List[Document]:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                select(Document)
                .where(Document.owner_id == owner_id)
                .order_by(Document.created_at.desc())
            )
            return list(result.scalars().all())

    async def list_documents(self, document_ids: Iterable[uuid.UUID]) -> List[Document]:
        ids = set(document_ids)
        if not ids:
            return []
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                select(Document)
                .where(Document.id.in_(ids))
                .order_by(Document.created_at.desc())
            )
            return list(result.scalars().all())

    # Access grants

    async def get_grant(self, document_id: uuid.UUID, user_id: uuid.UUID) -> Optional[AccessGrant]:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                select(AccessGrant).where(
                    AccessGrant.document_id == document_id,
                    AccessGrant.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()

    async def list_grants_for_user(self, user_id: uuid.UUID) -> List[AccessGrant]:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                select(AccessGrant).where(AccessGrant.user_id == user_id)
            )
            return list(result.scalars().all())

    async def list_grants_for_document(self, document_id: uuid.UUID) -> List[AccessGrant]:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                select(AccessGrant)
                .where(AccessGrant.document_id == document_id)
                .order_by(AccessGrant.created_at)
            )
            return list(result.scalars().all())

    async def upsert_grant(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        access_level: str,
    ) -> AccessGrant:
        """Insert a grant or update the level of the existing one"""
        try:
            return await self._insert_or_update_grant(document_id, user_id, access_level)
        except BackingStoreException as e:
            # A concurrent insert won the unique constraint; the row now exists
            if not isinstance(e.__cause__, IntegrityError):
                raise
            logger.debug(f"Grant insert raced for document {document_id}, retrying as update")
            return await self._insert_or_update_grant(document_id, user_id, access_level)

    async def _insert_or_update_grant(
        self,
        document_id: uuid.UUID,
        user_id: uuid.UUID,
        access_level: str,
    ) -> AccessGrant:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                select(AccessGrant).where(
                    AccessGrant.document_id == document_id,
                    AccessGrant.user_id == user_id,
                )
            )
            grant = result.scalar_one_or_none()
            if grant is None:
                grant = AccessGrant(
                    document_id=document_id,
                    user_id=user_id,
                    access_level=access_level,
                )
                session.add(grant)
            else:
                grant.access_level = access_level
            await session.flush()
            await session.refresh(grant)
            return grant

    async def delete_grant(self, document_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                delete(AccessGrant).where(
                    AccessGrant.document_id == document_id,
                    AccessGrant.user_id == user_id,
                )
            )
            return result.rowcount > 0

    async def delete_grants_for_document(self, document_id: uuid.UUID) -> int:
        async with _guarded_session(self._db) as session:
            result = await session.execute(
                delete(AccessGrant).where(AccessGrant.document_id == document_id)
            )
            return result.rowcount

    async def ping(self) -> bool:
        try:
            return await self._db.ping()
        except SQLAlchemyError as e:
            raise BackingStoreException(
                message=f"Database error: {e.__class__.__name__}",
                store="relational",
                details={"error": str(e)},
            ) from e


class UserScopedStore:
    """Store access restricted to the rows of one user"""

    def __init__(self, db: Database, user_id: uuid.UUID):
        self._db = db
        self.user_id = user_id

    async def get_profile(self) -> Optional[User]:
        async with _guarded_session(self._db) as session:
            return await session.get(User, self.user_id)

    async def update_profile(self, full_name: str) -> Optional[User]:
        async with _guarded_session(self._db) as session:
            user = await session.get(User, self.user_id)
            if user is None:
                return None
            user.full_name = full_name
            await session.flush()
            await session.refresh(user)
            return user


class RelationalStore:
    """Entry point handing out the two store capabilities"""

    def __init__(self, db: Database):
        self._db = db
        self.admin = AdminStore(db)

    def as_user(self, user_id: uuid.UUID) -> UserScopedStore:
        return UserScopedStore(self._db, user_id)
