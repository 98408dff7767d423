"""
Access Control Service
Document-level access resolution and sharing (ACL enforcement)
"""

import uuid
from typing import Dict, Iterable, List, Optional

from docshare.core.exceptions import (
    AuthorizationException,
    InvalidOperationException,
    NotFoundException,
    ValidationException,
)
from docshare.core.logging import get_logger
from docshare.db.models import ACCESS_LEVELS, Document
from docshare.db.store import AdminStore
from docshare.models.document import (
    AccessGrantResponse,
    DocumentListResponse,
    DocumentResponse,
    OwnerInfo,
    SharedWithEntry,
)

logger = get_logger(__name__)

OWNER = "owner"

# Levels allowed to change title/description; download needs any level
WRITE_LEVELS = frozenset({OWNER, "edit"})


class AccessControlService:
    """Answers who may do what with a document"""

    def __init__(self, store: AdminStore):
        self._store = store

    async def load_document(self, document_id: uuid.UUID) -> Document:
        document = await self._store.get_document(document_id)
        if document is None:
            raise NotFoundException("Document")
        return document

    async def resolve_access(self, document_id: uuid.UUID, user_id: uuid.UUID) -> str:
        """
        Resolve the caller's level on a document

        Returns:
            'owner', 'read' or 'edit'

        Raises:
            NotFoundException: the document does not exist
            AuthorizationException: the user is neither owner nor grantee
        """
        document = await self.load_document(document_id)
        return await self.resolve_for(document, user_id)

    async def resolve_for(self, document: Document, user_id: uuid.UUID) -> str:
        """resolve_access for an already loaded document"""
        if document.owner_id == user_id:
            logger.debug(f"Owner {user_id} granted access on {document.id}")
            return OWNER

        grant = await self._store.get_grant(document.id, user_id)
        if grant is None:
            logger.debug(f"User {user_id} denied access on {document.id} (no grant)")
            raise AuthorizationException(
                message="You do not have access to this document",
                details={"document_id": str(document.id)},
            )
        return grant.access_level

    async def require_owner(self, document_id: uuid.UUID, user_id: uuid.UUID, action: str) -> Document:
        document = await self.load_document(document_id)
        if document.owner_id != user_id:
            logger.warning(f"User {user_id} attempted owner-only '{action}' on {document_id}")
            raise AuthorizationException(
                message=f"Only the document owner can {action}",
                details={"document_id": str(document_id)},
            )
        return document

    async def owner_info(self, owner_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, OwnerInfo]:
        users = await self._store.get_users(owner_ids)
        return {
            user_id: OwnerInfo(full_name=user.full_name, email=user.email)
            for user_id, user in users.items()
        }

    async def list_visible_documents(self, user_id: uuid.UUID) -> DocumentListResponse:
        """Owned documents plus documents shared with the user, annotated with level and owner"""
        owned = await self._store.list_owned_documents(user_id)

        grants = await self._store.list_grants_for_user(user_id)
        level_by_document = {grant.document_id: grant.access_level for grant in grants}
        shared = await self._store.list_documents(level_by_document.keys())

        owners = await self.owner_info({doc.owner_id for doc in owned + shared})

        return DocumentListResponse(
            owned=[
                DocumentResponse.from_db_model(doc, OWNER, owners.get(doc.owner_id))
                for doc in owned
            ],
            shared=[
                DocumentResponse.from_db_model(
                    doc, level_by_document[doc.id], owners.get(doc.owner_id)
                )
                for doc in shared
            ],
        )

    async def list_grants(self, document_id: uuid.UUID) -> List[SharedWithEntry]:
        """Display-ready grants for the owner's view of a document"""
        grants = await self._store.list_grants_for_document(document_id)
        users = await self._store.get_users(grant.user_id for grant in grants)

        entries = []
        for grant in grants:
            user = users.get(grant.user_id)
            entries.append(
                SharedWithEntry(
                    id=str(grant.user_id),
                    full_name=user.full_name if user else None,
                    email=user.email if user else None,
                    access_level=grant.access_level,
                )
            )
        return entries

    async def grant_access(
        self,
        document_id: uuid.UUID,
        owner_user_id: uuid.UUID,
        grantee_email: str,
        level: str = "read",
    ) -> tuple[AccessGrantResponse, str]:
        """
        Share a document with another user by email

        Re-granting updates the level of the existing grant.

        Returns:
            The grant and a display name for the grantee
        """
        if level not in ACCESS_LEVELS:
            raise ValidationException(
                message="Invalid access level",
                details={"access_level": level, "valid_levels": list(ACCESS_LEVELS)},
            )

        document = await self.require_owner(document_id, owner_user_id, "share it")

        grantee = await self._store.get_user_by_email(grantee_email)
        if grantee is None:
            raise NotFoundException("User", details={"email": grantee_email})

        if grantee.id == document.owner_id:
            raise InvalidOperationException(
                message="You cannot share a document with yourself",
                details={"document_id": str(document_id)},
            )

        grant = await self._store.upsert_grant(document.id, grantee.id, level)
        logger.info(
            f"Access granted: {level} on document {document_id} to user {grantee.id} by {owner_user_id}"
        )
        return AccessGrantResponse.from_db_model(grant), grantee.full_name or grantee.email

    async def revoke_access(
        self,
        document_id: uuid.UUID,
        owner_user_id: uuid.UUID,
        grantee_user_id: uuid.UUID,
    ) -> Optional[str]:
        """
        Remove a grant. Removing a grant that does not exist succeeds.

        Returns:
            Display name of the former grantee, or None if no such user exists
        """
        await self.require_owner(document_id, owner_user_id, "remove sharing")

        removed = await self._store.delete_grant(document_id, grantee_user_id)
        if removed:
            logger.info(f"Access revoked on document {document_id} from user {grantee_user_id}")
        else:
            logger.debug(f"No grant to revoke on document {document_id} for user {grantee_user_id}")

        grantee = await self._store.get_user(grantee_user_id)
        if grantee is None:
            return None
        return grantee.full_name or grantee.email
