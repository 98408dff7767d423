"""
Document Lifecycle Service
Create, read, update and delete documents across the relational and blob stores
"""

import re
import time
import uuid
from typing import Dict, Optional

from docshare.core.exceptions import (
    AuthorizationException,
    PayloadTooLargeException,
    ValidationException,
)
from docshare.core.logging import get_logger
from docshare.db.store import AdminStore
from docshare.models.document import DocumentResponse
from docshare.services.access import OWNER, WRITE_LEVELS, AccessControlService
from docshare.services.saga import Saga, SagaStep
from docshare.storage.client import BlobStore

logger = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9._-] with an underscore"""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename or "file")


def build_storage_key(owner_id: uuid.UUID, original_filename: str, now_ms: Optional[int] = None) -> str:
    """Storage key of the form {owner}_{epoch millis}_{sanitized filename}"""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{owner_id}_{now_ms}_{sanitize_filename(original_filename)}"


def _clean_description(description: Optional[str]) -> Optional[str]:
    if description is None or not description.strip():
        return None
    return description.strip()


class DocumentService:
    """Keeps document rows and their blobs in step"""

    def __init__(
        self,
        store: AdminStore,
        blobs: BlobStore,
        access: AccessControlService,
        max_upload_bytes: int = 10 * 1024 * 1024,
        download_url_expires: int = 300,
    ):
        self._store = store
        self._blobs = blobs
        self._access = access
        self.max_upload_bytes = max_upload_bytes
        self.download_url_expires = download_url_expires
        self._last_key_ms = 0

    def _next_key_ms(self) -> int:
        """Millisecond stamp for a new storage key, strictly increasing per process"""
        now_ms = max(time.time_ns() // 1_000_000, self._last_key_ms + 1)
        self._last_key_ms = now_ms
        return now_ms

    async def create_document(
        self,
        owner_user_id: uuid.UUID,
        title: Optional[str],
        description: Optional[str],
        file_bytes: Optional[bytes],
        mime_type: Optional[str],
        original_filename: Optional[str],
    ) -> DocumentResponse:
        """
        Upload a file and create its document row

        The blob is written first; if the row insert fails the blob is
        removed again (best effort) and the insert error is raised.
        """
        title = (title or "").strip()
        if not title:
            raise ValidationException(message="Title is required", details={"field": "title"})

        if file_bytes is None:
            raise ValidationException(message="File is required", details={"field": "file"})

        if len(file_bytes) > self.max_upload_bytes:
            raise PayloadTooLargeException(
                max_size_bytes=self.max_upload_bytes,
                details={"size_bytes": len(file_bytes)},
            )

        filename = original_filename or "file"
        content_type = mime_type or "application/octet-stream"
        description = _clean_description(description)
        storage_key = build_storage_key(owner_user_id, filename, self._next_key_ms())

        saga = Saga(
            "create_document",
            [
                SagaStep(
                    name="upload_blob",
                    action=lambda: self._blobs.put(storage_key, file_bytes, content_type),
                    compensate=lambda: self._blobs.delete(storage_key),
                ),
                SagaStep(
                    name="insert_row",
                    action=lambda: self._store.insert_document(
                        owner_id=owner_user_id,
                        title=title,
                        description=description,
                        file_url=storage_key,
                        original_filename=filename,
                        content_type=content_type,
                        file_size_bytes=len(file_bytes),
                    ),
                ),
            ],
            context={"owner_id": str(owner_user_id), "storage_key": storage_key},
        )
        outcome = await saga.run()
        document = outcome.results["insert_row"]

        logger.info(f"Document uploaded: {document.id} - {filename} by user {owner_user_id}")

        owners = await self._access.owner_info([owner_user_id])
        return DocumentResponse.from_db_model(document, OWNER, owners.get(owner_user_id), shared_with=[])

    async def get_document(self, document_id: uuid.UUID, requesting_user_id: uuid.UUID) -> DocumentResponse:
        """Document with the caller's level, owner info and, for the owner, its grants"""
        document = await self._access.load_document(document_id)
        level = await self._access.resolve_for(document, requesting_user_id)

        owners = await self._access.owner_info([document.owner_id])
        shared_with = await self._access.list_grants(document.id) if level == OWNER else None

        return DocumentResponse.from_db_model(
            document, level, owners.get(document.owner_id), shared_with=shared_with
        )

    async def get_download_reference(self, document_id: uuid.UUID, requesting_user_id: uuid.UUID) -> str:
        """
        Signed URL for the document's blob

        Any access level may download. The URL is a bearer credential:
        whoever holds it can fetch the blob until it expires.
        """
        document = await self._access.load_document(document_id)
        await self._access.resolve_for(document, requesting_user_id)

        url = await self._blobs.signed_url(document.file_url, self.download_url_expires)
        logger.info(
            f"Download URL issued for document {document_id} to user {requesting_user_id} "
            f"(expires in {self.download_url_expires}s)"
        )
        return url

    async def update_document(
        self,
        document_id: uuid.UUID,
        requesting_user_id: uuid.UUID,
        changes: Dict[str, Optional[str]],
    ) -> DocumentResponse:
        """
        Change title/description; owner and edit grantees only

        Only keys present in changes are written. A null or blank
        description clears it; the title can never be blank.
        """
        document = await self._access.load_document(document_id)
        level = await self._access.resolve_for(document, requesting_user_id)
        if level not in WRITE_LEVELS:
            raise AuthorizationException(
                message="Edit access is required to modify this document",
                details={"document_id": str(document_id), "access_level": level},
            )

        fields: Dict[str, Optional[str]] = {}
        if "title" in changes:
            title = (changes["title"] or "").strip()
            if not title:
                raise ValidationException(message="Title cannot be blank", details={"field": "title"})
            fields["title"] = title
        if "description" in changes:
            fields["description"] = _clean_description(changes["description"])

        updated = await self._store.update_document(document_id, fields)
        if updated is None:
            # Deleted between the access check and the update
            return await self.get_document(document_id, requesting_user_id)

        logger.info(f"Document updated: {document_id} by user {requesting_user_id}")

        owners = await self._access.owner_info([updated.owner_id])
        shared_with = await self._access.list_grants(updated.id) if level == OWNER else None
        return DocumentResponse.from_db_model(updated, level, owners.get(updated.owner_id), shared_with=shared_with)

    async def delete_document(self, document_id: uuid.UUID, requesting_user_id: uuid.UUID) -> None:
        """
        Delete a document, its grants and its blob (owner only)

        Blob and grant removal failures are logged and tolerated; a failure
        to delete the row itself is raised.
        """
        document = await self._access.require_owner(document_id, requesting_user_id, "delete it")

        saga = Saga(
            "delete_document",
            [
                SagaStep(
                    name="remove_blob",
                    action=lambda: self._blobs.delete(document.file_url),
                    required=False,
                ),
                SagaStep(
                    name="remove_grants",
                    action=lambda: self._store.delete_grants_for_document(document.id),
                    required=False,
                ),
                SagaStep(
                    name="delete_row",
                    action=lambda: self._store.delete_document(document.id),
                ),
            ],
            context={"document_id": str(document.id), "storage_key": document.file_url},
        )
        outcome = await saga.run()

        if not outcome.clean:
            logger.warning(
                f"Document {document_id} deleted with skipped cleanup steps: {outcome.failed_steps}"
            )
        logger.info(f"Document deleted: {document_id} by user {requesting_user_id}")
