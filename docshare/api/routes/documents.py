"""
Documents API Routes
Document upload, listing, download, sharing, and deletion
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from docshare.api.dependencies import get_current_user, get_services, parse_uuid
from docshare.backend import Services
from docshare.core.logging import get_logger
from docshare.db.models import User as UserModel
from docshare.models.common import MessageResponse
from docshare.models.document import (
    DocumentListResponse,
    DocumentMutationResponse,
    DocumentResponse,
    DocumentUpdateRequest,
    DownloadResponse,
    ShareRequest,
    ShareResponse,
)

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=DocumentListResponse, response_model_exclude_unset=True)
async def list_documents(
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """List documents owned by or shared with the current user"""
    return await services.access.list_visible_documents(current_user.id)


@router.post(
    "",
    response_model=DocumentMutationResponse,
    response_model_exclude_unset=True,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Upload a document

    - **title**: Document title
    - **description**: Optional description
    - **file**: File content (max MAX_UPLOAD_SIZE_MB)
    """
    content = None
    filename = None
    content_type = None
    if file is not None:
        # One byte past the limit is enough to reject the upload
        content = await file.read(services.documents.max_upload_bytes + 1)
        filename = file.filename
        content_type = file.content_type
        await file.close()

    document = await services.documents.create_document(
        owner_user_id=current_user.id,
        title=title,
        description=description,
        file_bytes=content,
        mime_type=content_type,
        original_filename=filename,
    )
    return DocumentMutationResponse(message="Document uploaded successfully", document=document)


@router.get("/{document_id}", response_model=DocumentResponse, response_model_exclude_unset=True)
async def get_document(
    document_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Get document details; the owner also sees who it is shared with"""
    doc_uuid = parse_uuid(document_id, "document_id")
    return await services.documents.get_document(doc_uuid, current_user.id)


@router.patch("/{document_id}", response_model=DocumentMutationResponse, response_model_exclude_unset=True)
async def update_document(
    document_id: str,
    request: DocumentUpdateRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Update document title or description (owner or edit access)

    - **title**: New title
    - **description**: New description; null or blank clears it
    """
    doc_uuid = parse_uuid(document_id, "document_id")
    document = await services.documents.update_document(
        doc_uuid,
        current_user.id,
        request.model_dump(include=request.model_fields_set),
    )
    return DocumentMutationResponse(message="Document updated successfully", document=document)


@router.get("/{document_id}/download", response_model=DownloadResponse)
async def download_document(
    document_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Get a short-lived signed download URL"""
    doc_uuid = parse_uuid(document_id, "document_id")
    url = await services.documents.get_download_reference(doc_uuid, current_user.id)
    return DownloadResponse(download_url=url)


@router.post("/{document_id}/share", response_model=ShareResponse)
async def share_document(
    document_id: str,
    request: ShareRequest,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Share a document with another user (owner only)

    - **email**: Email of the user to share with
    - **accessLevel**: read or edit (default read)
    """
    doc_uuid = parse_uuid(document_id, "document_id")
    grant, grantee_name = await services.access.grant_access(
        doc_uuid,
        current_user.id,
        request.email,
        request.access_level,
    )
    return ShareResponse(message=f"Document successfully shared with {grantee_name}", access=grant)


@router.delete("/{document_id}/share/{user_id}", response_model=MessageResponse)
async def remove_share(
    document_id: str,
    user_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Remove a user's access to a document (owner only)"""
    doc_uuid = parse_uuid(document_id, "document_id")
    grantee_uuid = parse_uuid(user_id, "user_id")

    grantee_name = await services.access.revoke_access(doc_uuid, current_user.id, grantee_uuid)
    if grantee_name is None:
        return MessageResponse(message="Access removed successfully")
    return MessageResponse(message=f"Access removed for {grantee_name}")


@router.delete("/{document_id}", response_model=MessageResponse)
async def delete_document(
    document_id: str,
    current_user: UserModel = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Delete a document, its file and all its shares (owner only)"""
    doc_uuid = parse_uuid(document_id, "document_id")
    await services.documents.delete_document(doc_uuid, current_user.id)
    return MessageResponse(message="Document deleted successfully")
