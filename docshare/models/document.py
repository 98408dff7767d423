"""
Document Pydantic Models
Request/response schemas for document and sharing endpoints
"""

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from docshare.db.models import AccessGrant as AccessGrantSQLModel
from docshare.db.models import Document as DocumentSQLModel

AccessLevel = Literal["read", "edit"]
ResolvedAccessLevel = Literal["owner", "read", "edit"]


class OwnerInfo(BaseModel):
    """Owner display info"""
    full_name: str
    email: str

    @classmethod
    def unknown(cls) -> "OwnerInfo":
        return cls(full_name="Unknown", email="unknown")


class SharedWithEntry(BaseModel):
    """Grant resolved for display to the document owner"""
    id: str
    full_name: Optional[str]
    email: Optional[str]
    access_level: AccessLevel


class DocumentResponse(BaseModel):
    """Document response schema"""
    id: str
    owner_id: str
    title: str
    description: Optional[str]
    file_url: str
    original_filename: Optional[str]
    content_type: Optional[str]
    file_size_bytes: int
    created_at: datetime
    updated_at: Optional[datetime]
    access_level: ResolvedAccessLevel
    owner: OwnerInfo
    shared_with: Optional[List[SharedWithEntry]] = None

    @classmethod
    def from_db_model(
        cls,
        doc: DocumentSQLModel,
        access_level: str,
        owner_info: Optional[OwnerInfo] = None,
        shared_with: Optional[List[SharedWithEntry]] = None,
    ) -> "DocumentResponse":
        """Create DocumentResponse from database model"""
        fields = dict(
            id=str(doc.id),
            owner_id=str(doc.owner_id),
            title=doc.title,
            description=doc.description,
            file_url=doc.file_url,
            original_filename=doc.original_filename,
            content_type=doc.content_type,
            file_size_bytes=doc.file_size_bytes or 0,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
            access_level=access_level,
            owner=owner_info or OwnerInfo.unknown(),
        )
        # Left unset for non-owners so it is omitted from the payload
        if shared_with is not None:
            fields["shared_with"] = shared_with
        return cls(**fields)


class DocumentListResponse(BaseModel):
    """Owned and shared documents visible to the caller"""
    owned: List[DocumentResponse]
    shared: List[DocumentResponse]


class DocumentMutationResponse(BaseModel):
    """Response for create/update"""
    message: str
    document: DocumentResponse


class DocumentUpdateRequest(BaseModel):
    """Editable presentation fields"""
    title: Optional[str] = Field(None, min_length=1, max_length=512)
    description: Optional[str] = None

    @model_validator(mode="after")
    def require_one_field(self) -> "DocumentUpdateRequest":
        if not self.model_fields_set & {"title", "description"}:
            raise ValueError("Provide title or description")
        return self


class DownloadResponse(BaseModel):
    """Signed download URL; a bearer credential until it expires"""
    model_config = ConfigDict(populate_by_name=True)

    download_url: str = Field(..., alias="downloadUrl")


class ShareRequest(BaseModel):
    """Share request schema"""
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    access_level: AccessLevel = Field("read", alias="accessLevel")


class AccessGrantResponse(BaseModel):
    """Access grant schema"""
    id: str
    document_id: str
    user_id: str
    access_level: AccessLevel
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_db_model(cls, grant: AccessGrantSQLModel) -> "AccessGrantResponse":
        return cls(
            id=str(grant.id),
            document_id=str(grant.document_id),
            user_id=str(grant.user_id),
            access_level=grant.access_level,
            created_at=grant.created_at,
            updated_at=grant.updated_at,
        )


class ShareResponse(BaseModel):
    """Share response schema"""
    message: str
    access: AccessGrantResponse
