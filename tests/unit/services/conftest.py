"""
Fixtures for service tests
Services run against in-memory SQLite and the in-memory blob store
"""

import uuid

import pytest


@pytest.fixture
def admin_store(backend):
    return backend.store.admin


@pytest.fixture
def make_user(admin_store):
    """Insert a users row directly"""

    async def _make(full_name: str = "Test User", email: str = None):
        return await admin_store.insert_user(
            uuid.uuid4(),
            email or f"user_{uuid.uuid4().hex[:8]}@example.com",
            full_name,
        )

    return _make


@pytest.fixture
def make_document(backend):
    """Create a document through the lifecycle service"""

    async def _make(owner, title: str = "Quarterly report", content: bytes = b"report body"):
        return await backend.services.documents.create_document(
            owner_user_id=owner.id,
            title=title,
            description=None,
            file_bytes=content,
            mime_type="text/plain",
            original_filename="report.txt",
        )

    return _make
