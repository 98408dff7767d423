"""
Backend container
Explicitly constructed clients for the relational store, blob store and
identity provider, plus the services built on top of them.
"""

from dataclasses import dataclass
from typing import Optional

from docshare.core.config import Settings
from docshare.core.logging import get_logger
from docshare.core.security import SecurityContext
from docshare.db.session import Database
from docshare.db.store import RelationalStore
from docshare.identity.provider import IdentityProvider, LocalIdentityProvider
from docshare.services.access import AccessControlService
from docshare.services.accounts import AccountService
from docshare.services.documents import DocumentService
from docshare.storage.client import BlobStore, create_blob_store

logger = get_logger(__name__)


@dataclass
class Services:
    access: AccessControlService
    documents: DocumentService
    accounts: AccountService


class Backend:
    def __init__(
        self,
        settings: Settings,
        database: Database,
        blobs: BlobStore,
        identity: Optional[IdentityProvider] = None,
    ):
        self.settings = settings
        self.database = database
        self.blobs = blobs
        self.store = RelationalStore(database)
        self.identity = identity or LocalIdentityProvider(database, SecurityContext(settings))

        access = AccessControlService(self.store.admin)
        self.services = Services(
            access=access,
            documents=DocumentService(
                self.store.admin,
                blobs,
                access,
                max_upload_bytes=settings.MAX_UPLOAD_SIZE_BYTES,
                download_url_expires=settings.DOWNLOAD_URL_EXPIRE_SECONDS,
            ),
            accounts=AccountService(self.identity, self.store),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Backend":
        return cls(settings, Database.from_settings(settings), create_blob_store(settings))

    async def startup(self, create_tables: Optional[bool] = None) -> None:
        """Prepare schema and bucket"""
        if create_tables is None:
            create_tables = self.settings.ENVIRONMENT == "development"
        if create_tables:
            await self.database.create_all()
        await self.blobs.ensure_bucket()
        logger.info("Backend initialized")

    async def shutdown(self) -> None:
        await self.database.dispose()

    async def health(self) -> dict:
        services = {}
        try:
            await self.store.admin.ping()
            services["database"] = "healthy"
        except Exception as e:
            services["database"] = f"unhealthy: {e}"
        return services
