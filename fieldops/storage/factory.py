from ..config import settings
from ..models.models import FileObject
from .blob_provider import BlobStorageProvider
from .local_provider import LocalStorageProvider
from .provider import StorageProvider


def get_storage() -> StorageProvider:
    """
    Azure Blob Storage when it is configured, the local filesystem otherwise.
    Used as a FastAPI dependency so tests can override it.
    """
    if settings.azure_blob_connection and settings.azure_blob_container:
        return BlobStorageProvider()
    return LocalStorageProvider()


def get_storage_for_file(fo: FileObject) -> StorageProvider:
    """Provider a stored file lives in, regardless of the current default."""
    if fo.provider == "blob":
        return BlobStorageProvider()
    return LocalStorageProvider()
