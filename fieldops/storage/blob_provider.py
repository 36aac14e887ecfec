from datetime import datetime, timedelta
from typing import Optional, BinaryIO, Union

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import (
    BlobServiceClient,
    generate_blob_sas,
    BlobSasPermissions,
)

from ..config import settings
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    name = "blob"

    def __init__(self) -> None:
        if not settings.azure_blob_connection or not settings.azure_blob_container:
            raise RuntimeError("AZURE_BLOB_CONNECTION and AZURE_BLOB_CONTAINER must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self.container = settings.azure_blob_container

    def _sas_url(self, key: str, permission: BlobSasPermissions, expires_s: int, content_type: Optional[str] = None) -> str:
        blob_name = key.lstrip("/")
        sas = generate_blob_sas(
            account_name=self._service.account_name,
            container_name=self.container,
            blob_name=blob_name,
            account_key=self._service.credential.account_key,
            permission=permission,
            expiry=datetime.utcnow() + timedelta(seconds=expires_s),
            content_type=content_type,
        )
        blob_url = self._service.get_blob_client(self.container, blob_name).url
        return f"{blob_url}?{sas}"

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        return self._sas_url(key, BlobSasPermissions(write=True, create=True), expires_s, content_type)

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        return self._sas_url(key, BlobSasPermissions(read=True), expires_s)

    def exists(self, key: str) -> bool:
        client = self._service.get_blob_client(self.container, key.lstrip("/"))
        return client.exists()

    def copy_in(self, src_stream_or_url: Union[str, bytes, BinaryIO], key: str) -> None:
        client = self._service.get_blob_client(self.container, key.lstrip("/"))
        if isinstance(src_stream_or_url, str):
            client.start_copy_from_url(src_stream_or_url)
        else:
            client.upload_blob(src_stream_or_url, overwrite=True)

    def delete(self, key: str) -> None:
        client = self._service.get_blob_client(self.container, key.lstrip("/"))
        try:
            client.delete_blob()
        except ResourceNotFoundError:
            pass
