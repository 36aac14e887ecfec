"""
Local filesystem storage provider for development.
Saves files to a local directory instead of Azure Blob Storage.
"""
from typing import Optional, BinaryIO, Union
from pathlib import Path
from urllib.parse import quote

import httpx
import structlog

from ..config import settings
from .provider import StorageProvider


log = structlog.get_logger()


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    name = "local"
    container = "local"

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        (self.base_dir / "uploads").mkdir(parents=True, exist_ok=True)

    def get_path(self, key: str) -> Path:
        """Filesystem path for a key; path traversal segments are stripped."""
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        return self.base_dir / "uploads" / clean_key

    def _url(self, key: str) -> str:
        return f"{settings.public_base_url}/files/local/{quote(key.lstrip('/'))}"

    def generate_upload_url(self, key: str, content_type: str, expires_s: int) -> str:
        # Development only: clients PUT to the proxy upload endpoint instead
        return self._url(key)

    def get_download_url(self, key: str, expires_s: int) -> Optional[str]:
        if self.get_path(key).exists():
            return self._url(key)
        return None

    def exists(self, key: str) -> bool:
        return self.get_path(key).exists()

    def read(self, key: str) -> Optional[bytes]:
        path = self.get_path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def copy_in(self, src_stream_or_url: Union[str, bytes, BinaryIO], key: str) -> None:
        path = self.get_path(key)
        path.parent.mkdir(parents=True, exist_ok=True)

        if isinstance(src_stream_or_url, str):
            resp = httpx.get(src_stream_or_url, timeout=30.0)
            resp.raise_for_status()
            data = resp.content
        elif isinstance(src_stream_or_url, bytes):
            data = src_stream_or_url
        else:
            data = src_stream_or_url.read()
        path.write_bytes(data)
        log.info("local_file_stored", key=key, size=len(data))

    def delete(self, key: str) -> None:
        path = self.get_path(key)
        if path.exists():
            path.unlink()
