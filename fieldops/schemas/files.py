import uuid
from typing import Optional

from pydantic import BaseModel


class UploadRequest(BaseModel):
    entity_type: Optional[str] = None  # customer|vehicle|job|product_item|report
    entity_id: Optional[uuid.UUID] = None
    category: Optional[str] = None
    original_name: str
    content_type: str


class UploadResponse(BaseModel):
    key: str
    upload_url: str
    expires_in: int


class ConfirmRequest(BaseModel):
    key: str
    size_bytes: int
    checksum_sha256: str
    content_type: Optional[str] = None
    original_name: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    category: Optional[str] = None
