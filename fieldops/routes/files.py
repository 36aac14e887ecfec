import hashlib
import os
import uuid
from datetime import datetime
from mimetypes import guess_type
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Form, File, UploadFile
from fastapi.responses import FileResponse, Response
from sqlalchemy.orm import Session
from slugify import slugify
import structlog

from ..db import get_db
from ..auth.security import get_current_user
from ..models.models import FileObject, User
from ..schemas.files import UploadRequest, UploadResponse, ConfirmRequest
from ..services.thumbnails import is_image, make_thumbnail
from ..storage.factory import get_storage, get_storage_for_file
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/files", tags=["files"])
log = structlog.get_logger()

UPLOAD_URL_TTL = 900
DOWNLOAD_URL_TTL = 300


def canonical_key(entity_type: Optional[str], entity_id: Optional[uuid.UUID], category: Optional[str], original_name: str) -> str:
    today = datetime.utcnow().strftime("%Y-%m-%d")
    year = datetime.utcnow().strftime("%Y")
    safe_name = slugify(os.path.splitext(original_name)[0]) or "file"
    ext = os.path.splitext(original_name)[1].lower()
    owner = slugify(entity_type or "misc")
    owner_id = f"-{str(entity_id)[:8]}" if entity_id else ""
    folder = slugify(category or "files")
    # Short random suffix keeps same-day uploads of the same name apart
    return f"/org/{year}/{owner}{owner_id}/{folder}/{today}_{safe_name}_{uuid.uuid4().hex[:6]}{ext}"


def thumbnail_key(key: str) -> str:
    base = os.path.splitext(key)[0]
    return f"{base}_thumb.jpg"


def _get_file(db: Session, file_id: uuid.UUID) -> FileObject:
    fo = db.query(FileObject).filter(FileObject.id == file_id).first()
    if not fo:
        raise HTTPException(status_code=404, detail="File not found")
    return fo


def store_bytes(
    db: Session,
    storage: StorageProvider,
    content: bytes,
    original_name: str,
    content_type: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    category: Optional[str] = None,
    created_by: Optional[uuid.UUID] = None,
) -> FileObject:
    """Store bytes through the provider and record them; images also get a JPEG thumbnail."""
    key = canonical_key(entity_type, entity_id, category, original_name)
    storage.copy_in(content, key)

    thumb_key = None
    if is_image(content_type, original_name):
        thumb = make_thumbnail(content)
        if thumb:
            thumb_key = thumbnail_key(key)
            storage.copy_in(thumb, thumb_key)

    fo = FileObject(
        provider=storage.name,
        container=storage.container,
        key=key,
        thumbnail_key=thumb_key,
        original_name=original_name,
        size_bytes=len(content),
        checksum_sha256=hashlib.sha256(content).hexdigest(),
        content_type=content_type,
        entity_type=entity_type,
        entity_id=entity_id,
        category=category,
        created_by=created_by,
    )
    db.add(fo)
    db.flush()
    log.info("file_stored", file_id=str(fo.id), key=key, size=len(content), thumbnail=bool(thumb_key))
    return fo


@router.post("/upload", response_model=UploadResponse)
def upload(req: UploadRequest, storage: StorageProvider = Depends(get_storage), _=Depends(get_current_user)):
    """Presigned URL the client uploads to directly; call /files/confirm afterwards"""
    key = canonical_key(req.entity_type, req.entity_id, req.category, req.original_name)
    url = storage.generate_upload_url(key, req.content_type, expires_s=UPLOAD_URL_TTL)
    return UploadResponse(key=key, upload_url=url, expires_in=UPLOAD_URL_TTL)


@router.post("/confirm")
def confirm(
    req: ConfirmRequest,
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    fo = FileObject(
        provider=storage.name,
        container=storage.container,
        key=req.key,
        original_name=req.original_name,
        size_bytes=req.size_bytes,
        checksum_sha256=req.checksum_sha256,
        content_type=req.content_type,
        entity_type=req.entity_type,
        entity_id=req.entity_id,
        category=req.category,
        created_by=user.id,
    )
    db.add(fo)
    db.commit()
    return {"id": str(fo.id)}


@router.post("/upload-proxy")
async def upload_proxy(
    file: UploadFile = File(...),
    original_name: Optional[str] = Form(None),
    content_type: Optional[str] = Form(None),
    entity_type: Optional[str] = Form(None),
    entity_id: Optional[uuid.UUID] = Form(None),
    category: str = Form("files"),
    db: Session = Depends(get_db),
    storage: StorageProvider = Depends(get_storage),
    user: User = Depends(get_current_user),
):
    """
    Upload through the backend when a direct upload is not possible.
    Images get a JPEG thumbnail stored next to the original.
    """
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    name = original_name or file.filename or "upload"
    ctype = content_type or file.content_type or guess_type(name)[0] or "application/octet-stream"
    fo = store_bytes(db, storage, content, name, ctype, entity_type, entity_id, category, user.id)
    db.commit()
    return {"id": str(fo.id), "key": fo.key, "thumbnail_key": fo.thumbnail_key}


@router.get("")
def list_files(
    entity_type: str,
    entity_id: uuid.UUID,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(get_current_user),
) -> List[dict]:
    q = db.query(FileObject).filter(FileObject.entity_type == entity_type, FileObject.entity_id == entity_id)
    if category:
        q = q.filter(FileObject.category == category)
    return [
        {
            "id": str(fo.id),
            "original_name": fo.original_name,
            "content_type": fo.content_type,
            "size_bytes": fo.size_bytes,
            "category": fo.category,
            "has_thumbnail": bool(fo.thumbnail_key),
            "created_at": fo.created_at.isoformat() if fo.created_at else None,
        }
        for fo in q.order_by(FileObject.created_at.desc()).all()
    ]


@router.get("/local/{file_path:path}")
def serve_local_file(file_path: str):
    """Serve files from local storage for development."""
    local_storage = LocalStorageProvider()
    path = local_storage.get_path(file_path)

    # Ensure the file is within the storage directory
    if not str(path.resolve()).startswith(str(local_storage.base_dir.resolve())):
        raise HTTPException(status_code=403, detail="Access denied")
    if not path.exists():
        raise HTTPException(status_code=404, detail="File not found")

    content_type = guess_type(str(path))[0] or "application/octet-stream"
    return FileResponse(path=str(path), media_type=content_type, filename=path.name)


def _serve(fo: FileObject, key: str, content_type: Optional[str]):
    storage = get_storage_for_file(fo)
    if isinstance(storage, LocalStorageProvider):
        path = storage.get_path(key)
        if not path.exists():
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(
            path=str(path),
            media_type=content_type or guess_type(str(path))[0] or "application/octet-stream",
            filename=fo.original_name or path.name,
        )
    url = storage.get_download_url(key, expires_s=DOWNLOAD_URL_TTL)
    if not url:
        raise HTTPException(status_code=404, detail="File not available in blob storage")
    return {"download_url": url, "expires_in": DOWNLOAD_URL_TTL}


@router.get("/{file_id}/download")
def download(file_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    fo = _get_file(db, file_id)
    return _serve(fo, fo.key, fo.content_type)


@router.get("/{file_id}/thumbnail")
def thumbnail(file_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    fo = _get_file(db, file_id)
    if fo.thumbnail_key:
        return _serve(fo, fo.thumbnail_key, "image/jpeg")

    # Files confirmed after a direct upload have no stored thumbnail; build one from local bytes
    storage = get_storage_for_file(fo)
    if not isinstance(storage, LocalStorageProvider):
        raise HTTPException(status_code=404, detail="Thumbnail not available")
    content = storage.read(fo.key)
    thumb = make_thumbnail(content) if content else None
    if not thumb:
        raise HTTPException(status_code=404, detail="Thumbnail not available")
    return Response(content=thumb, media_type="image/jpeg")


@router.delete("/{file_id}")
def delete_file(file_id: uuid.UUID, db: Session = Depends(get_db), _=Depends(get_current_user)):
    fo = db.query(FileObject).filter(FileObject.id == file_id).first()
    if not fo:
        return {"status": "ok"}
    storage = get_storage_for_file(fo)
    storage.delete(fo.key)
    if fo.thumbnail_key:
        storage.delete(fo.thumbnail_key)
    db.delete(fo)
    db.commit()
    return {"status": "ok"}
