"""Tests for file storage and thumbnails."""
import io
import uuid

from PIL import Image

from fieldops.models.models import FileObject
from fieldops.routes.files import canonical_key, thumbnail_key
from fieldops.services.thumbnails import is_image, make_thumbnail


def _png(width=1200, height=600):
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 30, 30, 128)).save(buf, format="PNG")
    return buf.getvalue()


class TestKeys:
    """Object keys are deterministic apart from the date and a short suffix."""

    def test_canonical_key(self):
        entity_id = uuid.UUID("12345678-1234-5678-1234-567812345678")
        key = canonical_key("vehicle", entity_id, "Site Photos", "Front Left.PNG")
        assert key.startswith("/org/")
        assert "/vehicle-12345678/site-photos/" in key
        assert "_front-left_" in key
        assert key.endswith(".png")

    def test_thumbnail_key(self):
        assert thumbnail_key("/org/2026/misc/files/a.png") == "/org/2026/misc/files/a_thumb.jpg"


class TestThumbnails:
    """JPEG thumbnails from uploaded images."""

    def test_downscales_and_flattens(self):
        thumb = make_thumbnail(_png())
        img = Image.open(io.BytesIO(thumb))
        assert img.format == "JPEG"
        assert img.size == (400, 200)
        assert img.mode == "RGB"

    def test_unreadable_bytes(self):
        assert make_thumbnail(b"not an image") is None
        assert make_thumbnail(b"") is None

    def test_is_image(self):
        assert is_image("image/png")
        assert is_image(None, "photo.JPG")
        assert not is_image("application/pdf", "report.pdf")


class TestUploadProxy:
    """Uploads through the backend."""

    def test_image_gets_thumbnail(self, client, admin_headers, db, storage, vehicle):
        resp = client.post(
            "/files/upload-proxy",
            files={"file": ("front.png", _png(), "image/png")},
            data={"entity_type": "vehicle", "entity_id": str(vehicle.id), "category": "photos"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["thumbnail_key"].endswith("_thumb.jpg")
        assert storage.exists(body["key"])
        assert storage.exists(body["thumbnail_key"])

        listed = client.get(
            "/files",
            params={"entity_type": "vehicle", "entity_id": str(vehicle.id)},
            headers=admin_headers,
        ).json()
        assert listed[0]["has_thumbnail"] is True

        thumb = client.get(f"/files/{body['id']}/thumbnail", headers=admin_headers)
        assert thumb.status_code == 200
        assert thumb.headers["content-type"] == "image/jpeg"

    def test_document_has_no_thumbnail(self, client, admin_headers, db):
        resp = client.post(
            "/files/upload-proxy",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=admin_headers,
        )
        body = resp.json()
        assert body["thumbnail_key"] is None

        download = client.get(f"/files/{body['id']}/download", headers=admin_headers)
        assert download.content == b"hello"
        assert client.get(f"/files/{body['id']}/thumbnail", headers=admin_headers).status_code == 404

    def test_empty_upload(self, client, admin_headers):
        resp = client.post("/files/upload-proxy", files={"file": ("empty.txt", b"", "text/plain")}, headers=admin_headers)
        assert resp.status_code == 400

    def test_delete_removes_bytes(self, client, admin_headers, db, storage):
        body = client.post(
            "/files/upload-proxy",
            files={"file": ("front.png", _png(40, 40), "image/png")},
            headers=admin_headers,
        ).json()
        client.delete(f"/files/{body['id']}", headers=admin_headers)
        assert not storage.exists(body["key"])
        assert not storage.exists(body["thumbnail_key"])
        assert db.query(FileObject).count() == 0


class TestDirectUpload:
    """Presigned upload followed by confirm."""

    def test_upload_then_confirm(self, client, admin_headers, db):
        resp = client.post(
            "/files/upload",
            json={"original_name": "site.jpg", "content_type": "image/jpeg", "entity_type": "customer"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        key = resp.json()["key"]
        assert resp.json()["upload_url"]

        resp = client.post(
            "/files/confirm",
            json={"key": key, "original_name": "site.jpg", "content_type": "image/jpeg", "size_bytes": 10, "checksum_sha256": "0" * 64},
            headers=admin_headers,
        )
        fo = db.query(FileObject).filter(FileObject.id == uuid.UUID(resp.json()["id"])).one()
        assert fo.key == key
        assert fo.provider == "local"
