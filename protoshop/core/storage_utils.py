# protoshop/core/storage_utils.py
"""
Supabase Storage helpers for catalog images and quote model files.

Objects live in one public bucket (STORAGE_BUCKET):
  products/<product_id>/<uuid>.<ext>
  quotes/models/<stem>_<hex8>.<ext>
"""
import os
import re
import uuid

from protoshop.core.config import get_settings
from protoshop.core.supabase_client import supabase_admin


def _bucket():
    return supabase_admin().storage.from_(get_settings().STORAGE_BUCKET)


def upload_to_storage(path: str, file_bytes: bytes, content_type: str | None = None) -> str:
    """
    Store `file_bytes` at `path` (overwriting) and return the public URL.
    """
    options = {"upsert": "true"}
    if content_type:
        options["content-type"] = content_type
    bucket = _bucket()
    bucket.upload(path, file_bytes, options)
    return bucket.get_public_url(path)


def object_path(public_url: str) -> str | None:
    """Bucket-relative path of one of our public URLs, else None."""
    marker = f"/object/public/{get_settings().STORAGE_BUCKET}/"
    _, found, path = public_url.partition(marker)
    return path.split("?", 1)[0] if found and path else None


def delete_public_url(url: str) -> None:
    """Remove the object behind a public URL; foreign URLs are ignored."""
    path = object_path(url)
    if path:
        _bucket().remove([path])


def generate_filename(ext: str) -> str:
    return f"{uuid.uuid4()}.{ext}"


def safe_object_name(original_name: str) -> str:
    """
    Keep an uploaded file's readable stem, strip anything unsafe, and make
    it unique: "bracket v2.stl" -> "bracketv2_<hex8>.stl".
    """
    stem, ext = os.path.splitext(original_name or "")
    stem = re.sub(r"[^a-zA-Z0-9\-_]", "", stem) or "file"
    return f"{stem}_{uuid.uuid4().hex[:8]}{ext.lower()}"
