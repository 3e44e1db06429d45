"""
Image upload handling for posts.

Files are validated (type and size) before anything is written, then saved
under UPLOAD_DIR and exposed through the /uploads static mount.
"""
import logging
import os
import random
import time
from typing import List, Tuple
from urllib.parse import quote

from fastapi import HTTPException, UploadFile, status

from ..config import settings

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif"}
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}
UPLOAD_URL_PREFIX = "/uploads"


def ensure_upload_dir() -> str:
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    return settings.UPLOAD_DIR


def build_stored_filename(original_name: str) -> str:
    """Return '<basename>-<epoch_ms>-<random><ext>' for an uploaded file name."""
    base, ext = os.path.splitext(os.path.basename(original_name or "image"))
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{base or 'image'}-{unique_suffix}{ext.lower()}"


def _read_and_validate(upload: UploadFile) -> bytes:
    ext = os.path.splitext(upload.filename or "")[1].lower()
    if ext not in ALLOWED_EXTENSIONS or (upload.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only JPG, PNG and GIF images can be uploaded"
        )

    data = upload.file.read(settings.MAX_IMAGE_SIZE_BYTES + 1)
    if len(data) > settings.MAX_IMAGE_SIZE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Image size cannot exceed {settings.MAX_IMAGE_SIZE_BYTES // (1024 * 1024)}MB"
        )
    return data


def save_images(uploads: List[UploadFile]) -> List[Tuple[str, str]]:
    """
    Validate and persist uploaded images.

    Args:
        uploads: Files received under the 'images' form field

    Returns:
        List of (public_url, file_path) tuples in upload order

    Raises:
        HTTPException: 400 if there are too many files, or a file has the wrong type or size
    """
    uploads = [u for u in uploads if u is not None and u.filename]
    if len(uploads) > settings.MAX_IMAGES_PER_POST:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.MAX_IMAGES_PER_POST} images can be uploaded"
        )

    # Validate everything first so a bad file doesn't leave earlier files behind
    payloads = [(upload.filename, _read_and_validate(upload)) for upload in uploads]

    upload_dir = ensure_upload_dir()
    saved = []
    for original_name, data in payloads:
        filename = build_stored_filename(original_name)
        file_path = os.path.join(upload_dir, filename)
        with open(file_path, "wb") as fh:
            fh.write(data)
        saved.append((f"{UPLOAD_URL_PREFIX}/{quote(filename)}", file_path))
        logger.info("[Upload] Saved image: file=%s bytes=%s", filename, len(data))
    return saved


def remove_files(file_paths: List[str]) -> None:
    for path in file_paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("[Upload] Could not remove file %s: %s", path, e)
