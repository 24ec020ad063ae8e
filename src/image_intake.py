"""
Image Intake Module

Turns dropped/selected uploads into ImageFile records with preview thumbnails.
"""

import io

from PIL import Image, UnidentifiedImageError

from models import ImageFile
from llm_extraction import get_logger

# Supported upload extensions (passed to the file uploader)
IMAGE_EXTENSIONS = ["jpeg", "jpg", "png", "gif", "bmp", "webp"]

PREVIEW_SIZE = (320, 320)


def is_image_upload(upload) -> bool:
    """True if the upload's declared MIME type is an image type."""
    mime_type = getattr(upload, "type", None) or ""
    return mime_type.startswith("image/")


def make_preview(image_bytes: bytes, size: tuple = PREVIEW_SIZE) -> bytes:
    """
    Render a PNG thumbnail for display in the image grid.

    Falls back to the original bytes when Pillow cannot decode the image,
    so an odd file still shows up (and still gets extracted).
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img.thumbnail(size)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            buffer = io.BytesIO()
            img.save(buffer, format="PNG")
            return buffer.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        get_logger().warning(f"Could not build preview: {e}")
        return image_bytes


def accept_uploads(uploads, seen_upload_ids: set = None) -> list[ImageFile]:
    """
    Filter uploads to image types and build an ImageFile for each survivor.

    Args:
        uploads: File-like objects with `name`, `type` and `getvalue()`
                 (e.g. Streamlit UploadedFile). `file_id` is optional.
        seen_upload_ids: Upload ids already accepted in this session. The
                 uploader re-sends its whole file list on every rerun, so
                 re-deliveries are skipped. Same-named distinct uploads are kept.

    Returns:
        Newly accepted ImageFile records, in upload order
    """
    seen_upload_ids = seen_upload_ids if seen_upload_ids is not None else set()
    accepted = []

    for upload in uploads or []:
        upload_id = getattr(upload, "file_id", None)
        if upload_id is not None and upload_id in seen_upload_ids:
            continue
        if not is_image_upload(upload):
            get_logger().info(f"Skipping non-image upload: {upload.name} ({upload.type})")
            continue

        data = upload.getvalue()
        accepted.append(ImageFile(
            data=data,
            name=upload.name,
            mime_type=upload.type,
            preview=make_preview(data),
            upload_id=upload_id,
        ))
        if upload_id is not None:
            seen_upload_ids.add(upload_id)

    return accepted
