# ========================= farmguide/utils.py =========================

import io
import os
import html
import uuid

import markdown
from PIL import Image, UnidentifiedImageError

from farmguide.config import UPLOAD_DIR, IMAGE_CONTENT_PREFIX

# Saved uploads only ever get one of these extensions.
IMAGE_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
    "GIF": ".gif",
}
CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}
DEFAULT_EXTENSION = ".jpg"


def is_image_upload(file) -> bool:
    return bool(file.content_type) and file.content_type.startswith(IMAGE_CONTENT_PREFIX)


def image_extension(data: bytes, content_type: str = None) -> str:
    """
    Picks the extension for a stored upload from the decoded image format,
    then the declared content type. The client filename is never used.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            detected = IMAGE_EXTENSIONS.get(img.format)
    except (UnidentifiedImageError, OSError, ValueError):
        detected = None
    return detected or CONTENT_TYPE_EXTENSIONS.get(content_type or "", DEFAULT_EXTENSION)


def save_uploaded_bytes(data: bytes, content_type: str = None, upload_dir: str = None) -> str:
    upload_dir = upload_dir or UPLOAD_DIR
    os.makedirs(upload_dir, exist_ok=True)

    name = f"{uuid.uuid4().hex}{image_extension(data, content_type)}"
    path = os.path.join(upload_dir, name)

    with open(path, "wb") as f:
        f.write(data)

    return name


# Inline patterns that could emit links, images or raw tags.
UNSAFE_MARKDOWN_PATTERNS = (
    "link",
    "image_link",
    "reference",
    "image_reference",
    "short_reference",
    "short_image_ref",
    "autolink",
    "automail",
    "html",
)


def render_markdown(text: str) -> str:
    """Model replies to HTML. Raw HTML in the text is escaped, never rendered."""
    md = markdown.Markdown(extensions=["nl2br", "sane_lists"])
    for pattern in UNSAFE_MARKDOWN_PATTERNS:
        md.inlinePatterns.deregister(pattern, strict=False)
    return md.convert(html.escape(text or "", quote=False))
