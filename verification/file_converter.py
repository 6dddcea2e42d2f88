import io
import os
from typing import Iterable

from PIL import Image
import pillow_heif
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError

from .errors import ValidationError

pillow_heif.register_heif_opener()

SUPPORTED_IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".heic", ".heif"}
PDF_EXT = ".pdf"


def get_file_extension(filename: str) -> str:
    """Get file extension from filename"""
    return os.path.splitext(filename or "")[1].lower()


def _to_jpeg(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.convert("RGB").save(buf, "JPEG", quality=95)
    return buf.getvalue()


def convert_to_jpeg(data: bytes, filename: str, allowed_exts: Iterable[str]) -> bytes:
    """
    Converts an uploaded image / HEIC / PDF into JPEG bytes.
    PDFs contribute their first page only.
    """
    ext = get_file_extension(filename)
    if ext not in set(allowed_exts):
        raise ValidationError(f"Unsupported file type: {ext or filename}")

    # -------- Case 1: Normal image or HEIC --------
    if ext in SUPPORTED_IMAGE_EXTS:
        try:
            with Image.open(io.BytesIO(data)) as img:
                return _to_jpeg(img)
        except OSError:
            # UnidentifiedImageError and truncated files alike
            raise ValidationError("Uploaded file is not a readable image")

    # -------- Case 2: PDF --------
    if ext == PDF_EXT:
        try:
            pages = convert_from_bytes(data, dpi=300, first_page=1, last_page=1)
        except (PDFPageCountError, PDFSyntaxError):
            raise ValidationError("Uploaded file is not a readable PDF")
        if not pages:
            raise ValidationError("No pages found in PDF document")
        return _to_jpeg(pages[0])

    raise ValidationError(f"Unsupported file type: {ext}")
