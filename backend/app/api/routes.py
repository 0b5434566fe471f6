"""API routes for convert, resize and compress."""
import logging
import time
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile

from app.config import (
    MAX_FILE_SIZE_BYTES,
    MAX_FILES_PER_REQUEST,
    MAX_INPUT_DIMENSION,
    MAX_OUTPUT_DIMENSION,
    SUPPORTED_FORMATS,
)
from app.conversion.models import OperationKind
from app.conversion.operations import get_operation
from app.pipeline import process_upload

logger = logging.getLogger("converter.api")
router = APIRouter(tags=["converter"])

STARTED_AT = time.monotonic()


@router.get("/health")
def health():
    return {
        "status": "ok",
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "formats": SUPPORTED_FORMATS,
    }


@router.get("/limits")
def get_limits():
    """Return upload and dimension limits for the client."""
    return {
        "max_files_per_request": MAX_FILES_PER_REQUEST,
        "max_file_size_mb": MAX_FILE_SIZE_BYTES // (1024 * 1024),
        "max_file_size_bytes": MAX_FILE_SIZE_BYTES,
        "max_input_dimension": MAX_INPUT_DIMENSION,
        "max_output_dimension": MAX_OUTPUT_DIMENSION,
        "compression_percent": [1, 100],
    }


@router.post("/convert")
@router.post("/convert/bulk")
async def convert_images(
    images: Optional[list[UploadFile]] = File(None),
    format: Optional[str] = Form(None),
):
    """Convert one image (returned as-is) or several (returned as converted-images.zip)."""
    return await process_upload(get_operation(OperationKind.CONVERT), images, {"format": format})


@router.post("/resize")
@router.post("/resize/bulk")
async def resize_images(
    images: Optional[list[UploadFile]] = File(None),
    widths: Optional[list[str]] = Form(None),
    heights: Optional[list[str]] = Form(None),
):
    """Resize to fit inside widths[i] x heights[i], paired with images[i] by position."""
    return await process_upload(
        get_operation(OperationKind.RESIZE),
        images,
        {"widths": widths, "heights": heights},
    )


@router.post("/compress")
@router.post("/compress/bulk")
async def compress_images(
    images: Optional[list[UploadFile]] = File(None),
    quality: Optional[str] = Form(None),
    percent: Optional[str] = Form(None),
):
    """Re-encode in the input format at quality 1-100 (100 keeps the most detail)."""
    return await process_upload(
        get_operation(OperationKind.COMPRESS),
        images,
        {"quality": quality, "percent": percent},
    )
