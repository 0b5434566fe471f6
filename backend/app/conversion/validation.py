"""Validation layer: cheap request/file checks plus the per-file metadata probe."""
import math
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from app import config as app_config
from app.conversion.codec import read_metadata, round_half_up
from app.conversion.models import ImageMetadata, Number
from app.errors import AppError, ErrorKind
from app.staging import StagedFile


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def coerce_number(raw: Any) -> Number:
    """Form value -> None (blank), int (integral), float (anything else, nan if unparsable)."""
    if _is_blank(raw):
        return None
    try:
        num = float(raw)
    except (TypeError, ValueError):
        return math.nan
    if math.isfinite(num) and num.is_integer():
        return int(num)
    return num


def coerce_number_list(raw: Optional[list[str]]) -> list[Number]:
    """Positional list of optional numbers. A single comma-separated value is split."""
    if not raw:
        return []
    values = list(raw)
    if len(values) == 1 and "," in (values[0] or ""):
        values = values[0].split(",")
    return [coerce_number(v) for v in values]


def validate_file_type(file: StagedFile) -> None:
    ext = file.extension
    mime = (file.content_type or "").lower()
    if ext not in app_config.INPUT_EXTENSIONS and mime not in app_config.INPUT_MIME_TYPES:
        allowed = ", ".join(sorted(app_config.INPUT_EXTENSIONS))
        raise AppError(ErrorKind.INVALID_FILE_TYPE, f"Invalid file type. Allowed formats: {allowed}")


def validate_format(raw: Any) -> str:
    """Return the normalized output format."""
    if not isinstance(raw, str) or not raw.strip():
        raise AppError(ErrorKind.FORMAT_REQUIRED)
    fmt = raw.strip().lower()
    if fmt not in app_config.SUPPORTED_FORMATS:
        raise AppError(
            ErrorKind.INVALID_FORMAT,
            f"Invalid format. Supported: {', '.join(app_config.SUPPORTED_FORMATS)}",
        )
    return fmt


def _is_positive_int(value: Number) -> bool:
    return isinstance(value, int) and value > 0


def validate_dimensions(width: Number, height: Number) -> None:
    if width is None and height is None:
        raise AppError(ErrorKind.DIMENSION_REQUIRED)
    if width is not None and not _is_positive_int(width):
        raise AppError(ErrorKind.INVALID_WIDTH)
    if height is not None and not _is_positive_int(height):
        raise AppError(ErrorKind.INVALID_HEIGHT)
    limit = app_config.MAX_OUTPUT_DIMENSION
    if (width is not None and width > limit) or (height is not None and height > limit):
        raise AppError(ErrorKind.DIMENSION_TOO_LARGE, f"Maximum allowed dimension is {limit}px")


def validate_compression_percent(raw: Any) -> int:
    """Return the percent rounded to an integer in [1, 100]."""
    if _is_blank(raw):
        raise AppError(ErrorKind.PERCENT_REQUIRED)
    num = coerce_number(raw)
    if num is None or not math.isfinite(num):
        raise AppError(ErrorKind.INVALID_PERCENT)
    if num < 1 or num > 100:
        raise AppError(ErrorKind.PERCENT_OUT_OF_RANGE)
    return round_half_up(num)


def probe_metadata(path: Path, filename: str) -> ImageMetadata:
    """Read the image header. Blocking: run it on the codec pool."""
    limit = app_config.MAX_INPUT_DIMENSION
    try:
        metadata = read_metadata(path)
    except Image.DecompressionBombError as e:
        raise AppError(
            ErrorKind.INPUT_DIMENSION_TOO_LARGE,
            f"Input image dimensions exceed maximum ({limit}px): {filename}",
        ) from e
    except Exception as e:
        raise AppError(ErrorKind.INVALID_IMAGE, f"Failed to read image metadata: {filename}") from e
    if not metadata.width or not metadata.height or metadata.width <= 0 or metadata.height <= 0:
        raise AppError(ErrorKind.INVALID_IMAGE, f"Invalid or corrupted image: {filename}")
    if metadata.width > limit or metadata.height > limit:
        raise AppError(
            ErrorKind.INPUT_DIMENSION_TOO_LARGE,
            f"Input image dimensions exceed maximum ({limit}px): {filename}",
        )
    return metadata
