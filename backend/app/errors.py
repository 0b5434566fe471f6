"""Error kinds and their JSON representation."""
from enum import Enum
from typing import Any, Optional

from fastapi.responses import JSONResponse


class ErrorKind(Enum):
    """Every failure the API reports: (code, HTTP status, default message)."""

    FILES_NOT_FOUND = ("FILES_NOT_FOUND", 400, "No image files provided")
    TOO_MANY_FILES = ("TOO_MANY_FILES", 400, "Too many files in one request")
    FILE_TOO_LARGE = ("FILE_TOO_LARGE", 413, "File too large")
    INVALID_FILE_TYPE = ("INVALID_FILE_TYPE", 400, "Invalid file type")
    FORMAT_REQUIRED = ("FORMAT_REQUIRED", 400, "Format is required")
    INVALID_FORMAT = ("INVALID_FORMAT", 400, "Invalid format")
    DIMENSION_REQUIRED = ("DIMENSION_REQUIRED", 400, "Width or height must be provided")
    INVALID_WIDTH = ("INVALID_WIDTH", 400, "Invalid width value")
    INVALID_HEIGHT = ("INVALID_HEIGHT", 400, "Invalid height value")
    DIMENSION_TOO_LARGE = ("DIMENSION_TOO_LARGE", 400, "Requested dimension is too large")
    DIMENSION_MISMATCH = ("DIMENSION_MISMATCH", 400, "Dimension list length must match number of files")
    PERCENT_REQUIRED = ("PERCENT_REQUIRED", 400, "Compression percent is required")
    INVALID_PERCENT = ("INVALID_PERCENT", 400, "Compression percent must be a valid number")
    PERCENT_OUT_OF_RANGE = ("PERCENT_OUT_OF_RANGE", 400, "Compression percent must be between 1 and 100")
    INVALID_IMAGE = ("INVALID_IMAGE", 400, "Invalid or corrupted image")
    INPUT_DIMENSION_TOO_LARGE = ("INPUT_DIMENSION_TOO_LARGE", 400, "Input image dimensions exceed maximum")
    UNSUPPORTED_FORMAT = ("UNSUPPORTED_FORMAT", 400, "Unsupported image format")
    NO_FILES_PROCESSED = ("NO_FILES_PROCESSED", 400, "No files could be processed")
    ZIP_CREATION_FAILED = ("ZIP_ERROR", 500, "ZIP creation failed")
    PROCESSING_FAILED = ("PROCESSING_ERROR", 500, "Image processing failed")
    VALIDATION_ERROR = ("VALIDATION_ERROR", 400, "Invalid request")
    NOT_FOUND = ("NOT_FOUND", 404, "Endpoint not found")
    INTERNAL = ("INTERNAL_ERROR", 500, "Internal server error")

    def __init__(self, code: str, status: int, message: str):
        self.code = code
        self.status = status
        self.default_message = message


class AppError(Exception):
    """An expected failure carrying its kind and optional structured details."""

    def __init__(
        self,
        kind: ErrorKind,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.kind = kind
        self.message = message or kind.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return self.kind.status

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.kind.code}
        if self.details:
            body["details"] = self.details
        return body


def error_response(exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
