"""Operation request, metadata and per-file outcome models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from app.staging import StagedFile

# A coerced numeric form value: None when blank, int when integral, float otherwise (nan if unparsable)
Number = Optional[Union[int, float]]


class OperationKind(str, Enum):
    CONVERT = "convert"
    RESIZE = "resize"
    COMPRESS = "compress"


class SupportedFormats:
    # Pillow format name per output format key
    PILLOW = {
        "jpg": "JPEG",
        "jpeg": "JPEG",
        "png": "PNG",
        "webp": "WEBP",
        "tiff": "TIFF",
        "avif": "AVIF",
        "gif": "GIF",
    }
    MIME = {
        "jpg": "image/jpeg",
        "jpeg": "image/jpeg",
        "png": "image/png",
        "webp": "image/webp",
        "tiff": "image/tiff",
        "avif": "image/avif",
        "gif": "image/gif",
    }
    # Formats resize/compress can write back unchanged
    PRESERVABLE = ["jpeg", "png", "webp", "tiff", "avif", "gif"]

    @classmethod
    def mime_type(cls, fmt: str) -> str:
        return cls.MIME.get(fmt, "application/octet-stream")

    @staticmethod
    def extension(fmt: str) -> str:
        """File extension for an output format; jpeg is written as .jpg."""
        return "jpg" if fmt == "jpeg" else fmt


@dataclass
class ImageMetadata:
    width: int
    height: int
    format: Optional[str]


@dataclass
class FileParams:
    """Per-file parameters, paired with a file by upload position."""

    width: Number = None
    height: Number = None


@dataclass
class OperationRequest:
    """Normalized caller intent, built once before any file is validated."""

    kind: OperationKind
    format: Optional[str] = None
    widths: list[Number] = field(default_factory=list)
    heights: list[Number] = field(default_factory=list)
    percent: Optional[int] = None

    def params_for(self, index: int) -> FileParams:
        width = self.widths[index] if index < len(self.widths) else None
        height = self.heights[index] if index < len(self.heights) else None
        return FileParams(width=width, height=height)


@dataclass
class RenderPlan:
    """Everything needed to produce one output file."""

    output_format: str
    output_name: str
    content_type: str
    save_options: dict[str, Any] = field(default_factory=dict)
    size: Optional[tuple[Optional[int], Optional[int]]] = None


@dataclass
class Succeeded:
    staged: StagedFile
    plan: RenderPlan
    render: Callable[[], bytes]


@dataclass
class Skipped:
    filename: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"file": self.filename, "error": self.reason}


ProcessingOutcome = Union[Succeeded, Skipped]
