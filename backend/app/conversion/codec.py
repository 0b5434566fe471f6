"""Pillow-backed image codec: header probe and encode-to-bytes, run off the event loop."""
import asyncio
import io
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Tuple

from PIL import Image

from app.config import DEFAULT_QUALITY, MAX_INPUT_DIMENSION, MAX_WORKERS, STREAM_CHUNK_SIZE
from app.conversion.models import ImageMetadata, SupportedFormats
from app.conversion.resize import resize_keep_aspect

logger = logging.getLogger("converter.codec")

# Pillow refuses images above twice this pixel count before decoding anything
Image.MAX_IMAGE_PIXELS = MAX_INPUT_DIMENSION * MAX_INPUT_DIMENSION

# Modes Pillow's PNG encoder writes as-is
PNG_MODES = {"1", "L", "LA", "I", "I;16", "I;16B", "P", "RGB", "RGBA"}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def read_metadata(path: Path) -> ImageMetadata:
    """Open the image lazily; only the header is parsed."""
    with Image.open(path) as img:
        fmt = (img.format or "").lower() or None
        if fmt == "mpo":
            fmt = "jpeg"
        return ImageMetadata(width=img.width, height=img.height, format=fmt)


def conversion_options(fmt: str) -> dict[str, Any]:
    """Save options for format conversion: keep as much quality as the target allows."""
    if fmt in ("jpg", "jpeg"):
        return {"quality": 100, "subsampling": 0, "optimize": True}
    if fmt == "png":
        return {"compress_level": 6}
    if fmt == "webp":
        return {"lossless": True, "quality": 100}
    if fmt == "tiff":
        return {"compression": "tiff_lzw"}
    if fmt == "avif":
        return {"quality": 100, "subsampling": "4:4:4"}
    return {}


def compression_options(fmt: str, quality: int) -> dict[str, Any]:
    """Save options for compression. quality 100 keeps the most detail, 1 the least."""
    if fmt in ("jpg", "jpeg"):
        return {"quality": quality, "optimize": True}
    if fmt == "png":
        # PNG is lossless: map quality 1-100 to zlib level 9-0
        return {"compress_level": round_half_up(9 - (quality / 100) * 9)}
    if fmt in ("webp", "avif"):
        return {"quality": quality}
    if fmt == "tiff":
        return {"compression": "tiff_lzw"}
    return {}


def default_options(fmt: str) -> dict[str, Any]:
    if fmt in ("jpg", "jpeg", "webp", "avif"):
        return {"quality": DEFAULT_QUALITY}
    return {}


def _has_alpha(img: Image.Image) -> bool:
    return "A" in img.getbands() or "transparency" in img.info


def _prepare_mode(img: Image.Image, pillow_format: str) -> Image.Image:
    if pillow_format == "JPEG" and img.mode not in ("RGB", "L", "CMYK"):
        return img.convert("RGB")
    if pillow_format in ("WEBP", "AVIF") and img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if _has_alpha(img) else "RGB")
    if pillow_format == "PNG" and img.mode not in PNG_MODES:
        return img.convert("RGBA" if _has_alpha(img) else "RGB")
    return img


def encode(
    path: Path,
    output_format: str,
    save_options: Optional[dict[str, Any]] = None,
    size: Optional[Tuple[Optional[int], Optional[int]]] = None,
) -> bytes:
    """Decode `path`, optionally fit it inside `size`, and encode it as `output_format`."""
    pillow_format = SupportedFormats.PILLOW.get(output_format)
    if pillow_format is None:
        raise ValueError(f"Unsupported output format: {output_format}")
    out = io.BytesIO()
    with Image.open(path) as img:
        work = img
        if size is not None:
            work = resize_keep_aspect(work, size[0], size[1])
        work = _prepare_mode(work, pillow_format)
        work.save(out, format=pillow_format, **(save_options or {}))
    logger.debug("Encoded %s as %s (%s bytes)", path.name, pillow_format, out.tell())
    return out.getvalue()


def iter_chunks(data: bytes, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    view = memoryview(data)
    for start in range(0, len(view), chunk_size):
        yield bytes(view[start:start + chunk_size])


class ImageCodec:
    """Runs blocking Pillow work on a bounded thread pool."""

    def __init__(self, max_workers: int = MAX_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="codec")
        logger.info("ImageCodec initialized with max_workers=%s", max_workers)

    async def run(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, partial(func, *args, **kwargs))

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


# Singleton
_codec: Optional[ImageCodec] = None


def get_codec() -> ImageCodec:
    global _codec
    if _codec is None:
        _codec = ImageCodec()
    return _codec


def shutdown_codec() -> None:
    global _codec
    if _codec is not None:
        _codec.shutdown()
        _codec = None
