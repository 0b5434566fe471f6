"""Operation descriptors: convert, resize and compress share one pipeline and differ only here."""
import logging
import re
from functools import partial
from pathlib import Path
from typing import Any

from app.conversion.codec import compression_options, conversion_options, default_options, encode
from app.conversion.models import (
    FileParams,
    ImageMetadata,
    OperationKind,
    OperationRequest,
    RenderPlan,
    SupportedFormats,
    Succeeded,
)
from app.conversion.validation import (
    coerce_number_list,
    validate_compression_percent,
    validate_dimensions,
    validate_file_type,
    validate_format,
)
from app.errors import AppError, ErrorKind
from app.staging import StagedFile

logger = logging.getLogger("converter.operations")


def sanitize_base_name(filename: str) -> str:
    """Client file name without directories or extension, safe for headers and zip entries."""
    name = re.split(r"[\\/]", filename or "")[-1]
    stem = Path(name).stem if "." in name.lstrip(".") else name
    s = "".join(c for c in stem if c.isalnum() or c in "._- ").strip(" .") or "image"
    return s[:100]


class Operation:
    """One kind of image operation.

    Subclasses fill in request normalization, the cheap per-file checks and the render plan;
    `render` and `prepare` are shared.
    """

    kind: OperationKind
    archive_name: str
    failure_message: str = "Image processing failed"

    def normalize(self, form: dict[str, Any], file_count: int) -> OperationRequest:
        raise NotImplementedError

    def validate(self, file: StagedFile, params: FileParams) -> None:
        validate_file_type(file)

    def plan(
        self,
        file: StagedFile,
        metadata: ImageMetadata,
        request: OperationRequest,
        params: FileParams,
    ) -> RenderPlan:
        raise NotImplementedError

    def render(self, path: Path, plan: RenderPlan) -> bytes:
        """Blocking transform. Any codec failure is reported as a processing error."""
        try:
            return encode(path, plan.output_format, plan.save_options, plan.size)
        except Exception as e:
            logger.exception("%s failed for %s: %s", self.kind.value.capitalize(), plan.output_name, e)
            raise AppError(ErrorKind.PROCESSING_FAILED, self.failure_message) from e

    def prepare(
        self,
        file: StagedFile,
        metadata: ImageMetadata,
        request: OperationRequest,
        params: FileParams,
    ) -> Succeeded:
        plan = self.plan(file, metadata, request, params)
        return Succeeded(staged=file, plan=plan, render=partial(self.render, file.path, plan))

    @staticmethod
    def _preserved_format(metadata: ImageMetadata, fallback: str) -> str:
        fmt = metadata.format or fallback
        if fmt not in SupportedFormats.PRESERVABLE:
            raise AppError(ErrorKind.UNSUPPORTED_FORMAT, f"Unsupported format: {fmt}")
        return fmt


class ConvertOperation(Operation):
    kind = OperationKind.CONVERT
    archive_name = "converted-images.zip"
    failure_message = "Image conversion failed"

    def normalize(self, form: dict[str, Any], file_count: int) -> OperationRequest:
        return OperationRequest(kind=self.kind, format=validate_format(form.get("format")))

    def plan(self, file, metadata, request, params) -> RenderPlan:
        fmt = request.format
        return RenderPlan(
            output_format=fmt,
            output_name=f"{sanitize_base_name(file.original_name)}.{fmt}",
            content_type=SupportedFormats.mime_type(fmt),
            save_options=conversion_options(fmt),
        )


class ResizeOperation(Operation):
    kind = OperationKind.RESIZE
    archive_name = "resized-images.zip"

    def normalize(self, form: dict[str, Any], file_count: int) -> OperationRequest:
        widths = coerce_number_list(form.get("widths"))
        heights = coerce_number_list(form.get("heights"))
        if widths and len(widths) != file_count:
            raise AppError(ErrorKind.DIMENSION_MISMATCH, "Widths array length must match number of files")
        if heights and len(heights) != file_count:
            raise AppError(ErrorKind.DIMENSION_MISMATCH, "Heights array length must match number of files")
        return OperationRequest(kind=self.kind, widths=widths, heights=heights)

    def validate(self, file: StagedFile, params: FileParams) -> None:
        super().validate(file, params)
        validate_dimensions(params.width, params.height)

    def plan(self, file, metadata, request, params) -> RenderPlan:
        fmt = self._preserved_format(metadata, "png")
        # Kept format, but jpeg files get the .jpg extension (see SupportedFormats.extension)
        return RenderPlan(
            output_format=fmt,
            output_name=f"{sanitize_base_name(file.original_name)}-resized.{SupportedFormats.extension(fmt)}",
            content_type=SupportedFormats.mime_type(fmt),
            save_options=default_options(fmt),
            size=(params.width, params.height),
        )


class CompressOperation(Operation):
    kind = OperationKind.COMPRESS
    archive_name = "compressed-images.zip"
    failure_message = "Image compression failed"

    def normalize(self, form: dict[str, Any], file_count: int) -> OperationRequest:
        raw = form.get("quality")
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raw = form.get("percent")
        return OperationRequest(kind=self.kind, percent=validate_compression_percent(raw))

    def plan(self, file, metadata, request, params) -> RenderPlan:
        fmt = self._preserved_format(metadata, "jpeg")
        return RenderPlan(
            output_format=fmt,
            output_name=f"{sanitize_base_name(file.original_name)}-compressed.{SupportedFormats.extension(fmt)}",
            content_type=SupportedFormats.mime_type(fmt),
            save_options=compression_options(fmt, request.percent),
        )


OPERATIONS: dict[OperationKind, Operation] = {
    OperationKind.CONVERT: ConvertOperation(),
    OperationKind.RESIZE: ResizeOperation(),
    OperationKind.COMPRESS: CompressOperation(),
}


def get_operation(kind: OperationKind) -> Operation:
    return OPERATIONS[kind]
