"""Request pipelines: one staged file streams back directly, several stream back as a zip."""
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import UploadFile

from app import config as app_config
from app.api.channel import ResponseChannel, attachment_headers
from app.archive import ArchiveCoordinator
from app.conversion.codec import ImageCodec, get_codec, iter_chunks
from app.conversion.models import OperationRequest, ProcessingOutcome, Skipped, Succeeded
from app.conversion.operations import Operation
from app.conversion.validation import probe_metadata
from app.errors import AppError, ErrorKind
from app.staging import StagedFile, delete_all, stage_uploads

logger = logging.getLogger("converter.pipeline")


async def _prepare(
    operation: Operation,
    request: OperationRequest,
    staged: StagedFile,
    codec: ImageCodec,
) -> Succeeded:
    """Cheap checks, then the metadata probe, then the render plan. Raises AppError."""
    params = request.params_for(staged.index)
    operation.validate(staged, params)
    metadata = await codec.run(probe_metadata, staged.path, staged.original_name)
    return operation.prepare(staged, metadata, request, params)


async def run_single(
    operation: Operation,
    request: OperationRequest,
    staged: StagedFile,
    codec: Optional[ImageCodec] = None,
) -> ResponseChannel:
    """Validate one file and return a response that renders it as the body stream."""
    codec = codec or get_codec()
    try:
        item = await _prepare(operation, request, staged, codec)
    except BaseException:
        staged.delete()
        raise

    async def body() -> AsyncIterator[bytes]:
        data = await codec.run(item.render)
        for chunk in iter_chunks(data):
            yield chunk
        logger.info("%s %s -> %s", operation.kind.value.capitalize(), staged.original_name, item.plan.output_name)

    return ResponseChannel(
        body(),
        media_type=item.plan.content_type,
        headers=attachment_headers(item.plan.output_name),
        on_close=staged.delete,
    )


async def run_batch(
    operation: Operation,
    request: OperationRequest,
    staged_files: list[StagedFile],
    codec: Optional[ImageCodec] = None,
) -> ResponseChannel:
    """Validate every file independently; stream the ones that pass as a zip archive."""
    codec = codec or get_codec()
    outcomes: list[ProcessingOutcome] = []
    try:
        for staged in staged_files:
            try:
                outcomes.append(await _prepare(operation, request, staged, codec))
            except AppError as e:
                logger.warning("Skipped %s: %s", staged.original_name, e.message)
                outcomes.append(Skipped(staged.original_name, e.message))
                staged.delete()
    except BaseException:
        delete_all(staged_files)
        raise

    succeeded = [o for o in outcomes if isinstance(o, Succeeded)]
    skipped = [o for o in outcomes if isinstance(o, Skipped)]
    if not succeeded:
        delete_all(staged_files)
        raise AppError(
            ErrorKind.NO_FILES_PROCESSED,
            details={"errors": [s.to_dict() for s in skipped]},
        )

    coordinator = ArchiveCoordinator(succeeded, skipped=skipped, codec=codec)
    logger.info(
        "%s batch: %s/%s files dispatched to %s",
        operation.kind.value.capitalize(),
        len(succeeded),
        len(staged_files),
        operation.archive_name,
    )
    return ResponseChannel(
        coordinator.stream(),
        media_type="application/zip",
        headers=attachment_headers(operation.archive_name),
        on_close=coordinator.close,
    )


async def process_upload(
    operation: Operation,
    files: Optional[list[UploadFile]],
    form: dict[str, Any],
) -> ResponseChannel:
    """Stage uploads, normalize the request once, and route by file count."""
    files = [f for f in (files or []) if f is not None]
    if not files:
        raise AppError(ErrorKind.FILES_NOT_FOUND)
    if len(files) > app_config.MAX_FILES_PER_REQUEST:
        raise AppError(
            ErrorKind.TOO_MANY_FILES,
            f"Max {app_config.MAX_FILES_PER_REQUEST} images per request",
        )
    staged = await stage_uploads(files)
    try:
        request = operation.normalize(form, len(staged))
    except BaseException:
        delete_all(staged)
        raise
    if len(staged) == 1:
        return await run_single(operation, request, staged[0])
    return await run_batch(operation, request, staged)
