"""Tests for the archive coordinator."""

import io
import zipfile

import pytest

from app.archive import ArchiveCoordinator, unique_entry_name
from app.conversion.codec import ImageCodec
from app.conversion.models import FileParams, OperationKind, OperationRequest, Skipped
from app.conversion.operations import get_operation
from app.conversion.validation import probe_metadata
from app.errors import AppError, ErrorKind

from conftest import staged_paths


@pytest.fixture
def codec():
    codec = ImageCodec(max_workers=2)
    yield codec
    codec.shutdown()


@pytest.fixture
def items(stage, make_image):
    operation = get_operation(OperationKind.CONVERT)
    request = OperationRequest(kind=OperationKind.CONVERT, format="png")

    def build(*names):
        built = []
        for name in names:
            staged = stage(name, make_image("PNG", (200, 200)))
            metadata = probe_metadata(staged.path, staged.original_name)
            built.append(operation.prepare(staged, metadata, request, FileParams()))
        return built

    return build


async def collect(coordinator):
    return b"".join([chunk async for chunk in coordinator.stream()])


def failing_render():
    raise AppError(ErrorKind.PROCESSING_FAILED, "Image conversion failed")


def test_unique_entry_name():
    used = set()
    assert unique_entry_name("a.png", used) == "a.png"
    assert unique_entry_name("a.png", used) == "a (1).png"
    assert unique_entry_name("a.png", used) == "a (2).png"
    assert unique_entry_name("b.png", used) == "b.png"


@pytest.mark.asyncio
async def test_streams_every_entry(items, codec, upload_dir):
    coordinator = ArchiveCoordinator(items("a.jpg", "b.webp"), codec=codec)
    data = await collect(coordinator)

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == ["a.png", "b.png"]
        assert zf.testzip() is None
    assert coordinator.finalized and not coordinator.aborted
    assert coordinator.written == 2
    assert coordinator.pending == {}
    assert staged_paths(upload_dir) == []


@pytest.mark.asyncio
async def test_render_failure_skips_entry(items, codec, upload_dir):
    built = items("a.png", "b.png", "c.png")
    built[1].render = failing_render
    earlier = [Skipped("d.txt", "Invalid file type")]
    coordinator = ArchiveCoordinator(built, skipped=earlier, codec=codec)
    data = await collect(coordinator)

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.namelist() == ["a.png", "c.png"]
    assert [s.filename for s in coordinator.skipped] == ["d.txt", "b.png"]
    assert staged_paths(upload_dir) == []


@pytest.mark.asyncio
async def test_every_render_failing_is_no_files_processed(items, codec, upload_dir):
    built = items("a.png", "b.png")
    for item in built:
        item.render = failing_render
    coordinator = ArchiveCoordinator(built, codec=codec)

    with pytest.raises(AppError) as excinfo:
        await collect(coordinator)
    assert excinfo.value.kind is ErrorKind.NO_FILES_PROCESSED
    assert len(excinfo.value.details["errors"]) == 2
    assert not coordinator.finalized
    assert staged_paths(upload_dir) == []


@pytest.mark.asyncio
async def test_abort_mid_stream_sweeps_pending(items, codec, upload_dir):
    built = items("a.png", "b.png", "c.png")
    coordinator = ArchiveCoordinator(built, codec=codec)
    stream = coordinator.stream()

    first = await stream.__anext__()
    assert first.startswith(b"PK")
    assert built[2].staged.path.exists()

    await stream.aclose()
    coordinator.close()

    assert coordinator.aborted and not coordinator.finalized
    assert coordinator.pending == {}
    assert staged_paths(upload_dir) == []


@pytest.mark.asyncio
async def test_zip_error_raises_zip_creation_failed(items, codec, upload_dir, monkeypatch):
    def broken_open(self, *args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(zipfile.ZipFile, "open", broken_open)
    coordinator = ArchiveCoordinator(items("a.png", "b.png"), codec=codec)

    with pytest.raises(AppError) as excinfo:
        await collect(coordinator)
    assert excinfo.value.kind is ErrorKind.ZIP_CREATION_FAILED
    assert excinfo.value.status_code == 500
    assert staged_paths(upload_dir) == []


def test_close_before_streaming_sweeps(items, codec, upload_dir):
    coordinator = ArchiveCoordinator(items("a.png", "b.png"), codec=codec)
    coordinator.close()
    coordinator.close()
    assert staged_paths(upload_dir) == []
