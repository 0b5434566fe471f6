"""Archive coordinator: streams rendered entries into one zip and owns their staged files."""
import logging
import zipfile
from pathlib import Path
from typing import AsyncIterator, Optional

from app.config import ZIP_COMPRESSION_LEVEL
from app.conversion.codec import ImageCodec, get_codec, iter_chunks
from app.conversion.models import Skipped, Succeeded
from app.errors import AppError, ErrorKind

logger = logging.getLogger("converter.archive")


class ChunkBuffer:
    """Unseekable sink for ZipFile; the coordinator drains it between writes."""

    def __init__(self):
        self._parts: list[bytes] = []
        self.closed = False
        self.bytes_written = 0

    def write(self, data) -> int:
        if not self.closed:
            self._parts.append(bytes(data))
            self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        pass

    @property
    def pending(self) -> bool:
        return bool(self._parts)

    def drain(self) -> bytes:
        data = b"".join(self._parts)
        self._parts.clear()
        return data


def unique_entry_name(name: str, used: set[str]) -> str:
    """Zip entry name not yet in `used`: 'a.png', 'a (1).png', 'a (2).png', ..."""
    candidate = name
    path = Path(name)
    n = 1
    while candidate in used:
        candidate = f"{path.stem} ({n}){path.suffix}"
        n += 1
    used.add(candidate)
    return candidate


class ArchiveCoordinator:
    """
    Writes one zip entry per succeeded item, in dispatch order.

    Every item's staged file stays in `pending` until its render concludes, success or not.
    Closing the coordinator before the archive is finalized aborts the writer and sweeps
    whatever is still pending.
    """

    def __init__(
        self,
        items: list[Succeeded],
        skipped: Optional[list[Skipped]] = None,
        codec: Optional[ImageCodec] = None,
        compresslevel: int = ZIP_COMPRESSION_LEVEL,
    ):
        self.items = items
        self.skipped: list[Skipped] = list(skipped or [])
        self.codec = codec or get_codec()
        self.compresslevel = compresslevel
        self.pending = {item.staged.path: item.staged for item in items}
        self.written = 0
        self.finalized = False
        self.aborted = False
        self._buffer = ChunkBuffer()
        self._zip: Optional[zipfile.ZipFile] = None

    def _release(self, item: Succeeded) -> None:
        item.staged.delete()
        self.pending.pop(item.staged.path, None)

    def sweep(self) -> None:
        for staged in list(self.pending.values()):
            staged.delete()
        self.pending.clear()

    def _abort(self) -> None:
        if self.finalized or self.aborted:
            return
        self.aborted = True
        self._buffer.closed = True
        if self._zip is not None:
            try:
                self._zip.close()
            except ValueError:
                # an entry handle was still open; the buffer is discarded anyway
                pass
        logger.info("Archive aborted with %s/%s entries written", self.written, len(self.items))

    def close(self) -> None:
        """Terminal hook: abort an unfinished archive and delete remaining staged files."""
        self._abort()
        self.sweep()

    async def stream(self) -> AsyncIterator[bytes]:
        used: set[str] = set()
        try:
            self._zip = zipfile.ZipFile(
                self._buffer, "w", zipfile.ZIP_DEFLATED, compresslevel=self.compresslevel
            )
            for item in self.items:
                try:
                    data = await self.codec.run(item.render)
                except AppError as e:
                    logger.warning("Skipped %s: %s", item.staged.original_name, e.message)
                    self.skipped.append(Skipped(item.staged.original_name, e.message))
                    continue
                finally:
                    self._release(item)
                entry_name = unique_entry_name(item.plan.output_name, used)
                with self._zip.open(entry_name, "w") as entry:
                    for chunk in iter_chunks(data):
                        entry.write(chunk)
                        if self._buffer.pending:
                            yield self._buffer.drain()
                self.written += 1
            if self.written == 0:
                raise AppError(
                    ErrorKind.NO_FILES_PROCESSED,
                    details={"errors": [s.to_dict() for s in self.skipped]},
                )
            self._zip.close()
            self.finalized = True
            yield self._buffer.drain()
        except (OSError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            logger.exception("Archive error: %s", e)
            raise AppError(ErrorKind.ZIP_CREATION_FAILED) from e
        finally:
            self.close()
        if self.skipped:
            logger.warning(
                "Processed %s/%s files. Errors: %s",
                self.written,
                self.written + len(self.skipped),
                [s.to_dict() for s in self.skipped],
            )
