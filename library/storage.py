"""
Disk storage for uploaded book files.

Files are streamed to ``<upload_dir>/books`` under generated unique names.
Extension and size are checked before anything is persisted in MongoDB.
"""

import time
import uuid
from pathlib import Path
from typing import Iterable, Optional

import structlog
from starlette.concurrency import run_in_threadpool

from .errors import InvalidInputError
from .models import FileInfo

logger = structlog.get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class FileStorage:
    """Stores, resolves and removes uploaded book files."""

    def __init__(self, books_dir: Path, max_size: int, allowed_extensions: Iterable[str]):
        self.books_dir = Path(books_dir)
        self.max_size = max_size
        self.allowed_extensions = [ext.lower() for ext in allowed_extensions]

    def _generate_name(self, extension: str) -> str:
        return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{extension}"

    def validate_extension(self, filename: Optional[str]) -> str:
        """Return the lowercase extension of ``filename`` if it is allowed."""
        extension = Path(filename or "").suffix.lower()
        if extension not in self.allowed_extensions:
            allowed = ", ".join(ext.lstrip(".").upper() for ext in self.allowed_extensions)
            raise InvalidInputError(f"Invalid file type. Only {allowed} files are allowed.")
        return extension

    async def save(self, upload) -> FileInfo:
        """
        Stream an uploaded file to disk.

        Args:
            upload: Object with ``filename`` and an async ``read(size)``
                (FastAPI ``UploadFile``)

        Returns:
            FileInfo describing the stored file

        Raises:
            InvalidInputError: Disallowed extension or file over the size limit
        """
        extension = self.validate_extension(upload.filename)
        self.books_dir.mkdir(parents=True, exist_ok=True)
        target = self.books_dir / self._generate_name(extension)

        size = 0
        handle = await run_in_threadpool(open, target, "wb")
        try:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > self.max_size:
                    raise InvalidInputError(
                        f"File too large. Maximum size is {self.max_size // (1024 * 1024)}MB."
                    )
                await run_in_threadpool(handle.write, chunk)
        except BaseException:
            await run_in_threadpool(handle.close)
            await run_in_threadpool(self.delete, str(target))
            raise
        await run_in_threadpool(handle.close)

        logger.info("Stored uploaded file", path=str(target), size=size, original_name=upload.filename)
        return FileInfo(path=str(target), name=upload.filename, size=size, extension=extension)

    def delete(self, path: str) -> bool:
        """
        Remove a stored file.

        Failures are logged with the path so the orphaned file can be
        removed by hand; the caller's original error is what gets reported.
        """
        try:
            Path(path).unlink()
            logger.info("Deleted stored file", path=path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to delete stored file", path=path, error=str(e))
            return False

    def resolve(self, path: Optional[str]) -> Optional[Path]:
        """Absolute path of a stored file, or None if it is not on disk."""
        if not path:
            return None
        resolved = Path(path).resolve()
        if not resolved.is_file():
            return None
        return resolved
