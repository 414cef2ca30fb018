"""Media/attachment collaborator.

The submission core only ever stores the references returned here.
"""
import logging
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from submission_engine.core.config import MEDIA_ROOT, MEDIA_URL_PREFIX
from submission_engine.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    file_name: str
    mime_type: str
    size: int
    stream: BinaryIO


@dataclass(frozen=True)
class MediaRef:
    url: str
    media_id: str
    file_name: str
    mime_type: str
    size: int

    def to_dict(self) -> dict:
        return asdict(self)


class MediaService(Protocol):
    def upload(self, file: UploadedFile, submission_id: int) -> MediaRef: ...

    def remove(self, url: str, submission_id: int) -> None: ...


class LocalMediaStorage:
    """Stores uploads on the local filesystem under MEDIA_ROOT/<submission_id>/."""

    def __init__(self, root: Path = MEDIA_ROOT, url_prefix: str = MEDIA_URL_PREFIX):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def _path_for(self, url: str) -> Path:
        prefix = self.url_prefix + "/"
        if not url.startswith(prefix):
            raise ExternalServiceError(f"Not a local media url: {url}")
        relative = url[len(prefix):]
        path = (self.root / relative).resolve()
        if self.root.resolve() not in path.parents:
            raise ExternalServiceError(f"Not a local media url: {url}")
        return path

    def upload(self, file: UploadedFile, submission_id: int) -> MediaRef:
        media_id = uuid.uuid4().hex
        suffix = Path(file.file_name).suffix
        relative = f"{submission_id}/{media_id}{suffix}"
        target = self.root / relative

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as out:
                while chunk := file.stream.read(1024 * 1024):
                    out.write(chunk)
        except OSError as exc:
            logger.exception("Upload of %s for submission %s failed", file.file_name, submission_id)
            raise ExternalServiceError(f"Upload failed: {exc}") from exc

        return MediaRef(
            url=f"{self.url_prefix}/{relative}",
            media_id=media_id,
            file_name=file.file_name,
            mime_type=file.mime_type,
            size=file.size,
        )

    def remove(self, url: str, submission_id: int) -> None:
        path = self._path_for(url)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.exception("Removing %s for submission %s failed", url, submission_id)
            raise ExternalServiceError(f"Remove failed: {exc}") from exc
