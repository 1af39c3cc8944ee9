import logging
import mimetypes
import os
import uuid
from pathlib import Path
from typing import Optional

from config import settings
from utils.errors import BlobStorageError

logger = logging.getLogger(__name__)

_EXT_BY_TYPE = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


class LocalBlobStore:
    """Stores uploaded images on disk; the app serves `root` at `public_prefix`."""

    def __init__(self, root, public_prefix: str = "/uploads"):
        self.root = Path(root)
        self.public_prefix = "/" + public_prefix.strip("/")

    def _extension(self, content_type: str, filename: Optional[str]) -> str:
        if filename and "." in filename:
            ext = filename.rsplit(".", 1)[-1].lower()
            if ext.isalnum():
                return ext
        ext = _EXT_BY_TYPE.get(content_type) or (mimetypes.guess_extension(content_type or "") or "").lstrip(".")
        return ext or "bin"

    def upload(self, data: bytes, content_type: str, folder: str = "products", filename: Optional[str] = None) -> str:
        """Write the payload under a fresh uuid name and return its public locator."""
        unique_filename = f"{uuid.uuid4()}.{self._extension(content_type, filename)}"
        target_dir = self.root / folder
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            with open(target_dir / unique_filename, "wb") as buffer:
                buffer.write(data)
        except OSError as e:
            raise BlobStorageError(f"File save error: {e}") from e

        return f"{self.public_prefix}/{folder}/{unique_filename}"

    def _path_for(self, locator: str) -> Optional[Path]:
        path = locator
        if "://" in path:
            # full URL - keep only the path part
            path = "/" + path.split("://", 1)[1].split("/", 1)[-1]
        if not path.startswith(self.public_prefix + "/"):
            return None
        relative = path[len(self.public_prefix) + 1:]
        candidate = (self.root / relative).resolve()
        root = self.root.resolve()
        if root not in candidate.parents:
            return None
        return candidate

    def delete(self, locator: Optional[str]) -> None:
        """Best-effort removal; failures are logged, never raised."""
        if not locator:
            return
        path = self._path_for(locator)
        if path is None:
            logger.warning("Refusing to delete blob outside upload dir: %s", locator)
            return
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.info("Blob already gone: %s", locator)
        except OSError as e:
            logger.error("Failed to delete blob %s: %s", locator, e)


_blob_store: Optional[LocalBlobStore] = None


def get_blob_store() -> LocalBlobStore:
    global _blob_store
    if _blob_store is None:
        _blob_store = LocalBlobStore(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
    return _blob_store
