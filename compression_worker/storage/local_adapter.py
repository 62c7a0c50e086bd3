from pathlib import Path
from urllib.parse import quote, unquote

from compression_worker.storage.base import BaseObjectStorage
from compression_worker.storage.exceptions import InvalidObjectUrlError, StorageError


class LocalStorageAdapter(BaseObjectStorage):
    """Stores objects as files under a root directory, served from a base URL."""

    def __init__(self, files_root: Path, public_base_url: str) -> None:
        self._files_root = files_root
        self._base_url = public_base_url.rstrip("/")

    def download(self, url: str) -> bytes:
        path = self._resolve(self.url_to_path(url))
        if not path.exists():
            raise StorageError(f"File not found: {path}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        _ = content_type
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write {target}: {exc}") from exc
        return f"{self._base_url}/{quote(path)}"

    def delete(self, url: str) -> bool:
        path = self._resolve(self.url_to_path(url))
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc
        return True

    def url_to_path(self, url: str) -> str:
        prefix = f"{self._base_url}/"
        if not url.startswith(prefix):
            raise InvalidObjectUrlError(f"Invalid storage URL format: {url}")
        return unquote(url[len(prefix):])

    def _resolve(self, object_path: str) -> Path:
        root = self._files_root.resolve()
        path = (root / object_path).resolve()
        if not path.is_relative_to(root):
            raise InvalidObjectUrlError(f"Path escapes storage root: {object_path}")
        return path
