import re
from urllib.parse import quote, unquote, urlparse

import httpx

from compression_worker.storage.base import BaseObjectStorage
from compression_worker.storage.exceptions import InvalidObjectUrlError, StorageError


class SupabaseStorageAdapter(BaseObjectStorage):
    """Object storage adapter for the Supabase Storage REST API."""

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout_seconds: int,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._public_pattern = re.compile(
            rf"/storage/v1/object/public/{re.escape(bucket)}/(.+)"
        )
        self._client = httpx.Client(
            base_url=self._base_url,
            headers={
                "apikey": service_key,
                "Authorization": f"Bearer {service_key}",
            },
            timeout=timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{quote(path)}"

    def url_to_path(self, url: str) -> str:
        match = self._public_pattern.search(urlparse(url).path)
        if match is None:
            raise InvalidObjectUrlError(f"Invalid storage URL format: {url}")
        return unquote(match.group(1))

    def download(self, url: str) -> bytes:
        path = self.url_to_path(url)
        try:
            response = self._client.get(self._object_endpoint(path))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(f"Failed to download file: {exc}") from exc
        return response.content

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        try:
            response = self._client.post(
                self._object_endpoint(path),
                content=data,
                headers={
                    "Content-Type": content_type,
                    "Cache-Control": "max-age=3600",
                    "x-upsert": "false",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise StorageError(f"Failed to upload compressed file: {exc}") from exc
        return self.public_url(path)

    def delete(self, url: str) -> bool:
        path = self.url_to_path(url)
        try:
            response = self._client.request(
                "DELETE",
                f"/storage/v1/object/{self._bucket}",
                json={"prefixes": [path]},
            )
        except httpx.HTTPError as exc:
            raise StorageError(f"Failed to delete file: {exc}") from exc
        if response.is_error:
            return False
        removed = response.json()
        return isinstance(removed, list) and len(removed) > 0

    def _object_endpoint(self, path: str) -> str:
        return f"/storage/v1/object/{self._bucket}/{quote(path)}"
