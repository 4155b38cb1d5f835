"""Profile picture storage.

Uploads are keyed by patient id plus the original file extension. Reads go
through time-limited signed URLs.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
from jose import JWTError, jwt

from trauma_one.errors import SessionExpiredError, StoreError, is_session_expired

logger = logging.getLogger(__name__)

_OBJECT_PATH = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9]+$")


def profile_picture_path(patient_id: str, filename: str | None) -> str:
    """``<patient_id>.<ext>`` using the uploaded file's extension."""
    ext = "bin"
    if filename and "." in filename:
        candidate = filename.rsplit(".", 1)[1].lower()
        if candidate.isalnum():
            ext = candidate
    path = f"{patient_id}.{ext}"
    if not _OBJECT_PATH.match(path):
        raise ValueError(f"Invalid storage path: {path}")
    return path


class StorageProvider:
    async def upload(self, path: str, content: bytes, content_type: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    async def signed_url(self, path: str, expires_in: int) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def for_session(self, access_token: str | None) -> "StorageProvider":
        return self


@dataclass
class SupabaseStorage(StorageProvider):
    client: httpx.AsyncClient
    base_url: str
    api_key: str
    bucket: str
    access_token: str | None = None

    def for_session(self, access_token: str | None) -> "SupabaseStorage":
        return replace(self, access_token=access_token)

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        try:
            resp = await self.client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Storage request failed: %s", e)
            raise StoreError(f"Could not reach storage: {e}") from e
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = body.get("message") or body.get("error") or resp.text
            code = body.get("statusCode") or body.get("code")
            code = str(code) if code is not None else None
            logger.error("Storage error %s: %s", resp.status_code, message)
            if is_session_expired(code, message):
                raise SessionExpiredError(message, code=code, status_code=resp.status_code)
            raise StoreError(message, code=code, status_code=resp.status_code)
        return resp

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        headers = {**self._headers(), "Content-Type": content_type, "x-upsert": "true"}
        await self._post(
            f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
            content=content,
            headers=headers,
        )
        logger.info("Uploaded %s to bucket %s", path, self.bucket)
        return path

    async def signed_url(self, path: str, expires_in: int) -> str:
        resp = await self._post(
            f"{self.base_url}/storage/v1/object/sign/{self.bucket}/{path}",
            json={"expiresIn": expires_in},
            headers=self._headers(),
        )
        signed = resp.json().get("signedURL") or resp.json().get("signedUrl")
        if not signed:
            raise StoreError("Storage did not return a signed URL")
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"


@dataclass
class LocalStorage(StorageProvider):
    """Directory-backed storage. Signed URLs carry a short-lived JWT naming the object."""
    root: Path
    signing_key: str
    url_prefix: str = "/media"
    algorithm: str = "HS256"

    def _file(self, path: str) -> Path:
        if not _OBJECT_PATH.match(path):
            raise ValueError(f"Invalid storage path: {path}")
        return self.root / path

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        target = self._file(path)
        try:
            await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, content)
        except OSError as e:
            logger.error("Local upload of %s failed: %s", path, e)
            raise StoreError(str(e)) from e
        logger.info("Stored %s (%d bytes)", path, len(content))
        return path

    async def signed_url(self, path: str, expires_in: int) -> str:
        if not self._file(path).exists():
            raise StoreError("Object not found", code="404", status_code=404)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        token = jwt.encode(
            {"path": path, "exp": int(expires_at.timestamp())},
            self.signing_key,
            algorithm=self.algorithm,
        )
        return f"{self.url_prefix}/{path}?token={token}"

    def resolve(self, path: str, token: str) -> Path | None:
        """Return the file behind a signed URL, or None if the link is invalid."""
        if not _OBJECT_PATH.match(path):
            return None
        try:
            claims = jwt.decode(token, self.signing_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.info("Rejected media link for %s: %s", path, e)
            return None
        if claims.get("path") != path:
            return None
        target = self._file(path)
        return target if target.exists() else None
