"""
Image storage strategies using Strategy Pattern.

- Cloudinary: production CDN storage
- Local: files under the uploads directory, served by the app itself
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
import re

from fastapi.concurrency import run_in_threadpool

from stylist_app.observability.logger import append_log

LOCAL_PREFIX = "local:"
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


@dataclass
class UploadResult:
    url: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None


def sanitize_filename(filename: str) -> str:
    """Replace every character outside [A-Za-z0-9._-] with an underscore"""
    return _UNSAFE_CHARS.sub("_", filename)


class ImageStorageStrategy(ABC):
    """Abstract image store returning public URLs and ids"""

    @abstractmethod
    async def upload(self, data: bytes, filename: str) -> UploadResult:
        """
        Store image bytes.

        Args:
            data: Encoded image bytes
            filename: Suggested name (sanitised by the backend)

        Returns:
            UploadResult with the public URL and the id to delete it later
        """
        pass

    @abstractmethod
    async def delete(self, public_id: str) -> bool:
        """Delete a stored image; True when it is gone afterwards"""
        pass

    @abstractmethod
    def canonical_url(self, public_id: str) -> str:
        """Stable URL of a stored image (the 'before' image the UI shows)"""
        pass


class LocalStorage(ImageStorageStrategy):
    """
    Stores uploads on local disk.

    Public ids look like local:<filename>; URLs are /uploads/<filename>.
    """

    def __init__(self, uploads_dir: str, url_prefix: str = "/uploads"):
        self.uploads_dir = Path(uploads_dir)
        self.url_prefix = url_prefix.rstrip("/")

    async def upload(self, data: bytes, filename: str) -> UploadResult:
        safe_name = sanitize_filename(filename)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        (self.uploads_dir / safe_name).write_bytes(data)
        await append_log("storage.local_saved", filename=safe_name, bytes=len(data))
        return UploadResult(url=f"{self.url_prefix}/{safe_name}", public_id=f"{LOCAL_PREFIX}{safe_name}")

    async def delete(self, public_id: str) -> bool:
        name = public_id[len(LOCAL_PREFIX):] if public_id.startswith(LOCAL_PREFIX) else public_id
        path = self.uploads_dir / sanitize_filename(Path(name).name)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            await append_log("storage.local_delete_error", publicId=public_id, error=str(e))
            return False
        return True

    def canonical_url(self, public_id: str) -> str:
        name = public_id[len(LOCAL_PREFIX):] if public_id.startswith(LOCAL_PREFIX) else public_id
        return f"{self.url_prefix}/{name}"


class CloudinaryStorage(ImageStorageStrategy):
    """
    Cloudinary implementation.

    The SDK is synchronous, so calls run in the threadpool.
    Local public ids (from a previous local-storage run) are handed to a
    LocalStorage so cleanup keeps working after switching backends.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        folder: str = "abstain",
        local_fallback: Optional[LocalStorage] = None,
    ):
        import cloudinary

        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        self.folder = folder
        self.local_fallback = local_fallback

    @classmethod
    def from_url(cls, cloudinary_url: str, folder: str = "abstain", local_fallback: Optional[LocalStorage] = None):
        """Build from a cloudinary://<api_key>:<api_secret>@<cloud_name> URL"""
        parsed = urlparse(cloudinary_url)
        return cls(
            cloud_name=parsed.hostname or "",
            api_key=parsed.username or "",
            api_secret=parsed.password or "",
            folder=folder,
            local_fallback=local_fallback,
        )

    async def upload(self, data: bytes, filename: str) -> UploadResult:
        import cloudinary.uploader

        public_id = sanitize_filename(Path(filename).stem)
        result = await run_in_threadpool(
            cloudinary.uploader.upload,
            data,
            folder=self.folder,
            public_id=public_id,
            overwrite=True,
            resource_type="image",
        )
        await append_log("storage.cloudinary_uploaded", publicId=result.get("public_id"))
        return UploadResult(
            url=result.get("secure_url") or result.get("url"),
            public_id=result["public_id"],
            width=result.get("width"),
            height=result.get("height"),
        )

    async def delete(self, public_id: str) -> bool:
        if public_id.startswith(LOCAL_PREFIX):
            if self.local_fallback is None:
                return False
            return await self.local_fallback.delete(public_id)

        import cloudinary.uploader

        try:
            result = await run_in_threadpool(cloudinary.uploader.destroy, public_id, invalidate=True)
        except Exception as e:
            await append_log("storage.cloudinary_delete_error", publicId=public_id, error=str(e))
            return False
        return result.get("result") in ("ok", "not found")

    def canonical_url(self, public_id: str) -> str:
        from cloudinary.utils import cloudinary_url

        url, _ = cloudinary_url(public_id, secure=True, format="jpg")
        return url
