"""
Factory for creating image storage instances.
Simple, clean factory with singleton caching.
"""

from enum import Enum
from typing import Optional
from .strategies import ImageStorageStrategy, CloudinaryStorage, LocalStorage
from stylist_app.config import settings


class StorageBackend(Enum):
    """Available image storage backends"""
    CLOUDINARY = "cloudinary"
    LOCAL = "local"


class StorageFactory:
    """
    Simple factory for creating image storage instances.

    Gets configuration from settings (not passed as parameters).
    """

    _instance: ImageStorageStrategy = None  # Single cached instance

    @classmethod
    def create(cls, backend: Optional[StorageBackend] = None) -> ImageStorageStrategy:
        """
        Create or return cached storage instance.

        Args:
            backend: Storage backend; chosen from the configured
                     credentials when omitted

        Returns:
            Singleton storage instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend is None:
            backend = StorageBackend.CLOUDINARY if settings.cloudinary_configured else StorageBackend.LOCAL

        local = LocalStorage(settings.uploads_dir)

        if backend == StorageBackend.CLOUDINARY:
            if settings.cloudinary_url:
                cls._instance = CloudinaryStorage.from_url(
                    settings.cloudinary_url,
                    folder=settings.cloudinary_folder,
                    local_fallback=local,
                )
            else:
                cls._instance = CloudinaryStorage(
                    cloud_name=settings.cloudinary_cloud_name,
                    api_key=settings.cloudinary_api_key,
                    api_secret=settings.cloudinary_api_secret,
                    folder=settings.cloudinary_folder,
                    local_fallback=local,
                )
            print("✅ Cloudinary storage initialized")

        elif backend == StorageBackend.LOCAL:
            cls._instance = local
            print(f"✅ Local storage initialized ({settings.uploads_dir})")

        else:
            raise ValueError(f"Unknown storage backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
