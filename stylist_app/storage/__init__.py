"""
Image storage module.
Implements Strategy Pattern for Cloudinary / local storage, plus the
generated-image registry.
"""

from .strategies import (
    ImageStorageStrategy,
    CloudinaryStorage,
    LocalStorage,
    UploadResult,
    sanitize_filename,
)
from .factory import StorageFactory, StorageBackend
from .registry import GeneratedImageRegistry, RegistryRecord

__all__ = [
    "ImageStorageStrategy",
    "CloudinaryStorage",
    "LocalStorage",
    "UploadResult",
    "sanitize_filename",
    "StorageFactory",
    "StorageBackend",
    "GeneratedImageRegistry",
    "RegistryRecord",
]
