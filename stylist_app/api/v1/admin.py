from fastapi import APIRouter, Depends, HTTPException, status

from stylist_app.cache.service import CacheService
from stylist_app.config import settings
from stylist_app.dependencies import get_cache_service, get_registry, get_storage
from stylist_app.observability.logger import append_log
from stylist_app.schemas.api import RegistryDeleteRequest, RegistryListResponse
from stylist_app.storage.registry import GeneratedImageRegistry
from stylist_app.storage.strategies import ImageStorageStrategy

router = APIRouter(tags=["admin"])


@router.get("/admin/registry", response_model=RegistryListResponse)
async def list_registry(registry: GeneratedImageRegistry = Depends(get_registry)):
    """All generated images still tracked for cleanup"""
    records = registry.load()
    return RegistryListResponse(data=[r.model_dump(by_alias=True) for r in records])


@router.delete("/admin/registry")
async def delete_registry_entry(
    body: RegistryDeleteRequest,
    registry: GeneratedImageRegistry = Depends(get_registry),
    storage: ImageStorageStrategy = Depends(get_storage)
):
    """Remove an entry from the registry and, best-effort, from storage"""
    if not body.public_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="missing publicId"
        )
    registry.remove(body.public_id)
    try:
        await storage.delete(body.public_id)
    except Exception as e:
        await append_log("admin.registry.delete_error", publicId=body.public_id, error=str(e))
    return {"ok": True, "removed": body.public_id}


@router.get("/debug/env")
async def debug_env():
    """Which vendor credentials are configured (never their values)"""
    return {
        "geminiApiKeyPresent": bool(settings.gemini_api_key),
        "geminiRestUrlPresent": bool(settings.gemini_rest_url),
        "nanobananaUrlPresent": bool(settings.nanobanana_url),
        "nanobananaKeyPresent": bool(settings.nanobanana_api_key or settings.gemini_api_key),
        "googleVisionApiKeyPresent": bool(settings.vision_api_key),
        "cloudinaryConfigured": settings.cloudinary_configured,
    }


@router.get("/cache/stats")
async def cache_stats(cache: CacheService = Depends(get_cache_service)):
    return {"ok": True, "data": cache.stats()}
