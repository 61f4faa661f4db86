"""
Registry of generated images.

A flat JSON array file of {publicId, url, createdAt, sessionId} records.
Reads and writes are best-effort and unsynchronized: concurrent writers
may lose an append, which only means an image escapes automatic cleanup.
"""

import json
import time
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from stylist_app.observability.logger import append_log
from stylist_app.storage.strategies import ImageStorageStrategy


def now_ms() -> int:
    return int(time.time() * 1000)


class RegistryRecord(BaseModel):
    public_id: str = Field(..., alias="publicId")
    url: str
    created_at: Optional[int] = Field(default_factory=now_ms, alias="createdAt")
    session_id: Optional[str] = Field(None, alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)


class GeneratedImageRegistry:
    """JSON-file registry of images produced by the editor"""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self) -> List[RegistryRecord]:
        """Read all records; a missing or corrupt file reads as empty"""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        try:
            items = json.loads(raw or "[]")
        except json.JSONDecodeError as e:
            print(f"⚠️  Registry file is not valid JSON, treating as empty: {e}")
            return []
        if not isinstance(items, list):
            return []

        records = []
        for item in items:
            try:
                records.append(RegistryRecord.model_validate(item))
            except ValueError:
                continue
        return records

    def save(self, records: List[RegistryRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(by_alias=True) for r in records]
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    async def append(self, record: RegistryRecord) -> None:
        """Append a record; failures are logged, never raised"""
        try:
            records = self.load()
            records.append(record)
            self.save(records)
        except OSError as e:
            await append_log("registry.append_error", publicId=record.public_id, error=str(e))

    def remove(self, public_id: str) -> bool:
        """Drop every record with public_id; True if any was removed"""
        records = self.load()
        keep = [r for r in records if r.public_id != public_id]
        self.save(keep)
        return len(keep) != len(records)

    async def purge_older_than(
        self,
        hours: float,
        storage: ImageStorageStrategy,
        now: Optional[int] = None,
    ) -> Tuple[int, int]:
        """
        Delete expired (or undated) images from storage and the registry.

        Returns:
            (removed, kept) counts
        """
        cutoff = (now if now is not None else now_ms()) - int(hours * 60 * 60 * 1000)
        keep = []
        removed = 0
        for record in self.load():
            if record.created_at is None or record.created_at < cutoff:
                try:
                    await storage.delete(record.public_id or record.url)
                except Exception as e:
                    await append_log("registry.purge_delete_error", publicId=record.public_id, error=str(e))
                removed += 1
            else:
                keep.append(record)

        self.save(keep)
        await append_log("registry.purged", removed=removed, kept=len(keep))
        return removed, len(keep)
