"""
Structured event log.

Each event is one JSON line: written to <log_dir>/events.log, echoed on
stdout and, when a Better Stack source is configured, shipped to it.
Logging is best-effort and never raises into the caller.
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from stylist_app.config import settings


class EventLogger:
    """
    JSON-lines event logger with optional remote shipping.

    Args:
        transport: Optional httpx transport (tests inject a MockTransport)
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    @property
    def log_file(self) -> Path:
        return Path(settings.log_dir) / "events.log"

    def _write_local(self, line: str) -> None:
        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with self.log_file.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as e:
            print(f"⚠️  Event log write failed: {e}")
        try:
            sys.stdout.write(line + "\n")
        except Exception:
            # best-effort logging
            pass

    async def _ship(self, phase: str, timestamp: str, fields: Dict[str, Any], line: str) -> None:
        endpoint = settings.betterstack_log_endpoint
        token = settings.betterstack_token
        if not endpoint or not token:
            return

        payload = {
            "dt": timestamp,
            "message": phase,
            "context": {**fields, "raw": line},
        }
        headers = {
            "content-type": "application/json",
            "authorization": f"Bearer {token}",
        }
        try:
            async with httpx.AsyncClient(
                timeout=settings.betterstack_timeout,
                transport=self.transport,
            ) as client:
                await client.post(endpoint, content=json.dumps(payload, default=str), headers=headers)
        except httpx.HTTPError as e:
            print(f"⚠️  Remote log shipping failed: {e}")

    async def log(self, phase: str, **fields: Any) -> Dict[str, Any]:
        """Record one event and return the entry that was written"""
        timestamp = datetime.now(timezone.utc).isoformat()
        entry = {"ts": timestamp, "phase": phase}
        entry.update(fields)
        line = json.dumps(entry, ensure_ascii=False, default=str)

        self._write_local(line)
        await self._ship(phase, timestamp, fields, line)
        return entry

    def read_logs(self, limit: int = 100) -> list:
        """Return the last `limit` parsed entries of the local log"""
        if not self.log_file.exists():
            return []
        entries = []
        for raw in self.log_file.read_text(encoding="utf-8").splitlines()[-limit:]:
            try:
                entries.append(json.loads(raw))
            except json.JSONDecodeError:
                continue
        return entries


event_logger = EventLogger()


async def append_log(phase: str, **fields: Any) -> Dict[str, Any]:
    """Record an event on the process-wide logger"""
    return await event_logger.log(phase, **fields)


def redact_url(url: Optional[str]) -> Optional[str]:
    """Hide user image URLs from logs when privacy mode is on"""
    if settings.privacy_mode and url:
        return "[redacted]"
    return url


def short_key(key: str) -> str:
    """Truncate cache keys (which embed image hashes) for log lines"""
    return key[:20] + "..."
