"""
Product event tracking.

Counts events per name in-process and mirrors each one to the event log.
"""

from collections import Counter
from typing import Any, Dict, Optional

from stylist_app.observability.logger import append_log


class MetricsTracker:
    """In-process event counters"""

    def __init__(self):
        self._counts: Counter = Counter()

    async def track_event(self, name: str, properties: Optional[Dict[str, Any]] = None) -> None:
        self._counts[name] += 1
        await append_log(f"metrics.{name}", properties=properties or {})

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts.clear()


metrics = MetricsTracker()


async def track_event(name: str, properties: Optional[Dict[str, Any]] = None) -> None:
    await metrics.track_event(name, properties)
