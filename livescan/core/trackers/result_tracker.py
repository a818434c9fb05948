from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from livescan.core.types import Detection, TrackedResult

RESULT_TTL_MS = 8000.0


def identity_key(detection: Detection) -> str:
    """Tracking key: the decoded value, or the box origin for empty values.

    Two different empty-valued codes only collide when their origins render to
    the same key; this is an accepted approximate identity.
    """

    if detection.raw_value:
        return detection.raw_value
    return f"{detection.box.x}-{detection.box.y}"


class ResultTracker:
    """A time-windowed cache of currently visible decoded results.

    Repeated sightings of the same key overwrite the tracked entry; entries not
    seen for longer than `ttl_ms` are evicted on the next merge.
    """

    def __init__(self, ttl_ms: float = RESULT_TTL_MS) -> None:
        self.ttl_ms = float(ttl_ms)
        self._results: dict[str, TrackedResult] = {}

    def __len__(self) -> int:
        return len(self._results)

    def merge(self, detections: Iterable[Detection], now: float) -> bool:
        """Upsert `detections` seen at `now` (ms) and evict stale entries.

        Returns True when anything was inserted, replaced or evicted.
        """

        changed = False
        for det in detections:
            self._results[identity_key(det)] = TrackedResult(
                raw_value=det.raw_value,
                format=det.format,
                box=det.box,
                points=list(det.points) if det.points else None,
                last_seen=now,
            )
            changed = True

        stale = [key for key, res in self._results.items() if now - res.last_seen > self.ttl_ms]
        for key in stale:
            del self._results[key]
        return changed or bool(stale)

    def snapshot(self) -> list[TrackedResult]:
        """Copies of the tracked results, most recently seen first."""

        ordered = sorted(self._results.values(), key=lambda r: r.last_seen, reverse=True)
        return [replace(r, points=list(r.points) if r.points else None) for r in ordered]

    def clear(self) -> None:
        self._results.clear()
