"""Source-frame to display-surface geometry.

Everything here is a pure function on the per-tick hot path: malformed input
returns `None` instead of raising so one bad result never aborts rendering of
the others.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

import cv2
import numpy as np

from livescan.core.types import DisplayMetrics, Frame, Point, Rect


def _finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def compute_metrics(
    source_width: float | None,
    source_height: float | None,
    target_width: float | None,
    target_height: float | None,
) -> DisplayMetrics | None:
    """Return the cover-fit transform, or `None` when not renderable.

    The source is scaled so that it fully covers the target; the overflowing
    axis is centred and cropped.
    """

    dims = (source_width, source_height, target_width, target_height)
    if any(d is None for d in dims):
        return None
    try:
        sw, sh, tw, th = (float(d) for d in dims)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if not _finite(sw, sh, tw, th) or sw <= 0 or sh <= 0 or tw <= 0 or th <= 0:
        return None

    scale = max(tw / sw, th / sh)
    offset_x = (tw - sw * scale) / 2.0
    offset_y = (th - sh * scale) / 2.0
    return DisplayMetrics(
        scale=scale,
        offset_x=offset_x,
        offset_y=offset_y,
        target_width=tw,
        target_height=th,
    )


def map_points(points: Iterable[Point] | None, metrics: DisplayMetrics | None) -> list[Point] | None:
    """Map source points to the display surface, dropping non-finite ones."""

    if metrics is None or not points:
        return None

    converted: list[Point] = []
    for p in points:
        try:
            mx = float(p.x) * metrics.scale + metrics.offset_x
            my = float(p.y) * metrics.scale + metrics.offset_y
        except (AttributeError, TypeError, ValueError):
            continue
        if not _finite(mx, my):
            continue
        converted.append(Point(mx, my))
    return converted or None


def map_rect(box: Rect | None, metrics: DisplayMetrics | None) -> Rect | None:
    """Map a source rectangle and crop it to the visible surface."""

    if metrics is None or box is None:
        return None

    try:
        raw_x = box.x * metrics.scale + metrics.offset_x
        raw_y = box.y * metrics.scale + metrics.offset_y
        raw_w = box.width * metrics.scale
        raw_h = box.height * metrics.scale
    except (AttributeError, TypeError):
        return None
    if not _finite(raw_x, raw_y, raw_w, raw_h):
        return None

    start_x, end_x = (raw_x, raw_x + raw_w) if raw_w >= 0 else (raw_x + raw_w, raw_x)
    start_y, end_y = (raw_y, raw_y + raw_h) if raw_h >= 0 else (raw_y + raw_h, raw_y)

    x0 = clamp(start_x, 0.0, metrics.target_width)
    x1 = clamp(end_x, 0.0, metrics.target_width)
    y0 = clamp(start_y, 0.0, metrics.target_height)
    y1 = clamp(end_y, 0.0, metrics.target_height)

    width = x1 - x0
    height = y1 - y0
    if width <= 0 or height <= 0:
        return None
    return Rect(x0, y0, max(1.0, width), max(1.0, height))


def bounding_rect_of(points: Iterable[Point] | None) -> Rect | None:
    """Axis-aligned envelope of `points`; extents floor at 1 px."""

    if not points:
        return None

    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for p in points:
        if p is None or not _finite(p.x, p.y):
            continue
        min_x = min(min_x, p.x)
        min_y = min(min_y, p.y)
        max_x = max(max_x, p.x)
        max_y = max(max_y, p.y)

    if not _finite(min_x, min_y, max_x, max_y):
        return None
    return Rect(min_x, min_y, max(1.0, max_x - min_x), max(1.0, max_y - min_y))


def cover_fit_frame(frame: Frame | None, target_width: int, target_height: int) -> Frame | None:
    """Render `frame` into a `target_width` x `target_height` image (cover-fit).

    Uses the same transform as `compute_metrics` so mapped overlays line up
    with the displayed pixels.
    """

    if frame is None or frame.size == 0:
        return None
    h, w = frame.shape[:2]
    metrics = compute_metrics(w, h, target_width, target_height)
    if metrics is None:
        return None

    scaled_w = max(1, int(round(w * metrics.scale)))
    scaled_h = max(1, int(round(h * metrics.scale)))
    interp = cv2.INTER_AREA if metrics.scale < 1.0 else cv2.INTER_LINEAR
    scaled = cv2.resize(frame, (scaled_w, scaled_h), interpolation=interp)

    # Crop the overflowing axis around the centre.
    x0 = int(round(-metrics.offset_x))
    y0 = int(round(-metrics.offset_y))
    x0 = int(clamp(x0, 0, max(0, scaled_w - target_width)))
    y0 = int(clamp(y0, 0, max(0, scaled_h - target_height)))
    out = scaled[y0 : y0 + target_height, x0 : x0 + target_width]
    if out.shape[0] != target_height or out.shape[1] != target_width:
        # Rounding can leave us a pixel short; pad by edge replication.
        out = cv2.copyMakeBorder(
            out,
            0,
            target_height - out.shape[0],
            0,
            target_width - out.shape[1],
            cv2.BORDER_REPLICATE,
        )
    return np.ascontiguousarray(out)
