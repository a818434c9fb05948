"""Overlay drawing helpers (OpenCV).

`OverlaySurface` is the render target of the sampling loop: a BGRA pixel buffer
sized in display units times the device pixel ratio. Results are mapped from
source pixels with the cover-fit transform in `livescan.core.geometry`.
"""

from __future__ import annotations

import colorsys
from collections.abc import Sequence

import cv2
import numpy as np

from livescan.core.geometry import bounding_rect_of, compute_metrics, map_points, map_rect
from livescan.core.types import DisplayMetrics, Frame, TrackedResult

EMPTY_LABEL = "(no value)"
LINE_WIDTH = 3
FONT_PX = 16
FILL_ALPHA = 0.15


def _hsl_to_bgra(hue: float, sat: float, light: float, alpha: float = 1.0) -> tuple[int, int, int, int]:
    r, g, b = colorsys.hls_to_rgb(hue / 360.0, light, sat)
    return (int(round(b * 255)), int(round(g * 255)), int(round(r * 255)), int(round(alpha * 255)))


def result_colors(index: int) -> tuple[tuple[int, int, int, int], tuple[int, int, int, int]]:
    """(stroke, fill) colours for the `index`-th result; hues step by 57 degrees."""

    hue = (index * 57) % 360
    return _hsl_to_bgra(hue, 0.85, 0.65), _hsl_to_bgra(hue, 0.85, 0.50, FILL_ALPHA)


class OverlaySurface:
    """Mutable-size BGRA drawing surface.

    `width`/`height` are display units; the pixel buffer is
    `round(width * device_pixel_ratio)` x `round(height * device_pixel_ratio)`.
    """

    def __init__(self, width: int, height: int, device_pixel_ratio: float = 1.0) -> None:
        self.width = 0
        self.height = 0
        self.device_pixel_ratio = 0.0
        self.pixels = np.zeros((1, 1, 4), dtype=np.uint8)
        self.resize(width, height, device_pixel_ratio)

    @property
    def pixel_size(self) -> tuple[int, int]:
        return int(self.pixels.shape[1]), int(self.pixels.shape[0])

    def resize(self, width: int, height: int, device_pixel_ratio: float | None = None) -> bool:
        """Resize the surface; returns True when the pixel buffer was reallocated."""

        dpr = float(device_pixel_ratio or self.device_pixel_ratio or 1.0)
        px_w = int(round(width * dpr))
        px_h = int(round(height * dpr))
        if not px_w or not px_h:
            return False
        if (width, height, dpr) == (self.width, self.height, self.device_pixel_ratio):
            return False

        self.width, self.height, self.device_pixel_ratio = width, height, dpr
        self.pixels = np.zeros((px_h, px_w, 4), dtype=np.uint8)
        return True

    def clear(self) -> None:
        self.pixels[...] = 0

    def render(self, results: Sequence[TrackedResult], source_size: tuple[int, int]) -> None:
        """Redraw every result (index 0 first) for a source of `source_size` (w, h)."""

        self.clear()
        metrics = compute_metrics(source_size[0], source_size[1], self.width, self.height)
        if metrics is None:
            return
        for index, result in enumerate(results):
            self.draw_result(result, metrics, index)

    def draw_result(self, result: TrackedResult, metrics: DisplayMetrics, index: int) -> bool:
        """Draw one result; returns False when nothing of it is visible."""

        display_points = map_points(result.points, metrics)
        display_box = map_rect(result.box, metrics)
        if display_box is None and display_points:
            display_box = bounding_rect_of(display_points)
        if display_box is None:
            return False

        dpr = self.device_pixel_ratio
        stroke, fill = result_colors(index)
        thickness = max(1, int(round(LINE_WIDTH * dpr)))

        if display_points and len(display_points) >= 3:
            poly = np.array(
                [[int(round(p.x * dpr)), int(round(p.y * dpr))] for p in display_points],
                dtype=np.int32,
            )
            cv2.fillPoly(self.pixels, [poly], fill, lineType=cv2.LINE_AA)
            cv2.polylines(self.pixels, [poly], True, stroke, thickness, cv2.LINE_AA)
        else:
            x1, y1 = int(round(display_box.x * dpr)), int(round(display_box.y * dpr))
            x2 = int(round((display_box.x + display_box.width) * dpr))
            y2 = int(round((display_box.y + display_box.height) * dpr))
            cv2.rectangle(self.pixels, (x1, y1), (x2, y2), fill, -1)
            cv2.rectangle(self.pixels, (x1, y1), (x2, y2), stroke, thickness, cv2.LINE_AA)

        label = result.raw_value or EMPTY_LABEL
        # Above the box when it fits, otherwise just below it.
        top = display_box.y - 22
        if top < 0:
            top = display_box.y + display_box.height + 4
        cv2.putText(
            self.pixels,
            label,
            (int(round((display_box.x + 8) * dpr)), int(round((top + FONT_PX) * dpr))),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5 * dpr,
            stroke,
            max(1, int(round(dpr))),
            cv2.LINE_AA,
        )
        return True


def compose(display_frame: Frame, surface: OverlaySurface) -> Frame:
    """Alpha-blend the surface onto a BGR frame of the same pixel size."""

    overlay = surface.pixels
    if display_frame.shape[:2] != overlay.shape[:2]:
        raise ValueError("display frame and overlay surface sizes differ")
    alpha = overlay[..., 3:4].astype(np.float32) / 255.0
    if not alpha.any():
        return display_frame
    blended = display_frame.astype(np.float32) * (1.0 - alpha) + overlay[..., :3].astype(np.float32) * alpha
    return blended.astype(np.uint8)


def result_lines(results: Sequence[TrackedResult]) -> str:
    """Plain-text block: one `value (format)` line per result."""

    return "\n".join(f"{r.raw_value} ({r.format})" for r in results)


def result_rows(results: Sequence[TrackedResult], now: float) -> list[tuple[str, str]]:
    """List rows `(value, "format / N s ago")` for a results panel."""

    rows = []
    for r in results:
        elapsed = max(0, int(round((now - r.last_seen) / 1000.0)))
        rows.append((r.raw_value or EMPTY_LABEL, f"{r.format} / {elapsed} s ago"))
    return rows
