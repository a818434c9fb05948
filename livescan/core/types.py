"""Shared type definitions used across the scanner.

This module intentionally centralizes small, stable types (points, rectangles,
detections and display metrics) so decoder/tracker/overlay code can stay
strongly typed.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

Frame = np.ndarray


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle (origin + extents)."""

    x: float
    y: float
    width: float
    height: float


@dataclass
class Detection:
    """Decoder output in source-frame pixel coordinates."""

    raw_value: str
    format: str
    box: Rect
    points: list[Point] | None = None  # polygon, >= 3 vertices when present


@dataclass
class TrackedResult:
    """A detection that is currently considered visible."""

    raw_value: str
    format: str
    box: Rect
    points: list[Point] | None
    last_seen: float  # milliseconds, wall clock


@dataclass(frozen=True)
class DisplayMetrics:
    """Cover-fit transform from source pixels to a display surface."""

    scale: float
    offset_x: float
    offset_y: float
    target_width: float
    target_height: float
