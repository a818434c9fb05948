"""zxing-cpp luminance decoder integration.

zxing-cpp needs an explicit pixel buffer, so this adapter owns an off-screen
raster buffer and a luminance buffer sized to the source resolution. Both are
reused across frames and are not reentrant: only one decode may run at a time.
"""

from __future__ import annotations

import logging
import math
import re
from types import ModuleType
from typing import Any

import numpy as np
import zxingcpp

from livescan.core.types import Detection, Frame, Point, Rect

logger = logging.getLogger(__name__)

CORNER_PADDING = 8
# Rec. 709 luma coefficients, ordered for OpenCV's BGR channel layout.
BGR_LUMA_WEIGHTS = np.array([0.0722, 0.7152, 0.2126], dtype=np.float32)

_FORMAT_ALIASES = {
    "QRCode": "QR_CODE",
    "MicroQRCode": "MICRO_QR_CODE",
    "rMQRCode": "RMQR_CODE",
    "UPCA": "UPC_A",
    "UPCE": "UPC_E",
    "NONE": "unknown",
    "None": "unknown",
}
_CAMEL_RE = re.compile(r"(?<=[a-z])(?=[A-Z])|(?<=[A-Za-z])(?=[0-9])")
# Engine conditions that only mean "nothing readable in this frame".
_NO_RESULT_ERRORS = frozenset({"NotFoundException", "FormatException", "ChecksumException"})


def canonical_format_name(name: str) -> str:
    """Map zxing-cpp enum names (`EAN13`, `DataMatrix`) to `EAN_13`, `DATA_MATRIX`."""

    if name in _FORMAT_ALIASES:
        return _FORMAT_ALIASES[name]
    return _CAMEL_RE.sub("_", name).upper()


def bgr_to_luminance(frame: Frame, out: np.ndarray | None = None) -> np.ndarray:
    """Convert a BGR(A) or grayscale frame into an 8-bit luminance plane.

    Values are rounded half-up and clipped to 0-255.
    """

    if frame.ndim == 3 and frame.shape[2] == 1:
        frame = frame[..., 0]
    if frame.ndim == 2:
        if out is None:
            return frame.astype(np.uint8, copy=True)
        np.copyto(out, frame, casting="unsafe")
        return out

    lum = frame[..., :3] @ BGR_LUMA_WEIGHTS
    lum = np.floor(lum + 0.5)
    np.clip(lum, 0, 255, out=lum)
    if out is None:
        return lum.astype(np.uint8)
    np.copyto(out, lum, casting="unsafe")
    return out


def points_to_rect(points: list[Point], frame_width: int, frame_height: int) -> Rect:
    """Envelope of `points` padded by `CORNER_PADDING`, clamped to the frame."""

    xs = [p.x for p in points if math.isfinite(p.x) and math.isfinite(p.y)]
    ys = [p.y for p in points if math.isfinite(p.x) and math.isfinite(p.y)]
    if not xs:
        return Rect(0.0, 0.0, float(frame_width), float(frame_height))

    x = max(0.0, min(xs) - CORNER_PADDING)
    y = max(0.0, min(ys) - CORNER_PADDING)
    width = min(float(frame_width), max(xs) + CORNER_PADDING) - x
    height = min(float(frame_height), max(ys) + CORNER_PADDING) - y
    return Rect(x, y, max(1.0, width), max(1.0, height))


def _position_points(position: Any) -> list[Point]:
    if position is None:
        return []
    points: list[Point] = []
    for name in ("top_left", "top_right", "bottom_right", "bottom_left"):
        p = getattr(position, name, None)
        if p is None:
            continue
        try:
            x, y = float(p.x), float(p.y)
        except (AttributeError, TypeError, ValueError):
            continue
        if math.isfinite(x) and math.isfinite(y):
            points.append(Point(x, y))
    return points


class ZXingBarcodeDecoder:
    """Variant B: luminance bitmap decode via zxing-cpp.

    Multi-result decoding is tried first; engines without `read_barcodes`
    fall back to single-result `read_barcode`.
    """

    def __init__(self, try_harder: bool = True, engine: ModuleType | Any | None = None) -> None:
        self._engine = engine if engine is not None else zxingcpp
        self.try_harder = try_harder
        self._raster: np.ndarray | None = None
        self._luminance: np.ndarray | None = None
        self._bitmap: np.ndarray | None = None
        self._format_names: dict[Any, str] = {}
        self._read_kwargs: dict[str, Any] | None = self._build_read_kwargs()

    def _build_read_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "try_rotate": self.try_harder,
            "try_downscale": self.try_harder,
        }
        binarizer = getattr(getattr(self._engine, "Binarizer", None), "LocalAverage", None)
        if binarizer is not None:
            kwargs["binarizer"] = binarizer
        return kwargs

    def probe(self) -> bool:
        return hasattr(self._engine, "read_barcodes") or hasattr(self._engine, "read_barcode")

    def decode(self, frame: Frame | None) -> list[Detection]:
        """Decode all barcodes in `frame`; never raises."""

        if frame is None or getattr(frame, "size", 0) == 0:
            return []
        height, width = frame.shape[:2]
        if not width or not height:
            return []

        try:
            raster = self._draw(frame)
            self._bitmap = bgr_to_luminance(raster, out=self._luminance_buffer(height, width))
            results = self._read(self._bitmap)
            return [d for d in (self._map_result(r, width, height) for r in results) if d is not None]
        except Exception as exc:
            if type(exc).__name__ not in _NO_RESULT_ERRORS:
                logger.exception("zxing-cpp decode failed")
            return []
        finally:
            self._reset()

    def _draw(self, frame: Frame) -> np.ndarray:
        if self._raster is None or self._raster.shape != frame.shape or self._raster.dtype != frame.dtype:
            self._raster = np.empty_like(frame)
            logger.debug("Allocated raster buffer %s", frame.shape)
        np.copyto(self._raster, frame)
        return self._raster

    def _luminance_buffer(self, height: int, width: int) -> np.ndarray:
        if self._luminance is None or self._luminance.shape != (height, width):
            self._luminance = np.empty((height, width), dtype=np.uint8)
        return self._luminance

    def _reset(self) -> None:
        self._bitmap = None

    def _read(self, bitmap: np.ndarray) -> list[Any]:
        multi = getattr(self._engine, "read_barcodes", None)
        if multi is not None:
            return list(self._call(multi, bitmap) or [])
        single = self._engine.read_barcode
        result = self._call(single, bitmap)
        return [result] if result is not None else []

    def _call(self, fn: Any, bitmap: np.ndarray) -> Any:
        if self._read_kwargs:
            try:
                return fn(bitmap, **self._read_kwargs)
            except TypeError:
                # Older bindings reject the tuning keywords.
                logger.debug("zxing-cpp rejected read options; using defaults")
                self._read_kwargs = None
        return fn(bitmap)

    def _map_result(self, result: Any, width: int, height: int) -> Detection | None:
        # Invalid results carry format/checksum errors: treat as not found.
        if not getattr(result, "valid", True):
            return None
        points = _position_points(getattr(result, "position", None))
        return Detection(
            raw_value=getattr(result, "text", None) or "",
            format=self._format_to_string(getattr(result, "format", None)),
            box=points_to_rect(points, width, height),
            points=points if len(points) >= 3 else None,
        )

    def _format_to_string(self, fmt: Any) -> str:
        try:
            cached = self._format_names.get(fmt)
        except TypeError:
            return "unknown"
        if cached is not None:
            return cached

        name = "unknown"
        members = getattr(getattr(self._engine, "BarcodeFormat", None), "__members__", None) or {}
        for member_name, value in members.items():
            if value == fmt:
                name = canonical_format_name(member_name)
                break
        else:
            enum_name = getattr(fmt, "name", None)
            if isinstance(enum_name, str) and enum_name:
                name = canonical_format_name(enum_name)
        self._format_names[fmt] = name
        return name
