"""OpenCV native barcode/QR detector integration.

OpenCV ships shape detectors that accept a frame directly and report decoded
text together with corner points in source coordinates. Older contrib builds
expose the barcode detector as `cv2.barcode_BarcodeDetector`; both spellings
are accepted.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

import cv2
import numpy as np

from livescan.core.decoders.base import DecodeError, DecoderUnavailableError
from livescan.core.geometry import bounding_rect_of
from livescan.core.types import Detection, Frame, Point, Rect

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("EAN_8", "EAN_13", "UPC_A", "UPC_E", "QR_CODE")

# cv2.error codes that mean "this frame cannot be decoded yet", not a fault.
_NOT_READY_CODES = frozenset(
    getattr(cv2.Error, name)
    for name in ("StsBadArg", "StsNullPtr", "StsBadSize")
    if hasattr(cv2, "Error") and hasattr(cv2.Error, name)
)


def _barcode_detector_factory() -> Any | None:
    module = getattr(cv2, "barcode", None)
    factory = getattr(module, "BarcodeDetector", None) if module is not None else None
    if factory is None:
        factory = getattr(cv2, "barcode_BarcodeDetector", None)
    return factory


def _is_not_ready(exc: Exception) -> bool:
    if isinstance(exc, TypeError):
        return True
    return isinstance(exc, cv2.error) and getattr(exc, "code", None) in _NOT_READY_CODES


def _format_name(raw: Any) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("ascii", errors="replace")
    if isinstance(raw, str) and raw.strip():
        return raw.strip().upper().replace("-", "_")
    return "unknown"


def _corner_points(corners: Any) -> list[Point] | None:
    if corners is None:
        return None
    try:
        arr = np.asarray(corners, dtype=np.float64).reshape(-1, 2)
    except (TypeError, ValueError):
        return None
    points = [Point(float(x), float(y)) for x, y in arr if math.isfinite(x) and math.isfinite(y)]
    return points if len(points) >= 3 else None


class OpenCVBarcodeDecoder:
    """Variant A: wraps OpenCV's `BarcodeDetector` and `QRCodeDetector`."""

    def __init__(
        self,
        formats: Iterable[str] | None = None,
        enable_qr: bool = True,
        barcode_detector: Any | None = None,
        qr_detector: Any | None = None,
    ) -> None:
        if barcode_detector is None:
            factory = _barcode_detector_factory()
            if factory is None:
                raise DecoderUnavailableError("OpenCV build has no barcode module")
            try:
                barcode_detector = factory()
            except cv2.error as exc:
                raise DecoderUnavailableError(f"BarcodeDetector init failed: {exc}") from exc
        if qr_detector is None and enable_qr:
            qr_detector = cv2.QRCodeDetector()

        self._barcode = barcode_detector
        self._qr = qr_detector if enable_qr else None
        self.formats: frozenset[str] | None = (
            frozenset(_format_name(f) for f in formats) if formats else None
        )
        logger.debug("OpenCV decoder created (formats=%s, qr=%s)", self.formats, enable_qr)

    @staticmethod
    def supported_formats() -> tuple[str, ...]:
        return SUPPORTED_FORMATS

    def probe(self) -> bool:
        return self._barcode is not None

    def decode(self, frame: Frame | None) -> list[Detection]:
        """Decode barcodes in `frame`.

        Returns `[]` for frames that are not ready yet or that OpenCV rejects as
        bad arguments. Any other failure raises `DecodeError`.
        """

        if frame is None or getattr(frame, "size", 0) == 0:
            return []

        h, w = frame.shape[:2]
        try:
            raw = list(self._detect_barcodes(frame))
            if self._qr is not None:
                raw.extend(self._detect_qr(frame))
        except Exception as exc:
            if _is_not_ready(exc):
                return []
            raise DecodeError(f"OpenCV detector failed: {exc}") from exc

        out: list[Detection] = []
        for text, fmt, corners in raw:
            if self.formats is not None and fmt not in self.formats:
                continue
            points = _corner_points(corners)
            box = bounding_rect_of(points) if points else None
            if box is None:
                box = Rect(0.0, 0.0, float(w), float(h))
            out.append(Detection(raw_value=text, format=fmt, box=box, points=points))
        return out

    def _detect_barcodes(self, frame: Frame) -> list[tuple[str, str, Any]]:
        with_type = getattr(self._barcode, "detectAndDecodeWithType", None)
        if with_type is not None:
            ok, infos, types, corners = with_type(frame)
        else:
            # Legacy contrib signature: (ok, infos, types, corners).
            ok, infos, types, corners = self._barcode.detectAndDecode(frame)
        if not ok or infos is None:
            return []

        found: list[tuple[str, str, Any]] = []
        corner_list = list(corners) if corners is not None else []
        for i, text in enumerate(infos):
            fmt = _format_name(types[i] if types is not None and i < len(types) else None)
            text = text or ""
            # Located but not decoded: nothing to report.
            if not text and fmt == "unknown":
                continue
            found.append((text, fmt, corner_list[i] if i < len(corner_list) else None))
        return found

    def _detect_qr(self, frame: Frame) -> list[tuple[str, str, Any]]:
        ok, infos, corners, _straight = self._qr.detectAndDecodeMulti(frame)
        if not ok or infos is None:
            return []
        corner_list = list(corners) if corners is not None else []
        return [
            (text, "QR_CODE", corner_list[i] if i < len(corner_list) else None)
            for i, text in enumerate(infos)
            if text
        ]
