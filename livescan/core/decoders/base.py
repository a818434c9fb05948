"""Decoder abstraction shared by every barcode engine adapter."""

from __future__ import annotations

from typing import Protocol

from livescan.core.types import Detection, Frame


class DecoderUnavailableError(RuntimeError):
    """The engine cannot be constructed in this environment."""


class DecodeError(RuntimeError):
    """Unexpected engine fault while decoding a frame."""


class BarcodeDecoder(Protocol):
    """Minimal interface expected by `DetectorRegistry` and `SamplingLoop`.

    `decode` returns an empty list for every expected "nothing to report"
    condition and raises `DecodeError` only for genuine engine faults.
    """

    def probe(self) -> bool:
        """Return True when the engine is usable."""

    def decode(self, frame: Frame | None) -> list[Detection]:
        """Return detections in source-frame pixel coordinates."""
