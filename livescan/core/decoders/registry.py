"""Registry of interchangeable barcode decoders.

Decoders are constructed lazily (engine initialization is expensive), probed
for availability, and selected by id with a fallback to the first available
engine in priority order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from enum import Enum

from livescan.core.decoders.base import BarcodeDecoder

logger = logging.getLogger(__name__)

# Priority order: first entry wins when no preference is usable.
DECODER_DEFINITIONS: tuple[tuple[str, str], ...] = (
    ("native", "OpenCV BarcodeDetector"),
    ("zxing", "ZXing"),
)

DecoderFactory = Callable[[], BarcodeDecoder]


class Availability(str, Enum):
    UNPROBED = "unprobed"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


def default_factories(
    try_harder: bool = True,
    native_formats: list[str] | None = None,
) -> dict[str, DecoderFactory]:
    """Factories for the built-in engines (imports deferred to construction)."""

    def _native() -> BarcodeDecoder:
        from livescan.core.decoders.native import OpenCVBarcodeDecoder

        return OpenCVBarcodeDecoder(formats=native_formats)

    def _zxing() -> BarcodeDecoder:
        from livescan.core.decoders.zxing import ZXingBarcodeDecoder

        return ZXingBarcodeDecoder(try_harder=try_harder)

    return {"native": _native, "zxing": _zxing}


class DetectorRegistry:
    """Owns decoder instances and their availability state."""

    def __init__(
        self,
        factories: Mapping[str, DecoderFactory] | None = None,
        definitions: tuple[tuple[str, str], ...] = DECODER_DEFINITIONS,
    ) -> None:
        self._factories: dict[str, DecoderFactory] = dict(
            factories if factories is not None else default_factories()
        )
        self._definitions = tuple((i, label) for i, label in definitions if i in self._factories)
        self._instances: dict[str, BarcodeDecoder] = {}
        self._availability: dict[str, Availability] = {
            i: Availability.UNPROBED for i, _ in self._definitions
        }
        self._active_id: str | None = None

    @property
    def ids(self) -> list[str]:
        return [i for i, _ in self._definitions]

    @property
    def active_id(self) -> str | None:
        return self._active_id

    def label_for(self, decoder_id: str | None) -> str:
        for i, label in self._definitions:
            if i == decoder_id:
                return label
        return str(decoder_id)

    def availability(self, decoder_id: str) -> Availability:
        return self._availability.get(decoder_id, Availability.UNAVAILABLE)

    def is_available(self, decoder_id: str | None) -> bool:
        return decoder_id is not None and self.availability(decoder_id) is Availability.AVAILABLE

    def _ensure(self, decoder_id: str) -> BarcodeDecoder:
        """Return the cached decoder, constructing it at most once."""

        decoder = self._instances.get(decoder_id)
        if decoder is None:
            decoder = self._factories[decoder_id]()
            self._instances[decoder_id] = decoder
            logger.debug("Constructed decoder %s", decoder_id)
        return decoder

    def probe_all(self) -> dict[str, bool]:
        """Construct and probe every known decoder; failures are per-variant."""

        for decoder_id, label in self._definitions:
            available = False
            try:
                available = bool(self._ensure(decoder_id).probe())
            except Exception as exc:
                self._instances.pop(decoder_id, None)
                logger.warning("%s is unavailable: %s", label, exc)
            if not available:
                self._instances.pop(decoder_id, None)
            self._availability[decoder_id] = (
                Availability.AVAILABLE if available else Availability.UNAVAILABLE
            )

        if not self.is_available(self._active_id):
            self._active_id = self._first_available()
        return {i: self.is_available(i) for i in self.ids}

    def _first_available(self) -> str | None:
        for decoder_id in self.ids:
            if self.is_available(decoder_id):
                return decoder_id
        return None

    def select_active(self, preferred_id: str | None = None) -> str | None:
        """Select `preferred_id` if available, else the first available decoder.

        Returns the selected id, or `None` when no engine is usable.
        """

        if self.is_available(preferred_id):
            self._active_id = preferred_id
        else:
            if preferred_id is not None:
                logger.info("%s is not available; falling back", self.label_for(preferred_id))
            self._active_id = self._first_available()
        return self._active_id

    def get_active(self) -> BarcodeDecoder | None:
        """Return the active decoder, constructing it on first use."""

        decoder_id = self._active_id
        if decoder_id is None or not self.is_available(decoder_id):
            return None
        try:
            return self._ensure(decoder_id)
        except Exception as exc:
            logger.error("%s failed to initialize", self.label_for(decoder_id), exc_info=True)
            self.demote(decoder_id, exc)
            return None

    def demote(self, decoder_id: str, exc: BaseException | None = None) -> None:
        """Mark a decoder unavailable after an active-use failure."""

        self._instances.pop(decoder_id, None)
        if decoder_id in self._availability:
            self._availability[decoder_id] = Availability.UNAVAILABLE
        logger.warning("Demoted decoder %s (%s)", decoder_id, exc)

    def options(self) -> list[tuple[str, str, bool]]:
        """`(id, label, available)` rows for a decoder picker."""

        rows = []
        for decoder_id, label in self._definitions:
            available = self.is_available(decoder_id)
            rows.append((decoder_id, label if available else f"{label} (unsupported)", available))
        return rows
