from __future__ import annotations

from typing import Any


# Sampling presets. Shorter intervals feel snappier but decode more frames;
# try_harder (rotation/downscale retries) is the costliest ZXing option.


PRESETS: dict[str, dict[str, Any]] = {
    # Matches the ScannerSettings defaults.
    "balanced": {
        "interval_ms": 250,
        "zxing_try_harder": True,
        "preferred_decoder": "native",
    },
    # Quicker pickup of codes entering the frame.
    "responsive": {
        "interval_ms": 120,
        "zxing_try_harder": False,
        "preferred_decoder": "native",
    },
    # Fewer decodes per second, e.g. on battery.
    "low_power": {
        "interval_ms": 600,
        "zxing_try_harder": False,
        "preferred_decoder": "native",
    },
}


PRESET_LABELS: dict[str, str] = {
    "balanced": "Balanced",
    "responsive": "Responsive",
    "low_power": "Low power",
}


def list_presets() -> list[dict[str, Any]]:
    return [
        {
            "id": preset_id,
            "label": PRESET_LABELS.get(preset_id, preset_id),
            "settings": PRESETS[preset_id],
        }
        for preset_id in PRESETS.keys()
    ]


def preset_patch(preset_id: str) -> dict[str, Any]:
    if preset_id not in PRESETS:
        raise KeyError(preset_id)
    return dict(PRESETS[preset_id])
