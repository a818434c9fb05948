from __future__ import annotations

import argparse
import asyncio
import logging

import cv2
import numpy as np

from livescan.core.config.presets import preset_patch
from livescan.core.config.settings import ScannerSettings, load_settings, settings_to_dict
from livescan.core.decoders.registry import DetectorRegistry, default_factories
from livescan.core.geometry import cover_fit_frame
from livescan.core.overlay.draw import OverlaySurface, compose, result_lines
from livescan.core.sampling import SamplingLoop
from livescan.core.trackers.result_tracker import ResultTracker
from livescan.core.video_sources.base import WebcamSource

logger = logging.getLogger("livescan.scan_camera")

WINDOW = "livescan"


def build_settings(args: argparse.Namespace) -> ScannerSettings:
    """Config file/env settings, then the preset, then explicit CLI flags."""

    data = settings_to_dict(load_settings())
    if args.preset:
        data.update(preset_patch(args.preset))
    overrides = {
        "camera_index": args.camera,
        "preferred_decoder": args.decoder,
        "interval_ms": args.interval_ms,
    }
    data.update({k: v for k, v in overrides.items() if v is not None})
    return ScannerSettings(**data)


def next_decoder(registry: DetectorRegistry) -> str | None:
    available = [i for i, _label, ok in registry.options() if ok]
    if not available:
        return None
    current = registry.active_id
    if current not in available:
        return available[0]
    return available[(available.index(current) + 1) % len(available)]


def _sync_surface_to_window(surface: OverlaySurface) -> None:
    try:
        _x, _y, w, h = cv2.getWindowImageRect(WINDOW)
    except cv2.error:
        return
    dpr = surface.device_pixel_ratio
    if w > 0 and h > 0:
        surface.resize(int(round(w / dpr)), int(round(h / dpr)))


async def run(args: argparse.Namespace) -> int:
    settings = build_settings(args)

    registry = DetectorRegistry(
        default_factories(
            try_harder=settings.zxing_try_harder,
            native_formats=settings.native_formats,
        )
    )
    registry.probe_all()
    for decoder_id, label, _ok in registry.options():
        print(f"  {decoder_id:8s} {label}")
    if registry.select_active(settings.preferred_decoder) is None:
        print("No usable barcode decoder")
        return 1

    try:
        source = WebcamSource(settings.camera_index, settings.capture_width, settings.capture_height)
    except RuntimeError as exc:
        print(exc)
        return 1

    surface = OverlaySurface(settings.display_width, settings.display_height, settings.device_pixel_ratio)
    sampler = SamplingLoop(
        registry,
        ResultTracker(ttl_ms=settings.result_ttl_ms),
        renderer=surface,
        interval_ms=settings.interval_ms,
        auto_fallback=settings.auto_fallback,
        on_status=lambda message: logger.warning("%s", message),
    )
    sampler.attach_source(source)
    cv2.namedWindow(WINDOW, cv2.WINDOW_NORMAL)
    print(f"Scanning with {registry.label_for(registry.active_id)} (q quit, c clear, d decoder, p pause)")

    shown = ""
    paused = False
    try:
        sampler.start()
        while True:
            _sync_surface_to_window(surface)
            pw, ph = surface.pixel_size
            display = cover_fit_frame(source.read(), pw, ph)
            if display is None:
                display = np.zeros((ph, pw, 3), dtype=np.uint8)
            cv2.imshow(WINDOW, compose(display, surface))

            lines = result_lines(sampler.tracker.snapshot())
            if lines != shown:
                shown = lines
                if lines:
                    print(lines, flush=True)

            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27) or cv2.getWindowProperty(WINDOW, cv2.WND_PROP_VISIBLE) < 1:
                break
            if key == ord("c"):
                sampler.clear_results()
            elif key == ord("d"):
                chosen = registry.select_active(next_decoder(registry))
                print(f"Decoder: {registry.label_for(chosen)}")
            elif key == ord("p"):
                paused = not paused
                sampler.set_visible(not paused)
            await asyncio.sleep(0.03)
    finally:
        sampler.stop()
        await sampler.drain()
        sampler.detach_source()
        source.close()
        cv2.destroyAllWindows()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Scan barcodes from a live camera")
    parser.add_argument("--camera", type=int, default=None, help="Camera index")
    parser.add_argument("--decoder", default=None, help="auto|native|zxing")
    parser.add_argument("--interval-ms", type=int, default=None, help="Sampling interval")
    parser.add_argument("--preset", default=None, help="balanced|responsive|low_power")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    raise SystemExit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
