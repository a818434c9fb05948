"""Periodic frame sampling: capture -> decode -> track -> render.

The loop runs on one asyncio event loop. The next tick is scheduled only after
the current one (decode and render included) has finished, so exactly one
decode is in flight at a time; the blocking engine call itself is awaited in a
worker thread to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from enum import Enum
from typing import Protocol

from livescan.core.decoders.base import BarcodeDecoder
from livescan.core.decoders.registry import DetectorRegistry
from livescan.core.trackers.result_tracker import ResultTracker
from livescan.core.types import Detection, TrackedResult
from livescan.core.video_sources.base import FrameSource

logger = logging.getLogger(__name__)

DETECTION_INTERVAL_MS = 250

STATUS_UNAVAILABLE = "Selected decoder is unavailable"
STATUS_DECODE_ERROR = "Detection error"


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class Renderer(Protocol):
    """Render target fed with the tracked results after every change."""

    def render(self, results: Sequence[TrackedResult], source_size: tuple[int, int]) -> None:
        ...

    def clear(self) -> None:
        ...


class SamplingLoop:
    """Drives the detection pipeline at a fixed interval.

    Attributes:
        status: Last user-facing status message (transient errors included).
        last_error: Last decode failure message, cleared by a successful decode.
    """

    def __init__(
        self,
        registry: DetectorRegistry,
        tracker: ResultTracker,
        renderer: Renderer | None = None,
        interval_ms: float = DETECTION_INTERVAL_MS,
        auto_fallback: bool = True,
        clock: Callable[[], float] = wall_clock_ms,
        on_status: Callable[[str], None] | None = None,
    ) -> None:
        self.registry = registry
        self.tracker = tracker
        self.renderer = renderer
        self.interval_ms = float(interval_ms)
        self.auto_fallback = auto_fallback
        self.clock = clock
        self.on_status = on_status

        self.source: FrameSource | None = None
        self.state = LoopState.IDLE
        self.status: str | None = None
        self.last_error: str | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._task: asyncio.Task[None] | None = None
        # Bumped on every start/stop so late ticks of an old session are ignored.
        self._generation = 0
        self._resume_when_visible = False
        self._source_size: tuple[int, int] = (0, 0)

    @property
    def running(self) -> bool:
        return self.state is LoopState.RUNNING

    def attach_source(self, source: FrameSource) -> None:
        self.source = source

    def detach_source(self) -> FrameSource | None:
        """Stop sampling and hand back the source (the caller closes it)."""

        self.stop()
        source, self.source = self.source, None
        self._resume_when_visible = False
        return source

    def start(self) -> bool:
        """Start ticking on the running event loop; restarts if already running."""

        if self.source is None:
            logger.warning("Cannot start sampling without a frame source")
            return False
        self._loop = asyncio.get_running_loop()
        self._cancel_pending()
        self._generation += 1
        self.state = LoopState.RUNNING
        self._spawn_tick()
        return True

    def stop(self) -> None:
        """Cancel the pending tick and clear the render surface.

        An in-flight decode is allowed to finish; its results are discarded.
        """

        self._cancel_pending()
        self._generation += 1
        self.state = LoopState.IDLE
        if self.renderer is not None:
            self.renderer.clear()

    def set_visible(self, visible: bool) -> None:
        """Pause while the host is hidden; resume on return. Results are kept."""

        if not visible:
            if self.running:
                self._resume_when_visible = True
                self.stop()
            return
        if self._resume_when_visible and self.source is not None and not self.running:
            self._resume_when_visible = False
            self.start()

    def clear_results(self) -> None:
        self.tracker.clear()
        self._render()

    async def drain(self) -> None:
        """Wait for an in-flight tick to finish."""

        task = self._task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _spawn_tick(self) -> None:
        self._handle = None
        if self._loop is None:
            raise RuntimeError("SamplingLoop.start() must be called from a running event loop")
        # A restart must not overlap a decode still running for the old session.
        previous = self._task
        self._task = self._loop.create_task(self._run_tick(self._generation, previous))

    async def _run_tick(self, generation: int, previous: asyncio.Task[None] | None = None) -> None:
        if previous is not None and not previous.done():
            await asyncio.gather(previous, return_exceptions=True)
        if generation != self._generation:
            return
        try:
            await self.tick()
        except Exception:
            logger.exception("Sampling tick failed")
        if self.running and generation == self._generation and self._loop is not None:
            self._handle = self._loop.call_later(self.interval_ms / 1000.0, self._spawn_tick)

    def _set_status(self, message: str | None) -> None:
        if message == self.status:
            return
        self.status = message
        if message is not None and self.on_status is not None:
            self.on_status(message)

    def _resolve_decoder(self) -> tuple[str | None, BarcodeDecoder | None]:
        decoder = self.registry.get_active()
        if decoder is None and self.auto_fallback:
            previous = self.registry.active_id
            fallback = self.registry.select_active(None)
            if fallback is not None and fallback != previous:
                logger.info("Falling back to decoder %s", fallback)
                decoder = self.registry.get_active()
        return self.registry.active_id, decoder

    async def tick(self) -> bool:
        """Run one sampling pass. Returns True when the tracked set changed."""

        source = self.source
        if source is None:
            self.stop()
            return False

        generation = self._generation
        decoder_id, decoder = self._resolve_decoder()
        if decoder is None:
            self._set_status(STATUS_UNAVAILABLE)
            return False

        frame = source.read()
        if frame is not None and not source.is_ready():
            frame = None
        detections: list[Detection] = []
        if frame is not None:
            try:
                detections = await asyncio.to_thread(decoder.decode, frame)
            except Exception as exc:
                if self.source is not source or generation != self._generation:
                    logger.debug("Ignoring failure of a stopped tick: %s", exc)
                    return False
                logger.exception("Decoder %s failed", decoder_id)
                self.last_error = STATUS_DECODE_ERROR
                if decoder_id is not None:
                    self.registry.demote(decoder_id, exc)
                self._set_status(STATUS_DECODE_ERROR)
                return False

        if self.source is not source or generation != self._generation:
            logger.debug("Discarding results of a stopped tick")
            return False

        if frame is not None:
            self.last_error = None
            self._set_status(None)
            h, w = frame.shape[:2]
            self._source_size = (int(w), int(h))

        changed = self.tracker.merge(detections, self.clock())
        if changed:
            self._render()
        return changed

    def _render(self) -> None:
        if self.renderer is None:
            return
        self.renderer.render(self.tracker.snapshot(), self._source_size)
