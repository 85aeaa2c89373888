"""
Layer 1 — Capture
Component: Capture session
Responsibility: Single-shot capture requests, one live request at a time
Output: Future resolving to one Frame or one error
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from error_handlers import CapturePreemptedError
from layer2_readjustment import Frame

logger = logging.getLogger(__name__)


class CaptureSession:
    """
    Turns camera reads into request/response values.

    Each request_capture() call returns its own Future. A newer request
    preempts the outstanding one: a queued request is cancelled, and a
    request already reading from the camera resolves with
    CapturePreemptedError instead of its frame.
    """

    def __init__(self, camera, orientation: int = 90):
        """
        Args:
            camera: Object with get_frame() returning a numpy image
            orientation: Orientation tag stamped on every captured frame
        """
        self.camera = camera
        self.orientation = orientation
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture")
        self._lock = threading.Lock()
        self._generation = 0
        self._pending: Optional[Future] = None

        logger.info(f"CaptureSession initialized (orientation={orientation})")

    def request_capture(self) -> Future:
        """
        Start a capture, preempting any capture still in flight

        Returns:
            Future: Resolves to a Frame, or raises the capture error
        """
        future = Future()

        with self._lock:
            self._generation += 1
            generation = self._generation
            previous, self._pending = self._pending, future

        if previous is not None and not previous.done():
            if previous.cancel():
                logger.info("Cancelled queued capture request")
            else:
                logger.info("Capture in flight will be discarded")

        self._executor.submit(self._run, future, generation)
        logger.debug(f"Capture request #{generation} submitted")
        return future

    def capture(self, timeout: Optional[float] = None) -> Frame:
        """Blocking capture; raises whatever the request raised."""
        return self.request_capture().result(timeout=timeout)

    def _run(self, future: Future, generation: int):
        if not future.set_running_or_notify_cancel():
            return

        try:
            pixels = self.camera.get_frame()
            frame = Frame(pixels, self.orientation)
        except Exception as e:
            future.set_exception(e)
            return

        with self._lock:
            stale = generation != self._generation
            if not stale:
                self._pending = None

        if stale:
            logger.info(f"Capture request #{generation} preempted")
            future.set_exception(CapturePreemptedError())
        else:
            logger.info(f"Capture request #{generation} completed - {frame.width}x{frame.height}")
            future.set_result(frame)

    def close(self):
        """Cancel queued requests and stop the worker thread"""
        with self._lock:
            pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()
        self._executor.shutdown(wait=True)
        logger.info("CaptureSession closed")
