"""
Local camera decoder for the scan pipeline.

Frames are read with OpenCV on a background thread and decoded with
zxing-cpp; accepted payloads are handed to the event loop with
call_soon_threadsafe so the pipeline's latch runs on the loop thread.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import unicodedata
from contextlib import suppress
from typing import Callable, Optional

import cv2
import zxingcpp

from student360.modules.scan_pipeline import CameraError

SCAN_INTERVAL_SECONDS = 0.08
MAX_FAILED_READS = 25
JOIN_TIMEOUT_SECONDS = 1.0


def _decode_symbol_data(raw: bytes | str) -> str:
    if not raw:
        return ""

    if isinstance(raw, str):
        decoded = raw
    else:
        decoded = raw.decode("utf-8", errors="ignore")

    return unicodedata.normalize("NFC", decoded).strip()


class CameraDecoder:
    def __init__(self, camera_index: int = 0) -> None:
        self._camera_index = camera_index
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self.logger = logging.getLogger(__name__)

    async def start(
        self,
        on_decode: Callable[[str], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """Open the camera and start decoding frames."""

        self.stop()

        loop = asyncio.get_running_loop()
        capture = await loop.run_in_executor(None, self._open_capture)

        # each run gets its own event so a stopped thread is never revived
        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run_loop,
            args=(capture, loop, stop_event, on_decode, on_error),
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop decoding and wait for the capture thread to release the camera."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=JOIN_TIMEOUT_SECONDS)
            if thread.is_alive():
                self.logger.warning("Camera thread did not stop in time")

    def _post(self, loop, callback, *args) -> bool:
        try:
            loop.call_soon_threadsafe(callback, *args)
            return True
        except RuntimeError:
            # event loop closed after the last stop check
            return False

    def _open_capture(self):
        backend_preferences = [getattr(cv2, "CAP_DSHOW", None), getattr(cv2, "CAP_ANY", None)]

        for backend in backend_preferences:
            try:
                if backend is None:
                    capture = cv2.VideoCapture(self._camera_index)
                else:
                    capture = cv2.VideoCapture(self._camera_index, backend)
            except PermissionError as e:
                raise CameraError("NotAllowedError", str(e)) from e

            if capture.isOpened():
                return capture
            capture.release()

        raise CameraError("NotFoundError", f"camera {self._camera_index} could not be opened")

    def _run_loop(self, capture, loop, stop_event, on_decode, on_error) -> None:
        failed_reads = 0
        try:
            while not stop_event.is_set() and not loop.is_closed():
                ok, frame = capture.read()
                if not ok:
                    failed_reads += 1
                    if failed_reads >= MAX_FAILED_READS:
                        if on_error:
                            self._post(
                                loop, on_error, CameraError("NotReadableError", "camera stopped delivering frames")
                            )
                        return
                    stop_event.wait(SCAN_INTERVAL_SECONDS)
                    continue

                failed_reads = 0
                try:
                    decoded = zxingcpp.read_barcodes(
                        frame,
                        formats=zxingcpp.BarcodeFormat.QRCode,
                        try_rotate=True,
                        try_downscale=True,
                    )
                except Exception as e:
                    self.logger.debug(f"Frame decode failed: {str(e)}")
                    decoded = []

                for obj in decoded:
                    if hasattr(obj, "valid") and not obj.valid:
                        continue
                    payload = _decode_symbol_data(getattr(obj, "text", ""))
                    if payload and not stop_event.is_set():
                        if not self._post(loop, on_decode, payload):
                            return

                stop_event.wait(SCAN_INTERVAL_SECONDS)
        finally:
            with suppress(Exception):
                capture.release()
