"""
Scan Pipeline Module - Student360 School Notes System

This module drives QR scanning from camera start to the hand-off of a decoded
student ID. The same ScannerState machine backs both the browser scanner
(whose events arrive through JSON endpoints) and the asyncio ScanPipeline used
with a local camera decoder.

States:
    idle -> starting -> scanning -> scanned -> idle
    starting | scanning -> error

Two guards keep a scan from being applied twice or too late:
- a single-result latch, reset on every camera start, so only the first decode
  of a camera session is accepted;
- a NavigationToken that advances whenever the user navigates; a result that
  carries an older token is discarded by the receiver.

Features:
- Scanner state machine with camera-session numbering
- Navigation token for discarding stale results
- Camera error categorization into user messages
- Async pipeline with a settle delay between decode and hand-off
"""

import asyncio
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from student360.modules import messages

IDLE = 'idle'
STARTING = 'starting'
SCANNING = 'scanning'
SCANNED = 'scanned'
ERROR = 'error'

DEFAULT_SETTLE_DELAY_SECONDS = 0.12

CAMERA_PERMISSION_DENIED = 'permission-denied'
CAMERA_NO_DEVICE = 'no-device'
CAMERA_BUSY = 'device-busy'
CAMERA_OTHER = 'other'


class ScanStateError(Exception):
    """Raised for a transition the scanner state machine does not allow."""


class CameraError(Exception):
    """
    Camera failure reported by a decoder.

    name follows the browser media-error names (NotAllowedError,
    NotFoundError, NotReadableError, ...).
    """

    def __init__(self, name: str, message: str = ''):
        self.name = name
        self.message = message
        super().__init__(f"{name}: {message}" if message else name)


def humanize_camera_error(error: Union[Exception, Dict[str, Any], None]) -> Dict[str, str]:
    """
    Categorize a camera error and build the message shown to the user.

    Args:
        error: CameraError, any exception, or a {'name', 'message'} dict from the browser

    Returns:
        Dict[str, str]: {'category': ..., 'reason': ...}
    """
    if isinstance(error, dict):
        name = str(error.get('name') or '')
        message = str(error.get('message') or '')
    elif isinstance(error, CameraError):
        name, message = error.name, error.message
    elif isinstance(error, PermissionError):
        name, message = 'NotAllowedError', str(error)
    else:
        name = type(error).__name__ if error is not None else ''
        message = str(error or '')

    if name == 'NotAllowedError' or 'denied' in message.lower():
        return {'category': CAMERA_PERMISSION_DENIED, 'reason': messages.CAMERA_PERMISSION_DENIED}
    if name == 'NotFoundError':
        return {'category': CAMERA_NO_DEVICE, 'reason': messages.CAMERA_NOT_FOUND}
    if name == 'NotReadableError':
        return {'category': CAMERA_BUSY, 'reason': messages.CAMERA_BUSY}

    reason = messages.CAMERA_OTHER.format(name=name or 'Error', message=message).strip()
    return {'category': CAMERA_OTHER, 'reason': reason}


class NavigationToken:
    """
    Monotonically increasing counter identifying the current page visit.
    """

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    @property
    def current(self) -> int:
        return self._value

    def advance(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def is_current(self, token) -> bool:
        try:
            return int(token) == self._value
        except (TypeError, ValueError):
            return False


class ScannerState:
    """
    Scanner state machine with a single-result latch per camera session.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.state = IDLE
        self.error = ''
        self.camera_session = 0
        self._scanned = False
        self._lock = threading.Lock()

    def request_start(self) -> int:
        """
        Begin a camera session.

        Returns:
            int: Number identifying the new camera session
        """
        with self._lock:
            if self.state in (STARTING, SCANNING):
                raise ScanStateError(f"Camera already {self.state}")
            self.camera_session += 1
            self._scanned = False
            self.error = ''
            self.state = STARTING
            return self.camera_session

    def armed(self, camera_session: int = None) -> None:
        """Camera stream attached and decoder running."""
        with self._lock:
            if camera_session is not None and camera_session != self.camera_session:
                raise ScanStateError(f"Stale camera session {camera_session}")
            if self.state == SCANNED:
                # first decode arrived before the decoder reported ready
                return
            if self.state != STARTING:
                raise ScanStateError(f"Cannot arm scanner from state {self.state}")
            self.state = SCANNING

    def accept_decode(self, camera_session: int = None) -> bool:
        """
        Latch the first decode of the current camera session.

        Returns:
            bool: True for the accepted decode, False for every decode that should be ignored
        """
        with self._lock:
            if camera_session is not None and camera_session != self.camera_session:
                return False
            if self._scanned or self.state not in (STARTING, SCANNING):
                return False
            self._scanned = True
            self.state = SCANNED
            return True

    def fail(self, reason: str) -> None:
        with self._lock:
            if self.state not in (STARTING, SCANNING):
                raise ScanStateError(f"Cannot fail from state {self.state}")
            self.state = ERROR
            self.error = reason
        self.logger.warning(f"Scanner error: {reason}")

    def reset(self) -> None:
        """Manual stop/reset: back to idle with the latch cleared."""
        with self._lock:
            self.state = IDLE
            self.error = ''
            self._scanned = False

    @property
    def scanned(self) -> bool:
        return self._scanned

    def snapshot(self) -> Dict[str, Any]:
        return {'state': self.state, 'error': self.error, 'camera_session': self.camera_session}


ScanCallback = Callable[[str, int], Union[None, bool, Awaitable[Any]]]


class ScanPipeline:
    """
    Asyncio driver connecting a decoder to the scanner state machine.

    A decoder is any object with:
        async start(on_decode, on_error)  -- raise CameraError if the camera cannot start
        stop()                            -- stop producing decode events

    on_decode(text) and on_error(exc) must be invoked on the event loop thread.
    """

    def __init__(self, decoder, on_scan: ScanCallback, session_token: int,
                 settle_delay: float = DEFAULT_SETTLE_DELAY_SECONDS,
                 scanner_state: Optional[ScannerState] = None,
                 on_error: Optional[Callable[[str], None]] = None):
        """
        Initialize the pipeline.

        Args:
            decoder: Decoder producing decode events
            on_scan: Called as on_scan(text, session_token) after the settle delay
            session_token (int): Navigation token captured when the scanner was opened
            settle_delay (float): Seconds between accepting a decode and handing it off
            scanner_state (ScannerState): State machine to drive; a new one by default
            on_error: Called with the user-facing reason when the camera fails after start
        """
        self.decoder = decoder
        self.on_scan = on_scan
        self.session_token = session_token
        self.settle_delay = settle_delay
        self.scanner = scanner_state or ScannerState()
        self.on_error = on_error
        self.logger = logging.getLogger(__name__)

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Optional[asyncio.TimerHandle] = None
        self._tasks = set()

    @property
    def state(self) -> str:
        return self.scanner.state

    async def start(self) -> bool:
        """
        Start the camera and begin decoding.

        Returns:
            bool: False if the camera could not be started (state becomes error)
        """
        self._loop = asyncio.get_running_loop()
        self._clear_pending()
        camera_session = self.scanner.request_start()

        try:
            await self.decoder.start(
                lambda text: self._handle_decode(camera_session, text),
                lambda exc: self._handle_stream_error(camera_session, exc)
            )
        except Exception as e:
            self.scanner.fail(humanize_camera_error(e)['reason'])
            return False

        if self.scanner.state == ERROR:
            return False
        self.scanner.armed(camera_session)
        self.logger.info(f"Scanner armed (camera session {camera_session})")
        return True

    def stop(self) -> None:
        """Stop the decoder and cancel any pending hand-off."""
        self._clear_pending()
        try:
            self.decoder.stop()
        except Exception as e:
            self.logger.warning(f"Decoder stop failed: {str(e)}")

    def reset(self) -> None:
        self.stop()
        self.scanner.reset()

    async def drain(self) -> None:
        """Wait for a pending hand-off and any callback it started."""
        while self._pending is not None:
            await asyncio.sleep(self.settle_delay / 4 or 0.001)
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _handle_decode(self, camera_session: int, text: str) -> None:
        if not text:
            return
        if not self.scanner.accept_decode(camera_session):
            return

        self.stop()
        self._pending = self._loop.call_later(self.settle_delay, self._deliver, text)

    def _handle_stream_error(self, camera_session: int, error) -> None:
        if camera_session != self.scanner.camera_session:
            return
        if self.scanner.state not in (STARTING, SCANNING):
            return

        reason = humanize_camera_error(error)['reason']
        self.stop()
        self.scanner.fail(reason)
        if self.on_error is not None:
            try:
                self.on_error(reason)
            except Exception as e:
                self.logger.error(f"Camera error callback failed: {str(e)}")

    def _deliver(self, text: str) -> None:
        self._pending = None
        try:
            result = self.on_scan(text, self.session_token)
        except Exception as e:
            self.logger.error(f"Scan hand-off failed: {str(e)}")
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _clear_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
