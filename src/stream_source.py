# stream_source.py

import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import av
import numpy as np
from av.error import FFmpegError

from camera_url import normalize_camera_url
from config import PROBE_TIMEOUT_S, READ_TIMEOUT_S
from errors import StreamConnectionError, StreamUnavailable
from frame import Frame

logger = logging.getLogger(__name__)

FrameObserver = Callable[[Frame], None]
# (url, stop_event) -> rgb24 arrays; must return promptly once stop_event is set.
FrameOpener = Callable[[str, threading.Event], Iterator[np.ndarray]]


def open_mjpeg_frames(url: str, stop: threading.Event) -> Iterator[np.ndarray]:
    """Decode an HTTP MJPEG (multipart) camera feed with PyAV, yielding rgb24 arrays."""
    opts = {
        "flags": "low_delay",
    }
    with av.open(url, options=opts, timeout=(PROBE_TIMEOUT_S, READ_TIMEOUT_S)) as container:
        stream = next((s for s in container.streams if s.type == "video"), None)
        if stream is None:
            raise StreamConnectionError(f"No video stream found at {url}")
        stream.thread_type = "AUTO"
        for frame in container.decode(stream):
            if stop.is_set():
                break
            yield frame.to_ndarray(format="rgb24")


@dataclass
class StreamHandle:
    url: str
    running: bool = False
    last_error: Optional[Exception] = None


class StreamSource:
    """Owns the single decode thread and fans decoded frames out to one observer.

    ``start`` only returns once the connection has produced a frame (the
    probe); ``stop`` only returns once the decode thread has exited.
    """

    def __init__(self, opener: FrameOpener = open_mjpeg_frames, probe_timeout: float = PROBE_TIMEOUT_S):
        self._opener = opener
        self._probe_timeout = probe_timeout
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._observer_lock = threading.Lock()
        self._active_observer: Optional[FrameObserver] = None
        self._frame_observer: Optional[FrameObserver] = None
        self._loss_handler: Optional[Callable[[StreamHandle, Exception], None]] = None
        self._probing = False
        self._probe_wake: Optional[threading.Event] = None
        self.handle: Optional[StreamHandle] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def set_frame_observer(self, observer: Optional[FrameObserver]):
        self._frame_observer = observer

    def set_loss_handler(self, handler: Optional[Callable[[StreamHandle, Exception], None]]):
        """``handler(handle, error)`` runs on the decode thread when an established stream dies."""
        self._loss_handler = handler

    def start(self, url: str) -> StreamHandle:
        url = normalize_camera_url(url)
        self.stop()
        self._stop.clear()

        handle = StreamHandle(url=url, running=True)
        self.handle = handle
        first_frame = threading.Event()
        wake = threading.Event()

        def probe_observer(_frame: Frame):
            first_frame.set()
            wake.set()

        logger.info("Connecting to %s", url)
        self._thread = threading.Thread(target=self._run, args=(handle,), name="stream-source", daemon=True)
        with self._temporary_observer(probe_observer, wake):
            self._thread.start()
            wake.wait(self._probe_timeout)

        # A loop that died during the probe fails the start even if a frame got through.
        if handle.last_error is not None or not first_frame.is_set():
            self.stop()
            if handle.last_error is not None:
                logger.warning("Stream %s failed during probe: %s", url, handle.last_error)
                raise StreamConnectionError(
                    f"Failed to start the video stream. Please check the IP address and ensure "
                    f"the camera is accessible.\n\nError: {handle.last_error}"
                ) from handle.last_error
            logger.warning("No frame from %s within %.1fs", url, self._probe_timeout)
            raise StreamUnavailable("The provided URL is not streaming video. Please check the camera setup.")

        with self._observer_lock:
            self._active_observer = self._frame_observer
        logger.info("Streaming from %s", url)
        return handle

    def stop(self):
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        # The decode thread may stop itself from inside an observer; it cannot join itself.
        if thread is not threading.current_thread():
            thread.join()
        self._thread = None
        with self._observer_lock:
            self._active_observer = None
        if self.handle is not None:
            self.handle.running = False
        logger.info("Stream stopped")

    @contextlib.contextmanager
    def _temporary_observer(self, observer: FrameObserver, wake: threading.Event):
        with self._observer_lock:
            self._active_observer = observer
            self._probing = True
            self._probe_wake = wake
        try:
            yield
        finally:
            with self._observer_lock:
                self._active_observer = None
                self._probing = False
                self._probe_wake = None

    def _emit(self, frame: Frame):
        with self._observer_lock:
            observer = self._active_observer
        if observer is not None:
            observer(frame)

    def _run(self, handle: StreamHandle):
        error: Optional[Exception] = None
        try:
            with contextlib.closing(self._opener(handle.url, self._stop)) as frames:
                for img in frames:
                    if self._stop.is_set():
                        break
                    self._emit(Frame.from_ndarray(img))
            if not self._stop.is_set():
                error = StreamConnectionError(f"Stream ended: {handle.url}")
        except StreamConnectionError as e:
            error = e
        except (FFmpegError, OSError, ValueError) as e:
            error = StreamConnectionError(f"FFmpeg/PyAV error: {e}")
        except Exception as e:
            logger.exception("Decode loop for %s failed", handle.url)
            error = StreamConnectionError(f"Error: {e}")
        finally:
            handle.running = False

        if error is None or self._stop.is_set():
            return
        handle.last_error = error
        with self._observer_lock:
            probing = self._probing
            wake = self._probe_wake
        if probing:
            # start() is still waiting on the probe; let it fail fast.
            wake.set()
            return
        logger.warning("Lost connection to %s: %s", handle.url, error)
        if self._loss_handler is not None:
            self._loss_handler(handle, error)
