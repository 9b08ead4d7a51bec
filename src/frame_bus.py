# frame_bus.py

import logging
import threading
from typing import Callable, Optional

from errors import EncodeError, RecorderStateError
from frame import Frame
from recorder import Recorder, RecordingSession

logger = logging.getLogger(__name__)


class FrameBus:
    """Single-slot hand-off of the latest frame to the display and the recorder.

    One lock guards both the latest-frame slot and the attached recorder, so a
    publish either records and replaces the frame entirely or not at all, and
    a recorder can never be closed in the middle of a publish.
    """

    def __init__(
        self,
        display_sink: Optional[Callable[[Frame], None]] = None,
        on_record_error: Optional[Callable[[RecordingSession, Exception], None]] = None,
    ):
        self._lock = threading.Lock()
        self._latest: Optional[Frame] = None
        self._recorder: Optional[Recorder] = None
        self._display_sink = display_sink
        self._on_record_error = on_record_error

    def publish(self, frame: Frame):
        failed: Optional[RecordingSession] = None
        error: Optional[Exception] = None
        with self._lock:
            if self._recorder is not None:
                try:
                    self._recorder.write_frame(frame)
                except EncodeError as e:
                    failed, error = self._drop_recorder(), e
            self._latest = frame

        # Rendering happens on the UI side; never under the lock.
        if self._display_sink is not None:
            self._display_sink(frame)
        if error is not None:
            logger.warning("Recording to %s aborted: %s", failed.path, error)
            if self._on_record_error is not None:
                self._on_record_error(failed, error)

    def latest(self) -> Optional[Frame]:
        with self._lock:
            return self._latest

    def clear(self):
        with self._lock:
            self._latest = None

    @property
    def recording(self) -> bool:
        with self._lock:
            return self._recorder is not None

    def attach_recorder(self, recorder: Recorder):
        with self._lock:
            if self._recorder is not None:
                raise RecorderStateError("a recorder is already attached")
            if not recorder.is_open:
                raise RecorderStateError("only an open recorder can be attached")
            self._recorder = recorder

    def detach_recorder(self) -> Optional[RecordingSession]:
        """Detach and finalize the recorder. Returns None if none was attached.

        Finalize errors propagate, but the recorder is detached and its file
        handle released either way.
        """
        with self._lock:
            if self._recorder is None:
                return None
            recorder, self._recorder = self._recorder, None
            return recorder.close()

    def _drop_recorder(self) -> RecordingSession:
        # Lock held. Closing a broken encoder must not stop frame delivery.
        recorder, self._recorder = self._recorder, None
        session = recorder.session
        try:
            recorder.close()
        except EncodeError as e:
            logger.warning("Finalizing %s after a failed write also failed: %s", session.path, e)
        return session
