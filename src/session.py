# session.py

import enum
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Tuple

from PyQt6.QtCore import QObject, Qt, pyqtSignal, pyqtSlot

from camera_url import normalize_camera_url
from config import DEFAULT_RECORD_SIZE, RECORDINGS_DIR
from errors import CameraError, EncodeError, PreconditionFailed
from frame_bus import FrameBus
from recorder import Recorder, RecordingSession, recording_filename
from stream_source import StreamHandle, StreamSource

logger = logging.getLogger(__name__)


class PipelineState(enum.Enum):
    IDLE = "Idle"
    STREAMING = "Streaming"
    STREAMING_RECORDING = "Streaming+Recording"


class SessionController(QObject):
    """The only entry point for the UI: commands in, Qt signals out.

    Commands must be called from the thread that owns the controller. They
    raise a ``CameraError`` subclass on failure and leave the state unchanged.
    Frames are emitted from the decode thread; connect with the default
    (auto) connection type to have them delivered on the UI thread.
    """

    frame_ready = pyqtSignal(object)      # Frame
    state_changed = pyqtSignal(object)    # PipelineState
    error = pyqtSignal(str, str)          # (kind, message)
    status = pyqtSignal(str)
    recording_saved = pyqtSignal(str)
    shut_down = pyqtSignal()

    # Raised on the decode thread, handled on the controller's thread.
    _stream_lost = pyqtSignal(object, object)
    _recording_failed = pyqtSignal(object, object)

    def __init__(
        self,
        source: Optional[StreamSource] = None,
        recorder: Optional[Recorder] = None,
        output_dir: Path = RECORDINGS_DIR,
        clock: Callable[[], datetime] = datetime.now,
        record_size: Optional[Tuple[int, int]] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._source = source if source is not None else StreamSource()
        self._recorder = recorder if recorder is not None else Recorder()
        self._output_dir = Path(output_dir)
        self._clock = clock
        self._record_size = record_size

        self._bus = FrameBus(display_sink=self.frame_ready.emit, on_record_error=self._recording_failed.emit)
        self._source.set_frame_observer(self._bus.publish)
        self._source.set_loss_handler(self._stream_lost.emit)
        self._stream_lost.connect(self._on_stream_lost, Qt.ConnectionType.QueuedConnection)
        self._recording_failed.connect(self._on_recording_failed, Qt.ConnectionType.QueuedConnection)

        self._state = PipelineState.IDLE
        self._handle: Optional[StreamHandle] = None
        self._session: Optional[RecordingSession] = None
        self._sequence = 0
        self._is_shut_down = False

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def handle(self) -> Optional[StreamHandle]:
        return self._handle

    @property
    def recording_session(self) -> Optional[RecordingSession]:
        """The live session, including its running frame count."""
        return self._recorder.session

    @property
    def frame_bus(self) -> FrameBus:
        return self._bus

    # ---------------------- Commands ----------------------
    def start_streaming(self, url: str) -> StreamHandle:
        if self._is_shut_down:
            raise PreconditionFailed("The session has been shut down.")
        url = normalize_camera_url(url)
        if self._state is not PipelineState.IDLE:
            raise PreconditionFailed("The video stream is already running.")

        self.status.emit("Connecting…")
        try:
            handle = self._source.start(url)
        except CameraError:
            self.status.emit("Idle")
            raise
        self._handle = handle
        self._set_state(PipelineState.STREAMING)
        self.status.emit("Video stream started successfully!")
        return handle

    def stop_streaming(self):
        """Stop the stream, finalizing any recording first."""
        if self._state is PipelineState.IDLE:
            raise PreconditionFailed("Please start the video stream first.")
        self._teardown_stream()

    def start_recording(self) -> RecordingSession:
        if self._state is PipelineState.IDLE:
            raise PreconditionFailed("Please start the video stream first.")
        if self._state is PipelineState.STREAMING_RECORDING:
            raise PreconditionFailed("Recording is already in progress.")

        sequence = self._sequence + 1
        path = self._output_dir / recording_filename(self._clock(), sequence)
        width, height = self._recording_size()
        session = self._recorder.open(path, width, height, sequence=sequence)
        self._sequence = sequence
        self._bus.attach_recorder(self._recorder)
        self._session = session
        self._set_state(PipelineState.STREAMING_RECORDING)
        self.status.emit(f"Recording started: {path.name}")
        return session

    def stop_recording(self) -> Optional[RecordingSession]:
        if self._state is not PipelineState.STREAMING_RECORDING:
            raise PreconditionFailed("Recording is not in progress. Please start the recording first.")
        closed = self._finish_recording()
        self._set_state(PipelineState.STREAMING)
        return closed

    def shutdown(self):
        """Stop recording, then streaming, then announce shutdown. Safe in any state."""
        if self._is_shut_down:
            return
        # Order matters: the encoder is closed before the source feeding it goes away.
        self._teardown_stream()
        self._is_shut_down = True
        logger.info("Session shut down")
        self.shut_down.emit()

    # ---------------------- Internals ----------------------
    def _teardown_stream(self):
        if self._state is PipelineState.STREAMING_RECORDING:
            self._finish_recording()
            self._set_state(PipelineState.STREAMING)
        self._source.stop()
        self._handle = None
        self._bus.clear()
        self._set_state(PipelineState.IDLE)

    def _finish_recording(self) -> Optional[RecordingSession]:
        session, self._session = self._session, None
        try:
            closed = self._bus.detach_recorder()
        except EncodeError as e:
            # The file handle is already released; only the trailer may be missing.
            logger.warning("Recording %s was not finalized cleanly: %s", session.path if session else "?", e)
            self.error.emit(e.kind, str(e))
            return None
        if closed is not None:
            self.status.emit(f"Recording stopped and saved to {closed.path}")
            self.recording_saved.emit(str(closed.path))
        return closed

    def _recording_size(self) -> Tuple[int, int]:
        if self._record_size is not None:
            return self._record_size
        latest = self._bus.latest()
        if latest is not None:
            return latest.width, latest.height
        return DEFAULT_RECORD_SIZE

    def _set_state(self, state: PipelineState):
        if state is self._state:
            return
        logger.info("State %s -> %s", self._state.value, state.value)
        self._state = state
        self.state_changed.emit(state)

    @pyqtSlot(object, object)
    def _on_stream_lost(self, handle: StreamHandle, error: Exception):
        if handle is not self._handle:
            # Stream was already stopped or replaced by the user.
            return
        logger.warning("Stream %s lost: %s", handle.url, error)
        self._teardown_stream()
        self.error.emit(getattr(error, "kind", "ConnectionError"), str(error))

    @pyqtSlot(object, object)
    def _on_recording_failed(self, session: RecordingSession, error: Exception):
        # FrameBus has already detached and closed the recorder.
        if self._session is not None and self._session.path == session.path:
            self._session = None
            self._set_state(PipelineState.STREAMING)
        self.error.emit(getattr(error, "kind", "EncodeError"), str(error))
