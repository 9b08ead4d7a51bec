# recorder.py

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from fractions import Fraction
from pathlib import Path
from typing import Callable, Optional, Protocol, Tuple

import av
import numpy as np
from av.error import FFmpegError

from config import RECORD_BITRATE, RECORD_CODEC, RECORD_EXT, RECORD_FPS, RECORD_PIX_FMT
from errors import EncodeError, EncoderInitError, RecorderStateError
from frame import Frame

logger = logging.getLogger(__name__)


def even_dimensions(width: int, height: int) -> Tuple[int, int]:
    """Truncate to even values; yuv420p encoders reject odd sizes."""
    return width - (width % 2), height - (height % 2)


def recording_filename(started_at: datetime, sequence: int, ext: str = RECORD_EXT) -> str:
    return f"recording_{started_at.strftime('%Y%m%d_%H%M%S')}_{sequence:03d}.{ext}"


@dataclass(frozen=True)
class RecordingSession:
    path: Path
    width: int
    height: int
    frame_rate: int
    bitrate: int
    sequence: int = 0
    frames_written: int = 0
    is_open: bool = True


class VideoEncoder(Protocol):
    def encode(self, pixels: np.ndarray) -> None: ...

    def close(self) -> None: ...


EncoderFactory = Callable[[Path, int, int, int, str, int], VideoEncoder]


class AvEncoder:
    """Encodes rgb24 arrays into a container file with PyAV."""

    def __init__(self, path: Path, width: int, height: int, frame_rate: int, codec: str, bitrate: int):
        self._container: Optional[av.container.OutputContainer] = None
        try:
            self._container = av.open(str(path), mode="w")
            self._stream = self._container.add_stream(codec, rate=frame_rate)
            self._stream.width = width
            self._stream.height = height
            self._stream.pix_fmt = RECORD_PIX_FMT
            self._stream.codec_context.bit_rate = bitrate
            # Open the file and write the header now so an unwritable path fails here.
            self._container.start_encoding()
        except (FFmpegError, OSError, ValueError) as e:
            if self._container is not None:
                try:
                    self._container.close()
                except (FFmpegError, OSError, ValueError):
                    logger.debug("Closing half-opened output %s failed", path, exc_info=True)
            raise EncoderInitError(f"Could not start recording to {path}: {e}") from e
        self._time_base = Fraction(1, frame_rate)
        self._pts = 0

    def encode(self, pixels: np.ndarray):
        frame = av.VideoFrame.from_ndarray(pixels, format="rgb24")
        # Scale to the session size; the camera may change resolution mid-recording.
        frame = frame.reformat(width=self._stream.width, height=self._stream.height, format=RECORD_PIX_FMT)
        frame.pts = self._pts
        frame.time_base = self._time_base
        self._pts += 1
        for packet in self._stream.encode(frame):
            self._container.mux(packet)

    def close(self):
        try:
            # Flush remaining frames
            for packet in self._stream.encode():
                self._container.mux(packet)
        finally:
            self._container.close()


class Recorder:
    """Closed -> Open -> Closed. Not thread-safe on its own; FrameBus serializes access."""

    def __init__(self, encoder_factory: EncoderFactory = AvEncoder):
        self._encoder_factory = encoder_factory
        self._encoder: Optional[VideoEncoder] = None
        self._session: Optional[RecordingSession] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    def open(
        self,
        path: Path,
        width: int,
        height: int,
        frame_rate: int = RECORD_FPS,
        codec: str = RECORD_CODEC,
        bitrate: int = RECORD_BITRATE,
        sequence: int = 0,
    ) -> RecordingSession:
        if self.is_open:
            raise RecorderStateError(f"already recording to {self._session.path}")
        width, height = even_dimensions(width, height)
        if width <= 0 or height <= 0:
            raise EncoderInitError(f"Cannot record a {width}x{height} picture")

        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EncoderInitError(f"Could not create {path.parent}: {e}") from e
        self._encoder = self._encoder_factory(path, width, height, frame_rate, codec, bitrate)
        self._session = RecordingSession(
            path=path,
            width=width,
            height=height,
            frame_rate=frame_rate,
            bitrate=bitrate,
            sequence=sequence,
        )
        logger.info("Recording to %s (%dx%d @ %d fps, %s)", path, width, height, frame_rate, codec)
        return self._session

    def write_frame(self, frame: Frame):
        if self._session is None:
            raise RecorderStateError("write_frame on a closed recorder")
        try:
            self._encoder.encode(frame.pixels)
        except (FFmpegError, OSError, ValueError) as e:
            raise EncodeError(f"Failed to write frame {self._session.frames_written} to {self._session.path}: {e}") from e
        self._session = replace(self._session, frames_written=self._session.frames_written + 1)

    def close(self) -> RecordingSession:
        """Finalize the file. The encoder is released even if finalizing fails."""
        if self._session is None:
            raise RecorderStateError("close on a closed recorder")
        encoder, session = self._encoder, replace(self._session, is_open=False)
        self._encoder = None
        self._session = None
        try:
            encoder.close()
        except (FFmpegError, OSError, ValueError) as e:
            raise EncodeError(f"Error finalizing {session.path}: {e}") from e
        logger.info("Recording saved to %s (%d frames)", session.path, session.frames_written)
        return session
