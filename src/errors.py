# errors.py


class CameraError(Exception):
    """Base for every error surfaced to the UI. ``kind`` names the error for display."""

    kind = "CameraError"


class InvalidUrl(CameraError):
    kind = "InvalidUrl"


class StreamUnavailable(CameraError):
    kind = "StreamUnavailable"


class StreamConnectionError(CameraError):
    kind = "ConnectionError"


class PreconditionFailed(CameraError):
    kind = "PreconditionFailed"


class EncoderInitError(CameraError):
    kind = "EncoderInitError"


class EncodeError(CameraError):
    kind = "EncodeError"


class RecorderStateError(RuntimeError):
    """Recorder used out of order (open twice, write or close while closed)."""
