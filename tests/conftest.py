"""
Test Configuration
==================

Fixtures shared by the pipeline tests: a scripted camera that stands in for
the PyAV frame opener, a fake encoder that records what it is asked to do,
and a Qt core application for the controller's queued signals.
"""

import queue
import time
from types import SimpleNamespace
from datetime import datetime

import numpy as np
import pytest
from PyQt6.QtCore import QCoreApplication

from errors import EncoderInitError
from frame import Frame
from recorder import Recorder
from session import SessionController
from stream_source import StreamSource


def make_frame(value: int, width: int = 8, height: int = 6) -> Frame:
    return Frame.from_ndarray(np.full((height, width, 3), value, dtype=np.uint8))


class FakeCamera:
    """Frame opener fed from the test. Push arrays, an exception, or ``end()``."""

    def __init__(self, log=None, size=(8, 6)):
        self.log = log if log is not None else []
        self.size = size
        self.opened_urls = []
        self._items = queue.Queue()

    def push(self, *values, size=None):
        w, h = size or self.size
        for v in values:
            self._items.put(np.full((h, w, 3), v, dtype=np.uint8))

    def fail(self, exc: BaseException):
        self._items.put(exc)

    def end(self):
        self._items.put(None)

    def __call__(self, url, stop):
        self.opened_urls.append(url)
        try:
            while not stop.is_set():
                try:
                    item = self._items.get(timeout=0.01)
                except queue.Empty:
                    continue
                if item is None:
                    return
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.log.append("source.exit")


class FakeEncoder:
    def __init__(self, factory, path, width, height, frame_rate, codec, bitrate):
        self.factory = factory
        self.path = path
        self.width = width
        self.height = height
        self.frame_rate = frame_rate
        self.codec = codec
        self.bitrate = bitrate
        self.values = []
        self.closed = False
        self.encoded_after_close = False

    def encode(self, pixels):
        if self.closed:
            self.encoded_after_close = True
        if self.factory.fail_write_at is not None and len(self.values) == self.factory.fail_write_at:
            raise OSError("disk full")
        self.values.append(int(pixels[0, 0, 0]))

    def close(self):
        self.closed = True
        self.factory.log.append("encoder.close")
        if self.factory.fail_close:
            raise OSError("trailer write failed")


class FakeEncoderFactory:
    def __init__(self, log=None):
        self.log = log if log is not None else []
        self.encoders = []
        self.fail_open = False
        self.fail_write_at = None
        self.fail_close = False

    def __call__(self, path, width, height, frame_rate, codec, bitrate):
        if self.fail_open:
            raise EncoderInitError(f"Could not start recording to {path}")
        encoder = FakeEncoder(self, path, width, height, frame_rate, codec, bitrate)
        self.encoders.append(encoder)
        return encoder


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


@pytest.fixture
def wait_until(qapp):
    """Poll ``predicate`` while pumping Qt events; returns its final value."""

    def _wait(predicate, timeout=2.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            QCoreApplication.processEvents()
            if predicate():
                return True
            time.sleep(0.005)
        QCoreApplication.processEvents()
        return predicate()

    return _wait


@pytest.fixture
def encoder_factory():
    return FakeEncoderFactory()


@pytest.fixture
def camera(encoder_factory):
    # Shares the encoder's log so tests can check ordering across both.
    return FakeCamera(log=encoder_factory.log)


@pytest.fixture
def make_controller(qapp, tmp_path, camera, encoder_factory):
    created = []

    def _make(probe_timeout=1.0, **kwargs):
        source = StreamSource(opener=camera, probe_timeout=probe_timeout)
        ctl = SessionController(
            source=source,
            recorder=Recorder(encoder_factory=encoder_factory),
            output_dir=tmp_path,
            clock=lambda: datetime(2024, 1, 1, 12, 0, 0),
            **kwargs,
        )
        created.append(ctl)
        events = SimpleNamespace(states=[], errors=[], saved=[], shut_down=[])
        ctl.state_changed.connect(events.states.append)
        ctl.error.connect(lambda kind, msg: events.errors.append((kind, msg)))
        ctl.recording_saved.connect(events.saved.append)
        ctl.shut_down.connect(lambda: events.shut_down.append(True))
        return ctl, events

    yield _make
    for ctl in created:
        ctl.shutdown()
