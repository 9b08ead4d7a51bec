# main_window.py

from PyQt6.QtCore import Qt
from PyQt6.QtWidgets import (
    QApplication, QWidget, QLabel, QLineEdit, QPushButton, QHBoxLayout, QVBoxLayout, QMessageBox
)

from errors import CameraError, InvalidUrl, StreamUnavailable
from session import PipelineState, SessionController
from widgets import VideoView

_ERROR_TITLES = {
    InvalidUrl.kind: "Validation Error",
    StreamUnavailable.kind: "Stream Unavailable",
}


class CamcorderWindow(QWidget):
    def __init__(self, controller: SessionController):
        super().__init__()
        self.setWindowTitle("IP Camcorder")
        self.controller = controller

        self._init_ui()

        controller.frame_ready.connect(self.view.on_frame)
        controller.state_changed.connect(self._on_state_changed)
        controller.status.connect(self.status_lbl.setText)
        controller.error.connect(self._show_error)
        controller.recording_saved.connect(self._on_recording_saved)

        self._update_buttons_enabled(controller.state)

    def _init_ui(self):
        self.url_edit = QLineEdit(self)
        self.url_edit.setPlaceholderText("http://192.168.1.100:8080/video")
        self.url_edit.returnPressed.connect(self.start_stream)

        self.start_btn = QPushButton("Start Streaming")
        self.record_btn = QPushButton("Start Recording")
        self.stop_record_btn = QPushButton("Stop Recording")
        self.exit_btn = QPushButton("Exit")

        self.view = VideoView()
        self.status_lbl = QLabel("Idle")

        url_row = QHBoxLayout()
        url_row.addWidget(QLabel("Enter IP address of Camera :"))
        url_row.addWidget(self.url_edit, 1)
        url_row.addWidget(self.start_btn)

        actions = QHBoxLayout()
        actions.addWidget(self.record_btn)
        actions.addWidget(self.stop_record_btn)
        actions.addStretch(1)
        actions.addWidget(self.exit_btn)

        v = QVBoxLayout(self)
        v.addLayout(url_row)
        v.addWidget(self.view, 1)
        v.addLayout(actions)
        v.addWidget(self.status_lbl)

        self.start_btn.clicked.connect(self.start_stream)
        self.record_btn.clicked.connect(self.start_recording)
        self.stop_record_btn.clicked.connect(self.stop_recording)
        self.exit_btn.clicked.connect(self.close)

    def start_stream(self):
        # Connecting blocks until the first frame or the timeout.
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            self.controller.start_streaming(self.url_edit.text())
        except CameraError as e:
            error = e
        else:
            error = None
        finally:
            QApplication.restoreOverrideCursor()
        if error is not None:
            self._show_error(error.kind, str(error))

    def start_recording(self):
        try:
            self.controller.start_recording()
        except CameraError as e:
            self._show_error(e.kind, str(e))

    def stop_recording(self):
        try:
            self.controller.stop_recording()
        except CameraError as e:
            self._show_error(e.kind, str(e))

    def _on_recording_saved(self, path: str):
        QMessageBox.information(self, "Recording Stopped", f"Recording stopped and saved to {path}")

    def _on_state_changed(self, state: PipelineState):
        if state is PipelineState.IDLE:
            self.view.clear()
        self._update_buttons_enabled(state)

    def _update_buttons_enabled(self, state: PipelineState):
        self.start_btn.setEnabled(state is PipelineState.IDLE)
        self.url_edit.setEnabled(state is PipelineState.IDLE)
        self.record_btn.setEnabled(state is PipelineState.STREAMING)
        self.stop_record_btn.setEnabled(state is PipelineState.STREAMING_RECORDING)

    def _show_error(self, kind: str, message: str):
        QMessageBox.warning(self, _ERROR_TITLES.get(kind, "Error"), message)

    def closeEvent(self, e):
        self.controller.shutdown()
        super().closeEvent(e)
