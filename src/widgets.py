# widgets.py

from typing import Optional

from PyQt6.QtCore import Qt, QSize
from PyQt6.QtGui import QImage, QPixmap
from PyQt6.QtWidgets import QLabel, QFrame, QVBoxLayout, QHBoxLayout

from config import VIEW_TARGET_W, VIEW_TARGET_H
from frame import Frame


def frame_to_qimage(frame: Frame) -> QImage:
    data = frame.pixels.tobytes()
    qimg = QImage(data, frame.width, frame.height, 3 * frame.width, QImage.Format.Format_RGB888)
    # QImage only borrows the buffer; take a copy it owns.
    return qimg.copy()


class VideoView(QFrame):
    def __init__(self, target_size: QSize = QSize(VIEW_TARGET_W, VIEW_TARGET_H)):
        super().__init__()
        self.setFrameShape(QFrame.Shape.StyledPanel)
        self._last_pix: Optional[QPixmap] = None
        self._target_size = target_size

        self.video_lbl = QLabel()
        self.video_lbl.setObjectName("video_lbl")
        self.video_lbl.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.video_lbl.setText("No video")
        self.video_lbl.setFixedSize(self._target_size)

        v = QVBoxLayout(self)
        v.setContentsMargins(0, 0, 0, 0)
        wrap = QHBoxLayout()
        wrap.addStretch(1)
        wrap.addWidget(self.video_lbl)
        wrap.addStretch(1)
        v.addLayout(wrap, 1)

    def sizeHint(self) -> QSize:
        return self._target_size

    def on_frame(self, frame: Frame):
        if frame.width == 0 or frame.height == 0: return
        pm = QPixmap.fromImage(frame_to_qimage(frame))
        if pm.isNull(): return
        scaled = pm.scaled(
            self._target_size,
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation
        )
        self._last_pix = scaled
        self.video_lbl.setPixmap(scaled)

    def clear(self):
        self._last_pix = None
        self.video_lbl.clear()
        self.video_lbl.setText("No video")
