# config.py

from pathlib import Path

# View size is fixed to keep the picture from "growing" as new frames arrive.
VIEW_TARGET_W, VIEW_TARGET_H = 640, 480

# A new stream must deliver a frame within this window or it is rejected.
PROBE_TIMEOUT_S = 5.0
# Socket read timeout handed to FFmpeg; a dead connection unblocks the decode loop.
READ_TIMEOUT_S = 10.0

# Output is a single fixed format: MPEG-4 Part 2 in AVI, 25 fps, ~1 Mbps.
RECORD_CODEC = "mpeg4"
RECORD_EXT = "avi"
RECORD_PIX_FMT = "yuv420p"
RECORD_FPS = 25
RECORD_BITRATE = 1_000_000
DEFAULT_RECORD_SIZE = (640, 480)

RECORDINGS_DIR = Path.home() / "Downloads"
