# frame.py

import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np


@dataclass(frozen=True, eq=False)
class Frame:
    """One decoded picture. The pixel buffer is read-only once the frame exists."""

    pixels: np.ndarray = field(repr=False)
    width: int
    height: int
    pixel_format: str = "rgb24"
    timestamp: float = 0.0

    @classmethod
    def from_ndarray(cls, img: np.ndarray, timestamp: Optional[float] = None) -> "Frame":
        # Decoders hand us a fresh array; lock it instead of copying.
        if img.ndim != 3 or img.shape[2] != 3:
            raise ValueError(f"expected an HxWx3 rgb24 array, got shape {img.shape}")
        img.setflags(write=False)
        h, w, _ = img.shape
        return cls(
            pixels=img,
            width=w,
            height=h,
            timestamp=time.time() if timestamp is None else timestamp,
        )
