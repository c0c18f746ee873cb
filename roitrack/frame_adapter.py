"""
Frame adapter: camera buffer -> ROI-local HSV image

Only the ROI is sliced out of the buffer before colour conversion, so the
cost of a frame scales with the ROI, not with the camera resolution.
"""
from dataclasses import dataclass
import logging

import cv2
import numpy as np

from .errors import UnsupportedFormat, InvalidInput
from .utils import intersect

logger = logging.getLogger(__name__)

# format -> (channels, conversion to RGB or None, conversion to HSV)
_PACKED_FORMATS = {
    'rgb':  (3, None, cv2.COLOR_RGB2HSV),
    'bgr':  (3, None, cv2.COLOR_BGR2HSV),
    'rgba': (4, cv2.COLOR_RGBA2RGB, cv2.COLOR_RGB2HSV),
    'bgra': (4, cv2.COLOR_BGRA2BGR, cv2.COLOR_BGR2HSV),
}


@dataclass(frozen=True)
class HsvFrame:
    """HSV pixels of the ROI plus the ROI's position in the frame."""
    hsv: np.ndarray             # (h, w, 3) uint8, OpenCV ranges H 0..179
    roi: tuple                  # (x, y, w, h) in frame coords

    @property
    def width(self):
        return self.hsv.shape[1]

    @property
    def height(self):
        return self.hsv.shape[0]

    @property
    def bounds(self):
        """ROI-local bounds (0, 0, w, h)."""
        return 0, 0, self.width, self.height

    def to_local(self, box):
        x, y, w, h = box
        return x - self.roi[0], y - self.roi[1], w, h

    def to_frame(self, box):
        x, y, w, h = box
        return x + self.roi[0], y + self.roi[1], w, h


class FrameAdapter:
    """
    Convert frame buffers to HSV restricted to an ROI.

    Supported layouts: packed 'rgb', 'bgr', 'rgba', 'bgra' of shape (H, W, C)
    and 'nv21' of shape (H * 3 / 2, W). With `pixel_format='auto'` the layout
    is inferred from the channel count.
    """

    def __init__(self, pixel_format='auto', default_color_order='rgb'):
        self.pixel_format = pixel_format
        self.default_color_order = default_color_order

    def resolve_format(self, frame):
        if not isinstance(frame, np.ndarray):
            raise UnsupportedFormat(f"Frame must be a numpy array, got {type(frame).__name__}")
        if frame.dtype != np.uint8:
            raise UnsupportedFormat(f"Frame dtype must be uint8, got {frame.dtype}")
        if frame.size == 0:
            raise UnsupportedFormat("Frame is empty")

        fmt = self.pixel_format
        if fmt == 'auto':
            if frame.ndim == 3 and frame.shape[2] == 3:
                fmt = self.default_color_order
            elif frame.ndim == 3 and frame.shape[2] == 4:
                fmt = 'rgba'
            else:
                raise UnsupportedFormat(f"Cannot infer pixel format from shape {frame.shape}")

        if fmt == 'nv21':
            rows, cols = frame.shape[:2]
            if frame.ndim != 2 or rows % 3 != 0 or (rows * 2 // 3) % 2 or cols % 2:
                raise UnsupportedFormat(f"NV21 buffer must be 2-D (H*3/2, W) with even H, W, got {frame.shape}")
            return fmt

        if fmt not in _PACKED_FORMATS:
            raise UnsupportedFormat(f"Unknown pixel format: {fmt}")
        channels = _PACKED_FORMATS[fmt][0]
        if frame.ndim != 3 or frame.shape[2] != channels:
            raise UnsupportedFormat(f"Format {fmt} expects {channels} channels, got shape {frame.shape}")
        return fmt

    def frame_size(self, frame):
        """(width, height) of the image carried by the buffer."""
        fmt = self.resolve_format(frame)
        if fmt == 'nv21':
            return frame.shape[1], frame.shape[0] * 2 // 3
        return frame.shape[1], frame.shape[0]

    def clip_roi(self, frame, roi):
        """Intersect the ROI with the frame; raise InvalidInput if nothing is left."""
        x, y, w, h = roi
        if w <= 0 or h <= 0:
            raise InvalidInput(f"ROI must have positive size, got {tuple(roi)}")
        width, height = self.frame_size(frame)
        clipped = intersect((x, y, w, h), (0, 0, width, height))
        if clipped[2] <= 0 or clipped[3] <= 0:
            raise InvalidInput(f"ROI {tuple(roi)} lies outside the {width}x{height} frame")
        return clipped

    def convert(self, frame, roi) -> HsvFrame:
        """Return the HSV image of `roi` (already clipped to the frame)."""
        fmt = self.resolve_format(frame)
        x, y, w, h = roi
        if fmt == 'nv21':
            rgb = self._nv21_roi_to_rgb(frame, roi)
            hsv = cv2.cvtColor(rgb, cv2.COLOR_RGB2HSV)
        else:
            _, to_3ch, to_hsv = _PACKED_FORMATS[fmt]
            region = np.ascontiguousarray(frame[y:y + h, x:x + w])
            if to_3ch is not None:
                region = cv2.cvtColor(region, to_3ch)
            hsv = cv2.cvtColor(region, to_hsv)
        logger.debug(f"Converted {fmt} ROI {roi} to HSV")
        return HsvFrame(hsv=hsv, roi=tuple(int(v) for v in roi))

    @staticmethod
    def _nv21_roi_to_rgb(frame, roi):
        # Chroma is subsampled 2x2, so the crop is widened to even coordinates
        x, y, w, h = roi
        height = frame.shape[0] * 2 // 3
        width = frame.shape[1]
        x0, y0 = x & ~1, y & ~1
        x1 = min(width, (x + w + 1) & ~1)
        y1 = min(height, (y + h + 1) & ~1)

        luma = frame[y0:y1, x0:x1]
        chroma = frame[height + y0 // 2:height + y1 // 2, x0:x1]
        yuv = np.ascontiguousarray(np.vstack([luma, chroma]))
        rgb = cv2.cvtColor(yuv, cv2.COLOR_YUV2RGB_NV21)
        return np.ascontiguousarray(rgb[y - y0:y - y0 + h, x - x0:x - x0 + w])
