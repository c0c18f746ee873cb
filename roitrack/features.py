"""
Color histogram model for tracking

A tracked object is described by the distribution of its hue. Pixels that are
close to gray, black or white carry no reliable hue and are masked out by
saturation/value thresholds, both when the model is built and when it is
back-projected onto a frame.
"""
import logging

import cv2
import numpy as np

from .errors import InvalidSeed
from .utils import box_center

logger = logging.getLogger(__name__)

HUE_RANGE = [0, 180]  # OpenCV 8-bit hue


class HueHistogram:
    """
    Normalized hue histogram of one object.

    The bins always sum to 1, or to 0 while nothing has been learned. Every
    rebuild computes a new array and swaps it in with a single assignment, so
    a back-projection running on another thread sees either the old or the
    new model, never a mix.
    """

    def __init__(self, bins=16, min_saturation=60, min_value=40, max_value=255, min_pixels=8):
        self.n_bins = bins
        self.min_saturation = min_saturation
        self.min_value = min_value
        self.max_value = max_value
        self.min_pixels = min_pixels
        self._hist = np.zeros(bins, dtype=np.float32)

    @classmethod
    def from_config(cls, config):
        return cls(bins=config.hue_bins,
                   min_saturation=config.min_saturation,
                   min_value=config.min_value,
                   max_value=config.max_value,
                   min_pixels=config.min_seed_pixels)

    # ---------- accessors ----------
    @property
    def bins(self):
        return self._hist

    @property
    def is_empty(self):
        return float(self._hist.sum()) == 0.0

    @property
    def peak_bin(self):
        return None if self.is_empty else int(np.argmax(self._hist))

    def hue_to_bin(self, hue):
        return min(self.n_bins - 1, int(hue) * self.n_bins // HUE_RANGE[1])

    # ---------- helpers ----------
    def color_mask(self, hsv):
        """255 where the pixel is coloured enough to have a meaningful hue."""
        return cv2.inRange(hsv,
                           np.array((0, self.min_saturation, self.min_value), dtype=np.uint8),
                           np.array((179, 255, self.max_value), dtype=np.uint8))

    def _histogram(self, patch, mask):
        count = cv2.countNonZero(mask)
        if count < self.min_pixels:
            raise InvalidSeed(f"Only {count} coloured pixels in seed area (need {self.min_pixels})")
        hist = cv2.calcHist([patch], [0], mask, [self.n_bins], HUE_RANGE).ravel()
        return (hist / hist.sum()).astype(np.float32), count

    # ---------- model building ----------
    def build(self, hsv, center, radius, within=None):
        """
        Learn the hue distribution of a circular neighbourhood.

        Args:
            hsv: HSV image the centre refers to
            center: (x, y) in image coordinates
            radius: neighbourhood radius in pixels
            within: optional (x, y, w, h); pixels outside it are not sampled

        Returns:
            number of pixels that contributed to the histogram

        Raises:
            InvalidSeed: fewer than `min_pixels` usable pixels; the current
                model is left unchanged
        """
        height, width = hsv.shape[:2]
        cx, cy = int(round(center[0])), int(round(center[1]))
        radius = max(1, int(round(radius)))
        left, top, right, bottom = 0, 0, width, height
        if within is not None:
            bx, by, bw, bh = (int(v) for v in within)
            left, top = max(left, bx), max(top, by)
            right, bottom = min(right, bx + bw), min(bottom, by + bh)
        x0, y0 = max(left, cx - radius), max(top, cy - radius)
        x1, y1 = min(right, cx + radius + 1), min(bottom, cy + radius + 1)
        if x1 <= x0 or y1 <= y0:
            raise InvalidSeed(f"Seed point {center} lies outside the image")

        patch = np.ascontiguousarray(hsv[y0:y1, x0:x1])
        disk = np.zeros(patch.shape[:2], dtype=np.uint8)
        cv2.circle(disk, (cx - x0, cy - y0), radius, 255, -1)
        mask = cv2.bitwise_and(self.color_mask(patch), disk)

        hist, count = self._histogram(patch, mask)
        self._hist = hist
        logger.debug(f"Histogram built from {count} px around ({cx}, {cy}), peak bin {self.peak_bin}")
        return count

    def build_from_box(self, hsv, box):
        """Seed from a box's own content: disk at the box centre, cut to the box."""
        _, _, w, h = box
        cx, cy = box_center(box)
        return self.build(hsv, (cx, cy), max(1, min(w, h) / 2.0), within=box)

    def blend(self, hsv, box, rate):
        """
        Adapt the model towards the content of `box` with an exponential
        moving average (rate in [0, 1]).
        """
        x, y, w, h = (int(v) for v in box)
        patch = np.ascontiguousarray(hsv[y:y + h, x:x + w])
        if patch.size == 0:
            raise InvalidSeed(f"Box {box} is empty")
        current, _ = self._histogram(patch, self.color_mask(patch))
        if self.is_empty:
            self._hist = current
            return
        mixed = cv2.addWeighted(self._hist, 1 - rate, current, rate, 0).ravel()
        self._hist = (mixed / mixed.sum()).astype(np.float32)

    # ---------- back-projection ----------
    def back_project(self, hsv, window):
        """
        Weight map of `window`: each pixel gets the weight of its hue bin.

        Weights are scaled so the strongest bin maps to 1.0; masked pixels get
        0. Returns a float32 array of the window's size.
        """
        hist = self._hist
        x, y, w, h = (int(v) for v in window)
        patch = np.ascontiguousarray(hsv[y:y + h, x:x + w])
        peak = float(hist.max()) if hist.size else 0.0
        if patch.size == 0 or peak == 0.0:
            return np.zeros(patch.shape[:2], dtype=np.float32)

        lut = (hist * (255.0 / peak)).astype(np.float32).reshape(-1, 1)
        dst = cv2.calcBackProject([patch], [0], lut, HUE_RANGE, 1)
        weights = dst.astype(np.float32) / 255.0
        weights[self.color_mask(patch) == 0] = 0.0
        return weights

    def copy(self):
        other = HueHistogram(self.n_bins, self.min_saturation, self.min_value,
                             self.max_value, self.min_pixels)
        other._hist = self._hist.copy()
        return other
