"""
Mean-shift localization of one object inside the ROI.

All coordinates here are ROI-local. Box corners are integers on input and
output; centroids are computed in floating point, with pixel i covering
[i, i + 1) so that a box's centre is x + w / 2.
"""
from dataclasses import dataclass
import math
import logging

import cv2
import numpy as np

from .utils import box_at_center, box_center, clip_box, expand_box

logger = logging.getLogger(__name__)

# width of a uniform distribution in units of its standard deviation
_UNIFORM_WIDTH_PER_SIGMA = math.sqrt(12.0)


@dataclass(frozen=True)
class Localization:
    box: tuple              # (x, y, w, h) ROI-local
    confidence: float       # weight mass / box area, in [0, 1]
    found: bool             # False when the search window held too little mass
    iterations: int = 0


def _centroid(weights, window):
    """Weighted centroid (x, y) of a weight map placed at `window`, plus its mass."""
    m = cv2.moments(weights)
    mass = m['m00']
    if mass <= 0.0:
        return None, None, 0.0
    # moments index pixels by their corner; +0.5 moves to pixel centres
    mx = m['m10'] / mass + 0.5 + window[0]
    my = m['m01'] / mass + 0.5 + window[1]
    return mx, my, mass


def _spread(weights):
    """Standard deviation of the weight distribution along x and y."""
    m = cv2.moments(weights)
    if m['m00'] <= 0.0:
        return 0.0, 0.0
    var_x = m['mu20'] / m['m00']
    var_y = m['mu02'] / m['m00']
    return math.sqrt(max(var_x, 0.0)), math.sqrt(max(var_y, 0.0))


class MeanShiftLocalizer:
    """
    Iterative mode seeking on a hue back-projection.

    The search window is the object's box grown by `search_margin`; it moves
    to the weighted centroid of its back-projection until the shift drops
    below `epsilon` or `max_iterations` is reached. If the starting window
    holds less than `min_mass_ratio` of its area in weight, the object is
    reported as not found and the box stays where it was.
    """

    def __init__(self, *, search_margin=0.2, epsilon=1.0, max_iterations=10,
                 min_mass_ratio=0.05, scale_adaptation=False, min_box_size=2):
        self.search_margin = search_margin
        self.epsilon = epsilon
        self.max_iterations = max_iterations
        self.min_mass_ratio = min_mass_ratio
        self.scale_adaptation = scale_adaptation
        self.min_box_size = min_box_size

    @classmethod
    def from_config(cls, config):
        return cls(search_margin=config.search_margin,
                   epsilon=config.epsilon,
                   max_iterations=config.max_iterations,
                   min_mass_ratio=config.min_mass_ratio,
                   scale_adaptation=config.scale_adaptation,
                   min_box_size=config.min_box_size)

    def _search_window(self, cx, cy, size, bounds):
        window = expand_box(box_at_center(cx, cy, size[0], size[1]), self.search_margin)
        return clip_box(window, bounds, 1)

    def locate(self, hsv, histogram, box) -> Localization:
        """
        Find the object's new box.

        Args:
            hsv: ROI-local HSV image
            histogram: HueHistogram of the object
            box: last known (x, y, w, h), ROI-local
        """
        bounds = (0, 0, hsv.shape[1], hsv.shape[0])
        box = clip_box(box, bounds, self.min_box_size)
        size = box[2], box[3]
        cx, cy = box_center(box)

        window = self._search_window(cx, cy, size, bounds)
        weights = histogram.back_project(hsv, window)
        area = window[2] * window[3]
        density = float(weights.sum()) / area if area else 0.0
        if density < self.min_mass_ratio:
            logger.debug(f"Search window {window} mass density {density:.3f} below threshold")
            return Localization(box=box, confidence=min(1.0, density), found=False)

        iterations = 0
        for iterations in range(1, self.max_iterations + 1):
            mx, my, mass = _centroid(weights, window)
            if mass == 0.0:
                break
            shift = math.hypot(mx - cx, my - cy)
            cx, cy = mx, my
            window = self._search_window(cx, cy, size, bounds)
            weights = histogram.back_project(hsv, window)
            if shift < self.epsilon:
                break

        if self.scale_adaptation:
            size = self._adapt_size(weights, size, bounds)

        new_box = clip_box(box_at_center(cx, cy, size[0], size[1]), bounds, self.min_box_size)
        box_weights = histogram.back_project(hsv, new_box)
        confidence = float(box_weights.sum()) / float(new_box[2] * new_box[3])
        return Localization(box=new_box,
                            confidence=float(np.clip(confidence, 0.0, 1.0)),
                            found=True,
                            iterations=iterations)

    def _adapt_size(self, weights, size, bounds):
        if not weights.any():
            return size
        sigma_x, sigma_y = _spread(weights)
        w = int(round(_UNIFORM_WIDTH_PER_SIGMA * sigma_x))
        h = int(round(_UNIFORM_WIDTH_PER_SIGMA * sigma_y))
        w = max(self.min_box_size, min(bounds[2], w))
        h = max(self.min_box_size, min(bounds[3], h))
        return w, h
