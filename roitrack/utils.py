"""
Utility functions for tracking: box geometry, drawing and result files
"""
import csv
import json
import logging
import os

import cv2
import numpy as np


# ---------- box geometry (x, y, w, h) ----------

def intersect(a, b):
    """Intersection of two (x, y, w, h) rectangles; width/height may be 0."""
    ax, ay, aw, ah = a
    bx, by, bw, bh = b
    x1 = max(ax, bx)
    y1 = max(ay, by)
    x2 = min(ax + aw, bx + bw)
    y2 = min(ay + ah, by + bh)
    return x1, y1, max(0, x2 - x1), max(0, y2 - y1)


def clip_box(box, bounds, min_size=1):
    """
    Fit a box inside `bounds`, keeping its size where possible.

    The size is clamped to [min_size, bounds size] and the box is then shifted
    (not cropped) so that it lies entirely within the bounds.
    """
    x, y, w, h = (int(round(v)) for v in box)
    bx, by, bw, bh = bounds
    w = max(min(w, bw), min(min_size, bw))
    h = max(min(h, bh), min(min_size, bh))
    x = max(bx, min(bx + bw - w, x))
    y = max(by, min(by + bh - h, y))
    return x, y, w, h


def box_center(box):
    x, y, w, h = box
    return x + w / 2.0, y + h / 2.0


def box_at_center(cx, cy, w, h):
    """Float box of size (w, h) centred at (cx, cy)."""
    return cx - w / 2.0, cy - h / 2.0, w, h


def expand_box(box, margin):
    """Grow a box by `margin` (fraction of its size) around its centre."""
    x, y, w, h = box
    cx, cy = x + w / 2.0, y + h / 2.0
    return box_at_center(cx, cy, w * (1.0 + margin), h * (1.0 + margin))


def contains_point(rect, point):
    x, y, w, h = rect
    px, py = point
    return x <= px < x + w and y <= py < y + h


def boxes_from_flat(values):
    """Split a flat [x, y, w, h, x, y, w, h, ...] sequence into box tuples."""
    values = [int(v) for v in values]
    return [tuple(values[i:i + 4]) for i in range(0, len(values), 4)]


def flatten_boxes(boxes):
    return [int(v) for box in boxes for v in box]


# ---------- drawing and result files ----------

def visualize_tracking(frame, boxes, roi=None, window_name='Tracking',
                       color=(255, 0, 0), thickness=2):
    """
    Draw the ROI and tracked boxes on a copy of the frame.

    Args:
        window_name: If None, don't show window (for save-only mode)
    """
    frame_with_box = frame.copy()
    if roi is not None:
        x, y, w, h = roi
        cv2.rectangle(frame_with_box, (x, y), (x + w, y + h), color, thickness)
    for x, y, w, h in boxes:
        cv2.rectangle(frame_with_box, (x, y), (x + w, y + h), color, thickness)

    if window_name is not None:
        cv2.imshow(window_name, frame_with_box)

    return frame_with_box


def save_frame(frame, frame_number, output_dir='results/frames'):
    """Save a frame as PNG"""
    os.makedirs(output_dir, exist_ok=True)
    filename = f"{output_dir}/Frame_{frame_number:04d}.png"
    cv2.imwrite(filename, frame)
    return filename


def save_prediction(output_dir, frame_number, boxes, confidences=None,
                    filename='predictions.csv'):
    """Append one row per object to `predictions.csv` (frame,object,x,y,w,h,confidence)."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)
    new_file = not os.path.exists(path)
    if confidences is None:
        confidences = [np.nan] * len(boxes)
    with open(path, 'a', newline='') as f:
        writer = csv.writer(f)
        if new_file:
            writer.writerow(['frame', 'object', 'x', 'y', 'w', 'h', 'confidence'])
        for idx, ((x, y, w, h), conf) in enumerate(zip(boxes, confidences)):
            writer.writerow([frame_number, idx, x, y, w, h, f"{conf:.4f}"])
    return path


def save_meta(output_dir, frames, total_time, **extra):
    """Write timing metadata used by the evaluator to report FPS."""
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, 'meta.json')
    meta = {'frames': int(frames), 'total_time': float(total_time)}
    meta.update(extra)
    with open(path, 'w') as f:
        json.dump(meta, f, indent=2)
    return path


def setup_logging(quiet: bool = False) -> None:
    """
    Setup logging configuration.

    Args:
        quiet: If True, only show warnings and errors
    """
    level = logging.WARNING if quiet else logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(fmt="%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
    )
    logging.root.addHandler(handler)
    logging.root.setLevel(level)
