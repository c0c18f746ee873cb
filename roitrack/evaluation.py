"""Evaluation utilities: IoU, CLE, FPS and a small evaluator that reads CSVs.

Predictions: CSV with columns `frame,object,x,y,w,h[,confidence]` written by
the video driver into its output directory (default file name
`predictions.csv`). Ground-truth: same CSV format; the `object` column may be
omitted for single-object files, in which case every row is object 0.

Usage: import functions here or run the CLI `evaluate.py` at project root.
"""
import csv
import json
import os
import math
import logging
from typing import Tuple, Dict

logger = logging.getLogger(__name__)

Box = Tuple[int, int, int, int]


def read_boxes_from_csv(path: str) -> Dict[Tuple[int, int], Box]:
    """Read a CSV into {(frame, object): (x, y, w, h)}; malformed rows are skipped."""
    boxes = {}
    if not os.path.exists(path):
        raise FileNotFoundError(f"CSV not found: {path}")
    skipped = 0
    with open(path, newline='') as f:
        reader = csv.DictReader(f)
        for row in reader:
            try:
                frame = int(row['frame'])
                obj = int(row.get('object') or 0)
                x = int(row['x']); y = int(row['y']); w = int(row['w']); h = int(row['h'])
            except (KeyError, TypeError, ValueError):
                skipped += 1
                continue
            boxes[(frame, obj)] = (x, y, w, h)
    if skipped:
        logger.warning(f"Skipped {skipped} malformed rows in {path}")
    return boxes


def iou(boxA: Box, boxB: Box) -> float:
    """Compute IoU between two boxes in (x,y,w,h) format."""
    xA, yA, wA, hA = boxA
    xB, yB, wB, hB = boxB

    inter_x1 = max(xA, xB)
    inter_y1 = max(yA, yB)
    inter_x2 = min(xA + wA, xB + wB)
    inter_y2 = min(yA + hA, yB + hB)

    inter_area = max(0, inter_x2 - inter_x1) * max(0, inter_y2 - inter_y1)
    areaA = max(0, wA) * max(0, hA)
    areaB = max(0, wB) * max(0, hB)
    union = areaA + areaB - inter_area
    if union <= 0:
        return 0.0
    return float(inter_area) / float(union)


def center_error(boxA: Box, boxB: Box) -> float:
    xA, yA, wA, hA = boxA
    xB, yB, wB, hB = boxB
    return math.hypot((xA + wA / 2.0) - (xB + wB / 2.0), (yA + hA / 2.0) - (yB + hB / 2.0))


def _read_fps(pred_csv: str):
    meta_path = os.path.join(os.path.dirname(pred_csv), 'meta.json')
    if not os.path.exists(meta_path):
        return None
    try:
        with open(meta_path) as f:
            meta = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning(f"Cannot read {meta_path}: {e}")
        return None
    if meta.get('total_time', 0) > 0 and 'frames' in meta:
        return float(meta['frames']) / float(meta['total_time'])
    return None


def evaluate(pred_csv: str, gt_csv: str, cle_threshold: float = 20.0) -> Dict:
    """Evaluate predictions vs ground-truth CSVs.

    Returns a dict with fields: success_rate, precision, mean_iou, mean_cle,
    fps (if meta found), n_frames, n_evaluated, and `per_object` with the same
    metrics for every object id.
    """
    preds = read_boxes_from_csv(pred_csv)
    gts = read_boxes_from_csv(gt_csv)

    keys = sorted(set(preds) & set(gts))
    if not keys:
        raise RuntimeError('No overlapping frames between predictions and ground-truth')

    per_object = {}
    for key in keys:
        stats = per_object.setdefault(key[1], {'ious': [], 'cles': []})
        stats['ious'].append(iou(preds[key], gts[key]))
        stats['cles'].append(center_error(preds[key], gts[key]))

    def summarize(ious, cles):
        n = len(ious)
        return {
            'n_evaluated': n,
            'success_rate': sum(1 for v in ious if v > 0.5) / n,
            'precision': sum(1 for v in cles if v < cle_threshold) / n,
            'mean_iou': sum(ious) / n,
            'mean_cle': sum(cles) / n,
        }

    all_ious = [v for s in per_object.values() for v in s['ious']]
    all_cles = [v for s in per_object.values() for v in s['cles']]
    results = summarize(all_ious, all_cles)
    results['n_frames'] = len({frame for frame, _ in keys})
    results['fps'] = _read_fps(pred_csv)
    results['per_object'] = {obj: summarize(s['ious'], s['cles'])
                             for obj, s in sorted(per_object.items())}
    return results
