#!/usr/bin/env python3
"""CLI wrapper to evaluate predictions against ground-truth.

Example:
  python evaluate.py --pred_dir results/run1 --gt_csv path/to/gt.csv

This script expects `predictions.csv` and optional `meta.json` in the prediction directory.
"""
import argparse
import os
from roitrack import evaluation
from roitrack.utils import setup_logging


def main():
    p = argparse.ArgumentParser()
    p.add_argument('--pred_dir', required=True, help='Directory with predictions.csv (and optional meta.json)')
    p.add_argument('--gt_csv', required=True, help='Ground-truth CSV file with columns frame,object,x,y,w,h')
    p.add_argument('--cle', type=float, default=20.0, help='CLE threshold in pixels')
    p.add_argument('--quiet', action='store_true', help='Only log warnings and errors')
    args = p.parse_args()
    setup_logging(args.quiet)

    pred_csv = os.path.join(args.pred_dir, 'predictions.csv')
    if not os.path.exists(pred_csv):
        raise FileNotFoundError(f'Predictions CSV not found: {pred_csv}')

    res = evaluation.evaluate(pred_csv, args.gt_csv, cle_threshold=args.cle)

    print('\n=== Evaluation Summary ===')
    print(f"Frames evaluated: {res['n_frames']} ({res['n_evaluated']} boxes)")
    print(f"Success rate (IoU>0.5): {res['success_rate']*100:.2f}%")
    print(f"Precision (CLE<{args.cle}px): {res['precision']*100:.2f}%")
    print(f"Mean IoU: {res['mean_iou']:.4f}")
    print(f"Mean CLE: {res['mean_cle']:.2f} px")
    if res.get('fps') is not None:
        print(f"FPS (from meta.json): {res['fps']:.2f}")
    else:
        print("FPS: meta.json not found; run track.py with --save to generate timing info.")

    if len(res['per_object']) > 1:
        print('\n--- Per object ---')
        for obj, stats in res['per_object'].items():
            print(f"Object {obj}: IoU {stats['mean_iou']:.4f}, CLE {stats['mean_cle']:.2f} px, "
                  f"success {stats['success_rate']*100:.2f}%")


if __name__ == '__main__':
    main()
