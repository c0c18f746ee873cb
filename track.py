#!/usr/bin/env python3
"""CLI to run the ROI tracker over a video file.

Example:
  python track.py --video clip.mp4 --roi 0 0 640 480 --box 100 120 40 40 --seed 0 120 140 --save

Without --roi / --box the ROI and objects are selected with the mouse on the
first frame. With --save, `predictions.csv`, `meta.json` and annotated frames
are written to --output_dir.
"""
import argparse
import sys

from roitrack import SeedRequest, TrackerConfig, VideoTracker, load_config
from roitrack.utils import setup_logging


def main():
    p = argparse.ArgumentParser()
    p.add_argument('--video', required=True, help='Input video path')
    p.add_argument('--roi', type=int, nargs=4, metavar=('X', 'Y', 'W', 'H'), help='Region of interest')
    p.add_argument('--box', type=int, nargs=4, action='append', metavar=('X', 'Y', 'W', 'H'),
                   help='Object box (repeat for several objects)')
    p.add_argument('--seed', type=int, nargs=3, action='append', metavar=('INDEX', 'X', 'Y'),
                   help='Colour seed point for an object (default: box centres)')
    p.add_argument('--config', help='YAML tracker configuration')
    p.add_argument('--scale', action='store_true', help='Enable scale adaptation')
    p.add_argument('--output_dir', default='results/run', help='Where --save writes its files')
    p.add_argument('--save', action='store_true', help='Save predictions, meta.json and frames')
    p.add_argument('--no_display', action='store_true', help='Do not open any window')
    p.add_argument('--quiet', action='store_true', help='Only log warnings and errors')
    args = p.parse_args()
    setup_logging(args.quiet)

    config = load_config(args.config) if args.config else TrackerConfig()
    if args.scale:
        config.scale_adaptation = True

    if args.no_display and (args.roi is None or not args.box):
        print("Error: --roi and --box are required with --no_display")
        sys.exit(2)

    seeds = [SeedRequest(i, (x, y)) for i, x, y in args.seed] if args.seed else None
    tracker = VideoTracker(args.video, config)
    result = tracker.track_video(roi=args.roi, boxes=[tuple(b) for b in args.box or []], seeds=seeds,
                                 visualize=not args.no_display, save_result=args.save,
                                 output_dir=args.output_dir)
    if result is None:
        sys.exit(1)
    for i, (box, conf, lost) in enumerate(zip(result.boxes, result.confidences, result.lost)):
        state = 'lost' if lost else f'confidence {conf:.2f}'
        print(f"Object {i}: box {box}, {state}")


if __name__ == '__main__':
    main()
