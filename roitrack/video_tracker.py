"""
Offline driver: run a TrackingSession over a video file.

This stands in for the camera on a desktop: frames come from
cv2.VideoCapture (BGR), the ROI and boxes come from arguments or from an
interactive selection on the first frame.
"""
from dataclasses import replace
import logging
import os
import time

import cv2

from .config import TrackerConfig
from .errors import TrackerError
from .session import SeedRequest, TrackingSession
from .utils import box_center, visualize_tracking, save_frame, save_prediction, save_meta

logger = logging.getLogger(__name__)


class VideoTracker:
    __slots__ = ('video_path', 'session', 'visualize', 'save_result', 'output_dir')

    def __init__(self, video_path, config: TrackerConfig | None = None, **kwargs):
        self.video_path = video_path
        config = config or TrackerConfig()
        if config.pixel_format == 'auto':
            config = replace(config, pixel_format='bgr')
        self.session = TrackingSession(config)

        self.visualize = kwargs.get('visualize', True)
        self.save_result = kwargs.get('save_result', False)
        self.output_dir = kwargs.get('output_dir', 'results/frames')

    @staticmethod
    def select_roi(frame):
        x, y, w, h = cv2.selectROI('Select ROI', frame, showCrosshair=False)
        cv2.destroyWindow('Select ROI')
        return int(x), int(y), int(w), int(h)

    @staticmethod
    def select_boxes(frame):
        rois = cv2.selectROIs('Select objects', frame, showCrosshair=False)
        cv2.destroyWindow('Select objects')
        return [tuple(int(v) for v in r) for r in rois]

    def initialize(self, frame, roi, boxes, seeds=None):
        """
        Start tracking on the first frame.

        Seeds default to the centre of every box. They are applied one per
        update, all on this first frame.
        """
        if seeds is None:
            seeds = [SeedRequest(i, tuple(int(v) for v in box_center(b))) for i, b in enumerate(boxes)]
        self.session.initialize()
        result = self.session.update(frame, roi, boxes, reinit=True,
                                     seed=seeds[0] if seeds else None)
        for seed in seeds[1:]:
            result = self.session.update(frame, roi, result.boxes, seed=seed)
        return result

    def update(self, frame):
        return self.session.update(frame, self.session.roi, self.session.boxes)

    def track_video(self, roi=None, boxes=None, seeds=None, visualize=True,
                    save_result=False, output_dir='results/frames'):
        cap = cv2.VideoCapture(str(self.video_path))
        ret, frame = cap.read()
        if not ret:
            print("Error: Cannot read video")
            return None

        self.visualize = visualize
        self.save_result = save_result
        self.output_dir = output_dir

        if roi is None:
            print("Step 1: Select ROI")
            roi = self.select_roi(frame)
        if not boxes:
            print("Step 2: Select objects (ENTER after each box, ESC when done)")
            boxes = self.select_boxes(frame)

        print("Step 3: Initialize tracker")
        try:
            result = self.initialize(frame, roi, boxes, seeds)
        except TrackerError as e:
            print(f"Error: Cannot initialize tracking: {e}")
            cap.release()
            return None

        print("Step 4: Start tracking")
        if visualize:
            print("Press 's' to save frame, 'ESC' to exit")

        frame_count = 1
        rejected = 0
        start_time = time.time()
        try:
            while True:
                if save_result:
                    save_prediction(output_dir, frame_count, result.boxes, result.confidences)

                if visualize or save_result:
                    frame_with_box = visualize_tracking(
                        frame, result.boxes, roi=self.session.roi,
                        window_name='Tracking Result' if visualize else None,
                        color=(0, 0, 255), thickness=2
                    )
                    if save_result:
                        save_frame(frame_with_box, frame_count, os.path.join(output_dir, 'frames'))

                if visualize:
                    key = cv2.waitKey(30) & 0xFF
                    if key == 27:
                        print("\nTracking stopped by user")
                        break
                    elif key == ord('s'):
                        save_frame(frame_with_box, frame_count, output_dir)
                        print(f"Saved frame {frame_count}")

                ret, frame = cap.read()
                if not ret:
                    break
                frame_count += 1
                try:
                    result = self.update(frame)
                except TrackerError as e:
                    rejected += 1
                    logger.warning(f"Frame {frame_count} rejected: {e}")
        finally:
            cap.release()
            if visualize:
                cv2.destroyAllWindows()
                cv2.waitKey(1)
            self.session.release()

        total_time = time.time() - start_time
        if save_result:
            save_meta(output_dir, frame_count, total_time, objects=len(result.boxes), rejected=rejected)

        print(f"\nTracking completed. Total frames: {frame_count}")
        return result
