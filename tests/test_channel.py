"""
Tests for snapshot publication between the control and frame threads.
"""

import threading
import unittest

import numpy as np

from roitrack.channel import ChannelTracker, SnapshotChannel
from roitrack.errors import TrackerError
from roitrack.session import SeedRequest
from tests.synthetic import BLUE, paint, red_patch_frame

ROI = (0, 0, 200, 200)


class TestSnapshotChannel(unittest.TestCase):
    """Test publish/take semantics."""

    def setUp(self):
        self.channel = SnapshotChannel()

    def test_nothing_published(self):
        self.assertIsNone(self.channel.take())

    def test_take_adopts_latest(self):
        self.channel.publish(ROI, [(1, 2, 3, 4)])
        self.channel.publish((0, 0, 100, 100), [(5, 6, 7, 8)])
        snapshot = self.channel.take()
        self.assertEqual(snapshot.roi, (0, 0, 100, 100))
        self.assertEqual(snapshot.boxes, ((5, 6, 7, 8),))
        self.assertEqual(snapshot.version, 2)

    def test_one_shot_parts_consumed_once(self):
        self.channel.publish(ROI, [(50, 50, 20, 20)], reinit=True, seed=SeedRequest(0, (60, 60)))
        first = self.channel.take()
        self.assertTrue(first.reinit)
        self.assertEqual(first.seed, SeedRequest(0, (60, 60)))

        second = self.channel.take()
        self.assertFalse(second.reinit)
        self.assertIsNone(second.seed)
        self.assertEqual(second.roi, first.roi)
        self.assertEqual(second.boxes, first.boxes)

    def test_untaken_seed_and_reinit_carried_over(self):
        self.channel.publish(ROI, [(50, 50, 20, 20)], reinit=True)
        self.channel.request_seed(0, (60, 60))
        snapshot = self.channel.take()
        self.assertTrue(snapshot.reinit)
        self.assertEqual(snapshot.seed, SeedRequest(0, (60, 60)))

    def test_newer_seed_replaces_older(self):
        self.channel.publish(ROI, [(50, 50, 20, 20)])
        self.channel.request_seed(0, (60, 60))
        self.channel.request_seed(0, (55, 55))
        self.assertEqual(self.channel.take().seed, SeedRequest(0, (55, 55)))

    def test_set_boxes_and_roi(self):
        self.channel.set_roi(ROI)
        self.channel.set_boxes([(10, 10, 5, 5)])
        snapshot = self.channel.take()
        self.assertEqual(snapshot.roi, ROI)
        self.assertEqual(snapshot.boxes, ((10, 10, 5, 5),))
        self.assertTrue(snapshot.reinit)

    def test_helpers_need_an_roi(self):
        with self.assertRaises(TrackerError):
            self.channel.request_seed(0, (1, 1))

    def test_snapshot_is_immutable(self):
        boxes = [[50, 50, 20, 20]]
        snapshot = self.channel.publish(ROI, boxes)
        boxes[0][0] = 0
        self.assertEqual(snapshot.boxes, ((50, 50, 20, 20),))

    def test_take_does_not_wait_for_busy_lock(self):
        self.channel.publish(ROI, [(50, 50, 20, 20)])
        adopted = self.channel.take()
        self.channel.publish((0, 0, 10, 10), [(1, 1, 2, 2)])
        with self.channel._lock:
            snapshot = self.channel.take()
        self.assertEqual(snapshot.roi, adopted.roi)
        self.assertEqual(self.channel.take().roi, (0, 0, 10, 10))

    def test_snapshots_never_torn(self):
        def produce():
            for k in range(1, 300):
                self.channel.publish((k, k, 50, 50), [(k, k, 10, 10)] * 3)

        producer = threading.Thread(target=produce)
        producer.start()
        seen = 0
        while producer.is_alive() or seen == 0:
            snapshot = self.channel.take()
            if snapshot is None:
                continue
            seen += 1
            for box in snapshot.boxes:
                self.assertEqual(box[:2], snapshot.roi[:2])
        producer.join()


class TestChannelTracker(unittest.TestCase):
    """Test the frame-thread driver."""

    def setUp(self):
        self.tracker = ChannelTracker()
        self.tracker.initialize()
        self.addCleanup(self.tracker.release)
        self.frame = paint(red_patch_frame((50, 50, 20, 20)), (120, 120, 20, 20), BLUE)

    def test_nothing_to_track(self):
        self.assertIsNone(self.tracker.process(self.frame))
        self.assertIsNone(self.tracker.latest())

    def test_tracks_published_objects(self):
        self.tracker.channel.set_roi(ROI, [(52, 52, 20, 20)])
        self.tracker.channel.request_seed(0, (60, 60))
        result = self.tracker.process(self.frame)
        self.assertTrue(result.seed_applied)
        self.assertEqual(result.boxes, [(50, 50, 20, 20)])
        self.assertEqual(self.tracker.latest(), result)

        result = self.tracker.process(self.frame)
        self.assertIsNone(result.seed_applied)
        self.assertEqual(result.boxes, [(50, 50, 20, 20)])

    def test_add_box_keeps_tracked_positions(self):
        self.tracker.channel.set_roi(ROI, [(52, 52, 20, 20)])
        self.tracker.process(self.frame)
        self.tracker.channel.add_box((120, 120, 20, 20))
        snapshot_boxes = self.tracker.channel._pending.boxes
        self.assertEqual(snapshot_boxes, ((50, 50, 20, 20), (120, 120, 20, 20)))
        result = self.tracker.process(self.frame)
        self.assertEqual(result.boxes, [(50, 50, 20, 20), (120, 120, 20, 20)])

    def test_add_box_after_set_boxes_uses_new_list(self):
        self.tracker.channel.set_roi(ROI, [(52, 52, 20, 20)])
        self.tracker.process(self.frame)
        self.tracker.channel.set_boxes([(120, 120, 20, 20)])
        self.tracker.channel.add_box((10, 10, 20, 20))
        snapshot = self.tracker.channel.take()
        self.assertEqual(snapshot.boxes, ((120, 120, 20, 20), (10, 10, 20, 20)))
        self.assertTrue(snapshot.reinit)

    def test_add_box_after_new_roi_drops_old_boxes(self):
        self.tracker.channel.set_roi(ROI, [(52, 52, 20, 20)])
        self.tracker.process(self.frame)
        self.tracker.channel.set_roi((100, 100, 100, 100))
        self.tracker.channel.add_box((120, 120, 20, 20))
        snapshot = self.tracker.channel.take()
        self.assertEqual(snapshot.roi, (100, 100, 100, 100))
        self.assertEqual(snapshot.boxes, ((120, 120, 20, 20),))

    def test_add_box_ignores_result_from_another_roi(self):
        self.tracker.channel.set_roi(ROI, [(52, 52, 20, 20)])
        self.tracker.process(self.frame)
        self.tracker.channel.set_roi((100, 100, 100, 100))
        self.tracker.channel.take()
        self.tracker.channel.add_box((120, 120, 20, 20))
        self.assertEqual(self.tracker.channel.take().boxes, ((120, 120, 20, 20),))

    def test_rejected_frame_keeps_last_result(self):
        self.tracker.channel.set_roi(ROI, [(50, 50, 20, 20)])
        good = self.tracker.process(self.frame)
        self.assertIsNone(self.tracker.process(self.frame.astype(np.float32)))
        self.assertEqual(self.tracker.latest(), good)

    def test_rejected_seed_is_dropped(self):
        self.tracker.channel.set_roi((0, 0, 100, 100), [(50, 50, 20, 20)])
        self.tracker.process(self.frame)
        self.tracker.channel.request_seed(0, (150, 150))
        self.assertIsNone(self.tracker.process(self.frame))
        result = self.tracker.process(self.frame)
        self.assertIsNotNone(result)
        self.assertIsNone(result.seed_applied)


if __name__ == "__main__":
    unittest.main()
