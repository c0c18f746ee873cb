"""
Tests for the evaluation metrics and CSV evaluator.
"""

import csv
import os
import tempfile
import unittest

from roitrack.evaluation import center_error, evaluate, iou, read_boxes_from_csv
from roitrack.utils import save_meta, save_prediction


class TestMetrics(unittest.TestCase):
    """Test IoU and centre location error."""

    def test_iou_identical(self):
        self.assertEqual(iou((0, 0, 10, 10), (0, 0, 10, 10)), 1.0)

    def test_iou_half_overlap(self):
        self.assertAlmostEqual(iou((0, 0, 10, 10), (5, 0, 10, 10)), 50 / 150)

    def test_iou_disjoint_and_degenerate(self):
        self.assertEqual(iou((0, 0, 10, 10), (20, 20, 5, 5)), 0.0)
        self.assertEqual(iou((0, 0, 0, 0), (0, 0, 0, 0)), 0.0)

    def test_center_error(self):
        self.assertAlmostEqual(center_error((0, 0, 10, 10), (3, 4, 10, 10)), 5.0)


class TestEvaluate(unittest.TestCase):
    """Test the CSV evaluator on multi-object predictions."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.pred_csv = os.path.join(self.tmp.name, 'predictions.csv')
        self.gt_csv = os.path.join(self.tmp.name, 'gt.csv')

        save_prediction(self.tmp.name, 1, [(0, 0, 10, 10), (50, 50, 10, 10)], [1.0, 1.0])
        save_prediction(self.tmp.name, 2, [(2, 0, 10, 10), (80, 80, 10, 10)], [0.9, 0.0])
        with open(self.gt_csv, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(['frame', 'object', 'x', 'y', 'w', 'h'])
            writer.writerow([1, 0, 0, 0, 10, 10])
            writer.writerow([1, 1, 50, 50, 10, 10])
            writer.writerow([2, 0, 2, 0, 10, 10])
            writer.writerow([2, 1, 50, 50, 10, 10])
            writer.writerow([3, 0, 'bad', 0, 10, 10])

    def test_read_boxes(self):
        boxes = read_boxes_from_csv(self.pred_csv)
        self.assertEqual(boxes[(2, 1)], (80, 80, 10, 10))
        self.assertEqual(len(read_boxes_from_csv(self.gt_csv)), 4)

    def test_single_object_csv_without_object_column(self):
        path = os.path.join(self.tmp.name, 'single.csv')
        with open(path, 'w', newline='') as f:
            f.write("frame,x,y,w,h\n1,0,0,10,10\n")
        self.assertEqual(read_boxes_from_csv(path), {(1, 0): (0, 0, 10, 10)})

    def test_evaluate(self):
        res = evaluate(self.pred_csv, self.gt_csv, cle_threshold=20.0)
        self.assertEqual(res['n_frames'], 2)
        self.assertEqual(res['n_evaluated'], 4)
        self.assertAlmostEqual(res['success_rate'], 0.75)
        self.assertAlmostEqual(res['precision'], 0.75)
        self.assertIsNone(res['fps'])
        self.assertEqual(res['per_object'][0]['mean_iou'], 1.0)
        self.assertEqual(res['per_object'][1]['success_rate'], 0.5)

    def test_fps_from_meta(self):
        save_meta(self.tmp.name, 20, 2.0)
        res = evaluate(self.pred_csv, self.gt_csv)
        self.assertAlmostEqual(res['fps'], 10.0)

    def test_broken_meta_ignored(self):
        with open(os.path.join(self.tmp.name, 'meta.json'), 'w') as f:
            f.write('{not json')
        self.assertIsNone(evaluate(self.pred_csv, self.gt_csv)['fps'])

    def test_no_overlap(self):
        other = os.path.join(self.tmp.name, 'other.csv')
        with open(other, 'w', newline='') as f:
            f.write("frame,object,x,y,w,h\n99,0,0,0,1,1\n")
        with self.assertRaises(RuntimeError):
            evaluate(self.pred_csv, other)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            read_boxes_from_csv(os.path.join(self.tmp.name, 'missing.csv'))


if __name__ == "__main__":
    unittest.main()
