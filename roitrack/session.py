"""
Multi-object tracking session

A session owns the ROI and one ObjectState per tracked object. Each frame it
applies structural changes (new ROI, replaced box list, seed requests) and then
moves every object with the mean-shift localizer. Objects are independent of
each other; the per-object loop can run on a thread pool.

A frame that fails validation raises a TrackerError before anything is
committed, so the session keeps exactly the state it had before the call.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
import logging

from .config import TrackerConfig
from .errors import TrackerError, InvalidInput, InvalidSeed, InitializationError
from .features import HueHistogram
from .frame_adapter import FrameAdapter
from .localization import MeanShiftLocalizer
from .utils import box_at_center, boxes_from_flat, clip_box, contains_point, flatten_boxes

logger = logging.getLogger(__name__)

NO_SEED = -1


@dataclass(frozen=True)
class SeedRequest:
    """One-shot instruction: learn object `index`'s colour around `point` (frame coords)."""
    index: int
    point: tuple


@dataclass(frozen=True)
class ObjectState:
    box: tuple                      # (x, y, w, h) frame coords, inside the ROI
    histogram: HueHistogram
    confidence: float = 1.0
    lost_count: int = 0
    lost: bool = False

    @property
    def reported_confidence(self):
        return 0.0 if self.lost else self.confidence


@dataclass(frozen=True)
class TrackingResult:
    boxes: list
    confidences: list
    lost: list
    seed_applied: bool | None = None    # None when no seed was requested


class TrackingSession:
    """
    Per-ROI tracker state and the per-frame entry points.

    `update()` is the Pythonic entry point and raises TrackerError subclasses;
    `track()` mirrors the camera-callback contract: a flat box buffer updated
    in place and a boolean result.
    """

    def __init__(self, config: TrackerConfig | None = None):
        self.config = config or TrackerConfig()
        self.adapter = FrameAdapter(self.config.pixel_format, self.config.default_color_order)
        self.localizer = MeanShiftLocalizer.from_config(self.config)
        self.roi = None
        self.objects = []
        self._executor = None
        self._initialized = False

    # ---------- lifecycle ----------
    @property
    def initialized(self):
        return self._initialized

    def initialize(self):
        """Allocate session resources. Failure here is fatal to the caller."""
        if self._initialized:
            return
        if self.config.workers > 1:
            try:
                self._executor = ThreadPoolExecutor(max_workers=self.config.workers,
                                                    thread_name_prefix='roitrack')
            except (RuntimeError, OSError) as e:
                raise InitializationError(f"Cannot start localization workers: {e}") from e
        self._initialized = True
        logger.info(f"Tracking session initialized (workers={self.config.workers or 1})")

    def release(self):
        """Free all resources. Safe to call repeatedly."""
        if not self._initialized:
            return
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        self.roi = None
        self.objects = []
        self._initialized = False
        logger.info("Tracking session released")

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    # ---------- read access ----------
    @property
    def boxes(self):
        return [obj.box for obj in self.objects]

    @property
    def confidences(self):
        return [obj.reported_confidence for obj in self.objects]

    @property
    def lost(self):
        return [obj.lost for obj in self.objects]

    def _result(self, objects, seed_applied):
        return TrackingResult(boxes=[obj.box for obj in objects],
                              confidences=[obj.reported_confidence for obj in objects],
                              lost=[obj.lost for obj in objects],
                              seed_applied=seed_applied)

    # ---------- validation ----------
    @staticmethod
    def _validate_roi(roi):
        try:
            x, y, w, h = (int(v) for v in roi)
        except (TypeError, ValueError, OverflowError) as e:
            raise InvalidInput(f"ROI must be (x, y, w, h), got {roi!r}") from e
        if w <= 0 or h <= 0:
            raise InvalidInput(f"ROI must have positive size, got {(x, y, w, h)}")
        return x, y, w, h

    @staticmethod
    def _validate_boxes(boxes):
        checked = []
        for i, box in enumerate(boxes):
            try:
                x, y, w, h = (int(v) for v in box)
            except (TypeError, ValueError, OverflowError) as e:
                raise InvalidInput(f"Box {i} must be (x, y, w, h), got {box!r}") from e
            if w <= 0 or h <= 0:
                raise InvalidInput(f"Box {i} must have positive size, got {(x, y, w, h)}")
            checked.append((x, y, w, h))
        return checked

    def _validate_seed(self, seed, count, frame, roi):
        if seed is None:
            return None
        if not 0 <= seed.index < count:
            raise InvalidInput(f"Seed index {seed.index} out of range for {count} objects")
        try:
            px, py = (int(round(v)) for v in seed.point)
        except (TypeError, ValueError, OverflowError) as e:
            raise InvalidInput(f"Seed point must be (x, y), got {seed.point!r}") from e
        width, height = self.adapter.frame_size(frame)
        if not contains_point((0, 0, width, height), (px, py)):
            raise InvalidInput(f"Seed point {(px, py)} outside the {width}x{height} frame")
        if not contains_point(roi, (px, py)):
            raise InvalidInput(f"Seed point {(px, py)} outside ROI {roi}")
        return SeedRequest(seed.index, (px, py))

    # ---------- per-frame steps ----------
    def _new_histogram(self):
        return HueHistogram.from_config(self.config)

    def _seed_from_box(self, hsv_frame, box):
        """Histogram learned from the box content; empty if the box is colourless."""
        histogram = self._new_histogram()
        try:
            histogram.build_from_box(hsv_frame.hsv, hsv_frame.to_local(box))
        except InvalidSeed as e:
            logger.warning(f"Cannot learn colour from box {box}: {e}")
        return histogram

    def _structural_update(self, hsv_frame, roi, boxes, reinit, seed):
        roi_changed = roi != self.roi
        objects = []
        for i, box in enumerate(boxes):
            box = clip_box(box, roi, self.config.min_box_size)
            previous = self.objects[i] if i < len(self.objects) else None
            if previous is not None and not roi_changed and not previous.histogram.is_empty:
                histogram = previous.histogram
            elif seed is not None and seed.index == i:
                histogram = self._new_histogram()   # the seed fills it in
            else:
                histogram = self._seed_from_box(hsv_frame, box)
            confidence = 0.0 if histogram.is_empty else 1.0
            objects.append(ObjectState(box=box, histogram=histogram, confidence=confidence))

        logger.info(f"Structural update: {len(objects)} objects, roi={roi}, "
                    f"reinit={reinit}, roi_changed={roi_changed}")
        return objects

    def _apply_seed(self, hsv_frame, objects, seed):
        obj = objects[seed.index]
        histogram = obj.histogram.copy()
        local = hsv_frame.to_local((seed.point[0], seed.point[1], 0, 0))[:2]
        try:
            count = histogram.build(hsv_frame.hsv, local, self.config.seed_radius)
        except InvalidSeed as e:
            logger.warning(f"Seeding object {seed.index} at {seed.point} failed: {e}")
            if obj.histogram.is_empty:
                objects[seed.index] = replace(obj, histogram=self._seed_from_box(hsv_frame, obj.box))
            return False

        w, h = obj.box[2], obj.box[3]
        box = clip_box(box_at_center(seed.point[0], seed.point[1], w, h),
                       hsv_frame.roi, self.config.min_box_size)
        objects[seed.index] = ObjectState(box=box, histogram=histogram, confidence=1.0)
        logger.info(f"Object {seed.index} seeded at {seed.point} from {count} px "
                    f"(peak hue bin {histogram.peak_bin})")
        return True

    def _localize(self, index, obj, hsv_frame):
        result = self.localizer.locate(hsv_frame.hsv, obj.histogram, hsv_frame.to_local(obj.box))
        if not result.found:
            lost_count = obj.lost_count + 1
            lost = lost_count > self.config.max_lost_frames
            if lost and not obj.lost:
                logger.warning(f"Object {index} lost after {lost_count} frames, keeping box {obj.box}")
            return replace(obj, confidence=result.confidence, lost_count=lost_count, lost=lost)

        if obj.lost:
            logger.info(f"Object {index} recovered (confidence {result.confidence:.2f})")
        histogram = obj.histogram
        if self.config.model_update_rate > 0:
            histogram = histogram.copy()
            try:
                histogram.blend(hsv_frame.hsv, result.box, self.config.model_update_rate)
            except InvalidSeed:
                histogram = obj.histogram
        return ObjectState(box=hsv_frame.to_frame(result.box), histogram=histogram,
                           confidence=result.confidence, lost_count=0, lost=False)

    # ---------- entry points ----------
    def update(self, frame, roi, boxes, reinit=False, seed: SeedRequest | None = None) -> TrackingResult:
        """
        Run one frame.

        Args:
            frame: camera buffer (see FrameAdapter for layouts)
            roi: (x, y, w, h) working region in frame coords
            boxes: list of (x, y, w, h); authoritative only on a structural
                update (ROI change, reinit, object count change, first frame)
            reinit: force a structural update
            seed: optional SeedRequest, consumed by this frame

        Raises:
            InvalidInput, UnsupportedFormat: nothing is changed
        """
        if not self._initialized:
            self.initialize()

        boxes = self._validate_boxes(boxes)
        roi = self.adapter.clip_roi(frame, self._validate_roi(roi))
        seed = self._validate_seed(seed, len(boxes), frame, roi)
        hsv_frame = self.adapter.convert(frame, roi)

        structural = reinit or roi != self.roi or len(boxes) != len(self.objects)
        if structural:
            objects = self._structural_update(hsv_frame, roi, boxes, reinit, seed)
        else:
            objects = list(self.objects)

        seed_applied = None
        if seed is not None:
            seed_applied = self._apply_seed(hsv_frame, objects, seed)

        if self._executor is not None and len(objects) > 1:
            objects = list(self._executor.map(self._localize, range(len(objects)), objects,
                                              [hsv_frame] * len(objects)))
        else:
            objects = [self._localize(i, obj, hsv_frame) for i, obj in enumerate(objects)]

        self.roi = roi
        self.objects = objects
        logger.debug(f"Frame done: boxes={self.boxes}")
        return self._result(objects, seed_applied)

    @staticmethod
    def _seed_request(seed_index, seed_point):
        """SeedRequest from the flat entry point's arguments, None for NO_SEED."""
        try:
            index = int(seed_index)
        except (TypeError, ValueError, OverflowError) as e:
            raise InvalidInput(f"Seed index must be an integer, got {seed_index!r}") from e
        if index == NO_SEED:
            return None
        if seed_point is None:
            raise InvalidInput(f"Seed index {index} given without a seed point")
        try:
            px, py = seed_point
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"Seed point must be (x, y), got {seed_point!r}") from e
        return SeedRequest(index, (px, py))

    def track(self, frame, roi, boxes_inout, reinit=False, seed_index=NO_SEED, seed_point=None):
        """
        In-place entry point.

        Args:
            boxes_inout: flat mutable buffer [x, y, w, h, ...] (list or numpy
                integer array); overwritten with the new boxes on success
            seed_index: object to seed, or -1 for none
            seed_point: (x, y) in frame coords, required when seed_index >= 0

        Returns:
            True on success; False on any TrackerError, with `boxes_inout`
            left untouched
        """
        try:
            if len(boxes_inout) % 4 != 0:
                raise InvalidInput(f"Box buffer length {len(boxes_inout)} is not a multiple of 4")
            seed = self._seed_request(seed_index, seed_point)
            try:
                boxes = boxes_from_flat(boxes_inout)
            except (TypeError, ValueError, OverflowError) as e:
                raise InvalidInput(f"Box buffer holds a non-integer value: {e}") from e
            result = self.update(frame, roi, boxes, reinit, seed)
        except InitializationError:
            raise
        except TrackerError as e:
            logger.warning(f"Frame rejected: {e}")
            return False

        boxes_inout[:] = flatten_boxes(result.boxes)
        return True
