"""
Control-thread -> frame-thread hand-off

The UI thread publishes what should be tracked (ROI, boxes, reinit flag, at
most one seed request) as one immutable TrackingSnapshot. The frame thread
adopts the newest snapshot at the start of each frame, so it never pairs new
boxes with a stale ROI. Reinit and seed are one-shot: they are handed to
exactly one frame and then dropped from the adopted snapshot.
"""
from dataclasses import dataclass, replace
import logging
import threading

from .errors import TrackerError, InitializationError
from .session import SeedRequest, TrackingSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingSnapshot:
    roi: tuple
    boxes: tuple
    reinit: bool = False
    seed: SeedRequest | None = None
    version: int = 0


class SnapshotChannel:
    """Single-producer / single-consumer snapshot exchange."""

    def __init__(self):
        self._lock = threading.Lock()
        self._pending = None        # published, not yet taken
        self._current = None        # last snapshot taken, one-shot parts cleared
        self._version = 0
        self._latest_result = None
        self._result_roi = None     # ROI of the snapshot behind _latest_result

    # ---------- control thread ----------
    def publish(self, roi, boxes, reinit=False, seed=None) -> TrackingSnapshot:
        """
        Publish a complete snapshot, replacing any snapshot not yet taken.

        A reinit flag or seed of the replaced snapshot is carried over so the
        frame thread cannot miss it; a new seed replaces an older one.
        """
        with self._lock:
            if self._pending is not None:
                reinit = reinit or self._pending.reinit
                if seed is None:
                    seed = self._pending.seed
            self._version += 1
            snapshot = TrackingSnapshot(roi=tuple(int(v) for v in roi),
                                        boxes=tuple(tuple(int(v) for v in box) for box in boxes),
                                        reinit=bool(reinit),
                                        seed=seed,
                                        version=self._version)
            self._pending = snapshot
        logger.debug(f"Published snapshot v{snapshot.version}: roi={snapshot.roi}, "
                     f"{len(snapshot.boxes)} boxes, reinit={snapshot.reinit}, seed={snapshot.seed}")
        return snapshot

    def _base(self):
        base = self._pending or self._current
        if base is None:
            raise TrackerError("Nothing published yet: set an ROI first")
        return base

    def set_roi(self, roi, boxes=()):
        """New ROI; the object list restarts from `boxes`."""
        return self.publish(roi, boxes, reinit=True)

    def set_boxes(self, boxes):
        with self._lock:
            roi = self._base().roi
        return self.publish(roi, boxes, reinit=True)

    def add_box(self, box):
        """
        Append an object to the tracked list.

        Builds on a snapshot still waiting to be taken; otherwise on the
        latest tracked boxes, as long as they were tracked under the same ROI.
        """
        with self._lock:
            base = self._base()
            boxes = base.boxes
            tracked = self._latest_result
            if self._pending is None and tracked is not None and self._result_roi == base.roi:
                boxes = tracked.boxes
        return self.publish(base.roi, list(boxes) + [box], reinit=True)

    def request_seed(self, index, point):
        with self._lock:
            base = self._base()
        return self.publish(base.roi, base.boxes, seed=SeedRequest(int(index), tuple(point)))

    def latest_result(self):
        with self._lock:
            return self._latest_result

    # ---------- frame thread ----------
    def take(self) -> TrackingSnapshot | None:
        """
        Snapshot for this frame. Never waits for the producer: if the lock is
        busy the previously adopted snapshot is used.
        """
        if not self._lock.acquire(blocking=False):
            return self._current
        try:
            snapshot = self._pending
            if snapshot is None:
                return self._current
            self._pending = None
            self._current = replace(snapshot, reinit=False, seed=None)
            return snapshot
        finally:
            self._lock.release()

    def report(self, result, roi=None):
        with self._lock:
            self._latest_result = result
            self._result_roi = tuple(roi) if roi is not None else None


class ChannelTracker:
    """Frame-thread driver: adopt the newest snapshot, track, publish boxes back."""

    def __init__(self, session: TrackingSession | None = None, channel: SnapshotChannel | None = None):
        self.session = session or TrackingSession()
        self.channel = channel or SnapshotChannel()
        self._reinit_retry = False

    def initialize(self):
        self.session.initialize()

    def process(self, frame):
        """
        Track one frame. Returns the TrackingResult, or None when nothing is
        published yet or the frame was rejected.
        """
        snapshot = self.channel.take()
        if snapshot is None:
            return None
        reinit = snapshot.reinit or self._reinit_retry
        try:
            result = self.session.update(frame, snapshot.roi, snapshot.boxes,
                                         reinit=reinit, seed=snapshot.seed)
        except InitializationError:
            raise
        except TrackerError as e:
            # the seed is one-shot and dropped; a structural change is retried
            self._reinit_retry = reinit
            logger.warning(f"Frame rejected for snapshot v{snapshot.version}: {e}")
            return None
        self._reinit_retry = False
        self.channel.report(result, snapshot.roi)
        return result

    def latest(self):
        return self.channel.latest_result()

    def release(self):
        self.session.release()
