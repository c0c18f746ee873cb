"""
Multi-object hue-histogram tracking inside a region of interest
"""
from .config import TrackerConfig, load_config
from .errors import (
    TrackerError,
    InvalidInput,
    InvalidSeed,
    UnsupportedFormat,
    InitializationError,
)
from .features import HueHistogram
from .frame_adapter import FrameAdapter, HsvFrame
from .localization import MeanShiftLocalizer, Localization
from .session import NO_SEED, ObjectState, SeedRequest, TrackingResult, TrackingSession
from .channel import ChannelTracker, SnapshotChannel, TrackingSnapshot
from .video_tracker import VideoTracker

__all__ = [
    'TrackerConfig',
    'load_config',
    'TrackerError',
    'InvalidInput',
    'InvalidSeed',
    'UnsupportedFormat',
    'InitializationError',
    'HueHistogram',
    'FrameAdapter',
    'HsvFrame',
    'MeanShiftLocalizer',
    'Localization',
    'NO_SEED',
    'ObjectState',
    'SeedRequest',
    'TrackingResult',
    'TrackingSession',
    'ChannelTracker',
    'SnapshotChannel',
    'TrackingSnapshot',
    'VideoTracker',
]
