"""
Tracker configuration

Every tunable of the tracker lives in one dataclass. Values can be given
directly, from a dict, or from a YAML file.
"""
from dataclasses import dataclass, fields, asdict
import logging

import yaml

logger = logging.getLogger(__name__)

PIXEL_FORMATS = ('auto', 'rgba', 'rgb', 'bgr', 'bgra', 'nv21')


@dataclass
class TrackerConfig:
    # Color histogram model
    hue_bins: int = 16
    min_saturation: int = 60
    min_value: int = 40
    max_value: int = 255
    seed_radius: int = 4
    min_seed_pixels: int = 8

    # Localization (mean-shift)
    search_margin: float = 0.2          # window growth around the box
    epsilon: float = 1.0                # convergence shift in pixels
    max_iterations: int = 10
    min_mass_ratio: float = 0.05        # below this the box does not move
    scale_adaptation: bool = False
    model_update_rate: float = 0.0      # EMA rate for histogram adaptation, 0 = fixed model

    # Object state
    max_lost_frames: int = 10
    min_box_size: int = 2

    # Session / frame adapter
    workers: int = 0                    # 0 or 1 = localize objects serially
    pixel_format: str = 'auto'
    default_color_order: str = 'rgb'    # used for 3-channel buffers with 'auto'

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.hue_bins < 2 or self.hue_bins > 180:
            raise ValueError(f"hue_bins must be in [2, 180], got {self.hue_bins}")
        for name in ('min_saturation', 'min_value', 'max_value'):
            value = getattr(self, name)
            if not 0 <= value <= 255:
                raise ValueError(f"{name} must be in [0, 255], got {value}")
        if self.min_value > self.max_value:
            raise ValueError("min_value must not exceed max_value")
        if self.seed_radius < 1:
            raise ValueError(f"seed_radius must be >= 1, got {self.seed_radius}")
        if self.min_seed_pixels < 1:
            raise ValueError(f"min_seed_pixels must be >= 1, got {self.min_seed_pixels}")
        if self.search_margin < 0:
            raise ValueError(f"search_margin must be >= 0, got {self.search_margin}")
        if self.epsilon <= 0:
            raise ValueError(f"epsilon must be > 0, got {self.epsilon}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if not 0 <= self.min_mass_ratio <= 1:
            raise ValueError(f"min_mass_ratio must be in [0, 1], got {self.min_mass_ratio}")
        if not 0 <= self.model_update_rate <= 1:
            raise ValueError(f"model_update_rate must be in [0, 1], got {self.model_update_rate}")
        if self.max_lost_frames < 0:
            raise ValueError(f"max_lost_frames must be >= 0, got {self.max_lost_frames}")
        if self.min_box_size < 1:
            raise ValueError(f"min_box_size must be >= 1, got {self.min_box_size}")
        if self.workers < 0:
            raise ValueError(f"workers must be >= 0, got {self.workers}")
        if self.pixel_format not in PIXEL_FORMATS:
            raise ValueError(f"Unknown pixel_format: {self.pixel_format}")
        if self.default_color_order not in ('rgb', 'bgr'):
            raise ValueError(f"default_color_order must be 'rgb' or 'bgr', got {self.default_color_order}")

    @classmethod
    def from_dict(cls, data):
        """Build a config from a mapping, rejecting unknown keys."""
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown tracker config keys: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self):
        return asdict(self)


def load_config(path) -> TrackerConfig:
    """Load a TrackerConfig from a YAML file.

    The file may hold the settings at top level or under a `tracker:` key.
    """
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    if 'tracker' in raw:
        raw = raw['tracker'] or {}
    config = TrackerConfig.from_dict(raw)
    logger.info(f"Tracker config loaded from {path}")
    return config
