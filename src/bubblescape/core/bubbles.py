"""
Floating bubble simulation.

Stylized float, not physics: every tick each bubble bobs vertically, sways
horizontally, drifts by a constant velocity and spins. Any axis that leaves
the cube ``[-bounds, bounds]`` is scaled by -0.8, which flips the bubble to
the other side and pulls it toward the origin.
"""

import math
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from bubblescape.errors import ConfigurationError

Range = Tuple[float, float]

# Light blue to purple
DEFAULT_TINT_RANGE: Tuple[Range, Range, Range] = ((173, 255), (144, 215), (216, 255))


@dataclass
class BubbleEntity:
    """One bubble. Only ``position`` and ``rotation`` change after spawning."""

    id: int
    radius: float
    position: np.ndarray
    velocity: np.ndarray
    rotation_speed: np.ndarray
    float_offset: float
    float_speed: float
    float_amplitude: float
    tint: Tuple[int, int, int] = (173, 144, 216)
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(3))


@dataclass
class BubbleConfig:
    """Spawn ranges and motion constants for the bubble population."""

    count: int = 25
    radius_range: Range = (0.5, 3.0)
    spawn_volume: Tuple[Range, Range, Range] = ((-30.0, 30.0), (-20.0, 20.0), (-30.0, 10.0))
    bounds: float = 40.0
    reflect_factor: float = -0.8

    drift_range: float = 0.01  # Velocity drawn from [-drift_range, drift_range)
    spin_range: float = 0.005
    float_speed_range: Range = (0.5, 1.0)
    float_amplitude_range: Range = (0.5, 1.5)
    float_y_scale: float = 0.01
    float_x_scale: float = 0.008

    tint_range: Tuple[Range, Range, Range] = DEFAULT_TINT_RANGE


def make_bubble(
    seed: int,
    index: int,
    config: BubbleConfig,
    radius_range: Range,
    volume: Tuple[Range, Range, Range],
) -> BubbleEntity:
    """
    Build bubble ``index`` deterministically from ``seed``.

    The same (seed, index) always yields the same bubble, independent of how
    many other bubbles exist.
    """
    rng = np.random.default_rng([seed, index])

    radius = float(rng.uniform(*radius_range))
    position = np.array([rng.uniform(lo, hi) for lo, hi in volume], dtype=np.float64)
    tint = tuple(int(rng.integers(lo, hi, endpoint=True)) for lo, hi in config.tint_range)

    velocity = rng.uniform(-config.drift_range, config.drift_range, size=3)
    rotation_speed = rng.uniform(-config.spin_range, config.spin_range, size=3)

    return BubbleEntity(
        id=index,
        radius=radius,
        position=position,
        velocity=velocity,
        rotation_speed=rotation_speed,
        float_offset=float(rng.uniform(0.0, 2 * math.pi)),
        float_speed=float(rng.uniform(*config.float_speed_range)),
        float_amplitude=float(rng.uniform(*config.float_amplitude_range)),
        tint=tint,
    )


class BubbleSimulator:
    """
    Owns a fixed population of bubbles and advances them once per frame.

    Bubbles are never removed. Other components see them only through
    ``get(id)`` and the ``transforms()`` buffer.
    """

    def __init__(self, config: BubbleConfig | None = None, seed: int | None = None):
        self.cfg = config or BubbleConfig()
        if not self.cfg.bounds > 0:
            raise ConfigurationError(f"bounds must be positive, got {self.cfg.bounds!r}")
        if not 0 < abs(self.cfg.reflect_factor) < 1:
            raise ConfigurationError(
                f"reflect_factor must shrink toward the origin, got {self.cfg.reflect_factor!r}"
            )

        if seed is None:
            seed = int(np.random.SeedSequence().entropy % (2 ** 63))
        self.seed = seed
        self.bubbles: List[BubbleEntity] = []
        self._transforms = np.zeros((0, 7), dtype=np.float32)

    def __len__(self) -> int:
        return len(self.bubbles)

    def spawn(
        self,
        count: int | None = None,
        radius_range: Range | None = None,
        volume_bounds: Tuple[Range, Range, Range] | None = None,
    ) -> List[BubbleEntity]:
        """
        Add ``count`` new bubbles.

        Args:
            count: Number of bubbles (config default if None).
            radius_range: (min, max) radius.
            volume_bounds: ((xmin, xmax), (ymin, ymax), (zmin, zmax)) spawn box.

        Returns:
            The newly created bubbles.
        """
        count = self.cfg.count if count is None else count
        radius_range = radius_range or self.cfg.radius_range
        volume_bounds = volume_bounds or self.cfg.spawn_volume
        _validate_spawn(count, radius_range, volume_bounds)

        start = len(self.bubbles)
        created = [
            make_bubble(self.seed, start + i, self.cfg, radius_range, volume_bounds)
            for i in range(count)
        ]
        self.bubbles.extend(created)
        self._transforms = np.zeros((len(self.bubbles), 7), dtype=np.float32)
        return created

    def get(self, bubble_id: int) -> BubbleEntity:
        return self.bubbles[bubble_id]

    def update(self, time: float, delta_time: float | None = None):
        """
        Advance every bubble by one tick at animation time ``time``.

        Motion is per tick, not per second; ``delta_time`` is accepted for the
        frame-loop signature and not used. Frame-rate independence comes from
        the fixed-step FrameClock.
        """
        cfg = self.cfg
        bounds = cfg.bounds

        for b in self.bubbles:
            pos = b.position
            # Float
            pos[1] += math.sin(time * b.float_speed + b.float_offset) * cfg.float_y_scale * b.float_amplitude
            pos[0] += math.cos(time * b.float_speed * 0.7 + b.float_offset) * cfg.float_x_scale * b.float_amplitude

            # Drift and spin
            pos += b.velocity
            b.rotation += b.rotation_speed

            for axis in range(3):
                if abs(pos[axis]) > bounds:
                    pos[axis] *= cfg.reflect_factor

    def transforms(self) -> np.ndarray:
        """
        Instance buffer for the renderer.

        Returns:
            (N, 7) float32 array: position xyz, rotation xyz, radius.
        """
        out = self._transforms
        for i, b in enumerate(self.bubbles):
            out[i, 0:3] = b.position
            out[i, 3:6] = b.rotation
            out[i, 6] = b.radius
        return out

    def tints(self) -> np.ndarray:
        """(N, 3) uint8 RGB tint per bubble."""
        return np.array([b.tint for b in self.bubbles], dtype=np.uint8).reshape(-1, 3)


def _validate_spawn(count: int, radius_range: Range, volume_bounds) -> None:
    if count <= 0:
        raise ConfigurationError(f"bubble count must be positive, got {count!r}")
    lo, hi = radius_range
    if not 0 < lo <= hi:
        raise ConfigurationError(f"radius range must satisfy 0 < min <= max, got {radius_range!r}")
    if len(volume_bounds) != 3:
        raise ConfigurationError(f"volume bounds need three (min, max) pairs, got {volume_bounds!r}")
    for lo, hi in volume_bounds:
        if lo > hi:
            raise ConfigurationError(f"empty spawn volume axis ({lo}, {hi})")
