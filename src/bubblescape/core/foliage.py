"""
Instanced foliage field.

Blades are scattered once over a ground area and anchored at the ground
height sampled at placement. Each frame every blade tilts about X by

    sin(time * sway_speed + phase) * sway_amplitude

while its Y rotation and scale stay fixed. The pose is re-derived from the
fixed per-blade fields every frame, so the same ``time`` always gives the
same matrices. All per-blade data is held as flat numpy arrays and the frame
update writes into preallocated buffers only.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Tuple

import numpy as np

from bubblescape.errors import ConfigurationError

logger = logging.getLogger(__name__)

Range = Tuple[float, float]


@dataclass
class FoliageConfig:
    """Placement ranges and sway constants."""

    count: int = 100_000
    area: Tuple[Range, Range] = ((-200.0, 200.0), (-200.0, 0.0))  # (x range, z range)
    scale_range: Range = (1.6, 2.4)
    sway_speed_range: Range = (0.5, 1.0)
    sway_amplitude: float = 0.15


@dataclass(frozen=True)
class FoliageInstance:
    """Fixed placement data of one blade."""

    index: int
    ground_x: float
    ground_z: float
    base_height: float
    rotation_y: float
    scale: float
    phase: float
    sway_speed: float


class FoliageField:
    """
    Places and animates a large batch of foliage instances.

    After ``place()``, ``matrices`` is an (N, 4, 4) float32 buffer of
    row-major instance transforms ``T * Rx(sway) * Ry(rotation_y) * S``.
    """

    def __init__(self, config: FoliageConfig | None = None, seed: int | None = None):
        self.cfg = config or FoliageConfig()
        self.rng = np.random.default_rng(seed)
        self.count = 0

        empty = np.zeros(0, dtype=np.float64)
        self.ground_x = self.ground_z = self.base_height = empty
        self.rotation_y = self.scale = self.phase = self.sway_speed = empty
        self.sway = empty
        self.matrices = np.zeros((0, 4, 4), dtype=np.float32)

    def place(
        self,
        count: int | None = None,
        area_extents: Tuple[Range, Range] | None = None,
        ground_height_fn: Callable[[float, float], float] | None = None,
    ):
        """
        Scatter blades and cache their ground heights.

        Args:
            count: Number of blades (config default if None).
            area_extents: ((xmin, xmax), (zmin, zmax)).
            ground_height_fn: Height of the ground at (x, z); flat ground if None.
        """
        count = self.cfg.count if count is None else count
        (x_lo, x_hi), (z_lo, z_hi) = area_extents or self.cfg.area
        if count <= 0:
            raise ConfigurationError(f"foliage count must be positive, got {count!r}")
        if x_lo > x_hi or z_lo > z_hi:
            raise ConfigurationError(f"empty foliage area {area_extents!r}")

        rng = self.rng
        self.count = count
        self.ground_x = rng.uniform(x_lo, x_hi, count)
        self.ground_z = rng.uniform(z_lo, z_hi, count)
        self.rotation_y = rng.uniform(0.0, 2 * math.pi, count)
        self.scale = rng.uniform(*self.cfg.scale_range, count)
        self.phase = rng.uniform(0.0, 2 * math.pi, count)
        self.sway_speed = rng.uniform(*self.cfg.sway_speed_range, count)

        if ground_height_fn is None:
            self.base_height = np.zeros(count, dtype=np.float64)
        else:
            self.base_height = np.fromiter(
                (ground_height_fn(x, z) for x, z in zip(self.ground_x.tolist(), self.ground_z.tolist())),
                dtype=np.float64,
                count=count,
            )

        self._allocate()
        logger.debug("Placed %d foliage instances", count)

    def _allocate(self):
        n = self.count
        self.sway = np.zeros(n, dtype=np.float64)
        self._cos_sway = np.ones(n, dtype=np.float64)
        self._sin_sway = np.zeros(n, dtype=np.float64)

        # Scale folded into the fixed Y rotation terms
        self._cos_y_scaled = np.cos(self.rotation_y) * self.scale
        self._sin_y_scaled = np.sin(self.rotation_y) * self.scale

        m = np.zeros((n, 4, 4), dtype=np.float32)
        m[:, 0, 0] = self._cos_y_scaled
        m[:, 0, 2] = self._sin_y_scaled
        m[:, 0, 3] = self.ground_x
        m[:, 1, 3] = self.base_height
        m[:, 2, 3] = self.ground_z
        m[:, 3, 3] = 1.0
        self.matrices = m
        self.update(0.0)

    def update(self, time: float) -> np.ndarray:
        """Re-pose every blade for animation time ``time``."""
        sway = self.sway
        np.multiply(self.sway_speed, time, out=sway)
        np.add(sway, self.phase, out=sway)
        np.sin(sway, out=sway)
        np.multiply(sway, self.cfg.sway_amplitude, out=sway)

        ca, sa = self._cos_sway, self._sin_sway
        np.cos(sway, out=ca)
        np.sin(sway, out=sa)

        m = self.matrices
        # Rx(a) * Ry(b) * S, rows 1 and 2 depend on the sway angle
        np.multiply(sa, self._sin_y_scaled, out=m[:, 1, 0])
        np.multiply(ca, self.scale, out=m[:, 1, 1])
        np.multiply(sa, self._cos_y_scaled, out=m[:, 1, 2])
        np.negative(m[:, 1, 2], out=m[:, 1, 2])
        np.multiply(ca, self._sin_y_scaled, out=m[:, 2, 0])
        np.negative(m[:, 2, 0], out=m[:, 2, 0])
        np.multiply(sa, self.scale, out=m[:, 2, 1])
        np.multiply(ca, self._cos_y_scaled, out=m[:, 2, 2])
        return m

    def instance(self, index: int) -> FoliageInstance:
        if not 0 <= index < self.count:
            raise IndexError(f"foliage index {index} out of range (count={self.count})")
        return FoliageInstance(
            index=index,
            ground_x=float(self.ground_x[index]),
            ground_z=float(self.ground_z[index]),
            base_height=float(self.base_height[index]),
            rotation_y=float(self.rotation_y[index]),
            scale=float(self.scale[index]),
            phase=float(self.phase[index]),
            sway_speed=float(self.sway_speed[index]),
        )

    def pose(self, index: int) -> Tuple[Tuple[float, float, float], Tuple[float, float, float], float]:
        """Position, Euler XYZ rotation and uniform scale of one blade at the last update."""
        position = (
            float(self.ground_x[index]),
            float(self.base_height[index]),
            float(self.ground_z[index]),
        )
        rotation = (float(self.sway[index]), float(self.rotation_y[index]), 0.0)
        return position, rotation, float(self.scale[index])
