"""
Audio-reactive terrain grid.

The grid is a fixed plane of vertices whose heights follow the noise field.
Each octave is sampled once when the grid is built; a reactive update then
only re-weights those cached layers:

- octave 0 (large-scale undulation)  x (bass_floor + bass * k1)
- octave 1                           x (1 + mid * k2)
- octave 2                           x (1 + mid * k3)
- octave 3 (small-scale detail)      x (1 + high * k4)

Normals are recomputed after every height change.
"""

import logging
from dataclasses import dataclass

import numpy as np

from bubblescape.core.noise_field import NoiseField
from bubblescape.core.spectrum import SILENCE, BandEnergies
from bubblescape.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class TerrainConfig:
    """Plane geometry of the terrain."""

    width: float = 400.0
    depth: float = 400.0
    segments_x: int = 128
    segments_z: int = 128
    offset: float = -15.0  # Vertical placement of the plane


@dataclass(frozen=True)
class GainTable:
    """Per-octave audio gains; coarse octaves follow bass, fine octaves follow highs."""

    k1: float = 1.5
    k2: float = 1.0
    k3: float = 1.2
    k4: float = 2.0
    bass_floor: float = 0.8

    @classmethod
    def static(cls) -> "GainTable":
        """Gains under which any band energies reproduce the unscaled height law."""
        return cls(k1=0.0, k2=0.0, k3=0.0, k4=0.0, bass_floor=1.0)

    def multipliers(self, bands: BandEnergies, octave_count: int, intensity: float = 1.0) -> np.ndarray:
        """
        Amplitude multiplier for every octave.

        Args:
            bands: Current band energies.
            octave_count: Number of octaves in the noise field.
            intensity: Global audio intensity applied to k1..k4.

        Returns:
            (octave_count,) float64 array.
        """
        table = [
            self.bass_floor + bands.bass * self.k1 * intensity,
            1.0 + bands.mid * self.k2 * intensity,
            1.0 + bands.mid * self.k3 * intensity,
            1.0 + bands.high * self.k4 * intensity,
        ]
        # Octaves past the fourth are all fine detail
        table.extend(table[-1] for _ in range(octave_count - len(table)))
        return np.array(table[:octave_count], dtype=np.float64)


class TerrainDriver:
    """
    Owns the terrain vertex grid and keeps its heights and normals current.

    ``positions`` and ``normals`` are (V, 3) float32 buffers written in place;
    ``version`` increments on every mutation so a renderer knows to re-upload.
    """

    def __init__(
        self,
        noise_field: NoiseField,
        config: TerrainConfig | None = None,
        gains: GainTable | None = None,
        reactive: bool = True,
    ):
        self.cfg = config or TerrainConfig()
        if self.cfg.segments_x < 1 or self.cfg.segments_z < 1:
            raise ConfigurationError(
                f"terrain needs at least one segment per axis, got {self.cfg.segments_x}x{self.cfg.segments_z}"
            )
        if not (self.cfg.width > 0 and self.cfg.depth > 0):
            raise ConfigurationError(f"terrain extents must be positive, got {self.cfg.width}x{self.cfg.depth}")

        self.noise = noise_field
        self.gains = gains or GainTable()
        self.reactive = reactive

        nx = self.cfg.segments_x + 1
        nz = self.cfg.segments_z + 1
        self.shape = (nz, nx)

        # Planar coordinates are fixed for the lifetime of the grid
        xs = np.linspace(-self.cfg.width / 2, self.cfg.width / 2, nx)
        zs = np.linspace(-self.cfg.depth / 2, self.cfg.depth / 2, nz)
        self.grid_x, self.grid_z = np.meshgrid(xs, zs)
        self._spacing = (zs[1] - zs[0], xs[1] - xs[0])

        self.heights = np.zeros(self.shape, dtype=np.float64)
        self.positions = np.zeros((nz * nx, 3), dtype=np.float32)
        self.positions[:, 0] = self.grid_x.ravel()
        self.positions[:, 2] = self.grid_z.ravel()
        self.normals = np.zeros((nz * nx, 3), dtype=np.float32)
        self.normals[:, 1] = 1.0

        self._layers: np.ndarray | None = None
        self._amplitudes = noise_field.octave_amplitudes()
        self.version = 0

    @property
    def vertex_count(self) -> int:
        return self.positions.shape[0]

    @property
    def built(self) -> bool:
        return self._layers is not None

    def build(self):
        """Sample the noise field at every vertex and apply the static height law."""
        self._layers = self.noise.octave_layers(self.grid_x, self.grid_z)
        self._apply(np.ones(self.noise.octave_count, dtype=np.float64))
        logger.debug(
            "Built terrain grid %dx%d (%d vertices, %d octaves)",
            self.shape[1], self.shape[0], self.vertex_count, self.noise.octave_count,
        )

    def update(self, bands: BandEnergies = SILENCE, intensity: float = 1.0):
        """
        Re-weight the octaves by the current band energies.

        A no-op for static terrain.
        """
        if not self.reactive:
            return
        if self._layers is None:
            self.build()
        self._apply(self.gains.multipliers(bands, self.noise.octave_count, intensity))

    def _apply(self, multipliers: np.ndarray):
        heights = self.heights
        heights.fill(0.0)
        flat = heights.reshape(-1)
        for layer, amplitude, multiplier in zip(self._layers, self._amplitudes, multipliers):
            flat += layer * (amplitude * multiplier)

        self.positions[:, 1] = flat + self.cfg.offset
        self.compute_normals()
        self.version += 1

    def compute_normals(self):
        """Smooth per-vertex normals from central differences of the height grid."""
        dz, dx = self._spacing
        dh_dz, dh_dx = np.gradient(self.heights, dz, dx)
        normals = self.normals
        normals[:, 0] = -dh_dx.ravel()
        normals[:, 1] = 1.0
        normals[:, 2] = -dh_dz.ravel()
        normals /= np.linalg.norm(normals, axis=1, keepdims=True)
