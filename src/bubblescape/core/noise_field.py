"""
Fractal Perlin heightfield.

Sums octaves of 2D Perlin noise (``noise.pnoise2``) into terrain heights:

    height = sum_o pnoise2(x * f_o, z * f_o) * a_o

with ``f_0 = base_frequency``, ``a_0 = base_amplitude`` and each later octave
scaled by ``lacunarity`` (frequency) and ``persistence`` (amplitude).
"""

import math
from dataclasses import dataclass
from typing import Iterator, Sequence, Tuple

import noise
import numpy as np

from bubblescape.errors import ConfigurationError


@dataclass
class NoiseConfig:
    """Parameters of the fractal height law."""

    octave_count: int = 4
    base_amplitude: float = 18.0
    base_frequency: float = 0.005
    persistence: float = 0.5
    lacunarity: float = 2.0
    seed: int | None = 0


class NoiseField:
    """
    Stateless fractal noise sampler.

    All parameters are fixed at construction; ``height_at`` is a pure function
    of its arguments. The seed only picks a lattice offset, so two fields built
    with the same seed sample identical terrain.
    """

    def __init__(
        self,
        octave_count: int = 4,
        base_amplitude: float = 18.0,
        base_frequency: float = 0.005,
        persistence: float = 0.5,
        lacunarity: float = 2.0,
        seed: int | None = 0,
    ):
        _validate(octave_count, base_amplitude, base_frequency, persistence, lacunarity)

        self.octave_count = int(octave_count)
        self.base_amplitude = float(base_amplitude)
        self.base_frequency = float(base_frequency)
        self.persistence = float(persistence)
        self.lacunarity = float(lacunarity)
        self.seed = seed

        # pnoise2 is periodic over 1024 units; keep the offset well inside it
        rng = np.random.default_rng(seed)
        self._offset_x, self._offset_z = (float(v) for v in rng.uniform(0.0, 256.0, size=2))

    @classmethod
    def from_config(cls, config: NoiseConfig) -> "NoiseField":
        return cls(
            octave_count=config.octave_count,
            base_amplitude=config.base_amplitude,
            base_frequency=config.base_frequency,
            persistence=config.persistence,
            lacunarity=config.lacunarity,
            seed=config.seed,
        )

    def _octaves(self) -> Iterator[Tuple[float, float]]:
        """Yield (frequency, amplitude) for each octave, coarse to fine."""
        frequency = self.base_frequency
        amplitude = self.base_amplitude
        for _ in range(self.octave_count):
            yield frequency, amplitude
            frequency *= self.lacunarity
            amplitude *= self.persistence

    def base_noise(self, x: float, z: float) -> float:
        """Single unit-amplitude Perlin sample in roughly [-1, 1]."""
        return noise.pnoise2(x + self._offset_x, z + self._offset_z)

    def height_at(self, x: float, z: float) -> float:
        height = 0.0
        for frequency, amplitude in self._octaves():
            height += self.base_noise(x * frequency, z * frequency) * amplitude
        return height

    # The renderer-facing name for a height query
    sample = height_at

    def octave_amplitudes(self) -> np.ndarray:
        """Amplitude of every octave, coarse to fine."""
        return np.array([amp for _, amp in self._octaves()], dtype=np.float64)

    def octave_layers(self, xs: Sequence[float], zs: Sequence[float]) -> np.ndarray:
        """
        Sample every octave separately at the given points.

        Args:
            xs: Planar x coordinates.
            zs: Planar z coordinates, same length as ``xs``.

        Returns:
            (octave_count, N) float64 array of unit-amplitude noise. Weighting
            row ``o`` by ``octave_amplitudes()[o]`` and summing rows in order
            reproduces ``height_at`` bit for bit.
        """
        xs = np.asarray(xs, dtype=np.float64).ravel()
        zs = np.asarray(zs, dtype=np.float64).ravel()
        if xs.shape != zs.shape:
            raise ValueError(f"coordinate arrays differ in length: {xs.size} vs {zs.size}")

        layers = np.zeros((self.octave_count, xs.size), dtype=np.float64)
        for octave, (frequency, _) in enumerate(self._octaves()):
            # pnoise2 is scalar-only; fromiter avoids an intermediate list
            layers[octave] = np.fromiter(
                (self.base_noise(x * frequency, z * frequency) for x, z in zip(xs.tolist(), zs.tolist())),
                dtype=np.float64,
                count=xs.size,
            )
        return layers

    def height_bound(self) -> float:
        """Sum of octave amplitudes: an upper bound on ``abs(height_at)``."""
        return float(sum(abs(amp) for _, amp in self._octaves()))


def _validate(
    octave_count: int,
    base_amplitude: float,
    base_frequency: float,
    persistence: float,
    lacunarity: float,
) -> None:
    if isinstance(octave_count, bool) or int(octave_count) != octave_count or octave_count < 0:
        raise ConfigurationError(f"octave_count must be a non-negative integer, got {octave_count!r}")
    for name, value in (("base_amplitude", base_amplitude), ("base_frequency", base_frequency)):
        if not math.isfinite(value):
            raise ConfigurationError(f"{name} must be finite, got {value!r}")
    if not (0.0 < persistence <= 1.0):
        raise ConfigurationError(f"persistence must be in (0, 1], got {persistence!r}")
    if not (math.isfinite(lacunarity) and lacunarity >= 1.0):
        raise ConfigurationError(f"lacunarity must be >= 1, got {lacunarity!r}")
