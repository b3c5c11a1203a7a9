"""
Three-band energy extraction from a frequency-magnitude buffer.

The buffer is split, low to high, at 15% and 50% of its length:

    bass = [0, 0.15 N)    mid = [0.15 N, 0.5 N)    high = [0.5 N, N)

Each band is the mean magnitude of its bins divided by the largest value the
source can report, so every energy lands in [0, 1].
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from bubblescape.core.capture import CaptureSource
from bubblescape.errors import CaptureUnavailableError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BandEnergies:
    """Normalized energy of the bass, mid and high bands."""

    bass: float = 0.0
    mid: float = 0.0
    high: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return {"bass": self.bass, "mid": self.mid, "high": self.high}


SILENCE = BandEnergies()


class SpectrumExtractor:
    """
    Polls a capture source once per frame and keeps the latest band energies.

    When the source is not ready, or fails, ``sample()`` leaves the previous
    energies untouched. A failure is logged once and never retried.
    """

    BASS_SPLIT = 0.15
    MID_SPLIT = 0.5

    def __init__(self, source: CaptureSource | None = None, max_magnitude: float = 255.0):
        """
        Args:
            source: Capture collaborator. None behaves as a source that never
                becomes ready.
            max_magnitude: Largest magnitude the source can report (255 for
                byte spectra, 1.0 for normalized float spectra).
        """
        if not max_magnitude > 0:
            raise ConfigurationError(f"max_magnitude must be positive, got {max_magnitude!r}")

        self.source = source
        self.max_magnitude = float(max_magnitude)
        self.energies = SILENCE
        self._failure_logged = False

    @classmethod
    def band_slices(cls, n_bins: int) -> Tuple[slice, slice, slice]:
        """Bin ranges of the bass, mid and high bands for an ``n_bins`` buffer."""
        lo = int(n_bins * cls.BASS_SPLIT)
        hi = int(n_bins * cls.MID_SPLIT)
        return slice(0, lo), slice(lo, hi), slice(hi, n_bins)

    def compute(self, magnitudes: np.ndarray) -> BandEnergies:
        """Reduce one magnitude buffer to band energies."""
        mags = np.asarray(magnitudes, dtype=np.float64).ravel()
        bands = []
        for band in self.band_slices(mags.size):
            values = mags[band]
            level = float(values.mean()) / self.max_magnitude if values.size else 0.0
            bands.append(min(max(level, 0.0), 1.0))
        return BandEnergies(*bands)

    def sample(self) -> BandEnergies:
        """Read the source once and overwrite the stored energies."""
        source = self.source
        if source is None or not source.ready:
            if source is not None and source.failed:
                self._log_failure(source.error)
            return self.energies

        try:
            magnitudes = source.read_magnitudes()
        except CaptureUnavailableError as exc:
            self._log_failure(exc)
            return self.energies

        self.energies = self.compute(magnitudes)
        return self.energies

    def _log_failure(self, error: BaseException | None):
        if self._failure_logged:
            return
        self._failure_logged = True
        logger.warning("Audio capture unavailable, keeping last band energies: %s", error)
