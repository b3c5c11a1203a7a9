"""Tests for three-band energy extraction."""

import logging

import numpy as np
import pytest

from bubblescape.core.capture import CaptureSource, StaticCapture
from bubblescape.core.spectrum import BandEnergies, SpectrumExtractor
from bubblescape.errors import CaptureUnavailableError, ConfigurationError


class FlakySource(CaptureSource):
    """Ready source whose reads start failing on demand."""

    def __init__(self, magnitudes):
        super().__init__(bin_count=len(magnitudes))
        self.magnitudes = np.asarray(magnitudes)
        self.ready = True
        self.broken = False
        self.reads = 0

    def request_access(self):
        self.ready = True

    def read_magnitudes(self):
        self.reads += 1
        if self.broken:
            raise CaptureUnavailableError("permission revoked")
        return self.magnitudes


class TestBandSlices:
    def test_boundaries_for_128_bins(self):
        bass, mid, high = SpectrumExtractor.band_slices(128)
        assert (bass.start, bass.stop) == (0, 19)
        assert (mid.start, mid.stop) == (19, 64)
        assert (high.start, high.stop) == (64, 128)

    def test_bands_cover_buffer(self):
        for n in (1, 7, 64, 100, 1024):
            bass, mid, high = SpectrumExtractor.band_slices(n)
            assert bass.stop == mid.start
            assert mid.stop == high.start
            assert high.stop == n


class TestCompute:
    def test_full_scale_bytes(self):
        extractor = SpectrumExtractor()
        energies = extractor.compute(np.full(128, 255, dtype=np.uint8))
        assert energies == BandEnergies(1.0, 1.0, 1.0)

    def test_bass_only(self, bass_heavy_spectrum):
        energies = SpectrumExtractor().compute(bass_heavy_spectrum)
        assert energies.bass == pytest.approx(1.0)
        assert energies.mid == 0.0
        assert energies.high == 0.0

    def test_mean_within_band(self):
        mags = np.zeros(128)
        mags[64:96] = 255  # half of the high band
        energies = SpectrumExtractor().compute(mags)
        assert energies.high == pytest.approx(0.5)

    def test_outputs_in_unit_range(self):
        rng = np.random.default_rng(1)
        extractor = SpectrumExtractor(max_magnitude=1.0)
        for _ in range(50):
            energies = extractor.compute(rng.uniform(0, 5, size=128))
            for value in energies.as_dict().values():
                assert 0.0 <= value <= 1.0

    def test_empty_buffer(self):
        assert SpectrumExtractor().compute(np.zeros(0)) == BandEnergies()

    def test_rejects_bad_max(self):
        with pytest.raises(ConfigurationError):
            SpectrumExtractor(max_magnitude=0)


class TestSample:
    def test_defaults_to_silence(self):
        extractor = SpectrumExtractor()
        assert extractor.sample() == BandEnergies(0.0, 0.0, 0.0)

    def test_reads_ready_source(self, bass_heavy_spectrum):
        extractor = SpectrumExtractor(StaticCapture(bass_heavy_spectrum))
        assert extractor.sample().bass == pytest.approx(1.0)

    def test_not_ready_is_noop(self, bass_heavy_spectrum):
        source = StaticCapture(bass_heavy_spectrum, ready=False)
        extractor = SpectrumExtractor(source)
        assert extractor.sample() == BandEnergies()

    def test_overwrites_previous_values(self, bass_heavy_spectrum):
        source = StaticCapture(bass_heavy_spectrum)
        extractor = SpectrumExtractor(source)
        extractor.sample()
        source.magnitudes = np.zeros(128)
        assert extractor.sample() == BandEnergies()

    def test_failure_keeps_last_energies_and_logs_once(self, bass_heavy_spectrum, caplog):
        source = FlakySource(bass_heavy_spectrum)
        extractor = SpectrumExtractor(source)
        good = extractor.sample()

        source.broken = True
        with caplog.at_level(logging.WARNING, logger="bubblescape"):
            for _ in range(5):
                assert extractor.sample() == good

        warnings = [r for r in caplog.records if "unavailable" in r.getMessage()]
        assert len(warnings) == 1

    def test_failed_source_is_not_polled(self):
        source = FlakySource(np.zeros(128))
        source._fail(PermissionError("denied"))
        extractor = SpectrumExtractor(source)
        extractor.sample()
        extractor.sample()
        assert source.reads == 0
