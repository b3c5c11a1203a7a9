"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest

from bubblescape.core.noise_field import NoiseField
from bubblescape.core.terrain import TerrainConfig
from bubblescape.scene import SceneConfig

# Default sample rate for test audio
TEST_SR = 22050


@pytest.fixture
def sample_rate() -> int:
    """Default sample rate for tests."""
    return TEST_SR


@pytest.fixture
def noise_field() -> NoiseField:
    """The four-octave height law used by the default scene."""
    return NoiseField(octave_count=4, base_amplitude=18.0, base_frequency=0.005, seed=7)


@pytest.fixture
def small_terrain() -> TerrainConfig:
    """A coarse grid that builds quickly."""
    return TerrainConfig(width=100.0, depth=80.0, segments_x=16, segments_z=12)


@pytest.fixture
def small_scene(small_terrain) -> SceneConfig:
    """A scene config with a coarse terrain, for fast environment tests."""
    return SceneConfig(terrain=small_terrain)


@pytest.fixture
def bass_heavy_spectrum() -> np.ndarray:
    """128 byte bins, loud in the bass band and silent elsewhere."""
    mags = np.zeros(128, dtype=np.uint8)
    mags[:19] = 255
    return mags


@pytest.fixture
def low_tone_file(tmp_path, sample_rate):
    """
    A two second 110Hz tone written to a wav file.

    Returns:
        Path to the file.
    """
    import soundfile as sf

    duration = 2.0
    t = np.linspace(0, duration, int(sample_rate * duration), endpoint=False)
    y = (0.6 * np.sin(2 * np.pi * 110.0 * t)).astype(np.float32)
    audio_path = tmp_path / "low_tone.wav"
    sf.write(audio_path, y, sample_rate)
    return audio_path
