"""Tests for the audio-reactive terrain driver."""

import numpy as np
import pytest

from bubblescape.core.noise_field import NoiseField
from bubblescape.core.spectrum import BandEnergies
from bubblescape.core.terrain import GainTable, TerrainConfig, TerrainDriver
from bubblescape.errors import ConfigurationError


@pytest.fixture
def driver(noise_field, small_terrain) -> TerrainDriver:
    terrain = TerrainDriver(noise_field, small_terrain)
    terrain.build()
    return terrain


class TestBuild:
    def test_grid_shape(self, driver):
        assert driver.shape == (13, 17)
        assert driver.positions.shape == (13 * 17, 3)
        assert driver.normals.shape == (13 * 17, 3)
        assert driver.positions.dtype == np.float32

    def test_planar_extent(self, driver):
        xs = driver.positions[:, 0]
        zs = driver.positions[:, 2]
        assert xs.min() == pytest.approx(-50.0)
        assert xs.max() == pytest.approx(50.0)
        assert zs.min() == pytest.approx(-40.0)
        assert zs.max() == pytest.approx(40.0)

    def test_heights_follow_noise(self, driver, noise_field):
        for row, col in [(0, 0), (6, 8), (12, 16)]:
            x = driver.grid_x[row, col]
            z = driver.grid_z[row, col]
            assert driver.heights[row, col] == noise_field.height_at(x, z)

    def test_offset_applied(self, driver):
        np.testing.assert_allclose(
            driver.positions[:, 1], driver.heights.ravel() - 15.0, rtol=1e-5, atol=1e-4
        )

    def test_normals_unit_length(self, driver):
        lengths = np.linalg.norm(driver.normals, axis=1)
        np.testing.assert_allclose(lengths, 1.0, rtol=1e-5)
        assert np.all(driver.normals[:, 1] > 0)

    def test_flat_terrain_normals_point_up(self, small_terrain):
        flat = TerrainDriver(NoiseField(octave_count=0), small_terrain)
        flat.build()
        np.testing.assert_allclose(flat.normals, np.tile([0.0, 1.0, 0.0], (flat.vertex_count, 1)))

    def test_rejects_degenerate_grid(self, noise_field):
        with pytest.raises(ConfigurationError):
            TerrainDriver(noise_field, TerrainConfig(segments_x=0))
        with pytest.raises(ConfigurationError):
            TerrainDriver(noise_field, TerrainConfig(width=0.0))


class TestUpdate:
    def test_zero_audio_with_static_gains_matches_build(self, noise_field, small_terrain):
        terrain = TerrainDriver(noise_field, small_terrain, gains=GainTable.static())
        terrain.build()
        built = terrain.heights.copy()
        terrain.update(BandEnergies(0.0, 0.0, 0.0))
        np.testing.assert_array_equal(terrain.heights, built)

    def test_zero_audio_default_gains_is_bounded(self, driver, noise_field):
        driver.update(BandEnergies())
        assert np.all(np.isfinite(driver.heights))
        assert np.abs(driver.heights).max() <= noise_field.height_bound()

    def test_bass_scales_coarse_octave(self, noise_field, small_terrain):
        gains = GainTable(k1=2.0, k2=0.0, k3=0.0, k4=0.0, bass_floor=1.0)
        terrain = TerrainDriver(noise_field, small_terrain, gains=gains)
        terrain.build()
        built = terrain.heights.copy()

        terrain.update(BandEnergies(bass=1.0))
        layers = noise_field.octave_layers(terrain.grid_x, terrain.grid_z)
        coarse = (layers[0] * 18.0).reshape(terrain.shape)
        # Octave 0 is now weighted 3x; the difference is exactly 2x its contribution
        np.testing.assert_allclose(terrain.heights - built, 2.0 * coarse, atol=1e-9)

    def test_high_only_touches_fine_octave(self, noise_field, small_terrain):
        gains = GainTable(k1=5.0, k2=5.0, k3=5.0, k4=1.0, bass_floor=1.0)
        terrain = TerrainDriver(noise_field, small_terrain, gains=gains)
        terrain.build()
        built = terrain.heights.copy()

        terrain.update(BandEnergies(high=1.0))
        layers = noise_field.octave_layers(terrain.grid_x, terrain.grid_z)
        fine = (layers[3] * 2.25).reshape(terrain.shape)
        np.testing.assert_allclose(terrain.heights - built, fine, atol=1e-9)

    def test_intensity_scales_gains(self, noise_field, small_terrain):
        a = TerrainDriver(noise_field, small_terrain)
        b = TerrainDriver(noise_field, small_terrain, gains=GainTable(k1=3.0, k2=2.0, k3=2.4, k4=4.0))
        a.build()
        b.build()
        bands = BandEnergies(0.5, 0.4, 0.3)
        a.update(bands, intensity=2.0)
        b.update(bands)
        np.testing.assert_allclose(a.heights, b.heights)

    def test_normals_refresh_after_update(self, driver):
        before = driver.normals.copy()
        version = driver.version
        driver.update(BandEnergies(1.0, 1.0, 1.0))
        assert driver.version == version + 1
        assert not np.allclose(before, driver.normals)
        np.testing.assert_allclose(np.linalg.norm(driver.normals, axis=1), 1.0, rtol=1e-5)

    def test_full_audio_stays_finite(self, driver):
        for _ in range(10):
            driver.update(BandEnergies(1.0, 1.0, 1.0), intensity=3.0)
        assert np.all(np.isfinite(driver.positions))
        assert np.all(np.isfinite(driver.normals))

    def test_static_terrain_ignores_audio(self, noise_field, small_terrain):
        terrain = TerrainDriver(noise_field, small_terrain, reactive=False)
        terrain.build()
        built = terrain.heights.copy()
        version = terrain.version
        terrain.update(BandEnergies(1.0, 1.0, 1.0))
        np.testing.assert_array_equal(terrain.heights, built)
        assert terrain.version == version


class TestGainTable:
    def test_pairing(self):
        gains = GainTable(k1=1.0, k2=2.0, k3=3.0, k4=4.0, bass_floor=0.8)
        mult = gains.multipliers(BandEnergies(bass=0.5, mid=0.25, high=0.1), octave_count=4)
        np.testing.assert_allclose(mult, [0.8 + 0.5, 1.0 + 0.5, 1.0 + 0.75, 1.0 + 0.4])

    def test_extra_octaves_follow_highs(self):
        mult = GainTable(k4=1.0).multipliers(BandEnergies(high=1.0), octave_count=6)
        assert mult.shape == (6,)
        assert mult[4] == mult[5] == mult[3] == pytest.approx(2.0)

    def test_fewer_octaves(self):
        mult = GainTable().multipliers(BandEnergies(), octave_count=2)
        np.testing.assert_allclose(mult, [0.8, 1.0])
